"""
Unit Tests for the redis-backed stores

Tests for:
- AppDataStore get/set/add (shallow merge) and app settings
- ConfigStore lookups
- SettingsStore defaults, save and listener feed
- RedisState degrading on connection errors
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError

from deskrelay.core.config import Settings
from deskrelay.models.settings import ServerSettings
from deskrelay.state.data_store import AppDataStore, ConfigStore
from deskrelay.state.redis_keys import APP_DATA_KEY, CONFIG_KEY, SETTINGS_KEY
from deskrelay.state.redis_state import RedisState
from deskrelay.state.settings_store import SettingsStore


class FakeRedis:
    """Só o pedaço da API do redis.asyncio que o RedisState usa."""

    def __init__(self):
        self.values = {}
        self.hashes = {}
        self.published = []

    async def get(self, key):
        return self.values.get(key)

    async def set(self, key, value):
        self.values[key] = value

    async def hget(self, key, field):
        return self.hashes.get(key, {}).get(field)

    async def hset(self, key, field, value):
        self.hashes.setdefault(key, {})[field] = value

    async def hgetall(self, key):
        return {f.encode(): v for f, v in self.hashes.get(key, {}).items()}

    async def hdel(self, key, field):
        self.hashes.get(key, {}).pop(field, None)

    async def publish(self, channel, payload):
        self.published.append((channel, json.loads(payload)))

    async def delete(self, key):
        self.values.pop(key, None)


@pytest.fixture
def redis():
    return FakeRedis()


@pytest.fixture
def state(redis):
    return RedisState(redis)


class TestAppDataStore:
    """Tests for per-app data."""

    @pytest.mark.asyncio
    async def test_set_and_get(self, state, redis):
        store = AppDataStore(state)
        await store.set_data("spotify", {"token": "abc"})

        assert await store.get_data("spotify") == {"token": "abc"}
        assert json.loads(redis.hashes[APP_DATA_KEY]["spotify"]) == {"token": "abc"}

    @pytest.mark.asyncio
    async def test_add_is_shallow_merge(self, state):
        store = AppDataStore(state)
        await store.set_data("spotify", {"a": 1, "nested": {"x": 1}})
        merged = await store.add_data("spotify", {"nested": {"y": 2}, "b": 2})

        assert merged == {"a": 1, "nested": {"y": 2}, "b": 2}

    @pytest.mark.asyncio
    async def test_add_on_empty(self, state):
        store = AppDataStore(state)
        assert await store.add_data("new", {"a": 1}) == {"a": 1}

    @pytest.mark.asyncio
    async def test_read_all_and_delete(self, state):
        store = AppDataStore(state)
        await store.set_data("a", {"x": 1})
        await store.set_data("b", {"y": 2})
        await store.delete_data("a")

        assert await store.read_all() == {"b": {"y": 2}}

    @pytest.mark.asyncio
    async def test_set_app_setting_keeps_metadata(self, state):
        store = AppDataStore(state)
        await store.set_data("spotify", {"settings": {"volume": {"value": 1, "label": "Volume"}}})

        settings = await store.set_app_setting("spotify", "volume", 9)

        assert settings == {"volume": {"value": 9, "label": "Volume"}}


class TestConfigStore:
    """Tests for config lookups."""

    @pytest.mark.asyncio
    async def test_get_config(self, state, redis):
        redis.hashes[CONFIG_KEY] = {"audiosources": json.dumps(["local"])}
        assert await ConfigStore(state).get_config("audiosources") == ["local"]
        assert await ConfigStore(state).get_config("missing") is None


class TestSettingsStore:
    """Tests for server settings and the change feed."""

    @pytest.mark.asyncio
    async def test_defaults_from_config(self, state):
        store = SettingsStore(state, defaults=Settings(refresh_interval_ms=2000, playback_location="spotify"))
        settings = await store.get_settings()

        assert settings.refreshInterval == 2000
        assert settings.playbackLocation == "spotify"

    @pytest.mark.asyncio
    async def test_save_persists_publishes_and_notifies(self, state, redis):
        store = SettingsStore(state)
        sync_listener = MagicMock()
        async_listener = AsyncMock()
        store.subscribe(sync_listener)
        store.subscribe(async_listener)

        saved = await store.save_settings({"refreshInterval": -1})

        assert saved.refreshInterval == -1
        assert json.loads(redis.values[SETTINGS_KEY])["refreshInterval"] == -1
        assert redis.published[0][1]["type"] == "settings"
        sync_listener.assert_called_once_with(saved)
        async_listener.assert_awaited_once_with(saved)

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(self, state):
        store = SettingsStore(state)
        good = MagicMock()
        store.subscribe(MagicMock(side_effect=RuntimeError("boom")))
        store.subscribe(good)

        await store.save_settings(ServerSettings())

        good.assert_called_once()

    @pytest.mark.asyncio
    async def test_unsubscribe(self, state):
        store = SettingsStore(state)
        listener = MagicMock()
        unsubscribe = store.subscribe(listener)
        unsubscribe()

        await store.save_settings(ServerSettings())

        listener.assert_not_called()


class TestRedisState:
    """Tests for connection failure handling."""

    @pytest.mark.asyncio
    async def test_connection_errors_degrade(self):
        redis = MagicMock()
        redis.get = AsyncMock(side_effect=ConnectionError("down"))
        redis.hset = AsyncMock(side_effect=ConnectionError("down"))
        state = RedisState(redis)

        assert await state.get_json("k") is None
        assert await state.hset_json("k", "f", 1) is False
