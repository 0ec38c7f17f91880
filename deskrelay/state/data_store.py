from __future__ import annotations

import logging
from typing import Any, Optional

from deskrelay.state.redis_keys import APP_DATA_KEY, CONFIG_KEY
from deskrelay.state.redis_state import RedisState

log = logging.getLogger("state.data")


class AppDataStore:
    """Dados por app (get/set/add). Cada app é um campo do hash APP_DATA_KEY."""

    def __init__(self, state: RedisState):
        self.state = state

    async def get_data(self, app: str) -> Optional[Any]:
        return await self.state.hget_json(APP_DATA_KEY, app)

    async def set_data(self, app: str, value: Any) -> None:
        await self.state.hset_json(APP_DATA_KEY, app, value)
        log.debug("app_data_set", extra={"app": app})

    async def add_data(self, app: str, value: Any) -> Any:
        current = await self.get_data(app)
        if isinstance(current, dict) and isinstance(value, dict):
            merged = {**current, **value}
        else:
            merged = value
        await self.state.hset_json(APP_DATA_KEY, app, merged)
        log.debug("app_data_added", extra={"app": app})
        return merged

    async def read_all(self) -> dict[str, Any]:
        return await self.state.hgetall_json(APP_DATA_KEY)

    async def delete_data(self, app: str) -> None:
        await self.state.hdel(APP_DATA_KEY, app)

    async def set_app_setting(self, app: str, setting_id: str, value: Any) -> dict:
        data = await self.get_data(app)
        if not isinstance(data, dict):
            data = {}

        settings = data.get("settings")
        if not isinstance(settings, dict):
            settings = {}

        current = settings.get(setting_id)
        if isinstance(current, dict):
            # formato {value, label, options...}: só troca o value
            settings[setting_id] = {**current, "value": value}
        else:
            settings[setting_id] = {"value": value}

        data["settings"] = settings
        await self.state.hset_json(APP_DATA_KEY, app, data)
        return settings


class ConfigStore:
    def __init__(self, state: RedisState):
        self.state = state

    async def get_config(self, key: str) -> Optional[Any]:
        return await self.state.hget_json(CONFIG_KEY, key)

    async def set_config(self, key: str, value: Any) -> None:
        await self.state.hset_json(CONFIG_KEY, key, value)
