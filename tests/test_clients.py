"""
Unit Tests for ClientBroadcaster

Tests for:
- broadcast only reaches open clients
- unicast and its fallback to broadcast
- forced disconnect
- config/settings/mappings snapshots and their error path
"""

import json
from unittest.mock import AsyncMock

import pytest
from starlette.websockets import WebSocketState

from conftest import add_app, make_socket
from deskrelay.models.envelope import ClientMessage
from deskrelay.models.keymap import Key


def frames(ws):
    return [json.loads(c.args[0]) for c in ws.send_text.await_args_list]


class TestConnections:
    """Tests for connect/remove/disconnect."""

    @pytest.mark.asyncio
    async def test_connect_accepts_and_registers(self, clients):
        ws = make_socket()
        client = await clients.connect(ws)

        ws.accept.assert_awaited_once()
        assert clients.get(client.connection_id) is client
        assert client.ip == "10.0.0.2"
        assert client.user_agent == "car-thing"

    @pytest.mark.asyncio
    async def test_disconnect_closes_and_removes(self, clients):
        ws = make_socket()
        client = await clients.connect(ws)

        assert await clients.disconnect(client.connection_id) is True
        ws.close.assert_awaited_once()
        assert clients.get(client.connection_id) is None

    @pytest.mark.asyncio
    async def test_disconnect_unknown(self, clients, caplog):
        caplog.set_level("INFO")
        assert await clients.disconnect("nope") is False
        assert any(r.getMessage() == "client_not_found" for r in caplog.records)

    @pytest.mark.asyncio
    async def test_list_clients(self, clients):
        client = await clients.connect(make_socket())
        summary = clients.list_clients()
        assert summary[0]["connectionId"] == client.connection_id
        assert summary[0]["open"] is True


class TestBroadcast:
    """Tests for broadcast and unicast."""

    @pytest.mark.asyncio
    async def test_broadcast_skips_closed_clients(self, clients):
        open_ws = make_socket()
        closed_ws = make_socket()
        await clients.connect(open_ws)
        await clients.connect(closed_ws)
        closed_ws.client_state = WebSocketState.DISCONNECTED

        sent = await clients.broadcast({"app": "spotify", "type": "song", "payload": 1})

        assert sent == 1
        assert frames(open_ws) == [{"app": "spotify", "type": "song", "payload": 1}]
        closed_ws.send_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_broadcast_excludes_removed_clients(self, clients):
        ws = make_socket()
        client = await clients.connect(ws)
        await clients.remove(client.connection_id)

        assert await clients.broadcast({"app": "x", "type": "y"}) == 0
        ws.send_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_broadcast_prunes_failing_clients(self, clients):
        ws = make_socket()
        ws.send_text = AsyncMock(side_effect=RuntimeError("broken pipe"))
        client = await clients.connect(ws)

        assert await clients.broadcast({"app": "x", "type": "y"}) == 0
        assert clients.get(client.connection_id) is None

    @pytest.mark.asyncio
    async def test_unicast_reaches_only_target(self, clients):
        a, b = make_socket(), make_socket()
        client_a = await clients.connect(a)
        await clients.connect(b)

        await clients.unicast(client_a.connection_id, ClientMessage(app="client", type="pong"))

        assert frames(a) == [{"app": "client", "type": "pong"}]
        b.send_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unicast_unknown_falls_back_to_broadcast(self, clients):
        a, b = make_socket(), make_socket()
        await clients.connect(a)
        await clients.connect(b)

        sent = await clients.unicast("unknown-id", {"app": "client", "type": "error", "payload": "x"})

        assert sent == 2
        assert frames(a) == [{"app": "client", "type": "error", "payload": "x"}]
        assert frames(b) == [{"app": "client", "type": "error", "payload": "x"}]


class TestSnapshots:
    """Tests for config/settings/mappings pushes."""

    @pytest.mark.asyncio
    async def test_send_config_filters_non_web_apps(self, clients, apps):
        add_app(apps, "spotify")
        add_app(apps, "discord", isWebApp=False)
        ws = make_socket()
        client = await clients.connect(ws)

        await clients.send_config_data(client.connection_id)

        (msg,) = frames(ws)
        assert msg["type"] == "config"
        assert [a["name"] for a in msg["payload"]] == ["spotify"]

    @pytest.mark.asyncio
    async def test_send_settings_keyed_by_app_id(self, clients, apps, data_store):
        add_app(apps, "spotify")
        add_app(apps, "weather")
        data_store.data = {
            "spotify": {"settings": {"volume": {"value": 5}}},
            "weather": {"token": "abc"},
        }
        ws = make_socket()
        await clients.connect(ws)

        await clients.send_settings_data()

        (msg,) = frames(ws)
        assert msg == {"app": "client", "type": "settings", "payload": {"spotify": {"volume": {"value": 5}}}}

    @pytest.mark.asyncio
    async def test_send_mappings(self, clients, keymap):
        keymap.add_key(Key(id="k1", source="spotify"))
        ws = make_socket()
        await clients.connect(ws)

        await clients.send_mappings()

        (msg,) = frames(ws)
        assert msg["type"] == "button_mappings"
        assert "k1" in msg["payload"]["keys"]

    @pytest.mark.asyncio
    async def test_snapshot_failure_becomes_error_push(self, clients, data_store):
        data_store.read_all = AsyncMock(side_effect=RuntimeError("redis down"))
        ws = make_socket()
        await clients.connect(ws)

        await clients.send_settings_data()

        (msg,) = frames(ws)
        assert msg["type"] == "error"
        assert msg["app"] == "client"
