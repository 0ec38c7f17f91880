"""
Route Tests (HTTP + WebSocket)

Wires the routers onto a bare FastAPI app (no lifespan, no redis) and
drives them through the TestClient.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from conftest import add_app
from deskrelay.api.routes_apps import router as apps_router
from deskrelay.api.routes_clients import router as clients_router
from deskrelay.api.routes_mappings import router as mappings_router
from deskrelay.api.routes_ws_app import router as ws_app_router
from deskrelay.api.routes_ws_client import router as ws_client_router
from deskrelay.services.client_inbound import ClientInbound
from deskrelay.services.playback_poller import PlaybackPoller


@pytest.fixture
def http(apps, keymap, clients, relay, data_store):
    app = FastAPI()
    for r in (apps_router, clients_router, mappings_router, ws_app_router, ws_client_router):
        app.include_router(r)

    poller = PlaybackPoller(relay, apps)
    app.state.apps = apps
    app.state.keymap = keymap
    app.state.clients = clients
    app.state.router = relay
    app.state.poller = poller
    app.state.data_store = data_store
    app.state.inbound = ClientInbound(relay, clients, poller, data_store)

    with TestClient(app) as client:
        yield client


class TestClientSocket:
    """Tests for /ws/client."""

    def test_initial_state_and_ping(self, http, apps):
        add_app(apps, "spotify")

        with http.websocket_connect("/ws/client") as ws:
            config = ws.receive_json()
            settings = ws.receive_json()
            mappings = ws.receive_json()

            assert config["type"] == "config"
            assert [a["name"] for a in config["payload"]] == ["spotify"]
            assert settings["type"] == "settings"
            assert mappings["type"] == "button_mappings"

            ws.send_json({"app": "server", "type": "ping"})
            assert ws.receive_json() == {"app": "client", "type": "pong"}

    def test_invalid_json(self, http):
        with http.websocket_connect("/ws/client") as ws:
            for _ in range(3):
                ws.receive_json()
            ws.send_text("not json")
            assert ws.receive_json()["type"] == "error"

    def test_client_listed_while_connected(self, http):
        with http.websocket_connect("/ws/client") as ws:
            for _ in range(3):
                ws.receive_json()
            listed = http.get("/clients").json()["clients"]
            assert len(listed) == 1


class TestAppSocket:
    """Tests for /ws/apps/{name}."""

    def test_app_channel_dispatches_and_receives(self, http, apps, data_store):
        with http.websocket_connect("/ws/apps/weather") as ws:
            ws.send_json({"type": "set", "payload": {"city": "Porto"}})
            ws.send_json({"type": "get", "request": "data"})

            assert ws.receive_json() == {"type": "data", "payload": {"city": "Porto"}}
            assert apps.get("weather").running is True

        assert data_store.data["weather"] == {"city": "Porto"}

    def test_button_registration_over_channel(self, http, keymap):
        with http.websocket_connect("/ws/apps/spotify") as ws:
            ws.send_json({"type": "button", "request": "add", "payload": {"id": "k1"}})
            ws.send_json({"type": "get", "request": "data"})
            ws.receive_json()

        assert keymap.get_key("k1").source == "spotify"
        assert http.get("/mappings").json()["keys"]["k1"]["description"] == "Default Description"

    def test_reconnect_keeps_new_connection_attached(self, http, apps):
        old = http.websocket_connect("/ws/apps/spotify").__enter__()
        old.send_json({"type": "get", "request": "data"})
        old.receive_json()

        with http.websocket_connect("/ws/apps/spotify") as new:
            new.send_json({"type": "get", "request": "data"})
            new.receive_json()

            # a conexão antiga fecha depois da nova assumir o app
            old.__exit__(None, None, None)

            new.send_json({"type": "set", "payload": {"token": "abc"}})
            new.send_json({"type": "get", "request": "data"})

            assert new.receive_json() == {"type": "data", "payload": {"token": "abc"}}
            assert apps.get("spotify").running is True

        assert apps.get("spotify").running is False


class TestAppsHttp:
    """Tests for /apps."""

    def test_register_list_and_lifecycle(self, http):
        r = http.post("/apps", json={"name": "spotify", "manifest": {"id": "spotify", "label": "Spotify"}})
        assert r.status_code == 200

        assert [a["name"] for a in http.get("/apps").json()["apps"]] == ["spotify"]

        assert http.post("/apps/spotify/run").json()["running"] is True
        assert http.post("/apps/spotify/disable").json()["running"] is False
        assert http.post("/apps/spotify/run").status_code == 409

    def test_unknown_app_is_404(self, http):
        assert http.post("/apps/ghost/run").status_code == 404
        assert http.delete("/apps/ghost").status_code == 404

    def test_purge_removes_app_and_catalog(self, http, apps, keymap, relay, data_store):
        add_app(apps, "spotify")
        data_store.data["spotify"] = {"token": "x"}

        r = http.delete("/apps/spotify")

        assert r.status_code == 200
        assert apps.get("spotify") is None
        assert "spotify" not in data_store.data

    def test_input_response_without_request(self, http):
        assert http.post("/apps/spotify/input", json={"code": "1"}).status_code == 404

    def test_send_to_app(self, http, apps):
        handle = add_app(apps, "spotify")
        r = http.post("/apps/spotify/send", json={"type": "get", "request": "refresh"})

        assert r.status_code == 200
        assert handle.received == [{"type": "get", "request": "refresh"}]


class TestClientsHttp:
    """Tests for /clients."""

    def test_disconnect_unknown(self, http):
        assert http.delete("/clients/nope").status_code == 404


class TestMappingsHttp:
    """Tests for /mappings."""

    def test_profile_changes_are_pushed_to_clients(self, http):
        with http.websocket_connect("/ws/client") as ws:
            for _ in range(3):
                ws.receive_json()

            assert http.post("/mappings/profiles", json={"name": "driving"}).status_code == 200
            pushed = ws.receive_json()
            assert pushed["type"] == "button_mappings"
            assert "driving" in pushed["payload"]["profiles"]

            assert http.delete("/mappings/profiles/driving").status_code == 200
            assert "driving" not in ws.receive_json()["payload"]["profiles"]
