"""
Fakes compartilhados pelos testes do relay.

Nada aqui fala com redis ou com sockets reais.
"""

from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from starlette.websockets import WebSocketState

from deskrelay.models.apps import AppManifest
from deskrelay.services.apps.registry import App, AppRegistry
from deskrelay.services.apps.router import MessageRouter
from deskrelay.services.keymap import KeyMapRegistry
from deskrelay.ws.clients import ClientBroadcaster


class RecordingHandle:
    """Handle de app que só guarda o que recebeu."""

    def __init__(self) -> None:
        self.received: List[dict] = []

    def to_client(self, data: dict) -> None:
        self.received.append(data)

    def of_type(self, msg_type: str) -> List[dict]:
        return [m for m in self.received if m.get("type") == msg_type]


class FakeDataStore:
    def __init__(self, data: Optional[Dict[str, Any]] = None) -> None:
        self.data: Dict[str, Any] = dict(data or {})

    async def get_data(self, app: str) -> Any:
        return self.data.get(app)

    async def set_data(self, app: str, value: Any) -> None:
        self.data[app] = value

    async def add_data(self, app: str, value: Any) -> Any:
        current = self.data.get(app)
        if isinstance(current, dict) and isinstance(value, dict):
            value = {**current, **value}
        self.data[app] = value
        return value

    async def read_all(self) -> Dict[str, Any]:
        return dict(self.data)

    async def delete_data(self, app: str) -> None:
        self.data.pop(app, None)

    async def set_app_setting(self, app: str, setting_id: str, value: Any) -> dict:
        data = self.data.setdefault(app, {})
        settings = data.setdefault("settings", {})
        settings[setting_id] = {"value": value}
        return settings


def make_socket(open_: bool = True) -> MagicMock:
    ws = MagicMock()
    state = WebSocketState.CONNECTED if open_ else WebSocketState.DISCONNECTED
    ws.client_state = state
    ws.application_state = state
    ws.accept = AsyncMock()
    ws.send_text = AsyncMock()
    ws.close = AsyncMock()
    ws.client = MagicMock(host="10.0.0.2")
    ws.headers = {"user-agent": "car-thing"}
    return ws


def add_app(registry: AppRegistry, name: str, running: bool = True, **manifest: Any) -> RecordingHandle:
    handle = RecordingHandle()
    registry.register(
        App(
            name=name,
            manifest=AppManifest(id=name, label=name.title(), **manifest),
            enabled=True,
            running=running,
            handle=handle if running else None,
        )
    )
    return handle


@pytest.fixture
def apps() -> AppRegistry:
    return AppRegistry()


@pytest.fixture
def keymap() -> KeyMapRegistry:
    return KeyMapRegistry()


@pytest.fixture
def data_store() -> FakeDataStore:
    return FakeDataStore()


@pytest.fixture
def clients(apps, keymap, data_store) -> ClientBroadcaster:
    return ClientBroadcaster(apps, keymap, data_store, send_timeout_s=1.0)


@pytest.fixture
def config_store() -> MagicMock:
    store = MagicMock()
    store.get_config = AsyncMock(return_value={"theme": "dark"})
    return store


@pytest.fixture
def ui() -> MagicMock:
    gateway = MagicMock()
    gateway.request_user_data = AsyncMock()
    gateway.open_auth = AsyncMock()
    return gateway


@pytest.fixture
def relay(apps, keymap, clients, data_store, config_store, ui) -> MessageRouter:
    return MessageRouter(
        apps=apps,
        keymap=keymap,
        clients=clients,
        data_store=data_store,
        config=config_store,
        ui=ui,
        input_timeout_s=1.0,
    )
