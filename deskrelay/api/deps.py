from __future__ import annotations

from fastapi import Request, WebSocket

from deskrelay.services.apps.registry import AppRegistry
from deskrelay.services.apps.router import MessageRouter
from deskrelay.services.client_inbound import ClientInbound
from deskrelay.services.keymap import KeyMapRegistry
from deskrelay.services.playback_poller import PlaybackPoller
from deskrelay.state.data_store import AppDataStore
from deskrelay.state.settings_store import SettingsStore
from deskrelay.ws.clients import ClientBroadcaster
from deskrelay.ws.manager import WebSocketManager


# =========================
# STORES
# =========================

def get_settings_store(request: Request) -> SettingsStore:
    return request.app.state.settings_store


def get_data_store(request: Request) -> AppDataStore:
    return request.app.state.data_store


# =========================
# APPS
# =========================

def get_apps(request: Request) -> AppRegistry:
    return request.app.state.apps


def get_router(request: Request) -> MessageRouter:
    return request.app.state.router


def get_keymap(request: Request) -> KeyMapRegistry:
    return request.app.state.keymap


def get_poller(request: Request) -> PlaybackPoller:
    return request.app.state.poller


# =========================
# CLIENTS (HTTP)
# =========================

def get_clients(request: Request) -> ClientBroadcaster:
    return request.app.state.clients


# =========================
# WEBSOCKETS
# =========================

def get_apps_ws(websocket: WebSocket) -> AppRegistry:
    return websocket.app.state.apps


def get_router_ws(websocket: WebSocket) -> MessageRouter:
    return websocket.app.state.router


def get_clients_ws(websocket: WebSocket) -> ClientBroadcaster:
    return websocket.app.state.clients


def get_inbound_ws(websocket: WebSocket) -> ClientInbound:
    return websocket.app.state.inbound


def get_ws_manager_ws(websocket: WebSocket) -> WebSocketManager:
    return websocket.app.state.ws_manager
