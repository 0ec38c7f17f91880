from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from starlette.websockets import WebSocket, WebSocketState

from deskrelay.models.envelope import ClientMessage
from deskrelay.models.settings import ServerSettings
from deskrelay.services.apps.registry import AppRegistry
from deskrelay.services.keymap import KeyMapRegistry
from deskrelay.state.data_store import AppDataStore

log = logging.getLogger("ws.clients")

Outgoing = Union[ClientMessage, dict]


@dataclass
class Client:
    connection_id: str
    socket: WebSocket
    connected_at: float = field(default_factory=time.time)
    ip: Optional[str] = None
    user_agent: Optional[str] = None

    def is_open(self) -> bool:
        return (
            getattr(self.socket, "client_state", None) == WebSocketState.CONNECTED
            and getattr(self.socket, "application_state", None) == WebSocketState.CONNECTED
        )

    def summary(self) -> dict:
        return {
            "connectionId": self.connection_id,
            "connectedAt": self.connected_at,
            "ip": self.ip,
            "userAgent": self.user_agent,
            "open": self.is_open(),
        }


def _to_frame(data: Outgoing) -> str:
    if isinstance(data, ClientMessage):
        data = data.to_wire()
    return json.dumps(data, default=str)


class ClientBroadcaster:
    """
    Clients (hardware) conectados via websocket.

    - broadcast: manda para todo client aberto, ignora os outros
    - unicast: um client; se não achar, cai para broadcast
    - disconnect: derruba o socket e remove do registro
    """

    def __init__(
        self,
        apps: AppRegistry,
        keymap: KeyMapRegistry,
        data_store: AppDataStore,
        send_timeout_s: float = 5.0,
    ) -> None:
        self.apps = apps
        self.keymap = keymap
        self.data_store = data_store
        self.send_timeout_s = send_timeout_s

        self._clients: Dict[str, Client] = {}
        self._lock = asyncio.Lock()

    # =========================
    # CONNECTIONS
    # =========================

    async def connect(self, ws: WebSocket) -> Client:
        await ws.accept()

        peer = getattr(ws, "client", None)
        headers = getattr(ws, "headers", None) or {}
        client = Client(
            connection_id=uuid.uuid4().hex,
            socket=ws,
            ip=getattr(peer, "host", None),
            user_agent=headers.get("user-agent"),
        )

        async with self._lock:
            self._clients[client.connection_id] = client
        log.info("client_connected", extra={"connectionId": client.connection_id, "clients": len(self._clients)})
        return client

    async def remove(self, connection_id: str) -> None:
        async with self._lock:
            removed = self._clients.pop(connection_id, None)
        if removed is not None:
            log.info("client_disconnected", extra={"connectionId": connection_id, "clients": len(self._clients)})

    async def disconnect(self, connection_id: str) -> bool:
        async with self._lock:
            client = self._clients.pop(connection_id, None)

        if client is None:
            log.info("client_not_found", extra={"connectionId": connection_id})
            return False

        try:
            if client.is_open():
                await client.socket.close(code=1000)
        except Exception:
            log.exception("client_close_failed", extra={"connectionId": connection_id})

        log.info("client_forcibly_disconnected", extra={"connectionId": connection_id})
        return True

    def get(self, connection_id: str) -> Optional[Client]:
        return self._clients.get(connection_id)

    def list_clients(self) -> List[dict]:
        return [c.summary() for c in self._clients.values()]

    def __len__(self) -> int:
        return len(self._clients)

    # =========================
    # SEND
    # =========================

    async def _send(self, client: Client, frame: str) -> bool:
        try:
            await asyncio.wait_for(client.socket.send_text(frame), timeout=self.send_timeout_s)
            return True
        except Exception:
            log.warning("client_send_failed", extra={"connectionId": client.connection_id})
            return False

    async def broadcast(self, data: Outgoing) -> int:
        frame = _to_frame(data)

        async with self._lock:
            clients = list(self._clients.values())

        sent = 0
        dead: list[str] = []
        for client in clients:
            if not client.is_open():
                continue
            if await self._send(client, frame):
                sent += 1
            else:
                dead.append(client.connection_id)

        if dead:
            async with self._lock:
                for connection_id in dead:
                    self._clients.pop(connection_id, None)
            log.warning("clients_pruned", extra={"removed": len(dead), "clients": len(self._clients)})

        log.debug("clients_broadcast", extra={"sent": sent, "frame_len": len(frame)})
        return sent

    async def unicast(self, client_id: Optional[str], data: Outgoing) -> int:
        client = self._clients.get(client_id) if client_id else None
        if client is None or not client.is_open():
            # sem client alvo: manda para todos
            log.debug("client_unicast_fallback", extra={"connectionId": client_id})
            return await self.broadcast(data)

        if await self._send(client, _to_frame(data)):
            return 1
        await self.remove(client.connection_id)
        return 0

    async def send_error(self, client_id: Optional[str], error: str) -> None:
        try:
            await self.unicast(client_id, ClientMessage(app="client", type="error", payload=error))
        except Exception:
            log.exception("client_send_error_failed", extra={"connectionId": client_id})

    # =========================
    # SNAPSHOTS
    # =========================

    async def send_config_data(self, client_id: Optional[str] = None) -> None:
        try:
            apps = [a for a in self.apps.get_all_base() if a["manifest"].get("isWebApp") is not False]
            await self.unicast(client_id, ClientMessage(app="client", type="config", payload=apps))
            log.info("client_config_sent", extra={"connectionId": client_id, "apps": len(apps)})
        except Exception:
            log.exception("client_config_failed", extra={"connectionId": client_id})
            await self.send_error(client_id, "Error getting config data")

    async def send_settings_data(self, client_id: Optional[str] = None) -> None:
        try:
            data = await self.data_store.read_all()
            settings = {}
            for app in self.apps.list_all():
                app_id = app.manifest.id
                app_data = data.get(app_id)
                if isinstance(app_data, dict) and app_data.get("settings"):
                    settings[app_id] = app_data["settings"]

            await self.unicast(client_id, ClientMessage(app="client", type="settings", payload=settings))
            log.info("client_settings_sent", extra={"connectionId": client_id, "apps": len(settings)})
        except Exception:
            log.exception("client_settings_failed", extra={"connectionId": client_id})
            await self.send_error(client_id, "Error getting settings data")

    async def send_mappings(self, client_id: Optional[str] = None) -> None:
        try:
            mappings = self.keymap.get_mapping()
            await self.unicast(client_id, ClientMessage(app="client", type="button_mappings", payload=mappings))
            log.info("client_mappings_sent", extra={"connectionId": client_id})
        except Exception:
            log.exception("client_mappings_failed", extra={"connectionId": client_id})
            await self.send_error(client_id, "Error getting button mappings")

    async def on_settings_changed(self, settings: ServerSettings) -> None:
        if not self._clients:
            return
        await self.send_settings_data()
