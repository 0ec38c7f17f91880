from __future__ import annotations

import logging
from typing import Any, Mapping

from pydantic import ValidationError

from deskrelay.models.envelope import AppEnvelope, AppSettingPayload, ClientMessage
from deskrelay.services.apps.router import MessageRouter
from deskrelay.services.playback_poller import LEGACY_MUSIC_TARGET, MUSIC_TARGET, PlaybackPoller
from deskrelay.state.data_store import AppDataStore
from deskrelay.ws.clients import ClientBroadcaster

log = logging.getLogger("clients.inbound")

SERVER_TARGET = "server"


class ClientInbound:
    """Frames vindos dos clients: pedidos ao servidor, música, ou relay para um app."""

    def __init__(
        self,
        router: MessageRouter,
        clients: ClientBroadcaster,
        poller: PlaybackPoller,
        data_store: AppDataStore,
    ) -> None:
        self.router = router
        self.clients = clients
        self.poller = poller
        self.data_store = data_store

    async def handle(self, client_id: str, raw: Mapping[str, Any]) -> None:
        try:
            msg = ClientMessage.model_validate(raw)
        except ValidationError as e:
            log.warning("client_message_malformed", extra={"connectionId": client_id, "error": str(e)})
            await self.clients.send_error(client_id, "Malformed message: 'app' and 'type' are required")
            return

        if msg.app == SERVER_TARGET:
            await self._handle_server(client_id, msg)
        elif msg.app in (MUSIC_TARGET, LEGACY_MUSIC_TARGET):
            await self.poller.handle_client_request(msg)
        else:
            ok = await self.router.send_to_app(
                msg.app,
                AppEnvelope(type=msg.type, request=msg.request, payload=msg.payload),
            )
            if not ok:
                await self.clients.send_error(client_id, f"App {msg.app} not found or not running")

    async def _handle_server(self, client_id: str, msg: ClientMessage) -> None:
        if msg.type == "ping":
            await self.clients.unicast(client_id, ClientMessage(app="client", type="pong"))

        elif msg.type == "get":
            if msg.request == "config":
                await self.clients.send_config_data(client_id)
            elif msg.request == "settings":
                await self.clients.send_settings_data(client_id)
            elif msg.request == "mappings":
                await self.clients.send_mappings(client_id)
            else:
                log.warning("client_unknown_get", extra={"connectionId": client_id, "request": msg.request})

        elif msg.type == "set" and msg.request == "settings":
            try:
                p = AppSettingPayload.model_validate(msg.payload)
            except ValidationError:
                await self.clients.send_error(client_id, "Malformed settings update")
                return
            settings = await self.data_store.set_app_setting(p.app, p.id, p.value)
            await self.router.send_to_app(p.app, AppEnvelope(type="settings", payload=settings))
            await self.clients.send_settings_data()

        else:
            log.warning(
                "client_unknown_server_message",
                extra={"connectionId": client_id, "type": msg.type, "request": msg.request},
            )
