from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Union

from pydantic import ValidationError

from deskrelay.models.envelope import (
    ActionIconPayload,
    ActionPayload,
    AppEnvelope,
    ClientDataPayload,
    ClientMessage,
    IdPayload,
    KeyPayload,
)
from deskrelay.models.keymap import Action, Key
from deskrelay.services.apps.input_requests import InputRequests
from deskrelay.services.apps.registry import AppRegistry
from deskrelay.services.keymap import KeyMapRegistry
from deskrelay.ws.clients import ClientBroadcaster

log = logging.getLogger("apps.router")
app_log = logging.getLogger("apps")


class DataStore(Protocol):
    async def get_data(self, app: str) -> Any: ...

    async def set_data(self, app: str, value: Any) -> None: ...

    async def add_data(self, app: str, value: Any) -> Any: ...


class ConfigSource(Protocol):
    async def get_config(self, key: str) -> Any: ...


class Ui(Protocol):
    async def request_user_data(self, app: str, scopes: Any) -> None: ...

    async def open_auth(self, app: str, url: str) -> None: ...


Incoming = Union[AppEnvelope, Mapping[str, Any]]


class MessageRouter:
    """
    Dispatcher de mensagens vindas dos apps.

    `dispatch` nunca levanta nem retorna nada: falhas viram log e,
    quando dá, um envelope `error` de volta para o app de origem.
    """

    def __init__(
        self,
        apps: AppRegistry,
        keymap: KeyMapRegistry,
        clients: ClientBroadcaster,
        data_store: DataStore,
        config: ConfigSource,
        ui: Ui,
        input_timeout_s: float = 300.0,
    ) -> None:
        self.apps = apps
        self.keymap = keymap
        self.clients = clients
        self.data_store = data_store
        self.config = config
        self.ui = ui
        self.inputs = InputRequests(self._on_user_input, timeout_s=input_timeout_s)

    # =========================
    # APP -> SERVER
    # =========================

    async def dispatch(self, origin: str, envelope: Incoming) -> None:
        if not isinstance(envelope, AppEnvelope):
            try:
                envelope = AppEnvelope.model_validate(envelope)
            except ValidationError as e:
                log.error("app_envelope_malformed", extra={"app": origin, "error": str(e)})
                await self.send_error(origin, "Malformed message: 'type' is required")
                return

        handler = self._handlers.get(envelope.type)
        if handler is None:
            log.error("app_unknown_message_type", extra={"app": origin, "type": envelope.type})
            return

        try:
            await handler(self, origin, envelope)
        except Exception:
            log.exception(
                "app_dispatch_failed",
                extra={"app": origin, "type": envelope.type, "request": envelope.request},
            )
            await self.send_error(origin, f"Failed to handle {envelope.type} {envelope.request or ''}".strip())

    def sender_for(self, app: str) -> Callable[[Incoming], Awaitable[None]]:
        """Callback para apps in-process mandarem mensagens com a origem já fixa."""

        async def send(envelope: Incoming) -> None:
            await self.dispatch(app, envelope)

        return send

    # =========================
    # SERVER -> APP
    # =========================

    async def send_to_app(self, app: str, envelope: Union[AppEnvelope, dict]) -> bool:
        msg_type = envelope.type if isinstance(envelope, AppEnvelope) else envelope.get("type")
        log.debug("send_to_app", extra={"app": app, "type": msg_type})
        return await self.apps.push(app, envelope)

    async def send_error(self, app: str, error: str) -> bool:
        return await self.send_to_app(app, AppEnvelope(type="error", payload=error))

    # =========================
    # USER INPUT
    # =========================

    async def request_user_input(self, app: str, scopes: Any) -> None:
        self.inputs.open(app)
        try:
            await self.ui.request_user_data(app, scopes)
        except Exception:
            self.inputs.cancel(app)
            raise

    def resolve_user_input(self, app: str, data: Any) -> bool:
        return self.inputs.resolve(app, data)

    async def _on_user_input(self, app: str, data: Any) -> None:
        await self.send_to_app(app, AppEnvelope(type="input", payload=data))

    async def close(self) -> None:
        await self.inputs.close()

    # =========================
    # HANDLERS (por type)
    # =========================

    async def _on_message(self, origin: str, env: AppEnvelope) -> None:
        app_log.info("%s", env.payload, extra={"app": origin.upper(), "kind": "message"})

    async def _on_log(self, origin: str, env: AppEnvelope) -> None:
        app_log.info("%s", env.payload, extra={"app": origin.upper(), "kind": "log"})

    async def _on_error(self, origin: str, env: AppEnvelope) -> None:
        app_log.error("%s", env.payload, extra={"app": origin.upper(), "kind": "error"})

    async def _on_get(self, origin: str, env: AppEnvelope) -> None:
        if env.request == "data":
            value = await self.data_store.get_data(origin)
            await self.send_to_app(origin, AppEnvelope(type="data", payload=value))

        elif env.request == "config":
            if not env.payload:
                log.error("app_config_key_missing", extra={"app": origin})
                await self.send_error(origin, "The type of config to retrieve was undefined!")
                return
            value = await self.config.get_config(str(env.payload))
            await self.send_to_app(origin, AppEnvelope(type="config", payload=value))

        elif env.request == "input":
            await self.request_user_input(origin, env.payload)

        else:
            log.warning("app_unknown_get_request", extra={"app": origin, "request": env.request})

    async def _on_set(self, origin: str, env: AppEnvelope) -> None:
        await self.data_store.set_data(origin, env.payload)

    async def _on_add(self, origin: str, env: AppEnvelope) -> None:
        await self.data_store.add_data(origin, env.payload)

    async def _on_open(self, origin: str, env: AppEnvelope) -> None:
        if not env.payload:
            log.error("app_open_target_missing", extra={"app": origin})
            return
        await self.ui.open_auth(origin, str(env.payload))

    async def _on_data(self, origin: str, env: AppEnvelope) -> None:
        if not env.payload:
            log.error("app_data_malformed", extra={"app": origin, "type": env.type})
            return

        if isinstance(env.payload, Mapping):
            data = ClientDataPayload.model_validate(env.payload)
        else:
            data = ClientDataPayload(payload=env.payload)

        await self.clients.broadcast(
            ClientMessage(
                app=data.app or origin,
                type=data.type or env.type,
                request=data.request or env.request,
                payload="" if data.payload is None else data.payload,
            )
        )

    async def _on_to_app(self, origin: str, env: AppEnvelope) -> None:
        if not env.payload or not env.request:
            log.error("app_data_malformed", extra={"app": origin, "type": env.type})
            return

        if not isinstance(env.payload, Mapping):
            log.error("app_data_malformed", extra={"app": origin, "type": env.type, "target": env.request})
            return

        await self.send_to_app(env.request, dict(env.payload))

    async def _on_button(self, origin: str, env: AppEnvelope) -> None:
        if env.request == "add":
            try:
                if not env.payload:
                    log.warning("app_button_payload_missing", extra={"app": origin})
                    return
                p = KeyPayload.model_validate(env.payload)
                self.keymap.add_key(
                    Key(
                        id=p.id,
                        description=p.description,
                        source=origin,
                        version=p.version,
                        enabled=True,
                        Modes=p.Modes,
                    )
                )
                log.info("app_button_added", extra={"app": origin, "id": p.id})
            except Exception as e:
                log.error("app_button_add_failed", extra={"app": origin, "error": str(e)})
                return
            await self._save_mappings()

        elif env.request == "remove":
            key_id = self._payload_id(origin, env)
            if key_id is None:
                return
            self.keymap.remove_key(key_id)
            await self._save_mappings()

        else:
            log.warning("app_unknown_button_request", extra={"app": origin, "request": env.request})

    async def _on_action(self, origin: str, env: AppEnvelope) -> None:
        if env.request == "add":
            try:
                if not env.payload:
                    log.warning("app_action_payload_missing", extra={"app": origin})
                    return
                p = ActionPayload.model_validate(env.payload)
                self.keymap.add_action(
                    Action(
                        id=p.id,
                        name=p.name,
                        description=p.description,
                        value=p.value,
                        value_options=p.value_options,
                        icon=p.icon,
                        version=p.version,
                        enabled=True,
                        source=origin,
                    )
                )
                log.info("app_action_added", extra={"app": origin, "id": p.id})
            except Exception as e:
                log.error("app_action_add_failed", extra={"app": origin, "error": str(e)})
                return
            await self._save_mappings()

        elif env.request == "remove":
            action_id = self._payload_id(origin, env)
            if action_id is None:
                return
            self.keymap.remove_action(action_id)
            await self._save_mappings()

        elif env.request == "update":
            if not env.payload:
                return
            try:
                p = ActionIconPayload.model_validate(env.payload)
            except ValidationError as e:
                log.error("app_action_update_malformed", extra={"app": origin, "error": str(e)})
                return
            self.keymap.update_action_icon(p.id, p.icon)
            await self._save_mappings()

        else:
            log.warning("app_unknown_action_request", extra={"app": origin, "request": env.request})

    # =========================
    # HELPERS
    # =========================

    def _payload_id(self, origin: str, env: AppEnvelope) -> Optional[str]:
        try:
            return IdPayload.model_validate(env.payload).id
        except ValidationError:
            log.error("app_payload_id_missing", extra={"app": origin, "type": env.type, "request": env.request})
            return None

    async def _save_mappings(self) -> None:
        try:
            await self.keymap.save()
        except Exception:
            log.exception("keymap_save_failed")
        await self.clients.send_mappings()

    _handlers: dict[str, Callable[[MessageRouter, str, AppEnvelope], Awaitable[None]]] = {
        "message": _on_message,
        "get": _on_get,
        "set": _on_set,
        "add": _on_add,
        "open": _on_open,
        "data": _on_data,
        "toApp": _on_to_app,
        "error": _on_error,
        "log": _on_log,
        "button": _on_button,
        "action": _on_action,
    }
