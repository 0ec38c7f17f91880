from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Protocol, Union, runtime_checkable

from deskrelay.core.errors import AppNotFound, AppNotRunning, RelayError
from deskrelay.models.apps import AppManifest
from deskrelay.models.envelope import AppEnvelope

log = logging.getLogger("apps.registry")


@runtime_checkable
class AppHandle(Protocol):
    """
    Capability de um app carregado.

    Só `to_client` é obrigatório; `start`/`stop` são chamados se existirem.
    Qualquer um deles pode ser sync ou async.
    """

    def to_client(self, data: dict) -> Any: ...


@dataclass
class App:
    name: str
    manifest: AppManifest
    enabled: bool = False
    running: bool = False
    handle: Optional[AppHandle] = None

    def base(self) -> dict:
        return {
            "name": self.name,
            "enabled": self.enabled,
            "running": self.running,
            "manifest": self.manifest.model_dump(),
        }


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class AppRegistry:
    def __init__(self) -> None:
        # dict preserva a ordem de exibição
        self._apps: Dict[str, App] = {}

    # =========================
    # LOOKUP
    # =========================

    def register(self, app: App) -> None:
        if app.name in self._apps:
            log.info("app_replaced", extra={"app": app.name})
        else:
            log.info("app_registered", extra={"app": app.name})
        self._apps[app.name] = app

    def get(self, name: str) -> Optional[App]:
        return self._apps.get(name)

    def require(self, name: str) -> App:
        app = self._apps.get(name)
        if app is None:
            raise AppNotFound(name)
        return app

    def list_all(self) -> List[App]:
        return list(self._apps.values())

    def get_all_base(self) -> List[dict]:
        return [app.base() for app in self._apps.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._apps

    def __len__(self) -> int:
        return len(self._apps)

    # =========================
    # FLAGS / ORDER
    # =========================

    def set_running(self, name: str, running: bool) -> None:
        self.require(name).running = running

    def set_enabled(self, name: str, enabled: bool) -> None:
        self.require(name).enabled = enabled

    def order(self, names: Iterable[str]) -> None:
        ordered: Dict[str, App] = {}
        for name in names:
            if name in self._apps and name not in ordered:
                ordered[name] = self._apps[name]
        for name, app in self._apps.items():
            if name not in ordered:
                ordered[name] = app
        self._apps = ordered
        log.info("apps_ordered", extra={"order": list(ordered)})

    # =========================
    # LIFECYCLE
    # =========================

    def attach(self, name: str, handle: AppHandle) -> App:
        app = self.require(name)
        app.handle = handle
        app.running = True
        log.info("app_attached", extra={"app": name})
        return app

    def detach(self, name: str, handle: Optional[AppHandle] = None) -> bool:
        app = self._apps.get(name)
        if app is None:
            return False
        if handle is not None and app.handle is not handle:
            # outra conexão já assumiu o app (hot reload)
            log.info("app_detach_stale", extra={"app": name})
            return False
        app.handle = None
        app.running = False
        log.info("app_detached", extra={"app": name})
        return True

    async def start(self, name: str) -> App:
        app = self.require(name)
        if not app.enabled:
            raise RelayError(f"App {name} is disabled")

        start = getattr(app.handle, "start", None)
        if callable(start):
            await _maybe_await(start())
        app.running = True
        log.info("app_started", extra={"app": name})
        return app

    async def stop(self, name: str) -> App:
        app = self.require(name)
        stop = getattr(app.handle, "stop", None)
        if callable(stop):
            try:
                await _maybe_await(stop())
            except Exception:
                log.exception("app_stop_failed", extra={"app": name})
        app.running = False
        log.info("app_stopped", extra={"app": name})
        return app

    async def purge(self, name: str) -> App:
        app = await self.stop(name)
        self._apps.pop(name, None)
        log.info("app_purged", extra={"app": name})
        return app

    # =========================
    # PUSH
    # =========================

    def _resolve_handle(self, name: str) -> AppHandle:
        app = self.require(name)
        if app.handle is None or not callable(getattr(app.handle, "to_client", None)):
            raise AppNotRunning(name)
        return app.handle

    async def push(self, name: str, envelope: Union[AppEnvelope, dict]) -> bool:
        if isinstance(envelope, AppEnvelope):
            data = envelope.model_dump(exclude_none=True)
        else:
            data = dict(envelope)

        try:
            handle = self._resolve_handle(name)
        except AppNotFound:
            log.error("app_not_found", extra={"app": name, "type": data.get("type")})
            return False
        except AppNotRunning:
            log.error("app_not_running", extra={"app": name, "type": data.get("type")})
            return False

        try:
            await _maybe_await(handle.to_client(data))
            return True
        except Exception:
            log.exception("app_push_failed", extra={"app": name, "type": data.get("type")})
            return False
