from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Union

from deskrelay.models.envelope import AppEnvelope, ClientMessage
from deskrelay.models.settings import ServerSettings
from deskrelay.services.apps.registry import AppRegistry
from deskrelay.services.apps.router import MessageRouter
from deskrelay.state.settings_store import SettingsStore

log = logging.getLogger("playback.poller")

MUSIC_TARGET = "music"
LEGACY_MUSIC_TARGET = "utility"


class PlaybackPoller:
    """
    Pede periodicamente para o app de playback atual atualizar o estado
    (`get refresh`). Uma instância por processo, criada no lifespan.
    """

    def __init__(
        self,
        router: MessageRouter,
        apps: AppRegistry,
        settings_store: Optional[SettingsStore] = None,
    ) -> None:
        self.router = router
        self.apps = apps
        self.settings_store = settings_store

        self.current_app: Optional[str] = None
        self.interval_ms: Optional[int] = None
        self._task: Optional[asyncio.Task] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    # =========================
    # Lifecycle
    # =========================

    async def start(self) -> None:
        if self.settings_store is None:
            return
        settings = await self.settings_store.get_settings()
        self.current_app = settings.playbackLocation or None
        self.set_interval(settings.refreshInterval)
        self._unsubscribe = self.settings_store.subscribe(self.on_settings_changed)
        log.info("poller_started", extra={"app": self.current_app, "interval_ms": self.interval_ms})

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        task = self._cancel()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        log.info("poller_stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # =========================
    # Interval
    # =========================

    def _cancel(self) -> Optional[asyncio.Task]:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            return task
        return None

    def set_interval(self, ms: int) -> None:
        # cancela e reagenda sem await no meio: nunca existem dois timers
        self._cancel()

        if ms < 0:
            self.interval_ms = None
            log.info("poller_interval_cancelled")
            return

        self.interval_ms = ms
        self._task = asyncio.get_running_loop().create_task(self._loop(max(ms, 1) / 1000))
        log.debug("poller_interval_set", extra={"interval_ms": ms})

    async def on_settings_changed(self, settings: ServerSettings) -> None:
        self.set_interval(settings.refreshInterval)

        if settings.playbackLocation and settings.playbackLocation != self.current_app:
            log.info("poller_app_changed", extra={"old": self.current_app, "new": settings.playbackLocation})
            self.current_app = settings.playbackLocation

    async def _loop(self, interval_s: float) -> None:
        while True:
            await asyncio.sleep(interval_s)
            try:
                await self.tick()
            except Exception:
                log.exception("poller_tick_error")

    # =========================
    # Tick
    # =========================

    async def tick(self) -> None:
        if not self.current_app:
            log.error("poller_no_current_app")
            return

        app = self.apps.get(self.current_app)
        if app is None or not app.running:
            # só avisa; o push ainda é tentado
            log.error("poller_app_not_running", extra={"app": self.current_app})

        try:
            ok = await self.router.send_to_app(
                self.current_app,
                AppEnvelope(type="get", request="refresh", payload=""),
            )
            if ok:
                log.debug("poller_refreshed", extra={"app": self.current_app})
            else:
                log.warning("poller_refresh_not_delivered", extra={"app": self.current_app})
        except Exception:
            log.exception("poller_refresh_failed", extra={"app": self.current_app})

    # =========================
    # Client requests
    # =========================

    async def handle_client_request(self, request: Union[ClientMessage, dict]) -> bool:
        if isinstance(request, dict):
            request = ClientMessage.model_validate(request)

        if request.app not in (MUSIC_TARGET, LEGACY_MUSIC_TARGET):
            return False

        if request.app == LEGACY_MUSIC_TARGET:
            log.warning(
                "poller_legacy_target",
                extra={"detail": "'utility' is deprecated and will be dropped, use 'music' instead"},
            )

        if not self.current_app:
            log.error("poller_no_current_app", extra={"type": request.type, "request": request.request})
            return False

        log.info("poller_client_request", extra={"type": request.type, "request": request.request})
        return await self.router.send_to_app(
            self.current_app,
            AppEnvelope(type=request.type, request=request.request, payload=request.payload),
        )
