from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional, Union

from deskrelay.core.config import Settings
from deskrelay.models.settings import ServerSettings
from deskrelay.state.redis_keys import EVENTS_CHANNEL, SETTINGS_KEY
from deskrelay.state.redis_state import RedisState

log = logging.getLogger("state.settings")

SettingsListener = Callable[[ServerSettings], Union[None, Awaitable[None]]]


class SettingsStore:
    """
    Settings do servidor + feed de mudanças.

    Quem precisa reagir (poller, clients) faz `subscribe(listener)`.
    """

    def __init__(self, state: RedisState, defaults: Optional[Settings] = None):
        self.state = state
        self._defaults = defaults
        self._listeners: List[SettingsListener] = []
        self._cached: Optional[ServerSettings] = None

    def _default_settings(self) -> ServerSettings:
        if self._defaults is None:
            return ServerSettings()
        return ServerSettings(
            refreshInterval=self._defaults.refresh_interval_ms,
            playbackLocation=self._defaults.playback_location,
        )

    async def get_settings(self) -> ServerSettings:
        raw = await self.state.get_json(SETTINGS_KEY)
        if raw is None:
            settings = self._cached or self._default_settings()
        else:
            settings = ServerSettings.model_validate(raw)
        self._cached = settings
        return settings

    async def save_settings(self, settings: Union[ServerSettings, dict[str, Any]]) -> ServerSettings:
        if isinstance(settings, dict):
            current = await self.get_settings()
            settings = ServerSettings.model_validate({**current.model_dump(), **settings})

        self._cached = settings
        await self.state.set_json(SETTINGS_KEY, settings.model_dump())
        await self.state.publish_event(EVENTS_CHANNEL, {"type": "settings", "data": settings.model_dump()})
        log.info("settings_saved", extra={"refreshInterval": settings.refreshInterval})

        await self._notify(settings)
        return settings

    # =========================
    # FEED
    # =========================

    def subscribe(self, listener: SettingsListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _notify(self, settings: ServerSettings) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(settings)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                log.exception("settings_listener_failed", extra={"listener": repr(listener)})
