from __future__ import annotations

import logging
from typing import Any

from deskrelay.state.redis_keys import EVENTS_CHANNEL
from deskrelay.state.redis_state import RedisState

log = logging.getLogger("ui.gateway")


class UiGateway:
    """Eventos para a camada de apresentação (UI), via pub/sub."""

    def __init__(self, state: RedisState):
        self.state = state

    async def request_user_data(self, app: str, scopes: Any) -> None:
        await self.state.publish_event(
            EVENTS_CHANNEL,
            {"type": "request-user-data", "data": {"app": app, "scopes": scopes}},
        )
        log.info("ui_user_data_requested", extra={"app": app})

    async def open_auth(self, app: str, url: str) -> None:
        await self.state.publish_event(
            EVENTS_CHANNEL,
            {"type": "open-auth", "data": {"app": app, "url": url}},
        )
        log.info("ui_open_auth", extra={"app": app, "url": url})
