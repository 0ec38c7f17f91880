from __future__ import annotations

import asyncio
import logging
from redis.asyncio import Redis
from redis.exceptions import ConnectionError, TimeoutError

from deskrelay.ws.manager import WebSocketManager
from deskrelay.state.redis_keys import EVENTS_CHANNEL

log = logging.getLogger("ws.broadcaster")


class RedisToWebSocketBroadcaster:
    """Repassa o canal de eventos do redis para os sockets da UI."""

    def __init__(self, redis: Redis, manager: WebSocketManager) -> None:
        self.redis = redis
        self.manager = manager
        self._task: asyncio.Task | None = None
        self._running = False

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        log.info("broadcaster_started")

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        log.info("broadcaster_stopped")

    async def _loop(self) -> None:
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(EVENTS_CHANNEL)
        try:
            while self._running:
                try:
                    msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                except (ConnectionError, TimeoutError):
                    log.warning("broadcaster_redis_unavailable")
                    await asyncio.sleep(1.0)
                    continue
                if not msg:
                    continue
                data = msg.get("data")
                if isinstance(data, (bytes, bytearray)):
                    data = data.decode("utf-8", errors="ignore")
                if isinstance(data, str):
                    await self.manager.broadcast_text(data)
        finally:
            try:
                await pubsub.unsubscribe(EVENTS_CHANNEL)
                await pubsub.aclose()
            except (ConnectionError, TimeoutError):
                pass
