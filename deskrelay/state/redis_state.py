# deskrelay/state/redis_state.py

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from redis.asyncio import Redis
from redis.exceptions import ConnectionError, TimeoutError

log = logging.getLogger("redis.state")


class RedisState:
    """
    Wrapper único de Redis para o relay.

    - JSON seguro
    - Pub/Sub
    - Quedas de conexão viram log + valor neutro (None / no-op)
    """

    def __init__(self, redis: Redis):
        self.redis = redis

    # =========================
    # JSON HELPERS
    # =========================

    async def get_json(self, key: str) -> Optional[Any]:
        try:
            raw = await self.redis.get(key)
            if raw is None:
                return None
            return json.loads(raw)
        except (ConnectionError, TimeoutError):
            log.exception("redis_get_json_connection_error", extra={"key": key})
            return None
        except json.JSONDecodeError:
            log.error("redis_get_json_decode_error", extra={"key": key})
            return None

    async def set_json(self, key: str, value: Any) -> bool:
        try:
            await self.redis.set(key, json.dumps(value))
            return True
        except (ConnectionError, TimeoutError):
            log.exception("redis_set_json_connection_error", extra={"key": key})
            return False

    # =========================
    # HASH HELPERS (um JSON por campo)
    # =========================

    async def hget_json(self, key: str, field: str) -> Optional[Any]:
        try:
            raw = await self.redis.hget(key, field)
            if raw is None:
                return None
            return json.loads(raw)
        except (ConnectionError, TimeoutError):
            log.exception("redis_hget_json_connection_error", extra={"key": key, "field": field})
            return None
        except json.JSONDecodeError:
            log.error("redis_hget_json_decode_error", extra={"key": key, "field": field})
            return None

    async def hset_json(self, key: str, field: str, value: Any) -> bool:
        try:
            await self.redis.hset(key, field, json.dumps(value))
            return True
        except (ConnectionError, TimeoutError):
            log.exception("redis_hset_json_connection_error", extra={"key": key, "field": field})
            return False

    async def hgetall_json(self, key: str) -> dict[str, Any]:
        try:
            raw = await self.redis.hgetall(key)
        except (ConnectionError, TimeoutError):
            log.exception("redis_hgetall_json_connection_error", extra={"key": key})
            return {}

        out: dict[str, Any] = {}
        for field, value in raw.items():
            if isinstance(field, (bytes, bytearray)):
                field = field.decode("utf-8", errors="ignore")
            try:
                out[field] = json.loads(value)
            except json.JSONDecodeError:
                log.error("redis_hgetall_json_decode_error", extra={"key": key, "field": field})
        return out

    async def hdel(self, key: str, field: str) -> None:
        try:
            await self.redis.hdel(key, field)
        except (ConnectionError, TimeoutError):
            log.exception("redis_hdel_connection_error", extra={"key": key, "field": field})

    # =========================
    # PUB / SUB
    # =========================

    async def publish_event(self, channel: str, payload: dict) -> None:
        """
        Publica evento para a UI / outros consumers
        """
        try:
            await self.redis.publish(channel, json.dumps(payload, default=str))
        except (ConnectionError, TimeoutError):
            log.exception("redis_publish_error", extra={"channel": channel})

    # =========================
    # SAFE OPS
    # =========================

    async def delete(self, key: str) -> None:
        try:
            await self.redis.delete(key)
        except (ConnectionError, TimeoutError):
            log.exception("redis_delete_connection_error", extra={"key": key})
