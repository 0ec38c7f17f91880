from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

log = logging.getLogger("apps.input")

OnResponse = Callable[[str, Any], Awaitable[None]]


class InputRequests:
    """
    Correlação one-shot de pedidos de input do usuário.

    Um slot por app: `open(app)` cria, `resolve(app, data)` completa,
    timeout / `cancel(app)` / `close()` liberam. Um novo pedido para o
    mesmo app cancela o anterior.
    """

    def __init__(self, on_response: OnResponse, timeout_s: float = 300.0) -> None:
        self.on_response = on_response
        self.timeout_s = timeout_s
        self._pending: Dict[str, asyncio.Future] = {}
        self._waiters: Dict[str, asyncio.Task] = {}

    def pending(self) -> list[str]:
        return list(self._pending)

    def open(self, app: str, timeout_s: Optional[float] = None) -> None:
        self.cancel(app)

        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._pending[app] = future
        self._waiters[app] = loop.create_task(self._wait(app, future, timeout_s or self.timeout_s))
        log.info("input_request_opened", extra={"app": app})

    def resolve(self, app: str, data: Any) -> bool:
        future = self._pending.get(app)
        if future is None or future.done():
            log.warning("input_response_unexpected", extra={"app": app})
            return False
        future.set_result(data)
        return True

    def cancel(self, app: str) -> bool:
        future = self._pending.pop(app, None)
        waiter = self._waiters.pop(app, None)
        if waiter is not None and not waiter.done():
            waiter.cancel()
        if future is None:
            return False
        if not future.done():
            future.cancel()
        log.info("input_request_cancelled", extra={"app": app})
        return True

    async def close(self) -> None:
        waiters = list(self._waiters.values())
        for app in list(self._pending):
            self.cancel(app)
        if waiters:
            await asyncio.gather(*waiters, return_exceptions=True)

    async def _wait(self, app: str, future: asyncio.Future, timeout_s: float) -> None:
        try:
            data = await asyncio.wait_for(asyncio.shield(future), timeout=timeout_s)
        except asyncio.TimeoutError:
            log.warning("input_request_timeout", extra={"app": app, "timeout_s": timeout_s})
            return
        finally:
            if self._pending.get(app) is future:
                self._pending.pop(app, None)
                self._waiters.pop(app, None)

        try:
            await self.on_response(app, data)
        except Exception:
            log.exception("input_response_failed", extra={"app": app})
