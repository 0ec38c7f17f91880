from typing import Set
from fastapi import WebSocket
import asyncio
import logging

log = logging.getLogger("ws.ui")


class WebSocketManager:
    """Sockets da UI (desktop). Só recebe eventos, nunca manda comandos por aqui."""

    def __init__(self) -> None:
        self._connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._connections)

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        async with self._lock:
            self._connections.add(ws)
        log.info("ui_connected", extra={"sockets": len(self._connections)})

    async def disconnect(self, ws: WebSocket) -> None:
        async with self._lock:
            self._connections.discard(ws)
        log.info("ui_disconnected", extra={"sockets": len(self._connections)})

    async def broadcast_text(self, message: str) -> None:
        async with self._lock:
            connections = list(self._connections)

        dead = []
        for ws in connections:
            try:
                await ws.send_text(message)
            except Exception:
                dead.append(ws)

        if dead:
            async with self._lock:
                for ws in dead:
                    self._connections.discard(ws)
