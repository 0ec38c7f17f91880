import asyncio
import logging
import sys
from typing import Any, Awaitable, Callable, Dict, Optional

_RESERVED = set(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {
    "message",
    "asctime",
    "extra",
}


def record_extra(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED}


class SafeExtraFormatter(logging.Formatter):
    """
    Formatter que junta os campos passados via `extra=`
    em `%(extra)s` e não quebra quando não tem nenhum.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.extra = record_extra(record)
        return super().format(record)


class UiLogHandler(logging.Handler):
    """
    Encaminha logs (WARNING+) para a UI via pub/sub.

    `publish` é uma corrotina (ex: RedisState.publish_event já com o canal).
    Fora de um event loop o registro é descartado.
    """

    def __init__(
        self,
        publish: Callable[[dict], Awaitable[None]],
        level: int = logging.WARNING,
    ) -> None:
        super().__init__(level)
        self.publish = publish
        self._tasks: set[asyncio.Task] = set()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return

        event = {
            "type": "log",
            "data": {
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
                "extra": {k: str(v) for k, v in record_extra(record).items()},
            },
        }
        task = loop.create_task(self.publish(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


def setup_logging(level: str = "INFO", ui_handler: Optional[logging.Handler] = None) -> None:
    handler = logging.StreamHandler(sys.stdout)

    formatter = SafeExtraFormatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s | %(extra)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    if ui_handler is not None:
        # o próprio redis loga em "redis.state": evita loop de publish
        ui_handler.addFilter(lambda r: not r.name.startswith("redis"))
        root.addHandler(ui_handler)
