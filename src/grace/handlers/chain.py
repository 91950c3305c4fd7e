from __future__ import annotations

import inspect
import threading
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field

from ..logging import get_logger
from ..transport import IncomingMessage, is_transient_error

logger = get_logger(__name__)

type HandlerFn = Callable[[IncomingMessage], Awaitable[None] | None]


@dataclass(slots=True)
class HandlerEntry:
    name: str
    behavior: HandlerFn = field(repr=False)
    enabled: bool = True
    description: str = ""


class HandlerChain:
    """Ordered pre-command handlers; one failing never stops the next."""

    def __init__(self, entries: Iterable[HandlerEntry] = ()) -> None:
        self._entries = tuple(entries)
        self._lock = threading.Lock()

    @property
    def entries(self) -> tuple[HandlerEntry, ...]:
        return self._entries

    def active(self) -> list[HandlerEntry]:
        return [entry for entry in self._entries if entry.enabled]

    def set_enabled(self, name: str, enabled: bool) -> bool:
        with self._lock:
            for entry in self._entries:
                if entry.name == name:
                    entry.enabled = enabled
                    logger.info("handler.toggled", handler=name, enabled=enabled)
                    return True
        return False

    async def run_all(self, message: IncomingMessage) -> None:
        for entry in self._entries:
            if not entry.enabled:
                continue
            try:
                result = entry.behavior(message)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                if is_transient_error(exc):
                    continue
                logger.error(
                    "handler.failed",
                    handler=entry.name,
                    error=str(exc),
                    error_type=exc.__class__.__name__,
                )
