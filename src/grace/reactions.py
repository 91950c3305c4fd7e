from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import anyio
from anyio.abc import TaskGroup

from .logging import get_logger
from .transport import MessageRef, Transport

logger = get_logger(__name__)

CLEAR_SYMBOL = ""


@dataclass(frozen=True, slots=True)
class ReactionTicket:
    ref: MessageRef
    clear_at: float


class ReactionManager:
    """Best-effort reaction on/off with a delayed, detached clear."""

    def __init__(
        self,
        transport: Transport,
        *,
        duration_s: float,
        task_group: TaskGroup,
        clock: Callable[[], float] = anyio.current_time,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        self._transport = transport
        self._duration_s = duration_s
        self._task_group = task_group
        self._clock = clock
        self._sleep = sleep

    @property
    def duration_s(self) -> float:
        return self._duration_s

    async def apply(self, ref: MessageRef, symbol: str) -> ReactionTicket:
        ticket = ReactionTicket(ref=ref, clear_at=self._clock() + self._duration_s)
        await self._send(ref, symbol)
        return ticket

    async def clear(self, ref: MessageRef) -> None:
        await self._send(ref, CLEAR_SYMBOL)

    def schedule_clear(self, ticket: ReactionTicket) -> None:
        self._task_group.start_soon(self._clear_later, ticket)

    async def _clear_later(self, ticket: ReactionTicket) -> None:
        delay = max(0.0, ticket.clear_at - self._clock())
        await self._sleep(delay)
        await self.clear(ticket.ref)

    async def _send(self, ref: MessageRef, symbol: str) -> None:
        try:
            await self._transport.send_reaction(ref, symbol)
        except Exception as exc:
            logger.debug(
                "reaction.failed",
                message_id=ref.message_id,
                symbol=symbol,
                error=str(exc),
            )
