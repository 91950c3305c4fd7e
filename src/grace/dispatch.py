"""Turn an inbound chat message into an executed command.

Per message: the handler chain runs first, then the prefix and command name
are extracted, the name is resolved against the current registry snapshot,
and the command runs between a processing reaction and its delayed clear.
Failures inside a command are reported back to the chat and never escape
:meth:`Dispatcher.handle`.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from .handlers import HandlerChain
from .logging import get_logger
from .plugins import (
    CommandSummary,
    PluginDescriptor,
    PluginRegistry,
    Snapshot,
    normalize_command,
)
from .reactions import ReactionManager, ReactionTicket
from .settings import GraceSettings
from .transport import (
    IncomingMessage,
    MessageRef,
    TextPayload,
    Transport,
    is_transient_error,
)

logger = get_logger(__name__)


class DispatchStatus(StrEnum):
    DISCARDED = "discarded"
    UNRESOLVED = "unresolved"
    EXECUTED = "executed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class DispatchContext:
    sender_id: str
    chat_id: str
    text: str
    command: str
    args: tuple[str, ...]
    ref: MessageRef
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class DispatchResult:
    status: DispatchStatus
    context: DispatchContext | None = None
    descriptor: PluginDescriptor | None = None
    error: Exception | None = None


@dataclass(slots=True)
class CommandContext:
    """Live state handed to every command as its last argument."""

    registry: PluginRegistry
    handlers: HandlerChain
    settings: GraceSettings
    started_at: datetime | None = None

    @property
    def snapshot(self) -> Snapshot:
        return self.registry.snapshot

    @property
    def commands(self) -> dict[str, PluginDescriptor]:
        return dict(self.registry.snapshot.commands)

    @property
    def categories(self) -> dict[str, tuple[CommandSummary, ...]]:
        return dict(self.registry.snapshot.categories)

    @property
    def prefix(self) -> str:
        return self.settings.prefix

    def is_owner(self, message: IncomingMessage) -> bool:
        owner = self.settings.owner_id
        if owner is None:
            return False
        return message.sender_id.split("@", 1)[0] == owner

    def reload(self) -> Snapshot:
        return self.registry.reload()


def parse_command(text: str, prefix: str) -> tuple[str, list[str]] | None:
    if not prefix or not text.startswith(prefix):
        return None
    tokens = text[len(prefix) :].split()
    if not tokens:
        return None
    return normalize_command(tokens[0]), tokens[1:]


def format_unknown_command(command: str, prefix: str) -> str:
    return (
        f"❌ *Unknown command:* `{command}`\n\n"
        f"Use *{prefix}menu* to see all available commands."
    )


def format_command_error(error: BaseException) -> str:
    return (
        "❌ *Error executing command*\n\n"
        f"{error}\n\n"
        "Please try again or contact the owner."
    )


class Dispatcher:
    def __init__(
        self,
        *,
        transport: Transport,
        context: CommandContext,
        reactions: ReactionManager,
    ) -> None:
        self.transport = transport
        self.context = context
        self.reactions = reactions

    @property
    def prefix(self) -> str:
        return self.context.settings.prefix

    async def reply(self, message: IncomingMessage, text: str) -> None:
        await self.transport.send_message(message.ref.chat_id, TextPayload(text=text))

    async def _notify(self, message: IncomingMessage, text: str) -> None:
        """Send a dispatcher notice; a failed send is logged, never raised."""
        try:
            await self.reply(message, text)
        except Exception as exc:
            if is_transient_error(exc):
                return
            logger.warning(
                "dispatch.reply_failed",
                chat_id=message.ref.chat_id,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )

    async def handle(self, message: IncomingMessage) -> DispatchResult:
        if message.is_self_originated or not message.has_content:
            return DispatchResult(status=DispatchStatus.DISCARDED)

        await self.context.handlers.run_all(message)

        text = message.text
        if not text:
            return DispatchResult(status=DispatchStatus.DISCARDED)
        parsed = parse_command(text, self.prefix)
        if parsed is None:
            return DispatchResult(status=DispatchStatus.DISCARDED)
        command, args = parsed
        ctx = DispatchContext(
            sender_id=message.sender_id,
            chat_id=message.ref.chat_id,
            text=text,
            command=command,
            args=tuple(args),
            ref=message.ref,
            timestamp=message.received_at,
        )
        logger.info(
            "dispatch.received",
            sender=ctx.sender_id,
            command=ctx.command,
            args=list(ctx.args),
        )

        snapshot = self.context.registry.snapshot
        descriptor = self.context.registry.resolve(command, snapshot)
        if descriptor is None:
            logger.info("dispatch.unknown_command", command=command)
            await self._notify(
                message, format_unknown_command(command, self.prefix)
            )
            return DispatchResult(status=DispatchStatus.UNRESOLVED, context=ctx)

        ticket = await self.reactions.apply(
            message.ref, self.context.settings.reaction.symbol
        )
        try:
            return await self._execute(message, ctx, descriptor)
        finally:
            self._schedule_clear(ticket)

    async def _execute(
        self,
        message: IncomingMessage,
        ctx: DispatchContext,
        descriptor: PluginDescriptor,
    ) -> DispatchResult:
        try:
            result = descriptor.execute(
                self.transport, message, list(ctx.args), self.context
            )
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.exception(
                "command.failed",
                command=descriptor.command,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            await self._notify(message, format_command_error(exc))
            return DispatchResult(
                status=DispatchStatus.FAILED,
                context=ctx,
                descriptor=descriptor,
                error=exc,
            )
        logger.info("command.executed", command=descriptor.command)
        return DispatchResult(
            status=DispatchStatus.EXECUTED, context=ctx, descriptor=descriptor
        )

    def _schedule_clear(self, ticket: ReactionTicket) -> None:
        try:
            self.reactions.schedule_clear(ticket)
        except RuntimeError as exc:
            logger.debug("reaction.schedule_failed", error=str(exc))
