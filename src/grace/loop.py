from __future__ import annotations

from collections.abc import AsyncIterable, Callable
from datetime import datetime, timezone
from pathlib import Path

import anyio

from .dispatch import CommandContext, Dispatcher, DispatchResult
from .handlers import HandlerChain, default_handler_chain
from .logging import get_logger
from .plugins import PluginRegistry
from .reactions import ReactionManager
from .settings import GraceSettings
from .transport import IncomingMessage, Transport, is_transient_error

logger = get_logger(__name__)

__all__ = ["build_context", "process_message", "run_main_loop"]


def build_context(
    settings: GraceSettings,
    *,
    config_path: Path | None = None,
    registry: PluginRegistry | None = None,
    handlers: HandlerChain | None = None,
) -> CommandContext:
    if registry is None:
        registry = PluginRegistry(settings.plugin_dirs(config_path=config_path))
        registry.load()
    if handlers is None:
        base_dir = config_path.parent if config_path is not None else None
        handlers = default_handler_chain(settings, base_dir=base_dir)
    for entry in handlers.active():
        logger.info("handler.active", handler=entry.name, description=entry.description)
    return CommandContext(
        registry=registry,
        handlers=handlers,
        settings=settings,
        started_at=datetime.now(timezone.utc),
    )


async def process_message(
    dispatcher: Dispatcher, message: IncomingMessage
) -> DispatchResult | None:
    try:
        return await dispatcher.handle(message)
    except Exception as exc:
        if is_transient_error(exc):
            return None
        logger.exception(
            "loop.message_failed",
            sender=message.sender_id,
            message_id=message.ref.message_id,
            error=str(exc),
            error_type=exc.__class__.__name__,
        )
        return None


async def run_main_loop(
    events: AsyncIterable[IncomingMessage],
    *,
    transport: Transport,
    context: CommandContext,
    on_result: Callable[[DispatchResult], None] | None = None,
) -> None:
    """Dispatch every inbound message until the event stream ends.

    Messages are processed one at a time; reaction clears run as detached
    tasks in the loop's task group and are awaited before returning.
    """
    async with anyio.create_task_group() as tg:
        reactions = ReactionManager(
            transport,
            duration_s=context.settings.reaction.duration_s,
            task_group=tg,
        )
        dispatcher = Dispatcher(
            transport=transport, context=context, reactions=reactions
        )
        logger.info(
            "loop.started",
            prefix=context.settings.prefix,
            commands=len(context.snapshot.commands),
        )
        async for message in events:
            result = await process_message(dispatcher, message)
            if result is not None and on_result is not None:
                on_result(result)
    logger.info("loop.stopped")
