from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Any

import anyio

from grace.dispatch import CommandContext
from grace.handlers import HandlerChain
from grace.plugins import PluginRegistry
from grace.settings import GraceSettings
from grace.transport import IncomingMessage, MessageRef, Payload, TextPayload

OWNER_ID = "15550001"


class FakeTransport:
    def __init__(self, *, fail_reactions: bool = False) -> None:
        self.fail_reactions = fail_reactions
        self.send_calls: list[dict[str, Any]] = []
        self.reaction_calls: list[dict[str, Any]] = []

    async def send_message(self, recipient_id: str, payload: Payload) -> None:
        self.send_calls.append({"recipient_id": recipient_id, "payload": payload})

    async def send_reaction(self, ref: MessageRef, symbol: str) -> None:
        self.reaction_calls.append({"ref": ref, "symbol": symbol})
        if self.fail_reactions:
            raise RuntimeError("reaction rejected")

    def texts(self) -> list[str]:
        return [
            call["payload"].text
            for call in self.send_calls
            if isinstance(call["payload"], TextPayload)
        ]

    def symbols(self) -> list[str]:
        return [call["symbol"] for call in self.reaction_calls]


class ManualSleep:
    """Stands in for ``anyio.sleep``; blocks until released."""

    def __init__(self) -> None:
        self.calls: list[float] = []
        self.entered = anyio.Event()
        self.release = anyio.Event()

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        self.entered.set()
        await self.release.wait()


def write_plugin(root: Path, folder: str, filename: str, source: str) -> Path:
    path = root / folder / filename
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(source), encoding="utf-8")
    return path


ECHO_PLUGIN = """
from grace.transport import TextPayload

command = "{command}"
aliases = {aliases!r}
description = "{description}"


async def execute(transport, message, args, context):
    await transport.send_message(
        message.ref.chat_id, TextPayload(text="{command} " + " ".join(args))
    )
"""


def echo_plugin(
    command: str, *, aliases: list[str] | None = None, description: str = "echo"
) -> str:
    return ECHO_PLUGIN.format(
        command=command, aliases=aliases or [], description=description
    )


def make_message(
    text: str,
    *,
    sender_id: str = "15550002@s.whatsapp.net",
    chat_id: str = "15550002@s.whatsapp.net",
    message_id: str = "m1",
    is_self_originated: bool = False,
) -> IncomingMessage:
    return IncomingMessage(
        sender_id=sender_id,
        text=text,
        ref=MessageRef(chat_id=chat_id, message_id=message_id),
        is_self_originated=is_self_originated,
    )


def make_settings(
    plugin_root: Path | None = None, *, include_builtin: bool = False, **overrides: Any
) -> GraceSettings:
    plugins: dict[str, Any] = {"include_builtin": include_builtin}
    if plugin_root is not None:
        plugins["dirs"] = [str(plugin_root)]
    overrides.setdefault("owner_id", OWNER_ID)
    return GraceSettings(plugins=plugins, **overrides)


def make_context(
    settings: GraceSettings, *, handlers: HandlerChain | None = None
) -> CommandContext:
    registry = PluginRegistry(settings.plugin_dirs())
    registry.load()
    return CommandContext(
        registry=registry,
        handlers=handlers if handlers is not None else HandlerChain(),
        settings=settings,
    )
