import threading
from pathlib import Path

import anyio
import pytest

from grace.dispatch import CommandContext, Dispatcher, DispatchStatus
from grace.handlers import HandlerChain
from grace.plugins import PluginRegistry, discover
from grace.reactions import ReactionManager
from tests.fakes import (
    OWNER_ID,
    FakeTransport,
    echo_plugin,
    make_context,
    make_message,
    make_settings,
    write_plugin,
)


async def _dispatch(context, *texts: str, sender_id: str = "15550002@s.whatsapp.net"):
    transport = FakeTransport()
    results = []
    async with anyio.create_task_group() as tg:
        reactions = ReactionManager(transport, duration_s=0, task_group=tg)
        dispatcher = Dispatcher(
            transport=transport, context=context, reactions=reactions
        )
        for index, text in enumerate(texts):
            results.append(
                await dispatcher.handle(
                    make_message(text, sender_id=sender_id, message_id=str(index))
                )
            )
    return transport, results


@pytest.fixture
def plugin_root(tmp_path: Path) -> Path:
    root = tmp_path / "plugins"
    write_plugin(
        root,
        "downloader_cmds",
        "tiktok.py",
        echo_plugin("ttdl", aliases=["tt"], description="📥 Download TikTok videos"),
    )
    return root


@pytest.mark.anyio
async def test_menu_lists_categories_from_live_snapshot(plugin_root: Path) -> None:
    context = make_context(
        make_settings(plugin_root, include_builtin=True, bot_name="Grace")
    )

    transport, results = await _dispatch(context, "!help")

    assert results[0].status is DispatchStatus.EXECUTED
    [text] = transport.texts()
    assert "I'm Grace" in text
    assert "「 *DOWNLOADER* 」" in text
    assert "「 *GENERAL* 」" in text
    assert "│ !ttdl" in text
    assert "_📥 Download TikTok videos_" in text
    assert "│ !reload 🔐" in text


@pytest.mark.anyio
async def test_info_reports_commands_and_handlers(plugin_root: Path) -> None:
    context = make_context(make_settings(plugin_root, include_builtin=True))

    transport, _ = await _dispatch(context, "!info")

    [text] = transport.texts()
    assert f"• Commands: {len(context.snapshot.commands)}" in text
    assert "• Handlers: none" in text


@pytest.mark.anyio
async def test_reload_denied_for_non_owner(plugin_root: Path) -> None:
    context = make_context(make_settings(plugin_root, include_builtin=True))
    before = context.snapshot

    transport, results = await _dispatch(context, "!reload")

    assert results[0].status is DispatchStatus.EXECUTED
    assert "Access Denied" in transport.texts()[0]
    assert context.snapshot is before


@pytest.mark.anyio
async def test_owner_reload_swaps_snapshot(plugin_root: Path) -> None:
    context = make_context(make_settings(plugin_root, include_builtin=True))
    before = context.snapshot
    write_plugin(plugin_root, "general_cmds", "hello.py", echo_plugin("hello"))

    transport, results = await _dispatch(
        context, "!reload", "!hello world", sender_id=f"{OWNER_ID}@s.whatsapp.net"
    )

    texts = transport.texts()
    assert "Reloading Plugins" in texts[0]
    assert "Plugins Reloaded Successfully" in texts[1]
    assert f"• Total Commands: {len(context.snapshot.commands)}" in texts[1]
    assert context.snapshot is not before
    assert "hello" not in before.commands
    assert results[1].status is DispatchStatus.EXECUTED
    assert texts[2] == "hello world"


@pytest.mark.anyio
async def test_owner_reload_failure_is_reported(tmp_path: Path) -> None:
    root = tmp_path / "plugins"
    write_plugin(root, "general_cmds", "echo.py", echo_plugin("echo"))
    context = make_context(make_settings(root, include_builtin=True))
    before = context.snapshot
    (root / "general_cmds" / "echo.py").unlink()
    (root / "general_cmds").rmdir()
    root.rmdir()

    transport, results = await _dispatch(
        context, "!reload", "!echo still", sender_id=OWNER_ID
    )

    assert "Reload Failed" in transport.texts()[1]
    assert "Cannot read plugin directory" in transport.texts()[1]
    assert context.snapshot is before
    assert results[1].status is DispatchStatus.EXECUTED
    assert transport.texts()[2] == "echo still"


@pytest.mark.anyio
async def test_ping_replies_with_footer() -> None:
    context = make_context(
        make_settings(include_builtin=True, footer={"text": "Grace footer"})
    )

    transport, _ = await _dispatch(context, "!PING")

    [text] = transport.texts()
    assert text.startswith("🏓 *Pong!*")
    assert text.endswith("> _Grace footer_")


@pytest.mark.anyio
async def test_reload_runs_discovery_off_the_event_loop_thread(
    plugin_root: Path,
) -> None:
    threads: list[int] = []

    def recording_discover(roots):
        threads.append(threading.get_ident())
        return discover(roots)

    settings = make_settings(plugin_root, include_builtin=True)
    registry = PluginRegistry(settings.plugin_dirs(), discover_fn=recording_discover)
    registry.load()
    context = CommandContext(
        registry=registry, handlers=HandlerChain(), settings=settings
    )

    transport, results = await _dispatch(context, "!reload", sender_id=OWNER_ID)

    assert results[0].status is DispatchStatus.EXECUTED
    assert "Plugins Reloaded Successfully" in transport.texts()[1]
    assert len(threads) == 2
    assert threads[0] == threading.get_ident()
    assert threads[1] != threads[0]
