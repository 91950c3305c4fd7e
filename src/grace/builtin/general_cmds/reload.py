import anyio.to_thread

from grace.config import ConfigError
from grace.logging import get_logger
from grace.render import footer, utc_now
from grace.transport import TextPayload

logger = get_logger(__name__)

command = "reload"
description = "🔄 Hot reload all plugins without restart"
category = "GENERAL"
owner_only = True


async def execute(transport, message, args, context):
    settings = context.settings
    chat_id = message.ref.chat_id
    tail = footer(settings.footer)

    if not context.is_owner(message):
        text = (
            "❌ *Access Denied*\n\n"
            "This command is restricted to the bot owner only.\n\n"
            f"🔐 *Owner:* {settings.owner_name}\n\n"
            f"{tail}"
        )
        await transport.send_message(chat_id, TextPayload(text=text))
        return

    await transport.send_message(
        chat_id,
        TextPayload(
            text=(
                "🔄 *Reloading Plugins...*\n\n"
                "⏳ Please wait while plugins are being reloaded...\n\n"
                f"{tail}"
            )
        ),
    )
    logger.info("reload.requested", sender=message.sender_id)
    try:
        snapshot = await anyio.to_thread.run_sync(context.reload)
    except ConfigError as exc:
        text = (
            "❌ *Reload Failed*\n\n"
            "An error occurred while reloading plugins.\n\n"
            f"*Error:* {exc}\n\n"
            "Please check the console for details.\n\n"
            f"{tail}"
        )
        await transport.send_message(chat_id, TextPayload(text=text))
        return

    date, time = utc_now()
    lines = [
        "✅ *Plugins Reloaded Successfully!*",
        "",
        "📊 *Reload Statistics:*",
        f"• Total Commands: {len(snapshot.commands)}",
        f"• Total Categories: {len(snapshot.categories)}",
        f"• Date: {date}",
        f"• Time: {time} UTC",
    ]
    if snapshot.errors:
        lines.append(f"• Skipped Plugins: {len(snapshot.errors)}")
    lines.extend(["", f"{tail}"])
    await transport.send_message(chat_id, TextPayload(text="\n".join(lines)))
