from grace import __version__
from grace.render import footer, format_uptime, utc_now
from grace.transport import TextPayload

command = "info"
description = "ℹ️ Get bot information"
category = "GENERAL"


async def execute(transport, message, args, context):
    settings = context.settings
    prefix = settings.prefix
    date, time = utc_now()
    handlers = ", ".join(entry.name for entry in context.handlers.active()) or "none"
    text = (
        "🤖 *Bot Details:*\n"
        f"• Name: {settings.bot_name}\n"
        f"• Prefix: {prefix}\n"
        f"• Version: {__version__}\n"
        f"• Uptime: {format_uptime(context.started_at)}\n\n"
        "👤 *Owner Details:*\n"
        f"• Name: {settings.owner_name}\n\n"
        "📊 *System Info:*\n"
        f"• Commands: {len(context.snapshot.commands)}\n"
        f"• Handlers: {handlers}\n"
        f"• Date: {date}\n"
        f"• Time: {time} UTC\n\n"
        "💡 *Quick Commands:*\n"
        f"• {prefix}menu - View all commands\n"
        f"• {prefix}ping - Check bot status\n"
        f"• {prefix}info - This message\n\n"
        f"{footer(settings.footer)}"
    )
    await transport.send_message(message.ref.chat_id, TextPayload(text=text))
