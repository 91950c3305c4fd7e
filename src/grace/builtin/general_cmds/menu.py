from grace.render import footer, utc_now
from grace.transport import TextPayload

command = "menu"
description = "📋 Display all available commands"
category = "GENERAL"
aliases = ["list", "help"]


def render_menu(context) -> str:
    settings = context.settings
    prefix = settings.prefix
    snapshot = context.snapshot
    date, time = utc_now()
    total = sum(len(items) for items in snapshot.categories.values())
    lines = [
        f"👋 *Hello!* I'm {settings.bot_name}",
        "",
        "📊 *Bot Information:*",
        f"• Prefix: {prefix}",
        f"• Owner: {settings.owner_name}",
        f"• Commands: {total}",
        f"• Date: {date}",
        f"• Time: {time} UTC",
        "",
    ]
    for name, items in snapshot.categories.items():
        if not items:
            continue
        lines.append(f"╭─「 *{name}* 」")
        for item in items:
            descriptor = snapshot.commands.get(item.command)
            lock = " 🔐" if descriptor is not None and descriptor.owner_only else ""
            lines.append(f"│ {prefix}{item.command}{lock}")
            lines.append(f"│ └ _{item.description}_")
        lines.append("╰────────────")
        lines.append("")
    lines.append(f"💡 *Usage:* {prefix}<command>")
    lines.append(f"📖 *Example:* {prefix}ping")
    lines.append("")
    lines.append(footer(settings.footer))
    return "\n".join(lines)


async def execute(transport, message, args, context):
    await transport.send_message(
        message.ref.chat_id, TextPayload(text=render_menu(context))
    )
