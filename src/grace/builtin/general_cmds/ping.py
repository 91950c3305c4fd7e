from grace.render import footer, utc_now
from grace.transport import TextPayload

command = "ping"
description = "🏓 Check bot response time and status"
category = "GENERAL"


async def execute(transport, message, args, context):
    date, time = utc_now()
    settings = context.settings
    text = (
        "🏓 *Pong!*\n\n"
        "⚡ *Bot Status:* Online\n"
        "⏱️ *Response Time:* Fast\n"
        f"📅 *Date:* {date}\n"
        f"🕐 *Time:* {time} UTC\n\n"
        f"_{settings.bot_name} is working perfectly!_\n\n"
        f"{footer(settings.footer)}"
    )
    await transport.send_message(message.ref.chat_id, TextPayload(text=text))
