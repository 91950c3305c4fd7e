from __future__ import annotations

from datetime import datetime, timezone

from .settings import FooterSettings


def footer(settings: FooterSettings) -> str:
    line = settings.line * settings.line_count
    return f"{line}\n> _{settings.text}_"


def utc_now() -> tuple[str, str]:
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%d"), now.strftime("%H:%M:%S")


def format_uptime(started_at: datetime | None) -> str:
    if started_at is None:
        return "unknown"
    seconds = int((datetime.now(timezone.utc) - started_at).total_seconds())
    days, seconds = divmod(max(seconds, 0), 86_400)
    hours, seconds = divmod(seconds, 3_600)
    minutes, seconds = divmod(seconds, 60)
    parts = [f"{days}d"] if days else []
    parts.extend([f"{hours}h", f"{minutes}m", f"{seconds}s"])
    return " ".join(parts)
