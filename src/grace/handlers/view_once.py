from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import anyio

from ..logging import get_logger
from ..transport import IncomingMessage, MediaPayload

logger = get_logger(__name__)

NAME = "ViewOnce Extractor"
DESCRIPTION = "Automatically extracts ViewOnce media when replied to"

_RULE = "━" * 40

_MIME_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "video/mp4": "mp4",
    "video/3gpp": "3gp",
    "video/quicktime": "mov",
    "audio/ogg": "ogg",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
    "audio/aac": "aac",
}


def extension_for(mime_type: str | None) -> str:
    if not mime_type:
        return "bin"
    base = mime_type.split(";", 1)[0].strip().lower()
    return _MIME_EXTENSIONS.get(base, "bin")


def format_bytes(size: int) -> str:
    if size <= 0:
        return "0 B"
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024:
            return f"{value:.2f}".rstrip("0").rstrip(".") + f" {unit}"
        value /= 1024
    return f"{value:.2f}".rstrip("0").rstrip(".") + " GB"


def _base_name(message: IncomingMessage, now: datetime) -> str:
    sender = "".join(ch for ch in message.sender_id.split("@", 1)[0] if ch.isalnum())
    stamp = now.strftime("%Y%m%dT%H%M%S%fZ")
    return f"viewonce_{sender or 'unknown'}_{stamp}"


def render_metadata(
    message: IncomingMessage, media: MediaPayload, *, media_file: str, now: datetime
) -> str:
    """Text written next to every extracted file."""
    sender = message.sender_id.split("@", 1)[0]
    stamp = now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    size = len(media.data or b"")
    lines = [
        "ViewOnce Media Metadata",
        _RULE,
        "",
        f"Sender: {sender}",
        "ViewOnce Type: viewOnce",
        f"Media Type: {media.kind}",
        f"Timestamp: {stamp}",
        f"Mimetype: {media.mime_type or 'unknown'}",
        f"File Size: {format_bytes(size)}",
        f"Media File: {media_file}",
    ]
    if media.caption:
        lines.extend(["", "Caption:", media.caption, ""])
    lines.extend(
        [_RULE, "Extracted by Grace Assistant", "Reply-to-ViewOnce Method", ""]
    )
    return "\n".join(lines)


class ViewOnceExtractor:
    def __init__(self, media_dir: Path) -> None:
        self.media_dir = media_dir

    async def __call__(self, message: IncomingMessage) -> Path | None:
        quoted = message.quoted
        if quoted is None or not quoted.view_once or not quoted.data:
            return None
        target_dir = anyio.Path(self.media_dir)
        await target_dir.mkdir(parents=True, exist_ok=True)
        now = datetime.now(timezone.utc)
        base = _base_name(message, now)
        target = target_dir / f"{base}.{extension_for(quoted.mime_type)}"
        await target.write_bytes(quoted.data)
        meta = target_dir / f"{base}.txt"
        await meta.write_text(
            render_metadata(message, quoted, media_file=target.name, now=now),
            encoding="utf-8",
        )
        logger.info(
            "view_once.saved",
            sender=message.sender_id,
            kind=quoted.kind,
            path=str(target),
            metadata=str(meta),
            size=format_bytes(len(quoted.data)),
        )
        return Path(target)
