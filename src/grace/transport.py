from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

type ChatId = str
type MessageId = str


class TransientProtocolError(RuntimeError):
    """Known-transient protocol noise (decrypt races, MAC mismatches).

    Transports raise this so the pipeline can drop the failure without
    logging it.
    """


@dataclass(frozen=True, slots=True)
class MessageRef:
    chat_id: ChatId
    message_id: MessageId
    raw: Any | None = field(default=None, compare=False, hash=False)


@dataclass(frozen=True, slots=True)
class TextPayload:
    text: str


@dataclass(frozen=True, slots=True)
class MediaPayload:
    kind: str
    data: bytes | None = None
    url: str | None = None
    mime_type: str | None = None
    caption: str | None = None
    file_name: str | None = None
    view_once: bool = False


@dataclass(frozen=True, slots=True)
class ContactPayload:
    display_name: str
    phone_number: str


@dataclass(frozen=True, slots=True)
class LocationPayload:
    latitude: float
    longitude: float
    name: str | None = None


type Payload = TextPayload | MediaPayload | ContactPayload | LocationPayload


@dataclass(frozen=True, slots=True)
class IncomingMessage:
    sender_id: str
    text: str
    ref: MessageRef
    is_self_originated: bool = False
    media: MediaPayload | None = None
    quoted: MediaPayload | None = None
    received_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), compare=False
    )

    @property
    def has_content(self) -> bool:
        return bool(self.text) or self.media is not None or self.quoted is not None


class Transport(Protocol):
    async def send_message(self, recipient_id: ChatId, payload: Payload) -> None: ...

    async def send_reaction(self, ref: MessageRef, symbol: str) -> None: ...


_TRANSIENT_MARKERS = ("decrypt", "MAC", "internal server error")


def is_transient_error(exc: BaseException) -> bool:
    if isinstance(exc, TransientProtocolError):
        return True
    # Compatibility shim for transports that do not tag protocol noise.
    message = str(exc)
    return any(marker in message for marker in _TRANSIENT_MARKERS)
