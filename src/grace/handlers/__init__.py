from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from .chain import HandlerChain, HandlerEntry, HandlerFn
from .view_once import DESCRIPTION as VIEW_ONCE_DESCRIPTION
from .view_once import NAME as VIEW_ONCE_NAME
from .view_once import ViewOnceExtractor

if TYPE_CHECKING:
    from ..settings import GraceSettings

__all__ = [
    "HandlerChain",
    "HandlerEntry",
    "HandlerFn",
    "ViewOnceExtractor",
    "default_handler_chain",
]


def default_handler_chain(
    settings: GraceSettings, *, base_dir: Path | None = None
) -> HandlerChain:
    media_dir = Path(settings.handlers.media_dir).expanduser()
    if not media_dir.is_absolute() and base_dir is not None:
        media_dir = base_dir / media_dir
    chain = HandlerChain(
        [
            HandlerEntry(
                name=VIEW_ONCE_NAME,
                behavior=ViewOnceExtractor(media_dir),
                description=VIEW_ONCE_DESCRIPTION,
            ),
        ]
    )
    for name in settings.handlers.disabled:
        chain.set_enabled(name, False)
    return chain
