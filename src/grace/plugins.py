"""File-based command plugin discovery and the live command registry.

Plugins live in category folders (``general_cmds/ping.py`` etc.) under one or
more roots. Each discovery pass builds a fresh :class:`Snapshot`; the
:class:`PluginRegistry` publishes it by swapping a single reference so readers
holding an older snapshot keep a consistent view.
"""

from __future__ import annotations

import importlib
import importlib.util
import re
import sys
import threading
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType, ModuleType
from typing import TYPE_CHECKING

from .config import ConfigError
from .logging import get_logger

if TYPE_CHECKING:
    from .dispatch import CommandContext
    from .transport import IncomingMessage, Transport

logger = get_logger(__name__)

MODULE_NAMESPACE = "grace_plugins"
DEFAULT_DESCRIPTION = "No description"
_SKIPPED_FOLDERS = frozenset({"utils"})
_MODULE_NAME_RE = re.compile(r"[^0-9a-zA-Z_]")

type ExecuteFn = Callable[
    [Transport, IncomingMessage, list[str], CommandContext], Awaitable[None] | None
]


class PluginLoadFailed(ConfigError):
    pass


class PluginDiscoveryError(ConfigError):
    pass


@dataclass(frozen=True, slots=True)
class PluginLoadError:
    name: str
    path: Path
    category: str
    error: str


@dataclass(frozen=True, slots=True)
class PluginDescriptor:
    command: str
    execute: ExecuteFn = field(compare=False, repr=False)
    aliases: tuple[str, ...] = ()
    category: str = "GENERAL"
    description: str = DEFAULT_DESCRIPTION
    owner_only: bool = False
    path: Path | None = field(default=None, compare=False)

    def matches_alias(self, name: str) -> bool:
        return name in self.aliases

    def summary(self) -> CommandSummary:
        return CommandSummary(
            command=self.command,
            description=self.description,
            aliases=self.aliases,
        )


@dataclass(frozen=True, slots=True)
class CommandSummary:
    command: str
    description: str
    aliases: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Snapshot:
    commands: Mapping[str, PluginDescriptor]
    categories: Mapping[str, tuple[CommandSummary, ...]]
    errors: tuple[PluginLoadError, ...] = ()

    @classmethod
    def empty(cls) -> Snapshot:
        return cls(commands=MappingProxyType({}), categories=MappingProxyType({}))

    def command_ids(self) -> frozenset[str]:
        return frozenset(self.commands)

    def __len__(self) -> int:
        return len(self.commands)


def category_name(folder: str) -> str:
    return folder.removesuffix("_cmds").upper()


def normalize_command(value: str) -> str:
    return value.strip().lower()


def resolve(snapshot: Snapshot, name: str) -> PluginDescriptor | None:
    key = normalize_command(name)
    found = snapshot.commands.get(key)
    if found is not None:
        return found
    # Alias collisions resolve to the first descriptor in discovery order.
    for descriptor in snapshot.commands.values():
        if descriptor.matches_alias(key):
            return descriptor
    return None


def descriptor_from_module(
    module: ModuleType, *, category: str, path: Path | None = None
) -> PluginDescriptor:
    raw_command = getattr(module, "command", None)
    if not isinstance(raw_command, str) or not raw_command.strip():
        raise PluginLoadFailed("missing command")
    execute = getattr(module, "execute", None)
    if execute is None or not callable(execute):
        raise PluginLoadFailed("missing execute")

    raw_aliases = getattr(module, "aliases", None) or ()
    if isinstance(raw_aliases, str) or not isinstance(raw_aliases, Iterable):
        raise PluginLoadFailed("aliases must be a list of strings")
    aliases: list[str] = []
    for alias in raw_aliases:
        if not isinstance(alias, str) or not alias.strip():
            raise PluginLoadFailed("aliases must be a list of strings")
        aliases.append(normalize_command(alias))

    raw_category = getattr(module, "category", None)
    description = getattr(module, "description", None) or DEFAULT_DESCRIPTION
    return PluginDescriptor(
        command=normalize_command(raw_command),
        execute=execute,
        aliases=tuple(aliases),
        category=raw_category.strip().upper()
        if isinstance(raw_category, str) and raw_category.strip()
        else category,
        description=str(description),
        owner_only=bool(getattr(module, "owner_only", False)),
        path=path,
    )


def _module_name(root_index: int, folder: str, stem: str) -> str:
    folder_part = _MODULE_NAME_RE.sub("_", folder)
    stem_part = _MODULE_NAME_RE.sub("_", stem)
    return f"{MODULE_NAMESPACE}.r{root_index}.{folder_part}.{stem_part}"


def _load_module(path: Path, module_name: str) -> ModuleType:
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise PluginLoadFailed(f"cannot import {path.name}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        # Compile from source; a cached .pyc can outlive an edit made within
        # the same second.
        code = compile(path.read_bytes(), str(path), "exec")
        exec(code, module.__dict__)
    except BaseException:
        sys.modules.pop(module_name, None)
        raise
    return module


def _category_folders(root: Path) -> list[Path]:
    try:
        entries = sorted(root.iterdir(), key=lambda p: p.name)
    except OSError as exc:
        raise PluginDiscoveryError(
            f"Cannot read plugin directory {root}: {exc}"
        ) from exc
    return [
        entry
        for entry in entries
        if entry.is_dir()
        and entry.name not in _SKIPPED_FOLDERS
        and not entry.name.startswith(("_", "."))
    ]


def _plugin_files(folder: Path) -> list[Path]:
    try:
        entries = sorted(folder.iterdir(), key=lambda p: p.name)
    except OSError as exc:
        raise PluginDiscoveryError(
            f"Cannot read plugin directory {folder}: {exc}"
        ) from exc
    return [
        entry
        for entry in entries
        if entry.suffix == ".py"
        and entry.is_file()
        and not entry.name.startswith("_")
    ]


def discover(roots: Sequence[Path]) -> Snapshot:
    """Load every plugin under ``roots`` into a new snapshot.

    A plugin that fails to import or validate is recorded in
    ``Snapshot.errors`` and skipped. An unreadable root raises
    :class:`PluginDiscoveryError`.
    """
    commands: dict[str, PluginDescriptor] = {}
    categories: dict[str, list[CommandSummary]] = {}
    errors: list[PluginLoadError] = []

    for root_index, root in enumerate(roots):
        for folder in _category_folders(root):
            category = category_name(folder.name)
            categories.setdefault(category, [])
            for path in _plugin_files(folder):
                module_name = _module_name(root_index, folder.name, path.stem)
                try:
                    module = _load_module(path, module_name)
                    descriptor = descriptor_from_module(
                        module, category=category, path=path
                    )
                except PluginLoadFailed as exc:
                    logger.warning(
                        "plugins.skipped",
                        file=path.name,
                        category=category,
                        reason=str(exc),
                    )
                    errors.append(
                        PluginLoadError(
                            name=path.stem,
                            path=path,
                            category=category,
                            error=str(exc),
                        )
                    )
                    continue
                except Exception as exc:
                    logger.warning(
                        "plugins.load_failed",
                        file=path.name,
                        category=category,
                        error=str(exc),
                        error_type=exc.__class__.__name__,
                    )
                    errors.append(
                        PluginLoadError(
                            name=path.stem,
                            path=path,
                            category=category,
                            error=f"{exc.__class__.__name__}: {exc}",
                        )
                    )
                    continue

                previous = commands.get(descriptor.command)
                if previous is not None:
                    logger.warning(
                        "plugins.duplicate",
                        command=descriptor.command,
                        replaced=str(previous.path),
                        by=str(path),
                    )
                commands[descriptor.command] = descriptor
                categories.setdefault(descriptor.category, []).append(
                    descriptor.summary()
                )
                logger.debug(
                    "plugins.loaded",
                    command=descriptor.command,
                    category=descriptor.category,
                )

    return Snapshot(
        commands=MappingProxyType(commands),
        categories=MappingProxyType(
            {name: tuple(items) for name, items in categories.items()}
        ),
        errors=tuple(errors),
    )


def purge_plugin_modules() -> int:
    names = [
        name
        for name in sys.modules
        if name == MODULE_NAMESPACE or name.startswith(f"{MODULE_NAMESPACE}.")
    ]
    for name in names:
        del sys.modules[name]
    importlib.invalidate_caches()
    return len(names)


class PluginRegistry:
    """Holds the published snapshot and rebuilds it on demand."""

    def __init__(
        self,
        roots: Sequence[Path],
        *,
        discover_fn: Callable[[Sequence[Path]], Snapshot] = discover,
    ) -> None:
        self._roots = tuple(roots)
        self._discover = discover_fn
        self._lock = threading.Lock()
        self._snapshot = Snapshot.empty()

    @property
    def roots(self) -> tuple[Path, ...]:
        return self._roots

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    def load(self) -> Snapshot:
        with self._lock:
            snapshot = self._discover(self._roots)
            self._snapshot = snapshot
        logger.info(
            "plugins.ready",
            commands=len(snapshot.commands),
            categories=len(snapshot.categories),
            errors=len(snapshot.errors),
        )
        return snapshot

    def reload(self) -> Snapshot:
        with self._lock:
            purged = purge_plugin_modules()
            try:
                snapshot = self._discover(self._roots)
            except PluginDiscoveryError as exc:
                logger.error("plugins.reload_failed", error=str(exc))
                raise
            self._snapshot = snapshot
        logger.info(
            "plugins.reloaded",
            commands=len(snapshot.commands),
            categories=len(snapshot.categories),
            errors=len(snapshot.errors),
            purged_modules=purged,
        )
        return snapshot

    def resolve(
        self, name: str, snapshot: Snapshot | None = None
    ) -> PluginDescriptor | None:
        return resolve(self._snapshot if snapshot is None else snapshot, name)
