from __future__ import annotations

from pathlib import Path

HOME_CONFIG_PATH = Path.home() / ".grace" / "grace.toml"


class ConfigError(RuntimeError):
    pass
