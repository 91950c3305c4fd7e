from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import TomlConfigSettingsSource

from .config import ConfigError, HOME_CONFIG_PATH

BUILTIN_PLUGINS_DIR = Path(__file__).resolve().parent / "builtin"


class ReactionSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    symbol: str = "⏳"
    duration_ms: int = Field(default=10_000, ge=0)

    @property
    def duration_s(self) -> float:
        return self.duration_ms / 1000


class PluginsSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    dirs: list[str] = Field(default_factory=list)
    include_builtin: bool = True

    @field_validator("dirs", mode="before")
    @classmethod
    def _validate_dirs(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            raise ValueError("dirs must be a list of strings")
        cleaned: list[str] = []
        for item in value:
            if not isinstance(item, str) or not item.strip():
                raise ValueError("dirs entries must be non-empty strings")
            cleaned.append(item.strip())
        return cleaned


class HandlersSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    disabled: list[str] = Field(default_factory=list)
    media_dir: str = "secret"


class FooterSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    text: str = "Powered by Grace Assistant"
    line: str = "─"
    line_count: int = 20


class GraceSettings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        env_prefix="GRACE__",
        env_nested_delimiter="__",
    )

    prefix: str = "!"
    bot_name: str = "Grace Assistant"
    owner_name: str = "Owner"
    owner_id: str | None = None

    reaction: ReactionSettings = Field(default_factory=ReactionSettings)
    plugins: PluginsSettings = Field(default_factory=PluginsSettings)
    handlers: HandlersSettings = Field(default_factory=HandlersSettings)
    footer: FooterSettings = Field(default_factory=FooterSettings)

    @field_validator("prefix", "bot_name", "owner_name", mode="before")
    @classmethod
    def _validate_required_strings(cls, value: Any, info) -> Any:
        if value is None:
            raise ValueError(f"{info.field_name} must be a non-empty string")
        if not isinstance(value, str):
            raise ValueError(f"{info.field_name} must be a string")
        cleaned = value.strip()
        if not cleaned:
            raise ValueError(f"{info.field_name} must be a non-empty string")
        return cleaned

    @field_validator("owner_id", mode="before")
    @classmethod
    def _validate_owner_id(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, bool):
            raise ValueError("owner_id must be a string")
        if isinstance(value, int):
            return str(value)
        if not isinstance(value, str):
            raise ValueError("owner_id must be a string")
        return value.strip() or None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    def plugin_dirs(self, *, config_path: Path | None = None) -> list[Path]:
        roots: list[Path] = []
        if self.plugins.include_builtin:
            roots.append(BUILTIN_PLUGINS_DIR)
        for raw in self.plugins.dirs:
            path = Path(raw).expanduser()
            if not path.is_absolute() and config_path is not None:
                path = config_path.parent / path
            roots.append(path)
        return roots

    @classmethod
    def from_toml(cls, path: Path) -> GraceSettings:
        """Build settings with ``path`` as the TOML layer under the environment."""
        config = {**cls.model_config, "toml_file": path}
        file_bound = type(
            f"{cls.__name__}FromFile",
            (cls,),
            {"model_config": SettingsConfigDict(**config)},
        )
        return file_bound()


def config_file(path: str | Path | None = None) -> Path:
    cfg_path = Path(path).expanduser() if path else HOME_CONFIG_PATH
    if cfg_path.exists() and not cfg_path.is_file():
        raise ConfigError(f"Config path {cfg_path} exists but is not a file.")
    return cfg_path


def read_settings(cfg_path: Path) -> GraceSettings:
    try:
        return GraceSettings.from_toml(cfg_path)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config in {cfg_path}: {exc}") from exc
    except Exception as exc:
        raise ConfigError(f"Failed to load config {cfg_path}: {exc}") from exc


def load_settings(path: str | Path | None = None) -> tuple[GraceSettings, Path]:
    """Load an explicitly requested config file; a missing file is an error."""
    cfg_path = config_file(path)
    if not cfg_path.exists():
        raise ConfigError(f"Missing config file {cfg_path}.")
    return read_settings(cfg_path), cfg_path


def load_settings_if_exists(
    path: str | Path | None = None,
) -> tuple[GraceSettings, Path] | None:
    cfg_path = config_file(path)
    if not cfg_path.exists():
        return None
    return read_settings(cfg_path), cfg_path
