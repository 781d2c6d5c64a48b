# === NAVMAP v1 ===
# {
#   "module": "GhReleaseApt.settings",
#   "purpose": "Define configuration models, environment overrides, and YAML config loading",
#   "sections": [
#     {"id": "loggingsettings", "name": "LoggingSettings", "anchor": "class-loggingsettings", "kind": "class"},
#     {"id": "aptsettings", "name": "AptSettings", "anchor": "class-aptsettings", "kind": "class"},
#     {"id": "read-config-file", "name": "_read_config_file", "anchor": "function-read-config-file", "kind": "function"},
#     {"id": "load-settings", "name": "load_settings", "anchor": "function-load-settings", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Configuration models for the repository generator.

Settings are resolved from three layers, highest priority first:

1. explicit overrides (CLI options),
2. environment variables (``GHAPT_*`` plus ``GITHUB_TOKEN``),
3. an optional YAML configuration file.

Nested logging options use ``__`` in environment names, for example
``GHAPT_LOGGING__LEVEL=DEBUG``.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, InitSettingsSource, SettingsConfigDict

from .errors import UserConfigError
from .layout import RepositoryLayout

__all__ = ["LoggingSettings", "AptSettings", "load_settings"]

_CONFIG_FILE_VALUES: ContextVar[Mapping[str, Any]] = ContextVar(
    "ghapt_config_file_values", default={}
)


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True, validate_assignment=False)

    level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    emit_json_logs: bool = Field(
        default=True,
        description="Write JSON-lines log files when a log directory is configured",
        validation_alias=AliasChoices("emit_json_logs", "json"),
    )
    max_log_size_mb: int = Field(default=100, gt=0, description="Maximum size of rotated log files")
    retention_days: int = Field(default=30, ge=1, description="Retention period for log files")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        """Normalize and validate logging level."""
        upper = str(v).upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {sorted(valid_levels)}, got '{v}'")
        return upper

    def level_int(self) -> int:
        """Convert level string to logging module integer."""
        level_map = {
            "DEBUG": logging.DEBUG,
            "INFO": logging.INFO,
            "WARNING": logging.WARNING,
            "ERROR": logging.ERROR,
        }
        return level_map[self.level]


class AptSettings(BaseSettings):
    """Runtime settings for importing releases and assembling the repository."""

    model_config = SettingsConfigDict(
        env_prefix="GHAPT_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    output_dir: Path = Field(default=Path("./apt-repo"), description="Repository output root")
    suite: str = Field(default="stable", min_length=1)
    component: str = Field(default="main", min_length=1)
    max_concurrent_downloads: int = Field(default=4, ge=1, le=32)
    timeout_sec: float = Field(default=60.0, gt=0.0, le=3600.0)
    api_url: str = Field(default="https://api.github.com")
    github_token: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("github_token", "GHAPT_GITHUB_TOKEN", "GITHUB_TOKEN"),
    )
    signing_key: Optional[SecretStr] = Field(
        default=None,
        description="ASCII-armored private key imported by the GPG signer before signing",
        validation_alias=AliasChoices("signing_key", "GHAPT_SIGNING_KEY"),
    )
    gpg_key_id: Optional[str] = Field(default=None, description="Key passed to gpg --local-user")
    gpg_binary: str = Field(default="gpg")
    compression: Literal["lzma", "xz"] = Field(
        default="lzma",
        description="Use the in-process lzma encoder or the external xz binary",
    )
    log_dir: Optional[Path] = Field(default=None, description="Directory for JSON-lines logs")
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("suite", "component")
    @classmethod
    def validate_path_segment(cls, value: str) -> str:
        """Reject values that would escape the ``dists/`` tree."""
        if "/" in value or "\\" in value or value in {".", ".."}:
            raise ValueError(f"'{value}' must be a single path segment")
        return value

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        file_values = dict(_CONFIG_FILE_VALUES.get())
        return (
            init_settings,
            env_settings,
            InitSettingsSource(settings_cls, init_kwargs=file_values),
        )

    def layout(self) -> RepositoryLayout:
        """Return the path resolver bound to these settings."""

        return RepositoryLayout(
            output_dir=self.output_dir.expanduser().resolve(),
            suite=self.suite,
            component=self.component,
        )

    def token(self) -> Optional[str]:
        if self.github_token is None:
            return None
        value = self.github_token.get_secret_value().strip()
        return value or None


def _read_config_file(path: Path) -> Dict[str, Any]:
    """Load a YAML (or JSON) mapping from ``path``."""

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise UserConfigError(f"Unable to read configuration file {path}: {exc}") from exc
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise UserConfigError(f"Configuration file {path} is not valid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise UserConfigError(f"Configuration file {path} must contain a mapping")
    return data


def load_settings(config_path: Optional[Path] = None, **overrides: Any) -> AptSettings:
    """Resolve settings from a config file, the environment, and ``overrides``.

    Overrides whose value is ``None`` are ignored so unset CLI options fall
    through to lower layers.

    Raises:
        UserConfigError: If the file cannot be read or a value is invalid.
    """

    file_values = _read_config_file(config_path) if config_path is not None else {}
    explicit = {key: value for key, value in overrides.items() if value is not None}
    token = _CONFIG_FILE_VALUES.set(file_values)
    try:
        return AptSettings(**explicit)
    except PydanticValidationError as exc:
        raise UserConfigError(f"Invalid settings: {exc}") from exc
    finally:
        _CONFIG_FILE_VALUES.reset(token)
