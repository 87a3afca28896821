"""Configuration loading and validation for the companion chat client."""

from __future__ import annotations

from copy import deepcopy
import logging
import os
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .attachments import DEFAULT_MAX_ATTACHMENT_BYTES
from .exceptions import ConfigValidationError
from .mood import MoodTiming
from .notebook import NOTEBOOK_KEY
from .prompts import SYSTEM_INSTRUCTION, WELCOME_MESSAGE
from .provider import DEFAULT_BASE_URL, DEFAULT_MODEL

import tomllib  # stdlib since Python 3.11 (project requires >=3.11)

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "companion-chat"
CONFIG_PATH = CONFIG_DIR / "config.toml"

VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _required_string(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("Expected a string value.")
    normalized = value.strip()
    if not normalized:
        raise ValueError("String value must not be empty.")
    return normalized


class AppConfig(BaseModel):
    """Application metadata and conversation seed."""

    title: str = "Companion"
    welcome_message: str = WELCOME_MESSAGE
    dispatch_delay_seconds: float = Field(default=0.6, ge=0.0, le=10.0)
    download_dir: str = "~/Downloads"

    @field_validator("title", "welcome_message", "download_dir", mode="before")
    @classmethod
    def _validate_non_empty_string(cls, value: Any) -> str:
        return _required_string(value)


class ProviderConfig(BaseModel):
    """Remote model endpoint and generation settings."""

    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    api_key: str = ""
    api_key_env: str = "GEMINI_API_KEY"
    timeout: int = Field(default=120, ge=1, le=3600)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    system_instruction: str = SYSTEM_INSTRUCTION
    enable_search: bool = True

    @field_validator("base_url", "model", "api_key_env", mode="before")
    @classmethod
    def _validate_required_string(cls, value: Any) -> str:
        return _required_string(value)

    @field_validator("api_key", "system_instruction", mode="before")
    @classmethod
    def _normalize_optional_string(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("Expected a string value.")
        return value.strip()

    @model_validator(mode="after")
    def _validate_base_url(self) -> ProviderConfig:
        parsed = urlparse(self.base_url)
        if parsed.scheme.lower() not in {"http", "https"}:
            raise ValueError("provider.base_url must use http or https scheme.")
        if not parsed.hostname:
            raise ValueError("provider.base_url must include a hostname.")
        return self


class AttachmentConfig(BaseModel):
    """Limits applied at the file intake boundary."""

    max_bytes: int = Field(default=DEFAULT_MAX_ATTACHMENT_BYTES, ge=1, le=1 << 31)


class MoodConfig(BaseModel):
    """Mood indicator timers, in seconds."""

    success_cooldown_seconds: float = Field(default=3.0, ge=0.0, le=600.0)
    blink_min_seconds: float = Field(default=2.0, gt=0.0, le=600.0)
    blink_max_seconds: float = Field(default=5.0, gt=0.0, le=600.0)
    blink_duration_seconds: float = Field(default=0.15, gt=0.0, le=10.0)
    gaze_max_offset: float = Field(default=6.0, ge=0.0, le=100.0)

    @model_validator(mode="after")
    def _validate_blink_window(self) -> MoodConfig:
        if self.blink_max_seconds < self.blink_min_seconds:
            raise ValueError("mood.blink_max_seconds must be >= blink_min_seconds.")
        return self

    def timing(self) -> MoodTiming:
        return MoodTiming(**self.model_dump())


class NotebookConfig(BaseModel):
    """Where the notebook collection is persisted."""

    path: str = "~/.local/state/companion-chat/storage.json"
    key: str = NOTEBOOK_KEY

    @field_validator("path", "key", mode="before")
    @classmethod
    def _validate_required_string(cls, value: Any) -> str:
        return _required_string(value)


class LoggingConfig(BaseModel):
    """Logging behavior and output destinations."""

    level: str = "INFO"
    structured: bool = True
    log_to_file: bool = False
    log_file_path: str = "~/.local/state/companion-chat/app.log"

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Logging level must be a string.")
        normalized = value.strip().upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(f"Unsupported log level {normalized!r}.")
        return normalized

    @field_validator("log_file_path", mode="before")
    @classmethod
    def _validate_log_file_path(cls, value: Any) -> str:
        return _required_string(value)


class Config(BaseModel):
    """Root configuration model for all sections."""

    model_config = ConfigDict(populate_by_name=True)
    app: AppConfig = AppConfig()
    provider: ProviderConfig = ProviderConfig()
    attachments: AttachmentConfig = AttachmentConfig()
    mood: MoodConfig = MoodConfig()
    notebook: NotebookConfig = NotebookConfig()
    logging: LoggingConfig = LoggingConfig()


DEFAULT_CONFIG: dict[str, dict[str, Any]] = Config().model_dump()


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Ensure that the config directory exists and return its path."""
    directory = config_dir or CONFIG_DIR
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create config directory %s: %s", directory, exc)
    return directory


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override values onto base values."""
    merged: dict[str, Any] = deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _enforce_private_permissions(path: Path) -> None:
    """Best-effort enforcement of private file permissions on POSIX systems."""
    if os.name != "posix" or not path.exists():
        return
    try:
        path.chmod(0o600)
    except OSError as exc:
        LOGGER.warning("Unable to enforce 0600 permissions for %s: %s", path, exc)


def _validate_config(raw: dict[str, Any]) -> Config:
    """Validate merged config and fallback to safe defaults when possible."""
    try:
        return Config.model_validate(raw)
    except ValidationError as exc:
        LOGGER.warning("Configuration validation failed, using safe defaults: %s", exc)
        return Config()
    except Exception as exc:  # noqa: BLE001 - unexpected model construction failure.
        raise ConfigValidationError(f"Unable to validate configuration: {exc}") from exc


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from TOML, merge with defaults, and validate.

    The optional ``config_path`` argument is intended for tests and tooling.
    """
    target_path = config_path or CONFIG_PATH
    ensure_config_dir(target_path.parent)

    raw_data: dict[str, Any] = {}
    if target_path.exists():
        # The file may hold an API key.
        _enforce_private_permissions(target_path)
        try:
            raw_data = tomllib.loads(target_path.read_text(encoding="utf-8"))
        except Exception as exc:  # noqa: BLE001 - must not crash on bad user config.
            LOGGER.warning("Failed to parse config at %s: %s", target_path, exc)
            raw_data = {}

    return _validate_config(_deep_merge(DEFAULT_CONFIG, raw_data))


def resolve_api_key(config: Config) -> str:
    """Return the configured API key, falling back to the environment."""
    if config.provider.api_key:
        return config.provider.api_key
    return os.environ.get(config.provider.api_key_env, "").strip()
