"""Pydantic settings for the robot.

This module provides:
- Environment variable support (SLACK_ROBOT__TOKEN, SLACK_ROBOT__API__BASE_URL, ...)
- TOML loading from ``robot.toml``
- SecretStr for the token to prevent accidental logging
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .api import DEFAULT_BASE_URL
from .config_store import find_config_file, read_raw_toml
from .logging import get_logger

logger = get_logger(__name__)


class ConfigError(RuntimeError):
    """Configuration error."""

    pass


class ApiSettings(BaseModel):
    """Slack Web API client configuration."""

    base_url: str = DEFAULT_BASE_URL
    max_request_concurrency: int = Field(default=5, ge=1)


class RobotSettings(BaseSettings):
    """Robot configuration loaded from TOML and environment variables.

    Environment variables use SLACK_ROBOT__ prefix with __ as nested delimiter:
    - SLACK_ROBOT__TOKEN -> token
    - SLACK_ROBOT__CONCURRENCY -> concurrency
    - SLACK_ROBOT__API__MAX_REQUEST_CONCURRENCY -> api.max_request_concurrency
    """

    model_config = SettingsConfigDict(
        env_prefix="SLACK_ROBOT__",
        env_nested_delimiter="__",
        extra="ignore",
    )

    token: SecretStr
    concurrency: int = Field(default=1, ge=1)
    help_generator: bool = False
    ignored_channels: list[str] = []
    max_pending_reactions: int | None = Field(default=None, ge=1)
    api: ApiSettings = ApiSettings()

    @field_validator("token")
    @classmethod
    def _token_not_empty(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("Invalid slack access token")
        return value


def _settings_kwargs(data: dict[str, Any]) -> dict[str, Any]:
    """Flatten the ``[robot]`` and ``[api]`` tables into settings kwargs."""
    kwargs: dict[str, Any] = dict(data.get("robot", {}))
    if "api" in data:
        kwargs["api"] = data["api"]
    return kwargs


def load_settings(path: Path | None = None) -> RobotSettings:
    """Load settings from ``robot.toml`` (searched upwards from cwd) and the environment.

    Values present in the file take precedence; the environment fills in
    the rest. Without a file, the environment alone must provide the token.

    Raises:
        ConfigError: If the file is unreadable or the settings are invalid
    """
    if path is None:
        path = find_config_file()

    data: dict[str, Any] = {}
    if path is not None:
        try:
            data = read_raw_toml(path)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.error("settings.load_failed", path=str(path), error=str(e))
            raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        return RobotSettings(**_settings_kwargs(data))
    except ValidationError as e:
        logger.error(
            "settings.validation_failed",
            path=str(path) if path else None,
            error=str(e),
        )
        raise ConfigError(str(e)) from e
