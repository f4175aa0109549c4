"""Configuration management for the WeCom notify client.

This module provides configuration models and loading functionality using Pydantic
for validation and type safety. Settings can come from constructor keywords,
``WECOM_NOTIFY_*`` environment variables, a ``.env`` file, or a YAML/JSON file.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CACHE_FILE = ".wecom_notify"

_DOTENV_LOADED = False


def _load_env_once() -> None:
    """Load environment variables from a .env file exactly once."""

    global _DOTENV_LOADED
    if not _DOTENV_LOADED:
        load_dotenv()
        _DOTENV_LOADED = True


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand environment variables in configuration data."""

    if isinstance(data, str):
        return os.path.expandvars(data)
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    return data


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )
    log_file: str | None = Field(default=None, description="Log file path")
    max_bytes: int = Field(default=10485760, description="Max log file size (10MB)")
    backup_count: int = Field(default=5, description="Number of backup files")

    @field_validator("level")
    @classmethod
    def normalise_level(cls, value: str) -> str:
        level = (value or "INFO").strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level: {value}")
        return level


class NotifyConfig(BaseSettings):
    """Credentials and token cache settings for a WeCom application."""

    model_config = SettingsConfigDict(
        env_prefix="WECOM_NOTIFY_",
        env_nested_delimiter="__",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    corp_id: str = Field(..., description="Enterprise ID (shown on the company info page)")
    agent_id: int = Field(..., ge=0, description="Application agent ID")
    app_secret: SecretStr = Field(..., description="Application secret")
    token_persist: bool = Field(
        default=False, description="Persist the access token to cache_file_path"
    )
    cache_file_path: str = Field(
        default=DEFAULT_CACHE_FILE, description="Path of the JSON token cache file"
    )
    base_url: str | None = Field(
        default=None, description="Override API prefix (for testing or private deployments)"
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("corp_id")
    @classmethod
    def validate_corp_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("corp_id cannot be empty")
        return value

    @field_validator("app_secret")
    @classmethod
    def validate_app_secret(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("app_secret cannot be empty")
        return value

    @field_validator("cache_file_path")
    @classmethod
    def validate_cache_file_path(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("cache_file_path cannot be empty")
        return value

    @classmethod
    def from_yaml(cls, path: str | Path) -> NotifyConfig:
        """Load configuration from a YAML file."""

        _load_env_once()
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, encoding="utf-8") as handle:
            try:
                config_data = yaml.safe_load(handle)
            except yaml.YAMLError as exc:
                raise ValueError(f"Invalid YAML in config file: {exc}") from exc

        if not config_data:
            config_data = {}

        config_data = _expand_env_vars(config_data)
        return cls(**config_data)

    @classmethod
    def from_json(cls, path: str | Path) -> NotifyConfig:
        """Load configuration from a JSON file."""

        _load_env_once()
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, encoding="utf-8") as handle:
            try:
                config_data = json.load(handle)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid JSON in config file: {exc}") from exc

        config_data = _expand_env_vars(config_data)
        return cls(**config_data)
