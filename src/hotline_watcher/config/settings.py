"""
Configuration management for the Hotline report watcher.

Handles loading, validation, and management of worker configuration
from files and environment variables.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_AVATAR_URL = (
    "https://cdn.discordapp.com/avatars/305140278480863233/"
    "51daf8a9e8c786dc59f3587999fe5948.webp?size=256"
)


def _resolve_env(value: Any) -> Any:
    """Expand ``${VAR}`` placeholders from the environment."""
    if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
        return os.getenv(value[2:-1])
    return value


class QueueConfig(BaseModel):
    """Configuration for the AMQP broker topology."""

    vhost: str = Field(default="hotline", description="Broker virtual host")
    exchange: str = Field(default="hotline-reports", description="Exchange retries publish to")
    queue: str = Field(default="hotline-reports", description="Queue the worker consumes")
    routing_key: str = Field(default="report", description="Routing key for published events")
    prefetch_count: int = Field(default=10, description="Maximum unacknowledged messages")
    declare_topology: bool = Field(
        default=True, description="Declare exchange, queue and binding on startup"
    )

    @field_validator("prefetch_count")
    @classmethod
    def validate_prefetch(cls, v: int) -> int:
        """Validate prefetch count."""
        if v < 1:
            raise ValueError("prefetch_count must be at least 1")
        return v


class DirectoryConfig(BaseModel):
    """Configuration for the subscription directory API."""

    api_url: str = Field(default="https://api.hotline.gg", description="Directory API URL")
    timeout_seconds: float = Field(default=30.0, description="Request timeout in seconds")
    fallback_tag_id: int = Field(
        default=20, description="Tag used to search for reports without tags"
    )

    @field_validator("api_url", mode="before")
    @classmethod
    def resolve_api_url(cls, v: Optional[str]) -> Optional[str]:
        """Resolve API URL from environment variable if needed."""
        return _resolve_env(v)


class DeliveryConfig(BaseModel):
    """Configuration for subscriber delivery and retries."""

    webhook_username: str = Field(default="Watcher", description="Webhook display name")
    webhook_avatar_url: str = Field(default=DEFAULT_AVATAR_URL, description="Webhook avatar")
    timeout_seconds: float = Field(default=30.0, description="HTTP request timeout")
    retry_delay_seconds: float = Field(default=300.0, description="Delay before a retry is due")
    max_attempts: Optional[int] = Field(
        default=288, description="Retry ceiling per subscriber; null retries forever"
    )
    max_concurrent_deliveries: int = Field(
        default=1, description="Subscribers delivered in parallel per event"
    )

    @field_validator("timeout_seconds", "retry_delay_seconds")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Validate durations."""
        if v <= 0:
            raise ValueError("Durations must be positive")
        return v

    @field_validator("max_attempts", "max_concurrent_deliveries")
    @classmethod
    def validate_count(cls, v: Optional[int]) -> Optional[int]:
        """Validate counters."""
        if v is not None and v < 1:
            raise ValueError("Counts must be at least 1")
        return v


class SecretsConfig(BaseModel):
    """Where queue and API credentials come from."""

    secrets_file: Optional[str] = Field(
        default=None,
        validate_default=True,
        description="JSON file holding a 'queue' secret",
    )
    env_prefix: str = Field(
        default="HOTLINE_QUEUE_", description="Environment prefix when no file is set"
    )

    @field_validator("secrets_file", mode="before")
    @classmethod
    def resolve_secrets_file(cls, v: Optional[str]) -> Optional[str]:
        """Resolve secrets file from environment variable if needed."""
        if v is None:
            return os.getenv("SECRETS_FILE")
        return _resolve_env(v)


class WorkerConfig(BaseModel):
    """Configuration for worker process behavior."""

    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper


class Config(BaseModel):
    """Main configuration object."""

    model_config = ConfigDict(extra="forbid")

    version: str = Field(default="0.1.0", description="Configuration version")
    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    directory: DirectoryConfig = Field(default_factory=DirectoryConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    secrets: SecretsConfig = Field(default_factory=SecretsConfig)


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from file and environment variables.

    Args:
        config_path: Path to configuration file. If None, looks for
                    HOTLINE_WATCHER_CONFIG_PATH environment variable.

    Returns:
        Loaded and validated configuration

    Raises:
        FileNotFoundError: If config file specified but not found
        ValueError: If configuration is invalid
    """
    if config_path is None:
        env_path = os.getenv("HOTLINE_WATCHER_CONFIG_PATH")
        if env_path:
            config_path = Path(env_path)

    config_data: Dict[str, Any] = {}
    if config_path and config_path.exists():
        with open(config_path, "r") as f:
            config_data = json.load(f)
    elif config_path:
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    env_overrides: Dict[str, Any] = {}

    log_level = os.getenv("HOTLINE_WATCHER_LOG_LEVEL")
    if log_level:
        env_overrides.setdefault("worker", {})["log_level"] = log_level

    api_url = os.getenv("API_URL")
    if api_url:
        env_overrides.setdefault("directory", {})["api_url"] = api_url

    secrets_file = os.getenv("SECRETS_FILE")
    if secrets_file:
        env_overrides.setdefault("secrets", {})["secrets_file"] = secrets_file

    if env_overrides:
        config_data = _deep_merge(config_data, env_overrides)

    return Config(**config_data)


def create_default_config(config_path: Path) -> None:
    """
    Create a default configuration file.

    Args:
        config_path: Path where to create the configuration file
    """
    default_config = Config().model_dump()
    default_config["secrets"]["secrets_file"] = "${SECRETS_FILE}"

    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w") as f:
        json.dump(default_config, f, indent=2)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Override dictionary

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result
