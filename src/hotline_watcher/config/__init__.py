"""Configuration management."""

from .secrets import QueueSecrets, load_secrets
from .settings import Config, create_default_config, load_config

__all__ = ["Config", "QueueSecrets", "load_config", "load_secrets", "create_default_config"]
