"""
Credential loading for the queue and the directory API.

Secrets come from a JSON file (``{"queue": {...}}``) when one is
configured, otherwise from environment variables such as
``HOTLINE_QUEUE_HOST``.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from pydantic import BaseModel, Field, ValidationError

from ..errors import SecretsError
from .settings import Config

logger = structlog.get_logger(__name__)

SECRET_NAME = "queue"


class QueueSecrets(BaseModel):
    """Credentials for the broker and the directory API."""

    api_key: str = Field(description="Bearer token for the directory API")
    host: str = Field(description="Broker host")
    username: str = Field(description="Broker user")
    password: str = Field(description="Broker password")
    port: int = Field(default=5672, description="Broker port")

    def __repr__(self) -> str:
        return f"QueueSecrets(host={self.host!r}, port={self.port}, username={self.username!r})"


def load_secrets(config: Config, environ: Optional[Dict[str, str]] = None) -> QueueSecrets:
    """
    Load queue secrets from the configured source.

    Args:
        config: Worker configuration
        environ: Environment mapping, defaults to ``os.environ``

    Returns:
        Validated queue secrets

    Raises:
        SecretsError: If the source is unreadable or incomplete
    """
    environ = os.environ if environ is None else environ

    if config.secrets.secrets_file:
        raw = _read_secrets_file(Path(config.secrets.secrets_file))
        source = config.secrets.secrets_file
    else:
        prefix = config.secrets.env_prefix
        raw = {
            name: environ[prefix + name.upper()]
            for name in QueueSecrets.model_fields
            if prefix + name.upper() in environ
        }
        source = f"environment ({prefix}*)"

    try:
        secrets = QueueSecrets(**raw)
    except ValidationError as e:
        missing = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
        raise SecretsError(
            f"Invalid queue secrets from {source}; check fields: {', '.join(missing)}",
            original_error=e,
        )

    logger.info("Loaded queue secrets", source=source, host=secrets.host, port=secrets.port)
    return secrets


def _read_secrets_file(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise SecretsError(f"Unable to read secrets file {path}: {e}", original_error=e)

    secret = data.get(SECRET_NAME) if isinstance(data, dict) else None
    if not isinstance(secret, dict):
        raise SecretsError(f"Secrets file {path} has no '{SECRET_NAME}' entry")
    return secret
