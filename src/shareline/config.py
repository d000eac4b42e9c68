"""Configuration loading and validation for the upload queue."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path

import keyring
from keyring.errors import KeyringError

logger = logging.getLogger(__name__)

SERVICE_NAME = "shareline-upload"
KEY_NAME = "api_token"
TOKEN_ENV_VAR = "SHARELINE_API_TOKEN"

DEFAULT_CONFIG_PATH = Path("config/upload_queue.json")

MAX_PAYLOAD_SIZE = 100 * 1024 * 1024  # 100 MB
MAX_QUEUE_SIZE = 10


@dataclass
class QueueConfig:
    """Admission limits and transfer endpoint settings.

    ``max_payload_size`` and ``max_queue_size`` form the admission policy;
    the remaining fields configure :class:`HttpTransferEndpoint`.
    """

    max_payload_size: int = MAX_PAYLOAD_SIZE
    max_queue_size: int = MAX_QUEUE_SIZE
    endpoint_url: str = "http://localhost:8080/api"
    upload_path: str = "/files/upload"
    form_field: str = "file"
    timeout_seconds: float = 300
    api_token: str | None = None

    def __post_init__(self) -> None:
        if self.max_payload_size <= 0:
            raise ValueError(
                f"max_payload_size must be positive, got {self.max_payload_size}"
            )
        if self.max_queue_size <= 0:
            raise ValueError(f"max_queue_size must be positive, got {self.max_queue_size}")
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {self.timeout_seconds}")
        if not self.endpoint_url.startswith(("http://", "https://")):
            raise ValueError(f"Invalid endpoint_url format: {self.endpoint_url}")

    @property
    def upload_url(self) -> str:
        return self.endpoint_url.rstrip("/") + "/" + self.upload_path.lstrip("/")

    @property
    def max_payload_size_mb(self) -> int:
        return round(self.max_payload_size / (1024 * 1024))


def get_api_token() -> str | None:
    """Get the endpoint token: system keyring first, then env var fallback.

    Returns:
        Token string, or None when no token is configured anywhere.
    """
    try:
        token = keyring.get_password(SERVICE_NAME, KEY_NAME)
    except KeyringError:
        # Headless hosts often have no keyring backend at all
        logger.debug("Keyring unavailable, falling back to %s", TOKEN_ENV_VAR)
        token = None
    if token:
        return token
    return os.environ.get(TOKEN_ENV_VAR) or None


def set_api_token(token: str) -> None:
    """Store the endpoint token in the system keyring."""
    keyring.set_password(SERVICE_NAME, KEY_NAME, token)


def load_queue_config(config_path: Path | None = None) -> QueueConfig:
    """Load queue configuration from JSON, falling back to defaults.

    Reads ``config/upload_queue.json`` when *config_path* is ``None``.  If the
    file does not exist, defaults are used.  Unknown keys are ignored.  The
    API token is never read from the file; it comes from the keyring or the
    ``SHARELINE_API_TOKEN`` environment variable.

    Args:
        config_path: Optional explicit path to the JSON config file.

    Returns:
        QueueConfig populated from file + keyring overrides.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    data: dict = {}
    if config_path.exists():
        with open(config_path) as f:
            data = json.load(f)

    field_names = {f.name for f in fields(QueueConfig)} - {"api_token"}
    kwargs = {k: v for k, v in data.items() if k in field_names}

    config = QueueConfig(**kwargs)
    config.api_token = get_api_token()
    return config
