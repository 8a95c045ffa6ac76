"""
Connection configuration for the etcd SDK.

Configuration is a pydantic-settings model, so every field can be supplied
either explicitly or through ``ETCD_*`` environment variables.

Invariants:
    - Two configs with equal field values produce the same cache_key()
    - Secrets are never logged

How to change safely:
    - Add new settings with defaults that keep cache_key() stable for old configs
    - Any field that changes how the client connects must be part of cache_key()
"""

from __future__ import annotations

import logging
from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class StoreBackend(str, Enum):
    """Supported key-value store backends."""

    ETCD = "etcd"
    MEMORY = "memory"


class EtcdConfig(BaseSettings):
    """Store connection configuration.

    Attributes:
        backend: Which store backend to use
        endpoints: etcd gateway endpoints, e.g. "http://127.0.0.1:2379"
        username: etcd auth user (optional)
        password: etcd auth password (optional)
        ca_file: CA bundle for TLS endpoints
        cert_file: Client certificate for mutual TLS
        key_file: Client key for mutual TLS
        dial_timeout: Connect timeout in seconds
        request_timeout: Default per-operation deadline in seconds
    """

    backend: StoreBackend = Field(default=StoreBackend.ETCD)
    endpoints: list[str] = Field(default_factory=lambda: ["http://127.0.0.1:2379"])
    username: str | None = Field(default=None)
    password: str | None = Field(default=None)
    ca_file: str | None = Field(default=None)
    cert_file: str | None = Field(default=None)
    key_file: str | None = Field(default=None)
    dial_timeout: float = Field(default=5.0, gt=0)
    request_timeout: float = Field(default=10.0, gt=0)

    model_config = {"env_prefix": "ETCD_"}

    def cache_key(self) -> str:
        """Deterministic serialization used to deduplicate connections."""
        return self.model_dump_json()

    def validate_config(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.backend == StoreBackend.ETCD:
            if not self.endpoints:
                raise ValueError("ETCD_ENDPOINTS is required when backend=etcd")
            if bool(self.username) != bool(self.password):
                raise ValueError("ETCD_USERNAME and ETCD_PASSWORD must be set together")
        if self.key_file and not self.cert_file:
            raise ValueError("ETCD_CERT_FILE is required when ETCD_KEY_FILE is set")

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Store configuration loaded",
            extra={
                "backend": self.backend.value,
                "endpoints": self.endpoints,
                "auth": bool(self.username),
                "tls": bool(self.ca_file or self.cert_file),
                "request_timeout": self.request_timeout,
            },
        )
