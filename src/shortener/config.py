"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All runtime settings in one dataclass, read once at startup.

=============================================================================
ENVIRONMENT VARIABLES
=============================================================================

    ┌──────────────────────┬───────────────┬───────────────────────────────┐
    │ Variable             │ Default       │ Meaning                       │
    ├──────────────────────┼───────────────┼───────────────────────────────┤
    │ BASIC_AUTH           │ (required)    │ username:password for POST    │
    │ SHORTENER_HOST       │ 127.0.0.1     │ bind address                  │
    │ SHORTENER_PORT       │ 8887          │ bind port (0 = ephemeral)     │
    │ SHORTENER_WORKERS    │ 16            │ max worker threads            │
    │ SHORTENER_TIMEOUT    │ 30            │ read timeout in seconds       │
    │ SHORTENER_LOG_LEVEL  │ INFO          │ DEBUG, INFO, WARNING, ...     │
    │ SHORTENER_LOG_FORMAT │ text          │ access log format: text, json │
    │ SHORTENER_BASE_URL   │ (none)        │ prefix for returned links     │
    └──────────────────────┴───────────────┴───────────────────────────────┘

    BASIC_AUTH=admin:s3cret SHORTENER_PORT=9000 python -m shortener

=============================================================================
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .auth import Credentials
from .exceptions import ConfigError


DEFAULT_PORT = 8887
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for the shortener server.

    Development:
        ServerConfig(credentials=Credentials.from_string("dev:dev"),
                     port=0, log_level="DEBUG")

    Production:
        ServerConfig.from_env()
    """

    # Network
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    backlog: int = 128
    buffer_size: int = 8192
    timeout: Optional[float] = 30.0

    # HTTP
    keep_alive: bool = True
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024

    # Threading
    min_workers: int = 4
    max_workers: int = 16
    queue_size: int = 100

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"

    # Shortener
    server_name: str = "shortener/1.0"
    base_url: Optional[str] = None
    realm: str = "shortener"
    credentials: Optional[Credentials] = field(default=None, repr=False)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """
        Build a config from environment variables.

        Args:
            environ: Mapping to read instead of os.environ.

        Raises:
            ConfigError: If BASIC_AUTH is missing or a number does not parse.
        """
        env = os.environ if environ is None else environ

        basic_auth = env.get("BASIC_AUTH")
        if not basic_auth:
            raise ConfigError("BASIC_AUTH must be set to username:password")

        try:
            port = int(env.get("SHORTENER_PORT", str(DEFAULT_PORT)))
            max_workers = int(env.get("SHORTENER_WORKERS", "16"))
            timeout = float(env.get("SHORTENER_TIMEOUT", "30"))
        except ValueError as e:
            raise ConfigError(f"Invalid numeric setting: {e}") from e

        return cls(
            host=env.get("SHORTENER_HOST", "127.0.0.1"),
            port=port,
            max_workers=max_workers,
            min_workers=min(4, max_workers),
            timeout=timeout,
            log_level=env.get("SHORTENER_LOG_LEVEL", "INFO"),
            log_format=env.get("SHORTENER_LOG_FORMAT", "text"),
            base_url=env.get("SHORTENER_BASE_URL") or None,
            credentials=Credentials.from_string(basic_auth),
        )

    def validate(self) -> None:
        """
        Check every value before anything binds a socket.

        Raises:
            ConfigError: On the first invalid value.
        """
        if not 0 <= self.port < 65536:
            raise ConfigError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ConfigError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ConfigError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ConfigError("queue_size must be >= 1")

        if self.buffer_size < 1024:
            raise ConfigError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError("timeout must be > 0")

        if self.keep_alive_timeout <= 0:
            raise ConfigError("keep_alive_timeout must be > 0")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigError(f"Unknown log level: {self.log_level}")

        if self.log_format not in LOG_FORMATS:
            raise ConfigError(f"Unknown log format: {self.log_format}")

        if self.credentials is None:
            raise ConfigError("credentials are required")
