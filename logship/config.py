"""
Shipper configuration.

ShipperConfig validates every option once, at construction. Invalid options
raise ConfigurationError; nothing is ever queued with a bad configuration.
"""

import os
from collections.abc import Callable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError

DEFAULT_HOST = "listener.logz.io"
DEFAULT_PORTS = {"http": 8070, "https": 8071}


class ShipperConfig(BaseModel):
    """Options recognized by LogShipper."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    token: str = Field(min_length=1)
    protocol: Literal["http", "https"] = "http"
    host: str = Field(default=DEFAULT_HOST, min_length=1)
    port: int | None = Field(default=None, gt=0, lt=65536)
    send_interval: float = Field(default=10.0, gt=0)  # seconds
    buffer_size: int = Field(default=100, ge=1)
    number_of_retries: int = Field(default=3, ge=0)
    timeout: float | None = Field(default=None, gt=0)  # seconds, per attempt
    extra_fields: dict[str, Any] = Field(default_factory=dict)
    log_type: str = "generic"
    debug: bool = False
    on_result: Callable[[BaseException | None], None] | None = None

    @classmethod
    def create(cls, **options) -> "ShipperConfig":
        """Build a config, raising ConfigurationError instead of ValidationError."""
        if not options.get("token"):
            raise ConfigurationError("You are required to supply a token for logging.")
        try:
            return cls(**options)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigurationError(f"Invalid logship configuration: {problems}") from e

    @property
    def listener_port(self) -> int:
        """Explicit port, or 8070 for http and 8071 for https."""
        return self.port or DEFAULT_PORTS[self.protocol]

    @property
    def url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.listener_port}?token={self.token}"


# Environment variable -> option name
ENV_OPTIONS = {
    "LOGSHIP_TOKEN": "token",
    "LOGSHIP_PROTOCOL": "protocol",
    "LOGSHIP_HOST": "host",
    "LOGSHIP_PORT": "port",
    "LOGSHIP_TYPE": "log_type",
    "LOGSHIP_SEND_INTERVAL": "send_interval",
    "LOGSHIP_BUFFER_SIZE": "buffer_size",
    "LOGSHIP_RETRIES": "number_of_retries",
    "LOGSHIP_TIMEOUT": "timeout",
}


def options_from_env(environ: dict[str, str] | None = None) -> dict[str, str]:
    """Collect shipper options from LOGSHIP_* environment variables."""
    environ = os.environ if environ is None else environ
    return {option: environ[name] for name, option in ENV_OPTIONS.items() if environ.get(name)}
