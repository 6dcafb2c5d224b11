"""Pydantic models for cctrack.

Provides validated configuration models.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator

from cctrack.core.content import PeerId
from cctrack.transport.endpoint import parse_socket_addr
from cctrack.utils.exceptions import ConfigurationError


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _validate_node_id(value: str) -> str:
    try:
        PeerId.from_str(value)
    except ValueError as e:
        msg = f"Invalid node id: {value!r}"
        raise ValueError(msg) from e
    return value


class NetworkConfig(BaseModel):
    """Network configuration."""

    connect_timeout: float = Field(
        default=10.0,
        gt=0.0,
        le=300.0,
        description="Timeout for connecting to a node, per address (seconds)",
    )
    read_timeout: float = Field(
        default=30.0,
        gt=0.0,
        le=3600.0,
        description="Timeout for a single read on a stream (seconds)",
    )
    bind_host: str | None = Field(
        default=None,
        description="Local address outgoing connections bind to (None picks by address family)",
    )
    bind_port: int = Field(
        default=0,
        ge=0,
        le=65535,
        description="Local port outgoing connections bind to (0 picks a free port)",
    )


class TrackerConfig(BaseModel):
    """Tracker configuration."""

    default_tracker: str | None = Field(
        default=None,
        description="Node id of the tracker used when none is given",
    )
    addresses: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Known addresses per node id, as host:port strings",
    )

    @field_validator("default_tracker")
    @classmethod
    def validate_default_tracker(cls, v):
        """Validate the default tracker node id."""
        if v is None:
            return v
        return _validate_node_id(v)

    @field_validator("addresses")
    @classmethod
    def validate_addresses(cls, v):
        """Validate node ids and host:port entries."""
        for node, addrs in v.items():
            _validate_node_id(node)
            for addr in addrs:
                try:
                    parse_socket_addr(addr)
                except ConfigurationError as e:
                    raise ValueError(e.message) from e
        return v


class IdentityConfig(BaseModel):
    """Local node identity."""

    node_id: str | None = Field(
        default=None,
        description="Node id of this endpoint, random when unset",
    )

    @field_validator("node_id")
    @classmethod
    def validate_node_id(cls, v):
        """Validate node id format."""
        if v is None:
            return v
        return _validate_node_id(v)


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Log level")
    log_file: str | None = Field(None, description="Log file path")
    structured_logging: bool = Field(default=True, description="Use structured logging")
    log_correlation_id: bool = Field(
        default=True,
        description="Include correlation IDs",
    )


class Config(BaseModel):
    """Main configuration model."""

    network: NetworkConfig = Field(
        default_factory=NetworkConfig,
        description="Network configuration",
    )
    tracker: TrackerConfig = Field(
        default_factory=TrackerConfig,
        description="Tracker configuration",
    )
    identity: IdentityConfig = Field(
        default_factory=IdentityConfig,
        description="Local identity",
    )
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Observability configuration",
    )
