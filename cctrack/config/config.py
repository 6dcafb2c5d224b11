"""Configuration management for cctrack.

Provides centralized configuration with TOML support, validation and
hierarchical loading from defaults → config file → environment. The CLI
applies `-v` and `--bind-port` on top of the loaded configuration.
"""

from __future__ import annotations

import json
import logging
import os
import secrets
from pathlib import Path
from typing import Any

import toml

from cctrack.core.content import PEER_ID_SIZE, PeerId
from cctrack.models import Config
from cctrack.transport.endpoint import AddressBook, Endpoint
from cctrack.utils.exceptions import ConfigurationError
from cctrack.utils.logging_config import setup_logging

# Global configuration instance
_config_manager: ConfigManager | None = None

# Environment variables mapped onto config paths
ENV_MAPPINGS: dict[str, str] = {
    # Network
    "CCTRACK_CONNECT_TIMEOUT": "network.connect_timeout",
    "CCTRACK_READ_TIMEOUT": "network.read_timeout",
    "CCTRACK_BIND_HOST": "network.bind_host",
    "CCTRACK_BIND_PORT": "network.bind_port",
    # Tracker
    "CCTRACK_DEFAULT_TRACKER": "tracker.default_tracker",
    # Identity
    "CCTRACK_NODE_ID": "identity.node_id",
    # Observability
    "CCTRACK_LOG_LEVEL": "observability.log_level",
    "CCTRACK_LOG_FILE": "observability.log_file",
    "CCTRACK_STRUCTURED_LOGGING": "observability.structured_logging",
    "CCTRACK_LOG_CORRELATION_ID": "observability.log_correlation_id",
}

# Values that must stay strings even when they look like numbers
_STRING_PATHS = frozenset(
    {
        "network.bind_host",
        "tracker.default_tracker",
        "identity.node_id",
        "observability.log_level",
        "observability.log_file",
    }
)


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_file: str | Path | None = None):
        """Initialize configuration manager.

        Args:
            config_file: Path to TOML config file. If None, searches for cctrack.toml

        """
        self.config_file = self._find_config_file(config_file)
        self.config = self._load_config()
        self._setup_logging()

    def _find_config_file(
        self,
        config_file: str | Path | None,
    ) -> Path | None:
        """Find configuration file in standard locations."""
        if config_file:
            return Path(config_file)

        # Search in current directory, then home directory
        search_paths = [
            Path.cwd() / "cctrack.toml",
            Path.home() / ".config" / "cctrack" / "cctrack.toml",
            Path.home() / ".cctrack.toml",
        ]

        for path in search_paths:
            if path.exists():
                return path

        return None

    def _load_config(self) -> Config:
        """Load configuration from file and environment."""
        config_data: dict[str, Any] = {}

        if self.config_file is not None:
            if not self.config_file.exists():
                msg = f"Config file not found: {self.config_file}"
                raise ConfigurationError(msg, {"path": str(self.config_file)})
            try:
                with open(self.config_file, encoding="utf-8") as f:
                    config_data.update(toml.load(f))
            except (OSError, toml.TomlDecodeError) as e:
                msg = f"Failed to load config file {self.config_file}: {e}"
                raise ConfigurationError(msg, {"path": str(self.config_file)}) from e

        # Apply environment overrides
        env_config = self._get_env_config()
        config_data = self._merge_config(config_data, env_config)

        try:
            return Config(**config_data)
        except Exception as e:
            msg = f"Invalid configuration: {e}"
            raise ConfigurationError(msg) from e

    def _get_env_config(self) -> dict[str, Any]:
        """Get configuration from environment variables."""
        env_config: dict[str, Any] = {}

        def _parse_env_value(raw: str, path: str) -> bool | int | float | str:
            if path in _STRING_PATHS:
                return raw
            low = raw.lower()
            if low in {"true", "1", "yes", "on"}:
                return True
            if low in {"false", "0", "no", "off"}:
                return False
            try:
                if "." in raw:
                    return float(raw)
                return int(raw)
            except ValueError:
                return raw

        def _set_nested(d: dict[str, Any], path: str, value: Any) -> None:
            parts = path.split(".")
            cur = d
            for p in parts[:-1]:
                cur = cur.setdefault(p, {})
            cur[parts[-1]] = value

        for env_name, cfg_path in ENV_MAPPINGS.items():
            raw = os.getenv(env_name)
            if raw is None:
                continue
            _set_nested(env_config, cfg_path, _parse_env_value(raw, cfg_path))

        return env_config

    def _merge_config(
        self,
        base: dict[str, Any],
        override: dict[str, Any],
    ) -> dict[str, Any]:
        """Merge configuration dictionaries recursively."""
        result = base.copy()

        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value

        return result

    def _setup_logging(self) -> None:
        """Set up logging configuration."""
        setup_logging(self.config.observability)

    def export(self, fmt: str = "toml") -> str:
        """Export current configuration as a string in the given format.

        Args:
            fmt: one of "toml" or "json"

        """
        data = self.config.model_dump(mode="json", exclude_none=True)

        fmt = (fmt or "toml").lower()
        if fmt == "toml":
            try:
                return toml.dumps(data)
            except Exception as e:
                msg = f"Failed to export TOML: {e}"
                raise ConfigurationError(msg) from e
        if fmt == "json":
            return json.dumps(data, indent=2)
        msg = f"Unsupported export format: {fmt}"
        raise ConfigurationError(msg)

    def local_node_id(self) -> PeerId:
        """Node id of this endpoint.

        A random id is generated and kept for the lifetime of the manager
        when none is configured.
        """
        if self.config.identity.node_id is None:
            generated = PeerId(secrets.token_bytes(PEER_ID_SIZE))
            self.config.identity.node_id = str(generated)
            logging.getLogger(__name__).debug("Generated node id %s", generated)
            return generated
        return PeerId.from_str(self.config.identity.node_id)

    def default_tracker(self) -> PeerId | None:
        if self.config.tracker.default_tracker is None:
            return None
        return PeerId.from_str(self.config.tracker.default_tracker)

    def create_endpoint(self) -> Endpoint:
        """Endpoint configured with the local identity, timeouts and address book."""
        network = self.config.network
        return Endpoint(
            node_id=self.local_node_id(),
            address_book=AddressBook.from_strings(self.config.tracker.addresses),
            connect_timeout=network.connect_timeout,
            read_timeout=network.read_timeout,
            bind_host=network.bind_host,
            bind_port=network.bind_port,
        )


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager.config


def init_config(config_file: str | Path | None = None) -> ConfigManager:
    """Initialize the global configuration manager."""
    global _config_manager
    _config_manager = ConfigManager(config_file)
    return _config_manager


def reload_config() -> Config:
    """Reload configuration from file."""
    if _config_manager is None:
        msg = "Configuration not initialized"
        raise ConfigurationError(msg)

    _config_manager.config = _config_manager._load_config()  # noqa: SLF001
    _config_manager._setup_logging()  # noqa: SLF001
    return _config_manager.config


def set_config(new_config: Config) -> None:
    """Replace the global configuration at runtime.

    Reconfigures logging based on the new config.
    """
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager(None)
    _config_manager.config = new_config
    _config_manager._setup_logging()  # noqa: SLF001
