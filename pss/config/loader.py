"""
PSS TOML Configuration Loader

Loads config.toml at startup with environment variable overrides
(dataclass + from_dict + from_file + apply_env per section).

Environment variable mapping:
    [logging] level       → PSS_LOG_LEVEL
    [logging] file        → PSS_LOG_FILE
    [provider] default_top_n → PSS_DEFAULT_TOP_N

Example:
    [logging]
    level = "DEBUG"

    [provider]
    default_top_n = 0

    [provider.validators]
    "cosmosvalcons1alice" = 50

    [provider.consumers."consumer-1"]
    top_n = 95
    running = true
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import DEFAULT_TOP_N, TOP_N_MAX, TOP_N_MIN
from ..exceptions import ConfigurationError
from ..logger import get_logger
from ..provider.types import ProviderState

logger = get_logger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _check_top_n(value: Any, where: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{where}: top_n must be an integer, got {value!r}")
    if not TOP_N_MIN <= value <= TOP_N_MAX:
        raise ConfigurationError(
            f"{where}: top_n must be in [{TOP_N_MIN}, {TOP_N_MAX}], got {value}"
        )
    return value


@dataclass
class LoggingConfig:
    """[logging] section."""
    level: str = "INFO"
    file: str = ""
    console: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        return cls(
            level=str(data.get("level", "INFO")).upper(),
            file=data.get("file", ""),
            console=data.get("console", True),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("PSS_LOG_LEVEL"):
            self.level = v.upper()
        if v := os.environ.get("PSS_LOG_FILE"):
            self.file = v

    def validate(self) -> None:
        if self.level not in _LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.level}")


@dataclass
class ConsumerConfig:
    """[provider.consumers.<chain_id>]."""
    chain_id: str
    top_n: Optional[int] = None  # None: use [provider] default_top_n
    running: bool = False

    @classmethod
    def from_dict(cls, chain_id: str, data: Dict[str, Any]) -> "ConsumerConfig":
        top_n = data.get("top_n")
        return cls(
            chain_id=chain_id,
            top_n=None if top_n is None else _check_top_n(top_n, f"consumer {chain_id}"),
            running=data.get("running", False),
        )


@dataclass
class ProviderConfig:
    """[provider] section."""
    default_top_n: int = DEFAULT_TOP_N
    validators: Dict[str, int] = field(default_factory=dict)
    consumers: Dict[str, ConsumerConfig] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProviderConfig":
        default_top_n = _check_top_n(data.get("default_top_n", DEFAULT_TOP_N), "provider")
        validators = {}
        for address, power in data.get("validators", {}).items():
            if isinstance(power, bool) or not isinstance(power, int) or power < 0:
                raise ConfigurationError(
                    f"validator {address}: power must be a non-negative integer, got {power!r}"
                )
            validators[address] = power

        consumers = {}
        for chain_id, consumer_data in data.get("consumers", {}).items():
            consumers[chain_id] = ConsumerConfig.from_dict(chain_id, consumer_data)

        return cls(default_top_n=default_top_n, validators=validators, consumers=consumers)

    def apply_env(self) -> None:
        if v := os.environ.get("PSS_DEFAULT_TOP_N"):
            try:
                self.default_top_n = _check_top_n(int(v), "PSS_DEFAULT_TOP_N")
            except ValueError:
                raise ConfigurationError(f"PSS_DEFAULT_TOP_N must be an integer, got {v!r}") from None

    def top_n_for(self, chain_id: str) -> int:
        consumer = self.consumers.get(chain_id)
        if consumer is None or consumer.top_n is None:
            return self.default_top_n
        return consumer.top_n

    def initial_state(self) -> ProviderState:
        """
        Build the provider state described by this section.

        The configured validator powers seed both the live powers and the
        first voting-power history snapshot.
        """
        return ProviderState.create(
            top_n_by_consumer={c.chain_id: self.top_n_for(c.chain_id) for c in self.consumers.values()},
            current_powers=self.validators,
            voting_power_history=[self.validators] if self.validators else [],
            running_consumers=[c.chain_id for c in self.consumers.values() if c.running],
        )


@dataclass
class PSSConfig:
    """Unified configuration: every section of config.toml plus env overrides."""
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PSSConfig":
        """Create PSSConfig from a parsed TOML dict."""
        return cls(
            logging=LoggingConfig.from_dict(data.get("logging", {})),
            provider=ProviderConfig.from_dict(data.get("provider", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "PSSConfig":
        """
        Load configuration from a TOML file.

        Args:
            config_path: Path to config.toml

        Returns:
            PSSConfig instance
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        with open(path, "rb") as f:
            try:
                raw = tomli.load(f)
            except tomli.TOMLDecodeError as e:
                raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.logging.apply_env()
        self.provider.apply_env()

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        self.logging.validate()
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "logging": {
                "level": self.logging.level,
                "file": self.logging.file,
                "console": self.logging.console,
            },
            "provider": {
                "default_top_n": self.provider.default_top_n,
                "validators": dict(sorted(self.provider.validators.items())),
                "consumers": {
                    chain_id: {"top_n": self.provider.top_n_for(chain_id), "running": c.running}
                    for chain_id, c in sorted(self.provider.consumers.items())
                },
            },
        }


def load_config(path: Optional[str] = None) -> PSSConfig:
    """
    Load PSS configuration.

    Resolution order:
        1. Explicit *path* argument
        2. PSS_CONFIG env var
        3. ./config.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("PSS_CONFIG", "config.toml")

    return PSSConfig.from_file(path)
