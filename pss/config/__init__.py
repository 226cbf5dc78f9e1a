"""
PSS Configuration

Loads config.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    PSSConfig,
    LoggingConfig,
    ProviderConfig,
    ConsumerConfig,
    load_config,
)

__all__ = [
    "PSSConfig",
    "LoggingConfig",
    "ProviderConfig",
    "ConsumerConfig",
    "load_config",
]
