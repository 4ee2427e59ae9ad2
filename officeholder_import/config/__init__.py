from __future__ import annotations

from .loader import ConfigError, DatabaseConfig, ImportConfig, load_config

__all__ = [
    "ConfigError",
    "DatabaseConfig",
    "ImportConfig",
    "load_config",
]
