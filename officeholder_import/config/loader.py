from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Import configuration loader.

- Load YAML (default config/import.yml)
- Validate against the bundled config_schema.json (unknown keys rejected)
- Apply defaults for every optional key
- Relative paths (reference_data, reports/logs directories) resolve against
  the config file's directory
"""

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "ConfigError",
    "DatabaseConfig",
    "ImportConfig",
    "load_config",
]

DEFAULT_CONFIG_PATH = Path("config/import.yml")
SCHEMA_PATH = Path(__file__).with_name("config_schema.json")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportConfig:
    reference_data: Path | None = None  # None -> PostgreSQL から読み込む
    reports_directory: Path = Path("./reports")
    logs_directory: Path = Path("./logs")
    suggestion_limit: int = 3
    lookup_timeout_ms: int = 5000
    database: DatabaseConfig = field(default_factory=DatabaseConfig)


def _validate_config_schema(data: Any) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: schema file missing or unreadable, or the data violates it.
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        where = "/".join(str(p) for p in e.absolute_path)
        prefix = f"{where}: " if where else ""
        raise ConfigError(f"config validation failed: {prefix}{e.message}") from e


def _resolve(base: Path, value: str) -> Path:
    p = Path(value).expanduser()
    return p if p.is_absolute() else base / p


def load_config(path: Path) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e

    _validate_config_schema(data)

    base = path.parent
    db_raw = data.get("database") or {}
    reference = data.get("reference_data")
    return ImportConfig(
        reference_data=_resolve(base, reference) if reference else None,
        reports_directory=_resolve(base, data.get("reports_directory", "./reports")),
        logs_directory=_resolve(base, data.get("logs_directory", "./logs")),
        suggestion_limit=data.get("suggestion_limit", 3),
        lookup_timeout_ms=data.get("lookup_timeout_ms", 5000),
        database=DatabaseConfig(
            host=db_raw.get("host"),
            port=db_raw.get("port"),
            user=db_raw.get("user"),
            password=db_raw.get("password"),
            database=db_raw.get("database"),
            dsn=db_raw.get("dsn"),
        ),
    )
