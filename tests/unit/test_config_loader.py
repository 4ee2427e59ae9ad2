from __future__ import annotations

from pathlib import Path

import pytest

from officeholder_import.config.loader import ConfigError, load_config


def test_load_config_success(write_config: Path, temp_workdir: Path):
    cfg = load_config(write_config)
    assert cfg.reference_data == temp_workdir / "config" / "reference.yml"
    assert cfg.reports_directory == temp_workdir / "config" / ".." / "reports"
    assert cfg.suggestion_limit == 3
    assert cfg.lookup_timeout_ms == 2000
    assert cfg.database.host == "localhost"
    assert cfg.database.port == 5432
    assert cfg.database.dsn is None


def test_defaults_for_empty_file(temp_workdir: Path):
    p = temp_workdir / "config" / "import.yml"
    p.write_text("", encoding="utf-8")
    cfg = load_config(p)
    assert cfg.reference_data is None
    assert cfg.reports_directory == temp_workdir / "config" / "reports"
    assert cfg.logs_directory == temp_workdir / "config" / "logs"
    assert cfg.suggestion_limit == 3
    assert cfg.lookup_timeout_ms == 5000
    assert cfg.database.host is None


def test_missing_file(temp_workdir: Path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(temp_workdir / "config" / "missing.yml")


def test_invalid_yaml(temp_workdir: Path):
    p = temp_workdir / "config" / "import.yml"
    p.write_text("database: [unclosed", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(p)


@pytest.mark.parametrize(
    "text, fragment",
    [
        ("unknown_key: 1\n", "unknown_key"),
        ("suggestion_limit: 0\n", "suggestion_limit"),
        ("suggestion_limit: 11\n", "suggestion_limit"),
        ("lookup_timeout_ms: fast\n", "lookup_timeout_ms"),
        ("database:\n  port: not-a-port\n", "database/port"),
        ("database:\n  schema: public\n", "schema"),
        ("- just\n- a list\n", "object"),
    ],
)
def test_schema_violations(temp_workdir: Path, text: str, fragment: str):
    p = temp_workdir / "config" / "import.yml"
    p.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError, match="config validation failed") as exc:
        load_config(p)
    assert fragment in str(exc.value)
