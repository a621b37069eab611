from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.decision import OverrideAction
from ..models.preview import ConflictResolution

"""Config loader.

Responsibilities:
- Load YAML config (default config/import.yml)
- Validate against the bundled JSON schema
- Apply defaults (batch_size=200, timezone=UTC, table=clientes, ...)
- Load optional decisions files (row overrides + conflict resolutions)
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")

DEFAULT_CONFIG_PATH = Path("config/import.yml")


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
    source_file: str | None = None  # CLI --file takes precedence
    sheet: str | None = None  # None = first sheet with rows
    batch_size: int = 200
    timezone: str = "UTC"
    table: str = "clientes"
    mapping_store: str = "./config/mapping_models.json"
    mapping_model_capacity: int = 5
    audit_log_directory: str = "./logs"
    reports_directory: str = "./reports"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@dataclass(frozen=True)
class DecisionsConfig:
    """User decisions prepared outside the interactive flow."""
    overrides: dict[str, OverrideAction] = field(default_factory=dict)
    conflicts: dict[str, ConflictResolution] = field(default_factory=dict)


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"invalid yaml: expected a mapping at top level of {path}")
    return data


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: missing/invalid schema file or validation failure
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> ImportConfig:
    data = _read_yaml(path)
    _validate_config_schema(data)

    timezone = data.get("timezone", "UTC")
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"unknown timezone: {timezone}") from e

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    defaults = ImportConfig()
    return ImportConfig(
        source_file=data.get("source_file"),
        sheet=data.get("sheet"),
        batch_size=data.get("batch_size", defaults.batch_size),
        timezone=timezone,
        table=data.get("table", defaults.table),
        mapping_store=data.get("mapping_store", defaults.mapping_store),
        mapping_model_capacity=data.get("mapping_model_capacity", defaults.mapping_model_capacity),
        audit_log_directory=data.get("audit_log_directory", defaults.audit_log_directory),
        reports_directory=data.get("reports_directory", defaults.reports_directory),
        database=db,
    )


def load_decisions(path: Path) -> DecisionsConfig:
    """Load a decisions YAML file.

    Format:
        overrides:
          import-row-3: ignore
        conflicts:
          "account:123":
            winner: import-row-2
          "account:456":
            ignore_all: true
    """
    data = _read_yaml(path)
    overrides: dict[str, OverrideAction] = {}
    for row_id, action in (data.get("overrides") or {}).items():
        try:
            overrides[str(row_id)] = OverrideAction(str(action).strip().lower())
        except ValueError as e:
            raise ConfigError(f"invalid override for {row_id}: {action!r}") from e

    conflicts: dict[str, ConflictResolution] = {}
    for group_id, raw in (data.get("conflicts") or {}).items():
        if not isinstance(raw, dict):
            raise ConfigError(f"invalid resolution for {group_id}: expected a mapping")
        ignore_all = bool(raw.get("ignore_all", False))
        winner = raw.get("winner")
        if not ignore_all and not winner:
            raise ConfigError(f"invalid resolution for {group_id}: set winner or ignore_all")
        conflicts[str(group_id)] = ConflictResolution(
            winner_row_id=None if ignore_all else str(winner), ignore_all=ignore_all
        )
    return DecisionsConfig(overrides=overrides, conflicts=conflicts)
