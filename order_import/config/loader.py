from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    CollectionNames,
    DatabaseConfig,
    DateWindow,
    ImportConfig,
    StoreLimits,
)

"""Config loader.

Responsibilities:
- Load YAML config (config/import.yml by default)
- Validate against config_schema.json (shipped next to this module)
- Apply defaults for every missing section / key
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/import.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: If the schema file is missing or invalid, or the config
            data fails schema validation (unknown keys, wrong types, ...).
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


def _build_dates(raw: dict[str, Any]) -> DateWindow:
    defaults = DateWindow()
    epoch = defaults.excel_epoch
    if raw.get("excel_epoch"):
        try:
            epoch = date.fromisoformat(raw["excel_epoch"])
        except ValueError as e:
            raise ConfigError(f"invalid dates.excel_epoch: {e}") from e
    window = DateWindow(
        excel_epoch=epoch,
        min_year=raw.get("min_year", defaults.min_year),
        max_year=raw.get("max_year", defaults.max_year),
    )
    if window.min_year > window.max_year:
        raise ConfigError("dates.min_year must not exceed dates.max_year")
    return window


def config_from_dict(data: dict[str, Any]) -> ImportConfig:
    """Build an ImportConfig from already-parsed config data."""
    # YAML は未クォートの日付を date に変換するため文字列へ戻す
    dates_raw = data.get("dates")
    if isinstance(dates_raw, dict) and isinstance(dates_raw.get("excel_epoch"), date):
        data = {**data, "dates": {**dates_raw, "excel_epoch": dates_raw["excel_epoch"].isoformat()}}

    _validate_config_schema(data)

    store = StoreLimits(**(data.get("store") or {}))
    collections = CollectionNames(**(data.get("collections") or {}))
    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return ImportConfig(
        store=store,
        dates=_build_dates(data.get("dates") or {}),
        hash_algorithm=(data.get("hashing") or {}).get("algorithm", "rolling"),
        collections=collections,
        database=db,
    )


def load_config(path: Path) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")
    return config_from_dict(data)
