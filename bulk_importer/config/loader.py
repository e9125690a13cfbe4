from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from dotenv import load_dotenv
from jsonschema.exceptions import ValidationError

"""Configuration loading.

Responsibilities:
- Load YAML config (default config/import.yml); a missing default file means
  built-in defaults
- Validate against the bundled JSON schema (config_schema.json)
- Resolve store connection settings with environment precedence:
    1. variables from .env (loaded in override mode)
    2. variables already present in the process
    3. the YAML `store` / `database` sections
"""

__all__ = [
    "ConfigError",
    "DatabaseConfig",
    "StoreConfig",
    "ImportConfig",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
    "load_env_file",
    "resolve_dsn",
]

DEFAULT_CONFIG_PATH = Path("config/import.yml")
SCHEMA_PATH = Path(__file__).with_name("config_schema.json")

BACKENDS = ("supabase", "postgres", "memory")


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
class StoreConfig:
    backend: str = "supabase"
    url: str | None = None
    key: str | None = None


@dataclass(frozen=True)
class ImportConfig:
    store: StoreConfig = field(default_factory=StoreConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logs_directory: str = "./logs"
    preview_rows: int = 5
    entities: dict[str, dict[str, Any]] = field(default_factory=dict)

    def entity_overrides(self, name: str) -> dict[str, Any]:
        return dict(self.entities.get(name) or {})


def load_env_file(path: Path = Path(".env"), override: bool = True) -> bool:
    """Load .env with python-dotenv; .env values win over the process env."""
    if not path.exists():
        return False
    return load_dotenv(dotenv_path=path, override=override)


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: schema file missing/invalid, or data violates the schema
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        location = ".".join(str(p) for p in e.absolute_path)
        suffix = f" (at {location})" if location else ""
        raise ConfigError(f"config validation failed: {e.message}{suffix}") from e


def _env(name: str) -> str | None:
    value = os.getenv(name)
    return value if value else None


def _store_config(raw: Mapping[str, Any]) -> StoreConfig:
    backend = raw.get("backend", "supabase")
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        backend = "memory"
    return StoreConfig(
        backend=backend,
        url=_env("SUPABASE_URL") or raw.get("url"),
        key=_env("SUPABASE_KEY") or raw.get("key"),
    )


def load_config(path: Path | None = None) -> ImportConfig:
    """Load and validate the configuration.

    Parameters
    ----------
    path: explicit config file; it must exist. None means DEFAULT_CONFIG_PATH,
        which may be absent (defaults are used then).

    Raises
    ------
    ConfigError: missing explicit file, invalid YAML or schema violation
    """
    explicit = path is not None
    path = path if path is not None else DEFAULT_CONFIG_PATH
    data: dict[str, Any] = {}
    if path.exists():
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid yaml: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"config root must be a mapping: {path}")
    elif explicit:
        raise ConfigError(f"config file not found: {path}")

    _validate_config_schema(data)

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
        store=_store_config(data.get("store") or {}),
        database=db,
        logs_directory=data.get("logs_directory", "./logs"),
        preview_rows=data.get("preview_rows", 5),
        entities=dict(data.get("entities") or {}),
    )


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """PostgreSQL DSN: DATABASE_URL / PGDSN, then PG* variables over YAML values."""
    dsn = _env("DATABASE_URL") or _env("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn
