"""Configuration management for the LAMP demo store connection."""
from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml
from sqlalchemy.engine import URL


DEFAULT_DRIVER = "mysql+pymysql"

_ENV_OVERRIDES = {
    "LAMP_DB_DRIVER": "driver",
    "LAMP_DB_HOST": "host",
    "LAMP_DB_PORT": "port",
    "LAMP_DB_USER": "user",
    "LAMP_DB_PASSWORD": "password",
    "LAMP_DB_NAME": "name",
    "LAMP_DB_CHARSET": "charset",
}


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings for the relational store holding ``users``."""

    driver: str = DEFAULT_DRIVER
    host: str = "localhost"
    port: Optional[int] = None
    user: str = "root"
    password: str = ""
    name: str = "lamp_demo"
    charset: str = "utf8mb4"
    pool_size: int = 5
    pool_recycle: int = 3600

    @property
    def is_sqlite(self) -> bool:
        return self.driver.split("+", 1)[0] == "sqlite"

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "DatabaseConfig":
        """Create a :class:`DatabaseConfig` from raw dictionary data."""
        known = {item.name for item in fields(DatabaseConfig)}
        unknown = set(data.keys()) - known
        if unknown:
            raise ValueError(f"Unknown database configuration fields: {', '.join(sorted(unknown))}")

        values: Dict[str, object] = {}
        if "driver" in data:
            values["driver"] = str(data["driver"]).strip()
        for key in ("host", "user", "name", "charset"):
            if key in data:
                values[key] = str(data[key])
        if data.get("password") is not None:
            values["password"] = str(data["password"])
        if data.get("port") is not None:
            values["port"] = _parse_int("port", data["port"])
        for key in ("pool_size", "pool_recycle"):
            if data.get(key) is not None:
                values[key] = _parse_int(key, data[key])

        config = replace(DatabaseConfig(), **values)

        if not config.driver:
            raise ValueError("Database driver must not be empty")
        if not config.name:
            raise ValueError("Database name must not be empty")

        if config.is_sqlite and config.name != ":memory:":
            raw_path = Path(config.name).expanduser()
            if not raw_path.is_absolute() and base_path is not None:
                raw_path = base_path / raw_path
            config = replace(config, name=str(raw_path.resolve(strict=False)))
        return config

    def url(self) -> URL:
        """Return the SQLAlchemy URL for this configuration."""
        if self.is_sqlite:
            return URL.create(self.driver, database=self.name)

        query: Dict[str, str] = {}
        if self.charset and self.driver.startswith("mysql"):
            query["charset"] = self.charset
        return URL.create(
            self.driver,
            username=self.user or None,
            password=self.password or None,
            host=self.host or None,
            port=self.port,
            database=self.name,
            query=query,
        )

    def describe(self) -> str:
        """Human readable target without credentials, suitable for logs."""
        return self.url().render_as_string(hide_password=True)


def _parse_int(key: str, value: object) -> int:
    try:
        parsed = int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Database configuration field '{key}' must be an integer") from exc
    if parsed < 0:
        raise ValueError(f"Database configuration field '{key}' must not be negative")
    return parsed


def load_database_config(config_path: Path) -> DatabaseConfig:
    """Load database settings from the ``database`` key of a YAML file."""
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    section = raw.get("database") if isinstance(raw, dict) else None
    if section is None:
        raise ValueError("Configuration file must define a 'database' section")
    if not isinstance(section, dict):
        raise ValueError("The 'database' section must be a mapping")
    return DatabaseConfig.from_dict(section, base_path=config_path.parent)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "database.yaml").resolve(strict=False)
    return candidate


def config_from_env(
    base: Optional[DatabaseConfig] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> DatabaseConfig:
    """Apply ``LAMP_DB_*`` environment overrides on top of ``base``."""
    env = os.environ if environ is None else environ
    config = base or DatabaseConfig()

    overrides: Dict[str, object] = {}
    for variable, key in _ENV_OVERRIDES.items():
        value = env.get(variable)
        if value is None:
            continue
        overrides[key] = value
    if not overrides:
        return config

    merged = {item.name: getattr(config, item.name) for item in fields(DatabaseConfig)}
    merged.update(overrides)
    return DatabaseConfig.from_dict(merged, base_path=Path.cwd())


def load_config(environ: Optional[Mapping[str, str]] = None) -> DatabaseConfig:
    """Build the process-wide configuration: YAML file first, then environment."""
    env = os.environ if environ is None else environ
    config_path = resolve_config_path(env.get("LAMP_DEMO_CONFIG"))
    base = load_database_config(config_path) if config_path.exists() else None
    return config_from_env(base, env)


__all__ = [
    "DEFAULT_DRIVER",
    "DatabaseConfig",
    "config_from_env",
    "load_config",
    "load_database_config",
    "resolve_config_path",
]
