"""SQLAlchemy-backed persistence for the ``users`` table."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    delete,
    func,
    insert,
    select,
    text,
)
from sqlalchemy.engine import Connection, Engine, Row
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from .config import DatabaseConfig
from .models import User

logger = logging.getLogger("lamp_demo.database")

NAME_MAX_LENGTH = 100
EMAIL_MAX_LENGTH = 100
# Upper bound of the signed INT primary key column on MySQL.
USER_ID_MAX = 2**31 - 1

metadata = MetaData()

users_table = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(NAME_MAX_LENGTH), nullable=False),
    Column("email", String(EMAIL_MAX_LENGTH), nullable=False),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

_DIALECT_LABELS = {
    "mysql": "MySQL",
    "mariadb": "MariaDB",
    "sqlite": "SQLite",
    "postgresql": "PostgreSQL",
}


class DatabaseUnavailableError(RuntimeError):
    """Raised when a connection to the store cannot be established."""


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _parse_datetime(value: object) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _engine_options(config: DatabaseConfig) -> Dict[str, object]:
    options: Dict[str, object] = {
        "pool_pre_ping": True,
        "pool_recycle": config.pool_recycle,
    }
    if not config.is_sqlite:
        options["pool_size"] = config.pool_size
    return options


class Database:
    """Pooled access to the relational store holding the users listing."""

    def __init__(self, config: DatabaseConfig, *, engine: Optional[Engine] = None) -> None:
        self._config = config
        if engine is None:
            engine = create_engine(config.url(), **_engine_options(config))
        self._engine = engine

    @property
    def config(self) -> DatabaseConfig:
        return self._config

    @property
    def engine(self) -> Engine:
        return self._engine

    def _target(self) -> str:
        if self._config.is_sqlite:
            return f"database file '{self._config.name}'"
        return f"database '{self._config.name}' on {self._config.host or 'localhost'}"

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        """Acquire a pooled connection for the caller's scope.

        The connection is returned to the pool on every exit path. Failure to
        reach the store raises :class:`DatabaseUnavailableError`.
        """

        try:
            conn = self._engine.connect()
        except DBAPIError as exc:
            logger.error("Unable to connect to %s: %s", self._config.describe(), exc.orig)
            raise DatabaseUnavailableError(f"could not connect to {self._target()}") from exc

        with conn:
            yield conn

    def initialize(self) -> None:
        """Create the ``users`` table if it does not already exist."""

        if self._config.is_sqlite and self._config.name != ":memory:":
            _ensure_directory(Path(self._config.name))
        try:
            metadata.create_all(self._engine)
        except DBAPIError as exc:
            raise DatabaseUnavailableError(f"could not initialise {self._target()}") from exc

    def dispose(self) -> None:
        self._engine.dispose()


# ----------------------------------------------------------------------
# Store operations
# ----------------------------------------------------------------------
def ping(conn: Connection) -> None:
    conn.execute(text("SELECT 1"))


def server_version(conn: Connection) -> str:
    """Return a display string for the store's server version."""

    label = _DIALECT_LABELS.get(conn.dialect.name, conn.dialect.name)
    info = conn.dialect.server_version_info
    if not info:
        return label
    return f"{label} {'.'.join(str(part) for part in info)}"


def list_users(conn: Connection) -> List[User]:
    rows = conn.execute(
        select(users_table).order_by(
            users_table.c.created_at.desc(),
            users_table.c.id.desc(),
        )
    ).fetchall()
    return [_row_to_user(row) for row in rows]


def count_users(conn: Connection) -> int:
    return int(conn.execute(select(func.count()).select_from(users_table)).scalar_one())


def get_user(conn: Connection, user_id: int) -> Optional[User]:
    row = conn.execute(select(users_table).where(users_table.c.id == user_id)).fetchone()
    if row is None:
        return None
    return _row_to_user(row)


def add_user(conn: Connection, name: str, email: str) -> User:
    """Insert a user and return the stored row."""

    try:
        result = conn.execute(insert(users_table).values(name=name, email=email))
        conn.commit()
    except SQLAlchemyError:
        conn.rollback()
        raise

    user_id = int(result.inserted_primary_key[0])
    user = get_user(conn, user_id)
    if user is None:
        raise RuntimeError("Failed to load user after creation")
    return user


def delete_user(conn: Connection, user_id: int) -> bool:
    """Delete a user by id, returning ``True`` when a row was removed."""

    try:
        result = conn.execute(delete(users_table).where(users_table.c.id == user_id))
        conn.commit()
    except SQLAlchemyError:
        conn.rollback()
        raise
    return result.rowcount > 0


def _row_to_user(row: Row) -> User:
    mapping = row._mapping
    return User(
        id=int(mapping["id"]),
        name=str(mapping["name"]),
        email=str(mapping["email"]),
        created_at=_parse_datetime(mapping["created_at"]),
    )


__all__ = [
    "EMAIL_MAX_LENGTH",
    "NAME_MAX_LENGTH",
    "USER_ID_MAX",
    "Database",
    "DatabaseUnavailableError",
    "add_user",
    "count_users",
    "delete_user",
    "get_user",
    "list_users",
    "metadata",
    "ping",
    "server_version",
    "users_table",
]
