"""Core package for the LAMP stack demo users page."""

from __future__ import annotations

from typing import Any

from .config import DatabaseConfig, load_config
from .database import Database, DatabaseUnavailableError


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the users page application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "Database",
    "DatabaseConfig",
    "DatabaseUnavailableError",
    "create_app",
    "load_config",
]
