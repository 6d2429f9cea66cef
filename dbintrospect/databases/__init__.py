"""Metadata dialects for multi-database support."""

from typing import Optional

from ..config import canonical_engine_name
from ..errors import UnsupportedEngineError
from .base import MetadataDialect
from .mssql import MssqlDialect
from .mysql import MysqlDialect
from .postgresql import PostgresqlDialect
from .sqlite import SqliteDialect

_DIALECTS = {
    "postgresql": PostgresqlDialect,
    "mysql": MysqlDialect,
    "mssql": MssqlDialect,
    "sqlite": SqliteDialect,
}

# Engines recognised by name that have no metadata dialect yet.
_UNSUPPORTED = {
    "oracle": "Oracle schema extraction is not yet supported",
}


def find_dialect(engine_name: str) -> Optional[MetadataDialect]:
    """Get the dialect for an engine name or alias, or None if there is none."""
    dialect_cls = _DIALECTS.get(canonical_engine_name(engine_name))
    if dialect_cls is None:
        return None
    return dialect_cls()


def get_dialect(engine_name: str) -> MetadataDialect:
    """
    Get the dialect for an engine name or alias.

    Args:
        engine_name: engine kind (e.g. postgresql, postgres, mysql, mariadb, mssql, sqlserver, sqlite).

    Raises:
        UnsupportedEngineError: the engine is unknown or has no dialect.
    """
    canonical = canonical_engine_name(engine_name)
    dialect = find_dialect(canonical)
    if dialect is None:
        raise UnsupportedEngineError(engine_name or "<blank>", _UNSUPPORTED.get(canonical, ""))
    return dialect


def supported_dialects() -> tuple:
    """Return tuple of supported dialect names."""
    return tuple(_DIALECTS.keys())


__all__ = ["MetadataDialect", "find_dialect", "get_dialect", "supported_dialects"]
