"""DuckDB connection setup.

`DATABASE_URL` forms accepted:
- `duckdb:///absolute/path/index.duckdb`
- `duckdb://relative/path/index.duckdb`
- `duckdb://:memory:` or `:memory:`
- a bare filesystem path
"""

from __future__ import annotations

import logging
from pathlib import Path

import duckdb

from sfind.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

MEMORY = ":memory:"
_SCHEME = "duckdb://"


def resolve_database_path(database_url: str) -> str:
    """Return the DuckDB database path designated by a DATABASE_URL."""
    url = database_url.strip()
    if not url:
        raise ConfigurationError("empty database URL")
    if url.startswith(_SCHEME):
        path = url[len(_SCHEME):]
        if not path:
            raise ConfigurationError(f"database URL {database_url!r} has no path")
        return path
    if "://" in url:
        scheme = url.split("://", 1)[0]
        raise ConfigurationError(f"unsupported database scheme {scheme!r}; expected duckdb://")
    return url


def connect(database_url: str, *, threads: int = 4, memory_limit: str = "2GB") -> duckdb.DuckDBPyConnection:
    """Open the store connection held for the lifetime of the process."""
    path = resolve_database_path(database_url)
    if path != MEMORY:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    try:
        con = duckdb.connect(path)
        con.execute(f"PRAGMA threads={threads}")
        con.execute(f"PRAGMA memory_limit='{memory_limit}'")
    except duckdb.Error as exc:
        raise ConfigurationError(f"cannot open database {path}: {exc}") from exc
    logger.info("Opened database %s", path)
    return con
