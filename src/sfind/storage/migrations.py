"""Versioned schema migrations for the indexer store.

Migrations are applied in version order and recorded in `schema_migrations`.
Each migration runs in its own transaction together with its bookkeeping row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import duckdb

from sfind.core.errors import ProcessingError
from sfind.storage import sql_queries

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    """A single schema migration."""

    version: int
    description: str
    statements: tuple[str, ...]


MIGRATIONS: tuple[Migration, ...] = (
    Migration(1, "progress marker table", (sql_queries.CREATE_PROGRESS_TABLE,)),
    Migration(
        2,
        "block output tables",
        (
            sql_queries.CREATE_BLOCKS_TABLE,
            sql_queries.CREATE_TRANSACTIONS_TABLE,
            sql_queries.CREATE_EVENTS_TABLE,
        ),
    ),
    Migration(3, "block processing status", (sql_queries.CREATE_PROCESSOR_STATUS_TABLE,)),
)


def applied_versions(con: duckdb.DuckDBPyConnection) -> set[int]:
    con.execute(sql_queries.CREATE_SCHEMA_MIGRATIONS)
    return {row[0] for row in con.execute(sql_queries.SELECT_APPLIED_MIGRATIONS).fetchall()}


def pending_migrations(
    con: duckdb.DuckDBPyConnection,
    migrations: tuple[Migration, ...] = MIGRATIONS,
) -> list[Migration]:
    done = applied_versions(con)
    return sorted((m for m in migrations if m.version not in done), key=lambda m: m.version)


def run_migrations(
    con: duckdb.DuckDBPyConnection,
    migrations: tuple[Migration, ...] = MIGRATIONS,
) -> list[int]:
    """Apply pending migrations; return the versions applied by this call."""
    applied: list[int] = []
    for m in pending_migrations(con, migrations):
        con.begin()
        try:
            for stmt in m.statements:
                con.execute(stmt)
            con.execute(sql_queries.INSERT_MIGRATION, [m.version, m.description])
            con.commit()
        except duckdb.Error as exc:
            con.rollback()
            raise ProcessingError(f"migration V{m.version:03d} ({m.description}) failed: {exc}") from exc
        logger.info("Applied migration V%03d: %s", m.version, m.description)
        applied.append(m.version)
    if not applied:
        logger.info("Schema is up to date")
    return applied
