"""
queries.py
----------

Read-side helpers over the indexer store, returned as pandas DataFrames for
inspection (CLI `status`, notebooks).
"""

import duckdb
import pandas as pd

from . import sql_queries


def fetch_progress(con: duckdb.DuckDBPyConnection) -> pd.DataFrame:
    """All progress markers, one row per pipeline.

    Args:
        con: Open store connection.

    Returns:
        DataFrame with pipeline_name, last_height, cursor, updated_at.
    """
    return con.execute(sql_queries.SELECT_ALL_PROGRESS).df()


def fetch_blocks(con: duckdb.DuckDBPyConnection, start: int, end: int) -> pd.DataFrame:
    """Block rows for heights in [start, end)."""
    return con.execute(sql_queries.SELECT_BLOCKS_RANGE, [start, end]).df()


def fetch_table_counts(con: duckdb.DuckDBPyConnection) -> dict[str, int]:
    """Row counts of the block output tables."""
    df = con.execute(sql_queries.SELECT_TABLE_COUNTS).df()
    return {k: int(v) for k, v in df.iloc[0].items()}


def fetch_last_failures(con: duckdb.DuckDBPyConnection) -> pd.DataFrame:
    """Most recent failed block per pipeline.

    Args:
        con: Open store connection.

    Returns:
        DataFrame with pipeline_name, block_height, details, updated_at.
    """
    return con.execute(sql_queries.SELECT_LAST_FAILURES).df()
