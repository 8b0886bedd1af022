"""DuckDB-backed progress marker (resume tracker).

The marker stores, per pipeline name, the last block height whose records
were committed. `commit` writes a block's records and advances the marker in
one transaction, so the marker never runs ahead of the data and a failed
write leaves it where it was.

Each committed block also gets a success row in `processor_status`; a block
that fails gets a failure row written in its own transaction, after the
failed commit was rolled back.
"""

from __future__ import annotations

import logging

import duckdb

from sfind.core.errors import IndexerError, ProcessingError
from sfind.core.interfaces import IProgressRepository, RecordWriter
from sfind.core.models import BlockStatus, ProgressMarker
from sfind.storage import sql_queries

logger = logging.getLogger(__name__)


class ProgressTracker(IProgressRepository):
    """Read/write resume state through one store connection."""

    def __init__(self, connection: duckdb.DuckDBPyConnection) -> None:
        self.connection = connection

    def get_marker(self, pipeline_name: str) -> ProgressMarker | None:
        try:
            row = self.connection.execute(sql_queries.SELECT_PROGRESS, [pipeline_name]).fetchone()
        except duckdb.Error as exc:
            raise ProcessingError(f"cannot read progress marker for {pipeline_name}: {exc}") from exc
        if row is None:
            return None
        name, last_height, cursor, updated_at = row
        return ProgressMarker(pipeline_name=name, last_height=int(last_height), cursor=cursor, updated_at=updated_at)

    def get_start_height(self, pipeline_name: str) -> int:
        marker = self.get_marker(pipeline_name)
        if marker is None:
            logger.info("No progress marker for %s, starting from block 0", pipeline_name)
            return 0
        return marker.next_height

    def get_resume_cursor(self, pipeline_name: str) -> str | None:
        marker = self.get_marker(pipeline_name)
        return marker.cursor if marker else None

    def commit(
        self,
        pipeline_name: str,
        height: int,
        record_writer: RecordWriter,
        *,
        cursor: str | None = None,
    ) -> ProgressMarker:
        """Run `record_writer` and move the marker to `height` atomically."""
        con = self.connection
        con.begin()
        try:
            record_writer(con)
            current = con.execute(sql_queries.SELECT_PROGRESS, [pipeline_name]).fetchone()
            if current is not None and int(current[1]) >= height:
                raise ProcessingError(
                    f"progress marker for {pipeline_name} is at {current[1]}; refusing to move it to {height}"
                )
            con.execute(sql_queries.UPSERT_PROGRESS, [pipeline_name, height, cursor])
            con.execute(sql_queries.UPSERT_PROCESSOR_STATUS, [pipeline_name, height, True, None])
            con.commit()
        except IndexerError:
            con.rollback()
            raise
        except Exception as exc:
            con.rollback()
            raise ProcessingError(f"commit of block {height} for {pipeline_name} failed: {exc}") from exc
        return ProgressMarker(pipeline_name=pipeline_name, last_height=height, cursor=cursor)

    def record_failure(self, pipeline_name: str, height: int, details: str) -> BlockStatus:
        """Mark `height` as failed; leaves the progress marker untouched."""
        con = self.connection
        con.begin()
        try:
            con.execute(sql_queries.UPSERT_PROCESSOR_STATUS, [pipeline_name, height, False, details])
            con.commit()
        except duckdb.Error as exc:
            con.rollback()
            raise ProcessingError(f"cannot record failure of block {height} for {pipeline_name}: {exc}") from exc
        return BlockStatus(pipeline_name=pipeline_name, block_height=height, success=False, details=details)

    def get_block_status(self, pipeline_name: str, height: int) -> BlockStatus | None:
        row = self.connection.execute(sql_queries.SELECT_BLOCK_STATUS, [pipeline_name, height]).fetchone()
        if row is None:
            return None
        success, details = row
        return BlockStatus(pipeline_name=pipeline_name, block_height=height, success=bool(success), details=details)
