from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import Any, Protocol, runtime_checkable

import duckdb

from sfind.core.models import BlockStatus, ProgressMarker, StreamRequest

RecordWriter = Callable[[duckdb.DuckDBPyConnection], int]


# ---------------------------------------------------------------------------
# IStreamEndpoint
# ---------------------------------------------------------------------------

@runtime_checkable
class IStreamEndpoint(Protocol):
    """
    One streaming session with a block-data provider.

    Domain expectations:
    - The session is already connected and authenticated.
    - Each call to `open_stream` serves exactly one window request.
    - Raw messages are returned undecoded; interpreting them is the
      reader's job.
    """

    def open_stream(self, request: StreamRequest) -> AsyncIterator[dict[str, Any]]:
        """
        Return the raw messages for one window request, in provider order.

        Implementations:
        - HTTP/2 NDJSON client (`SubstreamsEndpoint`)
        - In-memory provider for testing
        """
        ...

    async def aclose(self) -> None:
        """Release the underlying connection."""
        ...


# ---------------------------------------------------------------------------
# IProgressRepository
# ---------------------------------------------------------------------------

@runtime_checkable
class IProgressRepository(Protocol):
    """
    Durable high-water mark per pipeline name.

    Domain expectations:
    - `commit` runs the record writer and the marker update as one atomic unit.
    - When the record writer fails, the marker is left untouched.
    - A failed block can be recorded without touching the marker.
    """

    def get_marker(self, pipeline_name: str) -> ProgressMarker | None:
        ...

    def get_start_height(self, pipeline_name: str) -> int:
        """Next height to process: 0 without a marker, else last committed + 1."""
        ...

    def get_resume_cursor(self, pipeline_name: str) -> str | None:
        ...

    def commit(
        self,
        pipeline_name: str,
        height: int,
        record_writer: RecordWriter,
        *,
        cursor: str | None = None,
    ) -> ProgressMarker:
        ...

    def record_failure(self, pipeline_name: str, height: int, details: str) -> BlockStatus:
        """Record that `height` failed, outside any record transaction."""
        ...


# ---------------------------------------------------------------------------
# IBlockProcessor
# ---------------------------------------------------------------------------

@runtime_checkable
class IBlockProcessor(Protocol):
    """
    Transform for one module's block output.

    Domain expectations:
    - `decode` is deterministic for a given payload.
    - `write` is replay-safe: writing the same records twice leaves the
      store as if written once.
    - Neither method retries.
    """

    module_name: str

    def decode(self, payload: bytes, height: int) -> Any:
        ...

    def write(self, records: Any, connection: duckdb.DuckDBPyConnection) -> int:
        """Write records through the given connection; return the row count."""
        ...
