"""Block stream orchestrator: resume → stream → process → commit.

This module holds the application-layer loop. It depends only on the
interfaces in `sfind.core.interfaces` and does not open connections or
manage their lifecycle; see `sfind.api.run_indexer` for the wiring.

Loop contract:
- start at the tracker's start height (0 for a new pipeline);
- every event must carry exactly the expected next height;
- each block is decoded, written and committed with its progress marker
  as one unit before the next event is read;
- any error is fatal and propagates after being logged with context; the
  block it happened at is recorded as failed;
- a shutdown request is honoured between blocks only.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Literal

from sfind.core.constants import DEFAULT_WINDOW_SIZE
from sfind.core.errors import IndexerError, OrderingViolationError
from sfind.core.interfaces import IBlockProcessor, IProgressRepository, IStreamEndpoint
from sfind.core.models import BlockEvent, ProgressMarker, ResumeMode, StreamClosed
from sfind.processors.registry import ProcessorRegistry
from sfind.streaming.reader import WindowedStreamReader

logger = logging.getLogger(__name__)

StopReason = Literal["end_of_stream", "shutdown"]

LOG_EVERY_BLOCKS = 100


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


@dataclass(kw_only=True)
class RunStats:
    """Counters for one orchestrator run."""

    start_height: int
    blocks_processed: int = 0
    rows_written: int = 0
    last_height: int | None = None
    windows: int = 0
    refills: int = 0


@dataclass(kw_only=True)
class RunOutput:
    """High-level output of the orchestrator."""

    pipeline_name: str
    reason: StopReason
    stats: RunStats
    marker: ProgressMarker | None


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class IndexerOrchestrator:
    """Single sequential loop over one pipeline's block stream.

    Parameters
    ----------
    tracker : IProgressRepository
        Durable progress marker and atomic commit.
    endpoint : IStreamEndpoint
        Connected provider session.
    registry : ProcessorRegistry
        Module name → block processor.
    pipeline_name : str
        Key of the progress marker.
    module_name : str
        Output module subscribed to.
    modules : list[dict]
        Module graph sent with each stream request.
    window_size : int
        Blocks per stream window.
    resume_mode : {"height", "cursor"}
        How the stream is seeded. Cursor mode falls back to height when no
        cursor has been stored yet.
    """

    def __init__(
        self,
        *,
        tracker: IProgressRepository,
        endpoint: IStreamEndpoint,
        registry: ProcessorRegistry,
        pipeline_name: str,
        module_name: str,
        modules: list[dict],
        window_size: int = DEFAULT_WINDOW_SIZE,
        resume_mode: ResumeMode = "height",
    ) -> None:
        self.tracker = tracker
        self.endpoint = endpoint
        self.registry = registry
        self.pipeline_name = pipeline_name
        self.module_name = module_name
        self.modules = modules
        self.window_size = window_size
        self.resume_mode = resume_mode
        self._shutdown = asyncio.Event()

    def request_shutdown(self) -> None:
        """Stop after the block currently being committed, if any."""
        if not self._shutdown.is_set():
            logger.info("Shutdown requested for pipeline %s", self.pipeline_name)
        self._shutdown.set()

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown.is_set()

    async def _resume_point(self) -> tuple[int, str | None]:
        """Start height and optional cursor, from a single marker read."""
        marker = await asyncio.to_thread(self.tracker.get_marker, self.pipeline_name)
        if marker is None:
            logger.info("No progress marker for %s, starting from block 0", self.pipeline_name)
            return 0, None
        if self.resume_mode != "cursor":
            return marker.next_height, None
        if marker.cursor is None:
            logger.info("No stored cursor for %s, resuming by height", self.pipeline_name)
        return marker.next_height, marker.cursor

    async def _next_or_shutdown(
        self, events: AsyncIterator[BlockEvent | StreamClosed]
    ) -> BlockEvent | StreamClosed | None:
        """Next reader item, or None when shutdown wins the race."""
        if self._shutdown.is_set():
            return None

        async def pull() -> BlockEvent | StreamClosed | None:
            try:
                return await anext(events)
            except StopAsyncIteration:
                return None

        next_task = asyncio.create_task(pull())
        shutdown_task = asyncio.create_task(self._shutdown.wait())
        try:
            done, _ = await asyncio.wait({next_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            shutdown_task.cancel()
            if not next_task.done():
                next_task.cancel()
                await asyncio.gather(next_task, return_exceptions=True)
        if next_task in done:
            return next_task.result()
        return None

    async def _process_block(self, event: BlockEvent, processor: IBlockProcessor) -> int:
        rows = 0

        def write_records(connection) -> int:
            nonlocal rows
            rows = processor.write(processor.decode(event.payload, event.height), connection)
            return rows

        await asyncio.to_thread(
            self.tracker.commit,
            self.pipeline_name,
            event.height,
            write_records,
            cursor=event.cursor,
        )
        return rows

    async def _record_failure(self, height: int, exc: IndexerError) -> None:
        details = f"{type(exc).__name__}: {exc}"
        try:
            await asyncio.to_thread(self.tracker.record_failure, self.pipeline_name, height, details)
        except IndexerError as record_exc:
            # the original error is still raised by the caller
            logger.warning("Could not record failure of block %d for %s: %s", height, self.pipeline_name, record_exc)

    async def _consume(self, events: AsyncIterator[BlockEvent | StreamClosed], stats: RunStats) -> StopReason:
        height = stats.start_height
        while True:
            item = await self._next_or_shutdown(events)
            if item is None:
                return "shutdown"
            if isinstance(item, StreamClosed):
                logger.info("Stream consumed for module %s", self.module_name)
                return "end_of_stream"
            if item.height != height:
                raise OrderingViolationError(expected=height, received=item.height)

            logger.debug(
                "Consuming module output (module %s, block %d, cursor %s)",
                item.module_name,
                item.height,
                item.cursor,
            )
            processor = self.registry.get(item.module_name)
            rows = await self._process_block(item, processor)

            stats.blocks_processed += 1
            stats.rows_written += rows
            stats.last_height = height
            if stats.blocks_processed % LOG_EVERY_BLOCKS == 0:
                logger.info("Processed %d blocks, at block %d", stats.blocks_processed, height)
            height += 1

            if self._shutdown.is_set():
                return "shutdown"

    async def run(self) -> RunOutput:
        """Drive the stream until end of stream, shutdown, or a fatal error."""
        pipeline = self.pipeline_name
        self.registry.get(self.module_name)

        stats: RunStats | None = None
        reader: WindowedStreamReader | None = None
        events: AsyncIterator[BlockEvent | StreamClosed] | None = None
        try:
            height, cursor = await self._resume_point()
            stats = RunStats(start_height=height)
            logger.info("Starting pipeline %s (module %s) from block %d", pipeline, self.module_name, height)

            reader = WindowedStreamReader(
                self.endpoint,
                module_name=self.module_name,
                modules=self.modules,
                start_height=height,
                window_size=self.window_size,
                cursor=cursor,
            )
            events = reader.events()
            reason = await self._consume(events, stats)
        except IndexerError as exc:
            if stats is None:
                logger.error("Pipeline %s failed at startup: %s: %s", pipeline, type(exc).__name__, exc)
            else:
                failed_at = stats.start_height + stats.blocks_processed
                logger.error(
                    "Pipeline %s failed at block %d: %s: %s",
                    pipeline,
                    failed_at,
                    type(exc).__name__,
                    exc,
                )
                await self._record_failure(failed_at, exc)
            raise
        finally:
            if events is not None:
                await events.aclose()
            if reader is not None and stats is not None:
                stats.windows = reader.windows_opened
                stats.refills = reader.refills

        marker = await asyncio.to_thread(self.tracker.get_marker, pipeline)
        logger.info(
            "Pipeline %s stopped (%s) after %d blocks; marker at %s",
            pipeline,
            reason,
            stats.blocks_processed,
            marker.last_height if marker else "none",
        )
        return RunOutput(pipeline_name=pipeline, reason=reason, stats=stats, marker=marker)
