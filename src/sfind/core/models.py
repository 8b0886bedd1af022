"""Core data models for the block stream pipeline.

This module defines:
- `BlockWindow`: half-open height range requested from the provider.
- `ResumeHint`: how a stream request is seeded (height or cursor, never both).
- `BlockEvent`: one decoded block handed from the reader to a processor.
- `StreamClosed`: terminal signal emitted once the provider ends the stream.
- `ProgressMarker`: durable resume state for one pipeline.
- `BlockStatus`: processing outcome recorded per block.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

ResumeMode = Literal["height", "cursor"]


@dataclass(frozen=True, slots=True)
class BlockWindow:
    """Half-open block range [start, end)."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError("window start must be >= 0")
        if self.end <= self.start:
            raise ValueError("window end must be greater than start")

    @classmethod
    def starting_at(cls, start: int, size: int) -> BlockWindow:
        return cls(start=start, end=start + size)

    def next(self) -> BlockWindow:
        """Window of the same span immediately following this one."""
        return BlockWindow(start=self.end, end=self.end + (self.end - self.start))

    def __len__(self) -> int:
        return self.end - self.start


@dataclass(frozen=True, slots=True)
class ResumeHint:
    """Stream seed: a start height or an opaque provider cursor."""

    mode: ResumeMode
    height: int | None = None
    cursor: str | None = None

    def __post_init__(self) -> None:
        if self.mode == "height" and (self.height is None or self.cursor is not None):
            raise ValueError("height resumption takes a height and no cursor")
        if self.mode == "cursor" and (self.cursor is None or self.height is not None):
            raise ValueError("cursor resumption takes a cursor and no height")

    @classmethod
    def from_height(cls, height: int) -> ResumeHint:
        return cls(mode="height", height=height)

    @classmethod
    def from_cursor(cls, cursor: str) -> ResumeHint:
        return cls(mode="cursor", cursor=cursor)


@dataclass(frozen=True, slots=True)
class StreamRequest:
    """One windowed stream request as sent to the endpoint."""

    window: BlockWindow
    output_module: str
    modules: list[dict]
    resume: ResumeHint

    def to_payload(self) -> dict:
        payload: dict = {
            "end_height": self.window.end,
            "output_module": self.output_module,
            "modules": self.modules,
        }
        if self.resume.mode == "cursor":
            payload["cursor"] = self.resume.cursor
        else:
            payload["start_height"] = self.window.start
        return payload


@dataclass(frozen=True, slots=True)
class BlockEvent:
    """A block of module output, ready for processing."""

    height: int
    payload: bytes
    cursor: str
    module_name: str


@dataclass(frozen=True, slots=True)
class StreamClosed:
    """Terminal reader output: the provider signalled end of stream."""

    windows: int
    refills: int


@dataclass(frozen=True, slots=True)
class ProgressMarker:
    """Last fully committed block for a named pipeline."""

    pipeline_name: str
    last_height: int
    cursor: str | None
    updated_at: datetime | None = None

    @property
    def next_height(self) -> int:
        return self.last_height + 1


@dataclass(frozen=True, slots=True)
class BlockStatus:
    """Processing outcome of one block: committed, or failed with details."""

    pipeline_name: str
    block_height: int
    success: bool
    details: str | None = None
