"""Core data models, configuration, errors, and interfaces.

This package provides:
- Data models (BlockWindow, ResumeHint, BlockEvent, StreamClosed, ProgressMarker, BlockStatus)
- Configuration (IndexerConfig)
- Fatal error hierarchy (IndexerError and subclasses)
"""

from sfind.core.config import IndexerConfig
from sfind.core.errors import (
    ConfigurationError,
    DecodeError,
    EndpointConnectionError,
    IndexerError,
    OrderingViolationError,
    ProcessingError,
)
from sfind.core.models import BlockEvent, BlockStatus, BlockWindow, ProgressMarker, ResumeHint, StreamClosed

__all__ = [
    "IndexerConfig",
    "ConfigurationError",
    "DecodeError",
    "EndpointConnectionError",
    "IndexerError",
    "OrderingViolationError",
    "ProcessingError",
    "BlockEvent",
    "BlockStatus",
    "BlockWindow",
    "ProgressMarker",
    "ResumeHint",
    "StreamClosed",
]
