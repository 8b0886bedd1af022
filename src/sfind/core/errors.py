"""Fatal error types for the indexer.

Every error raised by the pipeline is fatal: nothing in the core retries.
Recovery is a supervisor restart that resumes from the progress marker.
Each error class carries the process exit code the CLI reports for it.
"""

from __future__ import annotations


class IndexerError(Exception):
    """Base class for all fatal indexer errors."""

    exit_code: int = 1


class ConfigurationError(IndexerError):
    """Invalid or missing configuration detected at startup."""

    exit_code = 2


class EndpointConnectionError(IndexerError):
    """Endpoint unreachable, authentication rejected, or stream dropped."""

    exit_code = 3


class DecodeError(IndexerError):
    """Malformed package file, stream message, or block payload."""

    exit_code = 4


class ProcessingError(IndexerError):
    """A block could not be turned into records or committed to the store."""

    exit_code = 5


class OrderingViolationError(IndexerError):
    """The stream delivered a height other than the expected next one."""

    exit_code = 6

    def __init__(self, *, expected: int, received: int) -> None:
        super().__init__(f"expected block {expected}, received block {received}")
        self.expected = expected
        self.received = received
