"""Orchestration of the resumable, ordered block ingestion loop.

This package provides:
- IndexerOrchestrator: resume, stream, process and commit blocks in order
- RunOutput / RunStats: result of one run
"""

from sfind.orchestration.orchestrator import IndexerOrchestrator, RunOutput, RunStats

__all__ = [
    "IndexerOrchestrator",
    "RunOutput",
    "RunStats",
]
