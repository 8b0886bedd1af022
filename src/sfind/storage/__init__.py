"""Storage components: DuckDB connection, migrations, and progress tracking.

This package provides:
- connect: open the store from a DATABASE_URL
- run_migrations: apply versioned schema migrations
- ProgressTracker: atomic record write + progress marker update
"""

from sfind.storage.database import connect
from sfind.storage.migrations import run_migrations
from sfind.storage.progress import ProgressTracker

__all__ = [
    "connect",
    "run_migrations",
    "ProgressTracker",
]
