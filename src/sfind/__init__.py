from __future__ import annotations

from .api.run_indexer import run_indexer
from .core.config import IndexerConfig
from .core.errors import IndexerError
from .processors.registry import ProcessorRegistry, make_default_registry, make_registry

__version__ = "0.1.0"

__all__ = [
    "run_indexer",
    "IndexerConfig",
    "IndexerError",
    "ProcessorRegistry",
    "make_registry",
    "make_default_registry",
]
