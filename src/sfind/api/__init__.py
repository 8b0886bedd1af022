from sfind.api.run_indexer import run_indexer

__all__ = ["run_indexer"]
