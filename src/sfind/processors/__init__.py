"""Block processors and module-name dispatch.

This package provides:
- ProcessorRegistry: module name -> processor, unknown names are errors
- BlockOutputProcessor: `block_to_block_output` -> blocks/transactions/events
"""

from sfind.processors.block_output import BlockOutput, BlockOutputProcessor, BlockOutputRecords
from sfind.processors.registry import ProcessorRegistry, make_default_registry, make_registry

__all__ = [
    "BlockOutput",
    "BlockOutputProcessor",
    "BlockOutputRecords",
    "ProcessorRegistry",
    "make_default_registry",
    "make_registry",
]
