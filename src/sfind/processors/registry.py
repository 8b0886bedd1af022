"""Module-name dispatch for block processors.

Processors are registered against the module name whose output they
understand. Looking up an unregistered module is a configuration error,
never a silent no-op.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from sfind.core.errors import ConfigurationError
from sfind.core.interfaces import IBlockProcessor

ProcessorFactory = Callable[[], IBlockProcessor]


class ProcessorRegistry:
    """Mapping from module name to a (lazily built, then cached) processor."""

    def __init__(self) -> None:
        self._factories: dict[str, ProcessorFactory] = {}
        self._instances: dict[str, IBlockProcessor] = {}

    def register(self, module_name: str, factory: ProcessorFactory) -> None:
        if module_name in self._factories:
            raise ConfigurationError(f"a processor is already registered for module {module_name!r}")
        self._factories[module_name] = factory

    def module_names(self) -> list[str]:
        return sorted(self._factories)

    def __contains__(self, module_name: object) -> bool:
        return module_name in self._factories

    def get(self, module_name: str) -> IBlockProcessor:
        processor = self._instances.get(module_name)
        if processor is not None:
            return processor
        factory = self._factories.get(module_name)
        if factory is None:
            known = ", ".join(self.module_names()) or "none"
            raise ConfigurationError(f"no block processor registered for module {module_name!r} (known: {known})")
        processor = factory()
        self._instances[module_name] = processor
        return processor


def make_registry(entries: Iterable[tuple[str, ProcessorFactory]] = ()) -> ProcessorRegistry:
    reg = ProcessorRegistry()
    for name, factory in entries:
        reg.register(name, factory)
    return reg


def make_default_registry() -> ProcessorRegistry:
    """Registry with every processor shipped by sfind."""
    from sfind.processors.block_output import BlockOutputProcessor

    return make_registry([(BlockOutputProcessor.module_name, BlockOutputProcessor)])
