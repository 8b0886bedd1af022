"""Package descriptor: the module graph a stream subscribes to.

A package is a JSON document listing named transform modules and their
inputs. The indexer selects one output module and sends it, together with
its transitive dependencies, with every stream request.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ValidationError

from sfind.core.errors import ConfigurationError, DecodeError


class ModuleInput(BaseModel):
    module: str | None = None  # another module of the package
    source: str | None = None  # raw chain source, e.g. "aptos.extractor.v1.Block"
    mode: Literal["get", "deltas"] = "get"


class Module(BaseModel):
    name: str
    kind: Literal["map", "store"]
    inputs: Sequence[ModuleInput] = ()
    output_type: str | None = None
    initial_block: int = 0
    binary_entrypoint: str | None = None

    def dependencies(self) -> list[str]:
        return [i.module for i in self.inputs if i.module]


class Package(BaseModel):
    version: int = 1
    network: str | None = None
    modules: Sequence[Module]

    def module_names(self) -> list[str]:
        return [m.name for m in self.modules]

    def get_module(self, name: str) -> Module:
        for m in self.modules:
            if m.name == name:
                return m
        raise ConfigurationError(f"module {name!r} not found in package (known: {', '.join(self.module_names())})")

    def module_graph(self, output_module: str) -> list[Module]:
        """Output module plus its transitive dependencies, dependencies first."""
        by_name = {m.name: m for m in self.modules}
        ordered: list[Module] = []
        visiting: set[str] = set()
        done: set[str] = set()

        def visit(name: str) -> None:
            if name in done:
                return
            if name in visiting:
                raise DecodeError(f"module graph has a cycle through {name!r}")
            visiting.add(name)
            for dep in by_name[name].dependencies():
                visit(dep)
            visiting.discard(name)
            done.add(name)
            ordered.append(by_name[name])

        self.get_module(output_module)
        visit(output_module)
        return ordered

    def request_modules(self, output_module: str) -> list[dict]:
        """Module graph serialized for stream requests."""
        return [m.model_dump(mode="json") for m in self.module_graph(output_module)]

    def validate_graph(self) -> None:
        names = self.module_names()
        if len(set(names)) != len(names):
            raise DecodeError("package declares duplicate module names")
        for m in self.modules:
            for dep in m.dependencies():
                if dep not in names:
                    raise DecodeError(f"module {m.name!r} depends on unknown module {dep!r}")
        for name in names:
            self.module_graph(name)


def read_package(path: Path | str) -> Package:
    """Load and validate a package descriptor file."""
    path = Path(path)
    try:
        content = path.read_bytes()
    except OSError as exc:
        raise DecodeError(f"cannot read package {path}: {exc}") from exc
    try:
        package = Package.model_validate_json(content)
    except ValidationError as exc:
        raise DecodeError(f"cannot decode package {path}: {exc.error_count()} validation error(s)") from exc
    package.validate_graph()
    return package
