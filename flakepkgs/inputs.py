"""Flake inputs and the ``follows`` graph between them.

Python counterpart of a flake's ``inputs`` attribute set:

    inputs = {
      crane = {
        url = "github:ipetkov/crane";
        inputs.nixpkgs.follows = "nixpkgs";
      };
      nixpkgs.url = "nixpkgs/nixos-unstable";
    };

becomes

    InputRegistry([
        InputSource("crane", "github:ipetkov/crane", follows={"nixpkgs": "nixpkgs"}),
        InputSource("nixpkgs", "nixpkgs/nixos-unstable"),
    ])

A ``follows`` entry tells an input to use the sibling input's copy of
one of its own dependencies, so nixpkgs is resolved once instead of
once per input that needs it. The follows relation is a DAG, checked
when the registry is built.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

from flakepkgs.errors import ConfigurationError, UnknownInputError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InputSource:
    """One named external source.

    ``follows`` maps the source's own dependency name to the sibling
    input that should stand in for it. ``systems`` is None for sources
    that are system independent, otherwise the platforms they provide
    packages for. ``follows`` is stored as a read-only mapping.
    """

    name: str
    url: str
    follows: Mapping[str, str] = field(default_factory=dict)
    systems: tuple[str, ...] | None = None

    def __post_init__(self):
        object.__setattr__(self, "follows", MappingProxyType(dict(self.follows)))
        if self.systems is not None:
            object.__setattr__(self, "systems", tuple(self.systems))

    def __hash__(self) -> int:
        return hash((self.name, self.url, tuple(sorted(self.follows.items())), self.systems))

    def supports(self, system: str) -> bool:
        return self.systems is None or system in self.systems


class InputRegistry:
    """Read-only mapping of input name -> InputSource."""

    def __init__(self, sources: Iterable[InputSource]):
        self._sources: dict[str, InputSource] = {}
        for src in sources:
            if src.name in self._sources:
                raise ConfigurationError(f"input {src.name!r} declared twice")
            self._sources[src.name] = src
        self._graph = self._build_graph()
        self._order = self._toposort()
        logger.debug("input registry: %s", ", ".join(self._order))

    def _build_graph(self) -> dict[str, tuple[str, ...]]:
        graph = {}
        for name, src in self._sources.items():
            for target in src.follows.values():
                if target not in self._sources:
                    raise UnknownInputError(target, referenced_by=name)
            graph[name] = tuple(sorted(set(src.follows.values())))
        return graph

    def _toposort(self) -> tuple[str, ...]:
        """Leaf-first order of the follows graph; raises on cycles."""
        order: list[str] = []
        state: dict[str, str] = {}  # name -> "visiting" | "done"

        def visit(name: str, path: list[str]) -> None:
            mark = state.get(name)
            if mark == "done":
                return
            if mark == "visiting":
                cycle = path[path.index(name):] + [name]
                raise ConfigurationError("follows cycle: " + " -> ".join(cycle))
            state[name] = "visiting"
            for target in self._graph[name]:
                visit(target, path + [name])
            state[name] = "done"
            order.append(name)

        for name in sorted(self._graph):
            visit(name, [])
        return tuple(order)

    def __contains__(self, name: object) -> bool:
        return name in self._sources

    def __iter__(self) -> Iterator[InputSource]:
        return iter(self._sources.values())

    def __len__(self) -> int:
        return len(self._sources)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._sources)

    def resolve(self, name: str) -> InputSource:
        try:
            return self._sources[name]
        except KeyError:
            raise UnknownInputError(name) from None

    @staticmethod
    def apply_overrides(source: InputSource, override_map: Mapping[str, str]) -> InputSource:
        """Copy of ``source`` with ``override_map`` merged into its follows.

        Keys in ``override_map`` win over existing entries.
        """
        if not override_map:
            return source
        return replace(source, follows={**source.follows, **override_map})

    def override(self, name: str, override_map: Mapping[str, str]) -> InputRegistry:
        """New registry with ``name``'s follows overridden and revalidated."""
        patched = self.apply_overrides(self.resolve(name), override_map)
        return InputRegistry(patched if s.name == name else s for s in self)

    def follows_graph(self) -> dict[str, tuple[str, ...]]:
        return dict(self._graph)

    def order(self) -> tuple[str, ...]:
        return self._order

    def unified_inputs(self, name: str) -> dict[str, InputSource]:
        """The sibling sources ``name``'s followed dependencies resolve to."""
        src = self.resolve(name)
        return {dep: self.resolve(target) for dep, target in sorted(src.follows.items())}
