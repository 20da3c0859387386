"""Platform enumeration, like flake-utils' ``eachDefaultSystem``.

A system is an opaque identifier string ("x86_64-linux"); nothing here
parses it. Every output is produced once per system.
"""

from typing import Callable, Iterable, TypeVar

from flakepkgs.errors import ConfigurationError

T = TypeVar("T")

# flake-utils lib.defaultSystems
DEFAULT_SYSTEMS = (
    "aarch64-linux",
    "aarch64-darwin",
    "x86_64-darwin",
    "x86_64-linux",
)


def enumerate_systems(systems: Iterable[str] | None = None) -> tuple[str, ...]:
    """Systems to generate outputs for, duplicates dropped.

    Returns a tuple so callers can iterate it as often as they like.
    """
    if systems is None:
        return DEFAULT_SYSTEMS
    if isinstance(systems, str):
        raise ConfigurationError(f"systems must be a list, not the string {systems!r}")
    seen: dict[str, None] = {}
    for system in systems:
        if not isinstance(system, str) or not system.strip():
            raise ConfigurationError(f"invalid system identifier: {system!r}")
        seen.setdefault(system, None)
    return tuple(seen)


def each_system(fn: Callable[[str], T], systems: Iterable[str] | None = None) -> dict[str, T]:
    """``{system: fn(system)}`` for every enumerated system."""
    return {system: fn(system) for system in enumerate_systems(systems)}
