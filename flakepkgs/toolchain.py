"""Rust toolchain selection from the fenix input.

Equivalent of ``fenix.packages.${system}.minimal.toolchain``: fenix
publishes rustup-style profiles per system, and the flake always picks
``minimal`` (rustc, rust-std, cargo) for the smallest closure.
"""

import logging
from dataclasses import dataclass

from flakepkgs.errors import ConfigurationError, ToolchainUnavailableError
from flakepkgs.inputs import InputRegistry, InputSource

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "fenix"
DEFAULT_VARIANT = "minimal"

# profile -> (components, executables)
PROFILES = {
    "minimal": (
        ("rustc", "rust-std", "cargo"),
        ("cargo", "rustc", "rustdoc"),
    ),
    "default": (
        ("rustc", "rust-std", "cargo", "rust-docs", "rustfmt", "clippy"),
        ("cargo", "rustc", "rustdoc", "rustfmt", "cargo-fmt", "clippy-driver", "cargo-clippy"),
    ),
    "complete": (
        ("rustc", "rust-std", "cargo", "rust-docs", "rustfmt", "clippy",
         "rust-src", "rust-analyzer", "llvm-tools"),
        ("cargo", "rustc", "rustdoc", "rustfmt", "cargo-fmt", "clippy-driver",
         "cargo-clippy", "rust-analyzer"),
    ),
}


@dataclass(frozen=True)
class Toolchain:
    """A resolved toolchain for exactly one system.

    Equality is structural; two selections for the same system compare
    equal but are separate objects.
    """

    system: str
    variant: str
    components: tuple[str, ...]
    tools: frozenset[str]
    source: InputSource

    @property
    def name(self) -> str:
        return f"rust-{self.variant}-toolchain"

    def provides(self, tool: str) -> bool:
        return tool in self.tools


def select_toolchain(
    system: str,
    registry: InputRegistry,
    *,
    provider: str = DEFAULT_PROVIDER,
    variant: str = DEFAULT_VARIANT,
) -> Toolchain:
    """Resolve the ``variant`` toolchain of ``provider`` for ``system``.

    Raises UnknownInputError when ``provider`` is not an input and
    ToolchainUnavailableError when it has nothing for ``system``.
    """
    if variant not in PROFILES:
        raise ConfigurationError(
            f"unknown toolchain variant {variant!r} (expected one of {', '.join(PROFILES)})"
        )
    source = registry.resolve(provider)
    if not source.supports(system):
        raise ToolchainUnavailableError(provider, system)

    components, tools = PROFILES[variant]
    logger.debug("selected %s/%s toolchain for %s", provider, variant, system)
    return Toolchain(
        system=system,
        variant=variant,
        components=components,
        tools=frozenset(tools),
        source=source,
    )
