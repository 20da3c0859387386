"""Build Plan A: crane's ``buildPackage`` with an overridden toolchain.

    craneLib = crane.lib.${system}.overrideToolchain toolchain;
    craneLib.buildPackage {
      src = ./.;
      buildInputs = with pkgs; [ git pkg-config openssl ];
    };

Crane works out the package name and version from Cargo.toml itself,
so the descriptor carries no identity and no lock file.
"""

from pathlib import Path
from typing import Sequence

from flakepkgs.artifact import BuildArtifactSpec
from flakepkgs.errors import ConfigurationError
from flakepkgs.toolchain import Toolchain

BUILDER = "crane"


def check_names(names: Sequence[str], what: str, *, allow_repeats: bool = False) -> tuple[str, ...]:
    """Validate an ordered list of non-empty names, distinct unless ``allow_repeats``."""
    if isinstance(names, (str, bytes)) or not isinstance(names, Sequence):
        raise ConfigurationError(f"{what} must be a list of names, got {names!r}")
    seen = set()
    for name in names:
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError(f"invalid entry in {what}: {name!r}")
        if name in seen and not allow_repeats:
            raise ConfigurationError(f"duplicate entry in {what}: {name!r}")
        seen.add(name)
    return tuple(names)


def compose_generic_build(
    src: str | Path,
    toolchain: Toolchain,
    native_deps: Sequence[str] = (),
) -> BuildArtifactSpec:
    """Descriptor for ``craneLib.buildPackage`` over ``src``.

    The result depends only on the arguments.
    """
    return BuildArtifactSpec(
        src=Path(src),
        toolchain=toolchain,
        builder=BUILDER,
        native_deps=check_names(native_deps, "native dependencies"),
    )
