"""Build Plan B: nixpkgs' ``buildRustPackage`` on a custom platform.

    (pkgs.makeRustPlatform { cargo = toolchain; rustc = toolchain; })
      .buildRustPackage {
        pname = "gluon_language-server";
        version = "0.18.1-alpha.0";
        src = ./.;
        cargoLock.lockFile = ./Cargo.lock;
        cargoLock.outputHashes = {};
      };

Unlike crane, the package identity is fixed here, and every crate
fetched later is pinned by the lock file.
"""

from pathlib import Path
from typing import Mapping

from flakepkgs.artifact import BuildArtifactSpec, LockFile, PackageIdentity
from flakepkgs.errors import ConfigurationError, InvalidIdentityError, LockFileMissingError
from flakepkgs.toolchain import Toolchain
from flakestore.hash import parse_sri, sha256_hex

BUILDER = "rust-platform"

_SEPARATORS = ("/", "\\")


def check_identity(identity: PackageIdentity) -> PackageIdentity:
    for label, value in (("name", identity.name), ("version", identity.version)):
        if not isinstance(value, str) or not value:
            raise InvalidIdentityError(f"package {label} must be a non-empty string, got {value!r}")
        if any(sep in value for sep in _SEPARATORS):
            raise InvalidIdentityError(f"package {label} {value!r} contains a path separator")
    return identity


def check_output_hashes(output_hashes: Mapping[str, str] | None) -> dict[str, str]:
    """``cargoLock.outputHashes``: crate name -> ``sha256-<base64>``."""
    checked = dict(output_hashes or {})
    for crate, value in checked.items():
        if not isinstance(crate, str) or not crate:
            raise ConfigurationError(f"invalid crate name in output hashes: {crate!r}")
        try:
            parse_sri(value if isinstance(value, str) else "")
        except ValueError:
            raise ConfigurationError(f"output hash for {crate!r} is not a sha256 SRI hash: {value!r}") from None
    return checked


def load_lock_file(path: str | Path | None, output_hashes: Mapping[str, str] | None = None) -> LockFile:
    if path is None:
        raise LockFileMissingError(None)
    p = Path(path)
    if not p.is_file():
        raise LockFileMissingError(p)
    try:
        content = p.read_bytes()
    except OSError:
        raise LockFileMissingError(p) from None
    return LockFile(
        path=p,
        sha256=sha256_hex(content),
        content=content,
        output_hashes=check_output_hashes(output_hashes),
    )


def compose_native_package_build(
    src: str | Path,
    toolchain: Toolchain,
    identity: PackageIdentity,
    lock_file: str | Path | None,
    *,
    output_hashes: Mapping[str, str] | None = None,
) -> BuildArtifactSpec:
    """Descriptor for ``buildRustPackage`` with a fixed identity and lock file.

    Raises InvalidIdentityError for an empty name or version or one with
    a path separator, LockFileMissingError if ``lock_file`` is not an
    existing file, and ConfigurationError for an output hash that is not
    a sha256 SRI string.
    """
    return BuildArtifactSpec(
        src=Path(src),
        toolchain=toolchain,
        builder=BUILDER,
        identity=check_identity(identity),
        lock_file=load_lock_file(lock_file, output_hashes),
    )
