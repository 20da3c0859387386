"""Build artifact descriptors shared by both build plans."""

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from flakepkgs.toolchain import Toolchain


@dataclass(frozen=True)
class PackageIdentity:
    name: str
    version: str

    def __str__(self) -> str:
        return f"{self.name}-{self.version}"


@dataclass(frozen=True)
class LockFile:
    """A validated Cargo.lock reference.

    The file is never parsed here. ``content`` is the file as it was read
    during validation and ``sha256`` pins it; later steps use these rather
    than reading ``path`` again. ``output_hashes`` pins git dependencies
    the lock file alone cannot (``cargoLock.outputHashes``).
    """

    path: Path
    sha256: str
    content: bytes = field(default=b"", repr=False, compare=False)
    output_hashes: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "output_hashes", MappingProxyType(dict(self.output_hashes)))

    def __hash__(self) -> int:
        return hash((self.path, self.sha256, tuple(sorted(self.output_hashes.items()))))


@dataclass(frozen=True)
class BuildArtifactSpec:
    """One buildable output for one system.

    ``native_deps`` is always present; an empty tuple means "no extra
    libraries", never "unspecified". Plan A leaves ``identity`` and
    ``lock_file`` unset, Plan B requires both.
    """

    src: Path
    toolchain: Toolchain
    builder: str
    native_deps: tuple[str, ...] = ()
    identity: PackageIdentity | None = None
    lock_file: LockFile | None = None

    @property
    def system(self) -> str:
        return self.toolchain.system
