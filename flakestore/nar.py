"""NAR serialisation of a local source tree.

A flake's ``src = ./.`` is imported by NAR-hashing the working tree.
NAR drops timestamps, ownership and every permission bit except
executable, and sorts directory entries, so identical trees always hash
identically.

Every token is written as ``uint64_le(len) + bytes + zero pad to 8``:

    "nix-archive-1" "(" "type"
      "regular" ["executable" ""] "contents" <data>
    | "symlink" "target" <target>
    | "directory" { "entry" "(" "name" <n> "node" <node> ")" }
    ")"

``path_filter`` plays the role of ``builtins.path { filter = ...; }``:
entries for which it returns False are left out of the archive.

See: nix/src/libutil/archive.cc
"""

import os
import struct
from collections.abc import Callable
from pathlib import Path

from flakestore.hash import sha256

PathFilter = Callable[[Path], bool]


def _token(value: str | bytes) -> bytes:
    if isinstance(value, str):
        value = value.encode()
    pad = -len(value) % 8
    return struct.pack("<Q", len(value)) + value + b"\0" * pad


def nar_serialize(path: str | Path, path_filter: PathFilter | None = None) -> bytes:
    """Serialise ``path`` (file, symlink or directory) to NAR bytes."""
    out = [_token("nix-archive-1")]
    _node(Path(path), out, path_filter)
    return b"".join(out)


def _node(path: Path, out: list[bytes], path_filter: PathFilter | None) -> None:
    out.append(_token("("))
    out.append(_token("type"))

    if path.is_symlink():
        out += [_token("symlink"), _token("target"), _token(os.readlink(path))]
    elif path.is_file():
        out.append(_token("regular"))
        if os.access(path, os.X_OK):
            out += [_token("executable"), _token("")]
        out += [_token("contents"), _token(path.read_bytes())]
    elif path.is_dir():
        out.append(_token("directory"))
        for name in sorted(os.listdir(path)):
            child = path / name
            if path_filter is not None and not path_filter(child):
                continue
            out += [_token("entry"), _token("("), _token("name"), _token(name), _token("node")]
            _node(child, out, path_filter)
            out.append(_token(")"))
    else:
        raise ValueError(f"cannot archive {path}: not a file, symlink or directory")

    out.append(_token(")"))


def nar_hash(path: str | Path, path_filter: PathFilter | None = None) -> bytes:
    """SHA-256 of the NAR serialisation (``nix hash path``)."""
    return sha256(nar_serialize(path, path_filter))
