"""Store path computation.

Every descriptor this project hands to the materialiser is addressed by
a path of the form ``/nix/store/<hash>-<name>``, where ``<hash>`` is 32
nix32 characters derived from

    sha256("<type>:sha256:<hex inner hash>:/nix/store:<name>")

XOR-folded to 20 bytes. ``<type>`` says what the inner hash covers:

    text           sha256 of literal content (.drv files, Cargo.lock)
    source         NAR hash of an imported path (src = ./.)
    output:<name>  modular derivation hash (derivation outputs)

References are appended to ``text`` and ``source`` as ``:<path>``; with
none there is no trailing colon.

See: nix/src/libstore/store-api.cc
"""

from pathlib import Path

from flakestore.hash import compress_hash, nix32, sha256
from flakestore.nar import PathFilter, nar_hash

STORE_DIR = "/nix/store"
HASH_BYTES = 20


def make_store_path(type_prefix: str, inner_hash: bytes, name: str) -> str:
    fingerprint = f"{type_prefix}:sha256:{inner_hash.hex()}:{STORE_DIR}:{name}"
    digest = compress_hash(sha256(fingerprint.encode()), HASH_BYTES)
    return f"{STORE_DIR}/{nix32(digest)}-{name}"


def _with_refs(kind: str, references: list[str] | None) -> str:
    return ":".join([kind, *sorted(references or [])])


def make_text_store_path(name: str, content: bytes, references: list[str] | None = None) -> str:
    return make_store_path(_with_refs("text", references), sha256(content), name)


def make_source_store_path(name: str, nar_digest: bytes, references: list[str] | None = None) -> str:
    return make_store_path(_with_refs("source", references), nar_digest, name)


def make_output_path(drv_hash: bytes, output_name: str, name: str) -> str:
    """Path of one derivation output.

    ``out`` keeps the bare name, any other output gets ``-<output>``.
    """
    suffix = "" if output_name == "out" else f"-{output_name}"
    return make_store_path(f"output:{output_name}", drv_hash, name + suffix)


def path_to_store_path(
    path: str | Path,
    name: str | None = None,
    path_filter: PathFilter | None = None,
) -> str:
    """Where ``path`` would land if imported into the store.

    Nothing is copied; only the NAR hash is computed.
    """
    p = Path(path)
    return make_source_store_path(name or p.resolve().name, nar_hash(p, path_filter))


def is_store_path(path: str) -> bool:
    if not path.startswith(STORE_DIR + "/"):
        return False
    base = path[len(STORE_DIR) + 1:]
    digest, _, name = base.partition("-")
    return len(digest) == 32 and bool(name) and "/" not in base
