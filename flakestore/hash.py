"""Digests and encodings used for content addressing.

Store paths, lock-file pins and SRI strings all start from a SHA-256
digest; this module holds the few transformations applied to it:

    sha256(data)            raw 32-byte digest
    compress_hash(d, 20)    XOR-fold to the 160-bit store path hash
    nix32(d)                Nix's reversed base32 rendering
    sri(d)                  "sha256-<base64>" as written in flake.lock
    parse_sri(s)            the digest back out of an SRI string

See: nix/src/libutil/hash.cc
"""

import base64
import binascii
import hashlib

NIX32_CHARS = "0123456789abcdfghijklmnpqrsvwxyz"  # no e, o, t, u


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def compress_hash(digest: bytes, size: int) -> bytes:
    """Fold ``digest`` down to ``size`` bytes.

    Byte i of the input is XOR'd into position ``i % size``, so every
    input byte still contributes (this is not truncation).
    """
    folded = bytearray(size)
    for i, b in enumerate(digest):
        folded[i % size] ^= b
    return bytes(folded)


def nix32(data: bytes) -> str:
    """Render bytes in Nix base32.

    Characters are emitted from the highest 5-bit group down to the
    lowest, which is why the result differs from RFC 4648 even after
    swapping alphabets. Length is ceil(len(data) * 8 / 5).
    """
    n = len(data)
    chars = []
    for i in reversed(range((n * 8 + 4) // 5)):
        bit = i * 5
        byte, shift = divmod(bit, 8)
        c = data[byte] >> shift
        if byte + 1 < n:
            c |= data[byte + 1] << (8 - shift)
        chars.append(NIX32_CHARS[c & 0x1F])
    return "".join(chars)


def sri(digest: bytes) -> str:
    """Subresource-integrity form of a SHA-256 digest."""
    return "sha256-" + base64.b64encode(digest).decode()


def parse_sri(value: str) -> bytes:
    """Digest of a ``sha256-<base64>`` string; raises ValueError otherwise."""
    algo, sep, encoded = value.partition("-")
    if algo != "sha256" or not sep:
        raise ValueError(f"not a sha256 SRI hash: {value!r}")
    try:
        digest = base64.b64decode(encoded, validate=True)
    except binascii.Error:
        raise ValueError(f"not a sha256 SRI hash: {value!r}") from None
    if len(digest) != 32 or sri(digest) != value:
        raise ValueError(f"not a sha256 SRI hash: {value!r}")
    return digest
