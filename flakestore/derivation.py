"""Derivations: the unit handed to the external materialiser.

Serialised in ATerm, the same bytes ``nix derivation show`` reads back:

    Derive(
        [("out","/nix/store/...","","")],      # outputs
        [("/nix/store/...drv",["out"])],        # inputDrvs
        ["/nix/store/..."],                     # inputSrcs
        "x86_64-linux",                         # platform
        "/nix/store/...-cargo/bin/cargo",       # builder
        ["build"],                              # args
        [("key","value")]                       # env
    )

Output paths depend on the derivation hash while the derivation lists
its own outputs. ``hash_derivation_modulo`` breaks the loop by hashing a
copy with blank outputs and with each input .drv path replaced by that
input's own modular hash.

See: nix/src/libstore/derivations.cc
"""

from dataclasses import dataclass, field
from typing import Any

from flakestore.hash import sha256


@dataclass
class DerivationOutput:
    path: str
    hash_algo: str = ""
    hash_value: str = ""


@dataclass
class Derivation:
    outputs: dict[str, DerivationOutput] = field(default_factory=dict)
    input_drvs: dict[str, list[str]] = field(default_factory=dict)
    input_srcs: list[str] = field(default_factory=list)
    platform: str = ""
    builder: str = ""
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)


_ESCAPES = str.maketrans({"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t"})


def _q(s: str) -> str:
    return '"' + s.translate(_ESCAPES) + '"'


def _list(items) -> str:
    return "[" + ",".join(items) + "]"


def serialize(drv: Derivation) -> str:
    """ATerm text for ``drv``. Outputs, inputs and env are sorted; args keep order."""
    outputs = _list(
        f"({_q(name)},{_q(o.path)},{_q(o.hash_algo)},{_q(o.hash_value)})"
        for name, o in sorted(drv.outputs.items())
    )
    input_drvs = _list(
        f"({_q(path)},{_list(_q(o) for o in sorted(outs))})"
        for path, outs in sorted(drv.input_drvs.items())
    )
    input_srcs = _list(_q(s) for s in sorted(drv.input_srcs))
    args = _list(_q(a) for a in drv.args)
    env = _list(f"({_q(k)},{_q(v)})" for k, v in sorted(drv.env.items()))
    return (
        f"Derive({outputs},{input_drvs},{input_srcs},"
        f"{_q(drv.platform)},{_q(drv.builder)},{args},{env})"
    )


def hash_derivation_modulo(drv: Derivation, drv_hashes: dict[str, bytes] | None = None) -> bytes:
    """Modular hash of ``drv`` used to compute its output paths.

    ``drv_hashes`` maps every input .drv path to its own modular hash;
    a missing entry is an error since the result would not be stable.
    """
    drv_hashes = drv_hashes or {}
    masked_inputs = {}
    for path, outs in drv.input_drvs.items():
        if path not in drv_hashes:
            raise ValueError(f"missing hash for input derivation: {path}")
        masked_inputs[drv_hashes[path].hex()] = sorted(outs)

    masked = Derivation(
        outputs={n: DerivationOutput("", o.hash_algo, o.hash_value) for n, o in drv.outputs.items()},
        input_drvs=masked_inputs,
        input_srcs=list(drv.input_srcs),
        platform=drv.platform,
        builder=drv.builder,
        args=list(drv.args),
        env=dict(drv.env),
    )
    return sha256(serialize(masked).encode())


def to_json(drv: Derivation) -> dict[str, Any]:
    """The shape ``nix derivation show`` prints for one derivation."""
    return {
        "outputs": {k: {"path": v.path} for k, v in sorted(drv.outputs.items())},
        "inputDrvs": {k: sorted(v) for k, v in sorted(drv.input_drvs.items())},
        "inputSrcs": sorted(drv.input_srcs),
        "system": drv.platform,
        "builder": drv.builder,
        "args": list(drv.args),
        "env": dict(sorted(drv.env.items())),
    }
