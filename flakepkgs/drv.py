"""Derivation constructor for flake outputs.

    drv(name="hello", system="x86_64-linux", builder="/bin/sh",
        args=["-c", "echo hi > $out"])

computes output paths and the .drv store path from readable arguments
and returns a Package. This is the handoff format: a Package is exactly
what an external ``nix-store --realise`` would need, and it is fully
determined by its arguments.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from flakestore.derivation import (
    Derivation,
    DerivationOutput,
    hash_derivation_modulo,
    serialize,
)
from flakestore.store_path import is_store_path, make_output_path, make_text_store_path


def _input_hashes(deps: list[Package], acc: dict[str, bytes]) -> dict[str, bytes]:
    """Modular hashes of ``deps`` and everything below them, keyed by .drv path.

    Each input is hashed from its final .drv: hash_derivation_modulo
    blanks its outputs field, but the output paths in its env are kept.
    """
    for dep in deps:
        if dep.drv_path not in acc:
            _input_hashes(dep.deps, acc)
            acc[dep.drv_path] = hash_derivation_modulo(dep.drv, acc)
    return acc


@dataclass(frozen=True)
class Package:
    """A derivation with its output paths computed.

    ``str(pkg)`` is the ``out`` path, mirroring string interpolation of
    a derivation in Nix.
    """

    name: str
    drv: Derivation
    drv_path: str
    outputs: dict[str, str]
    deps: list[Package] = field(default_factory=list)
    _args: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def out(self) -> str:
        return self.outputs["out"]

    def __str__(self) -> str:
        return self.out

    def override(self, **kw) -> Package:
        return drv(**{**self._args, **kw})

    def closure(self) -> list[Package]:
        """This package and every dependency, dependencies first, no repeats."""
        seen: dict[str, Package] = {}

        def walk(pkg: Package) -> None:
            if pkg.drv_path in seen:
                return
            for dep in pkg.deps:
                walk(dep)
            seen[pkg.drv_path] = pkg

        walk(self)
        return list(seen.values())


def drv(
    name: str,
    builder: str,
    system: str,
    args: list[str] | None = None,
    env: dict[str, str] | None = None,
    output_names: list[str] | None = None,
    deps: list[Package] | None = None,
    srcs: list[str] | None = None,
) -> Package:
    """Build a Package.

    Args:
        name:         Store path name suffix.
        builder:      Builder executable, or a ``builtin:`` builder.
        system:       Platform the derivation is for.
        args:         Builder arguments.
        env:          Extra environment; name/builder/system/outputs are added.
        output_names: Outputs to produce (default ["out"]).
        deps:         Input derivations; all of their outputs are referenced.
        srcs:         Input source store paths.
    """
    args = list(args or [])
    env = dict(env or {})
    output_names = list(output_names or ["out"])
    deps = list(deps or [])
    srcs = sorted(set(srcs or []))
    for src in srcs:
        if not is_store_path(src):
            raise ValueError(f"input source is not a store path: {src!r}")
    orig = dict(
        name=name, builder=builder, system=system, args=args, env=env,
        output_names=output_names, deps=deps, srcs=srcs,
    )

    d = Derivation(
        outputs={n: DerivationOutput("") for n in output_names},
        input_drvs={dep.drv_path: sorted(dep.outputs) for dep in deps},
        input_srcs=srcs,
        platform=system,
        builder=builder,
        args=args,
        env=dict(env),
    )
    d.env.setdefault("name", name)
    d.env.setdefault("builder", builder)
    d.env.setdefault("system", system)
    d.env.setdefault("outputs", " ".join(output_names))
    for n in output_names:
        d.env[n] = ""

    drv_hash = hash_derivation_modulo(d, _input_hashes(deps, {}))

    outputs = {n: make_output_path(drv_hash, n, name) for n in output_names}
    for n, path in outputs.items():
        d.outputs[n] = DerivationOutput(path)
        d.env[n] = path

    refs = sorted(d.input_drvs) + sorted(srcs)
    drv_path = make_text_store_path(name + ".drv", serialize(d).encode(), refs)

    return Package(name=name, drv=d, drv_path=drv_path, outputs=outputs, deps=deps, _args=orig)
