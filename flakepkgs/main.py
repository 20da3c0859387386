#!/usr/bin/env python3
"""flakeplan — compose and inspect the flake's build outputs."""

import argparse
import json
import logging
import sys

from flakepkgs.config import load_flake
from flakepkgs.errors import FlakeError
from flakepkgs.flake import DEFAULT, DEV_SHELL, ON_CRANE
from flakepkgs.instantiate import instantiate
from flakepkgs.systems import enumerate_systems
from flakestore import derivation
from flakestore.hash import nix32
from flakestore.nar import nar_hash
from flakestore.store_path import path_to_store_path

logger = logging.getLogger("flakeplan")


def _flake(args):
    return load_flake(args.config, args.root)


def _dump(obj) -> None:
    json.dump(obj, sys.stdout, indent=2)
    print()


def cmd_inputs(args):
    registry = _flake(args).registry
    _dump({
        "inputs": {
            s.name: {"url": s.url, "follows": dict(s.follows), "systems": s.systems}
            for s in registry
        },
        "order": list(registry.order()),
    })


def cmd_systems(args):
    for system in _flake(args).systems:
        print(system)


def cmd_show(args):
    flake = _flake(args)
    if args.system:
        flake.systems = enumerate_systems(args.system)
    result = flake.outputs()

    failures = [
        {"system": f.system, "output": f.output, "error": str(f.error)} for f in result.failures
    ]
    shown = {"packages": {}, "devShells": {}}
    for system, packages in sorted(result.packages.items()):
        shown["packages"][system] = _describe_all(packages, system, flake, failures)
    for system, shells in sorted(result.dev_shells.items()):
        shown["devShells"][system] = _describe_all(shells, system, flake, failures, DEV_SHELL)
    shown["failures"] = failures
    _dump(shown)
    if failures:
        sys.exit(1)


def _describe_all(specs, system, flake, failures, output=None):
    """Instantiate each descriptor; one that fails becomes a failure entry."""
    described = {}
    for name, spec in sorted(specs.items()):
        try:
            pkg = instantiate(spec, flake.registry)
        except FlakeError as e:
            logger.warning("%s.%s failed: %s", system, output or name, e)
            failures.append({"system": system, "output": output or name, "error": str(e)})
            continue
        described[name] = {"name": pkg.name, "drvPath": pkg.drv_path, "outputs": pkg.outputs}
    return described


def cmd_drv_show(args):
    flake = _flake(args)
    result = flake.system_outputs(args.system)
    if args.output == DEV_SHELL:
        spec = result.dev_shells.get(args.system, {}).get(DEFAULT)
    else:
        spec = result.packages.get(args.system, {}).get(args.output)
    if spec is None:
        result.raise_for_failures()
    pkg = instantiate(spec, flake.registry)
    _dump({pkg.drv_path: derivation.to_json(pkg.drv)})


def cmd_hash_path(args):
    h = nar_hash(args.path)
    print(f"sha256:{nix32(h) if args.base32 else h.hex()}")


def cmd_store_path(args):
    print(path_to_store_path(args.path, args.name))


def main():
    parser = argparse.ArgumentParser(prog="flakeplan", description="Compose the flake's build outputs")
    parser.add_argument("--config", help="flake configuration (.toml or .json)")
    parser.add_argument("--root", help="directory relative paths resolve against")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    sub = parser.add_subparsers(dest="command")

    p = sub.add_parser("inputs", help="Show inputs and their follows graph")
    p.set_defaults(func=cmd_inputs)

    p = sub.add_parser("systems", help="List the systems outputs are generated for")
    p.set_defaults(func=cmd_systems)

    p = sub.add_parser("show", help="Compose every output and show its derivation paths")
    p.add_argument("--system", action="append", help="Only this system (repeatable)")
    p.set_defaults(func=cmd_show)

    p = sub.add_parser("drv-show", help="Show one output's derivation as JSON")
    p.add_argument("output", choices=[ON_CRANE, DEFAULT, DEV_SHELL])
    p.add_argument("--system", required=True)
    p.set_defaults(func=cmd_drv_show)

    p = sub.add_parser("hash-path", help="NAR hash of a path")
    p.add_argument("path")
    p.add_argument("--base32", action="store_true")
    p.set_defaults(func=cmd_hash_path)

    p = sub.add_parser("store-path", help="Store path a local path would be imported at")
    p.add_argument("path")
    p.add_argument("--name", help="Override the store name")
    p.set_defaults(func=cmd_store_path)

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose > 1 else logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if not args.command:
        parser.print_help()
        sys.exit(1)
    try:
        args.func(args)
    except FlakeError as e:
        logger.error("%s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
