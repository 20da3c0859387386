"""Turn composed descriptors into derivations.

This is the last step before the external materialiser takes over,
the ``nix-instantiate`` half of a build. Each descriptor becomes a
Package with deterministic .drv and output paths; nothing is fetched
or built.

    BuildArtifactSpec (crane)          -> <pname>-deps-<version>, <pname>-<version>
    BuildArtifactSpec (rust-platform)  -> cargo-vendor-dir, <name>-<version>
    DevEnvironmentSpec                 -> nix-shell (not buildable)

Packages from other inputs (openssl, rust-analyzer-nightly, ...) are
represented by reference derivations naming the input attribute they
come from, since evaluating nixpkgs is out of scope.
"""

import json
import logging
import tomllib
from pathlib import Path

from flakepkgs.artifact import BuildArtifactSpec
from flakepkgs.crane import BUILDER as CRANE
from flakepkgs.drv import Package, drv
from flakepkgs.errors import ConfigurationError
from flakepkgs.inputs import InputRegistry, InputSource
from flakepkgs.mk_shell import DevEnvironmentSpec
from flakepkgs.rust_platform import BUILDER as RUST_PLATFORM
from flakepkgs.toolchain import Toolchain
from flakestore.hash import sri
from flakestore.store_path import make_text_store_path, path_to_store_path

logger = logging.getLogger(__name__)

PACKAGE_SET = "nixpkgs"

# Left out of the imported source tree, like crane's cleanCargoSource.
IGNORED_SOURCE_NAMES = {".git", "target", ".direnv"}

# crane's fallback when Cargo.toml has no name/version
CRANE_DEFAULT_PNAME = "cargo-package"
CRANE_DEFAULT_VERSION = "0.0.1"


def _keep(path: Path) -> bool:
    return path.name not in IGNORED_SOURCE_NAMES and not path.name.startswith("result")


def source_path(src: Path) -> str:
    """Store path ``src = ./.`` would be imported at."""
    if not src.exists():
        raise ConfigurationError(f"source tree not found: {src}")
    return path_to_store_path(src, "source", path_filter=_keep)


def toolchain_package(toolchain: Toolchain) -> Package:
    """fenix's toolchain: a buildEnv joining the profile's components."""
    return drv(
        name=toolchain.name,
        builder="builtin:buildenv",
        system=toolchain.system,
        env={
            "components": " ".join(toolchain.components),
            "input": toolchain.source.url,
            "variant": toolchain.variant,
        },
    )


def input_package(source: InputSource, attr: str, system: str, overlays: tuple[str, ...] = ()) -> Package:
    """Reference to ``<source>.legacyPackages.<system>.<attr>``."""
    env = {
        "attrPath": f"legacyPackages.{system}.{attr}",
        "input": source.url,
    }
    if overlays:
        env["overlays"] = " ".join(overlays)
    return drv(name=attr, builder="builtin:input", system=system, env=env)


def crate_identity(src: Path) -> tuple[str, str]:
    """pname/version crane would read from ``src/Cargo.toml``."""
    manifest = src / "Cargo.toml"
    if not manifest.is_file():
        logger.warning("%s has no Cargo.toml, using crane's fallback name", src)
        return CRANE_DEFAULT_PNAME, CRANE_DEFAULT_VERSION
    try:
        data = tomllib.loads(manifest.read_text())
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"invalid {manifest}: {e}") from e
    pkg = data.get("package") or data.get("workspace", {}).get("package") or {}
    name = pkg.get("name", CRANE_DEFAULT_PNAME)
    version = pkg.get("version", CRANE_DEFAULT_VERSION)
    if not isinstance(version, str):
        # version.workspace = true with no workspace version
        version = CRANE_DEFAULT_VERSION
    return name, version


def _crane(spec: BuildArtifactSpec, registry: InputRegistry) -> Package:
    system = spec.system
    toolchain = toolchain_package(spec.toolchain)
    nixpkgs = registry.resolve(PACKAGE_SET)
    build_inputs = [input_package(nixpkgs, dep, system) for dep in spec.native_deps]
    src = source_path(spec.src)
    pname, version = crate_identity(spec.src)

    common_env = {
        "CARGO_PROFILE": "release",
        "buildInputs": " ".join(str(p) for p in build_inputs),
        "cargoExtraArgs": "--locked",
        "nativeBuildInputs": str(toolchain),
        "pname": pname,
        "src": src,
        "version": version,
    }
    cargo = f"{toolchain}/bin/cargo"

    deps_only = drv(
        name=f"{pname}-deps-{version}",
        builder=cargo,
        system=system,
        args=["build", "--profile", "release", "--locked"],
        env={**common_env, "pname": f"{pname}-deps", "doInstallCargoArtifacts": "1"},
        deps=[toolchain, *build_inputs],
        srcs=[src],
    )
    return drv(
        name=f"{pname}-{version}",
        builder=cargo,
        system=system,
        args=["build", "--profile", "release", "--locked"],
        env={**common_env, "cargoArtifacts": str(deps_only)},
        deps=[toolchain, deps_only, *build_inputs],
        srcs=[src],
    )


def _rust_package(spec: BuildArtifactSpec) -> Package:
    system = spec.system
    identity, lock = spec.identity, spec.lock_file
    toolchain = toolchain_package(spec.toolchain)
    src = source_path(spec.src)

    lock_path = make_text_store_path("Cargo.lock", lock.content)
    vendor = drv(
        name="cargo-vendor-dir",
        builder="builtin:import-cargo-lock",
        system=system,
        env={
            "lockFile": lock_path,
            "lockFileHash": sri(bytes.fromhex(lock.sha256)),
            "outputHashes": json.dumps(dict(lock.output_hashes), sort_keys=True),
        },
        srcs=[lock_path],
    )
    return drv(
        name=str(identity),
        builder=f"{toolchain}/bin/cargo",
        system=system,
        args=["build", "--release", "--frozen", "--offline"],
        env={
            "buildType": "release",
            "cargoDeps": str(vendor),
            "doCheck": "1",
            "nativeBuildInputs": str(toolchain),
            "pname": identity.name,
            "src": src,
            "version": identity.version,
        },
        deps=[toolchain, vendor],
        srcs=[src],
    )


def _shell(spec: DevEnvironmentSpec, registry: InputRegistry) -> Package:
    system = spec.system
    toolchain = toolchain_package(spec.toolchain)
    nixpkgs = registry.resolve(PACKAGE_SET)
    overlays = (spec.toolchain.source.name,)
    tools = [input_package(nixpkgs, t, system, overlays) for t in spec.auxiliary_tools]
    native = [toolchain, *tools]
    return drv(
        name="nix-shell",
        builder="/bin/sh",
        system=system,
        args=["-c", "echo 'This derivation is not meant to be built, aborting' >&2; exit 1"],
        env={
            "nativeBuildInputs": " ".join(str(p) for p in native),
            "phases": "nobuildPhase",
        },
        deps=native,
    )


def instantiate(descriptor: BuildArtifactSpec | DevEnvironmentSpec, registry: InputRegistry) -> Package:
    if isinstance(descriptor, DevEnvironmentSpec):
        pkg = _shell(descriptor, registry)
    elif descriptor.builder == CRANE:
        pkg = _crane(descriptor, registry)
    elif descriptor.builder == RUST_PLATFORM:
        pkg = _rust_package(descriptor)
    else:
        raise ConfigurationError(f"no instantiation for builder {descriptor.builder!r}")
    logger.debug("instantiated %s for %s: %s", pkg.name, descriptor.system, pkg.drv_path)
    return pkg
