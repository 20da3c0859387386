"""Tests for toolchain selection."""

import pytest

from flakepkgs.errors import ConfigurationError, ToolchainUnavailableError, UnknownInputError
from flakepkgs.gluon import registry
from flakepkgs.inputs import InputRegistry, InputSource
from flakepkgs.systems import DEFAULT_SYSTEMS
from flakepkgs.toolchain import select_toolchain


def test_minimal_by_default():
    tc = select_toolchain("x86_64-linux", registry())
    assert tc.variant == "minimal"
    assert tc.system == "x86_64-linux"
    assert tc.components == ("rustc", "rust-std", "cargo")
    assert tc.provides("cargo") and tc.provides("rustc")
    assert not tc.provides("rustfmt")
    assert tc.source.name == "fenix"


@pytest.mark.parametrize("system", DEFAULT_SYSTEMS)
def test_deterministic(system):
    reg = registry()
    a = select_toolchain(system, reg)
    b = select_toolchain(system, reg)
    assert a == b
    assert a is not b


def test_unsupported_system():
    with pytest.raises(ToolchainUnavailableError, match="'riscv64-linux'"):
        select_toolchain("riscv64-linux", registry())


def test_system_independent_provider():
    reg = InputRegistry([InputSource("fenix", "github:nix-community/fenix")])
    assert select_toolchain("linux-x64", reg).system == "linux-x64"


def test_missing_provider():
    reg = InputRegistry([InputSource("nixpkgs", "nixpkgs/nixos-unstable")])
    with pytest.raises(UnknownInputError):
        select_toolchain("x86_64-linux", reg)


def test_unknown_variant():
    with pytest.raises(ConfigurationError, match="unknown toolchain variant"):
        select_toolchain("x86_64-linux", registry(), variant="nightly-huge")


def test_other_profiles():
    tc = select_toolchain("x86_64-linux", registry(), variant="default")
    assert tc.provides("cargo-clippy")
    assert tc.name == "rust-default-toolchain"


def test_toolchain_is_hashable():
    reg = registry()
    a = select_toolchain("x86_64-linux", reg)
    b = select_toolchain("x86_64-linux", reg)
    assert hash(a) == hash(b)
    assert len({a, b, select_toolchain("aarch64-darwin", reg)}) == 2
