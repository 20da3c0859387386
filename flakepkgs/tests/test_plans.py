"""Tests for both build plans and the dev shell assembler."""

from pathlib import Path

import pytest

from flakepkgs.artifact import PackageIdentity
from flakepkgs.crane import compose_generic_build
from flakepkgs.errors import ConfigurationError, InvalidIdentityError, LockFileMissingError
from flakepkgs.gluon import IDENTITY, registry
from flakepkgs.mk_shell import compose_dev_shell
from flakepkgs.rust_platform import compose_native_package_build
from flakepkgs.toolchain import select_toolchain
from flakestore.hash import sha256, sha256_hex, sri

GLUON_HASH = sri(sha256(b"gluon-0.18.0"))


@pytest.fixture
def tc():
    return select_toolchain("x86_64-linux", registry())


@pytest.fixture
def lock(tmp_path):
    p = tmp_path / "Cargo.lock"
    p.write_text("version = 3\n")
    return p


# --- Build Plan A (crane) ---


def test_generic_build(tc, tmp_path):
    spec = compose_generic_build(tmp_path, tc, ["git", "pkg-config", "openssl"])
    assert spec.src == tmp_path
    assert spec.toolchain is tc
    assert spec.native_deps == ("git", "pkg-config", "openssl")
    assert spec.identity is None
    assert spec.lock_file is None
    assert spec.builder == "crane"
    assert spec.system == "x86_64-linux"


def test_generic_build_defaults_to_no_deps(tc):
    assert compose_generic_build(".", tc).native_deps == ()


def test_generic_build_rejects_duplicates(tc):
    with pytest.raises(ConfigurationError, match="duplicate entry"):
        compose_generic_build(".", tc, ["git", "git"])


@pytest.mark.parametrize("deps", ["git", ["git", ""], ["git", None]])
def test_generic_build_rejects_malformed(tc, deps):
    with pytest.raises(ConfigurationError):
        compose_generic_build(".", tc, deps)


def test_generic_build_is_pure(tc):
    a = compose_generic_build("src", tc, ["openssl"])
    b = compose_generic_build("src", tc, ["openssl"])
    assert a == b


# --- Build Plan B (buildRustPackage) ---


def test_native_package_build(tc, tmp_path, lock):
    spec = compose_native_package_build(tmp_path, tc, IDENTITY, lock, output_hashes={"gluon-0.18.0": GLUON_HASH})
    assert spec.identity == PackageIdentity("gluon_language-server", "0.18.1-alpha.0")
    assert spec.lock_file.path == lock
    assert spec.lock_file.sha256 == sha256_hex(b"version = 3\n")
    assert spec.lock_file.output_hashes == {"gluon-0.18.0": GLUON_HASH}
    assert spec.lock_file.content == b"version = 3\n"
    assert spec.native_deps == ()
    assert spec.builder == "rust-platform"


def test_native_package_build_empty_version(tc, lock):
    with pytest.raises(InvalidIdentityError, match="version"):
        compose_native_package_build(".", tc, PackageIdentity("x", ""), lock)


@pytest.mark.parametrize("identity", [
    PackageIdentity("", "1.0"),
    PackageIdentity("a/b", "1.0"),
    PackageIdentity("x", "1.0\\2"),
])
def test_native_package_build_bad_identity(tc, lock, identity):
    with pytest.raises(InvalidIdentityError):
        compose_native_package_build(".", tc, identity, lock)


def test_native_package_build_missing_lock(tc, tmp_path):
    with pytest.raises(LockFileMissingError, match="Cargo.lock"):
        compose_native_package_build(".", tc, IDENTITY, tmp_path / "Cargo.lock")


def test_native_package_build_lock_is_directory(tc, tmp_path):
    with pytest.raises(LockFileMissingError):
        compose_native_package_build(".", tc, IDENTITY, tmp_path)


def test_native_package_build_no_lock(tc):
    with pytest.raises(LockFileMissingError):
        compose_native_package_build(".", tc, IDENTITY, None)


def test_native_package_build_rejects_bad_output_hash(tc, lock):
    with pytest.raises(ConfigurationError, match="SRI"):
        compose_native_package_build(".", tc, IDENTITY, lock, output_hashes={"gluon-0.18.0": "sha256-x"})


def test_native_package_build_is_hashable(tc, lock):
    a = compose_native_package_build(".", tc, IDENTITY, lock, output_hashes={"gluon-0.18.0": GLUON_HASH})
    b = compose_native_package_build(".", tc, IDENTITY, lock, output_hashes={"gluon-0.18.0": GLUON_HASH})
    assert a == b
    assert hash(a) == hash(b)


def test_both_plans_share_src(tc, tmp_path, lock):
    a = compose_generic_build(tmp_path, tc)
    b = compose_native_package_build(str(tmp_path), tc, IDENTITY, lock)
    assert a.src == b.src == Path(tmp_path)


# --- Dev shell ---


def test_dev_shell_dedupes(tc):
    shell = compose_dev_shell(tc, ["a", "b", "a"])
    assert shell.auxiliary_tools == ("a", "b")


def test_dev_shell_empty(tc):
    shell = compose_dev_shell(tc)
    assert shell.auxiliary_tools == ()
    assert shell.native_build_inputs == ("rust-minimal-toolchain",)


def test_dev_shell_inputs(tc):
    shell = compose_dev_shell(tc, ["rust-analyzer-nightly"])
    assert shell.native_build_inputs == ("rust-minimal-toolchain", "rust-analyzer-nightly")
    assert shell.system == "x86_64-linux"


@pytest.mark.parametrize("tools", ["rust-analyzer", ["rust-analyzer", ""], ["rust-analyzer", None]])
def test_dev_shell_rejects_malformed(tc, tools):
    with pytest.raises(ConfigurationError):
        compose_dev_shell(tc, tools)
