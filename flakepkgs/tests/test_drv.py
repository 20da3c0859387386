"""Tests for derivation construction."""

import pytest

from flakepkgs.drv import _input_hashes, drv
from flakestore.derivation import hash_derivation_modulo
from flakestore.store_path import make_text_store_path


def _hello(**kw):
    args = dict(name="hello", builder="/bin/sh", system="x86_64-linux", args=["-c", "echo > $out"])
    args.update(kw)
    return drv(**args)


def test_paths():
    pkg = _hello()
    assert pkg.out.startswith("/nix/store/")
    assert pkg.out.endswith("-hello")
    assert pkg.drv_path.endswith("-hello.drv")
    assert str(pkg) == pkg.out


def test_deterministic():
    assert _hello().drv_path == _hello().drv_path


def test_system_changes_path():
    assert _hello().out != _hello(system="aarch64-darwin").out


def test_standard_env():
    pkg = _hello()
    assert pkg.drv.env["name"] == "hello"
    assert pkg.drv.env["system"] == "x86_64-linux"
    assert pkg.drv.env["out"] == pkg.out
    assert pkg.drv.env["outputs"] == "out"


def test_multiple_outputs():
    pkg = _hello(output_names=["out", "dev"])
    assert pkg.outputs["dev"].endswith("-hello-dev")


def test_dependency():
    dep = _hello(name="dep")
    pkg = _hello(deps=[dep])
    assert pkg.drv.input_drvs == {dep.drv_path: ["out"]}
    assert pkg.out != _hello().out


def test_dependency_change_propagates():
    a = _hello(deps=[_hello(name="dep", args=["a"])])
    b = _hello(deps=[_hello(name="dep", args=["b"])])
    assert a.out != b.out


def test_override():
    pkg = _hello()
    assert pkg.override(name="world").out.endswith("-world")


def test_closure_dependencies_first():
    leaf = _hello(name="leaf")
    mid = _hello(name="mid", deps=[leaf])
    top = _hello(name="top", deps=[mid, leaf])
    assert [p.name for p in top.closure()] == ["leaf", "mid", "top"]


def test_srcs_must_be_store_paths():
    with pytest.raises(ValueError, match="not a store path"):
        _hello(srcs=["/tmp/src"])


def test_srcs_are_references():
    src = make_text_store_path("hello.sh", b"echo hi\n")
    pkg = _hello(srcs=[src])
    assert pkg.drv.input_srcs == [src]
    assert pkg.drv_path != _hello().drv_path


def test_input_hash_keeps_output_paths_in_env():
    dep = _hello(name="dep")
    assert dep.drv.env["out"] == dep.out
    assert dep.drv.outputs["out"].path == dep.out
    hashes = _input_hashes([dep], {})
    assert hashes[dep.drv_path] == hash_derivation_modulo(dep.drv, {})
