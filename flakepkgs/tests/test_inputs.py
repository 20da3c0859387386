"""Tests for the input registry and its follows graph."""

import pytest

from flakepkgs.errors import ConfigurationError, UnknownInputError
from flakepkgs.gluon import INPUTS, registry
from flakepkgs.inputs import InputRegistry, InputSource


def test_resolve():
    reg = registry()
    crane = reg.resolve("crane")
    assert crane.url == "github:ipetkov/crane"
    assert crane.follows == {"flake-utils": "flake-utils", "nixpkgs": "nixpkgs"}


def test_resolve_unknown():
    with pytest.raises(UnknownInputError, match="'rust-overlay'"):
        registry().resolve("rust-overlay")


def test_unknown_input_is_a_key_error():
    with pytest.raises(KeyError):
        registry().resolve("nope")


def test_apply_empty_overrides_is_identity():
    reg = registry()
    for name in reg.names:
        assert reg.apply_overrides(reg.resolve(name), {}) == reg.resolve(name)


def test_apply_overrides_merges_and_wins():
    src = InputSource("crane", "github:ipetkov/crane", follows={"nixpkgs": "nixpkgs", "flake-utils": "flake-utils"})
    out = InputRegistry.apply_overrides(src, {"nixpkgs": "nixpkgs-stable", "rust-overlay": "fenix"})
    assert out.follows == {
        "nixpkgs": "nixpkgs-stable",
        "flake-utils": "flake-utils",
        "rust-overlay": "fenix",
    }
    # original untouched
    assert src.follows["nixpkgs"] == "nixpkgs"


def test_follows_must_reference_known_input():
    with pytest.raises(UnknownInputError, match="followed by 'crane'"):
        InputRegistry([InputSource("crane", "github:ipetkov/crane", follows={"nixpkgs": "nixpkgs"})])


def test_duplicate_input():
    with pytest.raises(ConfigurationError, match="declared twice"):
        InputRegistry([InputSource("a", "github:x/a"), InputSource("a", "github:x/b")])


def test_cycle_rejected():
    with pytest.raises(ConfigurationError, match="follows cycle: a -> b -> a"):
        InputRegistry([
            InputSource("a", "github:x/a", follows={"b": "b"}),
            InputSource("b", "github:x/b", follows={"a": "a"}),
        ])


def test_self_follow_rejected():
    with pytest.raises(ConfigurationError, match="follows cycle"):
        InputRegistry([InputSource("a", "github:x/a", follows={"self": "a"})])


def test_order_is_leaf_first():
    order = registry().order()
    assert set(order) == {s.name for s in INPUTS}
    assert order.index("nixpkgs") < order.index("crane")
    assert order.index("flake-utils") < order.index("crane")
    assert order.index("nixpkgs") < order.index("fenix")


def test_follows_graph():
    graph = registry().follows_graph()
    assert graph["crane"] == ("flake-utils", "nixpkgs")
    assert graph["nixpkgs"] == ()


def test_unified_inputs_share_sibling():
    reg = registry()
    assert reg.unified_inputs("crane")["nixpkgs"] is reg.resolve("nixpkgs")
    assert reg.unified_inputs("fenix")["nixpkgs"] is reg.resolve("nixpkgs")


def test_override_revalidates():
    reg = registry()
    with pytest.raises(ConfigurationError, match="follows cycle"):
        reg.override("nixpkgs", {"fenix": "fenix"})
    with pytest.raises(UnknownInputError):
        reg.override("crane", {"nixpkgs": "nixpkgs-stable"})


def test_override_returns_new_registry():
    reg = registry()
    patched = reg.override("crane", {"flake-utils": "nixpkgs"})
    assert patched.resolve("crane").follows["flake-utils"] == "nixpkgs"
    assert reg.resolve("crane").follows["flake-utils"] == "flake-utils"


def test_supports():
    assert InputSource("n", "u").supports("anything")
    assert not InputSource("n", "u", systems=("x86_64-linux",)).supports("aarch64-darwin")


def test_resolved_source_is_read_only():
    reg = registry()
    with pytest.raises(TypeError):
        reg.resolve("crane").follows["nixpkgs"] = "not-an-input"
    assert reg.unified_inputs("crane")["nixpkgs"].name == "nixpkgs"


def test_source_copies_follows():
    follows = {"nixpkgs": "nixpkgs"}
    src = InputSource("fenix", "github:nix-community/fenix", follows=follows)
    follows["nixpkgs"] = "other"
    assert src.follows == {"nixpkgs": "nixpkgs"}


def test_sources_are_hashable():
    a = InputSource("crane", "github:ipetkov/crane", follows={"nixpkgs": "nixpkgs", "flake-utils": "flake-utils"})
    b = InputSource("crane", "github:ipetkov/crane", follows={"flake-utils": "flake-utils", "nixpkgs": "nixpkgs"})
    assert a == b
    assert hash(a) == hash(b)
    assert len({*INPUTS, *registry()}) == len(INPUTS)
