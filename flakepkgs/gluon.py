"""The gluon language server flake.

Inputs, identity and package lists of the flake this project describes.
``config.py`` uses these as defaults, so an empty config file composes
exactly this flake.
"""

from flakepkgs.artifact import PackageIdentity
from flakepkgs.inputs import InputRegistry, InputSource
from flakepkgs.systems import DEFAULT_SYSTEMS

PNAME = "gluon_language-server"
VERSION = "0.18.1-alpha.0"
IDENTITY = PackageIdentity(PNAME, VERSION)

INPUTS = (
    InputSource(
        "fenix",
        "github:nix-community/fenix",
        follows={"nixpkgs": "nixpkgs"},
        systems=DEFAULT_SYSTEMS,
    ),
    InputSource(
        "crane",
        "github:ipetkov/crane",
        follows={"flake-utils": "flake-utils", "nixpkgs": "nixpkgs"},
    ),
    InputSource("flake-utils", "github:numtide/flake-utils"),
    InputSource("nixpkgs", "nixpkgs/nixos-unstable"),
)

# buildInputs of the onCrane package. Some checkouts of this flake leave
# them out; see the crane.build_inputs config key.
CRANE_BUILD_INPUTS = ("git", "pkg-config", "openssl")

DEV_SHELL_TOOLS = ("rust-analyzer-nightly",)

LOCK_FILE = "Cargo.lock"


def registry() -> InputRegistry:
    return InputRegistry(INPUTS)
