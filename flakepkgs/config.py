"""Flake configuration files.

A TOML (or JSON) file describing the flake. Every table is optional and
defaults to the gluon flake in ``flakepkgs.gluon``:

    systems = ["x86_64-linux", "aarch64-darwin"]

    [inputs.fenix]
    url = "github:nix-community/fenix"
    follows = { nixpkgs = "nixpkgs" }

    [inputs.nixpkgs]
    url = "nixpkgs/nixos-unstable"

    [toolchain]
    provider = "fenix"
    variant = "minimal"

    [package]
    src = "."
    pname = "gluon_language-server"
    version = "0.18.1-alpha.0"
    lock_file = "Cargo.lock"
    output_hashes = {}

    [crane]
    build_inputs = ["git", "pkg-config", "openssl"]

    [dev_shell]
    tools = ["rust-analyzer-nightly"]

``inputs`` may also be a list of ``{name, url, follows}`` records.
Relative paths are resolved against the directory holding the file.
"""

from __future__ import annotations

import json
import logging
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from flakepkgs import gluon
from flakepkgs.artifact import PackageIdentity
from flakepkgs.errors import ConfigurationError
from flakepkgs.flake import Flake
from flakepkgs.inputs import InputRegistry, InputSource
from flakepkgs.toolchain import DEFAULT_PROVIDER, DEFAULT_VARIANT

logger = logging.getLogger(__name__)


def _non_empty(value: str) -> str:
    if not value.strip():
        raise ValueError("must be non-empty")
    return value


class InputDecl(BaseModel):
    model_config = ConfigDict(extra="forbid")
    url: str
    follows: dict[str, str] = Field(default_factory=dict)
    systems: list[str] | None = None

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        return _non_empty(value)


class ToolchainDecl(BaseModel):
    model_config = ConfigDict(extra="forbid")
    provider: str = DEFAULT_PROVIDER
    variant: str = DEFAULT_VARIANT


class PackageDecl(BaseModel):
    model_config = ConfigDict(extra="forbid")
    src: str = "."
    pname: str = gluon.PNAME
    version: str = gluon.VERSION
    lock_file: str = gluon.LOCK_FILE
    output_hashes: dict[str, str] = Field(default_factory=dict)


class CraneDecl(BaseModel):
    model_config = ConfigDict(extra="forbid")
    build_inputs: list[str] = Field(default_factory=lambda: list(gluon.CRANE_BUILD_INPUTS))


class DevShellDecl(BaseModel):
    model_config = ConfigDict(extra="forbid")
    tools: list[str] = Field(default_factory=lambda: list(gluon.DEV_SHELL_TOOLS))


def _default_inputs() -> dict[str, InputDecl]:
    return {
        s.name: InputDecl(
            url=s.url,
            follows=dict(s.follows),
            systems=list(s.systems) if s.systems is not None else None,
        )
        for s in gluon.INPUTS
    }


class FlakeConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    systems: list[str] | None = None
    inputs: dict[str, InputDecl] = Field(default_factory=_default_inputs)
    toolchain: ToolchainDecl = Field(default_factory=ToolchainDecl)
    package: PackageDecl = Field(default_factory=PackageDecl)
    crane: CraneDecl = Field(default_factory=CraneDecl)
    dev_shell: DevShellDecl = Field(default_factory=DevShellDecl)

    @field_validator("inputs", mode="before")
    @classmethod
    def _inputs_from_list(cls, value: Any) -> Any:
        """Accept ``[{name, url, follows}, ...]`` as well as a table."""
        if not isinstance(value, list):
            return value
        table: dict[str, Any] = {}
        for entry in value:
            if not isinstance(entry, dict) or "name" not in entry:
                raise ValueError(f"input declaration without a name: {entry!r}")
            entry = dict(entry)
            name = entry.pop("name")
            if name in table:
                raise ValueError(f"input {name!r} declared twice")
            table[name] = entry
        return table

    def registry(self) -> InputRegistry:
        return InputRegistry(
            InputSource(
                name,
                decl.url,
                follows=dict(decl.follows),
                systems=tuple(decl.systems) if decl.systems is not None else None,
            )
            for name, decl in self.inputs.items()
        )

    def flake(self, root: str | Path = ".") -> Flake:
        root = Path(root)
        src = root / self.package.src
        return Flake(
            self.registry(),
            src=src,
            identity=PackageIdentity(self.package.pname, self.package.version),
            lock_file=src / self.package.lock_file,
            native_deps=self.crane.build_inputs,
            auxiliary_tools=self.dev_shell.tools,
            systems=self.systems,
            provider=self.toolchain.provider,
            variant=self.toolchain.variant,
            output_hashes=self.package.output_hashes,
        )


def parse_config(data: dict[str, Any], origin: str = "<config>") -> FlakeConfig:
    try:
        return FlakeConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"invalid flake configuration in {origin}:\n{e}") from e


def load_config(path: str | Path) -> FlakeConfig:
    """Read and validate a ``.toml`` or ``.json`` flake configuration."""
    p = Path(path)
    try:
        text = p.read_text()
    except OSError as e:
        raise ConfigurationError(f"cannot read {p}: {e}") from e

    try:
        if p.suffix == ".json":
            data = json.loads(text)
        else:
            data = tomllib.loads(text)
    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"cannot parse {p}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{p}: top level must be a table")

    logger.debug("loaded flake configuration from %s", p)
    return parse_config(data, str(p))


def load_flake(path: str | Path | None = None, root: str | Path | None = None) -> Flake:
    """Flake from ``path``, or the built-in gluon flake when ``path`` is None.

    Without an explicit ``root``, paths are relative to the config file's
    directory (or the current directory).
    """
    if path is None:
        return FlakeConfig().flake(root or ".")
    cfg = load_config(path)
    return cfg.flake(root if root is not None else Path(path).parent)
