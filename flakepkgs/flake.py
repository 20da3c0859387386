"""Per-system evaluation of the flake's outputs.

For every system:

    select_toolchain ──┬── compose_generic_build        packages.<system>.onCrane
                       ├── compose_native_package_build packages.<system>.default
                       └── compose_dev_shell            devShells.<system>.default

The toolchain is selected once per system and shared by that system's
three outputs only. Systems are independent and run on a thread pool.
A failing output is recorded as a PlanFailure and never hides the
others; callers decide whether to raise_for_failures().
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Mapping, Sequence

from flakepkgs import gluon
from flakepkgs.artifact import BuildArtifactSpec, PackageIdentity
from flakepkgs.crane import compose_generic_build
from flakepkgs.errors import FlakeError, FlakeEvaluationError
from flakepkgs.inputs import InputRegistry
from flakepkgs.mk_shell import DevEnvironmentSpec, compose_dev_shell
from flakepkgs.rust_platform import compose_native_package_build
from flakepkgs.systems import enumerate_systems
from flakepkgs.toolchain import DEFAULT_PROVIDER, DEFAULT_VARIANT, select_toolchain

logger = logging.getLogger(__name__)

ON_CRANE = "onCrane"
DEFAULT = "default"
DEV_SHELL = "devShell"


@dataclass(frozen=True)
class PlanFailure:
    system: str
    output: str
    error: FlakeError


@dataclass
class FlakeOutputs:
    packages: dict[str, dict[str, BuildArtifactSpec]] = field(default_factory=dict)
    dev_shells: dict[str, dict[str, DevEnvironmentSpec]] = field(default_factory=dict)
    failures: list[PlanFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def merge(self, other: FlakeOutputs) -> None:
        self.packages.update(other.packages)
        self.dev_shells.update(other.dev_shells)
        self.failures.extend(other.failures)

    def descriptors(self) -> list[BuildArtifactSpec | DevEnvironmentSpec]:
        found: list[BuildArtifactSpec | DevEnvironmentSpec] = []
        for system in sorted(self.packages):
            found += [self.packages[system][k] for k in sorted(self.packages[system])]
        for system in sorted(self.dev_shells):
            found += [self.dev_shells[system][k] for k in sorted(self.dev_shells[system])]
        return found

    def raise_for_failures(self) -> None:
        if self.failures:
            raise FlakeEvaluationError(self.failures)


class Flake:
    """The flake: inputs plus everything its outputs are composed from."""

    def __init__(
        self,
        registry: InputRegistry,
        *,
        src: str | Path,
        identity: PackageIdentity = gluon.IDENTITY,
        lock_file: str | Path | None = None,
        native_deps: Sequence[str] = gluon.CRANE_BUILD_INPUTS,
        auxiliary_tools: Sequence[str] = gluon.DEV_SHELL_TOOLS,
        systems: Iterable[str] | None = None,
        provider: str = DEFAULT_PROVIDER,
        variant: str = DEFAULT_VARIANT,
        output_hashes: Mapping[str, str] | None = None,
    ):
        self.registry = registry
        self.src = Path(src)
        self.identity = identity
        self.lock_file = Path(lock_file) if lock_file is not None else self.src / gluon.LOCK_FILE
        self.native_deps = native_deps
        self.auxiliary_tools = auxiliary_tools
        self.systems = enumerate_systems(systems)
        self.provider = provider
        self.variant = variant
        self.output_hashes = dict(output_hashes or {})
        # A provider missing from the registry is a static defect: fail now,
        # not once per system.
        registry.resolve(provider)

    def _attempt(self, result: FlakeOutputs, system: str, output: str, fn: Callable):
        try:
            return fn()
        except FlakeError as e:
            logger.warning("%s.%s failed: %s", system, output, e)
            result.failures.append(PlanFailure(system, output, e))
            return None

    def system_outputs(self, system: str) -> FlakeOutputs:
        result = FlakeOutputs()
        toolchain = self._attempt(
            result, system, "toolchain",
            lambda: select_toolchain(system, self.registry, provider=self.provider, variant=self.variant),
        )
        if toolchain is None:
            # Nothing can be composed without a toolchain; report each output.
            error = result.failures.pop().error
            result.failures += [PlanFailure(system, o, error) for o in (ON_CRANE, DEFAULT, DEV_SHELL)]
            return result

        packages: dict[str, BuildArtifactSpec] = {}
        on_crane = self._attempt(
            result, system, ON_CRANE,
            lambda: compose_generic_build(self.src, toolchain, self.native_deps),
        )
        if on_crane is not None:
            packages[ON_CRANE] = on_crane
        default = self._attempt(
            result, system, DEFAULT,
            lambda: compose_native_package_build(
                self.src, toolchain, self.identity, self.lock_file, output_hashes=self.output_hashes,
            ),
        )
        if default is not None:
            packages[DEFAULT] = default
        shell = self._attempt(
            result, system, DEV_SHELL,
            lambda: compose_dev_shell(toolchain, self.auxiliary_tools),
        )

        result.packages[system] = packages
        result.dev_shells[system] = {DEFAULT: shell} if shell is not None else {}
        logger.debug("%s: %d package(s), %d failure(s)", system, len(packages), len(result.failures))
        return result

    def outputs(self, max_workers: int | None = None) -> FlakeOutputs:
        """Evaluate every system concurrently and collect the results."""
        result = FlakeOutputs()
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            for per_system in pool.map(self.system_outputs, self.systems):
                result.merge(per_system)
        return result
