"""Dev shell assembly, like ``pkgs.mkShell``.

    pkgs.mkShell {
      nativeBuildInputs = [ toolchain rust-analyzer-nightly ];
    };

The result describes an interactive environment. It is never built as
an artifact.
"""

from dataclasses import dataclass
from typing import Sequence

from flakepkgs.crane import check_names
from flakepkgs.toolchain import Toolchain


@dataclass(frozen=True)
class DevEnvironmentSpec:
    toolchain: Toolchain
    auxiliary_tools: tuple[str, ...] = ()

    @property
    def system(self) -> str:
        return self.toolchain.system

    @property
    def native_build_inputs(self) -> tuple[str, ...]:
        return (self.toolchain.name, *self.auxiliary_tools)


def compose_dev_shell(toolchain: Toolchain, auxiliary_tools: Sequence[str] = ()) -> DevEnvironmentSpec:
    """Shell with ``toolchain`` plus ``auxiliary_tools``, repeats dropped.

    A bare string or an empty or non-string entry is a ConfigurationError.
    """
    tools = check_names(auxiliary_tools, "dev shell tools", allow_repeats=True)
    return DevEnvironmentSpec(
        toolchain=toolchain,
        auxiliary_tools=tuple(dict.fromkeys(tools)),
    )
