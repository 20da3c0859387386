"""Errors raised while composing flake outputs.

All of them describe static misconfiguration found before anything is
handed to the materialiser, so none is worth retrying.
"""


class FlakeError(Exception):
    pass


class UnknownInputError(FlakeError, KeyError):
    """A name that is not in the input registry."""

    def __init__(self, name: str, referenced_by: str | None = None):
        self.name = name
        self.referenced_by = referenced_by
        msg = f"unknown input {name!r}"
        if referenced_by:
            msg += f" (followed by {referenced_by!r})"
        super().__init__(msg)

    def __str__(self) -> str:
        # KeyError would repr() the message
        return self.args[0]


class ToolchainUnavailableError(FlakeError):
    def __init__(self, provider: str, system: str):
        self.provider = provider
        self.system = system
        super().__init__(f"input {provider!r} provides no toolchain for {system!r}")


class ConfigurationError(FlakeError, ValueError):
    pass


class LockFileMissingError(FlakeError):
    def __init__(self, path):
        self.path = path
        super().__init__(f"lock file not found: {path}")


class InvalidIdentityError(FlakeError, ValueError):
    pass


class FlakeEvaluationError(FlakeError):
    """One or more outputs failed; ``failures`` holds every one of them."""

    def __init__(self, failures):
        self.failures = list(failures)
        lines = [f"{len(self.failures)} flake output(s) failed:"]
        lines += [f"  {f.system}.{f.output}: {f.error}" for f in self.failures]
        super().__init__("\n".join(lines))
