"""Error taxonomy for runbook invocations.

Every error is terminal for the invocation that raised it. ``step`` names
the envelope stage that failed and ``exit_code`` is what the CLI returns.
"""

from typing import Optional


class RunbookError(Exception):
    """Base class for all runbook failures."""

    exit_code = 1
    default_step = "execute"

    def __init__(self, message: str, step: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.step = step or self.default_step

    def __str__(self) -> str:
        return self.message


class ValidationError(RunbookError):
    """Missing, empty or out-of-range invocation arguments."""

    exit_code = 2
    default_step = "validate"


class ConfigurationError(RunbookError):
    """Domain, controller, sync server or credential not configured."""

    exit_code = 3
    default_step = "configure"


class NotFoundError(RunbookError):
    """Lookup of the target directory object returned no results."""

    exit_code = 4
    default_step = "lookup"


class RemoteOperationError(RunbookError):
    """The directory or sync service call failed or was rejected."""

    exit_code = 5
    default_step = "mutate"
