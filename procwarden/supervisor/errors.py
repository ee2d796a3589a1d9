"""Exception taxonomy for supervisor invocations.

Every error the CLI reports derives from SupervisorError and maps to exit
code 1. An inconsistent pidfile is not an exception: it is reported through
StatusCode.INCONSISTENT.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Union

if TYPE_CHECKING:
    from procwarden.supervisor.models import HookEvent, ProcessStatus


class SupervisorError(Exception):
    """Base class for fatal supervisor errors."""

    exit_code = 1

    def __init__(self, message: str, status: Optional["ProcessStatus"] = None) -> None:
        super().__init__(message)
        self.status = status


class UsageError(SupervisorError):
    """Bad or conflicting action flags, or a missing command."""


class ConfigMissing(SupervisorError):
    """The action requires a config file that does not exist."""


class ConfigParseError(SupervisorError):
    """The config file exists but cannot be parsed."""


class HookFailure(SupervisorError):
    """A lifecycle hook exited non-zero and was not suppressed."""

    def __init__(
        self,
        event: "HookEvent",
        command: Union[str, list[str]],
        returncode: int,
        status: Optional["ProcessStatus"] = None,
    ) -> None:
        self.event = event
        self.command = command
        self.returncode = returncode
        shown = command if isinstance(command, str) else " ".join(command)
        super().__init__(
            f"hook {event.value} failed with exit code {returncode}: {shown}",
            status=status,
        )


class LaunchFailure(SupervisorError):
    """The launched command never reached the RUNNING state."""


class Aborted(SupervisorError):
    """The user declined an interactive confirmation."""
