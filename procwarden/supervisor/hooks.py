"""Lifecycle hook execution with fail-fast semantics."""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import Optional

from procwarden.logging_config import get_logger
from procwarden.supervisor.errors import HookFailure
from procwarden.supervisor.models import HookEvent, ProcessConfig, ProcessStatus
from procwarden.supervisor.paths import resolve_workdir

logger = get_logger(__name__)

EXIT_NOT_FOUND = 127
EXIT_NOT_EXECUTABLE = 126


class HookRunner:
    """Runs the hook bound to a lifecycle event, if any."""

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        self._config_dir = config_dir or Path(".")

    def _environment(self, event: HookEvent, status: ProcessStatus) -> dict[str, str]:
        env = dict(os.environ)
        env.update({
            "PROCWARDEN_EVENT": event.value,
            "PROCWARDEN_STATUS": status.code.name,
            "PROCWARDEN_PID": str(status.pid),
        })
        return env

    def run(self, config: ProcessConfig, event: HookEvent, status: ProcessStatus) -> None:
        """Execute the hook for ``event``.

        A string command goes through the shell, a list is exec'd directly.
        Raises HookFailure on a non-zero exit unless the hook's failures are
        suppressed via nocheck.
        """
        spec = config.hooks.resolve(event)
        if spec.command is None:
            return

        cwd = resolve_workdir(config, self._config_dir)
        logger.info("hook_running", hook=event.value, command=spec.command)
        try:
            result = subprocess.run(
                spec.command,
                shell=isinstance(spec.command, str),
                cwd=str(cwd),
                env=self._environment(event, status),
            )
            returncode = result.returncode
        except FileNotFoundError as exc:
            logger.error("hook_not_found", hook=event.value, error=str(exc))
            returncode = EXIT_NOT_FOUND
        except PermissionError as exc:
            logger.error("hook_not_executable", hook=event.value, error=str(exc))
            returncode = EXIT_NOT_EXECUTABLE
        except OSError as exc:
            logger.error("hook_not_runnable", hook=event.value, cwd=str(cwd), error=str(exc))
            returncode = EXIT_NOT_EXECUTABLE

        if returncode == 0:
            logger.info("hook_succeeded", hook=event.value)
            return

        if spec.suppress_failure:
            logger.warning("hook_failure_ignored", hook=event.value, returncode=returncode)
            return

        logger.error("hook_failed", hook=event.value, returncode=returncode)
        raise HookFailure(event, spec.command, returncode, status=status)
