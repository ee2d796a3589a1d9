"""Process Status Inspector: decides whether the configured command is alive.

A bare pid match is not enough. Pids are recycled by the OS, so a pidfile
left behind by a crash can point at an unrelated process. The inspector
therefore cross-checks every pid match against:

- the live command line, using the config's match pattern (explicit regex,
  or one derived from the command), and
- the process start time, which must lie within ``allow`` seconds of the
  pidfile's modification time.

A pid match that fails either check is INCONSISTENT.
"""

from __future__ import annotations

import re
import time
from pathlib import Path
from typing import Callable, Iterable, Optional

from procwarden.config import get_settings
from procwarden.logging_config import get_logger
from procwarden.supervisor.models import ProcessConfig, ProcessEntry, ProcessStatus, StatusCode
from procwarden.supervisor.paths import resolve_pidfile
from procwarden.supervisor import process_table

logger = get_logger(__name__)

DERIVE_PATTERN = ("", ".")

# Codes that end a wait regardless of the target
_WAIT_TERMINAL = (StatusCode.ZOMBIE, StatusCode.INCONSISTENT)


def derive_pattern(command: Iterable[str]) -> str:
    """Build a regex matching ``command`` with any whitespace run between arguments.

    The match must start at the beginning of the command line or after a path
    separator, and end at whitespace or the end of the line, so that
    ``sleep 100`` does not accept ``sleep 1000``.
    """
    body = r"\s+".join(re.escape(arg) for arg in command)
    return rf"(?:^|[\s/]){body}(?:\s|$)"


def match_pattern(config: ProcessConfig) -> Optional[str]:
    """Return the verification pattern for a config, or None to skip the check."""
    if config.match is None:
        return None
    if config.match in DERIVE_PATTERN:
        if not config.command:
            return None
        return derive_pattern(config.command)
    return config.match


def read_pidfile(path: Path) -> Optional[tuple[int, float]]:
    """Return (pid, mtime) from a pidfile, or None if it is unusable."""
    try:
        with open(path, encoding="utf-8") as fh:
            first_line = fh.readline()
        mtime = path.stat().st_mtime
        pid = int(first_line.strip())
    except (OSError, ValueError, UnicodeDecodeError):
        return None
    if pid <= 0:
        return None
    return pid, mtime


class ProcessStatusInspector:
    """Liveness checks for one config against a process table snapshot."""

    def __init__(
        self,
        config_dir: Optional[Path] = None,
        list_processes: Optional[Callable[[], list[ProcessEntry]]] = None,
        poll_interval: Optional[float] = None,
        wait_timeout: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        settings = get_settings()
        self._config_dir = config_dir or Path(".")
        self._list_processes = list_processes or process_table.list_processes
        self._poll_interval = settings.poll_interval if poll_interval is None else poll_interval
        self._wait_timeout = settings.wait_timeout if wait_timeout is None else wait_timeout
        self._sleep = sleep
        self._clock = clock

    def inspect(self, config: ProcessConfig) -> ProcessStatus:
        """Compute a fresh status for the config."""
        pidfile = resolve_pidfile(config, self._config_dir)
        stored = read_pidfile(pidfile)
        if stored is None:
            return ProcessStatus(StatusCode.NOT_RUNNING, pid=0)
        pid, mtime = stored

        pattern = match_pattern(config)

        entry = next((p for p in self._list_processes() if p.pid == pid), None)
        if entry is None:
            return ProcessStatus(StatusCode.NOT_RUNNING, pid=pid)
        if entry.defunct:
            return ProcessStatus(StatusCode.ZOMBIE, pid=pid, command_line=entry.command_line)

        if pattern is not None and not re.search(pattern, entry.command_line):
            logger.warning(
                "pid_command_mismatch",
                pid=pid,
                pattern=pattern,
                command_line=entry.command_line,
            )
            return ProcessStatus(StatusCode.INCONSISTENT, pid=pid, command_line=entry.command_line)

        allow = config.allow if config.allow is not None else get_settings().default_allow
        if allow >= 0:
            drift = abs(entry.start_time - mtime)
            if drift > allow:
                logger.warning("pid_start_time_drift", pid=pid, drift=round(drift, 3), allow=allow)
                return ProcessStatus(StatusCode.INCONSISTENT, pid=pid, command_line=entry.command_line)

        return ProcessStatus(StatusCode.RUNNING, pid=pid, command_line=entry.command_line)

    def wait_for(self, config: ProcessConfig, target: StatusCode) -> ProcessStatus:
        """Poll until ``target``, ZOMBIE or INCONSISTENT is observed.

        Gives up after the configured wait timeout with TIMED_OUT; a timeout
        of zero or less waits forever.
        """
        deadline = self._clock() + self._wait_timeout if self._wait_timeout > 0 else None
        logger.debug("waiting_for_status", target=target.name)
        while True:
            status = self.inspect(config)
            if status.code == target or status.code in _WAIT_TERMINAL:
                logger.debug("wait_finished", target=target.name, observed=status.code.name, pid=status.pid)
                return status
            if deadline is not None and self._clock() >= deadline:
                logger.warning("wait_timed_out", target=target.name, observed=status.code.name, pid=status.pid)
                return ProcessStatus(StatusCode.TIMED_OUT, pid=status.pid, command_line=status.command_line)
            self._sleep(self._poll_interval)
