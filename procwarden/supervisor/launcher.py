"""Launches the supervised command detached from the supervisor.

In the default background mode the command runs in its own session with
redirected standard streams, and the child pid is written to the pidfile
before control returns. In foreground mode the supervisor writes its own pid
and replaces itself with the command.
"""

from __future__ import annotations

import os
import subprocess
from contextlib import ExitStack
from pathlib import Path
from typing import NoReturn, Optional

import psutil

from procwarden.logging_config import get_logger
from procwarden.supervisor.errors import LaunchFailure
from procwarden.supervisor.models import ProcessConfig
from procwarden.supervisor.paths import resolve_pidfile, resolve_stream, resolve_workdir

logger = get_logger(__name__)


def write_pidfile(path: Path, pid: int) -> None:
    """Write ``pid`` as the first line of ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"{pid}\n", encoding="utf-8")


class Launcher:
    """Default launch collaborator."""

    def __init__(self, config_dir: Optional[Path] = None, foreground: bool = False) -> None:
        self._config_dir = config_dir or Path(".")
        self._foreground = foreground

    def launch(self, config: ProcessConfig) -> int:
        """Start the command and return its pid."""
        if not config.command:
            raise LaunchFailure("no command to launch")

        workdir = resolve_workdir(config, self._config_dir)
        if not workdir.is_dir():
            raise LaunchFailure(f"working directory does not exist: {workdir}")
        pidfile = resolve_pidfile(config, self._config_dir)

        if self._foreground:
            self._exec_foreground(config, workdir, pidfile)

        with ExitStack() as stack:
            try:
                stdin = stack.enter_context(
                    open(resolve_stream(config.infile, config, self._config_dir), "rb"))
                stdout = stack.enter_context(
                    open(resolve_stream(config.outfile, config, self._config_dir), "ab"))
                stderr = stack.enter_context(
                    open(resolve_stream(config.errfile, config, self._config_dir), "ab"))
            except OSError as exc:
                raise LaunchFailure(f"cannot open redirection file: {exc}") from exc

            try:
                proc = subprocess.Popen(
                    config.command,
                    cwd=str(workdir),
                    stdin=stdin,
                    stdout=stdout,
                    stderr=stderr,
                    start_new_session=True,
                    close_fds=True,
                )
            except OSError as exc:
                logger.error("launch_failed", command=config.command, error=str(exc))
                raise LaunchFailure(f"cannot execute {config.command[0]}: {exc}") from exc

        write_pidfile(pidfile, proc.pid)
        logger.info("process_launched", pid=proc.pid, pidfile=str(pidfile), command=config.command)
        return proc.pid

    def _exec_foreground(self, config: ProcessConfig, workdir: Path, pidfile: Path) -> NoReturn:
        pid = os.getpid()
        write_pidfile(pidfile, pid)
        # exec keeps our pid and start time; align the pidfile with it so the drift check holds
        started = psutil.Process(pid).create_time()
        os.utime(pidfile, (started, started))

        try:
            for fd, value, flags in (
                (0, config.infile, os.O_RDONLY),
                (1, config.outfile, os.O_WRONLY | os.O_CREAT | os.O_APPEND),
                (2, config.errfile, os.O_WRONLY | os.O_CREAT | os.O_APPEND),
            ):
                if value:
                    target = os.open(resolve_stream(value, config, self._config_dir), flags, 0o644)
                    os.dup2(target, fd)
                    os.close(target)
            os.chdir(workdir)
            logger.info("process_exec_foreground", pid=pid, command=config.command)
            os.execvp(config.command[0], config.command)
        except OSError as exc:
            pidfile.unlink(missing_ok=True)
            raise LaunchFailure(f"cannot execute {config.command[0]}: {exc}") from exc
