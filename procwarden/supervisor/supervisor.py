"""Supervisor: the action state machine.

One invocation performs exactly one action against one config file:

    check     report status; exit 0 only when RUNNING
    stay      start the command unless it is already RUNNING
    start     first start; refuses if the config file already exists
    restart   stop (if RUNNING) and start again
    kill      stop a RUNNING command
    generate  write the config without touching the process

Every transition is checked against a fresh inspection. INCONSISTENT always
ends the run with exit code 1 since the pidfile may name an unrelated process.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

from procwarden.config import get_settings
from procwarden.logging_config import get_logger
from procwarden.supervisor.errors import (
    Aborted,
    ConfigMissing,
    LaunchFailure,
    SupervisorError,
    UsageError,
)
from procwarden.supervisor.hooks import HookRunner
from procwarden.supervisor.inspector import ProcessStatusInspector
from procwarden.supervisor.launcher import Launcher
from procwarden.supervisor.models import (
    Action,
    ConfigOverrides,
    HookEvent,
    Outcome,
    ProcessConfig,
    ProcessStatus,
    StatusCode,
)
from procwarden.supervisor.paths import resolve_pidfile
from procwarden.supervisor.store import ConfigStore

logger = get_logger(__name__)

# Actions that make no sense without a stored config
REQUIRES_CONFIG = (Action.KILL, Action.RESTART, Action.CHECK)

# Observations after which a start may proceed
STARTABLE = (StatusCode.NOT_RUNNING, StatusCode.ZOMBIE)

# Observations after a kill signal that mean the process is gone
GONE = (StatusCode.NOT_RUNNING, StatusCode.ZOMBIE)


class Supervisor:
    """Runs one supervisory action against the config at ``config_path``."""

    def __init__(
        self,
        config_path: Union[str, Path],
        store: Optional[ConfigStore] = None,
        inspector: Optional[ProcessStatusInspector] = None,
        hooks: Optional[HookRunner] = None,
        launch: Optional[Callable[[ProcessConfig], int]] = None,
        kill: Callable[[int, int], None] = os.kill,
        confirm: Optional[Callable[[str], bool]] = None,
        temporary: bool = False,
        foreground: bool = False,
    ) -> None:
        self._settings = get_settings()
        self._config_path = Path(config_path)
        self._config_dir = self._config_path.parent
        self._store = store or ConfigStore()
        self._inspector = inspector or ProcessStatusInspector(self._config_dir)
        self._hooks = hooks or HookRunner(self._config_dir)
        self._launch = launch or Launcher(self._config_dir, foreground=foreground).launch
        self._kill = kill
        self._confirm = confirm or (lambda question: False)
        self._temporary = temporary
        self.config: Optional[ProcessConfig] = None

    @property
    def config_path(self) -> Path:
        return self._config_path

    # ── Entry point ───────────────────────────────────────────────────

    def run(
        self,
        action: Union[Action, str],
        overrides: Optional[ConfigOverrides] = None,
        command: Optional[Sequence[str]] = None,
    ) -> Outcome:
        """Perform ``action`` and return the final status with its exit code."""
        try:
            action = Action(action)
        except ValueError as exc:
            raise UsageError(f"unknown action: {action}") from exc

        command = list(command) if command else None
        config = self._prepare(action, overrides)
        self.config = config
        logger.info("action_started", action=action.value, config=str(self._config_path))

        handlers = {
            Action.CHECK: self._check,
            Action.STAY: self._stay,
            Action.START: self._start_fresh,
            Action.RESTART: self._restart,
            Action.KILL: self._kill_action,
            Action.GENERATE: self._generate,
        }
        outcome = handlers[action](config, command)
        logger.info(
            "action_finished",
            action=action.value,
            status=outcome.status.code.name,
            pid=outcome.status.pid,
            exit_code=outcome.exit_code,
        )
        return outcome

    # ── Config handling ───────────────────────────────────────────────

    def _prepare(self, action: Action, overrides: Optional[ConfigOverrides]) -> ProcessConfig:
        stored = self._store.load(self._config_path)
        exists = stored is not None

        if not exists and action in REQUIRES_CONFIG:
            raise ConfigMissing(f"no config found at {self._config_path}")
        if exists and action == Action.START:
            raise UsageError(
                f"config already exists at {self._config_path}; use --stay or --restart"
            )
        if exists and action == Action.GENERATE:
            if not self._confirm(f"Overwrite existing config {self._config_path}?"):
                raise Aborted("existing config kept, nothing written")

        config = stored or ProcessConfig()
        changed = self._store.merge(config, overrides)
        self._fill_defaults(config)
        if exists and changed:
            self._persist(config)
        return config

    def _fill_defaults(self, config: ProcessConfig) -> None:
        if config.pidfile is None:
            config.pidfile = self._settings.default_pidfile
        if config.workdir is None:
            config.workdir = self._settings.default_workdir
        if config.allow is None:
            config.allow = self._settings.default_allow

    def _persist(self, config: ProcessConfig) -> None:
        self._store.save(self._config_path, config, temporary=self._temporary)

    def _apply_command(self, config: ProcessConfig, command: Optional[list[str]]) -> None:
        if command and command != config.command:
            logger.info("command_replaced", old=config.command, new=command)
            config.command = command
        if not config.command:
            raise UsageError("no command configured; pass the command to supervise")

    def _ignore_command(self, action: Action, config: ProcessConfig, command: Optional[list[str]]) -> None:
        if command and command != config.command:
            logger.warning("command_ignored", action=action.value, stored=config.command, given=command)

    # ── Actions ───────────────────────────────────────────────────────

    def _check(self, config: ProcessConfig, command: Optional[list[str]]) -> Outcome:
        self._ignore_command(Action.CHECK, config, command)
        status = self._inspector.inspect(config)
        return Outcome(status, 0 if status.code == StatusCode.RUNNING else 1)

    def _stay(self, config: ProcessConfig, command: Optional[list[str]]) -> Outcome:
        status = self._inspector.inspect(config)
        if status.code == StatusCode.RUNNING:
            self._ignore_command(Action.STAY, config, command)
            return Outcome(status, 0)
        if status.code in STARTABLE:
            return self._start(config, command, status, restarted=False)
        return Outcome(status, 1)

    def _start_fresh(self, config: ProcessConfig, command: Optional[list[str]]) -> Outcome:
        status = self._inspector.inspect(config)
        if status.code == StatusCode.RUNNING:
            logger.error("already_running", pid=status.pid)
            return Outcome(status, 1)
        if status.code in STARTABLE:
            return self._start(config, command, status, restarted=False)
        return Outcome(status, 1)

    def _restart(self, config: ProcessConfig, command: Optional[list[str]]) -> Outcome:
        status = self._inspector.inspect(config)
        if status.code == StatusCode.RUNNING:
            stopped = self._stop(config, status)
            if stopped.code != StatusCode.STOPPED:
                return Outcome(stopped, 1)
            return self._start(config, command, stopped, restarted=True)
        if status.code in STARTABLE:
            return self._start(config, command, status, restarted=False)
        return Outcome(status, 1)

    def _kill_action(self, config: ProcessConfig, command: Optional[list[str]]) -> Outcome:
        self._ignore_command(Action.KILL, config, command)
        status = self._inspector.inspect(config)
        if status.code != StatusCode.RUNNING:
            logger.warning("nothing_to_kill", status=status.code.name, pid=status.pid)
            return Outcome(status, 1)
        stopped = self._stop(config, status)
        return Outcome(stopped, 0 if stopped.code == StatusCode.STOPPED else 1)

    def _generate(self, config: ProcessConfig, command: Optional[list[str]]) -> Outcome:
        self._apply_command(config, command)
        self._persist(config)
        status = self._inspector.inspect(config)
        return Outcome(status, 0)

    # ── Transitions ───────────────────────────────────────────────────

    def _stop(self, config: ProcessConfig, status: ProcessStatus) -> ProcessStatus:
        """Signal a RUNNING process and wait until it is gone.

        Returns STOPPED on success, otherwise the status that ended the wait.
        """
        self._hooks.run(config, HookEvent.BEFORE_STOP, status)

        signum = self._settings.signal_number
        logger.info("stopping_process", pid=status.pid, signal=self._settings.kill_signal)
        try:
            self._kill(status.pid, signum)
        except ProcessLookupError:
            logger.info("process_already_gone", pid=status.pid)
        except PermissionError as exc:
            raise SupervisorError(f"cannot signal pid {status.pid}: {exc}", status=status) from exc

        gone = self._inspector.wait_for(config, StatusCode.NOT_RUNNING)
        if gone.code not in GONE:
            logger.error("process_stop_failed", pid=status.pid, observed=gone.code.name)
            return gone

        resolve_pidfile(config, self._config_dir).unlink(missing_ok=True)
        stopped = ProcessStatus(StatusCode.STOPPED, pid=status.pid, command_line=status.command_line)
        logger.info("process_stopped", pid=status.pid)
        self._hooks.run(config, HookEvent.AFTER_STOP, stopped)
        return stopped

    def _start(
        self,
        config: ProcessConfig,
        command: Optional[list[str]],
        status: ProcessStatus,
        restarted: bool,
    ) -> Outcome:
        self._apply_command(config, command)
        self._fill_defaults(config)
        self._persist(config)

        self._hooks.run(config, HookEvent.BEFORE_START, status)
        pid = self._launch(config)
        logger.info("process_started", pid=pid)

        reached = self._inspector.wait_for(config, StatusCode.RUNNING)
        if reached.code != StatusCode.RUNNING:
            raise LaunchFailure(
                f"command did not reach RUNNING (observed {reached.code.name})",
                status=reached,
            )

        final = ProcessStatus(
            StatusCode.RESTARTED if restarted else StatusCode.STARTED,
            pid=reached.pid,
            command_line=reached.command_line,
        )
        self._hooks.run(config, HookEvent.AFTER_START, final)
        return Outcome(final, 0)
