"""Data models for the supervised command, its hooks and its status."""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass
from enum import IntEnum, StrEnum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ZOMBIE_PLACEHOLDER = "<defunct>"

# Fields an override may replace on a stored config; command and hooks are not among them
MUTABLE_FIELDS = ("workdir", "pidfile", "outfile", "infile", "errfile", "match", "allow")

HookCommand = Union[str, list[str]]


class StatusCode(IntEnum):
    """Liveness status, also used as the outcome of an action.

    The ordering is meaningful: everything below STOPPED is a failure state,
    everything above it means the command is alive.
    """
    TIMED_OUT = -4
    ZOMBIE = -3
    INCONSISTENT = -2
    NOT_RUNNING = -1
    STOPPED = 0
    RUNNING = 1
    STARTED = 2
    RESTARTED = 3

    @property
    def is_alive(self) -> bool:
        return self >= StatusCode.RUNNING


class Action(StrEnum):
    """Supervisory action requested for one invocation."""
    START = "start"
    STAY = "stay"
    RESTART = "restart"
    KILL = "kill"
    CHECK = "check"
    GENERATE = "generate"


class HookEvent(StrEnum):
    """Fixed lifecycle points at which a hook may run."""
    BEFORE_START = "before_start"
    AFTER_START = "after_start"
    BEFORE_STOP = "before_stop"
    AFTER_STOP = "after_stop"


@dataclass(frozen=True)
class ProcessEntry:
    """One row of a process table snapshot."""
    pid: int
    command_line: str
    start_time: float  # epoch seconds

    @property
    def defunct(self) -> bool:
        return self.command_line.strip().endswith(ZOMBIE_PLACEHOLDER)


@dataclass(frozen=True)
class ProcessStatus:
    """Result of one liveness inspection."""
    code: StatusCode
    pid: int = 0
    command_line: str = ""

    def describe(self) -> str:
        text = f"{self.code.name} pid={self.pid}"
        if self.command_line:
            text += f" cmd={self.command_line}"
        return text


@dataclass(frozen=True)
class Outcome:
    """Final status of an invocation plus the process exit code."""
    status: ProcessStatus
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True)
class HookSpec:
    """A hook resolved for execution: what to run and whether failure is fatal."""
    event: HookEvent
    command: Optional[HookCommand]
    suppress_failure: bool


@dataclass
class ConfigOverrides:
    """Values given on the command line for the mutable config fields."""
    workdir: Optional[str] = None
    pidfile: Optional[str] = None
    outfile: Optional[str] = None
    infile: Optional[str] = None
    errfile: Optional[str] = None
    match: Optional[str] = None
    allow: Optional[int] = None


class Hook(BaseModel):
    """Command bound to one lifecycle event."""

    model_config = ConfigDict(extra="forbid")

    command: Optional[HookCommand] = None
    nocheck: Optional[bool] = None  # None defers to the global flag

    @field_validator("command", mode="before")
    @classmethod
    def _coerce_command(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(item) for item in value]
        if isinstance(value, str) and not value.strip():
            return None
        return value


class HookSet(BaseModel):
    """All lifecycle hooks of a config.

    On disk hooks are a flat mapping::

        hooks:
          before_start: ./prepare.sh
          after_stop: [rm, -f, lockfile]
          nocheck: false
          nocheck_after_stop: true

    In memory every event has its own Hook entry.
    """

    model_config = ConfigDict(extra="forbid")

    nocheck: Optional[bool] = None
    before_start: Hook = Field(default_factory=Hook)
    after_start: Hook = Field(default_factory=Hook)
    before_stop: Hook = Field(default_factory=Hook)
    after_stop: Hook = Field(default_factory=Hook)

    @model_validator(mode="before")
    @classmethod
    def _from_flat_mapping(cls, data: Any) -> Any:
        if data is None:
            return {}
        if not isinstance(data, dict):
            return data
        structured: dict[str, Any] = {}
        for key, value in data.items():
            key = str(key)
            if key == "nocheck":
                structured["nocheck"] = value
            elif key.startswith("nocheck_"):
                structured.setdefault(key[len("nocheck_"):], {})["nocheck"] = value
            elif isinstance(value, Hook):
                structured.setdefault(key, {}).update(value.model_dump(exclude_none=True))
            elif isinstance(value, dict):
                structured.setdefault(key, {}).update(value)
            else:
                structured.setdefault(key, {})["command"] = value
        return structured

    def get(self, event: HookEvent) -> Hook:
        return getattr(self, event.value)

    def resolve(self, event: HookEvent) -> HookSpec:
        """Resolve the command and failure suppression for an event."""
        hook = self.get(event)
        if hook.nocheck is not None:
            suppress = hook.nocheck
        else:
            suppress = bool(self.nocheck)
        return HookSpec(event=event, command=hook.command, suppress_failure=suppress)

    def to_mapping(self) -> dict[str, Any]:
        """Flatten back to the on-disk representation."""
        mapping: dict[str, Any] = {}
        for event in HookEvent:
            hook = self.get(event)
            if hook.command is not None:
                mapping[event.value] = hook.command
        if self.nocheck is not None:
            mapping["nocheck"] = self.nocheck
        for event in HookEvent:
            hook = self.get(event)
            if hook.nocheck is not None:
                mapping[f"nocheck_{event.value}"] = hook.nocheck
        return mapping


class ProcessConfig(BaseModel):
    """Persisted description of the one supervised command."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    command: list[str] = Field(default_factory=list)
    pidfile: Optional[str] = None
    workdir: Optional[str] = None
    infile: Optional[str] = None
    outfile: Optional[str] = None
    errfile: Optional[str] = None
    match: Optional[str] = None
    allow: Optional[int] = None
    hooks: HookSet = Field(default_factory=HookSet)

    @field_validator("command", mode="before")
    @classmethod
    def _coerce_command(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return shlex.split(value)
        if isinstance(value, (list, tuple)):
            return [str(item) for item in value]
        return value

    @field_validator("pidfile", "workdir", "infile", "outfile", "errfile", "match", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("match")
    @classmethod
    def _compile_match(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            try:
                re.compile(value)
            except re.error as exc:
                raise ValueError(f"invalid match pattern {value!r}: {exc}") from exc
        return value

    @field_validator("hooks", mode="before")
    @classmethod
    def _default_hooks(cls, value: Any) -> Any:
        return {} if value is None else value

    def to_mapping(self) -> dict[str, Any]:
        """Return the on-disk mapping, skipping unset fields."""
        mapping: dict[str, Any] = {"command": list(self.command)}
        for name in ("pidfile", "workdir", "infile", "outfile", "errfile", "match", "allow"):
            value = getattr(self, name)
            if value is not None:
                mapping[name] = value
        hooks = self.hooks.to_mapping()
        if hooks:
            mapping["hooks"] = hooks
        return mapping
