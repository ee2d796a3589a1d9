"""procwarden supervisor core.

Components:
- ConfigStore: loads, merges and atomically saves the YAML config
- ProcessStatusInspector: pid-reuse-safe liveness detection
- HookRunner: lifecycle hooks with fail-fast semantics
- Launcher: detaches the supervised command and records its pid
- Supervisor: the start/stay/restart/kill/check/generate state machine
"""

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
from procwarden.supervisor.store import ConfigStore
from procwarden.supervisor.supervisor import Supervisor

__all__ = [
    "Action",
    "ConfigOverrides",
    "ConfigStore",
    "HookEvent",
    "HookRunner",
    "Launcher",
    "Outcome",
    "ProcessConfig",
    "ProcessStatus",
    "ProcessStatusInspector",
    "StatusCode",
    "Supervisor",
]
