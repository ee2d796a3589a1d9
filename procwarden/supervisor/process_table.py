"""Process table snapshot backed by psutil."""

from __future__ import annotations

import psutil

from procwarden.logging_config import get_logger
from procwarden.supervisor.models import ZOMBIE_PLACEHOLDER, ProcessEntry

logger = get_logger(__name__)

_ATTRS = ["pid", "name", "cmdline", "create_time", "status"]


def _command_line(info: dict) -> str:
    if info.get("status") == psutil.STATUS_ZOMBIE:
        # Same placeholder ps(1) prints for an unreaped child
        return f"[{info.get('name') or '?'}] {ZOMBIE_PLACEHOLDER}"
    argv = info.get("cmdline")
    if argv:
        return " ".join(argv)
    # Kernel threads and processes we may not read have no argv
    return f"[{info.get('name') or '?'}]"


def list_processes() -> list[ProcessEntry]:
    """Return one point-in-time snapshot of the live process table."""
    entries: list[ProcessEntry] = []
    for proc in psutil.process_iter(_ATTRS, ad_value=None):
        info = proc.info
        entries.append(ProcessEntry(
            pid=info["pid"],
            command_line=_command_line(info),
            start_time=info.get("create_time") or 0.0,
        ))
    logger.debug("process_table_snapshot", count=len(entries))
    return entries
