"""Shared test fixtures and configuration."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import pytest

os.environ.setdefault("PROCWARDEN_ENV", "test")
os.environ.setdefault("PROCWARDEN_LOG_LEVEL", "WARNING")
os.environ.setdefault("POLL_INTERVAL", "0.01")
os.environ.setdefault("WAIT_TIMEOUT", "5")

from procwarden.supervisor.models import ZOMBIE_PLACEHOLDER, ProcessEntry

PIDFILE_MTIME = 1_700_000_000.0


class FakeProcessTable:
    """In-memory stand-in for the psutil process table."""

    def __init__(self) -> None:
        self.entries: dict[int, ProcessEntry] = {}
        self.snapshots = 0

    def __call__(self) -> list[ProcessEntry]:
        self.snapshots += 1
        return list(self.entries.values())

    def add(self, pid: int, command_line: str, start_time: float = PIDFILE_MTIME) -> None:
        self.entries[pid] = ProcessEntry(pid=pid, command_line=command_line, start_time=start_time)

    def remove(self, pid: int) -> None:
        self.entries.pop(pid, None)

    def zombify(self, pid: int) -> None:
        entry = self.entries[pid]
        self.entries[pid] = ProcessEntry(
            pid=pid,
            command_line=f"[sleep] {ZOMBIE_PLACEHOLDER}",
            start_time=entry.start_time,
        )


def write_pidfile(path: Path, pid: int, mtime: Optional[float] = PIDFILE_MTIME) -> Path:
    """Write a pidfile and pin its modification time."""
    path.write_text(f"{pid}\n")
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def process_table() -> FakeProcessTable:
    return FakeProcessTable()

