"""Resolution of the relative paths stored in a config."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from procwarden.config import get_settings
from procwarden.supervisor.models import ProcessConfig


def _anchor(value: str, base: Path) -> Path:
    path = Path(os.path.expanduser(value))
    return path if path.is_absolute() else base / path


def resolve_workdir(config: ProcessConfig, config_dir: Path) -> Path:
    """Working directory of the command, relative to the config file's directory."""
    return _anchor(config.workdir or get_settings().default_workdir, config_dir)


def resolve_pidfile(config: ProcessConfig, config_dir: Path) -> Path:
    """Pidfile location, relative to the config file's directory."""
    return _anchor(config.pidfile or get_settings().default_pidfile, config_dir)


def resolve_stream(value: Optional[str], config: ProcessConfig, config_dir: Path) -> Path:
    """Redirection target for stdin/stdout/stderr; unset means discard."""
    if not value:
        return Path(os.devnull)
    return _anchor(value, resolve_workdir(config, config_dir))
