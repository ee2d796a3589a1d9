"""Config persistence: load, merge and atomically save the YAML record."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import ValidationError

from procwarden.logging_config import get_logger
from procwarden.supervisor.errors import ConfigParseError, UsageError
from procwarden.supervisor.models import MUTABLE_FIELDS, ConfigOverrides, ProcessConfig

logger = get_logger(__name__)

PathLike = Union[str, Path]


class ConfigStore:
    """Owns the on-disk representation of a ProcessConfig."""

    def load(self, path: PathLike) -> Optional[ProcessConfig]:
        """Load a config, or return None when the file does not exist."""
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("config_not_found", path=str(path))
            return None
        except OSError as exc:
            raise ConfigParseError(f"cannot read {path}: {exc}") from exc

        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigParseError(f"invalid YAML in {path}: {exc}") from exc

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigParseError(f"{path}: expected a mapping at top level, got {type(data).__name__}")

        try:
            config = ProcessConfig.model_validate(data)
        except ValidationError as exc:
            raise ConfigParseError(f"invalid config in {path}: {exc}") from exc

        logger.debug("config_loaded", path=str(path), command=config.command)
        return config

    def save(self, path: PathLike, config: ProcessConfig, temporary: bool = False) -> None:
        """Write the config atomically (temp file + rename).

        A temporary update is never written to disk.
        """
        path = Path(path)
        if temporary:
            logger.info("config_save_skipped", path=str(path), reason="temporary")
            return

        text = yaml.safe_dump(
            config.to_mapping(),
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
        directory = path.parent
        directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(directory))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
                os.fchmod(fh.fileno(), 0o644)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info("config_saved", path=str(path))

    def merge(self, config: ProcessConfig, overrides: Optional[ConfigOverrides]) -> bool:
        """Apply overrides that differ from stored values. Returns True if anything changed."""
        if overrides is None:
            return False
        changed = False
        for name in MUTABLE_FIELDS:
            value = getattr(overrides, name)
            if value is None or value == getattr(config, name):
                continue
            old = getattr(config, name)
            try:
                setattr(config, name, value)
            except ValidationError as exc:
                raise UsageError(f"invalid value for {name}: {exc}") from exc
            logger.info("config_field_changed", field=name, old=old, new=value)
            changed = True
        return changed
