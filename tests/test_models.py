"""Tests for the config, hook and status models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from procwarden.supervisor.models import (
    HookEvent,
    HookSet,
    ProcessConfig,
    ProcessEntry,
    ProcessStatus,
    StatusCode,
)


class TestStatusCode:
    """Tests for status code ordering."""

    def test_values(self) -> None:
        assert StatusCode.ZOMBIE == -3
        assert StatusCode.INCONSISTENT == -2
        assert StatusCode.NOT_RUNNING == -1
        assert StatusCode.STOPPED == 0
        assert StatusCode.RUNNING == 1
        assert StatusCode.STARTED == 2
        assert StatusCode.RESTARTED == 3

    def test_ordering(self) -> None:
        assert StatusCode.TIMED_OUT < StatusCode.ZOMBIE < StatusCode.INCONSISTENT
        assert StatusCode.NOT_RUNNING < StatusCode.STOPPED < StatusCode.RUNNING

    def test_is_alive(self) -> None:
        assert StatusCode.RUNNING.is_alive
        assert StatusCode.RESTARTED.is_alive
        assert not StatusCode.STOPPED.is_alive
        assert not StatusCode.INCONSISTENT.is_alive

    def test_describe(self) -> None:
        status = ProcessStatus(StatusCode.RUNNING, pid=42, command_line="sleep 100")
        assert status.describe() == "RUNNING pid=42 cmd=sleep 100"
        assert ProcessStatus(StatusCode.NOT_RUNNING).describe() == "NOT_RUNNING pid=0"


class TestProcessEntry:

    def test_defunct_placeholder(self) -> None:
        assert ProcessEntry(pid=1, command_line="[sleep] <defunct>", start_time=0).defunct
        assert not ProcessEntry(pid=1, command_line="sleep 100", start_time=0).defunct


class TestHookSet:
    """Tests for flat-mapping parsing and failure suppression."""

    def test_parse_flat_mapping(self) -> None:
        hooks = HookSet.model_validate({
            "before_start": "echo hi",
            "after_stop": ["rm", "-f", "lock"],
            "nocheck": True,
            "nocheck_after_stop": False,
        })
        assert hooks.before_start.command == "echo hi"
        assert hooks.after_stop.command == ["rm", "-f", "lock"]
        assert hooks.after_start.command is None
        assert hooks.nocheck is True
        assert hooks.after_stop.nocheck is False

    def test_per_event_flag_wins(self) -> None:
        hooks = HookSet.model_validate({
            "before_stop": "false",
            "after_stop": "false",
            "nocheck": True,
            "nocheck_after_stop": False,
        })
        assert hooks.resolve(HookEvent.BEFORE_STOP).suppress_failure is True
        assert hooks.resolve(HookEvent.AFTER_STOP).suppress_failure is False

    def test_not_suppressed_by_default(self) -> None:
        hooks = HookSet.model_validate({"before_start": "false"})
        spec = hooks.resolve(HookEvent.BEFORE_START)
        assert spec.command == "false"
        assert spec.suppress_failure is False

    def test_unknown_event_rejected(self) -> None:
        with pytest.raises(ValidationError):
            HookSet.model_validate({"on_crash": "echo"})

    def test_unknown_nocheck_event_rejected(self) -> None:
        with pytest.raises(ValidationError):
            HookSet.model_validate({"nocheck_on_crash": True})

    def test_empty_command_is_absent(self) -> None:
        hooks = HookSet.model_validate({"before_start": "  "})
        assert hooks.before_start.command is None

    def test_list_arguments_coerced_to_strings(self) -> None:
        hooks = HookSet.model_validate({"after_start": ["sleep", 1]})
        assert hooks.after_start.command == ["sleep", "1"]

    def test_to_mapping_round_trip(self) -> None:
        flat = {
            "before_start": "echo hi",
            "after_stop": ["rm", "-f", "lock"],
            "nocheck": False,
            "nocheck_before_start": True,
        }
        assert HookSet.model_validate(flat).to_mapping() == flat

    def test_none_is_empty(self) -> None:
        assert HookSet.model_validate(None).to_mapping() == {}


class TestProcessConfig:
    """Tests for the persisted config record."""

    def test_defaults_unset(self) -> None:
        config = ProcessConfig()
        assert config.command == []
        assert config.pidfile is None
        assert config.allow is None

    def test_command_numbers_coerced(self) -> None:
        config = ProcessConfig.model_validate({"command": ["sleep", 100]})
        assert config.command == ["sleep", "100"]

    def test_command_string_split(self) -> None:
        config = ProcessConfig.model_validate({"command": "python -m http.server 'a b'"})
        assert config.command == ["python", "-m", "http.server", "a b"]

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ProcessConfig.model_validate({"command": ["x"], "restart_policy": "always"})

    def test_allow_must_be_integer(self) -> None:
        with pytest.raises(ValidationError):
            ProcessConfig.model_validate({"allow": "soon"})

    def test_invalid_match_regex_rejected(self) -> None:
        with pytest.raises(ValidationError, match="invalid match pattern"):
            ProcessConfig.model_validate({"command": ["sleep", "5"], "match": "sleep("})

    def test_invalid_match_assignment_rejected(self) -> None:
        config = ProcessConfig(command=["sleep", "5"], match=".")
        with pytest.raises(ValidationError):
            config.match = "[unclosed"
        assert config.match == "."

    def test_to_mapping_skips_unset(self) -> None:
        config = ProcessConfig(command=["sleep", "5"], pidfile="p.pid", allow=-1)
        assert config.to_mapping() == {"command": ["sleep", "5"], "pidfile": "p.pid", "allow": -1}

    def test_to_mapping_field_order(self) -> None:
        config = ProcessConfig.model_validate({
            "hooks": {"before_start": "true"},
            "allow": 3,
            "workdir": "/srv",
            "command": ["a"],
        })
        assert list(config.to_mapping()) == ["command", "workdir", "allow", "hooks"]
