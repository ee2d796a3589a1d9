"""Tests for the default launch collaborator."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from unittest.mock import patch

import psutil
import pytest

from procwarden.supervisor.errors import LaunchFailure
from procwarden.supervisor.launcher import Launcher, write_pidfile
from procwarden.supervisor.models import ProcessConfig

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX process semantics")


def reap(pid: int) -> None:
    try:
        proc = psutil.Process(pid)
        proc.kill()
        proc.wait(timeout=5)
    except psutil.NoSuchProcess:
        pass


class TestWritePidfile:

    def test_creates_parent(self, tmp_path: Path) -> None:
        path = tmp_path / "run" / "app.pid"
        write_pidfile(path, 123)
        assert path.read_text() == "123\n"


class TestLauncher:
    """Tests for background launching."""

    def test_launch_writes_pidfile(self, tmp_path: Path) -> None:
        config = ProcessConfig(command=["sleep", "30"], pidfile="proc.pid", workdir=".")
        pid = Launcher(tmp_path).launch(config)
        try:
            assert (tmp_path / "proc.pid").read_text().strip() == str(pid)
            proc = psutil.Process(pid)
            assert proc.cmdline() == ["sleep", "30"]
            assert Path(proc.cwd()) == tmp_path.resolve()
            # detached into its own session
            assert os.getsid(pid) == pid
        finally:
            reap(pid)

    def test_pidfile_mtime_close_to_start_time(self, tmp_path: Path) -> None:
        config = ProcessConfig(command=["sleep", "30"], pidfile="proc.pid", workdir=".")
        pid = Launcher(tmp_path).launch(config)
        try:
            started = psutil.Process(pid).create_time()
            assert abs(started - (tmp_path / "proc.pid").stat().st_mtime) < 2
        finally:
            reap(pid)

    def test_output_redirected(self, tmp_path: Path) -> None:
        (tmp_path / "input.txt").write_text("from stdin\n")
        config = ProcessConfig(
            command=["sh", "-c", "cat; echo oops >&2"],
            pidfile="proc.pid",
            workdir=".",
            infile="input.txt",
            outfile="out.log",
            errfile="err.log",
        )
        pid = Launcher(tmp_path).launch(config)
        psutil.Process(pid).wait(timeout=5)
        assert (tmp_path / "out.log").read_text() == "from stdin\n"
        assert (tmp_path / "err.log").read_text() == "oops\n"

    def test_missing_workdir(self, tmp_path: Path) -> None:
        config = ProcessConfig(command=["sleep", "30"], pidfile="proc.pid", workdir="absent")
        with pytest.raises(LaunchFailure, match="working directory"):
            Launcher(tmp_path).launch(config)
        assert not (tmp_path / "proc.pid").exists()

    def test_missing_executable(self, tmp_path: Path) -> None:
        config = ProcessConfig(command=["/nonexistent/daemon"], pidfile="proc.pid", workdir=".")
        with pytest.raises(LaunchFailure, match="cannot execute"):
            Launcher(tmp_path).launch(config)
        assert not (tmp_path / "proc.pid").exists()

    def test_missing_infile(self, tmp_path: Path) -> None:
        config = ProcessConfig(command=["cat"], pidfile="proc.pid", workdir=".", infile="absent.txt")
        with pytest.raises(LaunchFailure, match="redirection"):
            Launcher(tmp_path).launch(config)

    def test_empty_command(self, tmp_path: Path) -> None:
        with pytest.raises(LaunchFailure):
            Launcher(tmp_path).launch(ProcessConfig(pidfile="proc.pid"))


class TestForegroundLauncher:
    """Tests for foreground mode, with exec patched out."""

    def test_exec_replaces_process(self, tmp_path: Path) -> None:
        config = ProcessConfig(command=["sleep", "30"], pidfile="proc.pid", workdir=".")
        cwd = os.getcwd()
        with patch("procwarden.supervisor.launcher.os.execvp", side_effect=SystemExit(0)) as mock_exec:
            try:
                with pytest.raises(SystemExit):
                    Launcher(tmp_path, foreground=True).launch(config)
            finally:
                os.chdir(cwd)
        mock_exec.assert_called_once_with("sleep", ["sleep", "30"])
        pidfile = tmp_path / "proc.pid"
        assert pidfile.read_text().strip() == str(os.getpid())
        assert pidfile.stat().st_mtime == pytest.approx(psutil.Process().create_time(), abs=0.01)

    def test_exec_failure(self, tmp_path: Path) -> None:
        config = ProcessConfig(command=["/nonexistent/daemon"], pidfile="proc.pid", workdir=".")
        cwd = os.getcwd()
        try:
            with pytest.raises(LaunchFailure):
                Launcher(tmp_path, foreground=True).launch(config)
        finally:
            os.chdir(cwd)
        assert not (tmp_path / "proc.pid").exists()
