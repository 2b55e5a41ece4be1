"""Tests for SystemShell launchers."""

from __future__ import annotations

import logging
import os
import subprocess

import pytest

from rover.shell import Shell, SystemShell


@pytest.fixture
def spawned(monkeypatch):
    calls: list[tuple[list[str], dict]] = []

    def fake_popen(args, **kwargs):
        calls.append((args, kwargs))

    monkeypatch.setattr(subprocess, "Popen", fake_popen)
    return calls


class TestOpenPath:
    def test_linux(self, spawned):
        SystemShell(platform="linux").open_path("/tmp/a.txt")
        args, kwargs = spawned[0]
        assert args == ["xdg-open", "/tmp/a.txt"]
        assert kwargs["start_new_session"] is True
        assert kwargs["stdout"] is subprocess.DEVNULL

    def test_darwin(self, spawned):
        SystemShell(platform="darwin").open_path("/tmp/a.txt")
        assert spawned[0][0] == ["open", "/tmp/a.txt"]

    def test_windows(self, monkeypatch, spawned):
        opened: list[str] = []
        monkeypatch.setattr(os, "startfile", opened.append, raising=False)
        SystemShell(platform="win32").open_path("C:\\a.txt")
        assert opened == ["C:\\a.txt"]
        assert spawned == []

    def test_missing_launcher_is_logged(self, monkeypatch, caplog):
        def missing(args, **kwargs):
            raise FileNotFoundError(2, "No such file", args[0])

        monkeypatch.setattr(subprocess, "Popen", missing)
        with caplog.at_level(logging.WARNING, logger="rover.shell"):
            SystemShell(platform="linux").open_path("/tmp/a.txt")
        assert "xdg-open" in caplog.text


class TestOpenTerminal:
    def test_linux(self, spawned):
        SystemShell(platform="linux").open_terminal("/srv")
        args, kwargs = spawned[0]
        assert args == ["x-terminal-emulator"]
        assert kwargs["cwd"] == "/srv"

    def test_darwin(self, spawned):
        SystemShell(platform="darwin").open_terminal("/srv")
        assert spawned[0][0] == ["open", "-a", "Terminal", "/srv"]

    def test_windows(self, spawned):
        SystemShell(platform="win32").open_terminal("C:\\work")
        args, kwargs = spawned[0]
        assert args == ["cmd.exe", "/c", "start", "cmd.exe"]
        assert kwargs["cwd"] == "C:\\work"
        assert kwargs["start_new_session"] is False

    def test_custom_terminal(self, spawned):
        SystemShell(platform="linux", terminal="kitty").open_terminal("/srv")
        assert spawned[0][0] == ["kitty"]


def test_satisfies_protocol():
    assert isinstance(SystemShell(), Shell)
