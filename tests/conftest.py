"""Shared fakes for session, provisioning and sync tests."""

import os
import re
import subprocess
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

import pytest

from vastlink.core.interfaces import CommandExecutor, ConnectionFactory
from vastlink.domain.session.models import CommandResult, SessionTarget

Response = Union[str, Tuple[str, str, int], CommandResult, Callable[[str], object]]


class ScriptedExecutor(CommandExecutor):
    """
    Answers commands from regex rules; the most recently added rule wins.

    Unmatched commands succeed with empty output.
    """

    def __init__(self):
        self.rules: List[Tuple[re.Pattern, Response]] = []
        self.commands: List[str] = []

    def on(self, pattern: str, response: Response = "") -> "ScriptedExecutor":
        self.rules.insert(0, (re.compile(pattern), response))
        return self

    def run(self, command, verbose=False, timeout=None):
        self.commands.append(command)
        for pattern, response in self.rules:
            if pattern.search(command):
                return self._to_result(command, response)
        return CommandResult(command=command, stdout="", stderr="", exit_status=0)

    def _to_result(self, command: str, response: Response) -> CommandResult:
        if callable(response):
            response = response(command)
        if isinstance(response, CommandResult):
            return response
        if isinstance(response, tuple):
            stdout, stderr, code = response
            return CommandResult(command=command, stdout=stdout, stderr=stderr, exit_status=code)
        return CommandResult(command=command, stdout=str(response or ""), stderr="", exit_status=0)

    def ran(self, pattern: str) -> List[str]:
        regex = re.compile(pattern)
        return [c for c in self.commands if regex.search(c)]


class LocalShellExecutor(CommandExecutor):
    """Runs commands with local bash against a throwaway $HOME"""

    def __init__(self, home: Path, fail_on: Optional[str] = None):
        self.home = home
        self.fail_on = fail_on
        self.commands: List[str] = []

    def run(self, command, verbose=False, timeout=None):
        self.commands.append(command)
        if self.fail_on and self.fail_on in command:
            return CommandResult(command=command, stdout="", stderr="simulated failure", exit_status=1)
        env = {**os.environ, "HOME": str(self.home)}
        proc = subprocess.run(
            ["bash", "-c", command],
            capture_output=True,
            text=True,
            env=env,
            timeout=timeout or 60,
        )
        return CommandResult(command=command, stdout=proc.stdout, stderr=proc.stderr, exit_status=proc.returncode)


class FakeClient:
    def __init__(self, handler: Optional[Callable[[str], Tuple[str, str, int]]] = None):
        self.handler = handler
        self.active = True
        self.closed = False
        self.commands: List[str] = []

    def is_active(self) -> bool:
        return self.active and not self.closed

    def exec_with_code(self, cmd, timeout=None):
        self.commands.append(cmd)
        if self.handler is not None:
            return self.handler(cmd)
        return ("ok\n", "", 0)

    def exec_with_code_streaming(self, cmd, stdout_callback=None, stderr_callback=None, timeout=None):
        out, err, code = self.exec_with_code(cmd, timeout=timeout)
        if stdout_callback and out:
            stdout_callback(out)
        if stderr_callback and err:
            stderr_callback(err)
        return out, err, code

    def close(self) -> None:
        self.closed = True


class FakeConnectionFactory(ConnectionFactory):
    """Pops one outcome per attempt: an exception to raise or a client to return"""

    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [])
        self.calls: List[Tuple[SessionTarget, str]] = []
        self.clients: List[FakeClient] = []

    def create(self, target, address):
        self.calls.append((target, address))
        outcome = self.outcomes.pop(0) if self.outcomes else FakeClient()
        if isinstance(outcome, BaseException):
            raise outcome
        self.clients.append(outcome)
        return outcome


class FakeClock:
    """Monotonic clock that only moves when the code under test sleeps"""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def scripted():
    return ScriptedExecutor()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def remote_home(tmp_path):
    home = tmp_path / "remote_home"
    home.mkdir()
    return home


@pytest.fixture
def local_shell(remote_home):
    return LocalShellExecutor(remote_home)


@pytest.fixture
def target():
    return SessionTarget(host="gpu.example.com", key_path="/keys/id_ed25519", connect_retries=3)
