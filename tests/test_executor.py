"""Tests for remote command execution and the single reconnect retry."""

import pytest

from vastlink.core.exceptions import CommandError, SessionNotConnected
from vastlink.domain.session.executor import RemoteExecutor, is_not_connected
from vastlink.domain.session.manager import SessionManager

from conftest import FakeClient, FakeConnectionFactory


def dropped(cmd):
    raise SessionNotConnected()


def make_executor(target, factory, clock, hook=None):
    manager = SessionManager(
        target,
        factory,
        provision_hook=hook,
        resolver=lambda host, port: ["10.0.0.1"],
        sleep=clock.sleep,
    )
    return RemoteExecutor(manager), manager


class TestNotConnectedSignature:
    def test_signatures(self):
        assert is_not_connected(SessionNotConnected())
        assert is_not_connected(RuntimeError("SSH session not active"))
        assert not is_not_connected(RuntimeError("permission denied"))


class TestExecute:
    def test_connects_and_provisions_when_no_session(self, target, clock):
        seen = []
        factory = FakeConnectionFactory()
        executor, manager = make_executor(target, factory, clock, hook=seen.append)

        assert executor.execute("echo hi") == "ok\n"
        assert len(seen) == 1
        assert factory.clients[0].commands == ["echo hi"]

    def test_nonzero_exit_raises(self, target, clock):
        client = FakeClient(handler=lambda cmd: ("partial", "boom", 2))
        executor, _ = make_executor(target, FakeConnectionFactory([client]), clock)

        with pytest.raises(CommandError) as excinfo:
            executor.execute("false")

        assert excinfo.value.exit_status == 2
        assert excinfo.value.stderr == "boom"
        assert excinfo.value.command == "false"

    def test_quiet_returns_stdout(self, target, clock):
        client = FakeClient(handler=lambda cmd: ("partial", "boom", 2))
        executor, _ = make_executor(target, FakeConnectionFactory([client]), clock)

        assert executor.execute("false", quiet=True) == "partial"

    def test_run_reports_classification(self, target, clock):
        client = FakeClient(handler=lambda cmd: ("", "missing", 127))
        executor, _ = make_executor(target, FakeConnectionFactory([client]), clock)

        result = executor.run("nvidia-smi")

        assert not result.ok
        assert result.classification == "nonzero-exit"

    def test_verbose_streams_and_still_captures(self, target, clock):
        client = FakeClient(handler=lambda cmd: ("line\n", "", 0))
        executor, _ = make_executor(target, FakeConnectionFactory([client]), clock)

        assert executor.execute("bash install.sh", verbose=True) == "line\n"


class TestReconnect:
    def test_retries_once_after_drop(self, target, clock):
        seen = []
        first = FakeClient(handler=dropped)
        second = FakeClient()
        factory = FakeConnectionFactory([first, second])
        executor, manager = make_executor(target, factory, clock, hook=seen.append)

        assert executor.execute("uptime") == "ok\n"

        assert first.closed
        assert second.commands == ["uptime"]
        assert manager.session.client is second
        assert len(seen) == 1

    def test_gives_up_after_second_drop(self, target, clock):
        factory = FakeConnectionFactory([FakeClient(handler=dropped), FakeClient(handler=dropped)])
        executor, _ = make_executor(target, factory, clock)

        with pytest.raises(SessionNotConnected):
            executor.execute("uptime")

        assert len(factory.calls) == 2

    def test_other_errors_are_not_retried(self, target, clock):
        def broken(cmd):
            raise RuntimeError("channel closed by peer")

        factory = FakeConnectionFactory([FakeClient(handler=broken)])
        executor, _ = make_executor(target, factory, clock)

        with pytest.raises(RuntimeError):
            executor.execute("uptime")
        assert len(factory.calls) == 1
