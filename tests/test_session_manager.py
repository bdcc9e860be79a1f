"""Tests for session lifecycle: retry, backoff, auth failures, provisioning hook."""

import errno
import socket

import paramiko
import pytest
from paramiko.ssh_exception import NoValidConnectionsError

from vastlink.core.exceptions import AuthenticationError, ConfigError, ConnectionError, ProvisionError
from vastlink.domain.session.manager import SessionManager, is_retryable_connect_error
from vastlink.domain.session.models import ConnectOptions, SessionTarget

from conftest import FakeClient, FakeConnectionFactory


def make_manager(target, factory, clock, addresses=("10.0.0.1",), hook=None):
    return SessionManager(
        target,
        factory,
        provision_hook=hook,
        resolver=lambda host, port: list(addresses),
        sleep=clock.sleep,
    )


class TestRetryableErrors:
    def test_network_errors_are_retryable(self):
        assert is_retryable_connect_error(ConnectionRefusedError())
        assert is_retryable_connect_error(socket.timeout("timed out"))
        assert is_retryable_connect_error(OSError(errno.EHOSTUNREACH, "No route to host"))

    def test_auth_is_not_retryable(self):
        assert not is_retryable_connect_error(paramiko.AuthenticationException("denied"))
        assert not is_retryable_connect_error(AuthenticationError("bad key"))

    def test_no_valid_connections_depends_on_causes(self):
        refused = NoValidConnectionsError(
            {("10.0.0.1", 22): OSError(errno.ECONNREFUSED, "Connection refused")}
        )
        assert is_retryable_connect_error(refused)


class TestConnect:
    def test_retries_then_succeeds(self, target, clock):
        client = FakeClient()
        factory = FakeConnectionFactory([ConnectionRefusedError(), ConnectionRefusedError(), client])
        manager = make_manager(target, factory, clock)

        result = manager.connect(ConnectOptions(provision=False))

        assert result.connected
        assert result.address == "10.0.0.1"
        assert len(factory.calls) == 3
        assert clock.sleeps == [2, 4]
        assert manager.session.client is client

    def test_round_robin_across_addresses(self, target, clock):
        factory = FakeConnectionFactory([ConnectionRefusedError(), FakeClient()])
        manager = make_manager(target, factory, clock, addresses=("10.0.0.1", "10.0.0.2"))

        result = manager.connect(ConnectOptions(provision=False))

        assert [address for _, address in factory.calls] == ["10.0.0.1", "10.0.0.2"]
        assert result.address == "10.0.0.2"
        assert clock.sleeps == []

    def test_gives_up_after_retry_ceiling(self, target, clock):
        factory = FakeConnectionFactory([ConnectionRefusedError() for _ in range(6)])
        manager = make_manager(target, factory, clock, addresses=("10.0.0.1", "10.0.0.2"))

        with pytest.raises(ConnectionError, match="after 3 attempts"):
            manager.connect()

        assert len(factory.calls) == 6
        assert clock.sleeps == [2, 4]
        assert manager.session is None

    def test_backoff_is_capped(self, clock):
        target = SessionTarget(host="h", password="pw", connect_retries=7)
        factory = FakeConnectionFactory([ConnectionResetError() for _ in range(7)])
        manager = make_manager(target, factory, clock)

        with pytest.raises(ConnectionError):
            manager.connect()

        assert clock.sleeps == [2, 4, 6, 8, 10, 10]

    def test_auth_failure_is_immediate(self, target, clock):
        factory = FakeConnectionFactory([paramiko.AuthenticationException("Authentication failed.")])
        manager = make_manager(target, factory, clock)

        with pytest.raises(AuthenticationError, match="id_ed25519"):
            manager.connect()

        assert len(factory.calls) == 1
        assert clock.sleeps == []

    def test_unreadable_key_is_immediate(self, target, clock):
        factory = FakeConnectionFactory([AuthenticationError("SSH key not found: /keys/id_ed25519")])
        manager = make_manager(target, factory, clock)

        with pytest.raises(AuthenticationError, match="not found"):
            manager.connect()
        assert len(factory.calls) == 1

    def test_missing_credential_fails_before_network(self, clock):
        factory = FakeConnectionFactory()
        manager = make_manager(SessionTarget(host="h"), factory, clock)

        with pytest.raises(AuthenticationError, match="credential"):
            manager.connect()
        assert factory.calls == []

    def test_missing_host(self, clock):
        factory = FakeConnectionFactory()
        manager = make_manager(SessionTarget(host="", password="pw"), factory, clock)

        with pytest.raises(ConfigError):
            manager.connect()
        assert factory.calls == []

    def test_non_network_error_is_not_retried(self, target, clock):
        factory = FakeConnectionFactory([paramiko.SSHException("Incompatible ssh server")])
        manager = make_manager(target, factory, clock)

        with pytest.raises(ConnectionError, match="Incompatible"):
            manager.connect()
        assert len(factory.calls) == 1


class TestProvisionHook:
    def test_hook_runs_on_connect(self, target, clock):
        seen = []
        manager = make_manager(target, FakeConnectionFactory(), clock, hook=seen.append)

        manager.connect(ConnectOptions(force=True))

        assert len(seen) == 1
        assert seen[0].force

    def test_hook_failure_tears_down_session(self, target, clock):
        client = FakeClient()

        def hook(options):
            raise ProvisionError("gateway never listened")

        manager = make_manager(target, FakeConnectionFactory([client]), clock, hook=hook)

        with pytest.raises(ProvisionError):
            manager.connect()

        assert manager.session is None
        assert client.closed

    def test_hook_closing_the_session_is_an_error(self, target, clock):
        manager = make_manager(target, FakeConnectionFactory(), clock)
        manager.set_provision_hook(lambda options: manager.disconnect())

        with pytest.raises(ConnectionError, match="closed during provisioning"):
            manager.ensure_session()

        assert manager.session is None

    def test_ensure_session_raises_when_connect_leaves_no_session(self, target, clock, monkeypatch):
        manager = make_manager(target, FakeConnectionFactory(), clock)
        monkeypatch.setattr(manager, "connect", lambda options=None: None)

        with pytest.raises(ConnectionError, match="No session"):
            manager.ensure_session()

    def test_reconnect_skips_hook(self, target, clock):
        seen = []
        factory = FakeConnectionFactory()
        manager = make_manager(target, factory, clock, hook=seen.append)
        manager.connect()

        manager.reconnect()

        assert len(seen) == 1
        assert len(factory.calls) == 2
        assert factory.clients[0].closed


class TestStatusAndDisconnect:
    def test_status_without_session_does_not_connect(self, target, clock):
        factory = FakeConnectionFactory()
        manager = make_manager(target, factory, clock)

        status = manager.connection_status()

        assert status == {"connected": False, "host": "gpu.example.com", "address": None}
        assert factory.calls == []

    def test_status_with_session_has_no_round_trip(self, target, clock):
        factory = FakeConnectionFactory()
        manager = make_manager(target, factory, clock)
        manager.connect(ConnectOptions(provision=False))
        client = factory.clients[0]

        assert manager.connection_status()["connected"]
        client.active = False
        assert not manager.connection_status()["connected"]
        assert client.commands == []

    def test_probe_connects_without_provisioning(self, target, clock):
        seen = []
        factory = FakeConnectionFactory()
        manager = make_manager(target, factory, clock, hook=seen.append)

        assert manager.connection_status(probe=True)["connected"]
        assert seen == []

    def test_status_without_host(self, clock):
        manager = make_manager(SessionTarget(host=""), FakeConnectionFactory(), clock)
        assert manager.connection_status(probe=True) == {"connected": False, "host": None, "address": None}

    def test_disconnect_is_idempotent(self, target, clock):
        factory = FakeConnectionFactory()
        manager = make_manager(target, factory, clock)
        manager.connect(ConnectOptions(provision=False))

        manager.disconnect()
        manager.disconnect()

        assert manager.session is None
        assert factory.clients[0].closed
