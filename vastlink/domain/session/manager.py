"""
Session lifecycle: resolve, connect with retry, provision, reconnect
"""
import errno
import socket
import time
from typing import Any, Callable, Dict, List, Optional

import paramiko
from paramiko.ssh_exception import NoValidConnectionsError

from ...core.constants import BACKOFF_CEILING_SECONDS, BACKOFF_STEP_SECONDS
from ...core.exceptions import AuthenticationError, ConfigError, ConnectionError, VastlinkError
from ...core.interfaces import ConnectionFactory
from ...core.logging import get_logger
from .models import ConnectOptions, ConnectResult, RemoteSession, SessionTarget

logger = get_logger(__name__)

ProvisionHook = Callable[[ConnectOptions], None]
Resolver = Callable[[str, int], List[str]]

RETRYABLE_ERRNOS = {
    errno.ECONNREFUSED,
    errno.ECONNRESET,
    errno.ETIMEDOUT,
    errno.EHOSTUNREACH,
    errno.ENETUNREACH,
}
RETRYABLE_MESSAGES = (
    "econnrefused",
    "econnreset",
    "connection refused",
    "connection reset",
    "timed out",
    "unreachable",
)


def is_retryable_connect_error(exc: BaseException) -> bool:
    """Network-level failures are worth another attempt; anything else is not"""
    if isinstance(exc, (AuthenticationError, paramiko.AuthenticationException, paramiko.BadHostKeyException)):
        return False
    if isinstance(exc, NoValidConnectionsError):
        errors = list(exc.errors.values())
        return bool(errors) and all(is_retryable_connect_error(e) for e in errors)
    if isinstance(exc, (socket.timeout, TimeoutError, ConnectionRefusedError, ConnectionResetError)):
        return True
    if isinstance(exc, OSError) and exc.errno in RETRYABLE_ERRNOS:
        return True
    message = str(exc).lower()
    return any(m in message for m in RETRYABLE_MESSAGES)


def resolve_host_addresses(host: str, port: int) -> List[str]:
    """All addresses for ``host`` in resolver order; the name itself if lookup fails"""
    try:
        infos = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError):
        return [host]
    addresses: List[str] = []
    for info in infos:
        address = info[4][0]
        if address and address not in addresses:
            addresses.append(address)
    return addresses or [host]


class SessionManager:
    """
    Owns the single logical connection to the managed host.

    Callers never touch the session handle directly: they go through
    ``connect`` / ``reconnect`` / ``disconnect`` / ``ensure_session``.
    """

    def __init__(
        self,
        target: SessionTarget,
        connection_factory: ConnectionFactory,
        provision_hook: Optional[ProvisionHook] = None,
        resolver: Resolver = resolve_host_addresses,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.target = target
        self.connection_factory = connection_factory
        self.provision_hook = provision_hook
        self._resolver = resolver
        self._sleep = sleep
        self._session: Optional[RemoteSession] = None

    @property
    def session(self) -> Optional[RemoteSession]:
        return self._session

    def set_provision_hook(self, hook: Optional[ProvisionHook]) -> None:
        self.provision_hook = hook

    # --------------------
    # Lifecycle
    # --------------------
    def connect(self, options: Optional[ConnectOptions] = None) -> ConnectResult:
        """
        Open the session and, unless told otherwise, provision the host.

        The call only succeeds once provisioning reports the gateway
        listening. A provisioning failure closes the session again.

        Raises:
            ConfigError: no host configured
            AuthenticationError: credential missing or rejected (not retried)
            ConnectionError: every attempt failed, or provisioning closed the session
        """
        options = options or ConnectOptions()
        self.disconnect()

        self._session = self._open_session()
        logger.info("SSH connection established to %s via %s", self.target.describe(), self._session.address)

        if options.provision and self.provision_hook is not None:
            try:
                self.provision_hook(options)
            except Exception:
                logger.error("Provisioning failed, closing session to %s", self.target.host)
                self.disconnect()
                raise
            if self._session is None:
                raise ConnectionError(f"Session to {self.target.describe()} closed during provisioning")

        return ConnectResult(connected=True, host=self.target.host, address=self._session.address)

    def reconnect(self) -> RemoteSession:
        """Re-establish the transport after a drop; provisioning is not re-run"""
        logger.warning("Reconnecting to %s", self.target.describe())
        self.disconnect()
        self._session = self._open_session()
        return self._session

    def ensure_session(self) -> RemoteSession:
        """The live session, connecting (and provisioning) first if there is none"""
        if self._session is None:
            self.connect(ConnectOptions())
        if self._session is None:
            raise ConnectionError(f"No session to {self.target.describe()} after connecting")
        return self._session

    def disconnect(self) -> None:
        """Close the session; safe to call any number of times"""
        session, self._session = self._session, None
        if session is not None:
            try:
                session.close()
            except Exception as e:
                logger.debug("Ignoring error while closing session: %s", e)

    def connection_status(self, probe: bool = False) -> Dict[str, Any]:
        """
        Cheap liveness snapshot.

        With an existing session this never touches the network. With no
        session it reports disconnected, unless ``probe`` asks for a connect
        attempt. A probe never provisions.
        """
        if not self.target.host:
            return {"connected": False, "host": None, "address": None}
        if self._session is not None:
            return {
                "connected": self._session.alive,
                "host": self.target.host,
                "address": self._session.address,
            }
        if probe:
            try:
                result = self.connect(ConnectOptions(provision=False))
                return {"connected": True, "host": self.target.host, "address": result.address}
            except VastlinkError as e:
                logger.debug("Status probe failed: %s", e)
        return {"connected": False, "host": self.target.host, "address": None}

    # --------------------
    # Internals
    # --------------------
    def _validate_target(self) -> None:
        if not self.target.host:
            raise ConfigError("No remote host configured (set VASTLINK_HOST)")
        if not self.target.key_path and not self.target.password:
            raise AuthenticationError(
                "No SSH credential configured: set VASTLINK_SSH_KEY or VASTLINK_PASSWORD"
            )

    def _credential_hint(self) -> str:
        if self.target.key_path:
            return f"key {self.target.key_path}"
        return "password"

    def _open_session(self) -> RemoteSession:
        self._validate_target()
        target = self.target
        addresses = self._resolver(target.host, target.port)
        rounds = max(1, target.connect_retries)
        last_error: Optional[BaseException] = None

        for round_no in range(1, rounds + 1):
            for address in addresses:
                try:
                    client = self.connection_factory.create(target, address)
                    return RemoteSession(target=target, client=client, address=address)
                except AuthenticationError:
                    raise
                except paramiko.AuthenticationException as e:
                    raise AuthenticationError(
                        f"Authentication failed for {target.describe()} using {self._credential_hint()}: {e}"
                    ) from e
                except Exception as e:
                    if not is_retryable_connect_error(e):
                        raise ConnectionError(
                            f"SSH connection to {target.host} ({address}) failed: {e}"
                        ) from e
                    last_error = e
                    logger.warning(
                        "Connect attempt %d/%d to %s failed: %s", round_no, rounds, address, e
                    )
            if round_no < rounds:
                delay = min(BACKOFF_STEP_SECONDS * round_no, BACKOFF_CEILING_SECONDS)
                logger.info("Retrying connection in %ss", delay)
                self._sleep(delay)

        raise ConnectionError(
            f"SSH connection to {target.host} failed after {rounds} attempts: {last_error}"
        ) from last_error
