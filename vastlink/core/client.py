from __future__ import annotations
import socket
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Literal, Optional, Tuple

import paramiko

from .constants import DEFAULT_KEEPALIVE_INTERVAL, DEFAULT_READY_TIMEOUT, DEFAULT_SSH_PORT
from .exceptions import AuthenticationError, SessionNotConnected


OutputCallback = Callable[[str], None]


@dataclass
class ClientConfig:
    host: str
    user: str
    port: int = DEFAULT_SSH_PORT
    auth_method: Literal["password", "key"] = "key"
    password: Optional[str] = None
    key_path: Optional[str] = None
    timeout: float = DEFAULT_READY_TIMEOUT
    keepalive_interval: int = DEFAULT_KEEPALIVE_INTERVAL


class RemoteClient:
    """
    Paramiko SSHClient wrapper.

    - keeps host / user / port explicitly (paramiko does not)
    - password or private key login (Ed25519 / RSA / ECDSA probed in turn)
    - connects to a specific resolved address while keeping the configured host
    - turns a dead transport into ``SessionNotConnected``
    - context manager support
    """

    def __init__(
        self,
        host: str,
        user: str,
        port: int = DEFAULT_SSH_PORT,
        auth_method: Literal["password", "key"] = "key",
        password: Optional[str] = None,
        key_path: Optional[str] = None,
        timeout: float = DEFAULT_READY_TIMEOUT,
        keepalive_interval: int = DEFAULT_KEEPALIVE_INTERVAL,
    ) -> None:
        self.config = ClientConfig(
            host=host,
            user=user,
            port=port,
            auth_method=auth_method,
            password=password,
            key_path=key_path,
            timeout=timeout,
            keepalive_interval=keepalive_interval,
        )
        self.client = paramiko.SSHClient()
        self.client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        self.address: Optional[str] = None

    # --------------------
    # Connection management
    # --------------------
    def connect(self, address: Optional[str] = None) -> None:
        """Connect to ``address`` (a resolved IP) or to the configured host"""
        cfg = self.config
        target = address or cfg.host

        kwargs = dict(
            hostname=target,
            port=cfg.port,
            username=cfg.user,
            timeout=cfg.timeout,
            banner_timeout=cfg.timeout,
            auth_timeout=cfg.timeout,
            look_for_keys=False,
            allow_agent=False,
        )
        if cfg.auth_method == "key":
            kwargs["pkey"] = self._load_private_key(cfg.key_path, cfg.password)
        elif cfg.auth_method == "password":
            kwargs["password"] = cfg.password
        else:
            raise ValueError(f"Unsupported auth method: {cfg.auth_method}")

        self.client.connect(**kwargs)
        self.address = target

        transport = self.client.get_transport()
        if transport is not None and cfg.keepalive_interval:
            transport.set_keepalive(cfg.keepalive_interval)

    def is_active(self) -> bool:
        """Local liveness check, no round trip"""
        transport = self.client.get_transport()
        return transport is not None and transport.is_active()

    # --------------------
    # Load private key
    # --------------------
    def _load_private_key(self, path: Optional[str], passphrase: Optional[str] = None) -> paramiko.PKey:
        """Probe Ed25519, RSA and ECDSA in turn"""
        if not path:
            raise AuthenticationError("Key authentication selected but no key path configured")
        p = Path(path).expanduser()
        if not p.is_file():
            raise AuthenticationError(f"SSH key not found: {p}")

        last_error: Optional[Exception] = None
        for key_cls in (paramiko.Ed25519Key, paramiko.RSAKey, paramiko.ECDSAKey):
            try:
                return key_cls.from_private_key_file(str(p), password=passphrase)
            except paramiko.PasswordRequiredException as e:
                raise AuthenticationError(f"SSH key {p} is encrypted and no passphrase was given") from e
            except (paramiko.SSHException, ValueError) as e:
                last_error = e
        raise AuthenticationError(f"Failed to load private key at {p}: {last_error}")

    # --------------------
    # Helpers
    # --------------------
    def _open(self, cmd: str, timeout: Optional[float]):
        if not self.is_active():
            raise SessionNotConnected("not connected")
        try:
            return self.client.exec_command(cmd, timeout=timeout)
        except (paramiko.SSHException, EOFError, OSError) as e:
            if not self.is_active():
                raise SessionNotConnected(f"not connected: {e}") from e
            raise

    def exec_with_code(self, cmd: str, timeout: Optional[float] = None) -> Tuple[str, str, int]:
        """Run a command and return (stdout, stderr, exit_code)"""
        stdin, stdout, stderr = self._open(cmd, timeout)
        try:
            out = stdout.read().decode("utf-8", errors="replace")
            err = stderr.read().decode("utf-8", errors="replace")
            exit_code = stdout.channel.recv_exit_status()
        except (EOFError, socket.error) as e:
            if isinstance(e, socket.timeout):
                raise
            if not self.is_active():
                raise SessionNotConnected(f"not connected: {e}") from e
            raise
        return out, err, exit_code

    def exec_with_code_streaming(
        self,
        cmd: str,
        stdout_callback: Optional[OutputCallback] = None,
        stderr_callback: Optional[OutputCallback] = None,
        timeout: Optional[float] = None,
    ) -> Tuple[str, str, int]:
        """
        Run a command, forwarding output as it arrives.

        Args:
            cmd: command to run
            stdout_callback: receives each stdout chunk (defaults to sys.stdout)
            stderr_callback: receives each stderr chunk (defaults to sys.stderr)

        Returns:
            (stdout, stderr, exit_code)
        """
        stdin, stdout, stderr = self._open(cmd, timeout)
        channel = stdout.channel

        out_buf = []
        err_buf = []

        def emit_out(data: str) -> None:
            out_buf.append(data)
            if stdout_callback:
                stdout_callback(data)
            else:
                sys.stdout.write(data)
                sys.stdout.flush()

        def emit_err(data: str) -> None:
            err_buf.append(data)
            if stderr_callback:
                stderr_callback(data)
            else:
                sys.stderr.write(data)
                sys.stderr.flush()

        while not channel.exit_status_ready():
            has_output = False
            if channel.recv_ready():
                data = channel.recv(4096).decode('utf-8', errors='replace')
                if data:
                    has_output = True
                    emit_out(data)
            if channel.recv_stderr_ready():
                data = channel.recv_stderr(4096).decode('utf-8', errors='replace')
                if data:
                    has_output = True
                    emit_err(data)
            if not has_output:
                if channel.closed and not self.is_active():
                    raise SessionNotConnected("not connected: channel closed mid-command")
                time.sleep(0.01)

        # drain what arrived after the exit status
        while channel.recv_ready():
            data = channel.recv(4096).decode('utf-8', errors='replace')
            if not data:
                break
            emit_out(data)
        while channel.recv_stderr_ready():
            data = channel.recv_stderr(4096).decode('utf-8', errors='replace')
            if not data:
                break
            emit_err(data)

        exit_code = channel.recv_exit_status()
        return ''.join(out_buf), ''.join(err_buf), exit_code

    def close(self) -> None:
        self.client.close()

    # --------------------
    # Context manager
    # --------------------
    def __enter__(self) -> RemoteClient:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
