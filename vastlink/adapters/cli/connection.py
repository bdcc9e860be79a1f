"""
Connection factory implementation
"""
from ...core.client import RemoteClient
from ...core.interfaces import ConnectionFactory
from ...domain.session.models import SessionTarget


class ParamikoConnectionFactory(ConnectionFactory):
    """RemoteClient connection factory"""

    def create(self, target: SessionTarget, address: str) -> RemoteClient:
        """
        Create and connect SSH client.

        Errors are passed through untouched so the session manager can
        tell retryable network failures from credential problems.

        Args:
            target: Connection target
            address: Resolved address to dial

        Returns:
            Connected RemoteClient instance
        """
        client = RemoteClient(
            host=target.host,
            user=target.user,
            port=target.port,
            auth_method=target.auth_method,
            password=target.password,
            key_path=target.key_path,
            timeout=target.ready_timeout,
            keepalive_interval=target.keepalive_interval,
        )

        try:
            client.connect(address)
        except Exception:
            client.close()
            raise
        return client
