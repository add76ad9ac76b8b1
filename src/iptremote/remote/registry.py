"""
Session-indexed registry of SSH connections.

Each caller-chosen session key owns at most one live connection.
Connections stay open until closed explicitly or the registry shuts
down; there is no idle eviction.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import asyncssh

from iptremote.config import RemoteConfig, get_config
from iptremote.exceptions import (
    KeyReadError,
    NoActiveConnectionError,
    RemoteConnectionError,
)
from iptremote.models import SSHCredentials

logger = logging.getLogger(__name__)

# Failures worth another connection attempt
_TRANSIENT_ERRORS = (OSError, asyncio.TimeoutError, asyncssh.ConnectionLost)


@dataclass
class Connection:
    """An authenticated SSH connection bound to one session.

    ``lock`` serializes commands sent over this session. A re-open hands
    it to the replacing connection; closing the session drops it.
    """
    session: str
    credentials: SSHCredentials
    client: Any  # asyncssh.SSHClientConnection
    opened_at: datetime = field(default_factory=datetime.now)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    async def close(self) -> None:
        self.client.close()
        await self.client.wait_closed()


class ConnectionRegistry:
    """Owns the lifecycle of per-session SSH connections.

    Usage:
        async with ConnectionRegistry() as registry:
            await registry.open("alice", credentials)
            connection = registry.get("alice")

    Re-opening an open session connects first and only then replaces
    and closes the old connection. A failed re-open leaves the old
    connection in place.
    """

    def __init__(
        self,
        connect_timeout: float | None = None,
        connect_retries: int = 0,
        retry_delay: float = 1.0,
        known_hosts: str | None = None,
    ):
        """Initialize the registry.

        Args:
            connect_timeout: Deadline per connection attempt in seconds
            connect_retries: Extra attempts after a transient transport failure
            retry_delay: Pause between attempts in seconds
            known_hosts: known_hosts file for host key checks (None disables)
        """
        self.connect_timeout = connect_timeout
        self.connect_retries = connect_retries
        self.retry_delay = retry_delay
        self.known_hosts = known_hosts

        self._connections: dict[str, Connection] = {}
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: RemoteConfig | None = None) -> "ConnectionRegistry":
        config = config or get_config()
        return cls(
            connect_timeout=config.connect_timeout,
            connect_retries=config.connect_retries,
            retry_delay=config.retry_delay,
            known_hosts=config.known_hosts,
        )

    async def __aenter__(self) -> "ConnectionRegistry":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close_all()

    def __contains__(self, session: str) -> bool:
        return self.is_open(session)

    def __len__(self) -> int:
        return len(self._connections)

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    async def open(self, session: str, credentials: SSHCredentials) -> Connection:
        """Open an SSH connection and register it under ``session``.

        Args:
            session: Opaque session key
            credentials: Host, port, username and private key path

        Returns:
            The registered Connection

        Raises:
            KeyReadError: Key file unreadable; raised before any network I/O
            RemoteConnectionError: Authentication or transport failure
        """
        private_key = self._load_private_key(credentials)
        client = await self._connect(credentials, private_key)

        connection = Connection(session=session, credentials=credentials, client=client)
        async with self._lock:
            previous = self._connections.get(session)
            if previous is not None:
                # Keep commands queued on the old connection in order
                connection.lock = previous.lock
            self._connections[session] = connection

        if previous is not None:
            logger.warning(
                f"Session {session!r} re-opened; closing previous connection "
                f"to {previous.credentials.target}"
            )
            await self._close_connection(previous)

        logger.info(f"SSH connection established to {credentials.target} for session {session!r}")
        return connection

    async def close(self, session: str) -> None:
        """Close and forget the session's connection. No-op if none."""
        async with self._lock:
            connection = self._connections.pop(session, None)

        if connection is None:
            return

        await self._close_connection(connection)
        logger.info(f"SSH connection closed for session {session!r}")

    async def close_all(self) -> None:
        """Close every registered connection."""
        async with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()

        for connection in connections:
            await self._close_connection(connection)

        if connections:
            logger.info(f"Closed {len(connections)} SSH connection(s)")

    # ==========================================================================
    # Lookup
    # ==========================================================================

    def is_open(self, session: str) -> bool:
        return session in self._connections

    def get(self, session: str) -> Connection:
        """Return the session's connection.

        Raises:
            NoActiveConnectionError: Session has no open connection
        """
        connection = self._connections.get(session)
        if connection is None:
            raise NoActiveConnectionError(session)
        return connection

    def sessions(self) -> list[str]:
        return list(self._connections)

    def session_lock(self, session: str) -> asyncio.Lock:
        """Lock serializing command execution for one session.

        The lock belongs to the open connection and is carried over when
        the session is re-opened.

        Raises:
            NoActiveConnectionError: Session has no open connection
        """
        return self.get(session).lock

    # ==========================================================================
    # Internals
    # ==========================================================================

    def _load_private_key(self, credentials: SSHCredentials) -> asyncssh.SSHKey:
        path = credentials.key_file
        try:
            key_data = path.read_bytes()
        except OSError as e:
            raise KeyReadError(str(path), e.strerror or str(e)) from e

        try:
            return asyncssh.import_private_key(key_data, credentials.passphrase)
        except (asyncssh.KeyImportError, ValueError) as e:
            raise KeyReadError(str(path), str(e)) from e

    async def _connect(self, credentials: SSHCredentials, private_key: asyncssh.SSHKey) -> Any:
        connect_kwargs = {
            "host": credentials.host,
            "port": credentials.port,
            "username": credentials.username,
            "client_keys": [private_key],
            "known_hosts": self.known_hosts,
        }

        attempts = max(self.connect_retries, 0) + 1
        last_error: Exception | None = None
        reason = "unknown error"

        for attempt in range(1, attempts + 1):
            try:
                async with asyncio.timeout(self.connect_timeout):
                    return await asyncssh.connect(**connect_kwargs)
            except asyncio.TimeoutError as e:
                last_error = e
                reason = f"timed out after {self.connect_timeout}s"
            except _TRANSIENT_ERRORS as e:
                last_error = e
                reason = str(e) or type(e).__name__
            except asyncssh.Error as e:
                # Authentication and host key failures are final
                logger.error(f"SSH connection to {credentials.target} failed: {e}")
                raise RemoteConnectionError(credentials.target, str(e)) from e

            if attempt < attempts:
                logger.warning(
                    f"Connection attempt {attempt}/{attempts} to {credentials.target} "
                    f"failed ({reason}); retrying in {self.retry_delay}s"
                )
                await asyncio.sleep(self.retry_delay)

        logger.error(f"SSH connection to {credentials.target} failed: {reason}")
        raise RemoteConnectionError(credentials.target, reason) from last_error

    async def _close_connection(self, connection: Connection) -> None:
        try:
            await connection.close()
        except (asyncssh.Error, OSError) as e:
            logger.debug(f"Error closing connection for session {connection.session!r}: {e}")
