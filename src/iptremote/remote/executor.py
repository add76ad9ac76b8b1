"""
Remote command execution over an established SSH connection.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import asyncio
import logging
import time
from typing import TYPE_CHECKING

import asyncssh

from iptremote.exceptions import (
    CommandExecutionError,
    CommandTimeoutError,
    RemoteChannelError,
)
from iptremote.models import CommandResult

if TYPE_CHECKING:
    from iptremote.remote.registry import Connection

logger = logging.getLogger(__name__)

_UNSET = object()


class RemoteExecutor:
    """Runs one command per SSH channel and collects its output.

    Commands are opaque strings; nothing is quoted or validated here.
    """

    def __init__(self, timeout: float | None = None):
        """Initialize the executor.

        Args:
            timeout: Default per-command deadline in seconds (None = none)
        """
        self.timeout = timeout

    async def run(
        self,
        connection: "Connection",
        command: str,
        timeout: float | None = _UNSET,
    ) -> CommandResult:
        """Execute a command and wait for its exit status.

        Args:
            connection: Open connection from the registry
            command: Command line to run on the remote host
            timeout: Deadline for this command, overriding the default

        Returns:
            CommandResult with stdout, stderr and exit code 0

        Raises:
            CommandExecutionError: Remote process exited non-zero
            CommandTimeoutError: Deadline exceeded
            RemoteChannelError: Channel could not be opened or was lost
        """
        deadline = self.timeout if timeout is _UNSET else timeout
        logger.debug(f"[{connection.session}] {connection.credentials.host}$ {command}")

        start = time.monotonic()
        try:
            async with asyncio.timeout(deadline):
                completed = await connection.client.run(command, check=False)
        except asyncio.TimeoutError:
            logger.warning(f"Command timed out after {deadline}s on {connection.credentials.host}: {command}")
            raise CommandTimeoutError(command, deadline) from None
        except (asyncssh.Error, OSError) as e:
            raise RemoteChannelError(f"Execution of {command!r} failed: {e}") from e

        exit_code = completed.exit_status
        if exit_code is None:
            # Killed by a signal
            exit_code = -1

        result = CommandResult(
            command=command,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            exit_code=exit_code,
            duration_seconds=time.monotonic() - start,
        )

        if not result.ok:
            logger.debug(f"Command exited {exit_code}: {result.stderr.strip()}")
            raise CommandExecutionError(result.exit_code, result.stderr, command)

        return result
