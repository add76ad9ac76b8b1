"""
Exceptions raised by iptremote.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""


class IptremoteError(Exception):
    """Base exception for iptremote errors."""
    pass


class KeyReadError(IptremoteError):
    """Private key file could not be read or decoded."""

    def __init__(self, key_path: str, reason: str):
        self.key_path = key_path
        self.reason = reason
        super().__init__(f"Cannot read private key {key_path}: {reason}")


class RemoteConnectionError(IptremoteError, ConnectionError):
    """SSH authentication or transport failure while opening a session."""

    def __init__(self, target: str, reason: str):
        self.target = target
        self.reason = reason
        super().__init__(f"SSH connection to {target} failed: {reason}")


class NoActiveConnectionError(IptremoteError):
    """No open connection exists for the session."""

    def __init__(self, session: str):
        self.session = session
        super().__init__(f"No active SSH connection for session {session!r}")


class CommandExecutionError(IptremoteError):
    """Remote command exited with a non-zero status."""

    def __init__(self, exit_code: int, stderr: str, command: str | None = None):
        self.exit_code = exit_code
        self.stderr = stderr
        self.command = command
        super().__init__(f"Command failed (exit {exit_code}): {stderr.strip()}")


class CommandTimeoutError(IptremoteError):
    """Remote command did not finish before its deadline."""

    def __init__(self, command: str, timeout: float):
        self.command = command
        self.timeout = timeout
        super().__init__(f"Command timed out after {timeout:g}s: {command}")


class RemoteChannelError(IptremoteError):
    """Channel could not be opened or the transport dropped mid-command."""
    pass


class InvalidTableError(IptremoteError, ValueError):
    """Table name outside filter/nat/raw/mangle."""

    def __init__(self, table: str):
        self.table = table
        super().__init__(f"Unknown iptables table: {table!r}")


class ParseError(IptremoteError):
    """Raised by parsers running in strict mode."""

    def __init__(self, message: str, line_number: int | None = None, line: str | None = None):
        self.line_number = line_number
        self.line = line
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)
