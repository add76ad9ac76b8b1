"""
SSH connection management and remote command execution.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

from iptremote.remote.executor import RemoteExecutor
from iptremote.remote.registry import Connection, ConnectionRegistry

__all__ = [
    "Connection",
    "ConnectionRegistry",
    "RemoteExecutor",
]
