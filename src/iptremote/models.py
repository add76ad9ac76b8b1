"""
iptables data models.

Two rule shapes exist because the host offers two dump formats:
the numbered ``iptables -L`` listing and the ``iptables-save`` stream.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any


class Table(str, Enum):
    """iptables tables managed remotely."""

    FILTER = "filter"
    NAT = "nat"
    RAW = "raw"
    MANGLE = "mangle"

    @classmethod
    def names(cls) -> list[str]:
        """Table names in fetch order."""
        return [t.value for t in cls]


DEFAULT_TABLE = Table.FILTER


@dataclass
class SSHCredentials:
    """Credentials for a remote host."""
    host: str
    username: str
    key_path: str
    port: int = 22
    passphrase: str | None = None

    @property
    def target(self) -> str:
        """Return user@host:port for log messages."""
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{self.username}@{host}:{self.port}"

    @property
    def key_file(self) -> Path:
        return Path(self.key_path).expanduser()


@dataclass
class CommandResult:
    """Output of one remote command."""
    command: str
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


# =============================================================================
# Listing format (iptables -L -n -v --line-numbers)
# =============================================================================

@dataclass
class ExtraFields:
    """Port and NAT fields found in the free-form listing column."""
    source_port: str | None = None
    dest_port: str | None = None
    to_dest_ip: str | None = None
    to_dest_port: str | None = None
    to_destination: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_port": self.source_port,
            "dest_port": self.dest_port,
            "to_dest_ip": self.to_dest_ip,
            "to_dest_port": self.to_dest_port,
            "to_destination": self.to_destination,
        }


@dataclass
class ListingRule:
    """One numbered rule line of a table listing."""
    num: int
    target: str
    prot: str
    opt: str
    source: str
    destination: str
    extra: str = ""
    packets: str | None = None
    bytes: str | None = None
    fields: ExtraFields = field(default_factory=ExtraFields)

    @property
    def source_port(self) -> str | None:
        return self.fields.source_port

    @property
    def dest_port(self) -> str | None:
        return self.fields.dest_port

    @property
    def to_dest_ip(self) -> str | None:
        return self.fields.to_dest_ip

    @property
    def to_dest_port(self) -> str | None:
        return self.fields.to_dest_port

    @property
    def to_destination(self) -> str | None:
        return self.fields.to_destination

    def to_dict(self) -> dict[str, Any]:
        data = {
            "num": self.num,
            "packets": self.packets,
            "bytes": self.bytes,
            "target": self.target,
            "prot": self.prot,
            "opt": self.opt,
            "source": self.source,
            "destination": self.destination,
            "extra": self.extra,
        }
        data.update(self.fields.to_dict())
        return data


@dataclass
class ListingChain:
    """Chain as shown by the listing format."""
    name: str
    rules: list[ListingRule] = field(default_factory=list)

    def rule_count(self) -> int:
        return len(self.rules)

    def to_dict(self) -> dict[str, Any]:
        return {
            "chain": self.name,
            "rules": [r.to_dict() for r in self.rules],
        }


# =============================================================================
# Save format (iptables-save)
# =============================================================================

@dataclass
class ParsedRuleContent:
    """Breakdown of the options of one iptables-save rule."""
    protocol: str | None = None
    source: str | None = None
    destination: str | None = None
    sport: str | None = None
    dport: str | None = None
    target: str | None = None
    to_destination: str | None = None
    other: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "protocol": self.protocol,
            "source": self.source,
            "destination": self.destination,
            "sport": self.sport,
            "dport": self.dport,
            "target": self.target,
            "to_destination": self.to_destination,
            "other": list(self.other),
        }


@dataclass
class DumpRule:
    """One ``-A`` line of an iptables-save dump."""
    raw: str
    content: str
    parsed: ParsedRuleContent = field(default_factory=ParsedRuleContent)

    def to_dict(self) -> dict[str, Any]:
        return {
            "raw": self.raw,
            "content": self.content,
            "parsed": self.parsed.to_dict(),
        }


@dataclass
class DumpChain:
    """Chain declared by a ``:name policy [pkts:bytes]`` line."""
    name: str
    policy: str | None = None
    rules: list[DumpRule] = field(default_factory=list)

    def rule_count(self) -> int:
        return len(self.rules)

    def to_dict(self) -> dict[str, Any]:
        return {
            "chain": self.name,
            "policy": self.policy,
            "rules": [r.to_dict() for r in self.rules],
        }


# =============================================================================
# Service results
# =============================================================================

@dataclass
class TableFetchResult:
    """Listing of one table, or the reason it could not be fetched."""
    table: str
    chains: list[ListingChain] = field(default_factory=list)
    error: str | None = None
    fetched_at: datetime | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "table": self.table,
            "ok": self.ok,
            "error": self.error,
            "fetched_at": self.fetched_at.isoformat() if self.fetched_at else None,
            "chains": [c.to_dict() for c in self.chains],
        }


@dataclass
class OperationResult:
    """Outcome of a mutating operation."""
    success: bool
    message: str
    command: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "command": self.command,
        }
