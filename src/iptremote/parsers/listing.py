"""
Parser for ``iptables -t <table> -L -n -v --line-numbers`` output.

Rule lines are read by position: num, pkts, bytes, target, prot, opt,
source, destination, then free-form extra text (ports, NAT targets,
match details) which is mined by extract_extra_fields().

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import logging
import re
from enum import Enum

from iptremote.models import ExtraFields, ListingChain, ListingRule
from iptremote.parsers.base import OutputParser

logger = logging.getLogger(__name__)


# Extra column patterns
_RE_SPT = re.compile(r"spt:(\d+)")
_RE_DPT = re.compile(r"dpts?:(\d+(?::\d+)?)")
_RE_TO = re.compile(r"to:(\d{1,3}(?:\.\d{1,3}){3})(?::(\d+))?")

_RE_CHAIN_HEADER = re.compile(r"Chain (\S+)")
_RE_RULE_LINE = re.compile(r"^\s*\d")

# num pkts bytes target prot opt source destination
_MIN_RULE_COLUMNS = 8


def extract_extra_fields(extra: str | None) -> ExtraFields:
    """Extract ports and NAT destination from the listing's extra column.

    Each pattern is optional and independent of the others.

    Args:
        extra: Free-form text after the destination column

    Returns:
        ExtraFields, with unset fields left as None
    """
    fields = ExtraFields()
    if not extra:
        return fields

    match = _RE_SPT.search(extra)
    if match:
        fields.source_port = match.group(1)

    match = _RE_DPT.search(extra)
    if match:
        fields.dest_port = match.group(1)

    match = _RE_TO.search(extra)
    if match:
        ip, port = match.group(1), match.group(2)
        fields.to_dest_ip = ip
        fields.to_dest_port = port
        fields.to_destination = f"{ip}:{port}" if port else ip

    return fields


class _State(Enum):
    """Scanner states."""
    BEFORE_CHAIN = "before_chain"
    IN_CHAIN = "in_chain"
    # Header seen but its name could not be extracted; rules are dropped
    IN_UNNAMED_CHAIN = "in_unnamed_chain"


class ListingParser(OutputParser):
    """Turns one table's numbered listing into ordered chains.

    The scan keeps a single "current chain". A header line starts a new
    chain and emits the previous one; a line starting with a digit is a
    rule of the current chain. Everything else (column headers, blank
    lines) is ignored. Chains and rules keep their order of appearance.
    """

    FORMAT = "iptables-listing"

    def parse(self, output: str) -> list[ListingChain]:
        """Parse listing output.

        Args:
            output: Raw ``iptables -L -n -v --line-numbers`` output

        Returns:
            Chains in header order; empty for empty or unrecognized input
        """
        chains: list[ListingChain] = []
        state = _State.BEFORE_CHAIN
        current: ListingChain | None = None

        for line_number, line in self._lines(output):
            if line.startswith("Chain"):
                if current is not None:
                    chains.append(current)
                    current = None

                match = _RE_CHAIN_HEADER.match(line)
                if match:
                    current = ListingChain(name=match.group(1))
                    state = _State.IN_CHAIN
                else:
                    logger.debug(f"Unrecognized chain header on line {line_number}: {line!r}")
                    state = _State.IN_UNNAMED_CHAIN
                continue

            if not _RE_RULE_LINE.match(line):
                continue

            if state is not _State.IN_CHAIN:
                self._skip(line_number, line, f"rule line in state {state.value}")
                continue

            rule = self._parse_rule(line)
            if rule is None:
                self._skip(line_number, line, "malformed rule line")
                continue
            current.rules.append(rule)

        if current is not None:
            chains.append(current)

        return chains

    def _parse_rule(self, line: str) -> ListingRule | None:
        """Parse a numbered rule line.

        Columns: num pkts bytes target prot opt source destination [extra...]
        """
        parts = line.split()
        if len(parts) < _MIN_RULE_COLUMNS:
            return None

        try:
            num = int(parts[0])
        except ValueError:
            return None

        extra = " ".join(parts[_MIN_RULE_COLUMNS:])
        return ListingRule(
            num=num,
            packets=parts[1],
            bytes=parts[2],
            target=parts[3],
            prot=parts[4],
            opt=parts[5],
            source=parts[6],
            destination=parts[7],
            extra=extra,
            fields=extract_extra_fields(extra),
        )
