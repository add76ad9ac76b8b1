"""
Parser for ``iptables-save`` output.

Example input::

    *filter
    :INPUT ACCEPT [0:0]
    :FORWARD DROP [0:0]
    -A INPUT -p tcp -m tcp --dport 22 -j ACCEPT
    COMMIT

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import logging
import re
from enum import Enum

from iptremote.models import DumpChain, DumpRule, ParsedRuleContent
from iptremote.parsers.base import OutputParser

logger = logging.getLogger(__name__)


_RE_CHAIN_DECL = re.compile(r"^:(\S+)\s+(\S+)")
_RE_APPEND = re.compile(r"^-A\s+(\S+)\s+(.*)$")

# Flags that take exactly one value, mapped to ParsedRuleContent fields
VALUE_FLAGS = {
    "-p": "protocol",
    "-s": "source",
    "-d": "destination",
    "--sport": "sport",
    "--dport": "dport",
    "-j": "target",
    "--to-destination": "to_destination",
}


def tokenize_rule_content(content: str) -> ParsedRuleContent:
    """Break the options of one rule into known fields.

    Known flags consume the following token; a repeated flag keeps its
    last value. Any other ``-`` token goes to ``other``, joined with the
    next token when that token is not itself a flag. Options taking
    several arguments (``-m multiport --dports 80,443`` is fine, but
    ``--tcp-flags SYN,ACK SYN`` is not) therefore split into separate
    ``other`` entries. Bare tokens not consumed by a flag (``!``) are
    dropped.

    Args:
        content: Rule text after ``-A <chain>``

    Returns:
        ParsedRuleContent
    """
    parsed = ParsedRuleContent()
    tokens = content.split()

    i = 0
    while i < len(tokens):
        token = tokens[i]

        if token in VALUE_FLAGS:
            value = tokens[i + 1] if i + 1 < len(tokens) else None
            setattr(parsed, VALUE_FLAGS[token], value)
            i += 2
            continue

        if token.startswith("-"):
            if i + 1 < len(tokens) and not tokens[i + 1].startswith("-"):
                parsed.other.append(f"{token} {tokens[i + 1]}")
                i += 2
                continue
            parsed.other.append(token)

        i += 1

    return parsed


class _State(Enum):
    """Scanner states."""
    BEFORE_TABLE = "before_table"
    IN_TABLE = "in_table"


class SaveFormatParser(OutputParser):
    """Turns an iptables-save stream into ``{table: [DumpChain]}``.

    ``*name`` opens a table section, ``:name policy [pkts:bytes]``
    declares a chain, ``-A name ...`` appends a rule to an already
    declared chain of the current table. ``COMMIT``, comments and
    blank lines are ignored.

    A rule for a chain that was not declared in the current table is
    dropped; with ``strict=True`` it raises ParseError instead.
    """

    FORMAT = "iptables-save"

    def parse(self, output: str) -> dict[str, list[DumpChain]]:
        """Parse iptables-save output.

        Args:
            output: Raw ``iptables-save`` output

        Returns:
            Mapping of table name to chains in declaration order
        """
        tables: dict[str, list[DumpChain]] = {}
        state = _State.BEFORE_TABLE
        table_name: str | None = None
        chains: list[DumpChain] = []

        for line_number, line in self._lines(output):
            if line.startswith("*"):
                if state is _State.IN_TABLE:
                    tables[table_name] = chains
                table_name = line[1:].strip()
                chains = []
                state = _State.IN_TABLE
                continue

            if line.startswith(":"):
                if state is not _State.IN_TABLE:
                    self._skip(line_number, line, "chain declared outside a table")
                    continue
                match = _RE_CHAIN_DECL.match(line)
                if match:
                    chains.append(DumpChain(name=match.group(1), policy=match.group(2)))
                continue

            if line.startswith("-A "):
                match = _RE_APPEND.match(line)
                if not match:
                    continue
                chain_name, content = match.group(1), match.group(2)

                chain = self._find_chain(chains, chain_name)
                if chain is None:
                    self._skip(line_number, line, f"rule for undeclared chain {chain_name}")
                    continue

                chain.rules.append(DumpRule(
                    raw=line,
                    content=content,
                    parsed=tokenize_rule_content(content),
                ))

        if state is _State.IN_TABLE:
            tables[table_name] = chains

        return tables

    @staticmethod
    def _find_chain(chains: list[DumpChain], name: str) -> DumpChain | None:
        for chain in chains:
            if chain.name == name:
                return chain
        return None
