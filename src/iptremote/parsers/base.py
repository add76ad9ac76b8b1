"""
Base class for iptables output parsers.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator
from typing import Any

from iptremote.exceptions import ParseError

logger = logging.getLogger(__name__)


class OutputParser(ABC):
    """Abstract base class for line-oriented command output parsers.

    Parsers degrade gracefully: malformed lines are skipped and logged
    at debug level. With ``strict=True`` a parser may raise ParseError
    for the inconsistencies it knows how to detect.
    """

    #: Name of the command output format, used in log messages
    FORMAT: str = ""

    def __init__(self, strict: bool = False):
        self.strict = strict

    @abstractmethod
    def parse(self, output: str) -> Any:
        """Parse raw command output.

        Args:
            output: Raw command output

        Returns:
            Parsed structure
        """
        pass

    @staticmethod
    def _lines(output: str | None) -> Iterator[tuple[int, str]]:
        """Yield (1-based line number, line) pairs without line endings."""
        if not output:
            return
        for number, line in enumerate(output.splitlines(), start=1):
            yield number, line

    def _skip(self, line_number: int, line: str, reason: str) -> None:
        """Drop a line, or raise in strict mode."""
        if self.strict:
            raise ParseError(reason, line_number, line)
        logger.debug(f"{self.FORMAT}: skipping line {line_number} ({reason}): {line!r}")
