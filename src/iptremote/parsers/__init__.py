"""
iptables output parsers.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

from iptremote.parsers.base import OutputParser
from iptremote.parsers.listing import ListingParser, extract_extra_fields
from iptremote.parsers.save import SaveFormatParser, tokenize_rule_content

__all__ = [
    "OutputParser",
    "ListingParser",
    "SaveFormatParser",
    "extract_extra_fields",
    "tokenize_rule_content",
]
