"""
iptremote - Remote iptables inspection and management over SSH

Opens per-session SSH connections to Linux hosts, runs iptables
commands through them and parses the listing and iptables-save
output formats into structured chains and rules.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

__version__ = "0.1.0"
__author__ = "DNS Science.io"
__copyright__ = "Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company"
