"""
Remote iptables command builders.

The strings are sent verbatim to the remote shell; no escaping or
validation is applied to rule text or chain names.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

from iptremote.config import DEFAULT_RULES_FILE
from iptremote.models import DEFAULT_TABLE


def table_option(table: str) -> str:
    """Return ``-t <table> `` or nothing for the default table."""
    if table == DEFAULT_TABLE.value:
        return ""
    return f"-t {table} "


def list_rules_command(table: str) -> str:
    return f"sudo iptables -t {table} -L -n -v --line-numbers"


def dump_command() -> str:
    return "sudo iptables-save"


def add_rule_command(rule: str, table: str = DEFAULT_TABLE.value) -> str:
    return f"sudo iptables {table_option(table)}{rule}"


def delete_rule_command(chain: str, rule_number: int | str, table: str = DEFAULT_TABLE.value) -> str:
    return f"sudo iptables {table_option(table)}-D {chain} {rule_number}"


def save_command(rules_file: str = DEFAULT_RULES_FILE) -> str:
    return f"sudo iptables-save > {rules_file}"


def restore_command(rules_file: str = DEFAULT_RULES_FILE) -> str:
    return f"sudo iptables-restore < {rules_file}"
