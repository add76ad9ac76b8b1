"""
iptremote command line.

Each invocation opens one SSH session to the target host, runs the
requested iptables operation and closes the session again.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from iptremote import __version__
from iptremote.config import get_config
from iptremote.exceptions import IptremoteError
from iptremote.logging_config import configure_logging, get_error_stats, reset_error_stats
from iptremote.models import (
    DumpChain,
    ListingChain,
    SSHCredentials,
    Table as IptablesTable,
    TableFetchResult,
)
from iptremote.parsers.listing import ListingParser
from iptremote.parsers.save import SaveFormatParser
from iptremote.service import RuleService

console = Console()

CLI_SESSION = "cli"


def parse_device(device: str) -> tuple[str, int | None]:
    """Split a DEVICE argument into host and optional port.

    Accepts ``host``, ``host:port``, a bare IPv6 address and
    ``[ipv6]:port``.

    Raises:
        click.BadParameter: Empty host or a port outside 1-65535
    """
    if device.startswith("["):
        host, bracket, rest = device[1:].partition("]")
        if not bracket or (rest and not rest.startswith(":")):
            raise click.BadParameter(f"malformed address {device!r}", param_hint="DEVICE")
        port = rest[1:]
    elif device.count(":") > 1:
        # Bare IPv6 address, no port
        host, port = device, ""
    else:
        host, _, port = device.partition(":")

    if not host:
        raise click.BadParameter(f"no host in {device!r}", param_hint="DEVICE")
    if not port:
        return host, None
    if not (port.isascii() and port.isdigit()) or not 0 < int(port) < 65536:
        raise click.BadParameter(f"invalid port {port!r}", param_hint="DEVICE")
    return host, int(port)


def get_credentials(device: str, username: str | None, key: str | None) -> SSHCredentials:
    """Build credentials from a DEVICE string and options.

    Args:
        device: Hostname or IP, optionally with :port (IPv6 as [addr]:port)
        username: SSH username (falls back to config)
        key: Private key path (falls back to config)

    Returns:
        SSHCredentials
    """
    config = get_config()

    host, port = parse_device(device)
    username = username or config.ssh_username
    key = key or config.ssh_key_path

    if not username:
        raise click.UsageError("No SSH username given (-u or IPTREMOTE_SSH_USERNAME)")
    if not key:
        raise click.UsageError("No private key given (-k or IPTREMOTE_SSH_KEY_PATH)")

    return SSHCredentials(
        host=host,
        port=port or config.ssh_port,
        username=username,
        key_path=key,
    )


def run_remote(
    credentials: SSHCredentials,
    operation: Callable[[RuleService, str], Awaitable[Any]],
    status: str,
) -> Any:
    """Connect, run ``operation(service, session)`` and disconnect.

    Library errors are printed and end the process with status 1.
    """
    service = RuleService.from_config()
    reset_error_stats()

    async def execute():
        async with service.registry:
            with console.status(f"[cyan]Connecting to {credentials.target}...[/cyan]"):
                await service.connect(CLI_SESSION, credentials)
            with console.status(f"[cyan]{status}...[/cyan]"):
                return await operation(service, CLI_SESSION)

    try:
        return asyncio.run(execute())
    except IptremoteError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


def connection_options(func):
    """Add SSH connection options to a Click command."""
    func = click.option(
        "-k", "--key",
        type=click.Path(dir_okay=False),
        help="Private key file (default: IPTREMOTE_SSH_KEY_PATH)",
    )(func)
    func = click.option(
        "-u", "--username",
        help="SSH username (default: IPTREMOTE_SSH_USERNAME)",
    )(func)
    func = click.argument("device")(func)
    return func


def table_option(func):
    """Add the --table option to a Click command."""
    return click.option(
        "-t", "--table",
        type=click.Choice(IptablesTable.names()),
        default=IptablesTable.FILTER.value,
        show_default=True,
        help="iptables table",
    )(func)


# =============================================================================
# Main command group
# =============================================================================

@click.group()
@click.version_option(__version__, prog_name="iptremote")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    help="Also log to this rotating file at DEBUG level (default: IPTREMOTE_LOG_FILE)",
)
def cli(debug: bool, log_file: str | None):
    """Inspect and change iptables rules on remote hosts over SSH.

    DEVICE arguments are a hostname or IP, optionally with :port.
    """
    configure_logging(debug=debug, log_file=log_file or get_config().log_file)


# =============================================================================
# Read commands
# =============================================================================

@cli.command("rules")
@connection_options
@table_option
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def show_rules(device, username, key, table, as_json):
    """List the rules of one table.

    Examples:

        iptremote rules fw1.example.com -u admin -k ~/.ssh/id_ed25519

        iptremote rules 10.0.0.1:2222 -t nat --json
    """
    credentials = get_credentials(device, username, key)
    chains = run_remote(
        credentials,
        lambda service, session: service.list_rules(session, table),
        f"Listing {table} table",
    )

    if as_json:
        click.echo(json.dumps([c.to_dict() for c in chains], indent=2))
        return

    _output_listing(table, chains)


@cli.command("all-rules")
@connection_options
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def show_all_rules(device, username, key, as_json):
    """List the rules of the filter, nat, raw and mangle tables."""
    credentials = get_credentials(device, username, key)
    results = run_remote(
        credentials,
        lambda service, session: service.fetch_all_tables(session),
        "Listing all tables",
    )

    if as_json:
        click.echo(json.dumps({name: r.to_dict() for name, r in results.items()}, indent=2))
        return

    _output_fetch_summary(results)
    for name, result in results.items():
        if result.ok:
            _output_listing(name, result.chains)

    failed = get_error_stats().get("table_fetch_failed", 0)
    if failed:
        console.print(f"[yellow]{failed} of {len(results)} tables could not be listed[/yellow]")


@cli.command("dump")
@connection_options
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def show_dump(device, username, key, as_json):
    """Show the parsed iptables-save output."""
    credentials = get_credentials(device, username, key)
    tables = run_remote(
        credentials,
        lambda service, session: service.get_dump(session),
        "Reading iptables-save",
    )

    if as_json:
        click.echo(json.dumps(_dump_to_dict(tables), indent=2))
        return

    _output_dump(tables)


@cli.command("exec")
@connection_options
@click.argument("command")
def exec_command(device, username, key, command):
    """Run a raw COMMAND and print its output."""
    credentials = get_credentials(device, username, key)
    output = run_remote(
        credentials,
        lambda service, session: service.run(session, command),
        "Running command",
    )
    click.echo(output, nl=False)


# =============================================================================
# Mutating commands
# =============================================================================

@cli.command("add")
@connection_options
@table_option
@click.argument("rule", nargs=-1, required=True)
def add_rule(device, username, key, table, rule):
    """Add a rule given as iptables arguments.

    Use -- before the rule so its options are not read as ours:

        iptremote add fw1 -u admin -- -A INPUT -p tcp --dport 22 -j ACCEPT
    """
    credentials = get_credentials(device, username, key)
    rule_text = " ".join(rule)
    result = run_remote(
        credentials,
        lambda service, session: service.add_rule(session, rule_text, table),
        "Adding rule",
    )
    console.print(f"[green]{result.message}[/green]")


@cli.command("delete")
@connection_options
@table_option
@click.argument("chain")
@click.argument("rule_number", type=click.IntRange(min=1))
def delete_rule(device, username, key, table, chain, rule_number):
    """Delete rule RULE_NUMBER from CHAIN."""
    credentials = get_credentials(device, username, key)
    result = run_remote(
        credentials,
        lambda service, session: service.delete_rule(session, chain, rule_number, table),
        "Deleting rule",
    )
    console.print(f"[green]{result.message}[/green]")


@cli.command("save")
@connection_options
def save_configuration(device, username, key):
    """Save the running rules to the host's rules file."""
    credentials = get_credentials(device, username, key)
    result = run_remote(
        credentials,
        lambda service, session: service.save_configuration(session),
        "Saving configuration",
    )
    console.print(f"[green]{result.message}[/green]")


@cli.command("restore")
@connection_options
def restore_configuration(device, username, key):
    """Restore the running rules from the host's rules file."""
    credentials = get_credentials(device, username, key)
    result = run_remote(
        credentials,
        lambda service, session: service.restore_configuration(session),
        "Restoring configuration",
    )
    console.print(f"[green]{result.message}[/green]")


# =============================================================================
# Offline parsing
# =============================================================================

@cli.command("parse-listing")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def parse_listing(file: str, as_json: bool):
    """Parse saved ``iptables -L -n -v --line-numbers`` output from FILE."""
    path = Path(file)
    chains = ListingParser().parse(path.read_text())

    if as_json:
        click.echo(json.dumps([c.to_dict() for c in chains], indent=2))
        return

    _output_listing(path.name, chains)


@cli.command("parse-dump")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--strict", is_flag=True, help="Fail on rules for undeclared chains")
def parse_dump(file: str, as_json: bool, strict: bool):
    """Parse saved ``iptables-save`` output from FILE."""
    path = Path(file)
    try:
        tables = SaveFormatParser(strict=strict).parse(path.read_text())
    except IptremoteError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(_dump_to_dict(tables), indent=2))
        return

    _output_dump(tables)


# =============================================================================
# Output helpers
# =============================================================================

def _dump_to_dict(tables: dict[str, list[DumpChain]]) -> dict[str, Any]:
    return {name: [c.to_dict() for c in chains] for name, chains in tables.items()}


def _output_listing(title: str, chains: list[ListingChain]) -> None:
    """Print listing chains as tables."""
    if not chains:
        console.print(f"[yellow]{title}: no chains[/yellow]")
        return

    for chain in chains:
        table = Table(title=f"{title} / {chain.name}")
        table.add_column("#", style="dim", justify="right")
        table.add_column("Target", style="green")
        table.add_column("Prot")
        table.add_column("Source")
        table.add_column("Destination")
        table.add_column("Ports")
        table.add_column("NAT To")
        table.add_column("Pkts", justify="right")

        for rule in chain.rules:
            ports = []
            if rule.source_port:
                ports.append(f"spt:{rule.source_port}")
            if rule.dest_port:
                ports.append(f"dpt:{rule.dest_port}")

            table.add_row(
                str(rule.num),
                rule.target,
                rule.prot,
                rule.source,
                rule.destination,
                " ".join(ports) or "-",
                rule.to_destination or "-",
                rule.packets or "-",
            )

        console.print(table)


def _output_fetch_summary(results: dict[str, TableFetchResult]) -> None:
    table = Table(show_header=True)
    table.add_column("Table", style="cyan")
    table.add_column("Status")
    table.add_column("Chains", justify="right")
    table.add_column("Rules", justify="right")

    for name, result in results.items():
        if result.ok:
            status = "[green]ok[/green]"
            rules = sum(c.rule_count() for c in result.chains)
        else:
            status = f"[red]failed: {result.error}[/red]"
            rules = 0
        table.add_row(name, status, str(len(result.chains)), str(rules))

    console.print(Panel("[bold]iptables tables[/bold]"))
    console.print(table)


def _output_dump(tables: dict[str, list[DumpChain]]) -> None:
    """Print parsed iptables-save content."""
    if not tables:
        console.print("[yellow]No tables found[/yellow]")
        return

    for table_name, chains in tables.items():
        console.print(Panel(f"[bold]*{table_name}[/bold]"))

        for chain in chains:
            console.print(f"[bold cyan]{chain.name}[/bold cyan] policy [green]{chain.policy or '-'}[/green]")
            if not chain.rules:
                continue

            rules_table = Table()
            rules_table.add_column("#", style="dim", justify="right")
            rules_table.add_column("Target", style="green")
            rules_table.add_column("Protocol")
            rules_table.add_column("Source")
            rules_table.add_column("Destination")
            rules_table.add_column("Ports")
            rules_table.add_column("Other")

            for index, rule in enumerate(chain.rules, start=1):
                parsed = rule.parsed
                ports = []
                if parsed.sport:
                    ports.append(f"sport {parsed.sport}")
                if parsed.dport:
                    ports.append(f"dport {parsed.dport}")
                target = parsed.target or "-"
                if parsed.to_destination:
                    target = f"{target} -> {parsed.to_destination}"

                rules_table.add_row(
                    str(index),
                    target,
                    parsed.protocol or "any",
                    parsed.source or "any",
                    parsed.destination or "any",
                    ", ".join(ports) or "-",
                    " ".join(parsed.other) or "-",
                )

            console.print(rules_table)
        console.print()


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
