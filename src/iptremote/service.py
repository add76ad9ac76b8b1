"""
iptables rule service.

Composes the connection registry, the remote executor and the output
parsers into list/add/delete/save/restore operations keyed by session.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import logging
from datetime import datetime

from iptremote import commands
from iptremote.config import DEFAULT_RULES_FILE, RemoteConfig, get_config
from iptremote.exceptions import (
    InvalidTableError,
    IptremoteError,
    NoActiveConnectionError,
)
from iptremote.logging_config import track_error
from iptremote.models import (
    DEFAULT_TABLE,
    CommandResult,
    DumpChain,
    ListingChain,
    OperationResult,
    SSHCredentials,
    Table,
    TableFetchResult,
)
from iptremote.parsers.listing import ListingParser
from iptremote.parsers.save import SaveFormatParser
from iptremote.remote.executor import RemoteExecutor
from iptremote.remote.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


def validate_table(table: str | Table) -> str:
    """Return the table name, rejecting anything but the four known tables."""
    try:
        return Table(table).value
    except ValueError:
        raise InvalidTableError(str(table)) from None


class RuleService:
    """Remote iptables operations for sessions held in a registry.

    Commands for one session are serialized through the registry's
    session lock, so a multi-step operation such as fetching all four
    tables always observes its own steps in order.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        executor: RemoteExecutor | None = None,
        listing_parser: ListingParser | None = None,
        save_parser: SaveFormatParser | None = None,
        rules_file: str = DEFAULT_RULES_FILE,
    ):
        self.registry = registry
        self.executor = executor or RemoteExecutor()
        self.listing_parser = listing_parser or ListingParser()
        self.save_parser = save_parser or SaveFormatParser()
        self.rules_file = rules_file

    @classmethod
    def from_config(
        cls,
        config: RemoteConfig | None = None,
        registry: ConnectionRegistry | None = None,
    ) -> "RuleService":
        config = config or get_config()
        return cls(
            registry=registry or ConnectionRegistry.from_config(config),
            executor=RemoteExecutor(timeout=config.command_timeout),
            save_parser=SaveFormatParser(strict=config.strict_dump),
            rules_file=config.rules_file,
        )

    # ==========================================================================
    # Sessions
    # ==========================================================================

    async def connect(self, session: str, credentials: SSHCredentials) -> OperationResult:
        await self.registry.open(session, credentials)
        return OperationResult(success=True, message="Connected")

    async def disconnect(self, session: str) -> None:
        await self.registry.close(session)

    def is_connected(self, session: str) -> bool:
        return self.registry.is_open(session)

    async def run(self, session: str, command: str) -> str:
        """Run a raw command and return its stdout.

        Raises:
            NoActiveConnectionError: Session is not connected
            CommandExecutionError: Command exited non-zero
        """
        result = await self._execute(session, command)
        return result.stdout

    async def _execute(self, session: str, command: str) -> CommandResult:
        async with self.registry.session_lock(session):
            # Looked up again: the session may have been closed or re-opened while waiting
            connection = self.registry.get(session)
            return await self.executor.run(connection, command)

    # ==========================================================================
    # Read operations
    # ==========================================================================

    async def list_rules(self, session: str, table: str | Table = DEFAULT_TABLE) -> list[ListingChain]:
        """List one table's chains. Failures propagate."""
        table = validate_table(table)
        output = await self.run(session, commands.list_rules_command(table))
        return self.listing_parser.parse(output)

    async def fetch_all_tables(self, session: str) -> dict[str, TableFetchResult]:
        """List all four tables, recording per-table failures.

        A table that cannot be fetched gets a result with ``error`` set;
        the remaining tables are still fetched.

        Raises:
            NoActiveConnectionError: Session is not connected
        """
        if not self.registry.is_open(session):
            raise NoActiveConnectionError(session)

        results: dict[str, TableFetchResult] = {}
        for table in Table.names():
            try:
                chains = await self.list_rules(session, table)
                results[table] = TableFetchResult(table=table, chains=chains, fetched_at=datetime.now())
            except IptremoteError as e:
                track_error(
                    "table_fetch_failed",
                    f"Could not list table {table}: {e}",
                    context={"session": session, "table": table},
                )
                results[table] = TableFetchResult(table=table, error=str(e), fetched_at=datetime.now())
        return results

    async def list_all_rules(self, session: str) -> dict[str, list[ListingChain]]:
        """List all four tables; a table that failed maps to an empty list."""
        results = await self.fetch_all_tables(session)
        return {table: result.chains for table, result in results.items()}

    async def get_dump(self, session: str) -> dict[str, list[DumpChain]]:
        """Fetch and parse ``iptables-save``. Failures propagate."""
        output = await self.run(session, commands.dump_command())
        return self.save_parser.parse(output)

    # ==========================================================================
    # Mutations
    # ==========================================================================

    async def add_rule(self, session: str, rule: str, table: str | Table = DEFAULT_TABLE) -> OperationResult:
        """Run ``iptables [-t table] <rule>``.

        Args:
            session: Session key
            rule: Rule arguments, e.g. ``-A INPUT -p tcp --dport 22 -j ACCEPT``
            table: Target table
        """
        if not rule or not rule.strip():
            raise ValueError("Rule text is required")
        table = validate_table(table)
        command = commands.add_rule_command(rule, table)
        await self._execute(session, command)
        logger.info(f"[{session}] rule added to {table}: {rule}")
        return OperationResult(success=True, message="Rule added", command=command)

    async def delete_rule(
        self,
        session: str,
        chain: str,
        rule_number: int | str,
        table: str | Table = DEFAULT_TABLE,
    ) -> OperationResult:
        """Delete rule ``rule_number`` (1-based) from ``chain``."""
        table = validate_table(table)
        command = commands.delete_rule_command(chain, rule_number, table)
        await self._execute(session, command)
        logger.info(f"[{session}] rule {rule_number} deleted from {table}/{chain}")
        return OperationResult(success=True, message="Rule deleted", command=command)

    async def save_configuration(self, session: str) -> OperationResult:
        """Persist the running rules to the remote rules file."""
        command = commands.save_command(self.rules_file)
        await self._execute(session, command)
        logger.info(f"[{session}] configuration saved to {self.rules_file}")
        return OperationResult(success=True, message="Configuration saved", command=command)

    async def restore_configuration(self, session: str) -> OperationResult:
        """Load the remote rules file into the running rules."""
        command = commands.restore_command(self.rules_file)
        await self._execute(session, command)
        logger.info(f"[{session}] configuration restored from {self.rules_file}")
        return OperationResult(success=True, message="Configuration restored", command=command)
