"""Restaking database population run.

Stages run strictly in order, since rewards are fetched for the wallets
discovered while populating delegations:

1. Delegations: subgraph restakers query → normalize → replace by user
2. Operators: subgraph operators query → normalize → replace by address
3. Rewards: Rated API per wallet (placeholder data as fallback) → merge
4. Statistics: reconcile delegator counts and summarize the store

A failing record or wallet is logged and counted; the stage carries on. An
upstream that stays unreachable after retries fails the whole run.

Usage:
    python -m src.populate [delegations|operators|rewards|stats|all]
"""

from __future__ import annotations

from enum import StrEnum
import signal
import sys
import time

from typing import TYPE_CHECKING

import asyncio

from pydantic import BaseModel, Field
from rich.console import Console
from rich.table import Table

from src.data.delegations.normalize import normalize_delegations
from src.data.operators.normalize import group_page_slashings, normalize_operators
from src.data.placeholders import PlaceholderGenerator
from src.data.rewards.client import RewardsClient
from src.data.store import EntityFamily, RestakingStore, StoreStatistics
from src.data.subgraph.client import SubgraphClient
from src.helpers.config import PipelineConfig
from src.helpers.constants import REWARDS_TIMEOUT
from src.helpers.db import create_db_engine, get_database_url
from src.helpers.http import create_http_client
from src.helpers.logging import get_logger, set_log_level
from src.helpers.parsers import parse_decimal
from src.helpers.progress import track_progress


if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import httpx

    from src.data.delegations.models import DelegationRecord
    from src.data.operators.models import OperatorRecord
    from src.data.store import Record


logger = get_logger(__name__)


class RunState(StrEnum):
    """Where a population run is."""

    IDLE = "idle"
    FETCHING_DELEGATIONS = "fetching_delegations"
    FETCHING_OPERATORS = "fetching_operators"
    FETCHING_REWARDS = "fetching_rewards"
    RECONCILING_STATS = "reconciling_stats"
    DONE = "done"
    FAILED = "failed"


class StageResult(BaseModel):
    """Record counts of one stage."""

    processed: int = 0
    failed: int = 0
    skipped: int = 0


class RunSummary(BaseModel):
    """Outcome of a population run."""

    state: RunState
    stages: dict[str, StageResult] = Field(default_factory=dict)
    delegator_counts_updated: int = 0
    statistics: StoreStatistics | None = None
    duration_seconds: float = 0.0
    stopped_early: bool = False


STAGES = ("delegations", "operators", "rewards", "stats")
COMMANDS = (*STAGES, "all")


class RestakingPopulator:
    """Drives a population run against the store."""

    def __init__(
        self,
        config: PipelineConfig,
        store: RestakingStore,
        *,
        subgraph_client: SubgraphClient | None = None,
        rewards_client: RewardsClient | None = None,
        placeholders: PlaceholderGenerator | None = None,
        console: Console | None = None,
    ) -> None:
        """Initialize the populator.

        Args:
            config: Run configuration
            store: Store records are reconciled into
            subgraph_client: Subgraph client (default: built from config)
            rewards_client: Rewards client (default: built from config)
            placeholders: Placeholder source (default: seeded from config)
            console: Rich console for progress and the summary table
        """
        self.config = config
        self.store = store
        self._subgraph = subgraph_client
        self.rewards = rewards_client or RewardsClient.from_config(config)
        self.placeholders = placeholders or PlaceholderGenerator.from_seed(
            config.mock_seed
        )
        self.console = console or Console()

        self.state = RunState.IDLE
        self.should_shutdown = False
        self.stages: dict[str, StageResult] = {}

        self._subgraph_http: httpx.AsyncClient | None = None
        self._rewards_http: httpx.AsyncClient | None = None

    @property
    def subgraph(self) -> SubgraphClient:
        """Subgraph client, built from the configuration on first use.

        Raises:
            ConfigurationMissing: If no subgraph URL is configured
        """
        if self._subgraph is None:
            self._subgraph = SubgraphClient.from_config(self.config)
        return self._subgraph

    @property
    def subgraph_http(self) -> httpx.AsyncClient:
        """HTTP client owned by the subgraph source."""
        if self._subgraph_http is None:
            self._subgraph_http = create_http_client()
        return self._subgraph_http

    @property
    def rewards_http(self) -> httpx.AsyncClient:
        """HTTP client owned by the rewards source."""
        if self._rewards_http is None:
            self._rewards_http = create_http_client(timeout=REWARDS_TIMEOUT)
        return self._rewards_http

    def shutdown(self) -> None:
        """Stop after the record currently being written."""
        logger.info("Shutdown signal received, stopping after current record...")
        self.should_shutdown = True

    def install_signal_handlers(self) -> None:
        """Route SIGINT and SIGTERM to shutdown()."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.shutdown)

    async def cleanup(self) -> None:
        """Close the HTTP clients."""
        for client in (self._subgraph_http, self._rewards_http):
            if client is not None:
                await client.aclose()
        self._subgraph_http = None
        self._rewards_http = None

    async def _save(self, family: EntityFamily, record: Record, key: str) -> bool:
        """Upsert one record, logging instead of raising on failure."""
        try:
            await self.store.upsert(family, record)
        except Exception:
            logger.exception("Failed to save %s record %s", family, key)
            return False
        return True

    async def _delegation_batches(self) -> AsyncIterator[list[DelegationRecord]]:
        if self.config.use_mock_data:
            logger.warning("Using placeholder delegations (subgraph not configured)")
            yield self.placeholders.delegations()
            return
        async for page in self.subgraph.iter_delegation_pages(
            self.subgraph_http, self.config.page_size, self.config.max_pages
        ):
            yield normalize_delegations(page, self.config)

    async def _operator_batches(self) -> AsyncIterator[list[OperatorRecord]]:
        if self.config.use_mock_data:
            logger.warning("Using placeholder operators (subgraph not configured)")
            yield self.placeholders.operators()
            return
        # Slash events may sit on another page than their operator
        pages = [
            page
            async for page in self.subgraph.iter_operator_pages(
                self.subgraph_http, self.config.page_size, self.config.max_pages
            )
        ]
        slashes = group_page_slashings(pages)
        logger.info(
            "Fetched %d operator pages with slashings for %d operators",
            len(pages),
            len(slashes),
        )
        for page in pages:
            yield normalize_operators(page, now=self.store.now(), slashes=slashes)

    async def populate_delegations(self) -> StageResult:
        """Fetch delegations and replace them by user address.

        Raises:
            UpstreamUnavailable: If the subgraph stays unreachable
        """
        self.state = RunState.FETCHING_DELEGATIONS
        result = self.stages["delegations"] = StageResult()
        logger.info("Fetching restaking data...")

        try:
            async for records in self._delegation_batches():
                logger.info("Processing %d delegation records", len(records))
                for record in records:
                    if self.should_shutdown:
                        return result
                    saved = await self._save(
                        EntityFamily.DELEGATIONS, record, record.user_address
                    )
                    if saved:
                        result.processed += 1
                    else:
                        result.failed += 1
        except Exception:
            self.state = RunState.FAILED
            logger.exception("Error fetching restaking data")
            raise

        logger.info(
            "Processed %d delegations (%d failed)", result.processed, result.failed
        )
        return result

    async def populate_operators(self) -> StageResult:
        """Fetch operators and replace them by address.

        Each operator's delegator count is taken from the stored delegations
        before it is saved.

        Raises:
            UpstreamUnavailable: If the subgraph stays unreachable
        """
        self.state = RunState.FETCHING_OPERATORS
        result = self.stages["operators"] = StageResult()
        logger.info("Fetching operator data...")

        try:
            async for records in self._operator_batches():
                logger.info("Processing %d operator records", len(records))
                for record in records:
                    if self.should_shutdown:
                        return result
                    try:
                        record.delegator_count = await self.store.count_delegators(
                            record.operator_address
                        )
                    except Exception:
                        logger.exception(
                            "Failed to count delegators of %s", record.operator_address
                        )
                        result.failed += 1
                        continue
                    saved = await self._save(
                        EntityFamily.OPERATORS, record, record.operator_address
                    )
                    if saved:
                        result.processed += 1
                    else:
                        result.failed += 1
        except Exception:
            self.state = RunState.FAILED
            logger.exception("Error fetching operator data")
            raise

        logger.info(
            "Processed %d operators (%d failed)", result.processed, result.failed
        )
        return result

    async def populate_rewards(self) -> StageResult:
        """Fetch rewards for every known wallet and merge them into the store.

        Wallets without data from the rewards API get placeholder rewards.
        Records whose total is not strictly positive are skipped.
        """
        self.state = RunState.FETCHING_REWARDS
        result = self.stages["rewards"] = StageResult()

        try:
            wallets = await self.store.wallet_addresses()
        except Exception:
            self.state = RunState.FAILED
            logger.exception("Error listing wallet addresses")
            raise

        logger.info("Processing rewards for %d wallet addresses", len(wallets))
        with track_progress(
            "Fetching rewards", total=len(wallets), console=self.console
        ) as (progress, task):
            for wallet in wallets:
                if self.should_shutdown:
                    break
                try:
                    reward = None
                    if not self.config.use_mock_data:
                        reward = await self.rewards.fetch_rewards(
                            self.rewards_http, wallet, now=self.store.now()
                        )
                    if reward is None:
                        reward = self.placeholders.rewards(wallet)

                    if parse_decimal(reward.total_rewards_received) > 0:
                        await self.store.upsert(EntityFamily.REWARDS, reward)
                        result.processed += 1
                    else:
                        result.skipped += 1
                except Exception:
                    logger.exception("Error processing rewards for %s", wallet)
                    result.failed += 1
                progress.update(task, advance=1)

        logger.info(
            "Processed rewards for %d addresses (%d skipped, %d failed)",
            result.processed,
            result.skipped,
            result.failed,
        )
        return result

    async def update_statistics(self) -> tuple[int, StoreStatistics]:
        """Reconcile delegator counts and summarize the store.

        Returns:
            Tuple of (operators updated, store statistics)
        """
        self.state = RunState.RECONCILING_STATS
        logger.info("Updating database statistics...")

        try:
            changed = await self.store.recompute_delegator_counts()
            stats = await self.store.statistics()
        except Exception:
            self.state = RunState.FAILED
            logger.exception("Error updating statistics")
            raise

        logger.info("Total restakers: %d", stats.delegations)
        logger.info("Total operators: %d", stats.operators)
        logger.info("Active operators: %d", stats.active_operators)
        logger.info("Slashed operators: %d", stats.slashed_operators)
        logger.info("Reward records: %d", stats.rewards)
        logger.info("Total value locked: %s stETH", stats.total_value_locked)
        return changed, stats

    async def run(self, command: str = "all") -> RunSummary:
        """Run one stage, or every stage in order for "all".

        Args:
            command: One of delegations, operators, rewards, stats or all

        Returns:
            Summary of the run

        Raises:
            ValueError: If the command is unknown
        """
        if command not in COMMANDS:
            msg = f"Unknown command {command!r}, expected one of {COMMANDS}"
            raise ValueError(msg)

        stages = STAGES if command == "all" else (command,)
        summary = RunSummary(state=self.state)
        start = time.monotonic()
        logger.info(
            "Starting %s update (mock data: %s)", command, self.config.use_mock_data
        )

        try:
            await self.store.create_tables()
            for stage in stages:
                if self.should_shutdown:
                    summary.stopped_early = True
                    break
                if stage == "delegations":
                    await self.populate_delegations()
                elif stage == "operators":
                    await self.populate_operators()
                elif stage == "rewards":
                    await self.populate_rewards()
                else:
                    changed, stats = await self.update_statistics()
                    summary.delegator_counts_updated = changed
                    summary.statistics = stats
        except Exception:
            self.state = RunState.FAILED
            raise
        finally:
            await self.cleanup()

        self.state = RunState.DONE
        summary.state = self.state
        summary.stages = dict(self.stages)
        summary.stopped_early = summary.stopped_early or self.should_shutdown
        summary.duration_seconds = time.monotonic() - start
        logger.info("Update completed in %.2f seconds", summary.duration_seconds)
        return summary

    async def run_full_update(self) -> RunSummary:
        """Run every stage in order."""
        return await self.run("all")

    def display_summary(self, summary: RunSummary) -> None:
        """Print the run summary as a table."""
        table = Table(title="Population Run")
        table.add_column("Stage", style="cyan")
        table.add_column("Processed", justify="right", style="green")
        table.add_column("Skipped", justify="right", style="yellow")
        table.add_column("Failed", justify="right", style="red")

        for stage, result in summary.stages.items():
            table.add_row(
                stage,
                f"{result.processed:,}",
                f"{result.skipped:,}",
                f"{result.failed:,}",
            )
        self.console.print(table)

        if summary.statistics is not None:
            stats = summary.statistics
            stats_table = Table(title="Database Statistics")
            stats_table.add_column("Metric", style="cyan")
            stats_table.add_column("Value", justify="right", style="yellow")
            stats_table.add_row("Total Restakers", f"{stats.delegations:,}")
            stats_table.add_row("Total Operators", f"{stats.operators:,}")
            stats_table.add_row("Active Operators", f"{stats.active_operators:,}")
            stats_table.add_row("Slashed Operators", f"{stats.slashed_operators:,}")
            stats_table.add_row("Reward Records", f"{stats.rewards:,}")
            stats_table.add_row(
                "Total Value Locked", f"{stats.total_value_locked} stETH"
            )
            self.console.print(stats_table)

        self.console.print(
            f"State: {summary.state} • Duration: {summary.duration_seconds:.2f}s"
        )


async def main() -> None:
    """Main entry point."""
    command = sys.argv[1] if len(sys.argv) > 1 else "all"
    if command not in COMMANDS:
        logger.error("Unknown command %r, expected one of %s", command, COMMANDS)
        sys.exit(2)

    engine = None
    try:
        config = PipelineConfig.from_env()
        set_log_level(config.log_level)
        engine = create_db_engine(get_database_url())
        populator = RestakingPopulator(config, RestakingStore(engine))
        populator.install_signal_handlers()
        summary = await populator.run(command)
        populator.display_summary(summary)
    except Exception:
        logger.exception("Fatal error during database update")
        sys.exit(1)
    finally:
        if engine is not None:
            await engine.dispose()


def cli() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    cli()
