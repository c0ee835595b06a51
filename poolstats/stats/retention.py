"""Purge pool and miner snapshots older than the retention window.

Usage:
    python -m poolstats.stats.retention --days 30
"""

import argparse
import sys
from datetime import datetime, timedelta

import asyncio

from rich.console import Console
from rich.table import Table

from poolstats.helpers.config import get_int_env
from poolstats.helpers.constants import DEFAULT_RETENTION_DAYS
from poolstats.helpers.errors import InvalidQueryError, StoreError
from poolstats.helpers.logging import get_logger
from poolstats.stats.repository import StatsRepository


logger = get_logger(__name__)


def retention_cutoff(now: datetime, days: int) -> datetime:
    """Oldest creation time that survives a purge keeping ``days`` days.

    Raises:
        InvalidQueryError: If ``days`` is not positive
    """
    if days <= 0:
        msg = f"Retention must be at least one day, got {days}"
        raise InvalidQueryError(msg)
    return now - timedelta(days=days)


async def purge(repository: StatsRepository, days: int) -> dict[str, int]:
    """Delete snapshots older than ``days`` days.

    Each table is purged with its own single-statement, auto-committed
    delete.

    Returns:
        Deleted row counts keyed by table name
    """
    cutoff = retention_cutoff(repository.clock.now(), days)
    logger.info(f"Purging pool and miner stats created before {cutoff.isoformat()}")

    deleted = {
        "poolstats": await repository.delete_pool_stats_before(cutoff),
        "minerstats": await repository.delete_miner_stats_before(cutoff),
    }

    logger.info(
        f"Purged {deleted['poolstats']:,} pool and "
        f"{deleted['minerstats']:,} miner snapshots"
    )
    return deleted


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for the purge command."""
    parser = argparse.ArgumentParser(
        description="Delete pool/miner stats older than the retention window",
    )
    parser.add_argument(
        "--days",
        type=int,
        default=None,
        help=(
            "Days of stats to keep "
            f"(default: STATS_RETENTION_DAYS or {DEFAULT_RETENTION_DAYS})"
        ),
    )
    return parser


async def main(
    argv: list[str] | None = None, repository: StatsRepository | None = None
) -> int:
    """Run the purge and print a summary table.

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)
    console = Console()

    days = args.days
    if days is None:
        try:
            days = get_int_env("STATS_RETENTION_DAYS", DEFAULT_RETENTION_DAYS)
        except ValueError as e:
            console.print(f"[red]{e}[/red]")
            return 2

    repository = repository or StatsRepository()

    try:
        deleted = await purge(repository, days)
    except InvalidQueryError as e:
        console.print(f"[red]{e}[/red]")
        return 2
    except StoreError as e:
        logger.error(f"Retention purge failed: {e}")
        console.print(f"[bold red]Purge failed:[/bold red] {e}")
        return 1

    table = Table(title=f"Deleted snapshots older than {days} days")
    table.add_column("Table", style="cyan")
    table.add_column("Rows", justify="right", style="green")
    for name, count in deleted.items():
        table.add_row(name, f"{count:,}")
    console.print(table)
    return 0


def cli() -> None:
    """Command-line interface entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
