"""Print the latest pool snapshot and a leaderboard page.

Usage:
    python -m poolstats.stats.report ergo1 --hours 24 --page 0 --page-size 15
"""

import argparse
import sys
from datetime import timedelta

import asyncio

from rich.console import Console
from rich.table import Table

from poolstats.data.miners.models import LeaderboardEntry
from poolstats.data.pool.models import PoolStats
from poolstats.helpers.constants import (
    DEFAULT_LEADERBOARD_WINDOW_HOURS,
    DEFAULT_PAGE_SIZE,
)
from poolstats.helpers.errors import InvalidQueryError, StoreError
from poolstats.helpers.logging import get_logger
from poolstats.stats.repository import StatsRepository


logger = get_logger(__name__)


def format_hashrate(hashrate: float) -> str:
    """Human readable hashrate.

    Example:
        >>> format_hashrate(1_500_000)
        '1.50 MH/s'
    """
    units = ["H/s", "KH/s", "MH/s", "GH/s", "TH/s", "PH/s", "EH/s"]
    value = float(hashrate)
    for unit in units[:-1]:
        if abs(value) < 1000:
            return f"{value:.2f} {unit}"
        value /= 1000
    return f"{value:.2f} {units[-1]}"


def pool_table(stats: PoolStats) -> Table:
    """Render a pool snapshot."""
    table = Table(title=f"Pool {stats.pool_id} at {stats.created.isoformat()}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Connected miners", f"{stats.connected_miners:,}")
    table.add_row("Connected workers", f"{stats.connected_workers:,}")
    table.add_row("Pool hashrate", format_hashrate(stats.pool_hashrate))
    table.add_row("Network hashrate", format_hashrate(stats.network_hashrate))
    table.add_row("Network difficulty", f"{stats.network_difficulty:,.2f}")
    table.add_row("Block height", f"{stats.block_height:,}")
    table.add_row("Shares/s", f"{stats.shares_per_second:.3f}")
    return table


def leaderboard_table(
    entries: list[LeaderboardEntry], page: int, page_size: int
) -> Table:
    """Render a leaderboard page with absolute ranks."""
    table = Table(title=f"Top miners by peak hashrate (page {page})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Miner", style="cyan")
    table.add_column("Hashrate", justify="right", style="green")
    table.add_column("Shares/s", justify="right")

    for rank, entry in enumerate(entries, start=page * page_size + 1):
        table.add_row(
            str(rank),
            entry.miner,
            format_hashrate(entry.hashrate),
            f"{entry.shares_per_second:.3f}",
        )
    return table


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for the report command."""
    parser = argparse.ArgumentParser(description="Show pool stats and leaderboard")
    parser.add_argument("pool_id", help="Pool identifier")
    parser.add_argument(
        "--hours",
        type=int,
        default=DEFAULT_LEADERBOARD_WINDOW_HOURS,
        help=f"Leaderboard look-back window (default: {DEFAULT_LEADERBOARD_WINDOW_HOURS})",
    )
    parser.add_argument("--page", type=int, default=0, help="Page index (default: 0)")
    parser.add_argument(
        "--page-size",
        type=int,
        default=DEFAULT_PAGE_SIZE,
        help=f"Miners per page (default: {DEFAULT_PAGE_SIZE})",
    )
    return parser


async def main(
    argv: list[str] | None = None, repository: StatsRepository | None = None
) -> int:
    """Print the report.

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)
    repository = repository or StatsRepository()
    console = Console()

    since = repository.clock.now() - timedelta(hours=args.hours)

    try:
        stats = await repository.get_last_pool_stats(args.pool_id)
        entries = await repository.page_pool_miners_by_hashrate(
            args.pool_id, since, args.page, args.page_size
        )
    except InvalidQueryError as e:
        console.print(f"[red]{e}[/red]")
        return 2
    except StoreError as e:
        logger.error(f"Report for {args.pool_id} failed: {e}")
        console.print(f"[bold red]Report failed:[/bold red] {e}")
        return 1

    if stats is None:
        console.print(f"[yellow]No stats recorded for pool {args.pool_id}[/yellow]")
    else:
        console.print(pool_table(stats))

    if entries:
        console.print(leaderboard_table(entries, args.page, args.page_size))
    else:
        console.print("[yellow]No miners in the leaderboard window[/yellow]")
    return 0


def cli() -> None:
    """Command-line interface entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
