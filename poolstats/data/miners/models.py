"""Pydantic models for miner/worker performance data."""

# Pydantic needs these at runtime to validate the fields
from datetime import datetime
from decimal import Decimal

from typing import Annotated

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from poolstats.data.payments.models import Payment


def normalize_worker(value: object) -> object:
    """Map a missing worker name to the empty string.

    Example:
        >>> normalize_worker(None)
        ''
        >>> normalize_worker("rig1")
        'rig1'
    """
    return "" if value is None else value


WorkerName = Annotated[str, BeforeValidator(normalize_worker)]
"""Worker name where "no worker" is always the empty string, never None"""


class MinerWorkerPerformanceStats(BaseModel):
    """One worker's snapshot at one sampling instant."""

    model_config = ConfigDict(from_attributes=True)

    pool_id: str
    miner: str
    worker: WorkerName = ""
    hashrate: float = 0.0
    shares_per_second: float = 0.0
    created: datetime


class WorkerPerformanceStats(BaseModel):
    """Hashrate and share rate of a single worker."""

    hashrate: float
    shares_per_second: float


class WorkerPerformanceSample(WorkerPerformanceStats):
    """Averaged performance of one worker within one bucket."""

    created: datetime  # bucket start
    worker: WorkerName = ""


class WorkerPerformanceStatsContainer(BaseModel):
    """All workers of a miner for one bucket (or one sampling instant)."""

    created: datetime
    workers: dict[str, WorkerPerformanceStats] = Field(default_factory=dict)


class MinerWorkerHashrate(BaseModel):
    """Most recent hashrate of a (miner, worker) pair."""

    miner: str
    worker: WorkerName = ""
    hashrate: float


class LeaderboardEntry(BaseModel):
    """Miner ranked by its peak summed hashrate within the window."""

    miner: str
    hashrate: float
    shares_per_second: float


class MinerStats(BaseModel):
    """Current status of a miner.

    Every field is optional: a miner without ledger history is a valid
    state. ``performance`` is None when the latest snapshot is stale.
    """

    pending_shares: float | None = None
    pending_balance: Decimal | None = None
    total_paid: Decimal | None = None
    today_paid: Decimal | None = None
    last_payment: Payment | None = None
    performance: WorkerPerformanceStatsContainer | None = None


__all__ = [
    "LeaderboardEntry",
    "MinerStats",
    "MinerWorkerHashrate",
    "MinerWorkerPerformanceStats",
    "WorkerName",
    "WorkerPerformanceSample",
    "WorkerPerformanceStats",
    "WorkerPerformanceStatsContainer",
    "normalize_worker",
]
