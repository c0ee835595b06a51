"""Time bucketing for pool and miner performance series.

A bucket is keyed by its start instant. Minute, hour and day buckets are
plain truncations; three-minute buckets split every hour into 20
sub-buckets and are reported at the start of the sub-bucket, not the hour.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import StrEnum

from typing import TYPE_CHECKING

from sqlalchemy import Integer, cast, extract, func, literal_column

from poolstats.data.miners.models import (
    WorkerPerformanceStats,
    WorkerPerformanceStatsContainer,
)
from poolstats.helpers.clock import ensure_utc
from poolstats.helpers.constants import THREE_MINUTE_PARTITION


if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.sql.elements import ColumnElement

    from poolstats.data.miners.models import WorkerPerformanceSample


class SampleInterval(StrEnum):
    """Bucket granularity."""

    MINUTE = "minute"
    THREE_MINUTES = "three_minutes"
    HOUR = "hour"
    DAY = "day"


POOL_INTERVALS = frozenset({SampleInterval.HOUR, SampleInterval.DAY})
"""Granularities available for pool-level series"""

# date_trunc() field used for the bucket (or the hour, for three-minute buckets)
TRUNC_FIELDS: dict[SampleInterval, str] = {
    SampleInterval.MINUTE: "minute",
    SampleInterval.THREE_MINUTES: "hour",
    SampleInterval.HOUR: "hour",
    SampleInterval.DAY: "day",
}


def partition_start(hour: datetime, partition: int) -> datetime:
    """Start of the ``partition``-th three-minute sub-bucket of ``hour``.

    Example:
        >>> partition_start(datetime(2024, 1, 1, 12), 2)
        datetime.datetime(2024, 1, 1, 12, 6)
    """
    return hour + timedelta(minutes=THREE_MINUTE_PARTITION * partition)


def truncate(value: datetime, interval: SampleInterval | str) -> datetime:
    """Bucket start for ``value`` at the given granularity.

    Args:
        value: Instant to bucket
        interval: Bucket granularity

    Returns:
        datetime: Start of the bucket containing ``value``

    Raises:
        ValueError: If ``interval`` is not a known granularity

    Example:
        >>> truncate(datetime(2024, 1, 1, 12, 7, 30), SampleInterval.THREE_MINUTES)
        datetime.datetime(2024, 1, 1, 12, 6)
    """
    interval = SampleInterval(interval)
    if interval is SampleInterval.MINUTE:
        return value.replace(second=0, microsecond=0)

    hour = value.replace(minute=0, second=0, microsecond=0)
    if interval is SampleInterval.HOUR:
        return hour
    if interval is SampleInterval.THREE_MINUTES:
        return partition_start(hour, value.minute // THREE_MINUTE_PARTITION)
    return hour.replace(hour=0)


def bucket_columns(
    created: ColumnElement[datetime], interval: SampleInterval | str
) -> tuple[ColumnElement[datetime], ColumnElement[int]]:
    """SQL expressions for the bucket key of ``created``.

    Returns a ``(created, partition)`` pair of labelled columns. For
    three-minute buckets ``created`` is the hour and ``partition`` the
    sub-bucket index (``minute / 3``); :func:`partition_start` turns the
    pair into the bucket start. Other granularities use partition 0.
    """
    interval = SampleInterval(interval)
    bucket = func.date_trunc(TRUNC_FIELDS[interval], created).label("created")

    if interval is SampleInterval.THREE_MINUTES:
        partition = cast(extract("minute", created), Integer) // THREE_MINUTE_PARTITION
    else:
        partition = literal_column("0", Integer)

    return bucket, partition.label("partition")


def group_into_containers(
    samples: Iterable[WorkerPerformanceSample],
) -> list[WorkerPerformanceStatsContainer]:
    """Fold per-(bucket, worker) averages into one container per bucket.

    Workers missing from a bucket are simply absent from its mapping.

    Args:
        samples: Averaged samples, one per (bucket start, worker)

    Returns:
        Containers ordered by bucket start, workers ordered by name
    """
    by_bucket: dict[datetime, dict[str, WorkerPerformanceStats]] = {}

    for sample in sorted(samples, key=lambda s: (ensure_utc(s.created), s.worker)):
        workers = by_bucket.setdefault(ensure_utc(sample.created), {})
        workers[sample.worker] = WorkerPerformanceStats(
            hashrate=sample.hashrate,
            shares_per_second=sample.shares_per_second,
        )

    return [
        WorkerPerformanceStatsContainer(created=created, workers=workers)
        for created, workers in by_bucket.items()
    ]


__all__ = [
    "POOL_INTERVALS",
    "SampleInterval",
    "bucket_columns",
    "group_into_containers",
    "partition_start",
    "truncate",
]
