"""Tests for time bucketing."""

from datetime import UTC, datetime

import pytest

from sqlalchemy import select
from sqlalchemy.dialects import postgresql

from poolstats.data.miners.db import MinerStatsDB
from poolstats.data.miners.models import WorkerPerformanceSample
from poolstats.stats.bucketing import (
    SampleInterval,
    bucket_columns,
    group_into_containers,
    partition_start,
    truncate,
)


def at(hour: int, minute: int, second: int = 0) -> datetime:
    return datetime(2024, 5, 1, hour, minute, second, tzinfo=UTC)


def sample(
    created: datetime, worker: str, hashrate: float = 100.0
) -> WorkerPerformanceSample:
    return WorkerPerformanceSample(
        created=created, worker=worker, hashrate=hashrate, shares_per_second=0.5
    )


class TestTruncate:
    """Tests for truncate function."""

    @pytest.mark.parametrize(
        ("interval", "expected"),
        [
            (SampleInterval.MINUTE, at(12, 7)),
            (SampleInterval.THREE_MINUTES, at(12, 6)),
            (SampleInterval.HOUR, at(12, 0)),
            (SampleInterval.DAY, at(0, 0)),
        ],
    )
    def test_truncate(self, interval: SampleInterval, expected: datetime) -> None:
        assert truncate(at(12, 7, 30), interval) == expected

    @pytest.mark.parametrize(
        ("minute", "expected_minute"),
        [(0, 0), (2, 0), (3, 3), (9, 9), (11, 9), (59, 57)],
    )
    def test_three_minute_boundaries(self, minute: int, expected_minute: int) -> None:
        """Test that three-minute buckets start on multiples of three."""
        assert truncate(at(12, minute, 59), SampleInterval.THREE_MINUTES) == at(
            12, expected_minute
        )

    def test_truncate_drops_microseconds(self) -> None:
        value = datetime(2024, 5, 1, 12, 7, 30, 999, tzinfo=UTC)

        assert truncate(value, SampleInterval.MINUTE) == at(12, 7)

    def test_plain_string_interval(self) -> None:
        assert truncate(at(12, 7, 30), "three_minutes") == at(12, 6)

    def test_unknown_interval(self) -> None:
        with pytest.raises(ValueError, match="week"):
            truncate(at(12, 7, 30), "week")


class TestPartitionStart:
    """Tests for partition_start function."""

    def test_first_partition_is_the_hour(self) -> None:
        assert partition_start(at(12, 0), 0) == at(12, 0)

    def test_partition_offsets(self) -> None:
        assert partition_start(at(12, 0), 2) == at(12, 6)
        assert partition_start(at(12, 0), 19) == at(12, 57)


class TestBucketColumns:
    """Tests for SQL bucket expressions."""

    @staticmethod
    def compile_sql(interval: SampleInterval | str) -> str:
        bucket, partition = bucket_columns(MinerStatsDB.created, interval)
        return str(
            select(bucket, partition).compile(
                dialect=postgresql.dialect(),
                compile_kwargs={"literal_binds": True},
            )
        )

    def test_three_minutes_truncates_to_hour_and_partitions(self) -> None:
        """Test that three-minute buckets group by hour plus minute / 3."""
        sql = self.compile_sql(SampleInterval.THREE_MINUTES)

        assert "date_trunc('hour', minerstats.created)" in sql
        assert "EXTRACT(minute FROM minerstats.created)" in sql
        assert "partition" in sql

    @pytest.mark.parametrize(
        ("interval", "field"),
        [
            (SampleInterval.MINUTE, "minute"),
            (SampleInterval.HOUR, "hour"),
            (SampleInterval.DAY, "day"),
        ],
    )
    def test_plain_truncation(self, interval: SampleInterval, field: str) -> None:
        sql = self.compile_sql(interval)

        assert f"date_trunc('{field}', minerstats.created)" in sql
        assert "EXTRACT" not in sql

    def test_plain_string_three_minutes(self) -> None:
        """Test that a plain string interval still gets sub-hour partitions."""
        sql = self.compile_sql("three_minutes")

        assert "EXTRACT(minute FROM minerstats.created)" in sql

    def test_unknown_interval(self) -> None:
        with pytest.raises(ValueError, match="week"):
            bucket_columns(MinerStatsDB.created, "week")


class TestGroupIntoContainers:
    """Tests for group_into_containers function."""

    def test_empty(self) -> None:
        assert group_into_containers([]) == []

    def test_groups_by_bucket_in_ascending_order(self) -> None:
        """Test that samples fold into one container per bucket, sorted."""
        containers = group_into_containers(
            [
                sample(at(12, 3), "rig2", 30.0),
                sample(at(12, 0), "rig1", 10.0),
                sample(at(12, 3), "rig1", 20.0),
            ]
        )

        assert [c.created for c in containers] == [at(12, 0), at(12, 3)]
        assert list(containers[1].workers) == ["rig1", "rig2"]
        assert containers[1].workers["rig2"].hashrate == 30.0
        assert containers[0].workers["rig1"].hashrate == 10.0

    def test_missing_workers_are_not_zero_filled(self) -> None:
        """Test that a worker absent from a bucket is absent from its mapping."""
        containers = group_into_containers(
            [
                sample(at(12, 0), "rig1"),
                sample(at(12, 0), "rig2"),
                sample(at(12, 3), "rig1"),
            ]
        )

        assert "rig2" not in containers[1].workers
        assert len(containers[1].workers) == 1

    def test_gaps_are_not_filled(self) -> None:
        containers = group_into_containers(
            [sample(at(12, 0), "rig1"), sample(at(12, 9), "rig1")]
        )

        assert [c.created for c in containers] == [at(12, 0), at(12, 9)]

    def test_naive_bucket_starts_are_utc(self) -> None:
        containers = group_into_containers(
            [sample(datetime(2024, 5, 1, 12, 0), "")]
        )

        assert containers[0].created == at(12, 0)
        assert containers[0].created.tzinfo is UTC
        assert "" in containers[0].workers
