"""Queries over Miningcore pool and miner statistics.

Every read is a pure function of the store contents plus "now" taken from
the injected clock. Operations accept an optional caller-owned
``AsyncSession``; without one they open their own session, and writes commit
immediately.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, cast, delete, func, insert, select

from poolstats.data.miners.db import MinerStatsDB
from poolstats.data.miners.models import (
    LeaderboardEntry,
    MinerStats,
    MinerWorkerHashrate,
    MinerWorkerPerformanceStats,
    WorkerPerformanceSample,
    WorkerPerformanceStats,
    WorkerPerformanceStatsContainer,
)
from poolstats.data.payments.db import BalanceDB, PaymentDB, shares_table
from poolstats.data.payments.models import Payment
from poolstats.data.pool.db import PoolStatsDB
from poolstats.data.pool.models import PoolPerformanceStats, PoolStats
from poolstats.helpers.clock import SystemClock, ensure_utc
from poolstats.helpers.constants import MINER_STATS_MAX_AGE
from poolstats.helpers.db import store_session
from poolstats.helpers.errors import InvalidQueryError
from poolstats.helpers.logging import get_logger
from poolstats.stats.bucketing import (
    POOL_INTERVALS,
    SampleInterval,
    bucket_columns,
    group_into_containers,
    partition_start,
    truncate,
)


if TYPE_CHECKING:
    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession

    from poolstats.helpers.clock import Clock


logger = get_logger(__name__)


def is_stale(
    last_update: datetime, now: datetime, max_age: timedelta = MINER_STATS_MAX_AGE
) -> bool:
    """Whether a snapshot taken at ``last_update`` is too old to be current.

    Naive timestamps are read as UTC. A snapshot exactly ``max_age`` old is
    still fresh.
    """
    return ensure_utc(now) - ensure_utc(last_update) > max_age


def _require(name: str, value: str) -> None:
    if not value:
        msg = f"{name} must not be empty"
        raise InvalidQueryError(msg)


def _require_range(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    start, end = ensure_utc(start), ensure_utc(end)
    if end < start:
        msg = f"end ({end.isoformat()}) is before start ({start.isoformat()})"
        raise InvalidQueryError(msg)
    return start, end


def _require_interval(interval: SampleInterval | str) -> SampleInterval:
    try:
        return SampleInterval(interval)
    except ValueError:
        msg = f"Unknown interval: {interval!r}"
        raise InvalidQueryError(msg) from None


class StatsRepository:
    """Read/write access to pool and miner snapshots and derived views."""

    def __init__(
        self,
        clock: Clock | None = None,
        max_age: timedelta = MINER_STATS_MAX_AGE,
    ) -> None:
        """Initialize repository.

        Args:
            clock: Source of "now" (defaults to the system clock in UTC)
            max_age: Age beyond which a miner's latest snapshot is stale
        """
        self.clock = clock or SystemClock()
        self.max_age = max_age

    # Writes

    async def insert_pool_stats(
        self, stats: PoolStats, *, session: AsyncSession | None = None
    ) -> None:
        """Append a pool snapshot."""
        logger.debug(f"insert_pool_stats pool={stats.pool_id}")

        async with store_session("insert_pool_stats", session, commit=True) as db:
            await db.execute(insert(PoolStatsDB), [stats.model_dump()])

    async def insert_miner_worker_performance_stats(
        self,
        stats: MinerWorkerPerformanceStats,
        *,
        session: AsyncSession | None = None,
    ) -> None:
        """Append a worker snapshot (an unset worker is stored as "")."""
        logger.debug(
            f"insert_miner_worker_performance_stats pool={stats.pool_id} "
            f"miner={stats.miner} worker={stats.worker!r}"
        )

        async with store_session(
            "insert_miner_worker_performance_stats", session, commit=True
        ) as db:
            await db.execute(insert(MinerStatsDB), [stats.model_dump()])

    async def delete_pool_stats_before(
        self, date: datetime, *, session: AsyncSession | None = None
    ) -> int:
        """Delete pool snapshots created before ``date``.

        Returns:
            int: Number of deleted rows
        """
        logger.debug(f"delete_pool_stats_before {date.isoformat()}")

        stmt = (
            delete(PoolStatsDB)
            .where(PoolStatsDB.created < ensure_utc(date))
            .execution_options(synchronize_session=False)
        )
        async with store_session("delete_pool_stats_before", session, commit=True) as db:
            result = await db.execute(stmt)
        return result.rowcount

    async def delete_miner_stats_before(
        self, date: datetime, *, session: AsyncSession | None = None
    ) -> int:
        """Delete worker snapshots created before ``date``.

        Returns:
            int: Number of deleted rows
        """
        logger.debug(f"delete_miner_stats_before {date.isoformat()}")

        stmt = (
            delete(MinerStatsDB)
            .where(MinerStatsDB.created < ensure_utc(date))
            .execution_options(synchronize_session=False)
        )
        async with store_session(
            "delete_miner_stats_before", session, commit=True
        ) as db:
            result = await db.execute(stmt)
        return result.rowcount

    # Pool reads

    async def get_last_pool_stats(
        self, pool_id: str, *, session: AsyncSession | None = None
    ) -> PoolStats | None:
        """Most recent snapshot of a pool, or None if it has none."""
        _require("pool_id", pool_id)
        logger.debug(f"get_last_pool_stats pool={pool_id}")

        stmt = (
            select(PoolStatsDB)
            .where(PoolStatsDB.pool_id == pool_id)
            .order_by(PoolStatsDB.created.desc())
            .limit(1)
        )
        async with store_session("get_last_pool_stats", session) as db:
            entity = (await db.execute(stmt)).scalar_one_or_none()
            if entity is None:
                return None
            return PoolStats.model_validate(entity)

    async def get_total_pool_payments(
        self, pool_id: str, *, session: AsyncSession | None = None
    ) -> Decimal:
        """Sum of all payments made by a pool (0 when there are none)."""
        _require("pool_id", pool_id)
        logger.debug(f"get_total_pool_payments pool={pool_id}")

        stmt = select(func.sum(PaymentDB.amount)).where(PaymentDB.pool_id == pool_id)
        async with store_session("get_total_pool_payments", session) as db:
            total = (await db.execute(stmt)).scalar()
        return Decimal(total) if total is not None else Decimal(0)

    async def get_pool_performance_between(
        self,
        pool_id: str,
        interval: SampleInterval | str,
        start: datetime,
        end: datetime,
        *,
        session: AsyncSession | None = None,
    ) -> list[PoolPerformanceStats]:
        """Pool snapshots averaged per hour or day bucket within [start, end].

        Raises:
            InvalidQueryError: If the interval is unknown or finer than an hour,
                or the range is inverted
        """
        _require("pool_id", pool_id)
        interval = _require_interval(interval)
        if interval not in POOL_INTERVALS:
            msg = f"Pool performance is only bucketed by hour or day, not {interval}"
            raise InvalidQueryError(msg)
        start, end = _require_range(start, end)
        logger.debug(
            f"get_pool_performance_between pool={pool_id} interval={interval} "
            f"start={start.isoformat()} end={end.isoformat()}"
        )

        bucket, _ = bucket_columns(PoolStatsDB.created, interval)
        snapshots = (
            select(
                bucket,
                PoolStatsDB.pool_hashrate.label("pool_hashrate"),
                PoolStatsDB.network_hashrate.label("network_hashrate"),
                PoolStatsDB.network_difficulty.label("network_difficulty"),
                PoolStatsDB.connected_miners.label("connected_miners"),
            )
            .where(
                PoolStatsDB.pool_id == pool_id,
                PoolStatsDB.created >= start,
                PoolStatsDB.created <= end,
            )
            .subquery()
        )
        stmt = (
            select(
                snapshots.c.created,
                func.avg(snapshots.c.pool_hashrate).label("pool_hashrate"),
                func.avg(snapshots.c.network_hashrate).label("network_hashrate"),
                func.avg(snapshots.c.network_difficulty).label("network_difficulty"),
                cast(func.avg(snapshots.c.connected_miners), BigInteger).label(
                    "connected_miners"
                ),
            )
            .group_by(snapshots.c.created)
            .order_by(snapshots.c.created)
        )

        async with store_session("get_pool_performance_between", session) as db:
            rows = (await db.execute(stmt)).mappings().all()

        return [
            PoolPerformanceStats(
                created=ensure_utc(row["created"]),
                pool_hashrate=float(row["pool_hashrate"]),
                network_hashrate=float(row["network_hashrate"]),
                network_difficulty=float(row["network_difficulty"]),
                connected_miners=int(row["connected_miners"]),
            )
            for row in rows
        ]

    # Miner reads

    async def get_miner_performance_between(
        self,
        pool_id: str,
        miner: str,
        interval: SampleInterval | str,
        start: datetime,
        end: datetime,
        *,
        session: AsyncSession | None = None,
    ) -> list[WorkerPerformanceStatsContainer]:
        """Per-worker averages of a miner, one container per bucket.

        Args:
            pool_id: Pool identifier
            miner: Miner address
            interval: Bucket granularity (minute, three minutes, hour, day)
            start: Inclusive range start
            end: Inclusive range end
            session: Optional caller-owned session

        Returns:
            Containers ascending by bucket start; empty when nothing matched

        Raises:
            InvalidQueryError: If ids are empty, the interval is unknown or the
                range is inverted
        """
        _require("pool_id", pool_id)
        _require("miner", miner)
        interval = _require_interval(interval)
        start, end = _require_range(start, end)
        logger.debug(
            f"get_miner_performance_between pool={pool_id} miner={miner} "
            f"interval={interval} start={start.isoformat()} end={end.isoformat()}"
        )

        bucket, partition = bucket_columns(MinerStatsDB.created, interval)
        snapshots = (
            select(
                bucket,
                partition,
                func.coalesce(MinerStatsDB.worker, "").label("worker"),
                MinerStatsDB.hashrate.label("hashrate"),
                MinerStatsDB.shares_per_second.label("shares_per_second"),
            )
            .where(
                MinerStatsDB.pool_id == pool_id,
                MinerStatsDB.miner == miner,
                MinerStatsDB.created >= start,
                MinerStatsDB.created <= end,
            )
            .subquery()
        )
        stmt = (
            select(
                snapshots.c.created,
                snapshots.c.partition,
                snapshots.c.worker,
                func.avg(snapshots.c.hashrate).label("hashrate"),
                func.avg(snapshots.c.shares_per_second).label("shares_per_second"),
            )
            .group_by(snapshots.c.created, snapshots.c.partition, snapshots.c.worker)
            .order_by(snapshots.c.created, snapshots.c.partition, snapshots.c.worker)
        )

        async with store_session("get_miner_performance_between", session) as db:
            rows = (await db.execute(stmt)).mappings().all()

        return group_into_containers(
            WorkerPerformanceSample(
                created=partition_start(row["created"], row["partition"]),
                worker=row["worker"],
                hashrate=row["hashrate"],
                shares_per_second=row["shares_per_second"],
            )
            for row in rows
        )

    async def get_miner_stats(
        self,
        pool_id: str,
        miner: str,
        *,
        session: AsyncSession | None = None,
    ) -> MinerStats:
        """Current status of a miner.

        All sub-queries share one session (and therefore one transaction)
        and one "now", so the view is a consistent point in time.
        """
        _require("pool_id", pool_id)
        _require("miner", miner)
        logger.debug(f"get_miner_stats pool={pool_id} miner={miner}")

        now = self.clock.now()
        today = truncate(now, SampleInterval.DAY)

        async with store_session("get_miner_stats", session) as db:
            totals = (
                await db.execute(self._miner_totals_query(pool_id, miner, today))
            ).one()

            last_payment = (
                await db.execute(
                    select(PaymentDB)
                    .where(PaymentDB.pool_id == pool_id, PaymentDB.address == miner)
                    .order_by(PaymentDB.created.desc())
                    .limit(1)
                )
            ).scalar_one_or_none()

            performance = await self._current_performance(db, pool_id, miner, now)

            return MinerStats(
                pending_shares=totals.pending_shares,
                pending_balance=totals.pending_balance,
                total_paid=totals.total_paid,
                today_paid=totals.today_paid,
                last_payment=(
                    Payment.model_validate(last_payment) if last_payment else None
                ),
                performance=performance,
            )

    def _miner_totals_query(self, pool_id: str, miner: str, today: datetime) -> Select:
        shares = shares_table.c
        paid_by_miner = (PaymentDB.pool_id == pool_id, PaymentDB.address == miner)

        return select(
            select(func.sum(shares.difficulty))
            .where(shares.poolid == pool_id, shares.miner == miner)
            .scalar_subquery()
            .label("pending_shares"),
            select(BalanceDB.amount)
            .where(BalanceDB.pool_id == pool_id, BalanceDB.address == miner)
            .scalar_subquery()
            .label("pending_balance"),
            select(func.sum(PaymentDB.amount))
            .where(*paid_by_miner)
            .scalar_subquery()
            .label("total_paid"),
            select(func.sum(PaymentDB.amount))
            .where(*paid_by_miner, PaymentDB.created >= today)
            .scalar_subquery()
            .label("today_paid"),
        )

    async def _current_performance(
        self, db: AsyncSession, pool_id: str, miner: str, now: datetime
    ) -> WorkerPerformanceStatsContainer | None:
        """All workers of the miner at its latest snapshot, unless stale."""
        last_update = (
            await db.execute(
                select(func.max(MinerStatsDB.created)).where(
                    MinerStatsDB.pool_id == pool_id, MinerStatsDB.miner == miner
                )
            )
        ).scalar()

        if last_update is None:
            return None
        if is_stale(last_update, now, self.max_age):
            logger.debug(
                f"Ignoring stale miner stats for {miner}: last update "
                f"{ensure_utc(last_update).isoformat()}"
            )
            return None

        entities = (
            (
                await db.execute(
                    select(MinerStatsDB).where(
                        MinerStatsDB.pool_id == pool_id,
                        MinerStatsDB.miner == miner,
                        MinerStatsDB.created == last_update,
                    )
                )
            )
            .scalars()
            .all()
        )
        if not entities:
            return None

        stats = [MinerWorkerPerformanceStats.model_validate(e) for e in entities]
        return WorkerPerformanceStatsContainer(
            created=ensure_utc(stats[0].created),
            workers={
                s.worker: WorkerPerformanceStats(
                    hashrate=s.hashrate, shares_per_second=s.shares_per_second
                )
                for s in stats
            },
        )

    async def get_pool_miner_worker_hashrates(
        self,
        pool_id: str,
        since: datetime | None = None,
        *,
        session: AsyncSession | None = None,
    ) -> list[MinerWorkerHashrate]:
        """Latest hashrate of every (miner, worker) that is still hashing.

        The most recent snapshot of each pair wins; pairs whose latest
        hashrate is 0 are dropped even if they hashed earlier. No staleness
        cutoff applies unless ``since`` limits the history considered.
        """
        _require("pool_id", pool_id)
        logger.debug(f"get_pool_miner_worker_hashrates pool={pool_id} since={since}")

        worker = func.coalesce(MinerStatsDB.worker, "")
        ranked = select(
            MinerStatsDB.miner.label("miner"),
            worker.label("worker"),
            MinerStatsDB.hashrate.label("hashrate"),
            func.row_number()
            .over(
                partition_by=(MinerStatsDB.miner, worker),
                order_by=MinerStatsDB.created.desc(),
            )
            .label("rk"),
        ).where(MinerStatsDB.pool_id == pool_id)
        if since is not None:
            ranked = ranked.where(MinerStatsDB.created >= ensure_utc(since))
        latest = ranked.subquery()

        stmt = (
            select(latest.c.miner, latest.c.worker, latest.c.hashrate)
            .where(latest.c.rk == 1, latest.c.hashrate > 0)
            .order_by(latest.c.miner, latest.c.worker)
        )

        async with store_session("get_pool_miner_worker_hashrates", session) as db:
            rows = (await db.execute(stmt)).mappings().all()

        return [MinerWorkerHashrate.model_validate(dict(row)) for row in rows]

    async def page_pool_miners_by_hashrate(
        self,
        pool_id: str,
        since: datetime,
        page: int,
        page_size: int,
        *,
        session: AsyncSession | None = None,
    ) -> list[LeaderboardEntry]:
        """One page of miners ranked by peak hashrate since ``since``.

        A miner's hashrate at an instant is the sum over its workers. Each
        miner is ranked by the highest such sum in ``[since, now)``, not by
        its latest one, so a single spike outranks steadier lower hashrate.
        A miner peaking more than once reports its latest peak instant, and
        ties between miners are broken by miner address.

        Raises:
            InvalidQueryError: If ``page`` is negative or ``page_size`` is
                not positive
        """
        _require("pool_id", pool_id)
        if page < 0:
            msg = f"page must be >= 0, got {page}"
            raise InvalidQueryError(msg)
        if page_size <= 0:
            msg = f"page_size must be > 0, got {page_size}"
            raise InvalidQueryError(msg)
        logger.debug(
            f"page_pool_miners_by_hashrate pool={pool_id} since={since} "
            f"page={page} page_size={page_size}"
        )

        now = self.clock.now()
        per_instant = (
            select(
                MinerStatsDB.miner.label("miner"),
                MinerStatsDB.created.label("created"),
                func.sum(MinerStatsDB.hashrate).label("hashrate"),
                func.sum(MinerStatsDB.shares_per_second).label("shares_per_second"),
            )
            .where(
                MinerStatsDB.pool_id == pool_id,
                MinerStatsDB.created >= ensure_utc(since),
                MinerStatsDB.created < now,
            )
            .group_by(MinerStatsDB.miner, MinerStatsDB.created)
            .subquery()
        )
        ranked = select(
            per_instant.c.miner,
            per_instant.c.hashrate,
            per_instant.c.shares_per_second,
            func.row_number()
            .over(
                partition_by=per_instant.c.miner,
                order_by=(per_instant.c.hashrate.desc(), per_instant.c.created.desc()),
            )
            .label("rk"),
        ).subquery()

        stmt = (
            select(ranked.c.miner, ranked.c.hashrate, ranked.c.shares_per_second)
            .where(ranked.c.rk == 1)
            .order_by(ranked.c.hashrate.desc(), ranked.c.miner)
            .offset(page * page_size)
            .limit(page_size)
        )

        async with store_session("page_pool_miners_by_hashrate", session) as db:
            rows = (await db.execute(stmt)).mappings().all()

        return [LeaderboardEntry.model_validate(dict(row)) for row in rows]


__all__ = ["StatsRepository", "is_stale"]
