"""Database models for miner/worker snapshots."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Float, String
from sqlalchemy.orm import Mapped, mapped_column

from poolstats.helpers.db import Base


class MinerStatsDB(Base):
    """Periodic per-worker performance snapshot (Miningcore ``minerstats``)."""

    __tablename__ = "minerstats"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    pool_id: Mapped[str] = mapped_column("poolid", String, nullable=False, index=True)
    miner: Mapped[str] = mapped_column(String, nullable=False, index=True)
    # Written as "" for unnamed workers; older rows may still hold NULL
    worker: Mapped[str | None] = mapped_column(String, nullable=True)
    hashrate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    shares_per_second: Mapped[float] = mapped_column(
        "sharespersecond", Float, nullable=False, default=0.0
    )
    created: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
