"""Database models for pool snapshots."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from poolstats.helpers.db import Base


class PoolStatsDB(Base):
    """Periodic pool snapshot (Miningcore ``poolstats``)."""

    __tablename__ = "poolstats"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    pool_id: Mapped[str] = mapped_column("poolid", String, nullable=False, index=True)
    connected_miners: Mapped[int] = mapped_column(
        "connectedminers", Integer, nullable=False, default=0
    )
    connected_workers: Mapped[int] = mapped_column(
        "connectedworkers", Integer, nullable=False, default=0
    )
    pool_hashrate: Mapped[float] = mapped_column(
        "poolhashrate", Float, nullable=False, default=0.0
    )  # H/s
    network_hashrate: Mapped[float] = mapped_column(
        "networkhashrate", Float, nullable=False, default=0.0
    )  # H/s
    network_difficulty: Mapped[float] = mapped_column(
        "networkdifficulty", Float, nullable=False, default=0.0
    )
    last_network_block_time: Mapped[datetime | None] = mapped_column(
        "lastnetworkblocktime", DateTime(timezone=True), nullable=True
    )
    block_height: Mapped[int] = mapped_column(
        "blockheight", BigInteger, nullable=False, default=0
    )
    connected_peers: Mapped[int] = mapped_column(
        "connectedpeers", Integer, nullable=False, default=0
    )
    shares_per_second: Mapped[float] = mapped_column(
        "sharespersecond", Float, nullable=False, default=0.0
    )
    created: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
