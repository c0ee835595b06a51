"""Database models for the share, balance and payment ledgers.

These tables are owned by the payment processor; the stats layer only reads
them.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Float,
    Numeric,
    String,
    Table,
)
from sqlalchemy.orm import Mapped, mapped_column

from poolstats.helpers.db import Base


# No primary key in Miningcore, so this stays a Core table
shares_table = Table(
    "shares",
    Base.metadata,
    Column("poolid", String, nullable=False, index=True),
    Column("blockheight", BigInteger, nullable=False),
    Column("difficulty", Float, nullable=False),
    Column("networkdifficulty", Float, nullable=False),
    Column("miner", String, nullable=False, index=True),
    Column("worker", String, nullable=True),
    Column("useragent", String, nullable=True),
    Column("ipaddress", String, nullable=False, default=""),
    Column("source", String, nullable=True),
    Column("created", DateTime(timezone=True), nullable=False),
)


class BalanceDB(Base):
    """Pending balance owed to a miner."""

    __tablename__ = "balances"

    pool_id: Mapped[str] = mapped_column("poolid", String, primary_key=True)
    address: Mapped[str] = mapped_column(String, primary_key=True)
    coin: Mapped[str] = mapped_column(String, nullable=False, default="")
    amount: Mapped[Decimal] = mapped_column(Numeric(28, 12), nullable=False, default=0)
    created: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class PaymentDB(Base):
    """Completed payout to a miner."""

    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    pool_id: Mapped[str] = mapped_column("poolid", String, nullable=False, index=True)
    coin: Mapped[str] = mapped_column(String, nullable=False, default="")
    address: Mapped[str] = mapped_column(String, nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(28, 12), nullable=False)
    transaction_confirmation_data: Mapped[str] = mapped_column(
        "transactionconfirmationdata", String, nullable=False, default=""
    )
    created: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
