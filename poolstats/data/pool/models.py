"""Pydantic models for pool snapshots."""

# Pydantic needs this at runtime to validate the datetime fields
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class PoolStats(BaseModel):
    """Pool snapshot as written by the stats recorder."""

    model_config = ConfigDict(from_attributes=True)

    pool_id: str
    connected_miners: int = 0
    connected_workers: int = 0
    pool_hashrate: float = 0.0
    network_hashrate: float = 0.0
    network_difficulty: float = 0.0
    last_network_block_time: datetime | None = None
    block_height: int = 0
    connected_peers: int = 0
    shares_per_second: float = 0.0
    created: datetime


class PoolPerformanceStats(BaseModel):
    """Pool snapshots averaged over one hour or day bucket."""

    created: datetime  # bucket start
    pool_hashrate: float
    network_hashrate: float
    network_difficulty: float
    connected_miners: int  # average, cast to an integer


__all__ = ["PoolPerformanceStats", "PoolStats"]
