"""Collectors that turn system tool output into typed snapshots"""

from .base import Finding
from .processes import ProcessSnapshot, snapshot_processes
from .pool import PoolConfig, load_pool_config

__all__ = ["Finding", "PoolConfig", "ProcessSnapshot", "load_pool_config", "snapshot_processes"]
