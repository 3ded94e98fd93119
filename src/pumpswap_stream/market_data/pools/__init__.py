"""Tracked pool registry and its Redis mirror."""

from .registry import PoolMirror, PoolRecord, PoolRegistry
from .redis_mirror import RedisPoolMirror

__all__ = ["PoolMirror", "PoolRecord", "PoolRegistry", "RedisPoolMirror"]
