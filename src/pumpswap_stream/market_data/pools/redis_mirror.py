"""
Redis mirror of the pool registry.

Keeps the tracked pool set and per-pool base decimals in Redis so a restart
can warm the in-memory registry. Uses redis-py's asyncio client.

Keys (default prefix "pumpswap"):
- {prefix}:tracked_pools  SET of pool addresses
- {prefix}:pool_decimals  HASH pool address -> base decimals
"""

import logging
from typing import Dict, List, Optional

import redis.asyncio as redis_async
from redis.exceptions import RedisError

from pumpswap_stream.core.exceptions import StorageError

logger = logging.getLogger(__name__)


class RedisPoolMirror:
    """Async Redis wrapper for tracked pools and their decimals."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        key_prefix: str = "pumpswap",
        client: Optional[redis_async.Redis] = None,
    ):
        """
        Initialize the mirror.

        Args:
            host: Redis host
            port: Redis port
            db: Database index
            password: Optional password
            key_prefix: Namespace for the two keys
            client: Pre-built client (tests inject a mock here)
        """
        self.key_tracked_pools = f"{key_prefix}:tracked_pools"
        self.key_pool_decimals = f"{key_prefix}:pool_decimals"
        self._client = client or redis_async.Redis(
            host=host,
            port=port,
            db=db,
            password=password,
            decode_responses=True,
            socket_connect_timeout=2,
        )
        self._address = f"{host}:{port}/{db}"

    async def ping(self) -> bool:
        """Check connectivity; never raises."""
        try:
            await self._client.ping()
            logger.info(f"Redis connected: {self._address}")
            return True
        except RedisError as e:
            logger.warning(f"Redis ping failed ({self._address}): {e}")
            return False

    # ------------------------------------------------------------------
    # Tracked pools
    # ------------------------------------------------------------------

    async def add_tracked_pool(self, pool_address: str) -> None:
        try:
            await self._client.sadd(self.key_tracked_pools, pool_address)
        except RedisError as e:
            raise StorageError(f"sadd {self.key_tracked_pools} failed: {e}") from e

    async def get_all_tracked_pools(self) -> List[str]:
        try:
            members = await self._client.smembers(self.key_tracked_pools)
        except RedisError as e:
            raise StorageError(f"smembers {self.key_tracked_pools} failed: {e}") from e
        return sorted(members)

    async def is_pool_tracked(self, pool_address: str) -> bool:
        try:
            return bool(await self._client.sismember(self.key_tracked_pools, pool_address))
        except RedisError as e:
            raise StorageError(f"sismember {self.key_tracked_pools} failed: {e}") from e

    # ------------------------------------------------------------------
    # Pool decimals
    # ------------------------------------------------------------------

    async def set_pool_decimals(self, pool_address: str, base_decimals: int) -> None:
        try:
            await self._client.hset(self.key_pool_decimals, pool_address, str(base_decimals))
        except RedisError as e:
            raise StorageError(f"hset {self.key_pool_decimals} failed: {e}") from e

    async def get_pool_decimals(self, pool_address: str) -> Optional[int]:
        try:
            value = await self._client.hget(self.key_pool_decimals, pool_address)
        except RedisError as e:
            raise StorageError(f"hget {self.key_pool_decimals} failed: {e}") from e
        return int(value) if value else None

    async def get_all_pool_decimals(self) -> Dict[str, int]:
        try:
            raw = await self._client.hgetall(self.key_pool_decimals)
        except RedisError as e:
            raise StorageError(f"hgetall {self.key_pool_decimals} failed: {e}") from e

        result = {}
        for pool, decimals in raw.items():
            try:
                result[pool] = int(decimals)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring non-integer decimals for {pool}: {decimals!r}", extra={'pool': pool})
        return result

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()
