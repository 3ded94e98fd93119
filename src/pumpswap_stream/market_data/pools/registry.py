"""
In-memory registry of tracked PumpSwap pools.

The registry is the source of truth while the process runs. Every change is
written through to a mirror (Redis) without waiting: the mirror only exists
to warm the registry on the next start, so it may lag or lose writes.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Set, Tuple

logger = logging.getLogger(__name__)


class PoolMirror(Protocol):
    """Persistent store the registry mirrors into."""

    async def get_all_tracked_pools(self) -> List[str]: ...

    async def add_tracked_pool(self, pool_address: str) -> None: ...

    async def get_all_pool_decimals(self) -> Dict[str, int]: ...

    async def set_pool_decimals(self, pool_address: str, base_decimals: int) -> None: ...


@dataclass
class PoolRecord:
    """A tracked pool and the decimals used to scale its trades."""
    address: str
    base_decimals: int = 6
    quote_decimals: int = 9


class PoolRegistry:
    """
    Tracked pool set with per-pool base decimals.

    Features:
    - O(1) membership and decimals lookups
    - Idempotent registration
    - Fire-and-forget write-through to the mirror (failures logged, not retried)
    - One bulk load from the mirror at startup

    Usage:
        registry = PoolRegistry(mirror)
        await registry.load()
        registry.register(pool_address)
        if registry.is_tracked(pool_address):
            base, quote = registry.decimals_of(pool_address)
    """

    def __init__(
        self,
        mirror: Optional[PoolMirror] = None,
        default_base_decimals: int = 6,
        quote_decimals: int = 9,
    ):
        """
        Initialize the registry.

        Args:
            mirror: Persistent mirror; None keeps the registry memory-only
            default_base_decimals: Base decimals when none are known
            quote_decimals: Quote (SOL) decimals, fixed for every pool
        """
        self.mirror = mirror
        self.default_base_decimals = default_base_decimals
        self.quote_decimals = quote_decimals

        self._pools: Dict[str, PoolRecord] = {}
        self._pending: Set[asyncio.Task] = set()
        self._loaded = False

        # Statistics
        self.mirror_writes = 0
        self.mirror_failures = 0

    async def load(self) -> int:
        """
        Bulk load tracked pools and decimals from the mirror.

        Must complete before the stream subscription opens. A mirror failure
        leaves the registry empty; pools are re-learned from new migrations.

        Returns:
            Number of pools loaded
        """
        if self.mirror is None:
            self._loaded = True
            return 0

        try:
            tracked = await self.mirror.get_all_tracked_pools()
            decimals = await self.mirror.get_all_pool_decimals()
        except Exception as e:
            logger.error(f"Failed to load pools from mirror, starting empty: {e}")
            self._loaded = True
            return 0

        for address in tracked:
            self._pools[address] = PoolRecord(
                address=address,
                base_decimals=decimals.get(address, self.default_base_decimals),
                quote_decimals=self.quote_decimals,
            )

        self._loaded = True
        logger.info(f"Loaded {len(tracked)} tracked pools ({len(decimals)} with decimals)")
        return len(tracked)

    def is_tracked(self, address: str) -> bool:
        return address in self._pools

    def get(self, address: str) -> Optional[PoolRecord]:
        return self._pools.get(address)

    def decimals_of(self, address: str) -> Tuple[int, int]:
        """
        Get (base_decimals, quote_decimals) for a pool.

        Unknown pools get the defaults.
        """
        record = self._pools.get(address)
        if record is None:
            return self.default_base_decimals, self.quote_decimals
        return record.base_decimals, record.quote_decimals

    def register(self, address: str, base_decimals: Optional[int] = None) -> bool:
        """
        Track a pool.

        The in-memory update is immediate; the mirror write is scheduled on
        the running loop and not awaited.

        Args:
            address: Pool address
            base_decimals: Base token decimals (default when None)

        Returns:
            True if the pool was added or its decimals changed
        """
        decimals = self.default_base_decimals if base_decimals is None else base_decimals
        record = self._pools.get(address)

        if record is not None and record.base_decimals == decimals:
            return False

        is_new = record is None
        self._pools[address] = PoolRecord(address, decimals, self.quote_decimals)

        if is_new:
            logger.info(f"Tracking pool {address} (base decimals {decimals})", extra={'pool': address})
        else:
            logger.info(f"Pool {address} decimals corrected to {decimals}", extra={'pool': address})

        if self.mirror is not None:
            task = asyncio.get_running_loop().create_task(
                self._write_through(address, decimals, is_new)
            )
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

        return True

    async def _write_through(self, address: str, base_decimals: int, is_new: bool) -> None:
        try:
            if is_new:
                await self.mirror.add_tracked_pool(address)
            await self.mirror.set_pool_decimals(address, base_decimals)
            self.mirror_writes += 1
        except Exception as e:
            self.mirror_failures += 1
            logger.error(f"Mirror write failed for pool {address}: {e}", extra={'pool': address})

    async def flush_pending(self) -> None:
        """Wait for in-flight mirror writes."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def addresses(self) -> List[str]:
        return list(self._pools)

    def __len__(self) -> int:
        return len(self._pools)

    def __contains__(self, address: object) -> bool:
        return address in self._pools

    def get_stats(self) -> dict:
        """Get registry statistics."""
        return {
            "loaded": self._loaded,
            "tracked_pools": len(self._pools),
            "pending_mirror_writes": len(self._pending),
            "mirror_writes": self.mirror_writes,
            "mirror_failures": self.mirror_failures,
        }
