"""
Trade Batcher - coalesces per-pool trade records into periodic broadcasts.

Trades arrive one at a time from the stream; subscribers receive them as one
"trade:batch" array per pool per tick. Between ticks records accumulate in
arrival order.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from pumpswap_stream.core.base import AlwaysOnComponent
from .broadcaster import pool_room

logger = logging.getLogger(__name__)

TRADE_BATCH_EVENT = "trade:batch"


class TradeBatcher(AlwaysOnComponent):
    """
    Per-pool buffers flushed to a broadcaster on a fixed interval.

    Features:
    - One emit per non-empty pool per tick, nothing for empty pools
    - Arrival order preserved within a batch
    - Optional per-pool bound (oldest records dropped past it)
    - Broadcaster failures logged; the timer keeps running

    Usage:
        batcher = TradeBatcher(broadcaster, flush_interval_ms=200)
        await batcher.start()
        batcher.enqueue(pool_address, trade.to_payload())
        ...
        await batcher.stop()
    """

    def __init__(
        self,
        broadcaster,
        flush_interval_ms: int = 200,
        max_buffer_size: Optional[int] = None,
    ):
        """
        Initialize the batcher.

        Args:
            broadcaster: Object with async emit_to_room(room, event, payload)
            flush_interval_ms: Tick length
            max_buffer_size: Per-pool bound, None for unbounded
        """
        super().__init__("trade_batcher", stop_timeout=max(1.0, flush_interval_ms / 1000 * 5))
        self.broadcaster = broadcaster
        self.flush_interval = flush_interval_ms / 1000
        self.max_buffer_size = max_buffer_size

        self._buffers: Dict[str, List[Any]] = {}

        # Statistics
        self.records_enqueued = 0
        self.records_dropped = 0
        self.batches_emitted = 0
        self.emit_errors = 0

    def enqueue(self, key: str, record: Any) -> None:
        """
        Append a record to a pool's buffer.

        Args:
            key: Pool address
            record: Serializable trade record
        """
        buffer = self._buffers.setdefault(key, [])
        buffer.append(record)
        self.records_enqueued += 1

        if self.max_buffer_size is not None and len(buffer) > self.max_buffer_size:
            del buffer[0]
            self.records_dropped += 1
            if self.records_dropped % 1000 == 1:
                logger.warning(
                    f"Buffer for {key} over {self.max_buffer_size} records, dropping oldest "
                    f"({self.records_dropped} dropped so far)",
                    extra={'pool': key},
                )

    async def _run_loop(self) -> None:
        logger.info(f"Starting trade batcher with {self.flush_interval * 1000:.0f}ms interval")
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.flush_interval
        while self._running:
            await asyncio.sleep(max(0.0, deadline - loop.time()))
            await self._flush()

            # Ticks missed behind a slow emit are skipped, not replayed
            deadline = max(deadline + self.flush_interval, loop.time())

    async def _flush(self) -> None:
        """Emit every non-empty buffer, then reset it (key retained)."""
        for key in list(self._buffers):
            records = self._buffers[key]
            if not records:
                continue

            # Swap before awaiting so records enqueued during the emit land in the next tick
            self._buffers[key] = []

            try:
                await self.broadcaster.emit_to_room(pool_room(key), TRADE_BATCH_EVENT, records)
                self.batches_emitted += 1
            except Exception as e:
                self.emit_errors += 1
                logger.error(f"Failed to emit trade batch for {key}: {e}", extra={'pool': key})

    def pending(self, key: str) -> List[Any]:
        """Records currently buffered for a pool."""
        return list(self._buffers.get(key, ()))

    def get_stats(self) -> dict:
        """Get batcher statistics."""
        return {
            "running": self.is_running,
            "pools": len(self._buffers),
            "buffered": sum(len(b) for b in self._buffers.values()),
            "records_enqueued": self.records_enqueued,
            "records_dropped": self.records_dropped,
            "batches_emitted": self.batches_emitted,
            "emit_errors": self.emit_errors,
        }

    async def health_check(self) -> dict:
        health = await super().health_check()
        health["details"] = self.get_stats()
        if self.emit_errors and not self.batches_emitted:
            health["status"] = "unhealthy"
        return health
