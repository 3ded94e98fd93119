"""
Metadata Queue - bounded background work queue for token metadata jobs.

The stream enqueues (pool, mint) pairs when a pool is first seen and never
waits on them. Workers call an injected async resolver; what the resolver
does (RPC lookups, off-chain JSON, writing the result somewhere) is outside
this package.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from pumpswap_stream.core.base import Component

logger = logging.getLogger(__name__)

MetadataResolver = Callable[[str, str], Awaitable[None]]


@dataclass(frozen=True)
class MetadataJob:
    """A pending metadata lookup."""
    pool_address: str
    mint_address: str


class MetadataQueue(Component):
    """
    Fire-and-forget metadata jobs with a fixed worker pool.

    Features:
    - enqueue() never blocks; a full queue drops the job with a warning
    - Each job failure is logged and isolated
    - Without a resolver, jobs are logged and discarded

    Usage:
        queue = MetadataQueue(resolver=fetch_metadata, workers=2)
        await queue.start()
        queue.enqueue(pool_address, mint_address)
        ...
        await queue.stop()
    """

    def __init__(
        self,
        resolver: Optional[MetadataResolver] = None,
        workers: int = 2,
        queue_size: int = 1000,
    ):
        """
        Initialize the queue.

        Args:
            resolver: async resolver(pool_address, mint_address)
            workers: Number of concurrent workers
            queue_size: Max pending jobs
        """
        super().__init__("metadata_queue")
        self.resolver = resolver
        self.worker_count = workers
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._workers: List[asyncio.Task] = []

        # Statistics
        self.jobs_enqueued = 0
        self.jobs_dropped = 0
        self.jobs_completed = 0
        self.jobs_failed = 0

    def enqueue(self, pool_address: str, mint_address: str) -> bool:
        """
        Queue a metadata lookup.

        Returns:
            False if the queue was full and the job was dropped
        """
        try:
            self._queue.put_nowait(MetadataJob(pool_address, mint_address))
        except asyncio.QueueFull:
            self.jobs_dropped += 1
            logger.warning(
                f"Metadata queue full, dropping job for mint {mint_address}",
                extra={'pool': pool_address},
            )
            return False

        self.jobs_enqueued += 1
        return True

    async def start(self) -> None:
        if self.is_started:
            return
        await super().start()
        if self.resolver is None:
            self._logger.warning("No metadata resolver configured; jobs will be discarded")
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"metadata_worker_{i}")
            for i in range(self.worker_count)
        ]

    async def stop(self) -> None:
        if not self.is_started:
            return
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        await super().stop()

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    async def _worker(self, worker_id: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._process(job)
            finally:
                self._queue.task_done()

    async def _process(self, job: MetadataJob) -> None:
        if self.resolver is None:
            logger.debug(f"Discarding metadata job for mint {job.mint_address}", extra={'pool': job.pool_address})
            return

        try:
            await self.resolver(job.pool_address, job.mint_address)
            self.jobs_completed += 1
        except Exception as e:
            self.jobs_failed += 1
            logger.error(
                f"Metadata job failed for mint {job.mint_address}: {e}",
                extra={'pool': job.pool_address},
            )

    def get_stats(self) -> dict:
        """Get queue statistics."""
        return {
            "pending": self._queue.qsize(),
            "workers": len(self._workers),
            "jobs_enqueued": self.jobs_enqueued,
            "jobs_dropped": self.jobs_dropped,
            "jobs_completed": self.jobs_completed,
            "jobs_failed": self.jobs_failed,
        }
