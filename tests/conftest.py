"""
Shared fixtures and fakes for the stream tests.

Fakes stand in for the external services (Redis, DuckDB, Yellowstone) so the
pipeline can be exercised without network or disk, except where a test opts
into a real DuckDB file.
"""

import asyncio
from typing import Dict, List, Optional

import pytest

from pumpswap_stream.market_data.pools.registry import PoolRegistry
from pumpswap_stream.market_data.stream.processor import TransactionProcessor
from pumpswap_stream.notifications.batcher import TradeBatcher
from pumpswap_stream.notifications.broadcaster import RoomBroadcaster


# ============================================================================
# Fakes
# ============================================================================

class FakeMirror:
    """In-memory PoolMirror. Writes wait on `gate` when it is set."""

    def __init__(self, pools: Optional[List[str]] = None, decimals: Optional[Dict[str, int]] = None,
                 fail_reads: bool = False, fail_writes: bool = False):
        self.pools = set(pools or ())
        self.decimals = dict(decimals or {})
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.gate: Optional[asyncio.Event] = None

    async def _maybe_wait(self):
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_writes:
            raise ConnectionError("mirror down")

    async def get_all_tracked_pools(self):
        if self.fail_reads:
            raise ConnectionError("mirror down")
        return sorted(self.pools)

    async def get_all_pool_decimals(self):
        if self.fail_reads:
            raise ConnectionError("mirror down")
        return dict(self.decimals)

    async def add_tracked_pool(self, pool_address):
        await self._maybe_wait()
        self.pools.add(pool_address)

    async def set_pool_decimals(self, pool_address, base_decimals):
        await self._maybe_wait()
        self.decimals[pool_address] = base_decimals


class FakeStore:
    """Records upsert_pool / insert_trade calls; can be told to fail."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.pools: List[tuple] = []
        self.trades: List[tuple] = []

    async def upsert_pool(self, *args):
        if self.fail:
            raise RuntimeError("database unavailable")
        self.pools.append(args)

    async def insert_trade(self, *args):
        if self.fail:
            raise RuntimeError("database unavailable")
        self.trades.append(args)


class RecordingBroadcaster:
    """Captures emits instead of delivering them."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.room_emits: List[tuple] = []
        self.global_emits: List[tuple] = []

    async def emit_to_room(self, room, event, payload):
        if self.fail:
            raise RuntimeError("socket layer down")
        self.room_emits.append((room, event, list(payload)))
        return 1

    async def emit_global(self, event, payload):
        self.global_emits.append((event, payload))
        return 1


class FakeMetadataQueue:
    def __init__(self):
        self.jobs: List[tuple] = []

    def enqueue(self, pool_address, mint_address):
        self.jobs.append((pool_address, mint_address))
        return True


class FakeSubscription:
    """Async-iterable subscription fed by push() / end() / fail()."""

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self.cancelled = False
        self.pings = 0

    def push(self, envelope):
        self._queue.put_nowait(envelope)

    def end(self):
        self._queue.put_nowait(None)

    def fail(self, exc: Exception):
        self._queue.put_nowait(exc)

    async def ping(self):
        self.pings += 1

    def cancel(self):
        self.cancelled = True

    async def __aiter__(self):
        while True:
            item = await self._queue.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item


class FakeGeyserClient:
    def __init__(self, factory: "FakeClientFactory"):
        self.factory = factory
        self.closed = False
        self.subscription: Optional[FakeSubscription] = None

    async def connect(self):
        pass

    async def get_version(self):
        return "fake-1.0"

    async def subscribe_transactions(self, **kwargs):
        self.factory.subscribe_calls.append(kwargs)
        if self.factory.gate is not None:
            await self.factory.gate.wait()
        if self.factory.failures_left > 0:
            self.factory.failures_left -= 1
            raise ConnectionError("subscribe rejected")
        self.subscription = FakeSubscription()
        return self.subscription

    async def close(self):
        self.closed = True


class FakeClientFactory:
    """
    Client factory for StreamConnectionManager.

    failures_left: how many subscribe calls fail before one succeeds
    gate: when set, subscribe waits on it
    """

    def __init__(self, failures: int = 0):
        self.failures_left = failures
        self.gate: Optional[asyncio.Event] = None
        self.clients: List[FakeGeyserClient] = []
        self.subscribe_calls: List[dict] = []

    def __call__(self):
        client = FakeGeyserClient(self)
        self.clients.append(client)
        return client

    @property
    def latest(self) -> FakeGeyserClient:
        return self.clients[-1]


class RecordingProcessor:
    def __init__(self):
        self.seen = []

    async def process(self, envelope):
        self.seen.append(envelope)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def mirror():
    return FakeMirror()


@pytest.fixture
def registry(mirror):
    return PoolRegistry(mirror=mirror)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def recording_broadcaster():
    return RecordingBroadcaster()


@pytest.fixture
def metadata_queue():
    return FakeMetadataQueue()


@pytest.fixture
def batcher():
    """Unstarted batcher; tests inspect pending() or flush by hand."""
    return TradeBatcher(RoomBroadcaster(), flush_interval_ms=200)


@pytest.fixture
def processor(registry, store, batcher, recording_broadcaster, metadata_queue):
    return TransactionProcessor(
        registry=registry,
        store=store,
        batcher=batcher,
        broadcaster=recording_broadcaster,
        metadata_queue=metadata_queue,
    )
