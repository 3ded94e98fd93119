"""
End-to-end pipeline test.

Stream manager -> processor -> registry / DuckDB store / batcher ->
broadcaster -> subscribed client, with only the Yellowstone client and the
Redis mirror faked.
"""

import asyncio

import pytest

from pumpswap_stream.market_data.pools.registry import PoolRegistry
from pumpswap_stream.market_data.storage.trade_store import TradeStore
from pumpswap_stream.market_data.stream.manager import ConnectionState, StreamConnectionManager
from pumpswap_stream.market_data.stream.processor import POOL_NEW_EVENT, TransactionProcessor
from pumpswap_stream.notifications.batcher import TRADE_BATCH_EVENT, TradeBatcher
from pumpswap_stream.notifications.broadcaster import RoomBroadcaster, pool_room
from pumpswap_stream.notifications.metadata_queue import MetadataQueue
from tests.builders import (
    BUY_EVENT,
    amm_envelope,
    buy_ix,
    key,
    migration_envelope,
    raw_key,
    trade_event,
)
from tests.conftest import FakeClientFactory, FakeMirror

POOL_SEED = 200
POOL = key(POOL_SEED)
TRADE_SIGNATURE = bytes([7]) * 64


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
async def pipeline(tmp_path):
    mirror = FakeMirror()
    registry = PoolRegistry(mirror=mirror)
    await registry.load()

    store = TradeStore(str(tmp_path / "pipeline.duckdb"))
    broadcaster = RoomBroadcaster()
    batcher = TradeBatcher(broadcaster, flush_interval_ms=20)
    metadata_queue = MetadataQueue(workers=1)
    processor = TransactionProcessor(registry, store, batcher, broadcaster, metadata_queue)

    factory = FakeClientFactory()
    manager = StreamConnectionManager(
        factory,
        processor,
        program_ids=["pAMMBay6oceH9fJKBRHGP5D4bD4sWpmSwMn52FMfXEA", "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"],
        reconnect_delay_ms=10,
    )

    await batcher.start()
    await metadata_queue.start()
    await manager.start()

    yield {
        "factory": factory,
        "manager": manager,
        "registry": registry,
        "mirror": mirror,
        "store": store,
        "broadcaster": broadcaster,
    }

    await manager.stop()
    await batcher.stop()
    await metadata_queue.stop()
    await registry.flush_pending()
    store.close()


# ============================================================================
# Tests
# ============================================================================

@pytest.mark.asyncio
async def test_migration_then_trade_reaches_subscriber(pipeline):
    """A pool migrated in one record receives batched trades from the next."""
    received = []

    async def client_handler(event, payload):
        received.append((event, payload))

    broadcaster = pipeline["broadcaster"]
    broadcaster.connect("ui", client_handler)
    broadcaster.join("ui", pool_room(POOL))

    subscription = pipeline["factory"].latest.subscription
    subscription.push(migration_envelope(pool=raw_key(POOL_SEED)))
    subscription.push(amm_envelope(
        buy_ix(2_000_000, 2_000_000_000),
        inner=[trade_event(BUY_EVENT, user_quote_amount=1_000_000_000, lp_fee=3, protocol_fee=1)],
        account_seed=POOL_SEED,
        signature=TRADE_SIGNATURE,
    ))

    await asyncio.sleep(0.01)
    await pipeline["manager"].drain()
    await asyncio.sleep(0.1)

    assert pipeline["manager"].state == ConnectionState.CONNECTED
    assert pipeline["registry"].is_tracked(POOL)

    events = [event for event, _ in received]
    assert events == [POOL_NEW_EVENT, TRADE_BATCH_EVENT]

    batch = received[1][1]
    assert len(batch) == 1
    assert batch[0]["type"] == "BUY"
    assert batch[0]["baseAmount"] == pytest.approx(2.0)
    assert batch[0]["quoteAmount"] == pytest.approx(1.0)
    assert batch[0]["price"] == pytest.approx(0.5)

    trades = await pipeline["store"].get_recent_trades(POOL)
    assert [t["tx_hash"] for t in trades] == [batch[0]["txHash"]]
    assert (await pipeline["store"].get_pool(POOL))["base_decimals"] == 6

    await pipeline["registry"].flush_pending()
    assert POOL in pipeline["mirror"].pools


@pytest.mark.asyncio
async def test_trades_for_unknown_pools_are_dropped(pipeline):
    received = []
    pipeline["broadcaster"].connect("ui", lambda event, payload: received.append(event))
    pipeline["broadcaster"].join("ui", pool_room(POOL))

    pipeline["factory"].latest.subscription.push(amm_envelope(buy_ix(1000, 500), account_seed=POOL_SEED))

    await asyncio.sleep(0.01)
    await pipeline["manager"].drain()
    await asyncio.sleep(0.06)

    assert received == []
    assert await pipeline["store"].get_recent_trades(POOL) == []
