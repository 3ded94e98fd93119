"""
Unit tests for TransactionProcessor.

Tests:
- Migration side effects (registry, store, metadata, global announcement)
- Trades only forwarded for tracked pools
- Decimal scaling of trade records
- Storage failures do not block fan-out
- Optional pool-creation tracking
"""

import asyncio

import pytest

from pumpswap_stream.core.events import MigrateEvent, TradeEvent
from pumpswap_stream.market_data.stream.processor import (
    POOL_NEW_EVENT,
    WRAPPED_SOL_MINT,
    TransactionProcessor,
)
from tests.builders import (
    BUY_EVENT,
    SELL_EVENT,
    amm_envelope,
    buy_ix,
    create_pool_event,
    create_pool_ix,
    key,
    migration_envelope,
    raw_key,
    sell_ix,
    trade_event,
)
from tests.conftest import FakeStore

POOL_SEED = 200
POOL = key(POOL_SEED)


def pool_buy(token_amount=2_000_000, executed_quote=1_000_000_000):
    """Confirmed buy on POOL (account ref 0 is key(POOL_SEED))."""
    inner = [trade_event(BUY_EVENT, user_quote_amount=executed_quote, lp_fee=1, protocol_fee=1)]
    return amm_envelope(buy_ix(token_amount, executed_quote * 2), inner=inner, account_seed=POOL_SEED)


# ============================================================================
# Migrations
# ============================================================================

@pytest.mark.asyncio
async def test_migration_side_effects(processor, registry, store, metadata_queue, recording_broadcaster):
    event = await processor.process(migration_envelope(pool=raw_key(POOL_SEED), sol_amount=85, mint_amount=206))

    assert isinstance(event, MigrateEvent)
    assert registry.is_tracked(POOL)
    assert store.pools == [(POOL, key(3), WRAPPED_SOL_MINT, 6, 9)]
    assert metadata_queue.jobs == [(POOL, key(3))]

    name, payload = recording_broadcaster.global_emits[0]
    assert name == POOL_NEW_EVENT
    assert payload["address"] == POOL
    assert payload["mint"] == key(3)
    assert payload["solAmount"] == 85
    assert payload["tokenAmount"] == 206
    assert payload["timestamp"] == event.timestamp


@pytest.mark.asyncio
async def test_repeat_migration_keeps_registration(processor, registry):
    await processor.process(migration_envelope(pool=raw_key(POOL_SEED)))
    await processor.process(migration_envelope(pool=raw_key(POOL_SEED)))
    await registry.flush_pending()

    assert len(registry) == 1
    assert registry.mirror_writes == 1
    assert processor.migrations == 2


# ============================================================================
# Trades
# ============================================================================

@pytest.mark.asyncio
async def test_untracked_trade_has_no_side_effects(processor, store, batcher):
    event = await processor.process(pool_buy())

    assert isinstance(event, TradeEvent)
    assert store.trades == []
    assert batcher.pending(POOL) == []
    assert processor.trades_untracked == 1


@pytest.mark.asyncio
async def test_trade_right_after_migration_is_forwarded(processor, mirror, store, batcher):
    """Tracking does not wait for the mirror write."""
    mirror.gate = asyncio.Event()

    await processor.process(migration_envelope(pool=raw_key(POOL_SEED)))
    await processor.process(pool_buy())

    assert POOL not in mirror.pools
    assert len(store.trades) == 1
    assert len(batcher.pending(POOL)) == 1

    mirror.gate.set()
    await processor.registry.flush_pending()
    assert POOL in mirror.pools


@pytest.mark.asyncio
async def test_trade_is_scaled_by_decimals(processor, registry, store, batcher):
    registry.register(POOL)

    event = await processor.process(pool_buy(token_amount=2_000_000, executed_quote=1_000_000_000))

    tx_hash, time_ms, pool, side, price, base_amount, quote_amount = store.trades[0]
    assert tx_hash == event.signature
    assert time_ms == event.timestamp
    assert pool == POOL
    assert side == "BUY"
    assert base_amount == pytest.approx(2.0)
    assert quote_amount == pytest.approx(1.0)
    assert price == pytest.approx(0.5)

    payload = batcher.pending(POOL)[0]
    assert payload == {
        "txHash": event.signature,
        "type": "BUY",
        "price": price,
        "baseAmount": base_amount,
        "quoteAmount": quote_amount,
        "time": event.timestamp,
        "maker": key(POOL_SEED + 1),
    }


@pytest.mark.asyncio
async def test_registry_decimals_are_used(processor, registry, store):
    registry.register(POOL, base_decimals=9)

    inner = [trade_event(SELL_EVENT, user_quote_amount=500_000_000)]
    await processor.process(amm_envelope(sell_ix(1_000_000_000, 1), inner=inner, account_seed=POOL_SEED))

    _, _, _, side, price, base_amount, quote_amount = store.trades[0]
    assert side == "SELL"
    assert base_amount == pytest.approx(1.0)
    assert quote_amount == pytest.approx(0.5)
    assert price == pytest.approx(0.5)


@pytest.mark.asyncio
async def test_zero_base_amount_gives_zero_price(processor, registry, store):
    registry.register(POOL)

    await processor.process(pool_buy(token_amount=0))

    assert store.trades[0][4] == 0.0


@pytest.mark.asyncio
async def test_storage_failure_does_not_block_fanout(registry, batcher, recording_broadcaster, metadata_queue):
    processor = TransactionProcessor(
        registry=registry,
        store=FakeStore(fail=True),
        batcher=batcher,
        broadcaster=recording_broadcaster,
        metadata_queue=metadata_queue,
    )

    await processor.process(migration_envelope(pool=raw_key(POOL_SEED)))
    await processor.process(pool_buy())

    assert registry.is_tracked(POOL)
    assert len(recording_broadcaster.global_emits) == 1
    assert len(metadata_queue.jobs) == 1
    assert len(batcher.pending(POOL)) == 1
    assert processor.storage_errors == 2


# ============================================================================
# Pool creation
# ============================================================================

@pytest.mark.asyncio
async def test_create_pool_ignored_by_default(processor, registry, store):
    inner = [create_pool_event(base_decimals=9, quote_decimals=9)]
    await processor.process(amm_envelope(create_pool_ix(0, 1, 1), inner=inner, account_seed=POOL_SEED))

    assert not registry.is_tracked(POOL)
    assert store.pools == []


@pytest.mark.asyncio
async def test_create_pool_tracked_when_enabled(registry, store, batcher, recording_broadcaster, metadata_queue):
    processor = TransactionProcessor(
        registry=registry,
        store=store,
        batcher=batcher,
        broadcaster=recording_broadcaster,
        metadata_queue=metadata_queue,
        track_pool_creation=True,
    )

    inner = [create_pool_event(base_decimals=9, quote_decimals=9)]
    await processor.process(amm_envelope(create_pool_ix(0, 1, 1), inner=inner, account_seed=POOL_SEED))

    assert registry.decimals_of(POOL) == (9, 9)
    assert store.pools == [(POOL, key(POOL_SEED + 3), key(POOL_SEED + 4), 9, 9)]
    assert metadata_queue.jobs == [(POOL, key(POOL_SEED + 3))]
    assert recording_broadcaster.global_emits == []


@pytest.mark.asyncio
async def test_unrelated_transaction(processor):
    assert await processor.process(amm_envelope(bytes(24))) is None
