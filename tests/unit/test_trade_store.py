"""
Unit tests for TradeStore (real DuckDB under tmp_path).
"""

import pytest

from pumpswap_stream.core.exceptions import StorageError
from pumpswap_stream.market_data.storage.trade_store import TradeStore


@pytest.fixture
def trade_store(tmp_path):
    store = TradeStore(str(tmp_path / "db" / "test.duckdb"))
    yield store
    store.close()


@pytest.mark.asyncio
async def test_upsert_pool_first_write_wins(trade_store):
    await trade_store.upsert_pool("poolA", "mintA", "So1", 6, 9)
    await trade_store.upsert_pool("poolA", "mintB", "So1", 9, 9)

    pool = await trade_store.get_pool("poolA")
    assert pool == {
        "address": "poolA",
        "base_mint": "mintA",
        "quote_mint": "So1",
        "base_decimals": 6,
        "quote_decimals": 9,
    }
    assert await trade_store.get_pool("missing") is None
    assert trade_store.pools_written == 1


@pytest.mark.asyncio
async def test_insert_and_read_trades(trade_store):
    await trade_store.insert_trade("sig1", 1_700_000_000_000, "poolA", "BUY", 0.5, 2.0, 1.0)
    await trade_store.insert_trade("sig2", 1_700_000_001_000, "poolA", "SELL", 0.4, 1.0, 0.4)
    await trade_store.insert_trade("sig3", 1_700_000_002_000, "poolB", "BUY", 0.1, 1.0, 0.1)

    trades = await trade_store.get_recent_trades("poolA")

    assert [t["tx_hash"] for t in trades] == ["sig2", "sig1"]
    assert trades[0]["time"] == 1_700_000_001_000
    assert trades[0]["type"] == "SELL"
    assert trades[1]["base_amount"] == pytest.approx(2.0)


@pytest.mark.asyncio
async def test_duplicate_signature_is_ignored(trade_store):
    await trade_store.insert_trade("sig1", 1_700_000_000_000, "poolA", "BUY", 0.5, 2.0, 1.0)
    await trade_store.insert_trade("sig1", 1_700_000_000_000, "poolA", "BUY", 0.5, 2.0, 1.0)

    assert len(await trade_store.get_recent_trades("poolA")) == 1
    stats = trade_store.get_stats()
    assert stats["tables"] == {"pools": 0, "trades": 1}
    assert stats["trades_written"] == 1


@pytest.mark.asyncio
async def test_closed_store_raises():
    store = TradeStore(":memory:")
    store.close()

    with pytest.raises(StorageError):
        await store.insert_trade("sig1", 1_700_000_000_000, "poolA", "BUY", 0.5, 2.0, 1.0)
    assert store.write_errors == 1
