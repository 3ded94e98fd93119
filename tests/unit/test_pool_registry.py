"""
Unit tests for PoolRegistry.

Tests:
- Warm load from the mirror (and empty start when it fails)
- Synchronous registration with background write-through
- Decimals lookups and corrections
"""

import asyncio

import pytest

from pumpswap_stream.market_data.pools.registry import PoolRegistry
from tests.conftest import FakeMirror


@pytest.mark.asyncio
async def test_load_from_mirror():
    """Tracked pools load with their stored decimals or the default."""
    mirror = FakeMirror(pools=["poolA", "poolB"], decimals={"poolA": 9})
    registry = PoolRegistry(mirror=mirror)

    loaded = await registry.load()

    assert loaded == 2
    assert registry.decimals_of("poolA") == (9, 9)
    assert registry.decimals_of("poolB") == (6, 9)
    assert registry.get_stats()["loaded"] is True


@pytest.mark.asyncio
async def test_load_failure_starts_empty():
    registry = PoolRegistry(mirror=FakeMirror(pools=["poolA"], fail_reads=True))

    assert await registry.load() == 0
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_load_without_mirror():
    registry = PoolRegistry()

    assert await registry.load() == 0
    assert registry.register("poolA") is True
    assert "poolA" in registry


@pytest.mark.asyncio
async def test_register_is_visible_before_mirror_write(mirror, registry):
    """Membership changes immediately; the mirror catches up later."""
    mirror.gate = asyncio.Event()

    registry.register("poolA")

    assert registry.is_tracked("poolA")
    assert "poolA" not in mirror.pools

    mirror.gate.set()
    await registry.flush_pending()

    assert "poolA" in mirror.pools
    assert mirror.decimals["poolA"] == 6
    assert registry.mirror_writes == 1


@pytest.mark.asyncio
async def test_register_is_idempotent(mirror, registry):
    assert registry.register("poolA") is True
    assert registry.register("poolA") is False
    await registry.flush_pending()

    assert registry.mirror_writes == 1


@pytest.mark.asyncio
async def test_decimals_correction(mirror, registry):
    registry.register("poolA")
    assert registry.register("poolA", base_decimals=9) is True
    await registry.flush_pending()

    assert registry.decimals_of("poolA") == (9, 9)
    assert mirror.decimals["poolA"] == 9


@pytest.mark.asyncio
async def test_mirror_failure_keeps_pool_tracked():
    registry = PoolRegistry(mirror=FakeMirror(fail_writes=True))

    registry.register("poolA")
    await registry.flush_pending()

    assert registry.is_tracked("poolA")
    assert registry.mirror_failures == 1


def test_unknown_pool_gets_defaults():
    registry = PoolRegistry(default_base_decimals=5, quote_decimals=8)

    assert registry.decimals_of("missing") == (5, 8)
    assert registry.get("missing") is None
    assert not registry.is_tracked("missing")
