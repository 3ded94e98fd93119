"""
Unit tests for MetadataQueue.
"""

import pytest

from pumpswap_stream.notifications.metadata_queue import MetadataQueue


@pytest.mark.asyncio
async def test_jobs_reach_resolver():
    resolved = []

    async def resolver(pool_address, mint_address):
        resolved.append((pool_address, mint_address))

    queue = MetadataQueue(resolver=resolver, workers=2)
    await queue.start()
    try:
        assert queue.enqueue("poolA", "mintA")
        assert queue.enqueue("poolB", "mintB")
        await queue.join()
    finally:
        await queue.stop()

    assert sorted(resolved) == [("poolA", "mintA"), ("poolB", "mintB")]
    assert queue.jobs_completed == 2


@pytest.mark.asyncio
async def test_failing_job_is_isolated():
    async def resolver(pool_address, mint_address):
        if mint_address == "bad":
            raise RuntimeError("rpc timeout")

    queue = MetadataQueue(resolver=resolver, workers=1)
    await queue.start()
    try:
        queue.enqueue("poolA", "bad")
        queue.enqueue("poolB", "good")
        await queue.join()
    finally:
        await queue.stop()

    assert queue.jobs_failed == 1
    assert queue.jobs_completed == 1


@pytest.mark.asyncio
async def test_full_queue_drops():
    queue = MetadataQueue(queue_size=1)

    assert queue.enqueue("poolA", "mintA") is True
    assert queue.enqueue("poolB", "mintB") is False
    assert queue.get_stats()["jobs_dropped"] == 1


@pytest.mark.asyncio
async def test_without_resolver_jobs_are_discarded():
    queue = MetadataQueue()
    await queue.start()
    try:
        queue.enqueue("poolA", "mintA")
        await queue.join()
    finally:
        await queue.stop()

    stats = queue.get_stats()
    assert stats["pending"] == 0
    assert stats["jobs_completed"] == 0
