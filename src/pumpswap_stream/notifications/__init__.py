"""
Subscriber fan-out.

- RoomBroadcaster: room membership and event delivery
- TradeBatcher: per-pool coalescing of trade records
- MetadataQueue: background token metadata jobs
"""

from .broadcaster import RoomBroadcaster, GLOBAL_ROOM, pool_room
from .batcher import TradeBatcher, TRADE_BATCH_EVENT
from .metadata_queue import MetadataQueue, MetadataJob

__all__ = [
    "RoomBroadcaster",
    "GLOBAL_ROOM",
    "pool_room",
    "TradeBatcher",
    "TRADE_BATCH_EVENT",
    "MetadataQueue",
    "MetadataJob",
]
