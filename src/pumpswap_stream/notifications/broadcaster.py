"""
Room Broadcaster - in-process push channel for subscribers.

Clients connect with a handler, join or leave named rooms, and receive
(event, payload) pairs emitted to those rooms or globally. The transport
that owns the actual sockets registers one handler per client.

Room names:
- "room:<pool address>" for per-pool trade batches
- "room:global" for process-wide announcements
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set

logger = logging.getLogger(__name__)

GLOBAL_ROOM = "room:global"


def pool_room(pool_address: str) -> str:
    """Room name for a pool's trade feed."""
    return f"room:{pool_address}"


# ============================================================================
# Broadcaster Statistics
# ============================================================================

@dataclass
class BroadcastStats:
    """Statistics for broadcaster monitoring."""
    room_emits: int = 0
    global_emits: int = 0
    deliveries: int = 0
    handler_errors: int = 0
    last_emit_at: Optional[datetime] = None

    def get_stats_dict(self) -> Dict[str, Any]:
        """Return stats as dictionary."""
        return {
            "room_emits": self.room_emits,
            "global_emits": self.global_emits,
            "deliveries": self.deliveries,
            "handler_errors": self.handler_errors,
            "last_emit_at": self.last_emit_at.isoformat() if self.last_emit_at else None,
        }


# ============================================================================
# Room Broadcaster
# ============================================================================

class RoomBroadcaster:
    """
    Room-based fan-out to connected clients.

    Handlers are called as handler(event_name, payload); they may be sync or
    async. A failing handler is logged and does not affect other clients.

    Usage:
        broadcaster = RoomBroadcaster()

        async def send(event, payload):
            await websocket.send_json({"event": event, "data": payload})

        broadcaster.connect("client-1", send)
        broadcaster.join("client-1", pool_room(pool_address))

        await broadcaster.emit_to_room(pool_room(pool_address), "trade:batch", trades)
    """

    def __init__(self):
        # client_id -> handler
        self._clients: Dict[str, Callable] = {}

        # room -> client ids
        self._rooms: Dict[str, Set[str]] = defaultdict(set)

        self._stats = BroadcastStats()

    # ========================================================================
    # Client Management
    # ========================================================================

    def connect(self, client_id: str, handler: Callable) -> None:
        """
        Register a client.

        Args:
            client_id: Unique client identifier
            handler: Callable(event_name, payload), sync or async
        """
        self._clients[client_id] = handler
        logger.info(f"Client connected: {client_id}")

    def disconnect(self, client_id: str) -> None:
        """Remove a client and all of its room memberships."""
        if self._clients.pop(client_id, None) is None:
            return

        for room in list(self._rooms):
            members = self._rooms[room]
            members.discard(client_id)
            if not members:
                del self._rooms[room]

        logger.info(f"Client disconnected: {client_id}")

    def join(self, client_id: str, room: str) -> Dict[str, str]:
        """
        Add a connected client to a room.

        Returns:
            Acknowledgement {"event": "joinedRoom", "room": room}

        Raises:
            KeyError: If the client is not connected
        """
        if client_id not in self._clients:
            raise KeyError(f"Unknown client: {client_id}")

        self._rooms[room].add(client_id)
        logger.debug(f"Client {client_id} joined room: {room}", extra={'room': room})
        return {"event": "joinedRoom", "room": room}

    def leave(self, client_id: str, room: str) -> Dict[str, str]:
        """
        Remove a client from a room.

        Returns:
            Acknowledgement {"event": "leftRoom", "room": room}
        """
        members = self._rooms.get(room)
        if members is not None:
            members.discard(client_id)
            if not members:
                del self._rooms[room]

        logger.debug(f"Client {client_id} left room: {room}", extra={'room': room})
        return {"event": "leftRoom", "room": room}

    def room_members(self, room: str) -> List[str]:
        return sorted(self._rooms.get(room, ()))

    # ========================================================================
    # Emitting
    # ========================================================================

    async def emit_to_room(self, room: str, event: str, payload: Any) -> int:
        """
        Emit an event to every client in a room.

        Returns:
            Number of clients the event was delivered to
        """
        self._stats.room_emits += 1
        self._stats.last_emit_at = datetime.utcnow()
        return await self._deliver(list(self._rooms.get(room, ())), event, payload)

    async def emit_global(self, event: str, payload: Any) -> int:
        """
        Emit an event to all connected clients.

        Returns:
            Number of clients the event was delivered to
        """
        self._stats.global_emits += 1
        self._stats.last_emit_at = datetime.utcnow()
        return await self._deliver(list(self._clients), event, payload)

    async def _deliver(self, client_ids: List[str], event: str, payload: Any) -> int:
        if not client_ids:
            return 0

        results = await asyncio.gather(
            *(self._execute_handler(client_id, event, payload) for client_id in client_ids),
            return_exceptions=True,
        )
        return sum(1 for delivered in results if delivered is True)

    async def _execute_handler(self, client_id: str, event: str, payload: Any) -> bool:
        """
        Call one client's handler with error isolation.

        Returns:
            True if the handler completed
        """
        handler = self._clients.get(client_id)
        if handler is None:
            return False

        try:
            if asyncio.iscoroutinefunction(handler):
                await handler(event, payload)
            else:
                # Run sync handler in executor to avoid blocking
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, handler, event, payload)

            self._stats.deliveries += 1
            return True

        except Exception as e:
            self._stats.handler_errors += 1
            logger.exception(
                "Error in handler for client %s on event %s: %s",
                client_id,
                event,
                e,
            )
            return False

    # ========================================================================
    # Statistics & Monitoring
    # ========================================================================

    def get_stats(self) -> Dict[str, Any]:
        """Get broadcaster statistics."""
        stats = self._stats.get_stats_dict()
        stats["clients"] = len(self._clients)
        stats["rooms"] = len(self._rooms)
        return stats

    def __repr__(self) -> str:
        return f"RoomBroadcaster(clients={len(self._clients)}, rooms={len(self._rooms)})"
