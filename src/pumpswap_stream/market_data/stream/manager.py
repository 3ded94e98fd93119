"""
Stream Connection Manager - owns the upstream subscription lifecycle.

States:
    DISCONNECTED -> CONNECTING -> CONNECTED -> RECONNECTING -> DISCONNECTED ...

Reconnects use a fixed delay and a ceiling on consecutive failed attempts;
the counter resets on every successful subscribe. After the ceiling the
manager stays DISCONNECTED until connect() is called again.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, List, Optional, Set

from pumpswap_stream.core.base import Component
from pumpswap_stream.utils.logger import get_performance_logger

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Upstream connection state."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class StreamConnectionManager(Component):
    """
    Resilient Yellowstone subscription feeding a TransactionProcessor.

    The client is created through a factory on every attempt so a broken
    channel is never reused.

    Features:
    - Idempotent connect() (no-op while CONNECTING or CONNECTED)
    - Fixed-delay reconnect with a retry ceiling
    - Keepalive pings written into the subscription
    - Records processed as independent tasks in arrival order

    Usage:
        manager = StreamConnectionManager(
            client_factory=lambda: YellowstoneClient(endpoint, x_token=token),
            processor=processor,
            program_ids=[PUMP_SWAP_PROGRAM_ID, PUMP_FUN_PROGRAM_ID],
        )
        await manager.start()
        ...
        await manager.stop()
    """

    def __init__(
        self,
        client_factory: Callable[[], Any],
        processor,
        program_ids: List[str],
        commitment: str = "processed",
        ping_interval_ms: int = 5000,
        reconnect_delay_ms: int = 3000,
        max_reconnect_attempts: int = 3,
    ):
        """
        Initialize the manager.

        Args:
            client_factory: Returns a fresh client with async connect(),
                get_version(), subscribe_transactions(...) and close()
            processor: Object with async process(envelope)
            program_ids: Accounts the subscription filters on
            commitment: Commitment level for the subscription
            ping_interval_ms: Keepalive interval
            reconnect_delay_ms: Fixed delay before each reconnect attempt
            max_reconnect_attempts: Consecutive failures before giving up
        """
        super().__init__("stream_manager")
        self.client_factory = client_factory
        self.processor = processor
        self.program_ids = list(program_ids)
        self.commitment = commitment
        self.ping_interval = ping_interval_ms / 1000
        self.reconnect_delay = reconnect_delay_ms / 1000
        self.max_reconnect_attempts = max_reconnect_attempts

        self._state = ConnectionState.DISCONNECTED
        self._state_callbacks: List[Callable] = []
        self._retry_count = 0
        self._stopping = False

        self._client = None
        self._subscription = None
        self._ping_task: Optional[asyncio.Task] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._retry_task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self._perf = get_performance_logger(__name__)

        # Statistics
        self.connections = 0
        self.disconnects = 0
        self.records_received = 0
        self.records_processed = 0
        self.processing_errors = 0
        self.ping_failures = 0
        self.server_version: Optional[str] = None

    # ========================================================================
    # State
    # ========================================================================

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def retry_count(self) -> int:
        return self._retry_count

    def on_state_change(self, callback: Callable) -> None:
        """Register callback(old_state, new_state); sync or async."""
        self._state_callbacks.append(callback)

    def _set_state(self, new_state: ConnectionState) -> None:
        old_state = self._state
        if old_state == new_state:
            return

        self._state = new_state
        logger.info(
            f"Stream state {old_state.value} -> {new_state.value}",
            extra={'state': new_state.value},
        )

        for callback in self._state_callbacks:
            try:
                if asyncio.iscoroutinefunction(callback):
                    asyncio.create_task(callback(old_state, new_state))
                else:
                    callback(old_state, new_state)
            except Exception as e:
                logger.error(f"State change callback error: {e}")

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def start(self) -> None:
        """
        Start the component and open the subscription.

        Calling it again after the retry ceiling left the stream
        DISCONNECTED opens a new subscription.
        """
        if self.is_started:
            if self._state == ConnectionState.DISCONNECTED:
                await self.connect()
            return
        await super().start()
        self._stopping = False
        await self.connect()

    async def stop(self) -> None:
        """
        Stop timers and close the stream.

        Records already being processed are left to finish on their own.
        """
        self._stopping = True

        self._cancel_task(self._retry_task)
        self._retry_task = None
        self._stop_keepalive()
        self._close_subscription()
        self._cancel_task(self._reader_task)
        self._reader_task = None
        await self._close_client()

        self._set_state(ConnectionState.DISCONNECTED)

        if self.is_started:
            await super().stop()

    # ========================================================================
    # Connection state machine
    # ========================================================================

    async def connect(self) -> None:
        """
        Open the upstream subscription.

        No-op while CONNECTING or CONNECTED. Any failure hands over to
        handle_disconnect().
        """
        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            return

        self._stopping = False
        self._set_state(ConnectionState.CONNECTING)

        try:
            client = self.client_factory()
            self._client = client
            await client.connect()
            self.server_version = await client.get_version()
            subscription = await client.subscribe_transactions(
                account_include=self.program_ids,
                commitment=self.commitment,
                vote=False,
                failed=False,
            )
        except Exception as e:
            logger.error(f"Stream connect failed: {e}", extra={'attempt': self._retry_count})
            await self.handle_disconnect()
            return

        if self._stopping:
            subscription.cancel()
            await self._close_client()
            return

        self._subscription = subscription
        self._set_state(ConnectionState.CONNECTED)
        self._retry_count = 0
        self.connections += 1

        self._ping_task = asyncio.create_task(self._keepalive_loop(subscription), name="stream_keepalive")
        self._reader_task = asyncio.create_task(self._read_loop(subscription), name="stream_reader")
        logger.info(f"Listening for transactions on {len(self.program_ids)} programs")

    async def handle_disconnect(self) -> None:
        """Tear down the current subscription and schedule a reconnect."""
        if self._state in (ConnectionState.RECONNECTING, ConnectionState.DISCONNECTED):
            return

        self._set_state(ConnectionState.RECONNECTING)
        self.disconnects += 1

        self._stop_keepalive()
        self._close_subscription()

        if self._reader_task is not asyncio.current_task():
            self._cancel_task(self._reader_task)
        self._reader_task = None

        await self._close_client()

        if self._stopping:
            self._set_state(ConnectionState.DISCONNECTED)
            return

        self.reconnect()

    def reconnect(self) -> None:
        """Schedule a delayed connect() unless the retry ceiling is reached."""
        if self._retry_count >= self.max_reconnect_attempts:
            logger.critical(
                f"Giving up on stream after {self._retry_count} reconnect attempts",
                extra={'attempt': self._retry_count},
            )
            self._set_state(ConnectionState.DISCONNECTED)
            return

        self._retry_count += 1

        if self._retry_task is not asyncio.current_task():
            self._cancel_task(self._retry_task)

        logger.warning(
            f"Reconnecting in {self.reconnect_delay:.1f}s "
            f"(attempt {self._retry_count}/{self.max_reconnect_attempts})",
            extra={'attempt': self._retry_count},
        )
        self._retry_task = asyncio.create_task(self._delayed_connect(), name="stream_reconnect")

    async def _delayed_connect(self) -> None:
        await asyncio.sleep(self.reconnect_delay)
        self._set_state(ConnectionState.DISCONNECTED)
        await self.connect()

    # ========================================================================
    # Stream tasks
    # ========================================================================

    async def _read_loop(self, subscription) -> None:
        try:
            async for envelope in subscription:
                self.records_received += 1
                self._schedule(envelope)
            logger.warning("Stream ended")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Stream error: {e}")

        if not self._stopping:
            await self.handle_disconnect()

    def _schedule(self, envelope) -> None:
        task = asyncio.create_task(self._process_record(envelope))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _process_record(self, envelope) -> None:
        try:
            with self._perf.timer("process_record", slot=getattr(envelope, 'slot', None)):
                await self.processor.process(envelope)
            self.records_processed += 1
        except Exception as e:
            self.processing_errors += 1
            logger.exception(
                "Error processing transaction: %s",
                e,
                extra={'slot': getattr(envelope, 'slot', None)},
            )

    async def _keepalive_loop(self, subscription) -> None:
        while True:
            await asyncio.sleep(self.ping_interval)
            try:
                await subscription.ping()
            except Exception as e:
                # Next read error or stream end drives recovery
                self.ping_failures += 1
                logger.warning(f"Keepalive ping failed: {e}")

    async def drain(self) -> None:
        """Wait for in-flight record processing."""
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    # ========================================================================
    # Helpers
    # ========================================================================

    def _stop_keepalive(self) -> None:
        self._cancel_task(self._ping_task)
        self._ping_task = None

    def _close_subscription(self) -> None:
        if self._subscription is not None:
            try:
                self._subscription.cancel()
            except Exception as e:
                logger.debug(f"Error cancelling subscription: {e}")
            self._subscription = None

    async def _close_client(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.close()
        except Exception as e:
            logger.debug(f"Error closing client: {e}")

    @staticmethod
    def _cancel_task(task: Optional[asyncio.Task]) -> None:
        if task is not None and not task.done():
            task.cancel()

    # ========================================================================
    # Monitoring
    # ========================================================================

    def get_stats(self) -> dict:
        """Get connection and processing statistics."""
        return {
            "state": self._state.value,
            "retry_count": self._retry_count,
            "server_version": self.server_version,
            "connections": self.connections,
            "disconnects": self.disconnects,
            "records_received": self.records_received,
            "records_processed": self.records_processed,
            "processing_errors": self.processing_errors,
            "inflight": len(self._inflight),
            "ping_failures": self.ping_failures,
        }

    async def health_check(self) -> dict:
        health = await super().health_check()
        if self.is_started:
            if self._state == ConnectionState.CONNECTED:
                health["status"] = "healthy"
            elif self._state == ConnectionState.DISCONNECTED:
                health["status"] = "unhealthy"
            else:
                health["status"] = "degraded"
        health["details"] = self.get_stats()
        return health
