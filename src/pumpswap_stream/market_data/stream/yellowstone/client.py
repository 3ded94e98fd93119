"""
Yellowstone gRPC client for real-time Solana transaction streaming.

Wraps the Geyser service: version handshake, a bidirectional Subscribe
stream filtered to a set of program ids, and keepalive pings written into
that stream. Transaction updates come out as TransactionEnvelope objects.

The .proto files ship with the package and are compiled at import time of
this module with grpc.protos_and_services (requires grpcio-tools).
"""

import asyncio
import grpc
import logging
from functools import lru_cache
from typing import AsyncIterator, List, Optional, Tuple

from pumpswap_stream.core.exceptions import GeyserConnectionError, GeyserSubscriptionError
from pumpswap_stream.market_data.stream.dex.solana.envelope import TransactionEnvelope

logger = logging.getLogger(__name__)

GEYSER_PROTO = "pumpswap_stream/market_data/stream/yellowstone/protos/geyser.proto"

DEFAULT_ENDPOINT = "solana-yellowstone-grpc.publicnode.com:443"

SUBSCRIPTION_FILTER_NAME = "pumpswap"


@lru_cache(maxsize=1)
def load_geyser_protos() -> Tuple[object, object]:
    """Compile (once) and return the geyser (messages, services) modules."""
    return grpc.protos_and_services(GEYSER_PROTO)


# ============================================================================
# Subscription
# ============================================================================

class GeyserSubscription:
    """
    One open Subscribe call.

    Iterate it to receive TransactionEnvelopes; iteration ends when the
    server closes the stream and raises GeyserSubscriptionError on a
    transport error.
    """

    def __init__(self, call, geyser_pb2):
        self._call = call
        self._pb2 = geyser_pb2
        self._cancelled = False

        # Statistics
        self.updates_received = 0
        self.transactions_received = 0
        self.pings_sent = 0

    async def ping(self, ping_id: int = 1) -> None:
        """Write a keepalive ping into the request stream."""
        request = self._pb2.SubscribeRequest(ping=self._pb2.SubscribeRequestPing(id=ping_id))
        try:
            await self._call.write(request)
        except (grpc.aio.AioRpcError, grpc.aio.UsageError) as e:
            raise GeyserSubscriptionError(f"Ping write failed: {e}") from e
        self.pings_sent += 1

    async def __aiter__(self) -> AsyncIterator[TransactionEnvelope]:
        while True:
            try:
                update = await self._call.read()
            except asyncio.CancelledError:
                raise
            except grpc.aio.AioRpcError as e:
                if self._cancelled and e.code() == grpc.StatusCode.CANCELLED:
                    return
                raise GeyserSubscriptionError(f"gRPC stream error: {e.code()} - {e.details()}") from e

            if update is grpc.aio.EOF:
                logger.info("Yellowstone stream ended by server")
                return

            self.updates_received += 1

            if update.HasField("transaction"):
                self.transactions_received += 1
                yield TransactionEnvelope.from_update(update.transaction)
            elif update.HasField("ping"):
                logger.debug("Received server ping")
            elif update.HasField("pong"):
                logger.debug(f"Received pong id={update.pong.id}")

    def cancel(self) -> None:
        """Cancel the call; pending reads end without an error."""
        if not self._cancelled:
            self._cancelled = True
            self._call.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


# ============================================================================
# Client
# ============================================================================

class YellowstoneClient:
    """
    Yellowstone gRPC client.

    Usage:
        client = YellowstoneClient(endpoint, x_token="...")
        await client.connect()
        version = await client.get_version()
        subscription = await client.subscribe_transactions([PUMP_SWAP_PROGRAM_ID])
        async for envelope in subscription:
            ...
        await client.close()
    """

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        x_token: Optional[str] = None,
        use_tls: bool = True,
        max_message_size: int = 64 * 1024 * 1024,
    ):
        """
        Initialize Yellowstone gRPC client.

        Args:
            endpoint: gRPC endpoint host:port
            x_token: Auth token sent as x-token metadata (optional)
            use_tls: Open a TLS channel
            max_message_size: Max send/receive message size in bytes
        """
        self.endpoint = endpoint
        self.use_tls = use_tls
        self.max_message_size = max_message_size
        self._metadata = (("x-token", x_token),) if x_token else ()

        self.channel: Optional[grpc.aio.Channel] = None
        self.stub = None
        self._pb2, self._pb2_grpc = load_geyser_protos()

    async def connect(self) -> None:
        """Open the gRPC channel."""
        logger.info(f"Connecting to Yellowstone gRPC: {self.endpoint}")

        options = [
            ('grpc.max_receive_message_length', self.max_message_size),
            ('grpc.max_send_message_length', self.max_message_size),
        ]

        if self.use_tls:
            credentials = grpc.ssl_channel_credentials()
            self.channel = grpc.aio.secure_channel(self.endpoint, credentials, options=options)
        else:
            self.channel = grpc.aio.insecure_channel(self.endpoint, options=options)

        self.stub = self._pb2_grpc.GeyserStub(self.channel)

    async def get_version(self, timeout: float = 10.0) -> str:
        """
        Version handshake.

        Raises:
            GeyserConnectionError: If the call fails
        """
        self._require_stub()
        try:
            response = await self.stub.GetVersion(
                self._pb2.GetVersionRequest(),
                metadata=self._metadata,
                timeout=timeout,
            )
        except grpc.aio.AioRpcError as e:
            raise GeyserConnectionError(f"GetVersion failed: {e.code()} - {e.details()}") from e

        logger.info(f"Yellowstone gRPC connection successful, version: {response.version}")
        return response.version

    async def ping(self, count: int = 1) -> int:
        """Unary ping; returns the echoed count."""
        self._require_stub()
        try:
            response = await self.stub.Ping(self._pb2.PingRequest(count=count), metadata=self._metadata)
        except grpc.aio.AioRpcError as e:
            raise GeyserConnectionError(f"Ping failed: {e.code()} - {e.details()}") from e
        return response.count

    async def subscribe_transactions(
        self,
        account_include: List[str],
        commitment: str = "processed",
        vote: bool = False,
        failed: bool = False,
    ) -> GeyserSubscription:
        """
        Open a transaction subscription.

        Args:
            account_include: Transactions mentioning any of these accounts
            commitment: processed, confirmed or finalized
            vote: Include vote transactions
            failed: Include failed transactions

        Returns:
            GeyserSubscription ready to iterate

        Raises:
            GeyserSubscriptionError: If the subscribe request cannot be written
        """
        self._require_stub()
        logger.info(f"Subscribing to transactions for {account_include} ({commitment})")

        request = self._pb2.SubscribeRequest(
            transactions={
                SUBSCRIPTION_FILTER_NAME: self._pb2.SubscribeRequestFilterTransactions(
                    vote=vote,
                    failed=failed,
                    account_include=list(account_include),
                ),
            },
            commitment=self._get_commitment_level(commitment),
        )

        call = self.stub.Subscribe(metadata=self._metadata)
        try:
            await call.write(request)
        except (grpc.aio.AioRpcError, grpc.aio.UsageError) as e:
            call.cancel()
            raise GeyserSubscriptionError(f"Failed to write subscribe request: {e}") from e

        return GeyserSubscription(call, self._pb2)

    async def close(self) -> None:
        """Close gRPC connection."""
        if self.channel:
            await self.channel.close()
            self.channel = None
            self.stub = None
            logger.info("Closed Yellowstone gRPC connection")

    def _require_stub(self) -> None:
        if self.stub is None:
            raise GeyserConnectionError("Not connected. Call connect() first.")

    def _get_commitment_level(self, commitment: str) -> int:
        """Convert commitment string to the proto enum value."""
        levels = {
            "processed": self._pb2.CommitmentLevel.Value("PROCESSED"),
            "confirmed": self._pb2.CommitmentLevel.Value("CONFIRMED"),
            "finalized": self._pb2.CommitmentLevel.Value("FINALIZED"),
        }
        return levels.get(str(commitment).lower(), levels["processed"])
