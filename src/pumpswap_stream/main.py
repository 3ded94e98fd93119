"""
PumpSwap Stream - Main Entry Point

Wires all components together:
- Pool registry warmed from its Redis mirror (before the stream opens)
- DuckDB trade store
- Room broadcaster + trade batcher (200ms fan-out)
- Metadata work queue
- Yellowstone stream manager + transaction processor
- FastAPI server (monitoring only: health and stats)
"""

import asyncio
import logging
import signal
from datetime import datetime
from typing import Optional

from fastapi import FastAPI
import uvicorn

from pumpswap_stream import __version__
from pumpswap_stream.config import AppConfig, get_app_config
from pumpswap_stream.market_data.pools import PoolRegistry, RedisPoolMirror
from pumpswap_stream.market_data.storage import TradeStore
from pumpswap_stream.market_data.stream import StreamConnectionManager, TransactionProcessor
from pumpswap_stream.market_data.stream.dex.solana import PumpFunMigrationDecoder, PumpSwapDecoder
from pumpswap_stream.notifications import MetadataQueue, RoomBroadcaster, TradeBatcher
from pumpswap_stream.utils.logger import setup_logging

logger = logging.getLogger(__name__)


# ============================================================================
# Application
# ============================================================================

class StreamApplication:
    """
    Owns every component and their start/stop order.

    Start order: registry load -> batcher -> metadata queue -> stream.
    Stop order is the reverse, ending with the mirror and the store.
    """

    def __init__(self, config: AppConfig):
        self.config = config

        redis_password = config.redis.password.get_secret_value() if config.redis.password else None
        self.mirror = RedisPoolMirror(
            host=config.redis.host,
            port=config.redis.port,
            db=config.redis.db,
            password=redis_password,
            key_prefix=config.redis.key_prefix,
        )
        self.registry = PoolRegistry(
            mirror=self.mirror,
            default_base_decimals=config.registry.default_base_decimals,
            quote_decimals=config.registry.quote_decimals,
        )
        self.store = TradeStore(str(config.storage.database_path))

        self.broadcaster = RoomBroadcaster()
        self.batcher = TradeBatcher(
            self.broadcaster,
            flush_interval_ms=config.fanout.flush_interval_ms,
            max_buffer_size=config.fanout.max_buffer_size,
        )
        self.metadata_queue = MetadataQueue(
            workers=config.metadata.workers,
            queue_size=config.metadata.queue_size,
        )

        self.processor = TransactionProcessor(
            registry=self.registry,
            store=self.store,
            batcher=self.batcher,
            broadcaster=self.broadcaster,
            metadata_queue=self.metadata_queue,
            pump_fun=PumpFunMigrationDecoder(config.programs.pump_fun),
            pump_swap=PumpSwapDecoder(config.programs.pump_swap),
            track_pool_creation=config.registry.track_pool_creation,
            wrapped_sol_mint=config.programs.wrapped_sol_mint,
        )

        self.stream = StreamConnectionManager(
            client_factory=self._create_client,
            processor=self.processor,
            program_ids=[config.programs.pump_swap, config.programs.pump_fun],
            commitment=config.geyser.commitment,
            ping_interval_ms=config.geyser.ping_interval_ms,
            reconnect_delay_ms=config.geyser.reconnect_delay_ms,
            max_reconnect_attempts=config.geyser.max_reconnect_attempts,
        )

    def _create_client(self):
        # Imported here so the protos are only compiled when a stream opens
        from pumpswap_stream.market_data.stream.yellowstone.client import YellowstoneClient

        geyser = self.config.geyser
        return YellowstoneClient(
            endpoint=geyser.endpoint,
            x_token=geyser.x_token.get_secret_value() if geyser.x_token else None,
            use_tls=geyser.use_tls,
            max_message_size=geyser.max_message_size,
        )

    async def start(self) -> None:
        logger.info("=" * 70)
        logger.info(f"Starting PumpSwap Stream v{__version__}")
        logger.info("=" * 70)

        await self.mirror.ping()
        loaded = await self.registry.load()
        logger.info(f"Monitoring {loaded} pools")

        await self.batcher.start()
        await self.metadata_queue.start()
        await self.stream.start()

        logger.info("All components running")

    async def stop(self) -> None:
        logger.info("Stopping all components...")

        await self.stream.stop()
        await self.batcher.stop()
        await self.metadata_queue.stop()
        await self.registry.flush_pending()
        await self.mirror.close()
        self.store.close()

        logger.info("All components stopped gracefully")

    async def health_check(self) -> dict:
        components = {
            "stream": await self.stream.health_check(),
            "batcher": await self.batcher.health_check(),
            "metadata_queue": await self.metadata_queue.health_check(),
        }
        statuses = {c["status"] for c in components.values()}
        if statuses <= {"healthy"}:
            status = "healthy"
        elif "unhealthy" in statuses:
            status = "unhealthy"
        else:
            status = "degraded"

        return {
            "status": status,
            "timestamp": datetime.utcnow().isoformat(),
            "components": components,
        }

    def get_stats(self) -> dict:
        return {
            "timestamp": datetime.utcnow().isoformat(),
            "components": {
                "stream": self.stream.get_stats(),
                "processor": self.processor.get_stats(),
                "registry": self.registry.get_stats(),
                "batcher": self.batcher.get_stats(),
                "broadcaster": self.broadcaster.get_stats(),
                "metadata_queue": self.metadata_queue.get_stats(),
                "store": self.store.get_stats(),
            },
        }


# ============================================================================
# FastAPI App (monitoring)
# ============================================================================

def create_app(application: StreamApplication) -> FastAPI:
    """Build the monitoring API around a StreamApplication."""
    app = FastAPI(title="PumpSwap Stream", version=__version__)

    @app.get("/")
    async def root():
        """Root endpoint - system status."""
        return {
            "name": "PumpSwap Stream",
            "version": __version__,
            "stream_state": application.stream.state.value,
            "tracked_pools": len(application.registry),
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return await application.health_check()

    @app.get("/stats")
    async def get_stats():
        """Detailed statistics from all components."""
        return application.get_stats()

    @app.on_event("startup")
    async def startup_event():
        await application.start()

    @app.on_event("shutdown")
    async def shutdown_event():
        await application.stop()

    return app


# ============================================================================
# Entry points
# ============================================================================

async def run_headless(application: StreamApplication) -> None:
    """Run without the API until SIGINT/SIGTERM."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    await application.start()
    try:
        await stop_event.wait()
    finally:
        await application.stop()


def main(config: Optional[AppConfig] = None):
    """Entry point for the application."""
    config = config or get_app_config()
    setup_logging(
        log_level=config.system.log_level,
        log_file=config.system.log_file,
        json_format=config.system.json_logs,
    )

    application = StreamApplication(config)

    if config.system.api_enabled:
        logger.info(f"Monitoring API on http://{config.system.api_host}:{config.system.api_port}")
        uvicorn.run(
            create_app(application),
            host=config.system.api_host,
            port=config.system.api_port,
            log_level=config.system.log_level.lower(),
        )
    else:
        asyncio.run(run_headless(application))


if __name__ == "__main__":
    main()
