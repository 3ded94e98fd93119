"""
Transaction Processor - maps decoded events to side effects.

For each transaction envelope:
1. Migrate (checked first, exclusive): track the pool, store it, queue a
   metadata lookup, announce it globally
2. CreatePool: ignored unless pool-creation tracking is enabled
3. Buy/Sell on a tracked pool: scale by decimals, store the trade, queue it
   for the pool's batched broadcast

Storage failures are logged per record and never block the other effects.
"""

import logging
from typing import Optional

from pumpswap_stream.core.events import (
    CreatePoolEvent,
    DexEvent,
    MigrateEvent,
    NormalizedTrade,
    TradeEvent,
)
from pumpswap_stream.market_data.pools.registry import PoolRegistry
from pumpswap_stream.market_data.stream.dex.solana.envelope import TransactionEnvelope
from pumpswap_stream.market_data.stream.dex.solana.pump_fun import PumpFunMigrationDecoder
from pumpswap_stream.market_data.stream.dex.solana.pump_swap import PumpSwapDecoder

logger = logging.getLogger(__name__)

WRAPPED_SOL_MINT = "So11111111111111111111111111111111111111112"

POOL_NEW_EVENT = "pool:new"


class TransactionProcessor:
    """
    Event-to-side-effect mapping for the stream.

    Usage:
        processor = TransactionProcessor(registry, store, batcher, broadcaster, metadata_queue)
        event = await processor.process(envelope)
    """

    def __init__(
        self,
        registry: PoolRegistry,
        store,
        batcher,
        broadcaster,
        metadata_queue,
        pump_fun: Optional[PumpFunMigrationDecoder] = None,
        pump_swap: Optional[PumpSwapDecoder] = None,
        track_pool_creation: bool = False,
        wrapped_sol_mint: str = WRAPPED_SOL_MINT,
    ):
        """
        Initialize the processor.

        Args:
            registry: Tracked pool registry
            store: Object with async upsert_pool(...) and insert_trade(...)
            batcher: Object with enqueue(key, record)
            broadcaster: Object with async emit_global(event, payload)
            metadata_queue: Object with enqueue(pool_address, mint_address)
            pump_fun: Migration decoder
            pump_swap: AMM decoder
            track_pool_creation: Track pools from CreatePool events too
            wrapped_sol_mint: Quote mint recorded for migrated pools
        """
        self.registry = registry
        self.store = store
        self.batcher = batcher
        self.broadcaster = broadcaster
        self.metadata_queue = metadata_queue
        self.pump_fun = pump_fun or PumpFunMigrationDecoder()
        self.pump_swap = pump_swap or PumpSwapDecoder()
        self.track_pool_creation = track_pool_creation
        self.wrapped_sol_mint = wrapped_sol_mint

        # Statistics
        self.migrations = 0
        self.pools_created = 0
        self.trades_forwarded = 0
        self.trades_untracked = 0
        self.storage_errors = 0

    async def process(self, envelope: TransactionEnvelope) -> Optional[DexEvent]:
        """
        Decode one transaction and apply its side effects.

        Returns:
            The decoded event (or None)
        """
        migrate = self.pump_fun.decode(envelope)
        if migrate is not None:
            await self._on_migrate(migrate)
            return migrate

        event = self.pump_swap.decode(envelope)
        if isinstance(event, CreatePoolEvent):
            await self._on_create_pool(event)
        elif isinstance(event, TradeEvent):
            await self._on_trade(event)

        return event

    # ========================================================================
    # Handlers
    # ========================================================================

    async def _on_migrate(self, event: MigrateEvent) -> None:
        self.migrations += 1
        base_decimals = self.registry.default_base_decimals

        if not self.registry.is_tracked(event.pool):
            self.registry.register(event.pool, base_decimals)

        logger.info(
            f"Pool migration: mint {event.mint} -> pool {event.pool} "
            f"(sol {event.sol_amount}, tokens {event.token_amount})",
            extra={'pool': event.pool, 'signature': event.signature, 'slot': event.slot},
        )

        try:
            await self.store.upsert_pool(
                event.pool,
                event.mint,
                self.wrapped_sol_mint,
                base_decimals,
                self.registry.quote_decimals,
            )
        except Exception as e:
            self.storage_errors += 1
            logger.error(f"Failed to save pool {event.pool}: {e}", extra={'pool': event.pool})

        self.metadata_queue.enqueue(event.pool, event.mint)

        await self.broadcaster.emit_global(POOL_NEW_EVENT, {
            "address": event.pool,
            "mint": event.mint,
            "solAmount": event.sol_amount,
            "tokenAmount": event.token_amount,
            "timestamp": event.timestamp,
        })

    async def _on_create_pool(self, event: CreatePoolEvent) -> None:
        if not self.track_pool_creation:
            return

        self.pools_created += 1
        self.registry.register(event.pool, event.base_decimals)

        logger.info(
            f"Pool created: {event.pool} (base {event.base_mint}, decimals {event.base_decimals})",
            extra={'pool': event.pool, 'signature': event.signature, 'slot': event.slot},
        )

        try:
            await self.store.upsert_pool(
                event.pool,
                event.base_mint,
                event.quote_mint,
                event.base_decimals,
                event.quote_decimals,
            )
        except Exception as e:
            self.storage_errors += 1
            logger.error(f"Failed to save pool {event.pool}: {e}", extra={'pool': event.pool})

        self.metadata_queue.enqueue(event.pool, event.base_mint)

    async def _on_trade(self, event: TradeEvent) -> None:
        if not self.registry.is_tracked(event.pool):
            self.trades_untracked += 1
            return

        trade = self.normalize(event)

        try:
            await self.store.insert_trade(
                trade.tx_hash,
                trade.time,
                event.pool,
                trade.type,
                trade.price,
                trade.base_amount,
                trade.quote_amount,
            )
        except Exception as e:
            self.storage_errors += 1
            logger.error(
                f"Failed to save trade {trade.tx_hash}: {e}",
                extra={'pool': event.pool, 'signature': trade.tx_hash},
            )

        self.batcher.enqueue(event.pool, trade.to_payload())
        self.trades_forwarded += 1

    def normalize(self, event: TradeEvent) -> NormalizedTrade:
        """Scale raw amounts by the pool's decimals; price is quote per base."""
        base_decimals, quote_decimals = self.registry.decimals_of(event.pool)
        base_amount = event.token_amount / 10 ** base_decimals
        quote_amount = event.sol_amount / 10 ** quote_decimals
        price = quote_amount / base_amount if base_amount > 0 else 0.0

        return NormalizedTrade(
            tx_hash=event.signature,
            type=event.side.value,
            price=price,
            base_amount=base_amount,
            quote_amount=quote_amount,
            time=event.timestamp,
            maker=event.user,
        )

    def get_stats(self) -> dict:
        """Get processor and decoder statistics."""
        return {
            "migrations": self.migrations,
            "pools_created": self.pools_created,
            "trades_forwarded": self.trades_forwarded,
            "trades_untracked": self.trades_untracked,
            "storage_errors": self.storage_errors,
            "pump_fun": self.pump_fun.get_stats(),
            "pump_swap": self.pump_swap.get_stats(),
        }
