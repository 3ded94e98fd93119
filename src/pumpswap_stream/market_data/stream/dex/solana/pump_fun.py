"""
Pump.fun migration decoder.

Pump.fun is where Solana meme coins start. When a bonding curve completes,
the program migrates its liquidity into a PumpSwap pool and emits a
MigrateEvent through a self-CPI. That migration is the only thing decoded
here: it is how new pools enter the registry.
"""

import logging
from typing import Optional, Sequence

import base58
from construct import ConstructError

from pumpswap_stream.core.events import MigrateEvent, now_ms
from .envelope import CompiledInstruction, TransactionEnvelope
from .layouts import (
    MIGRATE_EVENT,
    MIGRATE_EVENT_DISCRIMINATOR,
    MIGRATE_IX_DISCRIMINATOR,
    MIGRATE_MIN_ACCOUNTS,
)

logger = logging.getLogger(__name__)

PUMP_FUN_PROGRAM_ID = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"


class PumpFunMigrationDecoder:
    """
    Decoder for Pump.fun bonding-curve migrations.

    A migrate instruction is only reported when its inner instructions carry
    the matching self-CPI event; the event is the authority for the pool
    address and the migrated amounts.

    Usage:
        decoder = PumpFunMigrationDecoder()
        event = decoder.decode(envelope)
    """

    def __init__(self, program_id: str = PUMP_FUN_PROGRAM_ID):
        self.program_id = program_id
        self.parse_success_count = 0
        self.parse_failure_count = 0

    def decode(self, envelope: TransactionEnvelope) -> Optional[MigrateEvent]:
        """
        Find the first confirmed migration in a transaction.

        Args:
            envelope: Transaction to inspect

        Returns:
            MigrateEvent, or None if the transaction holds no confirmed migration
        """
        try:
            for index, ix in envelope.instructions_for(self.program_id):
                if ix.data[:8] != MIGRATE_IX_DISCRIMINATOR:
                    continue
                if len(ix.accounts) < MIGRATE_MIN_ACCOUNTS:
                    logger.debug(
                        f"Migrate instruction has {len(ix.accounts)} accounts",
                        extra={'signature': envelope.signature_b58},
                    )
                    continue

                mint = envelope.account(ix, 2)
                if mint is None:
                    logger.debug("Migrate mint index out of range", extra={'signature': envelope.signature_b58})
                    continue

                parsed = self._find_event(envelope.inner_for(index))
                if parsed is None:
                    continue

                self.parse_success_count += 1
                return MigrateEvent(
                    signature=envelope.signature_b58,
                    slot=envelope.slot,
                    timestamp=now_ms(),
                    mint=mint,
                    pool=base58.b58encode(parsed.pool).decode(),
                    sol_amount=parsed.sol_amount,
                    token_amount=parsed.mint_amount,
                )
        except Exception as e:
            logger.debug(f"Pump.fun decode error: {e}", extra={'slot': envelope.slot})
            self.parse_failure_count += 1

        return None

    def _find_event(self, inner: Sequence[CompiledInstruction]):
        """Parse the first inner instruction carrying the migrate event."""
        for inner_ix in inner:
            data = inner_ix.data
            if data[:16] != MIGRATE_EVENT_DISCRIMINATOR:
                continue
            if len(data) < MIGRATE_EVENT.sizeof():
                logger.debug(f"Migrate event too short: {len(data)} bytes")
                self.parse_failure_count += 1
                continue
            try:
                return MIGRATE_EVENT.parse(data)
            except ConstructError as e:
                logger.debug(f"Failed to parse migrate event: {e}")
                self.parse_failure_count += 1
        return None

    def get_stats(self) -> dict:
        """Get decoder statistics."""
        return {
            "program_id": self.program_id,
            "parse_success_count": self.parse_success_count,
            "parse_failure_count": self.parse_failure_count,
        }
