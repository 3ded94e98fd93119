"""
Solana DEX decoders.

Pure decoders that turn a TransactionEnvelope into at most one domain event:
- PumpFunMigrationDecoder: bonding curve -> PumpSwap migrations
- PumpSwapDecoder: pool creation, buys and sells on the AMM
"""

from .envelope import CompiledInstruction, TransactionEnvelope
from .pump_fun import PumpFunMigrationDecoder, PUMP_FUN_PROGRAM_ID
from .pump_swap import PumpSwapDecoder, PUMP_SWAP_PROGRAM_ID

__all__ = [
    "CompiledInstruction",
    "TransactionEnvelope",
    "PumpFunMigrationDecoder",
    "PumpSwapDecoder",
    "PUMP_FUN_PROGRAM_ID",
    "PUMP_SWAP_PROGRAM_ID",
]
