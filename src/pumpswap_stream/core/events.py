"""
Domain events produced by the transaction decoders.

Every event carries the transaction signature (base58), the slot it was
observed in and the capture timestamp (epoch millis, local clock - not chain
time). Raw token amounts are left undivided here; decimal adjustment happens
once the pool's decimals are known.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


def now_ms() -> int:
    """Current wall clock in epoch milliseconds."""
    return int(time.time() * 1000)


# ============================================================================
# Enums
# ============================================================================

class TradeSide(str, Enum):
    """Trade direction, from the user's point of view."""
    BUY = "BUY"
    SELL = "SELL"


# ============================================================================
# Base Event Classes
# ============================================================================

@dataclass
class DexEvent:
    """Base class for all decoded DEX events."""
    signature: str
    slot: int
    timestamp: int


# ============================================================================
# Pump.fun Events
# ============================================================================

@dataclass
class MigrateEvent(DexEvent):
    """Bonding curve completed and liquidity migrated into a PumpSwap pool."""
    mint: str
    pool: str
    sol_amount: int
    token_amount: int


# ============================================================================
# PumpSwap Events
# ============================================================================

@dataclass
class CreatePoolEvent(DexEvent):
    """New PumpSwap pool created."""
    pool: str
    creator: str
    base_mint: str
    quote_mint: str
    base_amount: int
    quote_amount: int
    base_decimals: int = 6
    quote_decimals: int = 9


@dataclass
class TradeEvent(DexEvent):
    """
    PumpSwap buy or sell.

    Built in two steps: a draft from the instruction arguments (where
    sol_amount is only the user's slippage limit), then merged with the
    program's self-CPI event which carries the executed quote amount and fees.
    A trade whose price and fees are still zero was never merged.
    """
    side: TradeSide
    pool: str
    user: str
    base_mint: str
    quote_mint: str
    token_amount: int
    sol_amount: int
    limit_sol_amount: int
    protocol_fee: int = 0
    lp_fee: int = 0
    price: float = 0.0

    @property
    def confirmed(self) -> bool:
        """True once the inner event has been merged into the draft."""
        return not (self.price == 0 and self.protocol_fee == 0 and self.lp_fee == 0)


# ============================================================================
# Display Records
# ============================================================================

@dataclass(frozen=True)
class NormalizedTrade:
    """Decimal-adjusted trade as stored and broadcast to subscribers."""
    tx_hash: str
    type: str
    price: float
    base_amount: float
    quote_amount: float
    time: int
    maker: str

    def to_payload(self) -> Dict[str, Any]:
        """Wire representation used in trade:batch broadcasts."""
        return {
            "txHash": self.tx_hash,
            "type": self.type,
            "price": self.price,
            "baseAmount": self.base_amount,
            "quoteAmount": self.quote_amount,
            "time": self.time,
            "maker": self.maker,
        }
