"""Core building blocks: component lifecycle, domain events, exceptions."""

from .base import Component, AlwaysOnComponent
from .events import (
    DexEvent,
    MigrateEvent,
    CreatePoolEvent,
    TradeEvent,
    TradeSide,
    NormalizedTrade,
    now_ms,
)
from .exceptions import (
    PumpStreamError,
    ConfigurationError,
    GeyserError,
    GeyserConnectionError,
    GeyserSubscriptionError,
    StorageError,
)

__all__ = [
    "Component",
    "AlwaysOnComponent",
    "DexEvent",
    "MigrateEvent",
    "CreatePoolEvent",
    "TradeEvent",
    "TradeSide",
    "NormalizedTrade",
    "now_ms",
    "PumpStreamError",
    "ConfigurationError",
    "GeyserError",
    "GeyserConnectionError",
    "GeyserSubscriptionError",
    "StorageError",
]
