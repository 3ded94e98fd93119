"""
Application-level exceptions.

Adapters translate library errors (grpc, duckdb, redis, pydantic) into these
at their boundary so the stream pipeline only has to reason about one
hierarchy.
"""


class PumpStreamError(Exception):
    """Base class for all pumpswap_stream errors."""


class ConfigurationError(PumpStreamError):
    """Configuration file missing, malformed or failing validation."""


class GeyserError(PumpStreamError):
    """Base class for Yellowstone gRPC failures."""


class GeyserConnectionError(GeyserError):
    """Channel could not be opened or the version handshake failed."""


class GeyserSubscriptionError(GeyserError):
    """Subscribe request could not be written or the stream broke."""


class StorageError(PumpStreamError):
    """Relational store write or read failed."""
