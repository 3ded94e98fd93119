"""
Configuration models using Pydantic for type-safe validation.

This module defines all configuration models for the stream service:
- SystemConfig: Environment, log level, log output, monitoring API
- GeyserConfig: Yellowstone endpoint, credentials, reconnect policy
- ProgramsConfig: Watched program ids and the quote mint
- RegistryConfig: Pool tracking and decimal defaults
- RedisConfig: Pool-state mirror connection
- StorageConfig: DuckDB location
- FanoutConfig: Trade batching
- MetadataConfig: Metadata work queue
"""

from typing import Optional
from pydantic import BaseModel, Field, validator, SecretStr
from enum import Enum
from pathlib import Path

from solders.pubkey import Pubkey


# ============================================================================
# Enums for Configuration
# ============================================================================

class Environment(str, Enum):
    """Deployment environment."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging level."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Commitment(str, Enum):
    """Yellowstone commitment level."""
    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"


# ============================================================================
# System Configuration
# ============================================================================

class SystemConfig(BaseModel):
    """System-wide settings."""

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment"
    )

    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level"
    )

    json_logs: bool = Field(
        default=True,
        description="Emit JSON formatted log lines"
    )

    log_file: Optional[str] = Field(
        default=None,
        description="Optional log file path"
    )

    api_enabled: bool = Field(
        default=True,
        description="Serve the monitoring API (health, stats)"
    )

    api_host: str = Field(
        default="0.0.0.0",
        description="Monitoring API host"
    )

    api_port: int = Field(
        default=8000,
        ge=1024,
        le=65535,
        description="Monitoring API port"
    )

    class Config:
        use_enum_values = True


# ============================================================================
# Upstream Configuration
# ============================================================================

class GeyserConfig(BaseModel):
    """Yellowstone gRPC connection settings."""

    endpoint: str = Field(
        default="solana-yellowstone-grpc.publicnode.com:443",
        description="Yellowstone gRPC endpoint (host:port)"
    )

    x_token: Optional[SecretStr] = Field(
        default=None,
        description="Authentication token sent as x-token metadata"
    )

    use_tls: bool = Field(
        default=True,
        description="Open a TLS channel"
    )

    commitment: Commitment = Field(
        default=Commitment.PROCESSED,
        description="Commitment level for the transaction subscription"
    )

    max_message_size: int = Field(
        default=64 * 1024 * 1024,
        gt=0,
        description="Max gRPC receive/send message size in bytes"
    )

    ping_interval_ms: int = Field(
        default=5000,
        gt=0,
        description="Keepalive ping interval"
    )

    reconnect_delay_ms: int = Field(
        default=3000,
        ge=0,
        description="Fixed delay before a reconnect attempt"
    )

    max_reconnect_attempts: int = Field(
        default=3,
        ge=0,
        description="Consecutive failed attempts before giving up"
    )

    class Config:
        use_enum_values = True


class ProgramsConfig(BaseModel):
    """On-chain programs and mints the decoders care about."""

    pump_fun: str = Field(
        default="6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P",
        description="Pump.fun bonding curve program id"
    )

    pump_swap: str = Field(
        default="pAMMBay6oceH9fJKBRHGP5D4bD4sWpmSwMn52FMfXEA",
        description="PumpSwap AMM program id"
    )

    wrapped_sol_mint: str = Field(
        default="So11111111111111111111111111111111111111112",
        description="Quote mint recorded for migrated pools"
    )

    @validator('pump_fun', 'pump_swap', 'wrapped_sol_mint')
    def valid_pubkey(cls, v):
        """Validate that the value parses as a base58 public key."""
        try:
            Pubkey.from_string(v)
        except Exception as e:
            raise ValueError(f'invalid public key {v!r}: {e}')
        return v


# ============================================================================
# Pool Tracking Configuration
# ============================================================================

class RegistryConfig(BaseModel):
    """Pool registry behaviour."""

    default_base_decimals: int = Field(
        default=6,
        ge=0,
        le=18,
        description="Base decimals assumed for newly migrated pools"
    )

    quote_decimals: int = Field(
        default=9,
        ge=0,
        le=18,
        description="Quote (SOL) decimals"
    )

    track_pool_creation: bool = Field(
        default=False,
        description="Also start tracking pools seen in CreatePool events"
    )


class RedisConfig(BaseModel):
    """Redis connection for the pool-state mirror."""

    host: str = Field(default="localhost", description="Redis host")

    port: int = Field(default=6379, ge=1, le=65535, description="Redis port")

    db: int = Field(default=0, ge=0, description="Redis database index")

    password: Optional[SecretStr] = Field(default=None, description="Redis password")

    key_prefix: str = Field(
        default="pumpswap",
        description="Prefix for tracked_pools / pool_decimals keys"
    )


class StorageConfig(BaseModel):
    """Relational store settings."""

    database_path: Path = Field(
        default=Path("data/pumpswap.duckdb"),
        description="DuckDB database file"
    )


# ============================================================================
# Fan-out Configuration
# ============================================================================

class FanoutConfig(BaseModel):
    """Trade batching to subscriber rooms."""

    flush_interval_ms: int = Field(
        default=200,
        gt=0,
        description="Interval between buffer flushes"
    )

    max_buffer_size: Optional[int] = Field(
        default=None,
        gt=0,
        description="Per-pool buffer bound; oldest records dropped past it"
    )


class MetadataConfig(BaseModel):
    """Token metadata work queue."""

    workers: int = Field(default=2, ge=1, le=32, description="Concurrent workers")

    queue_size: int = Field(default=1000, gt=0, description="Max pending jobs")


# ============================================================================
# Complete Application Configuration
# ============================================================================

class AppConfig(BaseModel):
    """Complete application configuration."""

    system: SystemConfig = Field(
        default_factory=SystemConfig,
        description="System configuration"
    )

    geyser: GeyserConfig = Field(
        default_factory=GeyserConfig,
        description="Upstream stream configuration"
    )

    programs: ProgramsConfig = Field(
        default_factory=ProgramsConfig,
        description="Watched programs"
    )

    registry: RegistryConfig = Field(
        default_factory=RegistryConfig,
        description="Pool registry configuration"
    )

    redis: RedisConfig = Field(
        default_factory=RedisConfig,
        description="Redis configuration"
    )

    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Storage configuration"
    )

    fanout: FanoutConfig = Field(
        default_factory=FanoutConfig,
        description="Fan-out configuration"
    )

    metadata: MetadataConfig = Field(
        default_factory=MetadataConfig,
        description="Metadata queue configuration"
    )
