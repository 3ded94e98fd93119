"""
Trade Store - DuckDB persistence for pools and trades.

A single DuckDB file holds the pools and trades tables. DuckDB calls are
blocking, so each one runs in the default executor behind a lock; the
async methods are what the stream pipeline awaits.

Database path example: data/pumpswap.duckdb
"""

import asyncio
import duckdb
import logging
import threading
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import Any, Dict, List, Optional

from pumpswap_stream.core.exceptions import StorageError
from .schema import create_all_tables, get_table_stats

logger = logging.getLogger(__name__)


def _ms_to_timestamp(time_ms: int) -> datetime:
    """Epoch millis to a naive UTC datetime for TIMESTAMP columns."""
    return datetime.fromtimestamp(time_ms / 1000, tz=timezone.utc).replace(tzinfo=None)


class TradeStore:
    """
    DuckDB-backed store for pool rows and trade rows.

    Key design principles:
    1. upsert_pool is idempotent: the first write for an address wins
    2. insert_trade ignores a repeated tx_hash (resubscribe replays)
    3. Every DuckDB error surfaces as StorageError

    Example:
        store = TradeStore("data/pumpswap.duckdb")
        await store.upsert_pool(address, base_mint, quote_mint, 6, 9)
        await store.insert_trade(tx_hash, time_ms, address, "BUY", 1.2e-7, 1000.0, 0.5)
    """

    def __init__(self, database_path: str = "data/pumpswap.duckdb"):
        """
        Initialize the store and create tables.

        Args:
            database_path: DuckDB file path (":memory:" for an in-memory DB)
        """
        self.database_path = str(database_path)
        self._lock = threading.Lock()

        if self.database_path != ":memory:":
            Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self._conn: Optional[duckdb.DuckDBPyConnection] = duckdb.connect(self.database_path)
            create_all_tables(self._conn)
        except duckdb.Error as e:
            raise StorageError(f"Cannot open DuckDB at {self.database_path}: {e}") from e

        # Statistics
        self.pools_written = 0
        self.trades_written = 0
        self.write_errors = 0

        logger.info(f"TradeStore initialized with database: {self.database_path}")

    # ========================================================================
    # Executor plumbing
    # ========================================================================

    def _execute(self, sql: str, params: tuple = ()) -> List[tuple]:
        with self._lock:
            if self._conn is None:
                raise StorageError("TradeStore is closed")
            try:
                return self._conn.execute(sql, params).fetchall()
            except duckdb.Error as e:
                raise StorageError(str(e)) from e

    async def _run(self, sql: str, params: tuple = ()) -> List[tuple]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(self._execute, sql, params))

    # ========================================================================
    # Writes
    # ========================================================================

    async def upsert_pool(
        self,
        address: str,
        base_mint: str,
        quote_mint: str,
        base_decimals: int,
        quote_decimals: int,
    ) -> None:
        """
        Insert a pool row unless the address already exists.

        pools_written counts only rows actually inserted.

        Raises:
            StorageError: If the write fails
        """
        try:
            rows = await self._run(
                """
                INSERT INTO pools (address, base_mint, quote_mint, base_decimals, quote_decimals)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (address) DO NOTHING
                RETURNING address
                """,
                (address, base_mint, quote_mint, base_decimals, quote_decimals),
            )
        except StorageError:
            self.write_errors += 1
            raise
        self.pools_written += len(rows)

    async def insert_trade(
        self,
        tx_hash: str,
        time: int,
        pool_address: str,
        type: str,
        price: float,
        base_amount: float,
        quote_amount: float,
    ) -> None:
        """
        Insert a trade row; a repeated tx_hash is skipped and not counted.

        Args:
            tx_hash: Transaction signature (base58)
            time: Capture time in epoch milliseconds
            pool_address: Pool the trade executed against
            type: "BUY" or "SELL"
            price: Quote per base, decimal adjusted
            base_amount: Base amount, decimal adjusted
            quote_amount: Quote amount, decimal adjusted

        Raises:
            StorageError: If the write fails
        """
        try:
            rows = await self._run(
                """
                INSERT INTO trades (tx_hash, time, pool_address, type, price, base_amount, quote_amount)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (tx_hash) DO NOTHING
                RETURNING tx_hash
                """,
                (tx_hash, _ms_to_timestamp(time), pool_address, type, price, base_amount, quote_amount),
            )
        except StorageError:
            self.write_errors += 1
            raise
        self.trades_written += len(rows)

    # ========================================================================
    # Reads
    # ========================================================================

    async def get_pool(self, address: str) -> Optional[Dict[str, Any]]:
        """Get a pool row as a dict, or None."""
        rows = await self._run(
            """
            SELECT address, base_mint, quote_mint, base_decimals, quote_decimals
            FROM pools WHERE address = ?
            """,
            (address,),
        )
        if not rows:
            return None
        address, base_mint, quote_mint, base_decimals, quote_decimals = rows[0]
        return {
            "address": address,
            "base_mint": base_mint,
            "quote_mint": quote_mint,
            "base_decimals": base_decimals,
            "quote_decimals": quote_decimals,
        }

    async def get_recent_trades(self, pool_address: str, limit: int = 100) -> List[Dict[str, Any]]:
        """
        Get the most recent trades of a pool, newest first.

        Args:
            pool_address: Pool address
            limit: Max rows

        Returns:
            List of dicts with time as epoch milliseconds
        """
        rows = await self._run(
            """
            SELECT tx_hash, epoch_ms(time), type, price, base_amount, quote_amount
            FROM trades
            WHERE pool_address = ?
            ORDER BY time DESC
            LIMIT ?
            """,
            (pool_address, limit),
        )
        return [
            {
                "tx_hash": tx_hash,
                "time": time_ms,
                "type": trade_type,
                "price": price,
                "base_amount": base_amount,
                "quote_amount": quote_amount,
            }
            for tx_hash, time_ms, trade_type, price, base_amount, quote_amount in rows
        ]

    def get_stats(self) -> dict:
        """Get write counters and table row counts."""
        with self._lock:
            tables = get_table_stats(self._conn) if self._conn is not None else {}
        return {
            "database_path": self.database_path,
            "pools_written": self.pools_written,
            "trades_written": self.trades_written,
            "write_errors": self.write_errors,
            "tables": tables,
        }

    def close(self) -> None:
        """
        Close the database connection.

        Call this during graceful shutdown.
        """
        with self._lock:
            if self._conn is not None:
                try:
                    self._conn.close()
                    logger.info(f"Closed DuckDB connection: {self.database_path}")
                except duckdb.Error as e:
                    logger.error(f"Error closing {self.database_path}: {e}")
                self._conn = None
