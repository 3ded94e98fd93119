"""
DuckDB schema definitions for pool and trade storage.

Two tables:
- pools: one row per tracked pool (first write wins)
- trades: one row per decoded trade, keyed by transaction signature
"""

import duckdb
import logging

logger = logging.getLogger(__name__)


# Table creation SQL templates
POOLS_TABLE = """
CREATE TABLE IF NOT EXISTS pools (
    address VARCHAR(44) NOT NULL PRIMARY KEY,
    base_mint VARCHAR(44) NOT NULL,
    quote_mint VARCHAR(44) NOT NULL,
    base_decimals INTEGER NOT NULL,
    quote_decimals INTEGER NOT NULL,
    created_at TIMESTAMP DEFAULT current_timestamp
);
"""

TRADES_TABLE = """
CREATE TABLE IF NOT EXISTS trades (
    tx_hash VARCHAR(88) NOT NULL PRIMARY KEY,
    time TIMESTAMP NOT NULL,
    pool_address VARCHAR(44) NOT NULL,
    type VARCHAR(4) NOT NULL,  -- 'BUY' or 'SELL'
    price DOUBLE NOT NULL,
    base_amount DOUBLE NOT NULL,
    quote_amount DOUBLE NOT NULL
);
"""

TRADES_INDEX = """
CREATE INDEX IF NOT EXISTS idx_trades_pool_time ON trades(pool_address, time);
"""


def create_all_tables(conn: duckdb.DuckDBPyConnection) -> None:
    """
    Create all tables and indexes.

    Args:
        conn: DuckDB connection
    """
    try:
        conn.execute(POOLS_TABLE)
        logger.debug("Created pools table")

        conn.execute(TRADES_TABLE)
        conn.execute(TRADES_INDEX)
        logger.debug("Created trades table and index")

        conn.commit()
        logger.info("All tables created successfully")

    except Exception as e:
        logger.error(f"Error creating tables: {e}")
        raise


def get_table_stats(conn: duckdb.DuckDBPyConnection) -> dict:
    """
    Get row counts per table.

    Args:
        conn: DuckDB connection

    Returns:
        Dict with table row counts
    """
    try:
        stats = {}
        for table in ('pools', 'trades'):
            result = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
            stats[table] = result[0] if result else 0
        return stats

    except Exception as e:
        logger.error(f"Error getting table stats: {e}")
        return {}
