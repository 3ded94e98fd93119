"""
DuckDB storage for pools and trades.
"""

from .trade_store import TradeStore
from .schema import create_all_tables, get_table_stats

__all__ = ['TradeStore', 'create_all_tables', 'get_table_stats']
