"""
Upstream stream handling.

The Yellowstone gRPC client lives in .yellowstone and is imported by the
application entry point; nothing here pulls in the generated protos.
"""

from .manager import ConnectionState, StreamConnectionManager
from .processor import TransactionProcessor

__all__ = ["ConnectionState", "StreamConnectionManager", "TransactionProcessor"]
