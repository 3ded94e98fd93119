"""
PumpSwap stream processor.

Streams Pump.fun / PumpSwap transactions from a Yellowstone gRPC endpoint,
decodes migrations and trades, tracks graduated pools and fans out
coalesced trade batches to per-pool rooms.
"""

__version__ = "0.1.0"
