"""
Yellowstone (Geyser) gRPC transport.
"""

from .client import YellowstoneClient, GeyserSubscription, load_geyser_protos

__all__ = ["YellowstoneClient", "GeyserSubscription", "load_geyser_protos"]
