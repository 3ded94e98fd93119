"""DEX-specific decoders."""
