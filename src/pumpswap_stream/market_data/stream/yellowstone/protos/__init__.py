"""Protobuf definitions for the Yellowstone Geyser service."""
