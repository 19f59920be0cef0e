"""Peer roster and membership-event state machine for group chat clients."""

__version__ = "0.1.0"
