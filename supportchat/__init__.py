"""Realtime support/community chat core: room resolution, credit-and-cooldown gate, moderation."""

__version__ = "0.1.0"
