"""Conversation synchronization and persistence for direct messaging."""

__version__ = "0.1.0"
