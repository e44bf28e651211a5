"""Outbound ports."""

from protodb.ports.outbound.storage_adapter import StorageAdapter

__all__ = ["StorageAdapter"]
