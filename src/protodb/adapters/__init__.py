"""Adapters layer - concrete implementations of port interfaces.

Outbound adapters implement the StorageAdapter port on top of the local
file system.
"""

from protodb.adapters.outbound import FileEngine, JsonAdapter

__all__ = [
    # Outbound adapters
    "FileEngine",
    "JsonAdapter",
]
