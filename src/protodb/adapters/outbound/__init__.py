"""Outbound adapters - implementations of outbound ports.

The JSON adapter keeps every collection in memory and persists it through
the file engine's single write queue.
"""

from protodb.adapters.outbound.file_engine import FileEngine
from protodb.adapters.outbound.json_adapter import JsonAdapter

__all__ = [
    "FileEngine",
    "JsonAdapter",
]
