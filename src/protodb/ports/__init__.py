"""Ports layer - interface definitions following Hexagonal Architecture.

Ports are abstract interfaces (protocols) that define contracts:
- Inbound ports: what the application offers collaborators (ModelProvider)
- Outbound ports: dependencies on storage backends (StorageAdapter)

Adapters implement these ports with concrete functionality.
"""

from protodb.ports.inbound import ModelProvider, ResolvableModel
from protodb.ports.outbound import StorageAdapter

__all__ = [
    # Inbound ports
    "ModelProvider",
    "ResolvableModel",
    # Outbound ports
    "StorageAdapter",
]
