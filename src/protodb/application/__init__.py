"""Application layer for the document store.

Exports:
    - ProtoDB: Store entry point and model registry
    - Model: CRUD and relation loading for one collection
    - ModelDefinition: Model declaration
"""

from protodb.application.model import Model, ModelDefinition
from protodb.application.protodb import ProtoDB

__all__ = [
    "Model",
    "ModelDefinition",
    "ProtoDB",
]
