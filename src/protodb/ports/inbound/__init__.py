"""Inbound ports."""

from protodb.ports.inbound.model_provider import ModelProvider, ResolvableModel

__all__ = ["ModelProvider", "ResolvableModel"]
