"""Core numerical primitives for mlpnet."""

from . import architecture, layers, network, transfer, types

__all__ = ["architecture", "layers", "network", "transfer", "types"]
