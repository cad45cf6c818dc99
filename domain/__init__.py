"""Terrain Relief Domain Layer.

This package contains the core business logic organized by bounded contexts:
- terrain: Tile location, elevation decoding, displaced mesh building
"""

from domain import terrain

__all__ = ["terrain"]
