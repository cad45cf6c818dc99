"""Infrastructure adapters for the terrain bounded context.

This module provides the infrastructure layer implementations for terrain
operations: fetching Terrarium elevation tiles and display imagery over HTTP.

Adapters exported for simplified imports.
"""

from .terrarium_adapter import (
    OpenTopoTextureAdapter,
    TerrariumRasterAdapter,
    read_terrarium_png,
)

__all__ = ["OpenTopoTextureAdapter", "TerrariumRasterAdapter", "read_terrarium_png"]
