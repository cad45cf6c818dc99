"""Domain Port(s) for Terrain I/O.

Defines interfaces (Protocols) that infrastructure adapters must implement.
No concrete I/O here.
"""

from __future__ import annotations

from typing import Protocol

from .value_objects import RasterImage, TileAddress


class RasterProvider(Protocol):
    """Port for obtaining Terrarium elevation rasters by tile address.

    Implementations live in infrastructure (e.g., the Terrarium HTTP adapter).
    Retries, if any, belong to the implementation.
    """

    async def fetch_raster(self, tile: TileAddress) -> RasterImage:
        """Fetch the elevation image for a tile as an RGB(A) raster."""
        ...


class TextureProvider(Protocol):
    """Port for obtaining display imagery for a tile.

    Appearance only; terrain computations never consume it.
    """

    async def fetch_texture(self, tile: TileAddress) -> bytes:
        """Fetch encoded image bytes for a tile."""
        ...
