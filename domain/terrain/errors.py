"""Terrain Bounded Context - Error Hierarchy.

Custom exceptions for tile location, elevation decoding and mesh building.
Every error is terminal for the build request that raised it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from domain.terrain.value_objects import TileAddress


class TerrainError(Exception):
    """Base error for terrain operations."""


class InvalidInputError(TerrainError, ValueError):
    """Latitude, longitude, zoom or a scale parameter is out of range."""


class TileUnavailableError(TerrainError):
    """Raster for a tile could not be fetched or decoded.

    Attributes:
        tile: The TileAddress that was requested (None if unknown)
    """

    def __init__(self, message: str, tile: "TileAddress | None" = None) -> None:
        self.tile = tile
        if tile is not None:
            message = f"Tile {tile.path}: {message}"
        super().__init__(message)


class MalformedRasterError(TerrainError):
    """Raster shape does not match the expected square tile.

    Attributes:
        expected: Expected (height, width) in pixels
        actual: Shape of the raster that was received
    """

    def __init__(
        self, expected: tuple[int, ...], actual: tuple[int, ...], detail: str = ""
    ) -> None:
        self.expected = expected
        self.actual = actual
        message = f"Expected raster of shape {expected}, got {actual}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class DimensionMismatchError(TerrainError):
    """Elevation sample count does not match the mesh vertex count.

    Attributes:
        expected: Number of vertices in the mesh grid
        actual: Number of elevation samples supplied
    """

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Elevation grid has {actual} samples, mesh needs {expected} vertices"
        )


class MeshReleasedError(TerrainError):
    """Geometry buffers of a released TerrainMesh were accessed."""

    pass
