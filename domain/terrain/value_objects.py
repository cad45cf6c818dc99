"""Terrain Bounded Context - Value Objects.

Immutable data structures representing tiles, rasters and elevation grids.
All validation occurs at construction time via Pydantic.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field, model_validator

# ---------------------------------------------------------------------------
# Numeric Constants
# ---------------------------------------------------------------------------
RASTER_SIZE = 256  # Side length of a Terrarium tile in pixels
MIN_GRID_SIDE = 2  # Smallest grid that still spans one mesh cell


class BoundingBox(BaseModel):
    """Geographic extent in EPSG:4326 (Value Object).

    Invariants are enforced at construction time - invalid BoundingBox
    cannot be instantiated.
    """

    min_x: float  # Western boundary (longitude)
    min_y: float  # Southern boundary (latitude)
    max_x: float  # Eastern boundary (longitude)
    max_y: float  # Northern boundary (latitude)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_bounds(self) -> "BoundingBox":
        # Longitude range
        if not (-180 <= self.min_x <= 180):
            raise ValueError(f"min_x longitude out of range: {self.min_x}")
        if not (-180 <= self.max_x <= 180):
            raise ValueError(f"max_x longitude out of range: {self.max_x}")
        # Latitude range
        if not (-90 <= self.min_y <= 90):
            raise ValueError(f"min_y latitude out of range: {self.min_y}")
        if not (-90 <= self.max_y <= 90):
            raise ValueError(f"max_y latitude out of range: {self.max_y}")
        # Ordering
        if not (self.min_x < self.max_x):
            raise ValueError(
                f"Invalid x ordering: min_x={self.min_x} >= max_x={self.max_x}"
            )
        if not (self.min_y < self.max_y):
            raise ValueError(
                f"Invalid y ordering: min_y={self.min_y} >= max_y={self.max_y}"
            )
        return self

    def contains(self, latitude: float, longitude: float) -> bool:
        """Check if a coordinate is within bounds (inclusive)."""
        return (
            self.min_x <= longitude <= self.max_x
            and self.min_y <= latitude <= self.max_y
        )


# ---------------------------------------------------------------------------
# GeoPoint
# ---------------------------------------------------------------------------
class GeoPoint(BaseModel):
    """Geographic coordinate in WGS84 plus the requested zoom (Value Object).

    Invariants:
        - latitude in [-90, 90]
        - longitude in [-180, 180]
        - zoom >= 0

    The tile locator applies stricter limits (poles and the Web-Mercator
    cut-off are rejected there with InvalidInputError).
    """

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    zoom: int = Field(ge=0)

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# TileAddress
# ---------------------------------------------------------------------------
class TileAddress(BaseModel):
    """Slippy-map tile address (Value Object).

    Invariants:
        - z >= 0
        - 0 <= x < 2**z
        - 0 <= y < 2**z
    """

    x: int
    y: int
    z: int = Field(ge=0)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_address(self) -> "TileAddress":
        n = 2**self.z
        if not (0 <= self.x < n):
            raise ValueError(f"Tile x={self.x} outside [0, {n}) at zoom {self.z}")
        if not (0 <= self.y < n):
            raise ValueError(f"Tile y={self.y} outside [0, {n}) at zoom {self.z}")
        return self

    @property
    def path(self) -> str:
        """Return the ``z/x/y`` path used by tile servers."""
        return f"{self.z}/{self.x}/{self.y}"


# ---------------------------------------------------------------------------
# GridIndex
# ---------------------------------------------------------------------------
class GridIndex(BaseModel):
    """Row/column position shared by raster pixels and mesh vertices.

    Row 0 is the north edge of the tile, column 0 the west edge. The
    elevation decoder orders samples and the mesh builder places vertices
    through ``rows_cols``, so pixel (row, col) always feeds vertex (row, col).
    """

    row: int = Field(ge=0)
    col: int = Field(ge=0)

    model_config = ConfigDict(frozen=True)

    def to_flat(self, side: int) -> int:
        """Row-major flat index in a ``side x side`` grid."""
        if self.row >= side or self.col >= side:
            raise ValueError(
                f"GridIndex({self.row}, {self.col}) outside {side}x{side} grid"
            )
        return self.row * side + self.col

    @classmethod
    def from_flat(cls, index: int, side: int) -> "GridIndex":
        """Inverse of ``to_flat``."""
        if not (0 <= index < side * side):
            raise ValueError(f"Flat index {index} outside {side}x{side} grid")
        row, col = divmod(index, side)
        return cls(row=row, col=col)

    @staticmethod
    def rows_cols(side: int) -> tuple[NDArray[np.int64], NDArray[np.int64]]:
        """Row and column of every flat index, in flat order.

        Vectorised ``from_flat`` over ``range(side * side)``: element ``i`` of
        each array is ``GridIndex.from_flat(i, side).row`` / ``.col``.
        """
        if side < 1:
            raise ValueError(f"Grid side must be >= 1, got {side}")
        return np.divmod(np.arange(side * side, dtype=np.int64), side)


# ---------------------------------------------------------------------------
# RasterImage
# ---------------------------------------------------------------------------
class RasterImage(BaseModel):
    """Decoded tile image as an (height, width, channels) uint8 array.

    Channel order is R, G, B[, A]. The pixel array is copied and made
    read-only at construction time.
    """

    pixels: NDArray[np.uint8]

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @model_validator(mode="after")
    def validate_pixels(self) -> "RasterImage":
        if not isinstance(self.pixels, np.ndarray):
            raise ValueError("pixels must be a numpy ndarray")
        if self.pixels.ndim != 3:
            raise ValueError(f"pixels must be 3D (H, W, C), got {self.pixels.ndim}D")
        if self.pixels.shape[0] == 0 or self.pixels.shape[1] == 0:
            raise ValueError(f"pixels cannot be empty: {self.pixels.shape}")
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"pixels must be uint8, got {self.pixels.dtype}")

        immutable = np.array(self.pixels, dtype=np.uint8, copy=True, order="C")
        immutable.flags.writeable = False
        object.__setattr__(self, "pixels", immutable)
        return self

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def channels(self) -> int:
        return int(self.pixels.shape[2])


# ---------------------------------------------------------------------------
# ElevationGrid
# ---------------------------------------------------------------------------
class ElevationGrid(BaseModel):
    """Immutable square grid of heights in meters (Value Object).

    Row 0 = north edge, column 0 = west edge, flattened row-major.
    Heights are relative to sea level and may be negative.

    Invariants:
        - data is 2D and square
        - side >= MIN_GRID_SIDE
        - every sample is finite
    """

    tile: TileAddress
    data: NDArray[np.float64]  # (side, side), read-only

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @model_validator(mode="after")
    def validate_grid(self) -> "ElevationGrid":
        data = np.asarray(self.data)
        if data.ndim != 2:
            raise ValueError(f"Data must be 2D, got {data.ndim}D")
        if data.shape[0] != data.shape[1]:
            raise ValueError(f"Data must be square, got {data.shape}")
        if data.shape[0] < MIN_GRID_SIDE:
            raise ValueError(f"Data must be at least {MIN_GRID_SIDE}x{MIN_GRID_SIDE}")

        immutable = np.array(data, dtype=np.float64, copy=True, order="C")
        if not np.isfinite(immutable).all():
            raise ValueError("Elevation grid contains non-finite samples")
        immutable.flags.writeable = False
        object.__setattr__(self, "data", immutable)
        return self

    @property
    def side(self) -> int:
        return int(self.data.shape[0])

    def __len__(self) -> int:
        return int(self.data.size)

    def values(self) -> NDArray[np.float64]:
        """Return a flat row-major copy of the samples."""
        return self.data.reshape(-1).copy()

    def at(self, index: GridIndex) -> float:
        """Return the sample at a grid position."""
        flat = index.to_flat(self.side)
        return float(self.data.reshape(-1)[flat])

    @property
    def min_m(self) -> float:
        return float(self.data.min())

    @property
    def max_m(self) -> float:
        return float(self.data.max())
