"""Terrain Bounded Context - Domain Services.

Pure domain logic for turning a geographic point into a displaced mesh:

- Tile Locator: point + zoom -> TileAddress and tile ground size
- Elevation Decoder: Terrarium raster -> ElevationGrid
- Mesh Displacement Builder: ElevationGrid -> TerrainMesh

NO network I/O here - rasters are obtained through the RasterProvider port
implemented under `src/infrastructure/terrain/terrarium_adapter.py`.
"""

from __future__ import annotations

import logging
import math
import numbers
from collections.abc import Sequence

import numpy as np
from affine import Affine
from numpy.typing import ArrayLike, NDArray
from pyproj import Transformer
from rasterio.transform import array_bounds

from domain.terrain.entities import TerrainMesh
from domain.terrain.errors import (
    DimensionMismatchError,
    InvalidInputError,
    MalformedRasterError,
    TerrainError,
    TileUnavailableError,
)
from domain.terrain.repositories import RasterProvider
from domain.terrain.value_objects import (
    RASTER_SIZE,
    BoundingBox,
    ElevationGrid,
    GeoPoint,
    GridIndex,
    RasterImage,
    TileAddress,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
EARTH_CIRCUMFERENCE_M = 40075017.0  # Equatorial circumference used for ground size
MAX_MERCATOR_LATITUDE = 85.0511287798066  # atan(sinh(pi)): edge of the tile pyramid
MAX_ZOOM = 24
TERRARIUM_OFFSET_M = 32768.0
DEFAULT_WORLD_SIZE = 10.0  # Mesh side length in world units

# Half the Web-Mercator world width in meters (pi * WGS84 semi-major axis)
_MERCATOR_HALF_WORLD_M = 20037508.342789244

_to_wgs84 = Transformer.from_crs("EPSG:3857", "EPSG:4326", always_xy=True)


# ---------------------------------------------------------------------------
# Input Validation
# ---------------------------------------------------------------------------
def _check_zoom(zoom: int) -> None:
    # bool is an Integral subclass; True is not a zoom level
    if isinstance(zoom, bool) or not isinstance(zoom, numbers.Integral):
        raise InvalidInputError(f"Zoom must be an integer, got {zoom!r}")
    if not (0 <= zoom <= MAX_ZOOM):
        raise InvalidInputError(f"Zoom out of range [0, {MAX_ZOOM}]: {zoom}")


def _check_latitude(latitude: float, limit: float) -> None:
    if not math.isfinite(latitude):
        raise InvalidInputError(f"Latitude must be finite, got {latitude!r}")
    if limit >= 90.0:
        if not (-90.0 < latitude < 90.0):
            raise InvalidInputError(
                f"Latitude must be strictly inside (-90, 90): {latitude}"
            )
    elif abs(latitude) > limit:
        raise InvalidInputError(
            f"Latitude {latitude} beyond Web-Mercator limit +/-{limit:.6f}"
        )


def _check_longitude(longitude: float) -> None:
    if not math.isfinite(longitude):
        raise InvalidInputError(f"Longitude must be finite, got {longitude!r}")
    if not (-180.0 <= longitude <= 180.0):
        raise InvalidInputError(f"Longitude out of range [-180, 180]: {longitude}")


# ---------------------------------------------------------------------------
# Tile Locator
# ---------------------------------------------------------------------------
def locate(latitude: float, longitude: float, zoom: int) -> TileAddress:
    """Find the slippy tile containing a point.

    Args:
        latitude: WGS84 latitude in degrees, within the Web-Mercator limit
        longitude: WGS84 longitude in degrees, [-180, 180]
        zoom: Tile zoom level, [0, MAX_ZOOM]

    Returns:
        TileAddress with 0 <= x, y < 2**zoom

    Raises:
        InvalidInputError: If any argument is out of range. Never clamps.
    """
    _check_zoom(zoom)
    _check_latitude(latitude, MAX_MERCATOR_LATITUDE)
    _check_longitude(longitude)

    n = 2**zoom
    lat_rad = latitude * math.pi / 180

    x = math.floor(((longitude + 180) / 360) * n)
    y = math.floor(
        ((1 - math.log(math.tan(lat_rad) + 1 / math.cos(lat_rad)) / math.pi) / 2) * n
    )

    # lon == 180 and lat == -MAX_MERCATOR_LATITUDE land exactly on the far edge
    x = min(x, n - 1)
    y = min(max(y, 0), n - 1)

    return TileAddress(x=x, y=y, z=zoom)


def locate_point(point: GeoPoint) -> TileAddress:
    """Find the slippy tile containing a GeoPoint at its zoom level."""
    return locate(point.latitude, point.longitude, point.zoom)


def ground_size_meters(latitude: float, zoom: int) -> float:
    """East-west span in meters of one tile at the given latitude.

    Approximation: ``EARTH_CIRCUMFERENCE_M * cos(lat) / 2**zoom``. It trends
    toward zero near the poles, so latitudes outside the open interval
    (-90, 90) are rejected.

    Raises:
        InvalidInputError: If latitude is not strictly inside (-90, 90) or
            zoom is invalid.
    """
    _check_zoom(zoom)
    _check_latitude(latitude, 90.0)

    size = (EARTH_CIRCUMFERENCE_M * math.cos(latitude * math.pi / 180)) / 2**zoom
    if not size > 0:
        raise InvalidInputError(f"Degenerate ground size at latitude {latitude}")
    return size


def tile_transform(tile: TileAddress, size: int = RASTER_SIZE) -> Affine:
    """Affine mapping pixel (col, row) of a tile raster to EPSG:3857 meters."""
    span = 2 * _MERCATOR_HALF_WORLD_M / 2**tile.z
    west = -_MERCATOR_HALF_WORLD_M + tile.x * span
    north = _MERCATOR_HALF_WORLD_M - tile.y * span
    pixel = span / size
    return Affine.translation(west, north) @ Affine.scale(pixel, -pixel)


def tile_bounds(tile: TileAddress) -> BoundingBox:
    """Geographic extent of a tile in EPSG:4326."""
    transform = tile_transform(tile)
    minx, miny, maxx, maxy = array_bounds(RASTER_SIZE, RASTER_SIZE, transform)
    lon_min, lat_min = _to_wgs84.transform(minx, miny)
    lon_max, lat_max = _to_wgs84.transform(maxx, maxy)

    return BoundingBox(
        min_x=max(-180.0, float(lon_min)),
        min_y=max(-90.0, float(lat_min)),
        max_x=min(180.0, float(lon_max)),
        max_y=min(90.0, float(lat_max)),
    )


# ---------------------------------------------------------------------------
# Elevation Decoder
# ---------------------------------------------------------------------------
def decode_terrarium(pixels: ArrayLike) -> NDArray[np.float64]:
    """Decode Terrarium RGB pixels to meters: (R*256 + G + B/256) - 32768.

    Works on any array whose last axis holds R, G, B[, A]; alpha is ignored.
    """
    rgb = np.asarray(pixels)[..., :3].astype(np.float64)
    return (rgb[..., 0] * 256 + rgb[..., 1] + rgb[..., 2] / 256) - TERRARIUM_OFFSET_M


def decode(
    tile: TileAddress, raster: RasterImage, size: int = RASTER_SIZE
) -> ElevationGrid:
    """Decode a Terrarium raster into an ElevationGrid.

    Pixel ``raster.pixels[row, col]`` becomes the sample at
    ``GridIndex(row, col)``, i.e. flat index ``row * size + col``, via
    ``GridIndex.rows_cols``.

    Raises:
        MalformedRasterError: If the raster is not ``size x size`` with at
            least three channels. Nothing is decoded in that case.
    """
    if raster.height != size or raster.width != size:
        raise MalformedRasterError((size, size), tuple(raster.pixels.shape))
    if raster.channels < 3:
        raise MalformedRasterError(
            (size, size), tuple(raster.pixels.shape), "need R, G and B channels"
        )

    # Sample i comes from the pixel at GridIndex.from_flat(i, size)
    rows, cols = GridIndex.rows_cols(size)
    samples = decode_terrarium(raster.pixels[rows, cols])
    grid = ElevationGrid(tile=tile, data=samples.reshape(size, size))
    logger.debug(
        "Tile %s: decoded %dx%d elevations [%.1f, %.1f] m",
        tile.path,
        size,
        size,
        grid.min_m,
        grid.max_m,
    )
    return grid


async def fetch_and_decode(
    tile: TileAddress, provider: RasterProvider, size: int = RASTER_SIZE
) -> ElevationGrid:
    """Fetch a tile raster through a provider and decode it.

    The grid is returned only once every sample is decoded.

    Raises:
        TileUnavailableError: If the provider fails for any reason
        MalformedRasterError: If the raster has the wrong shape
    """
    try:
        raster = await provider.fetch_raster(tile)
    except TerrainError:
        raise
    except Exception as e:
        raise TileUnavailableError(f"Raster fetch failed: {e}", tile) from e

    if not isinstance(raster, RasterImage):
        raise TileUnavailableError(
            f"Provider returned {type(raster).__name__}, not a RasterImage", tile
        )

    return decode(tile, raster, size)


# ---------------------------------------------------------------------------
# Mesh Displacement Builder
# ---------------------------------------------------------------------------
def plane_grid(
    world_size: float, segments: int
) -> tuple[NDArray[np.float64], NDArray[np.uint32]]:
    """Flat grid of (segments+1)**2 vertices centred on the origin.

    Row 0 is at y = +world_size/2, column 0 at x = -world_size/2. Each cell
    is split into two triangles wound counter-clockwise seen from +Z.

    Returns:
        (positions (V, 3) float64 with zero displacement, indices (T, 3) uint32)
    """
    side = segments + 1
    half = world_size / 2
    step = world_size / segments

    rows, cols = GridIndex.rows_cols(side)
    positions = np.zeros((side * side, 3), dtype=np.float64)
    positions[:, 0] = -half + cols * step
    positions[:, 1] = half - rows * step

    r, c = np.meshgrid(np.arange(segments), np.arange(segments), indexing="ij")
    a = (r * side + c).ravel()
    b = ((r + 1) * side + c).ravel()
    d = (r * side + c + 1).ravel()
    e = ((r + 1) * side + c + 1).ravel()
    indices = np.empty((2 * a.size, 3), dtype=np.uint32)
    indices[0::2] = np.stack([a, b, d], axis=1)
    indices[1::2] = np.stack([b, e, d], axis=1)

    return positions, indices


def compute_vertex_normals(
    positions: ArrayLike, indices: ArrayLike
) -> NDArray[np.float32]:
    """Per-vertex unit normals from the area-weighted sum of face normals.

    Vertices that belong to no triangle (or only degenerate ones) get a zero
    normal.
    """
    p = np.asarray(positions, dtype=np.float64)
    tri = np.asarray(indices, dtype=np.int64)

    v0 = p[tri[:, 0]]
    v1 = p[tri[:, 1]]
    v2 = p[tri[:, 2]]
    face_normals = np.cross(v1 - v0, v2 - v0)

    normals = np.zeros_like(p)
    for corner in range(3):
        np.add.at(normals, tri[:, corner], face_normals)

    lengths = np.linalg.norm(normals, axis=1, keepdims=True)
    normals = np.divide(
        normals, lengths, out=np.zeros_like(normals), where=lengths > 0
    )
    return normals.astype(np.float32)


def _flat_heights(grid: ElevationGrid | Sequence[float] | ArrayLike) -> NDArray:
    if isinstance(grid, ElevationGrid):
        return grid.values()
    try:
        heights = np.asarray(grid, dtype=np.float64).reshape(-1)
    except (TypeError, ValueError) as e:
        # Ragged or non-numeric input
        raise InvalidInputError(
            f"Elevation samples must be numeric and regular: {e}"
        ) from e
    if not np.isfinite(heights).all():
        raise InvalidInputError("Elevation samples must be finite")
    return heights


def build_mesh(
    grid: ElevationGrid | Sequence[float] | ArrayLike,
    ground_size_m: float,
    world_size: float = DEFAULT_WORLD_SIZE,
    segments: int = RASTER_SIZE - 1,
) -> TerrainMesh:
    """Build a displaced grid mesh from elevation samples.

    Vertex ``i`` receives ``grid[i] * scale_height`` on the displacement axis,
    where ``scale_height = world_size / ground_size_m`` keeps vertical relief
    proportional to the tile's horizontal span. Normals are computed from the
    displaced positions.

    Args:
        grid: ElevationGrid, or flat/2D samples in row-major order (meters)
        ground_size_m: Real-world span of the tile in meters (> 0)
        world_size: Mesh side length in world units (> 0)
        segments: Cells per side; the grid must hold (segments+1)**2 samples

    Returns:
        A new TerrainMesh owned by the caller

    Raises:
        DimensionMismatchError: If the sample count is not (segments+1)**2.
            Raised before any vertex is generated.
        InvalidInputError: If a size argument is invalid
    """
    if isinstance(segments, bool) or not isinstance(segments, numbers.Integral):
        raise InvalidInputError(f"segments must be an integer, got {segments!r}")
    if segments < 1:
        raise InvalidInputError(f"segments must be >= 1, got {segments}")
    if not (math.isfinite(world_size) and world_size > 0):
        raise InvalidInputError(f"world_size must be positive, got {world_size}")
    if not (math.isfinite(ground_size_m) and ground_size_m > 0):
        raise InvalidInputError(f"ground_size_m must be positive, got {ground_size_m}")

    heights = _flat_heights(grid)
    vertex_count = (segments + 1) ** 2
    if heights.size != vertex_count:
        raise DimensionMismatchError(vertex_count, int(heights.size))

    positions, indices = plane_grid(world_size, segments)
    scale_height = world_size / ground_size_m
    positions[:, 2] = heights * scale_height

    normals = compute_vertex_normals(positions, indices)
    tile = grid.tile if isinstance(grid, ElevationGrid) else None

    logger.debug(
        "Built %d-vertex mesh (scale_height=%.3e world units/m)",
        vertex_count,
        scale_height,
    )
    return TerrainMesh(
        positions.astype(np.float32),
        normals,
        indices,
        segments=int(segments),
        world_size=float(world_size),
        scale_height=scale_height,
        tile=tile,
    )
