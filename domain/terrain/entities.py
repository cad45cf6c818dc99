"""Terrain Bounded Context - Entities.

TerrainMesh owns geometry buffers and has a lifecycle: it is built once,
handed to a consumer, and released before a replacement is installed.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from domain.terrain.errors import MeshReleasedError
from domain.terrain.value_objects import GridIndex, TileAddress


class TerrainMesh:
    """Displaced grid mesh with per-vertex normals.

    Vertex ``GridIndex(row, col).to_flat(segments + 1)`` sits at planar
    position ``(-world_size/2 + col*step, world_size/2 - row*step)``; the
    third coordinate is the displacement axis.

    Attributes:
        segments: Number of cells along each side (vertices = (segments+1)**2)
        world_size: Side length of the mesh in world units
        scale_height: World units per meter applied to elevations
        tile: Source tile, if known
    """

    def __init__(
        self,
        positions: NDArray[np.float32],
        normals: NDArray[np.float32],
        indices: NDArray[np.uint32],
        *,
        segments: int,
        world_size: float,
        scale_height: float,
        tile: TileAddress | None = None,
    ) -> None:
        vertex_count = (segments + 1) ** 2
        if positions.shape != (vertex_count, 3):
            raise ValueError(
                f"positions must have shape ({vertex_count}, 3), got {positions.shape}"
            )
        if normals.shape != positions.shape:
            raise ValueError(
                f"normals shape {normals.shape} != positions shape {positions.shape}"
            )
        if indices.ndim != 2 or indices.shape[1] != 3:
            raise ValueError(f"indices must have shape (T, 3), got {indices.shape}")

        self._positions: NDArray[np.float32] | None = positions
        self._normals: NDArray[np.float32] | None = normals
        self._indices: NDArray[np.uint32] | None = indices
        self.segments = segments
        self.world_size = world_size
        self.scale_height = scale_height
        self.tile = tile

    def __repr__(self) -> str:
        state = "released" if self.released else f"{self.vertex_count} vertices"
        return f"TerrainMesh(segments={self.segments}, {state})"

    # -- lifecycle ---------------------------------------------------------
    @property
    def released(self) -> bool:
        return self._positions is None

    def release(self) -> None:
        """Drop geometry buffers. Safe to call more than once."""
        self._positions = None
        self._normals = None
        self._indices = None

    def __enter__(self) -> "TerrainMesh":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.release()
        return False

    # -- geometry ----------------------------------------------------------
    def _require(self, buffer: NDArray | None, name: str) -> NDArray:
        if buffer is None:
            raise MeshReleasedError(f"TerrainMesh {name} accessed after release")
        return buffer

    @property
    def positions(self) -> NDArray[np.float32]:
        return self._require(self._positions, "positions")

    @property
    def normals(self) -> NDArray[np.float32]:
        return self._require(self._normals, "normals")

    @property
    def indices(self) -> NDArray[np.uint32]:
        return self._require(self._indices, "indices")

    @property
    def side(self) -> int:
        return self.segments + 1

    @property
    def vertex_count(self) -> int:
        return self.side**2

    @property
    def triangle_count(self) -> int:
        return int(self.indices.shape[0])

    def heights(self) -> NDArray[np.float32]:
        """Displacement-axis values, flat row-major."""
        return self.positions[:, 2]

    def vertex(self, index: GridIndex) -> NDArray[np.float32]:
        """Position of the vertex at a grid position."""
        return self.positions[index.to_flat(self.side)]
