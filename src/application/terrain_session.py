"""Terrain build session: one live mesh, latest request wins.

A TerrainSession runs the Tile Locator -> Elevation Decoder -> Mesh
Displacement Builder pipeline for each request. Only the raster fetch awaits.

Requests are numbered by a monotonically increasing generation counter. A
result is installed only if its generation is still the latest issued when
its fetch completes; otherwise the result is discarded before any mesh is
built. The
previously installed mesh is released before a new one replaces it, and is
left untouched when a build fails.
"""

from __future__ import annotations

import logging
import random

from pydantic import BaseModel, ConfigDict

from domain.terrain.entities import TerrainMesh
from domain.terrain.repositories import RasterProvider
from domain.terrain.services import (
    build_mesh,
    fetch_and_decode,
    ground_size_meters,
    locate,
)
from domain.terrain.value_objects import ElevationGrid, GeoPoint, TileAddress
from infrastructure.config import get_settings
from shared.landmarks import LANDMARKS, Landmark

logger = logging.getLogger(__name__)


class TerrainBuild(BaseModel):
    """Result of one successful build request."""

    point: GeoPoint
    tile: TileAddress
    ground_size_m: float
    grid: ElevationGrid
    mesh: TerrainMesh
    generation: int

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class TerrainSession:
    """Owns the single installed TerrainBuild for a consumer.

    Parameters
    ----------
    provider: RasterProvider
        Source of Terrarium rasters.
    world_size: float | None
        Mesh side length in world units (defaults to settings).
    raster_size: int | None
        Expected raster side length; the mesh has raster_size - 1 segments.
    """

    def __init__(
        self,
        provider: RasterProvider,
        world_size: float | None = None,
        raster_size: int | None = None,
    ) -> None:
        settings = get_settings()
        self.provider = provider
        self.world_size = world_size if world_size is not None else settings.world_size
        self.raster_size = (
            raster_size if raster_size is not None else settings.raster_size
        )
        self._generation = 0
        self._current: TerrainBuild | None = None

    @property
    def current(self) -> TerrainBuild | None:
        return self._current

    @property
    def generation(self) -> int:
        """Generation number of the most recently issued request."""
        return self._generation

    async def build(
        self, latitude: float, longitude: float, zoom: int
    ) -> TerrainBuild | None:
        """Build and install terrain for a point.

        Returns:
            The installed TerrainBuild, or None if a newer request was issued
            while this one was fetching.

        Raises:
            InvalidInputError: Input out of range (no request is issued)
            TileUnavailableError / MalformedRasterError / DimensionMismatchError:
                The request failed; the installed build is unchanged.
        """
        # Validation happens before a generation is taken
        tile = locate(latitude, longitude, zoom)
        ground_size = ground_size_meters(latitude, zoom)
        point = GeoPoint(latitude=latitude, longitude=longitude, zoom=zoom)

        self._generation += 1
        generation = self._generation
        logger.debug("Request %d: tile %s", generation, tile.path)

        grid = await fetch_and_decode(tile, self.provider, self.raster_size)

        # Nothing below awaits; the check holds until install
        if generation != self._generation:
            logger.info(
                "Request %d for tile %s superseded by request %d; result discarded",
                generation,
                tile.path,
                self._generation,
            )
            return None

        mesh = build_mesh(grid, ground_size, self.world_size, self.raster_size - 1)

        result = TerrainBuild(
            point=point,
            tile=tile,
            ground_size_m=ground_size,
            grid=grid,
            mesh=mesh,
            generation=generation,
        )
        self._install(result)
        return result

    async def build_landmark(self, landmark: Landmark) -> TerrainBuild | None:
        return await self.build(landmark.latitude, landmark.longitude, landmark.zoom)

    async def build_random_landmark(
        self, rng: random.Random | None = None
    ) -> TerrainBuild | None:
        """Build one of the preset landmarks picked at random."""
        landmark = (rng or random).choice(LANDMARKS)
        logger.info("Random landmark: %s", landmark.name)
        return await self.build_landmark(landmark)

    def _install(self, result: TerrainBuild) -> None:
        previous = self._current
        if previous is not None:
            previous.mesh.release()
        self._current = result
        logger.info(
            "Installed tile %s (request %d, ground size %.1f m, relief %.1f..%.1f m)",
            result.tile.path,
            result.generation,
            result.ground_size_m,
            result.grid.min_m,
            result.grid.max_m,
        )

    def close(self) -> None:
        """Release the installed mesh."""
        if self._current is not None:
            self._current.mesh.release()
            self._current = None
