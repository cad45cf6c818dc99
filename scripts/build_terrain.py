#!/usr/bin/env python3
"""Build one terrain tile and print a summary.

Fetches the Terrarium elevation tile for a point, decodes it and builds the
displaced mesh exactly as a renderer would receive it.

Usage:
    python scripts/build_terrain.py --lat 27.9881 --lon 86.9250 --zoom 12
    python scripts/build_terrain.py --landmark "Mount Everest"
    python scripts/build_terrain.py --random

Requirements:
    pip install -e .

Environment:
    TERRAIN_ELEVATION_URL_TEMPLATE, TERRAIN_HTTP_TIMEOUT_S, TERRAIN_WORLD_SIZE
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from application.terrain_session import TerrainBuild, TerrainSession
from domain.terrain.errors import TerrainError
from domain.terrain.services import tile_bounds
from infrastructure.terrain import TerrariumRasterAdapter
from shared.landmarks import LANDMARKS, Landmark, find_landmark

logger = logging.getLogger("build_terrain")

DEFAULT_ZOOM = 12


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--lat", type=float, help="Latitude in degrees")
    target.add_argument("--landmark", help="Preset landmark name (prefix match)")
    target.add_argument("--random", action="store_true", help="Random preset landmark")
    target.add_argument("--list", action="store_true", help="List preset landmarks")
    parser.add_argument("--lon", type=float, help="Longitude in degrees (with --lat)")
    parser.add_argument("--zoom", type=int, help="Zoom level (with --lat, default 12)")
    parser.add_argument("--world-size", type=float, default=None)
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)
    if args.lat is not None and args.lon is None:
        parser.error("--lat requires --lon")
    if args.lat is None and (args.lon is not None or args.zoom is not None):
        parser.error("--lon and --zoom only apply with --lat")
    if args.zoom is None:
        args.zoom = DEFAULT_ZOOM
    return args


def print_summary(result: TerrainBuild) -> None:
    mesh = result.mesh
    print(f"Point:        {result.point.latitude:.4f}, {result.point.longitude:.4f}")
    print(f"Tile:         {result.tile.path}")
    bounds = tile_bounds(result.tile)
    print(
        f"Bounds:       W {bounds.min_x:.4f}, S {bounds.min_y:.4f}, "
        f"E {bounds.max_x:.4f}, N {bounds.max_y:.4f}"
    )
    print(f"Ground size:  {result.ground_size_m:,.1f} m")
    print(f"Elevation:    {result.grid.min_m:,.1f} .. {result.grid.max_m:,.1f} m")
    print(f"Vertices:     {mesh.vertex_count}")
    print(f"Triangles:    {mesh.triangle_count}")
    print(f"Scale height: {mesh.scale_height:.3e} world units per meter")


async def run(
    args: argparse.Namespace, landmark: Landmark | None = None
) -> TerrainBuild | None:
    async with TerrariumRasterAdapter() as provider:
        session = TerrainSession(provider, world_size=args.world_size)
        if args.random:
            result = await session.build_random_landmark()
        elif args.landmark:
            result = await session.build_landmark(
                landmark or find_landmark(args.landmark)
            )
        else:
            result = await session.build(args.lat, args.lon, args.zoom)
        if result is not None:
            print_summary(result)
        session.close()
        return result


def main(argv: list[str] | None = None) -> int:
    """Build a tile.

    Returns:
        0 on success, 1 on failure
    """
    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.list:
        for preset in LANDMARKS:
            print(f"{preset.name:40} {preset.latitude:9.4f} {preset.longitude:10.4f}")
        return 0

    landmark = None
    if args.landmark:
        try:
            landmark = find_landmark(args.landmark)
        except KeyError as e:
            print(f"ERROR: {e.args[0]}")
            return 1

    try:
        asyncio.run(run(args, landmark))
    except TerrainError as e:
        logger.error("Build failed: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
