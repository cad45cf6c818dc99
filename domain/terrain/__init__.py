"""Terrain Bounded Context.

Responsible for turning a geographic point into relief geometry:
- Value Objects: GeoPoint, TileAddress, GridIndex, RasterImage, ElevationGrid
- Entities: TerrainMesh
- Services: locate, ground_size_meters, decode, build_mesh
"""
