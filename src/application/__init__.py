"""Application Layer.

Application services that orchestrate domain logic and infrastructure ports
for a terrain consumer.
"""

from .terrain_session import TerrainBuild, TerrainSession

__all__ = ["TerrainBuild", "TerrainSession"]
