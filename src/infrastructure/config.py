"""Runtime settings for tile providers and mesh building.

Values come from ``TERRAIN_*`` environment variables, falling back to the
defaults below. Constructor arguments on adapters and sessions take
precedence over settings.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Final

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from domain.terrain.services import DEFAULT_WORLD_SIZE
from domain.terrain.value_objects import RASTER_SIZE

DEFAULT_ELEVATION_URL: Final[str] = (
    "https://s3.amazonaws.com/elevation-tiles-prod/terrarium/{z}/{x}/{y}.png"
)
DEFAULT_TEXTURE_URL: Final[str] = "https://a.tile.opentopomap.org/{z}/{x}/{y}.png"


class TerrainSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TERRAIN_", extra="ignore")

    elevation_url_template: str = DEFAULT_ELEVATION_URL
    texture_url_template: str = DEFAULT_TEXTURE_URL
    http_timeout_s: float = Field(default=30.0, gt=0)
    world_size: float = Field(default=DEFAULT_WORLD_SIZE, gt=0)
    raster_size: int = Field(default=RASTER_SIZE, ge=2)

    @field_validator("elevation_url_template", "texture_url_template")
    @classmethod
    def _require_tile_placeholders(cls, value: str) -> str:
        missing = [p for p in ("{z}", "{x}", "{y}") if p not in value]
        if missing:
            raise ValueError(f"URL template {value!r} missing {', '.join(missing)}")
        return value


@lru_cache(maxsize=1)
def get_settings() -> TerrainSettings:
    return TerrainSettings()
