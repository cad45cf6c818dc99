"""Root pytest configuration for all tests.

Resets cached settings around every test so environment overrides stay
isolated, and provides a RasterImage factory fixture.
"""

from __future__ import annotations

from collections.abc import Callable, Generator

import pytest

from domain.terrain.value_objects import RASTER_SIZE, RasterImage
from infrastructure.config import get_settings
from tests.raster_helpers import SEA_LEVEL_RGB, uniform_pixels


@pytest.fixture(autouse=True)
def _reset_settings_cache() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def raster_factory() -> Callable[..., RasterImage]:
    """Factory building uniform RasterImages: raster_factory(rgb, size)."""

    def _make(
        rgb: tuple[int, int, int] = SEA_LEVEL_RGB, size: int = RASTER_SIZE
    ) -> RasterImage:
        return RasterImage(pixels=uniform_pixels(rgb, size))

    return _make
