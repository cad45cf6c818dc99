"""HTTP tile adapters for RasterProvider and TextureProvider.

Fetches Terrarium-encoded elevation PNGs with httpx and decodes them with
rasterio into a domain RasterImage.

Lifecycle (to avoid resource leaks):
1) Reuse one httpx.AsyncClient per adapter (caller-supplied or owned)
2) GET the tile URL; non-2xx, transport errors and empty bodies fail fast
3) Open the PNG bytes as a rasterio MemoryFile inside rasterio.Env
4) Read RGB(A) bands into an (H, W, C) uint8 array
5) Exit contexts to release GDAL handles
6) Return RasterImage
7) Close the owned client on ``aclose()`` / ``async with`` exit
"""

from __future__ import annotations

import logging
import warnings

import httpx
import numpy as np
import rasterio
from rasterio.errors import NotGeoreferencedWarning, RasterioError

from domain.terrain.errors import MalformedRasterError, TileUnavailableError
from domain.terrain.value_objects import RasterImage, TileAddress
from infrastructure.config import get_settings

# Module-level logger (reused across all calls)
logger = logging.getLogger(__name__)


def read_terrarium_png(content: bytes, tile: TileAddress) -> RasterImage:
    """Decode encoded image bytes into an RGB(A) RasterImage.

    Raises:
        TileUnavailableError: If the bytes are not a readable image
        MalformedRasterError: If the image has fewer than three bands
    """
    try:
        # Slippy tiles carry no georeference; GDAL warns on every open
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", NotGeoreferencedWarning)
            with rasterio.Env():
                with rasterio.MemoryFile(content) as memfile:
                    with memfile.open() as src:
                        if src.count < 3:
                            raise MalformedRasterError(
                                (src.height, src.width, 3),
                                (src.height, src.width, src.count),
                                "need R, G and B bands",
                            )
                        data = src.read(out_dtype="uint8")
    except RasterioError as e:
        logger.error("Tile %s: image decode failed", tile.path)
        raise TileUnavailableError(f"Corrupted or undecodable image: {e}", tile) from e

    # rasterio reads (bands, rows, cols); RasterImage is (rows, cols, bands)
    pixels = np.transpose(np.asarray(data, dtype=np.uint8), (1, 2, 0))
    return RasterImage(pixels=pixels)


class _TileHttpAdapter:
    """Shared httpx client handling for tile URL templates.

    Parameters
    ----------
    url_template: str
        Format string with ``{z}``, ``{x}`` and ``{y}`` placeholders.
    timeout_s: float
        Per-request timeout in seconds.
    client: httpx.AsyncClient | None
        Optional shared client. If omitted the adapter creates and owns one.
    """

    def __init__(
        self,
        url_template: str,
        timeout_s: float,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url_template = url_template
        self.timeout_s = timeout_s
        self._client = client
        self._owns_client = client is None

    def tile_url(self, tile: TileAddress) -> str:
        return self.url_template.format(z=tile.z, x=tile.x, y=tile.y)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout_s, follow_redirects=True
            )
        return self._client

    async def _get_bytes(self, tile: TileAddress) -> bytes:
        url = self.tile_url(tile)
        logger.debug("Tile %s: GET %s", tile.path, url)
        try:
            resp = await self._get_client().get(
                url, timeout=httpx.Timeout(self.timeout_s)
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning("Tile %s: HTTP %s", tile.path, e.response.status_code)
            raise TileUnavailableError(
                f"HTTP {e.response.status_code}", tile
            ) from e
        except httpx.HTTPError as e:
            logger.error("Tile %s: request failed (%s)", tile.path, type(e).__name__)
            raise TileUnavailableError(f"Request failed: {e}", tile) from e

        if not resp.content:
            raise TileUnavailableError("Empty response body", tile)
        return resp.content

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self.aclose()
        return False


class TerrariumRasterAdapter(_TileHttpAdapter):
    """RasterProvider fetching Terrarium elevation tiles over HTTP."""

    def __init__(
        self,
        url_template: str | None = None,
        timeout_s: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        settings = get_settings()
        super().__init__(
            url_template or settings.elevation_url_template,
            timeout_s if timeout_s is not None else settings.http_timeout_s,
            client,
        )

    async def fetch_raster(self, tile: TileAddress) -> RasterImage:
        content = await self._get_bytes(tile)
        raster = read_terrarium_png(content, tile)
        logger.debug(
            "Tile %s: read %dx%d raster with %d bands",
            tile.path,
            raster.width,
            raster.height,
            raster.channels,
        )
        return raster


class OpenTopoTextureAdapter(_TileHttpAdapter):
    """TextureProvider returning display tile bytes (appearance only)."""

    def __init__(
        self,
        url_template: str | None = None,
        timeout_s: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        settings = get_settings()
        super().__init__(
            url_template or settings.texture_url_template,
            timeout_s if timeout_s is not None else settings.http_timeout_s,
            client,
        )

    async def fetch_texture(self, tile: TileAddress) -> bytes:
        return await self._get_bytes(tile)
