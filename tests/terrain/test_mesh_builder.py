"""Tests for the Mesh Displacement Builder and the TerrainMesh entity.

Includes the end-to-end Everest scenario (locate -> decode -> build) on a
synthetic sea-level raster.
"""

from __future__ import annotations

import numpy as np
import pytest

from domain.terrain import services
from domain.terrain.errors import (
    DimensionMismatchError,
    InvalidInputError,
    MeshReleasedError,
)
from domain.terrain.services import (
    DEFAULT_WORLD_SIZE,
    build_mesh,
    compute_vertex_normals,
    decode,
    ground_size_meters,
    locate,
    plane_grid,
)
from domain.terrain.value_objects import ElevationGrid, GridIndex, RasterImage, TileAddress
from tests.raster_helpers import gradient_pixels

TILE = TileAddress(x=3037, y=1716, z=12)
SIDE = 256
SEGMENTS = SIDE - 1


# ---------------------------------------------------------------------------
# Test Fixture Helpers - Create ElevationGrids directly (no I/O)
# ---------------------------------------------------------------------------
def create_grid(data: np.ndarray) -> ElevationGrid:
    return ElevationGrid(tile=TILE, data=data)


def create_unique_grid() -> ElevationGrid:
    """256x256 grid where height = row * 1000 + col (every sample distinct)."""
    rows, cols = np.indices((SIDE, SIDE))
    return create_grid((rows * 1000 + cols).astype(np.float64))


def create_random_grid(seed: int = 42) -> ElevationGrid:
    rng = np.random.default_rng(seed)
    return create_grid(rng.uniform(-500, 8848, size=(SIDE, SIDE)))


# ===========================================================================
# Vertex count and layout
# ===========================================================================
@pytest.mark.parametrize(
    "grid",
    [create_grid(np.zeros((SIDE, SIDE))), create_random_grid(), create_unique_grid()],
    ids=["flat", "random", "unique"],
)
def test_vertex_count_independent_of_elevations(grid):
    mesh = build_mesh(grid, ground_size_m=8639.6)

    assert mesh.vertex_count == SIDE * SIDE
    assert mesh.positions.shape == (SIDE * SIDE, 3)
    assert mesh.normals.shape == (SIDE * SIDE, 3)
    assert mesh.triangle_count == 2 * SEGMENTS * SEGMENTS
    assert mesh.segments == SEGMENTS
    assert mesh.tile == TILE


def test_planar_layout_corners_and_step():
    mesh = build_mesh(create_grid(np.zeros((SIDE, SIDE))), ground_size_m=1000.0)
    half = DEFAULT_WORLD_SIZE / 2
    step = DEFAULT_WORLD_SIZE / SEGMENTS

    assert mesh.vertex(GridIndex(row=0, col=0))[:2] == pytest.approx((-half, half))
    assert mesh.vertex(GridIndex(row=0, col=255))[:2] == pytest.approx((half, half))
    assert mesh.vertex(GridIndex(row=255, col=0))[:2] == pytest.approx((-half, -half))
    assert mesh.vertex(GridIndex(row=255, col=255))[:2] == pytest.approx((half, -half))
    assert mesh.vertex(GridIndex(row=3, col=7))[:2] == pytest.approx(
        (-half + 7 * step, half - 3 * step), abs=1e-5
    )


def test_plane_grid_single_cell():
    positions, indices = plane_grid(2.0, 1)

    np.testing.assert_allclose(
        positions,
        [[-1.0, 1.0, 0.0], [1.0, 1.0, 0.0], [-1.0, -1.0, 0.0], [1.0, -1.0, 0.0]],
    )
    assert indices.tolist() == [[0, 2, 1], [2, 3, 1]]


# ===========================================================================
# Vertex-to-sample correspondence
# ===========================================================================
def test_vertex_i_receives_sample_i():
    grid = create_unique_grid()
    ground = 5000.0
    mesh = build_mesh(grid, ground_size_m=ground)
    scale = DEFAULT_WORLD_SIZE / ground

    np.testing.assert_allclose(mesh.heights(), grid.values() * scale, rtol=1e-6)
    for row, col in [(0, 0), (0, 255), (1, 0), (128, 64), (255, 255)]:
        index = GridIndex(row=row, col=col)
        assert mesh.vertex(index)[2] == pytest.approx(grid.at(index) * scale, rel=1e-6)


def test_decoded_pixel_feeds_vertex_at_same_grid_index():
    # Pixel (row, col) decodes to row + col/256 meters; with world == ground
    # size the scale is 1, so the vertex height reveals its source pixel.
    grid = decode(TILE, RasterImage(pixels=gradient_pixels()))
    mesh = build_mesh(grid, ground_size_m=DEFAULT_WORLD_SIZE)

    for row, col in [(0, 1), (1, 0), (200, 13), (255, 254)]:
        vertex = mesh.vertex(GridIndex(row=row, col=col))
        assert vertex[2] == pytest.approx(row + col / 256, abs=1e-4)
        step = DEFAULT_WORLD_SIZE / SEGMENTS
        assert vertex[0] == pytest.approx(-5.0 + col * step, abs=1e-5)
        assert vertex[1] == pytest.approx(5.0 - row * step, abs=1e-5)


def test_decoder_and_builder_share_grid_index_layout(monkeypatch):
    sides = []
    real_rows_cols = GridIndex.rows_cols

    def _recording_rows_cols(side):
        sides.append(side)
        return real_rows_cols(side)

    monkeypatch.setattr(GridIndex, "rows_cols", staticmethod(_recording_rows_cols))
    grid = decode(TILE, RasterImage(pixels=gradient_pixels(4)), size=4)
    build_mesh(grid, ground_size_m=10.0, world_size=10.0, segments=3)

    assert sides == [4, 4]


def test_accepts_flat_sequence():
    samples = [float(i) for i in range(9)]
    mesh = build_mesh(samples, ground_size_m=10.0, world_size=10.0, segments=2)

    assert mesh.heights().tolist() == pytest.approx(samples)
    assert mesh.tile is None


# ===========================================================================
# Scaling
# ===========================================================================
def test_scale_height_is_world_over_ground():
    mesh = build_mesh(create_grid(np.full((SIDE, SIDE), 100.0)), ground_size_m=8000.0)

    assert mesh.scale_height == pytest.approx(10.0 / 8000.0)
    np.testing.assert_allclose(mesh.heights(), 0.125, rtol=1e-6)


def test_scaling_invariance():
    base = create_random_grid()
    k = 3.5
    scaled = create_grid(base.data * k)

    mesh = build_mesh(base, ground_size_m=4000.0)
    mesh_k = build_mesh(scaled, ground_size_m=4000.0)

    np.testing.assert_allclose(mesh_k.heights(), mesh.heights() * k, rtol=1e-5)
    np.testing.assert_array_equal(mesh_k.positions[:, :2], mesh.positions[:, :2])
    assert mesh_k.scale_height == mesh.scale_height


def test_negative_elevations_displace_downward():
    mesh = build_mesh(create_grid(np.full((SIDE, SIDE), -400.0)), ground_size_m=1000.0)
    assert np.all(mesh.heights() < 0)


# ===========================================================================
# Normals
# ===========================================================================
def test_flat_surface_normals_point_up():
    mesh = build_mesh(create_grid(np.zeros((SIDE, SIDE))), ground_size_m=1000.0)
    np.testing.assert_allclose(
        mesh.normals, np.tile([0.0, 0.0, 1.0], (SIDE * SIDE, 1)), atol=1e-6
    )


def test_normals_follow_displaced_surface():
    # Heights chosen so the displaced mesh is the plane z = 0.5 * x
    step = DEFAULT_WORLD_SIZE / SEGMENTS
    _, cols = np.indices((SIDE, SIDE))
    x = -DEFAULT_WORLD_SIZE / 2 + cols * step
    grid = create_grid(0.5 * x)

    mesh = build_mesh(grid, ground_size_m=DEFAULT_WORLD_SIZE)

    expected = np.array([-0.5, 0.0, 1.0]) / np.sqrt(1.25)
    np.testing.assert_allclose(
        mesh.normals, np.tile(expected, (SIDE * SIDE, 1)), atol=1e-5
    )


def test_normals_are_unit_length():
    mesh = build_mesh(create_random_grid(), ground_size_m=500.0)
    np.testing.assert_allclose(np.linalg.norm(mesh.normals, axis=1), 1.0, atol=1e-5)


def test_compute_vertex_normals_single_triangle():
    positions = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [5.0, 5.0, 5.0]])
    indices = np.array([[0, 1, 2]])

    normals = compute_vertex_normals(positions, indices)

    np.testing.assert_allclose(normals[:3], [[0, 0, 1]] * 3)
    # Vertex 3 belongs to no triangle
    np.testing.assert_allclose(normals[3], [0, 0, 0])


# ===========================================================================
# Failure modes
# ===========================================================================
def test_dimension_mismatch_for_smaller_grid():
    grid = create_grid(np.zeros((128, 128)))

    with pytest.raises(DimensionMismatchError) as exc_info:
        build_mesh(grid, ground_size_m=1000.0)

    assert exc_info.value.expected == SIDE * SIDE
    assert exc_info.value.actual == 128 * 128


def test_dimension_mismatch_before_any_vertex(monkeypatch):
    def _fail(*args, **kwargs):
        raise AssertionError("mesh generated before dimension check")

    monkeypatch.setattr(services, "plane_grid", _fail)

    with pytest.raises(DimensionMismatchError):
        build_mesh([0.0] * 10, ground_size_m=1000.0)


@pytest.mark.parametrize("ground", [0.0, -1.0, float("nan"), float("inf")])
def test_rejects_invalid_ground_size(ground):
    with pytest.raises(InvalidInputError):
        build_mesh(create_grid(np.zeros((SIDE, SIDE))), ground_size_m=ground)


def test_rejects_invalid_world_size_and_segments():
    grid = create_grid(np.zeros((SIDE, SIDE)))
    with pytest.raises(InvalidInputError):
        build_mesh(grid, ground_size_m=1000.0, world_size=0.0)
    with pytest.raises(InvalidInputError):
        build_mesh(grid, ground_size_m=1000.0, segments=0)


def test_rejects_non_finite_samples():
    with pytest.raises(InvalidInputError):
        build_mesh([0.0, float("nan"), 0.0, 0.0], ground_size_m=1.0, segments=1)


@pytest.mark.parametrize(
    "samples",
    [[[0.0, 1.0], [2.0]], ["a", "b", "c", "d"]],
    ids=["ragged", "non-numeric"],
)
def test_rejects_irregular_samples(samples):
    with pytest.raises(InvalidInputError):
        build_mesh(samples, ground_size_m=1000.0, segments=1)


# ===========================================================================
# TerrainMesh lifecycle
# ===========================================================================
def test_release_drops_buffers():
    mesh = build_mesh(np.zeros((3, 3)), ground_size_m=1.0, segments=2)
    assert not mesh.released

    mesh.release()
    mesh.release()  # idempotent

    assert mesh.released
    with pytest.raises(MeshReleasedError):
        _ = mesh.positions
    with pytest.raises(MeshReleasedError):
        mesh.heights()


def test_context_manager_releases():
    with build_mesh(np.zeros((3, 3)), ground_size_m=1.0, segments=2) as mesh:
        assert mesh.vertex_count == 9
    assert mesh.released


# ===========================================================================
# End-to-end: Everest on a sea-level raster
# ===========================================================================
def test_everest_sea_level_scenario(raster_factory):
    lat, lon, zoom = 27.9881, 86.9250, 12

    tile = locate(lat, lon, zoom)
    ground = ground_size_meters(lat, zoom)
    grid = decode(tile, raster_factory((128, 0, 0)))
    mesh = build_mesh(grid, ground)

    assert tile == locate(lat, lon, zoom)
    assert ground > 0
    assert mesh.vertex_count == SIDE * SIDE
    assert np.all(mesh.heights() == 0.0)
    assert mesh.tile == tile
