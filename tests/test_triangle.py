"""Unit tests for the triangle primitive.

Tests cover:
- Interior hits with interpolated normals and uvs
- Misses outside the edges and for parallel rays
- Flat triangle construction and transform baking
"""

import numpy as np
import pytest
import taichi as ti


def _hit(origin, direction, triangle, t_min=0.001, t_max=1000.0):
    from pathtracer.geometry.triangle import hit_triangle

    out_hit = ti.field(dtype=ti.i32, shape=())
    out_t = ti.field(dtype=ti.f32, shape=())
    out_normal = ti.Vector.field(3, dtype=ti.f32, shape=())
    out_uv = ti.Vector.field(2, dtype=ti.f32, shape=())

    positions = ti.Vector.field(3, dtype=ti.f32, shape=3)
    normals = ti.Vector.field(3, dtype=ti.f32, shape=3)
    uvs = ti.Vector.field(2, dtype=ti.f32, shape=3)
    for i in range(3):
        positions[i] = triangle.positions[i]
        normals[i] = triangle.normals[i]
        uvs[i] = triangle.uvs[i]

    @ti.kernel
    def test_kernel(o: ti.math.vec3, d: ti.math.vec3, a: ti.f32, b: ti.f32):
        record = hit_triangle(
            o, d,
            positions[0], positions[1], positions[2],
            normals[0], normals[1], normals[2],
            uvs[0], uvs[1], uvs[2],
            a, b,
        )
        out_hit[None] = record.hit
        out_t[None] = record.t
        out_normal[None] = record.normal
        out_uv[None] = record.uv

    test_kernel(origin, direction, t_min, t_max)
    return {
        "hit": out_hit[None],
        "t": out_t[None],
        "normal": out_normal[None].to_numpy(),
        "uv": out_uv[None].to_numpy(),
    }


@pytest.fixture
def unit_triangle():
    from pathtracer.geometry.triangle import TriangleGeometry

    # In the z = 0 plane, counter-clockwise seen from +z
    return TriangleGeometry.flat((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0))


class TestTriangleGeometry:
    """Tests for the host-side TriangleGeometry."""

    def test_flat_normal(self, unit_triangle):
        for normal in unit_triangle.normals:
            assert normal == (0.0, 0.0, 1.0)

    def test_degenerate_rejected(self):
        from pathtracer.geometry.triangle import TriangleGeometry

        with pytest.raises(ValueError):
            TriangleGeometry.flat((0, 0, 0), (1, 1, 1), (2, 2, 2))

    def test_bounding_box_padded(self, unit_triangle):
        box = unit_triangle.bounding_box()
        assert box.max[2] > box.min[2]
        assert box.min[0] == 0.0 and box.max[0] == 1.0

    def test_partial_apply_bakes_vertices(self, unit_triangle):
        from pathtracer.geometry.transform import Transformation

        transform = Transformation.rotation(90.0).translate((0.0, 0.0, 5.0))
        baked, residual = unit_triangle.partial_apply(transform)
        assert residual is None
        np.testing.assert_allclose(baked.positions[1], (0.0, 0.0, 4.0), atol=1e-9)
        np.testing.assert_allclose(baked.normals[0], (1.0, 0.0, 0.0), atol=1e-9)
        assert baked.uvs == unit_triangle.uvs


class TestTriangleIntersection:
    """Tests for ray-triangle intersection."""

    def test_interior_hit(self, unit_triangle):
        result = _hit((0.25, 0.25, 3.0), (0.0, 0.0, -1.0), unit_triangle)
        assert result["hit"] == 1
        assert result["t"] == pytest.approx(3.0)
        np.testing.assert_allclose(result["normal"], (0.0, 0.0, 1.0), atol=1e-6)
        # Default uvs are (0,0), (1,0), (0,1): uv equals (w1, w2)
        np.testing.assert_allclose(result["uv"], (0.25, 0.25), atol=1e-5)

    def test_hit_from_behind_flips_normal(self, unit_triangle):
        result = _hit((0.25, 0.25, -3.0), (0.0, 0.0, 1.0), unit_triangle)
        assert result["hit"] == 1
        np.testing.assert_allclose(result["normal"], (0.0, 0.0, -1.0), atol=1e-6)

    def test_outside_edge_misses(self, unit_triangle):
        result = _hit((0.75, 0.75, 3.0), (0.0, 0.0, -1.0), unit_triangle)
        assert result["hit"] == 0

    def test_parallel_misses(self, unit_triangle):
        result = _hit((-1.0, 0.25, 0.0), (1.0, 0.0, 0.0), unit_triangle)
        assert result["hit"] == 0

    def test_interpolated_normal(self):
        from pathtracer.geometry.triangle import TriangleGeometry

        s = 1.0 / np.sqrt(2.0)
        triangle = TriangleGeometry(
            positions=((0, 0, 0), (1, 0, 0), (0, 1, 0)),
            normals=((0, 0, 1), (s, 0, s), (0, s, s)),
        )
        result = _hit((1.0 / 3.0, 1.0 / 3.0, 2.0), (0.0, 0.0, -1.0), triangle)
        assert result["hit"] == 1
        expected = np.array([s / 3.0, s / 3.0, (1.0 + 2.0 * s) / 3.0])
        expected /= np.linalg.norm(expected)
        np.testing.assert_allclose(result["normal"], expected, atol=1e-5)
