"""Unit tests for sphere intersection.

Tests cover:
- Ray hitting sphere from outside (front face)
- Ray missing sphere
- Ray starting inside sphere (back face)
- Through-centre distance |o - c| - r for arbitrary placements
- Host-side validation, bounds and transform baking
"""

import math

import numpy as np
import pytest
import taichi as ti


def _hit(origin, direction, center, radius, t_min=0.001, t_max=1000.0):
    from pathtracer.geometry.sphere import Sphere, hit_sphere

    out_hit = ti.field(dtype=ti.i32, shape=())
    out_t = ti.field(dtype=ti.f32, shape=())
    out_normal = ti.Vector.field(3, dtype=ti.f32, shape=())
    out_front = ti.field(dtype=ti.i32, shape=())
    out_uv = ti.Vector.field(2, dtype=ti.f32, shape=())

    @ti.kernel
    def test_kernel(
        o: ti.math.vec3, d: ti.math.vec3, c: ti.math.vec3, r: ti.f32, lo: ti.f32, hi: ti.f32
    ):
        record = hit_sphere(o, d, Sphere(center=c, radius=r), lo, hi)
        out_hit[None] = record.hit
        out_t[None] = record.t
        out_normal[None] = record.normal
        out_front[None] = record.front_face
        out_uv[None] = record.uv

    test_kernel(origin, direction, center, radius, t_min, t_max)
    return {
        "hit": out_hit[None],
        "t": out_t[None],
        "normal": out_normal[None].to_numpy(),
        "front_face": out_front[None],
        "uv": out_uv[None].to_numpy(),
    }


class TestSphereGeometry:
    """Tests for the host-side SphereGeometry."""

    def test_non_positive_radius_rejected(self):
        from pathtracer.geometry.sphere import SphereGeometry

        with pytest.raises(ValueError):
            SphereGeometry((0, 0, 0), 0.0)
        with pytest.raises(ValueError):
            SphereGeometry((0, 0, 0), -1.0)

    def test_bounding_box(self):
        from pathtracer.geometry.sphere import SphereGeometry

        box = SphereGeometry((1, 2, 3), 0.5).bounding_box()
        assert box.min == (0.5, 1.5, 2.5)
        assert box.max == (1.5, 2.5, 3.5)

    def test_partial_apply_bakes_everything(self):
        from pathtracer.geometry.sphere import SphereGeometry
        from pathtracer.geometry.transform import Transformation

        transform = Transformation.rotation(90.0).translate((0.0, 1.0, 0.0))
        baked, residual = SphereGeometry((1, 0, 0), 2.0).partial_apply(transform)
        assert residual is None
        np.testing.assert_allclose(baked.center, (0.0, 1.0, -1.0), atol=1e-9)
        assert baked.radius == 2.0


class TestSphereIntersection:
    """Tests for ray-sphere intersection."""

    def test_direct_hit(self):
        result = _hit((0.0, 0.0, 5.0), (0.0, 0.0, -1.0), (0.0, 0.0, 0.0), 1.0)
        assert result["hit"] == 1
        assert result["t"] == pytest.approx(4.0, abs=1e-5)
        np.testing.assert_allclose(result["normal"], (0.0, 0.0, 1.0), atol=1e-5)
        assert result["front_face"] == 1

    def test_miss(self):
        result = _hit((5.0, 0.0, 0.0), (0.0, 0.0, -1.0), (0.0, 0.0, 0.0), 1.0)
        assert result["hit"] == 0

    def test_inside_hits_back_face(self):
        result = _hit((0.0, 0.0, 0.0), (0.0, 0.0, 1.0), (0.0, 0.0, 0.0), 1.0)
        assert result["hit"] == 1
        assert result["t"] == pytest.approx(1.0, abs=1e-5)
        # Normal faces the ray, against the outward normal
        np.testing.assert_allclose(result["normal"], (0.0, 0.0, -1.0), atol=1e-5)
        assert result["front_face"] == 0

    def test_behind_ray(self):
        result = _hit((0.0, 0.0, 5.0), (0.0, 0.0, 1.0), (0.0, 0.0, 0.0), 1.0)
        assert result["hit"] == 0

    def test_t_max_excludes_hit(self):
        result = _hit((0.0, 0.0, 5.0), (0.0, 0.0, -1.0), (0.0, 0.0, 0.0), 1.0, t_max=3.5)
        assert result["hit"] == 0

    @pytest.mark.parametrize("seed", range(5))
    def test_through_center_distance(self, seed):
        rng = np.random.default_rng(seed)
        center = rng.uniform(-10, 10, 3)
        radius = rng.uniform(0.5, 3.0)
        origin = center + rng.normal(size=3) * 20.0 + 10.0
        direction = (center - origin) / np.linalg.norm(center - origin)

        result = _hit(tuple(origin), tuple(direction), tuple(center), radius)
        expected = np.linalg.norm(origin - center) - radius
        assert result["hit"] == 1
        assert result["t"] == pytest.approx(expected, rel=1e-4)
        assert np.linalg.norm(result["normal"]) == pytest.approx(1.0, abs=1e-5)

    @pytest.mark.parametrize("distance", [40.0, 400.0])
    def test_small_distant_sphere_stays_accurate(self, distance):
        center = np.array([3.0, -2.0, 1.0])
        radius = 0.5
        offset = np.array([2.0, 3.0, -6.0]) / 7.0
        origin = center + offset * distance
        direction = -offset

        result = _hit(tuple(origin), tuple(direction), tuple(center), radius, t_max=1e5)
        assert result["hit"] == 1
        assert result["t"] == pytest.approx(distance - radius, rel=1e-5)
        assert np.linalg.norm(result["normal"]) == pytest.approx(1.0, abs=1e-5)
        np.testing.assert_allclose(result["normal"], offset, atol=1e-3)

    def test_uv_in_unit_square(self):
        result = _hit((3.0, 2.0, 5.0), tuple(np.array([-3.0, -2.0, -5.0]) / math.sqrt(38.0)), (0, 0, 0), 1.0)
        assert result["hit"] == 1
        assert 0.0 <= result["uv"][0] <= 1.0
        assert 0.0 <= result["uv"][1] <= 1.0
