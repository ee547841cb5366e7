"""Unit tests for the camera.

Tests cover:
- Configuration validation
- Basis and viewport computed by setup_camera
- Primary ray directions, thin-lens focus and shutter times
"""

import numpy as np
import pytest
import taichi as ti


def _rays(coords, seed=0):
    from pathtracer.camera import get_ray
    from pathtracer.core.sampler import lane_state

    coords = np.asarray(coords, dtype=np.float32).reshape(-1, 2)
    n = len(coords)
    st = ti.Vector.field(2, dtype=ti.f32, shape=n)
    st.from_numpy(coords)
    origins = ti.Vector.field(3, dtype=ti.f32, shape=n)
    directions = ti.Vector.field(3, dtype=ti.f32, shape=n)
    times = ti.field(dtype=ti.f32, shape=n)

    @ti.kernel
    def test_kernel(seed: ti.u32):
        for i in range(n):
            state = lane_state(seed, i)
            state, o, d, t = get_ray(state, st[i][0], st[i][1])
            origins[i] = o
            directions[i] = d
            times[i] = t

    test_kernel(seed)
    return origins.to_numpy(), directions.to_numpy(), times.to_numpy()


class TestCameraValidation:
    """Tests for Camera parameter checks."""

    @pytest.mark.parametrize(
        "overrides",
        [
            {"vfov": 0.0},
            {"vfov": 180.0},
            {"aspect_ratio": 0.0},
            {"aperture": -0.1},
            {"focus_distance": 0.0},
            {"time0": 1.0, "time1": 0.5},
            {"lookat": (0.0, 0.0, 0.0)},
        ],
    )
    def test_invalid(self, overrides):
        from pathtracer.camera import Camera

        params = {"lookfrom": (0.0, 0.0, 0.0), "lookat": (0.0, 0.0, -1.0)}
        params.update(overrides)
        with pytest.raises(ValueError):
            Camera(**params)

    def test_vup_parallel_to_view(self):
        from pathtracer.camera import Camera, setup_camera

        camera = Camera((0.0, 0.0, 0.0), (0.0, 5.0, 0.0), vup=(0.0, 1.0, 0.0))
        with pytest.raises(ValueError):
            setup_camera(camera)


class TestCameraSetup:
    """Tests for setup_camera."""

    def test_basis_and_viewport(self):
        from pathtracer.camera import Camera, get_camera_info, setup_camera

        setup_camera(Camera((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), vfov=90.0, aspect_ratio=2.0))
        info = get_camera_info()
        np.testing.assert_allclose(info["origin"], (0.0, 0.0, 0.0))
        np.testing.assert_allclose(info["u"], (1.0, 0.0, 0.0), atol=1e-6)
        np.testing.assert_allclose(info["v"], (0.0, 1.0, 0.0), atol=1e-6)
        np.testing.assert_allclose(info["w"], (0.0, 0.0, 1.0), atol=1e-6)
        np.testing.assert_allclose(info["horizontal"], (4.0, 0.0, 0.0), atol=1e-5)
        np.testing.assert_allclose(info["vertical"], (0.0, 2.0, 0.0), atol=1e-5)
        np.testing.assert_allclose(info["lower_left"], (-2.0, -1.0, -1.0), atol=1e-5)
        assert info["lens_radius"] == (0.0,)
        assert info["shutter"] == (0.0, 1.0)


class TestGetRay:
    """Tests for primary ray generation."""

    def test_pinhole_directions(self):
        from pathtracer.camera import Camera, setup_camera

        setup_camera(Camera((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), vfov=90.0))
        origins, directions, _ = _rays([(0.5, 0.5), (0.0, 0.0), (1.0, 1.0)])
        np.testing.assert_allclose(origins, 0.0, atol=1e-6)
        np.testing.assert_allclose(directions[0], (0.0, 0.0, -1.0), atol=1e-6)
        np.testing.assert_allclose(directions[1], np.array([-1.0, -1.0, -1.0]) / np.sqrt(3.0), atol=1e-6)
        np.testing.assert_allclose(directions[2], np.array([1.0, 1.0, -1.0]) / np.sqrt(3.0), atol=1e-6)

    def test_thin_lens_converges_on_focus_plane(self):
        from pathtracer.camera import Camera, setup_camera

        setup_camera(
            Camera((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), vfov=60.0, aperture=2.0, focus_distance=3.0)
        )
        origins, directions, _ = _rays(np.tile((0.5, 0.5), (64, 1)), seed=3)
        # Origins spread over the lens disk in the z = 0 plane
        assert np.all(np.abs(origins[:, 2]) < 1e-6)
        assert np.all(np.linalg.norm(origins[:, :2], axis=1) <= 1.0 + 1e-5)
        assert np.ptp(origins[:, 0]) > 0.1
        # Every ray passes through the focus point
        t = -3.0 / directions[:, 2]
        points = origins + t[:, None] * directions
        np.testing.assert_allclose(points, np.tile((0.0, 0.0, -3.0), (64, 1)), atol=1e-4)

    def test_shutter_times(self):
        from pathtracer.camera import Camera, setup_camera

        setup_camera(Camera((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), time0=0.25, time1=0.75))
        _, _, times = _rays(np.tile((0.5, 0.5), (256, 1)), seed=4)
        assert np.all((times >= 0.25) & (times < 0.75))
        assert np.ptp(times) > 0.3

    def test_instant_shutter(self):
        from pathtracer.camera import Camera, setup_camera

        setup_camera(Camera((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), time0=0.5, time1=0.5))
        _, _, times = _rays(np.tile((0.5, 0.5), (16, 1)))
        np.testing.assert_array_equal(times, 0.5)
