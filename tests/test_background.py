"""Unit tests for background radiance."""

import numpy as np
import taichi as ti


def _sample(directions):
    from pathtracer.scene.background import sample_background

    directions = np.asarray(directions, dtype=np.float32).reshape(-1, 3)
    n = len(directions)
    d = ti.Vector.field(3, dtype=ti.f32, shape=n)
    d.from_numpy(directions)
    colors = ti.Vector.field(3, dtype=ti.f32, shape=n)

    @ti.kernel
    def test_kernel():
        for i in range(n):
            colors[i] = sample_background(d[i])

    test_kernel()
    return colors.to_numpy()


class TestBackground:
    """Tests for solid and sky backgrounds."""

    def test_solid(self):
        from pathtracer.scene.background import SolidBackground, setup_background

        setup_background(SolidBackground((0.2, 0.4, 0.6)))
        colors = _sample([(0.0, 1.0, 0.0), (1.0, 0.0, 0.0), (0.0, -1.0, 0.0)])
        np.testing.assert_allclose(colors, np.tile((0.2, 0.4, 0.6), (3, 1)), atol=1e-6)

    def test_default_solid_is_black(self):
        from pathtracer.scene.background import SolidBackground

        assert SolidBackground().color == (0.0, 0.0, 0.0)

    def test_sky_gradient(self):
        from pathtracer.scene.background import SkyBackground, setup_background

        setup_background(SkyBackground())
        colors = _sample([(0.0, 1.0, 0.0), (1.0, 0.0, 0.0), (0.0, -1.0, 0.0)])
        np.testing.assert_allclose(colors[0], (0.5, 0.7, 1.0), atol=1e-6)
        np.testing.assert_allclose(colors[1], (0.75, 0.85, 1.0), atol=1e-6)
        np.testing.assert_allclose(colors[2], (1.0, 1.0, 1.0), atol=1e-6)

    def test_sky_normalizes_direction(self):
        from pathtracer.scene.background import SkyBackground, setup_background

        setup_background(SkyBackground())
        colors = _sample([(0.0, 5.0, 0.0), (0.0, 1.0, 0.0)])
        np.testing.assert_allclose(colors[0], colors[1], atol=1e-6)
