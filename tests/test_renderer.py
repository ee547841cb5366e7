"""Tests for work splitting, plane merging, progress and full renders.

Tests cover:
- split_work_tasks arithmetic
- merge_planes averaging
- ProgressAggregator reporting
- render() shape, orientation, determinism and argument checks
- Energy balance inside a closed diffuse enclosure
"""

import logging

import numpy as np
import pytest


class TestSplitWorkTasks:
    """Tests for split_work_tasks."""

    def test_remainder_goes_to_first_workers(self):
        from pathtracer.core.renderer import split_work_tasks

        tasks = split_work_tasks(10, 3)
        assert [t.worker_id for t in tasks] == [0, 1, 2]
        assert [t.samples_per_pixel for t in tasks] == [4, 3, 3]

    def test_more_workers_than_samples(self):
        from pathtracer.core.renderer import split_work_tasks

        tasks = split_work_tasks(2, 4)
        assert [t.samples_per_pixel for t in tasks] == [1, 1]

    def test_even_split(self):
        from pathtracer.core.renderer import split_work_tasks

        assert [t.samples_per_pixel for t in split_work_tasks(64, 8)] == [8] * 8

    @pytest.mark.parametrize("thread_count", [0, -3])
    def test_non_positive_thread_count(self, thread_count):
        from pathtracer.core.renderer import split_work_tasks

        tasks = split_work_tasks(5, thread_count)
        assert len(tasks) == 1
        assert tasks[0].samples_per_pixel == 5

    def test_total_preserved(self):
        from pathtracer.core.renderer import split_work_tasks

        for spp in range(1, 40):
            for threads in range(1, 12):
                tasks = split_work_tasks(spp, threads)
                assert sum(t.samples_per_pixel for t in tasks) == spp
                counts = {t.samples_per_pixel for t in tasks}
                assert max(counts) - min(counts) <= 1


class TestMergePlanes:
    """Tests for merge_planes."""

    def test_mean(self):
        from pathtracer.core.renderer import merge_planes

        planes = np.stack(
            [np.full((2, 3, 3), 1.0), np.full((2, 3, 3), 2.0), np.full((2, 3, 3), 6.0)]
        ).astype(np.float32)
        merged = merge_planes(planes)
        assert merged.shape == (2, 3, 3)
        assert merged.dtype == np.float32
        np.testing.assert_allclose(merged, 3.0)

    def test_single_plane_unchanged(self):
        from pathtracer.core.renderer import merge_planes

        plane = np.random.default_rng(0).random((1, 4, 5, 3), dtype=np.float32)
        np.testing.assert_array_equal(merge_planes(plane), plane[0])

    def test_empty_rejected(self):
        from pathtracer.core.renderer import merge_planes

        with pytest.raises(ValueError):
            merge_planes(np.zeros((0, 2, 2, 3), dtype=np.float32))


class TestProgressAggregator:
    """Tests for ProgressAggregator."""

    def test_reports_changes_only(self):
        from pathtracer.core.renderer import ProgressAggregator

        seen = []
        aggregator = ProgressAggregator(100, 2, seen.append)
        aggregator.start()
        aggregator.report(0, 25)
        aggregator.report(1, 25)
        aggregator.report(1, 25)
        aggregator.report(0, 50)
        aggregator.report(1, 50)
        aggregator.close()

        assert seen == [25, 50, 75, 100]
        assert aggregator.last_percent == 100
        assert not aggregator.is_alive()

    def test_percent_rounds_down(self):
        from pathtracer.core.renderer import ProgressAggregator

        seen = []
        aggregator = ProgressAggregator(3, 1, seen.append)
        aggregator.start()
        aggregator.report(0, 1)
        aggregator.report(0, 2)
        aggregator.report(0, 3)
        aggregator.close()
        assert seen == [33, 66, 100]

    def test_without_callback(self, caplog):
        from pathtracer.core.renderer import ProgressAggregator

        with caplog.at_level(logging.INFO, logger="pathtracer.core.renderer"):
            aggregator = ProgressAggregator(10, 1)
            aggregator.start()
            aggregator.report(0, 10)
            aggregator.close()
        assert aggregator.last_percent == 100
        assert "100" in caplog.text


@pytest.fixture
def ball_world(sky_world_factory):
    """A diffuse ball in front of the camera, under a sky."""
    from pathtracer.geometry import SphereGeometry
    from pathtracer.materials import Lambertian
    from pathtracer.scene.elements import SurfaceGeometry

    ball = SurfaceGeometry(
        SphereGeometry((0.0, 0.0, -1.0), 0.5), Lambertian.from_color((0.5, 0.5, 0.5))
    )
    return sky_world_factory([ball])


class TestRender:
    """Tests for render()."""

    def test_shape_and_type(self, ball_world):
        from pathtracer.core.renderer import render

        image = render((8, 6), 2, 3, 10, ball_world, seed=1)
        assert image.shape == (6, 8, 3)
        assert image.dtype == np.float32
        assert np.all(np.isfinite(image))
        assert np.all(image >= 0.0)

    def test_same_seed_same_image(self, ball_world):
        from pathtracer.core.renderer import render

        first = render((8, 8), 2, 4, 10, ball_world, seed=7)
        second = render((8, 8), 2, 4, 10, ball_world, seed=7)
        np.testing.assert_array_equal(first, second)

    def test_banding_does_not_change_image(self, ball_world):
        from pathtracer.core.renderer import render

        banded = render((8, 8), 2, 2, 10, ball_world, seed=7, band_rows=1)
        whole = render((8, 8), 2, 2, 10, ball_world, seed=7, band_rows=8)
        np.testing.assert_array_equal(banded, whole)

    def test_different_seed_different_image(self, ball_world):
        from pathtracer.core.renderer import render

        first = render((8, 8), 1, 2, 10, ball_world, seed=1)
        second = render((8, 8), 1, 2, 10, ball_world, seed=2)
        assert not np.array_equal(first, second)

    def test_row_zero_is_top(self, sky_world_factory):
        from pathtracer.core.renderer import render
        from pathtracer.geometry import SphereGeometry
        from pathtracer.materials import Lambertian
        from pathtracer.scene.elements import SurfaceGeometry

        # Only a ball behind the camera: the image is pure sky
        behind = SurfaceGeometry(
            SphereGeometry((0.0, 0.0, 5.0), 0.5), Lambertian.from_color((0.5, 0.5, 0.5))
        )
        image = render((4, 10), 1, 2, 5, sky_world_factory([behind]))
        # The sky is bluer (less red) towards the zenith
        assert image[0, :, 0].mean() < image[-1, :, 0].mean()
        np.testing.assert_allclose(image[:, :, 2], 1.0, atol=1e-6)

    def test_normals_mode(self, ball_world):
        from pathtracer.core.integrator import RenderMode
        from pathtracer.core.renderer import render

        image = render((9, 9), 1, 4, 10, ball_world, RenderMode.NORMALS)
        np.testing.assert_allclose(image[4, 4], (0.5, 0.5, 1.0), atol=0.06)

    def test_progress_reaches_100(self, ball_world):
        from pathtracer.core.renderer import render

        seen = []
        render((4, 8), 3, 5, 5, ball_world, progress=seen.append, band_rows=2)
        assert seen[-1] == 100
        assert seen == sorted(seen)

    def test_thread_count_below_one(self, ball_world, caplog):
        from pathtracer.core.renderer import render

        with caplog.at_level(logging.WARNING, logger="pathtracer.core.renderer"):
            image = render((4, 4), 0, 2, 5, ball_world)
        assert image.shape == (4, 4, 3)
        assert "thread_count" in caplog.text

    @pytest.mark.parametrize(
        "size, spp, depth",
        [((0, 4), 1, 1), ((4, 0), 1, 1), ((4, 4), 0, 1), ((4, 4), 1, 0)],
    )
    def test_invalid_arguments(self, ball_world, size, spp, depth):
        from pathtracer.core.renderer import render

        with pytest.raises(ValueError):
            render(size, 1, spp, depth, ball_world)

    def test_more_samples_converge(self, ball_world):
        from pathtracer.core.renderer import render

        reference = render((6, 6), 4, 256, 10, ball_world, seed=11)
        rough = render((6, 6), 4, 8, 10, ball_world, seed=12)
        fine = render((6, 6), 4, 64, 10, ball_world, seed=13)
        assert np.abs(fine - reference).mean() < np.abs(rough - reference).mean()


class TestClosedEnclosure:
    """Energy balance inside a closed diffuse sphere lit by an emitting ball.

    A camera inside a sphere of radius R with albedo rho, around a centred
    emitter of radius r and radiance Le, sees the same wall radiance
    everywhere. Every wall bounce reaches the emitter with probability
    s = (r / R)^2 (the cosine-weighted solid angle of the ball), so with an
    unlimited depth budget

        L = rho * s * Le / (1 - rho * (1 - s)).

    With a budget of three only a single wall bounce can reach the emitter,
    which gives rho * s * Le.
    """

    OUTER_RADIUS = 2.0
    INNER_RADIUS = 1.0
    ALBEDO = 0.5
    EMISSION = 4.0

    def _world(self):
        from pathtracer.camera import Camera
        from pathtracer.geometry import SphereGeometry
        from pathtracer.materials import DiffuseLight, Lambertian
        from pathtracer.scene.background import SolidBackground
        from pathtracer.scene.elements import BuiltBVH, SurfaceGeometry
        from pathtracer.scene.world import World

        wall = SurfaceGeometry(
            SphereGeometry((0.0, 0.0, 0.0), self.OUTER_RADIUS),
            Lambertian.from_color((self.ALBEDO,) * 3),
        )
        lamp = SurfaceGeometry(
            SphereGeometry((0.0, 0.0, 0.0), self.INNER_RADIUS),
            DiffuseLight.from_color((self.EMISSION,) * 3),
        )
        # Looking away from the lamp: every camera ray lands on the wall
        camera = Camera((0.0, 0.0, 1.5), (0.0, 0.0, 2.0), vfov=60.0)
        return World(camera, SolidBackground((0.0, 0.0, 0.0)), BuiltBVH.build([wall, lamp]))

    def _expected(self):
        s = (self.INNER_RADIUS / self.OUTER_RADIUS) ** 2
        return self.ALBEDO * s * self.EMISSION / (1.0 - self.ALBEDO * (1.0 - s))

    def test_converges_to_reference(self):
        from pathtracer.core.renderer import render

        image = render((16, 16), 4, 160, 50, self._world(), seed=17)
        assert np.all(np.isfinite(image))
        # 40960 paths with a per-path standard deviation of about 0.77
        assert image.mean() == pytest.approx(self._expected(), rel=0.03)
        # The enclosure is grey: all channels agree exactly
        np.testing.assert_array_equal(image[..., 0], image[..., 1])
        np.testing.assert_array_equal(image[..., 0], image[..., 2])

    def test_depth_budget_of_three(self):
        from pathtracer.core.renderer import render

        image = render((16, 16), 4, 160, 3, self._world(), seed=18)
        s = (self.INNER_RADIUS / self.OUTER_RADIUS) ** 2
        assert image.mean() == pytest.approx(self.ALBEDO * s * self.EMISSION, rel=0.03)

    def test_mean_is_stable_across_sample_counts(self):
        from pathtracer.core.renderer import render

        world = self._world()
        expected = self._expected()
        for spp in (64, 256):
            image = render((8, 8), 2, spp, 50, world, seed=spp)
            assert image.mean() == pytest.approx(expected, rel=0.05)
