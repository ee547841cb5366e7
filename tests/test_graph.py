"""Unit tests for the scene graph builder and elements.

Tests cover:
- Transform accumulation and baking into leaves
- Residual transforms and animation wrappers
- Light provider selection
- Instances and shared sub-assemblies
- Error cases: unknown handles, cycles, empty graphs, bad densities
- Element bounding boxes
"""

import numpy as np
import pytest


@pytest.fixture
def white():
    from pathtracer.materials import Lambertian

    return Lambertian.from_color((0.73, 0.73, 0.73))


class TestFlattening:
    """Tests for SceneGraph.finish."""

    def test_translation_is_baked(self, white):
        from pathtracer.scene.elements import SurfaceGeometry
        from pathtracer.scene.graph import SceneGraph

        graph = SceneGraph()
        root = graph.add_group()
        box = graph.add_box((1.0, 1.0, 1.0), white, root)
        graph.translate(box, (2.0, 0.0, 0.0))
        graph.translate(root, (0.0, 3.0, 0.0))

        scene = graph.finish(root)
        (element,) = scene.elements
        assert isinstance(element, SurfaceGeometry)
        assert element.geometry.aabb.min == (2.0, 3.0, 0.0)
        assert element.geometry.aabb.max == (3.0, 4.0, 1.0)

    def test_rotation_of_box_leaves_residual(self, white):
        from pathtracer.scene.elements import SurfaceGeometry, Transformed
        from pathtracer.scene.graph import SceneGraph

        graph = SceneGraph()
        root = graph.add_group()
        box = graph.add_box((165.0, 330.0, 165.0), white, root)
        graph.rotate_around_up(box, 15.0)
        graph.translate(box, (265.0, 0.0, 295.0))

        (element,) = graph.finish(root).elements
        assert isinstance(element, Transformed)
        assert isinstance(element.child, SurfaceGeometry)
        assert element.transform.offset == (0.0, 0.0, 0.0)

        # The flattened box occupies the same space as the transformed original
        box_world = element.bounding_box((0.0, 1.0))
        from pathtracer.geometry import Aabb, Transformation

        expected = (
            Transformation.rotation(15.0)
            .translate((265.0, 0.0, 295.0))
            .apply_aabb(Aabb((0, 0, 0), (165, 330, 165)))
        )
        np.testing.assert_allclose(box_world.min, expected.min, atol=1e-6)
        np.testing.assert_allclose(box_world.max, expected.max, atol=1e-6)

    def test_sphere_rotation_is_baked(self, white):
        from pathtracer.scene.elements import SurfaceGeometry
        from pathtracer.scene.graph import SceneGraph

        graph = SceneGraph()
        root = graph.add_group()
        graph.add_sphere((1.0, 0.0, 0.0), 0.5, white, root)
        graph.rotate_around_up(root, 90.0)

        (element,) = graph.finish(root).elements
        assert isinstance(element, SurfaceGeometry)
        np.testing.assert_allclose(element.geometry.center, (0.0, 0.0, -1.0), atol=1e-9)

    def test_parent_transform_applies_after_child(self, white):
        from pathtracer.scene.graph import SceneGraph

        graph = SceneGraph()
        root = graph.add_group()
        child = graph.add_sphere((1.0, 0.0, 0.0), 0.5, white, root)
        graph.translate(child, (1.0, 0.0, 0.0))
        graph.rotate_around_up(root, 90.0)

        (element,) = graph.finish(root).elements
        # (1,0,0) -> child translate -> (2,0,0) -> root rotation -> (0,0,-2)
        np.testing.assert_allclose(element.geometry.center, (0.0, 0.0, -2.0), atol=1e-9)

    def test_velocities_accumulate(self, white):
        from pathtracer.scene.elements import Animation
        from pathtracer.scene.graph import SceneGraph

        graph = SceneGraph()
        root = graph.add_group()
        group = graph.add_group(root)
        graph.add_sphere((0.0, 0.0, 0.0), 1.0, white, group)
        graph.animate(root, (1.0, 0.0, 0.0))
        graph.animate(group, (0.0, 2.0, 0.0))

        (element,) = graph.finish(root).elements
        assert isinstance(element, Animation)
        assert element.velocity == (1.0, 2.0, 0.0)
        box = element.bounding_box((0.0, 1.0))
        assert box.min == (-1.0, -1.0, -1.0)
        assert box.max == (2.0, 3.0, 1.0)

    def test_shared_subassembly_appears_per_parent(self, white):
        from pathtracer.scene.graph import SceneGraph

        graph = SceneGraph()
        root = graph.add_group()
        left = graph.add_group(root)
        right = graph.add_group(root)
        graph.translate(right, (10.0, 0.0, 0.0))
        ball = graph.add_sphere((0.0, 0.0, 0.0), 1.0, white, left)
        graph.attach(right, ball)

        elements = graph.finish(root).elements
        centers = sorted(e.geometry.center for e in elements)
        assert centers == [(0.0, 0.0, 0.0), (10.0, 0.0, 0.0)]

    def test_mesh_leaves(self, white):
        from pathtracer.geometry import TriangleGeometry
        from pathtracer.scene.graph import SceneGraph

        triangles = [
            TriangleGeometry.flat((0, 0, 0), (1, 0, 0), (0, 1, 0)),
            TriangleGeometry.flat((1, 0, 0), (1, 1, 0), (0, 1, 0)),
        ]
        graph = SceneGraph()
        mesh = graph.add_mesh(triangles, white)
        graph.translate(mesh, (0.0, 0.0, -2.0))
        elements = graph.finish(mesh).elements
        assert len(elements) == 2
        assert elements[0].geometry.positions[0] == (0.0, 0.0, -2.0)

    def test_instance_wrapped_in_transform(self, white):
        from pathtracer.geometry import SphereGeometry
        from pathtracer.scene.elements import BuiltBVH, SurfaceGeometry, Transformed
        from pathtracer.scene.graph import SceneGraph

        bvh = BuiltBVH.build([SurfaceGeometry(SphereGeometry((0, 0, 0), 1.0), white)])
        graph = SceneGraph()
        root = graph.add_group()
        still = graph.add_instance(bvh, root)
        moved = graph.add_instance(bvh, root)
        graph.translate(moved, (5.0, 0.0, 0.0))

        first, second = graph.finish(root).elements
        assert first is bvh
        assert isinstance(second, Transformed) and second.child is bvh
        assert still != moved

    def test_volume_leaf(self):
        from pathtracer.geometry import BoxGeometry
        from pathtracer.materials import Isotropic
        from pathtracer.scene.elements import VolumeGeometry
        from pathtracer.scene.graph import SceneGraph

        graph = SceneGraph()
        smoke = graph.add_volume(BoxGeometry.from_size(1, 1, 1), Isotropic.from_color((1, 1, 1)), 0.5)
        (element,) = graph.finish(smoke).elements
        assert isinstance(element, VolumeGeometry)
        assert element.neg_inv_density == pytest.approx(-2.0)


class TestLightSelection:
    """Tests for picking the sampled light."""

    def test_world_space_rect_becomes_light(self, white):
        from pathtracer.geometry import RectPlane
        from pathtracer.materials import DiffuseLight
        from pathtracer.scene.graph import SceneGraph

        graph = SceneGraph()
        root = graph.add_group()
        graph.add_rect(RectPlane.XZ, 554.0, (213.0, 343.0), (227.0, 332.0),
                       DiffuseLight.from_color((15, 15, 15)), root, light=True)
        scene = graph.finish(root)
        assert scene.light is not None
        assert scene.light.distance == 554.0

    def test_first_candidate_wins(self):
        from pathtracer.geometry import RectPlane
        from pathtracer.materials import DiffuseLight
        from pathtracer.scene.graph import SceneGraph

        lamp = DiffuseLight.from_color((4, 4, 4))
        graph = SceneGraph()
        root = graph.add_group()
        graph.add_rect(RectPlane.XZ, 1.0, (0, 1), (0, 1), lamp, root, light=True)
        graph.add_rect(RectPlane.XZ, 2.0, (0, 1), (0, 1), lamp, root, light=True)
        assert graph.finish(root).light.distance == 1.0

    def test_transformed_rect_is_not_light(self):
        from pathtracer.geometry import RectPlane
        from pathtracer.materials import DiffuseLight
        from pathtracer.scene.graph import SceneGraph

        graph = SceneGraph()
        root = graph.add_group()
        lamp = graph.add_rect(RectPlane.XZ, 1.0, (0, 1), (0, 1),
                              DiffuseLight.from_color((4, 4, 4)), root, light=True)
        graph.translate(lamp, (0.0, 1.0, 0.0))
        assert graph.finish(root).light is None

    def test_mark_light(self):
        from pathtracer.geometry import RectPlane
        from pathtracer.materials import DiffuseLight
        from pathtracer.scene.graph import SceneGraph

        graph = SceneGraph()
        lamp = graph.add_rect(RectPlane.XY, 0.0, (0, 1), (0, 1), DiffuseLight.from_color((1, 1, 1)))
        assert graph.finish(lamp).light is None
        graph.mark_light(lamp)
        assert graph.finish(lamp).light is not None

    def test_sphere_is_never_light(self):
        from pathtracer.geometry import SphereGeometry
        from pathtracer.materials import DiffuseLight
        from pathtracer.scene.graph import SceneGraph

        graph = SceneGraph()
        ball = graph.add_object(SphereGeometry((0, 0, 0), 1.0), DiffuseLight.from_color((1, 1, 1)),
                                light=True)
        assert graph.finish(ball).light is None


class TestGraphErrors:
    """Tests for graph validation."""

    def test_unknown_handle(self, white):
        from pathtracer.scene.graph import SceneGraph

        graph = SceneGraph()
        with pytest.raises(ValueError):
            graph.translate(3, (1.0, 0.0, 0.0))
        with pytest.raises(ValueError):
            graph.add_sphere((0, 0, 0), 1.0, white, parent=7)

    def test_cycle_detected(self, white):
        from pathtracer.scene.graph import SceneGraph

        graph = SceneGraph()
        a = graph.add_group()
        b = graph.add_group(a)
        graph.add_sphere((0, 0, 0), 1.0, white, b)
        graph.attach(b, a)
        with pytest.raises(ValueError, match="cycle"):
            graph.finish(a)

    def test_empty_graph(self):
        from pathtracer.scene.graph import SceneGraph

        graph = SceneGraph()
        root = graph.add_group()
        graph.add_group(root)
        with pytest.raises(ValueError):
            graph.finish(root)

    def test_empty_mesh(self, white):
        from pathtracer.scene.graph import SceneGraph

        with pytest.raises(ValueError):
            SceneGraph().add_mesh([], white)

    def test_non_positive_density(self):
        from pathtracer.geometry import BoxGeometry
        from pathtracer.materials import Isotropic
        from pathtracer.scene.elements import VolumeGeometry
        from pathtracer.scene.graph import SceneGraph

        phase = Isotropic.from_color((1, 1, 1))
        with pytest.raises(ValueError):
            SceneGraph().add_volume(BoxGeometry.from_size(1, 1, 1), phase, 0.0)
        with pytest.raises(ValueError):
            VolumeGeometry(BoxGeometry.from_size(1, 1, 1), phase, -1.0)


class TestElementBounds:
    """Tests for element bounding boxes."""

    def test_group_with_unbounded_child(self, white):
        import math

        from pathtracer.geometry import RectGeometry, RectPlane, SphereGeometry
        from pathtracer.scene.elements import Group, SurfaceGeometry

        ball = SurfaceGeometry(SphereGeometry((0, 0, 0), 1.0), white)
        floor = SurfaceGeometry(
            RectGeometry(RectPlane.XZ, 0.0, (-math.inf, math.inf), (-math.inf, math.inf)), white
        )
        assert Group((ball,)).bounding_box((0, 1)) is not None
        assert Group((ball, floor)).bounding_box((0, 1)) is None
        assert Group(()).bounding_box((0, 1)) is None

    def test_built_bvh_box(self, white):
        from pathtracer.geometry import Aabb, SphereGeometry
        from pathtracer.scene.elements import BuiltBVH, SurfaceGeometry

        items = [SurfaceGeometry(SphereGeometry((x, 0, 0), 1.0), white) for x in range(4)]
        bvh = BuiltBVH.build(items)
        assert bvh.bounding_box((0, 1)) == Aabb((-1, -1, -1), (4, 1, 1))

    def test_built_bvh_empty(self):
        from pathtracer.scene.elements import BuiltBVH

        with pytest.raises(ValueError):
            BuiltBVH.build([])
