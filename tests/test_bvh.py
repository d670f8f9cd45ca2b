"""Tests for BVH construction and traversal."""

import pytest
import numpy as np
from lumenforge.bvh import (
    Bvh, SweepSahBuilder, ReinsertionOptimizer, half_area, union,
)
from lumenforge.ray import Ray
from lumenforge.vec3 import Vec3, Point3


def random_boxes(count, seed=42):
    rng = np.random.default_rng(seed)
    centers = rng.uniform(-10, 10, size=(count, 3))
    extents = rng.uniform(0.05, 1.0, size=(count, 3))
    return centers - extents, centers + extents, centers


def contains(outer, inner, eps=1e-9):
    return all(outer[i] <= inner[i] + eps for i in range(3)) and \
        all(outer[i] >= inner[i] - eps for i in range(3, 6))


def box_of(bbox_min, bbox_max, i):
    return tuple(float(x) for x in bbox_min[i]) + tuple(float(x) for x in bbox_max[i])


class TestHelpers:
    """Test box helpers."""

    def test_half_area(self):
        assert half_area((0, 0, 0, 1, 2, 3)) == 11

    def test_half_area_inverted(self):
        assert half_area((1, 1, 1, 0, 0, 0)) == 0.0

    def test_union(self):
        assert union((0, 0, 0, 1, 1, 1), (-1, 0.5, 0, 0, 2, 1)) == (-1, 0, 0, 1, 2, 1)


class TestSweepSahBuilder:
    """Test top-down SAH construction."""

    def test_empty(self):
        root, indices = SweepSahBuilder().build(np.zeros((0, 3)), np.zeros((0, 3)), np.zeros((0, 3)))
        assert root is None and indices == []

    def test_single_primitive_is_leaf(self):
        lo, hi, c = random_boxes(1)
        root, indices = SweepSahBuilder().build(lo, hi, c)
        assert root.is_leaf
        assert indices == [0]

    def test_invalid_leaf_size(self):
        with pytest.raises(ValueError):
            SweepSahBuilder(max_leaf_size=0)

    def test_separated_clusters_split_apart(self):
        lo = np.array([[0, 0, 0], [0.1, 0, 0], [10, 0, 0], [10.1, 0, 0],
                       [0.2, 0, 0], [10.2, 0, 0]], dtype=float)
        hi = lo + 0.05
        c = (lo + hi) / 2
        root, _ = SweepSahBuilder(max_leaf_size=2).build(lo, hi, c)
        assert not root.is_leaf
        assert root.left.bounds[3] < 1.0
        assert root.right.bounds[0] > 9.0


class TestBvh:
    """Test flattened BVH structure."""

    def setup_method(self):
        self.lo, self.hi, self.c = random_boxes(200)

    def test_permutation(self):
        bvh = Bvh(self.lo, self.hi, self.c)
        assert sorted(bvh.prim_indices) == list(range(200))

    def test_leaves_cover_all_primitives_once(self):
        bvh = Bvh(self.lo, self.hi, self.c)
        seen = []
        for i in range(bvh.node_count):
            if bvh.is_leaf(i):
                seen.extend(range(bvh.first_index[i], bvh.first_index[i] + bvh.prim_count[i]))
        assert sorted(seen) == list(range(200))

    def test_leaf_size(self):
        bvh = Bvh(self.lo, self.hi, self.c)
        for i in range(bvh.node_count):
            if bvh.is_leaf(i):
                assert 1 <= bvh.prim_count[i] <= 4

    def test_nodes_contain_children_and_primitives(self):
        for optimize in (False, True):
            bvh = Bvh(self.lo, self.hi, self.c, optimize=optimize)
            for i in range(bvh.node_count):
                if bvh.is_leaf(i):
                    for k in range(bvh.first_index[i], bvh.first_index[i] + bvh.prim_count[i]):
                        prim = bvh.prim_indices[k]
                        assert contains(bvh.bounds[i], box_of(self.lo, self.hi, prim))
                else:
                    child = bvh.first_child[i]
                    assert contains(bvh.bounds[i], bvh.bounds[child])
                    assert contains(bvh.bounds[i], bvh.bounds[child + 1])

    def test_breadth_first_layout(self):
        bvh = Bvh(self.lo, self.hi, self.c)
        children = [bvh.first_child[i] for i in range(bvh.node_count) if not bvh.is_leaf(i)]
        assert children == sorted(children)
        assert children[0] == 1
        assert bvh.node_count == 2 * len(children) + 1

    def test_optimizer_does_not_increase_cost(self):
        plain = Bvh(self.lo, self.hi, self.c, optimize=False)
        optimized = Bvh(self.lo, self.hi, self.c, optimize=True,
                        optimizer=ReinsertionOptimizer(max_iterations=5, batch_fraction=0.2))
        assert optimized.sah_cost() <= plain.sah_cost() + 1e-9

    def test_sah_cost_of_single_leaf(self):
        lo, hi, c = random_boxes(3)
        bvh = Bvh(lo, hi, c)
        assert bvh.node_count == 1
        assert abs(bvh.sah_cost() - 3.0) < 1e-12

    def test_empty(self):
        bvh = Bvh(np.zeros((0, 3)), np.zeros((0, 3)), np.zeros((0, 3)))
        assert bvh.node_count == 0
        assert not bvh.traverse(Ray(Point3(0, 0, 0), Vec3(0, 0, 1)), lambda f, c, r: True)


class TestTraversal:
    """Test leaf visiting order and early exit."""

    def setup_method(self):
        # A row of unit boxes along +x
        self.lo = np.array([[i * 2.0, 0, 0] for i in range(16)])
        self.hi = self.lo + 1.0
        self.c = (self.lo + self.hi) / 2
        self.bvh = Bvh(self.lo, self.hi, self.c, builder=SweepSahBuilder(max_leaf_size=1),
                       optimize=False)

    def test_front_to_back(self):
        visited = []

        def leaf(first, count, ray):
            visited.append(self.bvh.prim_indices[first])
            return False

        self.bvh.traverse(Ray(Point3(-5, 0.5, 0.5), Vec3(1, 0, 0)), leaf)
        assert visited == list(range(16))

    def test_back_to_front(self):
        visited = []

        def leaf(first, count, ray):
            visited.append(self.bvh.prim_indices[first])
            return False

        self.bvh.traverse(Ray(Point3(50, 0.5, 0.5), Vec3(-1, 0, 0)), leaf)
        assert visited == list(reversed(range(16)))

    def test_closer_hit_prunes(self):
        visited = []

        def leaf(first, count, ray):
            prim = self.bvh.prim_indices[first]
            visited.append(prim)
            if prim == 3:
                ray.tmax = 6.0 + 5.0
                return True
            return False

        found = self.bvh.traverse(Ray(Point3(-5, 0.5, 0.5), Vec3(1, 0, 0)), leaf)
        assert found
        assert visited == [0, 1, 2, 3]

    def test_any_hit_stops_early(self):
        calls = []

        def leaf(first, count, ray):
            calls.append(first)
            return True

        assert self.bvh.traverse(Ray(Point3(-5, 0.5, 0.5), Vec3(1, 0, 0)), leaf, any_hit=True)
        assert len(calls) == 1

    def test_miss(self):
        assert not self.bvh.traverse(Ray(Point3(-5, 5, 5), Vec3(1, 0, 0)),
                                     lambda f, c, r: True)

    def test_axis_parallel_ray_with_zero_components(self):
        hits = []
        self.bvh.traverse(Ray(Point3(4.5, 0.5, -10), Vec3(0, 0, 1)),
                          lambda f, c, r: hits.append(self.bvh.prim_indices[f]) or False)
        assert hits == [2]
