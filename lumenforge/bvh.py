"""
Bounding Volume Hierarchy (BVH) for accelerating ray-triangle intersection.

A BVH is a binary tree where each node stores a bounding box and either:
- Two child nodes (internal node)
- A contiguous range of a permuted primitive-index array (leaf node)

Construction uses a full sweep over sorted centroids to evaluate the
Surface Area Heuristic on every axis. An optional reinsertion pass then
moves subtrees to wherever they lower the total SAH cost. The final
tree is laid out breadth-first with the two children of a node stored
next to each other.
"""

from __future__ import annotations
import heapq
import logging
import math
from typing import Callable, List, Optional, Tuple

import numpy as np

from .ray import Ray

logger = logging.getLogger(__name__)

Bounds = Tuple[float, float, float, float, float, float]

# Leaf callback: (first_index, prim_count, ray) -> True when a hit was recorded
LeafIntersector = Callable[[int, int, Ray], bool]

INV_DIR_LIMIT = 1e30


def half_area(bounds: Bounds) -> float:
    dx = bounds[3] - bounds[0]
    dy = bounds[4] - bounds[1]
    dz = bounds[5] - bounds[2]
    if dx < 0.0 or dy < 0.0 or dz < 0.0:
        return 0.0
    return dx * dy + dy * dz + dz * dx


def union(a: Bounds, b: Bounds) -> Bounds:
    return (min(a[0], b[0]), min(a[1], b[1]), min(a[2], b[2]),
            max(a[3], b[3]), max(a[4], b[4]), max(a[5], b[5]))


def _half_areas(mins: np.ndarray, maxs: np.ndarray) -> np.ndarray:
    d = np.maximum(maxs - mins, 0.0)
    return d[:, 0] * d[:, 1] + d[:, 1] * d[:, 2] + d[:, 2] * d[:, 0]


class BvhNode:
    """A node of the BVH.

    Internal nodes have ``prim_count == 0`` and two children; leaves
    reference ``prim_count`` entries of the primitive-index array
    starting at ``first_index``.
    """

    __slots__ = ('bounds', 'left', 'right', 'parent', 'first_index', 'prim_count')

    def __init__(self, bounds: Bounds, first_index: int = 0, prim_count: int = 0):
        self.bounds = bounds
        self.left: Optional[BvhNode] = None
        self.right: Optional[BvhNode] = None
        self.parent: Optional[BvhNode] = None
        self.first_index = first_index
        self.prim_count = prim_count

    @property
    def is_leaf(self) -> bool:
        return self.prim_count > 0

    def refit(self) -> None:
        self.bounds = union(self.left.bounds, self.right.bounds)

    def replace_child(self, old: BvhNode, new: BvhNode) -> None:
        if self.left is old:
            self.left = new
        else:
            self.right = new
        new.parent = self

    def __repr__(self) -> str:
        if self.is_leaf:
            return f"BvhNode(leaf, first={self.first_index}, count={self.prim_count})"
        return "BvhNode(internal)"


class SweepSahBuilder:
    """Top-down builder evaluating the SAH at every split position.

    For each axis the primitives are sorted by centroid and their boxes
    are swept from both ends, giving the exact left and right areas of
    every candidate partition.
    """

    def __init__(self, traversal_cost: float = 1.0, max_leaf_size: int = 4):
        """Configure the builder.

        Args:
            traversal_cost: Cost of visiting a node, relative to one
                primitive intersection test
            max_leaf_size: Nodes with at most this many primitives
                become leaves
        """
        if max_leaf_size < 1:
            raise ValueError("max_leaf_size must be at least 1")
        self.traversal_cost = traversal_cost
        self.max_leaf_size = max_leaf_size

    def build(self, bbox_min: np.ndarray, bbox_max: np.ndarray,
              centers: np.ndarray) -> Tuple[Optional[BvhNode], List[int]]:
        """Build a tree over ``len(centers)`` primitives.

        Args:
            bbox_min: ``(N, 3)`` lower corners of the primitive boxes
            bbox_max: ``(N, 3)`` upper corners of the primitive boxes
            centers: ``(N, 3)`` primitive centroids

        Returns:
            ``(root, prim_indices)``; leaves index into ``prim_indices``
        """
        count = len(centers)
        prim_indices: List[int] = []
        if count == 0:
            return None, prim_indices

        root = BvhNode(self._bounds_of(bbox_min, bbox_max, np.arange(count)))
        stack = [(root, np.arange(count))]
        while stack:
            node, idx = stack.pop()
            split = self._find_split(node, idx, bbox_min, bbox_max, centers)
            if split is None:
                node.first_index = len(prim_indices)
                node.prim_count = len(idx)
                prim_indices.extend(int(i) for i in idx)
                continue

            left_idx, right_idx = split
            node.left = BvhNode(self._bounds_of(bbox_min, bbox_max, left_idx))
            node.right = BvhNode(self._bounds_of(bbox_min, bbox_max, right_idx))
            node.left.parent = node
            node.right.parent = node
            stack.append((node.right, right_idx))
            stack.append((node.left, left_idx))

        return root, prim_indices

    @staticmethod
    def _bounds_of(bbox_min: np.ndarray, bbox_max: np.ndarray, idx: np.ndarray) -> Bounds:
        lo = bbox_min[idx].min(axis=0)
        hi = bbox_max[idx].max(axis=0)
        return (float(lo[0]), float(lo[1]), float(lo[2]),
                float(hi[0]), float(hi[1]), float(hi[2]))

    def _find_split(self, node: BvhNode, idx: np.ndarray, bbox_min: np.ndarray,
                    bbox_max: np.ndarray, centers: np.ndarray
                    ) -> Optional[Tuple[np.ndarray, np.ndarray]]:
        count = len(idx)
        if count <= self.max_leaf_size:
            return None

        node_area = half_area(node.bounds)
        best_cost = math.inf
        best_split = None
        if node_area > 0.0:
            for axis in range(3):
                order = idx[np.argsort(centers[idx, axis], kind='stable')]
                mins = bbox_min[order]
                maxs = bbox_max[order]
                left_area = _half_areas(np.minimum.accumulate(mins, axis=0),
                                        np.maximum.accumulate(maxs, axis=0))[:-1]
                right_area = _half_areas(np.minimum.accumulate(mins[::-1], axis=0)[::-1],
                                         np.maximum.accumulate(maxs[::-1], axis=0)[::-1])[1:]
                left_count = np.arange(1, count)
                costs = left_area * left_count + right_area * (count - left_count)
                i = int(np.argmin(costs))
                if costs[i] < best_cost:
                    best_cost = float(costs[i])
                    best_split = (order[:i + 1], order[i + 1:])

        leaf_cost = float(count)
        if best_split is not None and self.traversal_cost + best_cost / node_area < leaf_cost:
            return best_split

        # No partition beats a leaf: fall back to an equal-count split
        extent = centers[idx].max(axis=0) - centers[idx].min(axis=0)
        axis = int(np.argmax(extent))
        order = idx[np.argsort(centers[idx, axis], kind='stable')]
        mid = count // 2
        return order[:mid], order[mid:]


class ReinsertionOptimizer:
    """Improves a built tree by moving subtrees to cheaper positions.

    The cost being minimised is the sum of the surface areas of the
    internal nodes. Each pass tries to reinsert the nodes with the
    largest boxes; a move is kept only if it strictly lowers the cost.
    """

    def __init__(self, max_iterations: int = 3, batch_fraction: float = 0.05):
        self.max_iterations = max_iterations
        self.batch_fraction = batch_fraction

    def optimize(self, root: BvhNode) -> BvhNode:
        for iteration in range(self.max_iterations):
            candidates = [n for n in _iter_nodes(root)
                          if n.parent is not None and n.parent.parent is not None]
            if not candidates:
                break
            candidates.sort(key=lambda n: half_area(n.bounds), reverse=True)
            batch = max(1, int(len(candidates) * self.batch_fraction))

            moved = 0
            for node in candidates[:batch]:
                if node.parent is None or node.parent.parent is None:
                    continue
                root, improved = self._reinsert(root, node)
                moved += improved
            logger.debug("Reinsertion pass %d moved %d nodes", iteration, moved)
            if moved == 0:
                break
        return root

    def _reinsert(self, root: BvhNode, node: BvhNode) -> Tuple[BvhNode, bool]:
        parent = node.parent
        sibling = parent.left if parent.right is node else parent.right
        grandparent = parent.parent
        node_was_left = parent.left is node

        # Detach: the sibling takes the parent's place
        grandparent.replace_child(parent, sibling)
        removed_gain = half_area(parent.bounds)
        saved = []
        ancestor = grandparent
        while ancestor is not None:
            saved.append((ancestor, ancestor.bounds))
            old_area = half_area(ancestor.bounds)
            ancestor.refit()
            removed_gain += old_area - half_area(ancestor.bounds)
            ancestor = ancestor.parent

        target, insert_cost = self._find_insertion(root, node)
        if insert_cost < removed_gain - 1e-12 * removed_gain:
            target_parent = target.parent
            parent.left, parent.right = target, node
            parent.bounds = union(target.bounds, node.bounds)
            if target_parent is None:
                parent.parent = None
                root = parent
            else:
                target_parent.replace_child(target, parent)
            target.parent = parent
            node.parent = parent
            ancestor = parent.parent
            while ancestor is not None:
                ancestor.refit()
                ancestor = ancestor.parent
            return root, True

        # Not an improvement: restore the original layout and boxes
        grandparent.replace_child(sibling, parent)
        sibling.parent = parent
        if node_was_left:
            parent.left, parent.right = node, sibling
        else:
            parent.left, parent.right = sibling, node
        for ancestor, bounds in saved:
            ancestor.bounds = bounds
        return root, False

    @staticmethod
    def _find_insertion(root: BvhNode, node: BvhNode) -> Tuple[BvhNode, float]:
        """Branch-and-bound search for the cheapest sibling of ``node``."""
        node_area = half_area(node.bounds)
        best_node = root
        best_cost = math.inf
        heap = [(0.0, 0, root)]
        counter = 1
        while heap:
            induced, _, candidate = heapq.heappop(heap)
            if induced + node_area >= best_cost:
                break
            merged = half_area(union(candidate.bounds, node.bounds))
            cost = induced + merged
            if cost < best_cost:
                best_cost = cost
                best_node = candidate
            if not candidate.is_leaf:
                child_induced = induced + merged - half_area(candidate.bounds)
                if child_induced + node_area < best_cost:
                    heapq.heappush(heap, (child_induced, counter, candidate.left))
                    heapq.heappush(heap, (child_induced, counter + 1, candidate.right))
                    counter += 2
        return best_node, best_cost


def _iter_nodes(root: BvhNode):
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        if not node.is_leaf:
            stack.append(node.left)
            stack.append(node.right)


class Bvh:
    """Flattened BVH over a set of primitives.

    Attributes:
        bounds: Per-node boxes ``(xmin, ymin, zmin, xmax, ymax, zmax)``
        first_child: Index of the left child (right child follows it)
        first_index: First entry of a leaf in ``prim_indices``
        prim_count: Number of primitives in a leaf, 0 for internal nodes
        prim_indices: Permutation of the input primitive indices
    """

    def __init__(self, bbox_min: np.ndarray, bbox_max: np.ndarray, centers: np.ndarray,
                 builder: Optional[SweepSahBuilder] = None, optimize: bool = True,
                 optimizer: Optional[ReinsertionOptimizer] = None):
        """Build a BVH.

        Args:
            bbox_min: ``(N, 3)`` lower corners of the primitive boxes
            bbox_max: ``(N, 3)`` upper corners of the primitive boxes
            centers: ``(N, 3)`` primitive centroids
            builder: Builder to use (sweep SAH with defaults if None)
            optimize: Whether to run the reinsertion optimizer
            optimizer: Optimizer to use when ``optimize`` is set
        """
        builder = builder or SweepSahBuilder()
        root, self.prim_indices = builder.build(
            np.asarray(bbox_min, dtype=np.float64),
            np.asarray(bbox_max, dtype=np.float64),
            np.asarray(centers, dtype=np.float64))
        if root is not None and optimize:
            root = (optimizer or ReinsertionOptimizer()).optimize(root)

        self.bounds: List[Bounds] = []
        self.first_child: List[int] = []
        self.first_index: List[int] = []
        self.prim_count: List[int] = []
        if root is not None:
            self._flatten(root)
        logger.debug("Built BVH: %d nodes over %d primitives",
                     len(self.bounds), len(self.prim_indices))

    def _flatten(self, root: BvhNode) -> None:
        order = [root]
        head = 0
        while head < len(order):
            node = order[head]
            head += 1
            self.bounds.append(node.bounds)
            self.first_index.append(node.first_index)
            self.prim_count.append(node.prim_count)
            if node.is_leaf:
                self.first_child.append(-1)
            else:
                self.first_child.append(len(order))
                order.append(node.left)
                order.append(node.right)

    @property
    def node_count(self) -> int:
        return len(self.bounds)

    def is_leaf(self, index: int) -> bool:
        return self.prim_count[index] > 0

    def sah_cost(self, traversal_cost: float = 1.0) -> float:
        """SAH cost of the tree, normalised by the root area."""
        if not self.bounds:
            return 0.0
        root_area = half_area(self.bounds[0])
        if root_area == 0.0:
            return 0.0
        total = 0.0
        for bounds, count in zip(self.bounds, self.prim_count):
            area = half_area(bounds)
            total += area * (count if count else traversal_cost)
        return total / root_area

    def traverse(self, ray: Ray, intersect_leaf: LeafIntersector, any_hit: bool = False) -> bool:
        """Walk the tree front to back.

        ``intersect_leaf`` tests a leaf's primitives and shrinks
        ``ray.tmax`` when it finds a closer hit.

        Args:
            ray: Query ray; ``tmax`` is updated in place
            intersect_leaf: Leaf callback
            any_hit: Stop at the first hit (occlusion queries)

        Returns:
            Whether any hit was found
        """
        if not self.bounds:
            return False

        ox, oy, oz = ray.origin.x, ray.origin.y, ray.origin.z
        ix = _safe_inverse(ray.direction.x)
        iy = _safe_inverse(ray.direction.y)
        iz = _safe_inverse(ray.direction.z)
        bounds = self.bounds
        first_child = self.first_child
        first_index = self.first_index
        prim_count = self.prim_count

        def entry(b: Bounds) -> float:
            t0 = (b[0] - ox) * ix
            t1 = (b[3] - ox) * ix
            if t0 > t1:
                t0, t1 = t1, t0
            u0 = (b[1] - oy) * iy
            u1 = (b[4] - oy) * iy
            if u0 > u1:
                u0, u1 = u1, u0
            v0 = (b[2] - oz) * iz
            v1 = (b[5] - oz) * iz
            if v0 > v1:
                v0, v1 = v1, v0
            tmin = max(t0, u0, v0, ray.tmin)
            tmax = min(t1, u1, v1, ray.tmax)
            return tmin if tmin <= tmax else math.inf

        found = False
        if entry(bounds[0]) == math.inf:
            return False
        stack = [(0, ray.tmin)]
        while stack:
            index, t_entry = stack.pop()
            if t_entry > ray.tmax:
                continue
            count = prim_count[index]
            if count:
                if intersect_leaf(first_index[index], count, ray):
                    found = True
                    if any_hit:
                        return True
                continue

            left = first_child[index]
            right = left + 1
            t_left = entry(bounds[left])
            t_right = entry(bounds[right])
            if t_left > t_right:
                left, right = right, left
                t_left, t_right = t_right, t_left
            if t_right != math.inf:
                stack.append((right, t_right))
            if t_left != math.inf:
                stack.append((left, t_left))
        return found


def _safe_inverse(d: float) -> float:
    if abs(d) < 1.0 / INV_DIR_LIMIT:
        return math.copysign(INV_DIR_LIMIT, d)
    return 1.0 / d
