"""
Triangle meshes.

A mesh owns indexed vertex data (positions, normals and texture
coordinates share one index space), one BSDF per triangle and the area
lights attached to emissive triangles. Intersection goes through a BVH
whose leaves point into an array of precomputed triangles stored in
leaf order.
"""

from __future__ import annotations
import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .bvh import Bvh, ReinsertionOptimizer, SweepSahBuilder
from .geometry import Geometry, Hit, SurfaceInfo
from .ray import Ray
from .sampling import ortho_basis
from .vec3 import Vec3, lerp3

logger = logging.getLogger(__name__)

PARALLEL_EPSILON = 1e-12


class PrecomputedTriangle:
    """Triangle data laid out for the Moller-Trumbore test."""

    __slots__ = ('v0', 'e1', 'e2', 'normal')

    def __init__(self, v0: Vec3, v1: Vec3, v2: Vec3):
        self.v0 = v0
        self.e1 = v1 - v0
        self.e2 = v2 - v0
        self.normal = self.e1.cross(self.e2)

    def intersect(self, ox: float, oy: float, oz: float, dx: float, dy: float, dz: float,
                  tmin: float, tmax: float) -> Optional[Tuple[float, float, float]]:
        """Return ``(t, u, v)`` for a hit strictly inside ``(tmin, tmax)``."""
        e1 = self.e1
        e2 = self.e2
        hx = dy * e2.z - dz * e2.y
        hy = dz * e2.x - dx * e2.z
        hz = dx * e2.y - dy * e2.x
        a = e1.x * hx + e1.y * hy + e1.z * hz
        if -PARALLEL_EPSILON < a < PARALLEL_EPSILON:
            return None
        f = 1.0 / a
        sx = ox - self.v0.x
        sy = oy - self.v0.y
        sz = oz - self.v0.z
        u = f * (sx * hx + sy * hy + sz * hz)
        if u < 0.0 or u > 1.0:
            return None
        qx = sy * e1.z - sz * e1.y
        qy = sz * e1.x - sx * e1.z
        qz = sx * e1.y - sy * e1.x
        v = f * (dx * qx + dy * qy + dz * qz)
        if v < 0.0 or u + v > 1.0:
            return None
        t = f * (e2.x * qx + e2.y * qy + e2.z * qz)
        if t <= tmin or t >= tmax:
            return None
        return t, u, v


class TriangleMesh(Geometry):
    """Indexed triangle mesh with a BVH.

    Args:
        indices: Three vertex indices per triangle
        vertices: Vertex positions
        normals: Per-vertex shading normals (same indexing as vertices)
        tex_coords: Per-vertex texture coordinates
        bsdfs: One BSDF (or None) per triangle
        lights: Area light of each emissive triangle, by triangle index
        builder: BVH builder (sweep SAH with defaults if None)
        optimize: Whether to run the BVH reinsertion optimizer
    """

    def __init__(self, indices: Sequence[int], vertices: Sequence[Vec3],
                 normals: Sequence[Vec3], tex_coords: Sequence[Tuple[float, float]],
                 bsdfs: Sequence, lights: Optional[Dict[int, object]] = None,
                 builder: Optional[SweepSahBuilder] = None, optimize: bool = True,
                 optimizer: Optional[ReinsertionOptimizer] = None):
        if len(indices) % 3 != 0:
            raise ValueError("index count must be a multiple of 3")
        if len(normals) != len(vertices) or len(tex_coords) != len(vertices):
            raise ValueError("vertices, normals and texture coordinates must have equal length")
        triangle_count = len(indices) // 3
        if len(bsdfs) != triangle_count:
            raise ValueError(f"expected {triangle_count} BSDFs, got {len(bsdfs)}")

        self.indices = list(indices)
        self.vertices = list(vertices)
        self.normals = list(normals)
        self.tex_coords = list(tex_coords)
        self.bsdfs = list(bsdfs)
        self.lights = dict(lights or {})

        if triangle_count:
            positions = np.array([v.to_tuple() for v in self.vertices], dtype=np.float64)
            corners = positions[np.asarray(self.indices, dtype=np.int64).reshape(-1, 3)]
            bbox_min = corners.min(axis=1)
            bbox_max = corners.max(axis=1)
            centers = corners.mean(axis=1)
        else:
            bbox_min = bbox_max = centers = np.zeros((0, 3))
        self.bvh = Bvh(bbox_min, bbox_max, centers, builder=builder,
                       optimize=optimize, optimizer=optimizer)

        self.triangles: List[PrecomputedTriangle] = []
        for tri in self.bvh.prim_indices:
            i0, i1, i2 = self.indices[3 * tri:3 * tri + 3]
            self.triangles.append(PrecomputedTriangle(
                self.vertices[i0], self.vertices[i1], self.vertices[i2]))

        logger.debug("Triangle mesh: %d triangles, %d vertices, %d emissive",
                     triangle_count, len(self.vertices), len(self.lights))

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3

    def triangle_vertices(self, tri: int) -> Tuple[Vec3, Vec3, Vec3]:
        i0, i1, i2 = self.indices[3 * tri:3 * tri + 3]
        return self.vertices[i0], self.vertices[i1], self.vertices[i2]

    def intersect_closest(self, ray: Ray) -> Optional[Hit]:
        triangles = self.triangles
        o = ray.origin
        d = ray.direction
        ox, oy, oz, dx, dy, dz = o.x, o.y, o.z, d.x, d.y, d.z
        best = [-1, 0.0, 0.0]

        def intersect_leaf(first: int, count: int, r: Ray) -> bool:
            found = False
            for i in range(first, first + count):
                result = triangles[i].intersect(ox, oy, oz, dx, dy, dz, r.tmin, r.tmax)
                if result is not None:
                    r.tmax, best[1], best[2] = result
                    best[0] = i
                    found = True
            return found

        if not self.bvh.traverse(ray, intersect_leaf):
            return None
        return self._make_hit(ray, best[0], best[1], best[2])

    def intersect_any(self, ray: Ray) -> bool:
        triangles = self.triangles
        o = ray.origin
        d = ray.direction
        ox, oy, oz, dx, dy, dz = o.x, o.y, o.z, d.x, d.y, d.z

        def intersect_leaf(first: int, count: int, r: Ray) -> bool:
            for i in range(first, first + count):
                result = triangles[i].intersect(ox, oy, oz, dx, dy, dz, r.tmin, r.tmax)
                if result is not None:
                    r.tmax = result[0]
                    return True
            return False

        return self.bvh.traverse(ray, intersect_leaf, any_hit=True)

    def _make_hit(self, ray: Ray, permuted: int, u: float, v: float) -> Hit:
        tri = self.bvh.prim_indices[permuted]
        i0, i1, i2 = self.indices[3 * tri:3 * tri + 3]

        face_normal = self.triangles[permuted].normal.normalize()
        normal = lerp3(self.normals[i0], self.normals[i1], self.normals[i2], u, v).normalize()
        if normal.length_squared() == 0.0:
            normal = face_normal
        t0, t1, t2 = self.tex_coords[i0], self.tex_coords[i1], self.tex_coords[i2]
        w = 1.0 - u - v
        tex_coords = (t0[0] * w + t1[0] * u + t2[0] * v,
                      t0[1] * w + t1[1] * u + t2[1] * v)

        is_front_side = face_normal.dot(ray.direction) < 0.0
        if not is_front_side:
            face_normal = -face_normal
            normal = -normal

        surf = SurfaceInfo(is_front_side, ray.at(ray.tmax), tex_coords, (u, v),
                           face_normal, ortho_basis(normal))
        return Hit(surf, self.bsdfs[tri], self.lights.get(tri), tri)
