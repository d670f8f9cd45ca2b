"""Shared fixtures for building small scenes."""

import pytest

from lumenforge.bsdfs import DiffuseBsdf
from lumenforge.color import RgbColor
from lumenforge.geometry import SurfaceInfo
from lumenforge.lights import AreaLight
from lumenforge.samplers import Sampler
from lumenforge.sampling import ortho_basis
from lumenforge.shapes import Triangle, UniformTriangle
from lumenforge.textures import ConstantColorTexture
from lumenforge.triangle_mesh import TriangleMesh
from lumenforge.vec3 import Vec3


class SequenceSampler(Sampler):
    """Sampler returning a fixed sequence of values, cycling when exhausted."""

    def __init__(self, values):
        self.values = list(values)
        self.pos = 0

    def __call__(self):
        value = self.values[self.pos % len(self.values)]
        self.pos += 1
        return value


@pytest.fixture
def sequence_sampler():
    return SequenceSampler


@pytest.fixture
def make_surface():
    """Factory for a surface point on a plane with the given normal."""
    def factory(normal=Vec3(0, 0, 1), point=Vec3(0, 0, 0), front=True, uv=(0.5, 0.5)):
        normal = normal.normalize()
        return SurfaceInfo(front, point, uv, (0.0, 0.0), normal, ortho_basis(normal))
    return factory


def diffuse(r, g=None, b=None):
    if g is None:
        g = b = r
    return DiffuseBsdf(ConstantColorTexture(RgbColor(r, g, b)))


def quad(corner, edge_u, edge_v):
    """Two triangles spanning a parallelogram; faces ``edge_u x edge_v``."""
    p0 = corner
    p1 = corner + edge_u
    p2 = corner + edge_u + edge_v
    p3 = corner + edge_v
    return [(p0, p1, p2), (p0, p2, p3)]


@pytest.fixture
def make_mesh():
    """Factory building a TriangleMesh from (triangles, bsdf, emission) groups.

    Each group is a list of vertex triples sharing one BSDF and an
    optional emitted color. Returns ``(mesh, lights)``.
    """
    def factory(groups, **mesh_options):
        indices, vertices, normals, tex_coords, bsdfs = [], [], [], [], []
        lights = {}
        for triangles, bsdf, emission in groups:
            for v0, v1, v2 in triangles:
                n = (v1 - v0).cross(v2 - v0).normalize()
                base = len(vertices)
                vertices.extend([v0, v1, v2])
                normals.extend([n, n, n])
                tex_coords.extend([(0.0, 0.0), (1.0, 0.0), (0.0, 1.0)])
                indices.extend([base, base + 1, base + 2])
                if emission is not None:
                    lights[len(bsdfs)] = AreaLight(UniformTriangle(Triangle(v0, v1, v2)),
                                                   ConstantColorTexture(emission))
                bsdfs.append(bsdf)
        mesh = TriangleMesh(indices, vertices, normals, tex_coords, bsdfs, lights,
                            **mesh_options)
        return mesh, list(lights.values())
    return factory


@pytest.fixture
def helpers():
    """Plain helper functions used by several test modules."""
    class Helpers:
        pass
    h = Helpers()
    h.diffuse = diffuse
    h.quad = quad
    return h
