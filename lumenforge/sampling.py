"""
Sampling primitives.

Implements:
- Orthonormal bases built from a single normal
- Uniform sphere sampling
- Cosine-weighted and cosine-power hemisphere sampling
- Matching pdf functions (solid-angle measure)

Hemisphere routines work in a local frame where +z is the pole; callers
map the result to world space through a :class:`Basis`.
"""

from __future__ import annotations
import math
from dataclasses import dataclass

from .vec3 import Vec3

INV_PI = 1.0 / math.pi
INV_TWO_PI = 1.0 / (2.0 * math.pi)
INV_FOUR_PI = 1.0 / (4.0 * math.pi)


@dataclass
class DirSample:
    """A sampled direction together with its solid-angle pdf."""
    dir: Vec3
    pdf: float


class Basis:
    """Right-handed orthonormal frame (tangent, bitangent, normal)."""

    __slots__ = ('tangent', 'bitangent', 'normal')

    def __init__(self, tangent: Vec3, bitangent: Vec3, normal: Vec3):
        self.tangent = tangent
        self.bitangent = bitangent
        self.normal = normal

    def to_world(self, v: Vec3) -> Vec3:
        t, b, n = self.tangent, self.bitangent, self.normal
        return Vec3(
            t.x * v.x + b.x * v.y + n.x * v.z,
            t.y * v.x + b.y * v.y + n.y * v.z,
            t.z * v.x + b.z * v.y + n.z * v.z,
        )

    def __repr__(self) -> str:
        return f"Basis({self.tangent}, {self.bitangent}, {self.normal})"


def ortho_basis(n: Vec3) -> Basis:
    """Build an orthonormal basis whose third axis is the unit vector ``n``.

    Uses the branchless construction of Duff et al. (2017). The tangent
    and bitangent orientation is arbitrary.
    """
    sign = 1.0 if n.z >= 0.0 else -1.0
    a = -1.0 / (sign + n.z)
    b = n.x * n.y * a
    tangent = Vec3(1.0 + sign * n.x * n.x * a, sign * b, -sign * n.x)
    bitangent = Vec3(b, sign + n.y * n.y * a, -n.y)
    return Basis(tangent, bitangent, n)


def mirror(d: Vec3, n: Vec3) -> Vec3:
    """Reflect ``d`` about ``n``; both point away from the surface."""
    return d.reflect(n)


def sample_uniform_sphere(u: float, v: float) -> DirSample:
    """Uniformly sample a direction on the unit sphere. pdf = 1/(4 pi)."""
    cos_theta = 1.0 - 2.0 * v
    sin_theta = math.sqrt(max(0.0, 1.0 - cos_theta * cos_theta))
    phi = 2.0 * math.pi * u
    return DirSample(
        Vec3(math.cos(phi) * sin_theta, math.sin(phi) * sin_theta, cos_theta),
        INV_FOUR_PI,
    )


def uniform_sphere_pdf() -> float:
    return INV_FOUR_PI


def sample_cosine_hemisphere(u: float, v: float) -> DirSample:
    """Cosine-weighted direction about +z. pdf = cos(theta)/pi."""
    cos_theta = math.sqrt(1.0 - v)
    sin_theta = math.sqrt(v)
    phi = 2.0 * math.pi * u
    return DirSample(
        Vec3(math.cos(phi) * sin_theta, math.sin(phi) * sin_theta, cos_theta),
        cos_theta * INV_PI,
    )


def cosine_hemisphere_pdf(cos_theta: float) -> float:
    return max(cos_theta, 0.0) * INV_PI


def sample_cosine_power_hemisphere(n: float, u: float, v: float) -> DirSample:
    """Direction about +z distributed as cos^n(theta).

    Args:
        n: Lobe exponent (n = 1 gives the cosine-weighted hemisphere)
        u: Uniform sample driving the azimuth
        v: Uniform sample driving the polar angle

    Returns:
        Direction with pdf ``(n + 1) cos^n(theta) / (2 pi)``
    """
    cos_theta = math.pow(1.0 - v, 1.0 / (n + 1.0))
    sin_theta = math.sqrt(max(0.0, 1.0 - cos_theta * cos_theta))
    phi = 2.0 * math.pi * u
    return DirSample(
        Vec3(math.cos(phi) * sin_theta, math.sin(phi) * sin_theta, cos_theta),
        cosine_power_hemisphere_pdf(n, cos_theta),
    )


def cosine_power_hemisphere_pdf(n: float, cos_theta: float) -> float:
    if cos_theta <= 0.0:
        return 0.0
    return (n + 1.0) * math.pow(cos_theta, n) * INV_TWO_PI
