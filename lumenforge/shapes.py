"""
Geometric primitives for area lights.

Implements:
- Triangles and spheres as plain shape data
- Uniform area sampling of triangles and spheres
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
import math
from typing import Optional, Tuple

from .samplers import Sampler
from .sampling import sample_uniform_sphere
from .vec3 import Point3, Vec3, lerp3


class Triangle:
    """A triangle defined by three vertices (counter-clockwise front face)."""

    __slots__ = ('v0', 'v1', 'v2')

    def __init__(self, v0: Point3, v1: Point3, v2: Point3):
        self.v0 = v0
        self.v1 = v1
        self.v2 = v2

    def normal(self) -> Vec3:
        """Unit geometric normal."""
        return (self.v1 - self.v0).cross(self.v2 - self.v0).normalize()

    def area(self) -> float:
        return 0.5 * (self.v1 - self.v0).cross(self.v2 - self.v0).length()

    def point_at(self, u: float, v: float) -> Point3:
        return lerp3(self.v0, self.v1, self.v2, u, v)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Triangle):
            return NotImplemented
        return (self.v0, self.v1, self.v2) == (other.v0, other.v1, other.v2)

    def __hash__(self) -> int:
        return hash((self.v0, self.v1, self.v2))

    def __repr__(self) -> str:
        return f"Triangle({self.v0}, {self.v1}, {self.v2})"


class Sphere:
    """A sphere given by center and radius."""

    __slots__ = ('center', 'radius')

    def __init__(self, center: Point3, radius: float):
        self.center = center
        self.radius = radius

    def area(self) -> float:
        return 4.0 * math.pi * self.radius * self.radius

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Sphere):
            return NotImplemented
        return self.center == other.center and self.radius == other.radius

    def __hash__(self) -> int:
        return hash((self.center, self.radius))

    def __repr__(self) -> str:
        return f"Sphere({self.center}, {self.radius})"


@dataclass
class ShapeSample:
    """A point on a shape.

    ``pdf`` is expressed in area measure.
    """
    surf_coords: Tuple[float, float]
    pos: Point3
    normal: Vec3
    pdf: float


class SampleableShape(ABC):
    """A shape that can be sampled by area, for use by area lights."""

    @abstractmethod
    def sample(self, sampler: Sampler, from_point: Optional[Point3] = None) -> ShapeSample:
        """Sample a point on the surface.

        Args:
            sampler: Random source
            from_point: Receiving point; uniform samplers ignore it
        """
        pass

    @abstractmethod
    def pdf_from(self, from_point: Point3, surf_coords: Tuple[float, float]) -> float:
        """Area density of :meth:`sample` at ``surf_coords`` given ``from_point``."""
        pass

    @abstractmethod
    def normal_at(self, surf_coords: Tuple[float, float]) -> Vec3:
        pass

    @property
    @abstractmethod
    def area(self) -> float:
        pass


class UniformTriangle(SampleableShape):
    """Uniform area sampling over a triangle."""

    def __init__(self, triangle: Triangle):
        self.triangle = triangle
        self._normal = triangle.normal()
        self._area = triangle.area()
        self.inv_area = 1.0 / self._area if self._area > 0.0 else 0.0

    @property
    def area(self) -> float:
        return self._area

    def sample(self, sampler: Sampler, from_point: Optional[Point3] = None) -> ShapeSample:
        u = sampler()
        v = sampler()
        if u + v > 1.0:
            u, v = 1.0 - u, 1.0 - v
        return ShapeSample((u, v), self.triangle.point_at(u, v), self._normal, self.inv_area)

    def pdf_from(self, from_point: Point3, surf_coords: Tuple[float, float]) -> float:
        return self.inv_area

    def normal_at(self, surf_coords: Tuple[float, float]) -> Vec3:
        return self._normal

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UniformTriangle):
            return NotImplemented
        return self.triangle == other.triangle

    def __hash__(self) -> int:
        return hash(('UniformTriangle', self.triangle))


class UniformSphere(SampleableShape):
    """Uniform area sampling over a sphere.

    Surface coordinates are ``(phi / 2pi, (1 - cos(theta)) / 2)``, the
    same pair the direction sampler consumes.
    """

    def __init__(self, sphere: Sphere):
        self.sphere = sphere
        self._area = sphere.area()
        self.inv_area = 1.0 / self._area if self._area > 0.0 else 0.0

    @property
    def area(self) -> float:
        return self._area

    def sample(self, sampler: Sampler, from_point: Optional[Point3] = None) -> ShapeSample:
        u = sampler()
        v = sampler()
        direction = sample_uniform_sphere(u, v).dir
        pos = self.sphere.center + direction * self.sphere.radius
        return ShapeSample((u, v), pos, direction, self.inv_area)

    def pdf_from(self, from_point: Point3, surf_coords: Tuple[float, float]) -> float:
        return self.inv_area

    def normal_at(self, surf_coords: Tuple[float, float]) -> Vec3:
        return sample_uniform_sphere(surf_coords[0], surf_coords[1]).dir

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UniformSphere):
            return NotImplemented
        return self.sphere == other.sphere

    def __hash__(self) -> int:
        return hash(('UniformSphere', self.sphere))
