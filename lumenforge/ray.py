"""
Ray class for representing rays in 3D space.

A ray is defined by an origin point, a unit direction and a parametric
interval [tmin, tmax]. Ray(t) = origin + t * direction.
"""

from __future__ import annotations
import math

from .vec3 import Vec3, Point3


class Ray:
    """A ray with origin, direction and a valid parameter interval.

    ``tmin`` is the offset the integrator sets to avoid re-hitting the
    surface a ray leaves from. Intersection routines shrink ``tmax``
    in place to the nearest hit found so far.
    """

    __slots__ = ('origin', 'direction', 'tmin', 'tmax')

    def __init__(self, origin: Point3, direction: Vec3,
                 tmin: float = 0.0, tmax: float = math.inf):
        """Create a ray with given origin and direction.

        Args:
            origin: The starting point of the ray
            direction: The direction vector (unit length)
            tmin: Smallest accepted hit distance
            tmax: Largest accepted hit distance
        """
        self.origin = origin
        self.direction = direction
        self.tmin = tmin
        self.tmax = tmax

    def at(self, t: float) -> Point3:
        """Get the point along the ray at parameter t."""
        return self.origin + self.direction * t

    def __repr__(self) -> str:
        return (f"Ray(origin={self.origin}, direction={self.direction}, "
                f"tmin={self.tmin}, tmax={self.tmax})")
