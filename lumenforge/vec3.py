"""
Vector3 class for 3D math operations.

Used throughout the renderer for:
- Points in 3D space
- Direction vectors and normals
- Barycentric and texture-space coordinates
"""

from __future__ import annotations
import math
from typing import Iterator, Sequence, Union

import numpy as np


class Vec3:
    """A 3D vector class supporting common vector operations.

    Components are stored as plain floats; the inner loops of the
    integrator and BVH traversal work on a handful of vectors at a time,
    where slot access is far cheaper than a numpy array per vector.
    """

    __slots__ = ('x', 'y', 'z')

    def __init__(self, x: float = 0.0, y: float = 0.0, z: float = 0.0):
        self.x = float(x)
        self.y = float(y)
        self.z = float(z)

    @classmethod
    def from_array(cls, arr: Union[np.ndarray, Sequence[float]]) -> Vec3:
        """Create Vec3 from a numpy array or any 3-element sequence."""
        return cls(float(arr[0]), float(arr[1]), float(arr[2]))

    def __repr__(self) -> str:
        return f"Vec3({self.x:.4f}, {self.y:.4f}, {self.z:.4f})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Vec3):
            return NotImplemented
        return self.x == other.x and self.y == other.y and self.z == other.z

    def __hash__(self) -> int:
        return hash((self.x, self.y, self.z))

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y
        yield self.z

    def __neg__(self) -> Vec3:
        return Vec3(-self.x, -self.y, -self.z)

    def __add__(self, other: Union[Vec3, float]) -> Vec3:
        if isinstance(other, Vec3):
            return Vec3(self.x + other.x, self.y + other.y, self.z + other.z)
        return Vec3(self.x + other, self.y + other, self.z + other)

    __radd__ = __add__

    def __sub__(self, other: Union[Vec3, float]) -> Vec3:
        if isinstance(other, Vec3):
            return Vec3(self.x - other.x, self.y - other.y, self.z - other.z)
        return Vec3(self.x - other, self.y - other, self.z - other)

    def __rsub__(self, other: float) -> Vec3:
        return Vec3(other - self.x, other - self.y, other - self.z)

    def __mul__(self, other: Union[Vec3, float]) -> Vec3:
        if isinstance(other, Vec3):
            return Vec3(self.x * other.x, self.y * other.y, self.z * other.z)
        return Vec3(self.x * other, self.y * other, self.z * other)

    __rmul__ = __mul__

    def __truediv__(self, other: Union[Vec3, float]) -> Vec3:
        if isinstance(other, Vec3):
            return Vec3(self.x / other.x, self.y / other.y, self.z / other.z)
        inv = 1.0 / other
        return Vec3(self.x * inv, self.y * inv, self.z * inv)

    def __getitem__(self, index: int) -> float:
        if index == 0:
            return self.x
        if index == 1:
            return self.y
        if index == 2:
            return self.z
        raise IndexError(index)

    def length(self) -> float:
        """Return the magnitude (length) of the vector."""
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def length_squared(self) -> float:
        """Return the squared magnitude (avoids sqrt for comparisons)."""
        return self.x * self.x + self.y * self.y + self.z * self.z

    def normalize(self) -> Vec3:
        """Return a unit vector in the same direction."""
        length = self.length()
        if length == 0:
            return Vec3(0, 0, 0)
        inv = 1.0 / length
        return Vec3(self.x * inv, self.y * inv, self.z * inv)

    def dot(self, other: Vec3) -> float:
        """Compute dot product with another vector."""
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: Vec3) -> Vec3:
        """Compute cross product with another vector."""
        return Vec3(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    def reflect(self, normal: Vec3) -> Vec3:
        """Mirror this vector around the given normal.

        The result lies on the same side of the surface as ``self``:
        ``2 (n . v) n - v``. This is the convention the BSDFs use, where
        both directions point away from the surface.
        """
        return normal * (2.0 * self.dot(normal)) - self

    def min(self, other: Vec3) -> Vec3:
        return Vec3(min(self.x, other.x), min(self.y, other.y), min(self.z, other.z))

    def max(self, other: Vec3) -> Vec3:
        return Vec3(max(self.x, other.x), max(self.y, other.y), max(self.z, other.z))

    def to_array(self) -> np.ndarray:
        """Return the components as a new numpy array."""
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    def to_tuple(self) -> tuple:
        return (self.x, self.y, self.z)


def lerp3(a: Vec3, b: Vec3, c: Vec3, u: float, v: float) -> Vec3:
    """Barycentric interpolation: ``a (1 - u - v) + b u + c v``."""
    w = 1.0 - u - v
    return Vec3(
        a.x * w + b.x * u + c.x * v,
        a.y * w + b.y * u + c.y * v,
        a.z * w + b.z * u + c.z * v,
    )


# Convenience type aliases
Point3 = Vec3
