"""
Camera module for generating primary rays.

Supports:
- Perspective (pinhole) projection
- Configurable horizontal field of view and aspect ratio
- Projection of world points back onto the image plane

Image-plane coordinates are in [-1, 1]^2, with +u to the right and +v up.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
import math
from typing import Optional, Tuple

from .ray import Ray
from .vec3 import Point3, Vec3


@dataclass
class LensGeometry:
    """Geometric terms of the sensor at an image-plane position.

    Attributes:
        cos: Cosine between the camera axis and the ray direction
        dist: Distance from the eye to the image-plane point
        area: Inverse of the image-plane area covered by ``[-1, 1]^2``
    """
    cos: float
    dist: float
    area: float


class Camera(ABC):
    """Abstract base class for cameras."""

    @abstractmethod
    def generate_ray(self, uv: Tuple[float, float]) -> Ray:
        """Generate the primary ray through image-plane position ``uv``."""
        pass

    @abstractmethod
    def project(self, point: Point3) -> Optional[Tuple[float, float]]:
        """Image-plane position of a world point, or None if behind the camera."""
        pass

    @abstractmethod
    def unproject(self, uv: Tuple[float, float]) -> Point3:
        """World position of an image-plane point."""
        pass

    @abstractmethod
    def geometry(self, uv: Tuple[float, float]) -> LensGeometry:
        pass


class PerspectiveCamera(Camera):
    """A pinhole camera."""

    def __init__(self, eye: Point3, dir: Vec3, up: Vec3, fov: float, aspect: float):
        """Create a perspective camera.

        Args:
            eye: Camera position in world space
            dir: Viewing direction
            up: World up vector
            fov: Horizontal field of view in degrees
            aspect: Width / height ratio
        """
        if not 0.0 < fov < 180.0:
            raise ValueError(f"field of view must be in (0, 180) degrees, got {fov}")
        if aspect <= 0.0:
            raise ValueError(f"aspect ratio must be positive, got {aspect}")

        self.eye = eye
        self.fov = fov
        self.aspect = aspect
        self.width = math.tan(math.radians(fov) * 0.5)
        self.height = self.width / aspect

        self.dir = dir.normalize()
        right = self.dir.cross(up).normalize()
        if right.length_squared() == 0.0:
            raise ValueError("camera up vector is parallel to the viewing direction")
        self.right = right * self.width
        self.up = right.cross(self.dir) * self.height

    def generate_ray(self, uv: Tuple[float, float]) -> Ray:
        d = self.dir + self.right * uv[0] + self.up * uv[1]
        return Ray(self.eye, d.normalize())

    def project(self, point: Point3) -> Optional[Tuple[float, float]]:
        d = point - self.eye
        z = d.dot(self.dir)
        if z <= 0.0:
            return None
        u = d.dot(self.right) / (z * self.width * self.width)
        v = d.dot(self.up) / (z * self.height * self.height)
        return (u, v)

    def unproject(self, uv: Tuple[float, float]) -> Point3:
        return self.eye + self.dir + self.right * uv[0] + self.up * uv[1]

    def geometry(self, uv: Tuple[float, float]) -> LensGeometry:
        x = uv[0] * self.width
        y = uv[1] * self.height
        dist = math.sqrt(1.0 + x * x + y * y)
        return LensGeometry(1.0 / dist, dist, 1.0 / (4.0 * self.width * self.height))

    def __repr__(self) -> str:
        return (f"PerspectiveCamera(eye={self.eye}, dir={self.dir}, "
                f"fov={self.fov}, aspect={self.aspect})")
