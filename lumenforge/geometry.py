"""
Intersection records and the geometry interface.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional, Tuple

from .ray import Ray
from .sampling import Basis
from .vec3 import Point3, Vec3

if TYPE_CHECKING:
    from .bsdfs import Bsdf
    from .lights import Light


class SurfaceInfo:
    """Local description of a surface point.

    Attributes:
        is_front_side: True when the ray arrived against the face normal
        point: World-space position
        tex_coords: Interpolated texture coordinates
        surf_coords: Shape-native coordinates (barycentrics for triangles)
        face_normal: Geometric normal, flipped toward the incoming ray
        local: Shading frame whose third axis is the shading normal,
            flipped together with ``face_normal``
    """

    __slots__ = ('is_front_side', 'point', 'tex_coords', 'surf_coords',
                 'face_normal', 'local')

    def __init__(self, is_front_side: bool, point: Point3,
                 tex_coords: Tuple[float, float], surf_coords: Tuple[float, float],
                 face_normal: Vec3, local: Basis):
        self.is_front_side = is_front_side
        self.point = point
        self.tex_coords = tex_coords
        self.surf_coords = surf_coords
        self.face_normal = face_normal
        self.local = local

    @property
    def normal(self) -> Vec3:
        """Shading normal."""
        return self.local.normal

    def __repr__(self) -> str:
        return (f"SurfaceInfo(front={self.is_front_side}, point={self.point}, "
                f"normal={self.normal})")


class Hit:
    """Result of a closest-hit query."""

    __slots__ = ('surf', 'light', 'bsdf', 'prim_index')

    def __init__(self, surf: SurfaceInfo, bsdf: Optional['Bsdf'],
                 light: Optional['Light'] = None, prim_index: int = -1):
        self.surf = surf
        self.bsdf = bsdf
        self.light = light
        self.prim_index = prim_index


class Geometry(ABC):
    """Anything a ray can be intersected with."""

    @abstractmethod
    def intersect_closest(self, ray: Ray) -> Optional[Hit]:
        """Find the nearest hit in ``[ray.tmin, ray.tmax]``.

        On a hit ``ray.tmax`` is set to the hit distance.
        """
        pass

    @abstractmethod
    def intersect_any(self, ray: Ray) -> bool:
        """Return True as soon as any hit in ``[ray.tmin, ray.tmax]`` is found."""
        pass


class EmptyGeometry(Geometry):
    """Geometry that is never hit."""

    def intersect_closest(self, ray: Ray) -> Optional[Hit]:
        return None

    def intersect_any(self, ray: Ray) -> bool:
        return False
