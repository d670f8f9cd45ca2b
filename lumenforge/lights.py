"""
Light sources.

Implements:
- Point lights (delta position, cannot be hit by rays)
- Area lights over any sampleable shape (triangles, spheres)

Area pdfs are in area measure, direction pdfs in solid-angle measure.
A light sample is only returned when all of its pdfs and its emission
cosine are strictly positive.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple

from .color import RgbColor
from .samplers import Sampler
from .sampling import (
    INV_FOUR_PI, INV_PI, ortho_basis, sample_cosine_hemisphere, sample_uniform_sphere,
)
from .shapes import SampleableShape
from .textures import ColorTexture
from .vec3 import Point3, Vec3


@dataclass
class LightAreaSample:
    """A point on a light, chosen for direct lighting of ``from_point``."""
    pos: Point3
    intensity: RgbColor
    pdf_from: float
    pdf_area: float
    pdf_dir: float
    cos: float


@dataclass
class LightEmissionSample:
    """A point and direction of emission, chosen without a receiver."""
    pos: Point3
    dir: Vec3
    intensity: RgbColor
    pdf_area: float
    pdf_dir: float
    cos: float


@dataclass
class EmissionValue:
    """Emission seen when a ray hits the light directly."""
    intensity: RgbColor
    pdf_from: float
    pdf_area: float
    pdf_dir: float


def _valid(pdf_from: float, pdf_area: float, pdf_dir: float, cos: float) -> bool:
    return pdf_from > 0.0 and pdf_area > 0.0 and pdf_dir > 0.0 and cos > 0.0


class Light(ABC):
    """Abstract base class for light sources."""

    has_area: bool = False

    @abstractmethod
    def sample_area(self, sampler: Sampler, from_point: Point3) -> Optional[LightAreaSample]:
        """Sample a point on the light for a receiver at ``from_point``."""
        pass

    @abstractmethod
    def sample_emission(self, sampler: Sampler) -> Optional[LightEmissionSample]:
        """Sample a point on the light and a direction to emit in."""
        pass

    @abstractmethod
    def emission(self, from_point: Point3, dir: Vec3, uv: Tuple[float, float]) -> EmissionValue:
        """Emission leaving the light at surface coordinates ``uv``.

        Args:
            from_point: Point the emitted light is received at
            dir: Direction of emission, pointing away from the light
            uv: Surface coordinates on the light's shape
        """
        pass

    @abstractmethod
    def pdf_from(self, from_point: Point3, uv: Tuple[float, float]) -> float:
        """Area density with which :meth:`sample_area` picks ``uv``."""
        pass

    @abstractmethod
    def _key(self) -> tuple:
        pass

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Light):
            return NotImplemented
        return type(self) is type(other) and self._key() == other._key()

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._key()))


class PointLight(Light):
    """An isotropic point light source.

    Intensity is radiant intensity: the irradiance it produces at
    distance d on a facing surface is ``intensity / d^2``.
    """

    has_area = False

    def __init__(self, pos: Point3, intensity: RgbColor):
        """Create a point light.

        Args:
            pos: Position of the light
            intensity: Emitted intensity per channel
        """
        self.pos = pos
        self.intensity = intensity

    def sample_area(self, sampler: Sampler, from_point: Point3) -> Optional[LightAreaSample]:
        return LightAreaSample(self.pos, self.intensity, 1.0, 1.0, INV_FOUR_PI, 1.0)

    def sample_emission(self, sampler: Sampler) -> Optional[LightEmissionSample]:
        direction = sample_uniform_sphere(sampler(), sampler())
        return LightEmissionSample(self.pos, direction.dir, self.intensity,
                                   1.0, direction.pdf, 1.0)

    def emission(self, from_point: Point3, dir: Vec3, uv: Tuple[float, float]) -> EmissionValue:
        return EmissionValue(RgbColor.black(), 0.0, 0.0, 0.0)

    def pdf_from(self, from_point: Point3, uv: Tuple[float, float]) -> float:
        return 0.0

    def _key(self) -> tuple:
        return (self.pos, self.intensity)

    def __repr__(self) -> str:
        return f"PointLight({self.pos}, {self.intensity})"


class AreaLight(Light):
    """One-sided diffuse emitter over a shape.

    Light leaves only through the side the shape's normal points to.
    """

    has_area = True

    def __init__(self, shape: SampleableShape, intensity: ColorTexture):
        """Create an area light.

        Args:
            shape: Emitting surface
            intensity: Emitted radiance, looked up by surface coordinates
        """
        self.shape = shape
        self.intensity = intensity
        self.inv_area = 1.0 / shape.area if shape.area > 0.0 else 0.0

    def sample_area(self, sampler: Sampler, from_point: Point3) -> Optional[LightAreaSample]:
        sample = self.shape.sample(sampler, from_point)
        to_from = from_point - sample.pos
        dist = to_from.length()
        if dist == 0.0:
            return None
        cos = to_from.dot(sample.normal) / dist
        pdf_dir = cos * INV_PI
        if not _valid(sample.pdf, self.inv_area, pdf_dir, cos):
            return None
        return LightAreaSample(sample.pos, self.intensity.sample_color(sample.surf_coords),
                               sample.pdf, self.inv_area, pdf_dir, cos)

    def sample_emission(self, sampler: Sampler) -> Optional[LightEmissionSample]:
        sample = self.shape.sample(sampler)
        local = sample_cosine_hemisphere(sampler(), sampler())
        direction = ortho_basis(sample.normal).to_world(local.dir)
        cos = local.dir.z
        if not _valid(sample.pdf, self.inv_area, local.pdf, cos):
            return None
        return LightEmissionSample(sample.pos, direction,
                                   self.intensity.sample_color(sample.surf_coords),
                                   self.inv_area, local.pdf, cos)

    def emission(self, from_point: Point3, dir: Vec3, uv: Tuple[float, float]) -> EmissionValue:
        cos = dir.dot(self.shape.normal_at(uv))
        if cos <= 0.0:
            return EmissionValue(RgbColor.black(), 0.0, 0.0, 0.0)
        return EmissionValue(self.intensity.sample_color(uv),
                             self.shape.pdf_from(from_point, uv),
                             self.inv_area, cos * INV_PI)

    def pdf_from(self, from_point: Point3, uv: Tuple[float, float]) -> float:
        return self.shape.pdf_from(from_point, uv)

    def _key(self) -> tuple:
        return (self.shape, self.intensity)

    def __repr__(self) -> str:
        return f"AreaLight({self.shape}, {self.intensity})"
