"""
BSDF system.

Implements:
- Lambertian diffuse
- Modified Phong glossy lobe (energy-normalised)
- Perfect mirror
- Smooth dielectric interface (glass) with Fresnel reflectance
- Stochastic interpolation between two BSDFs

Conventions: ``out_dir`` points from the surface toward the viewer (the
direction light leaves in), ``in_dir`` points from the surface toward
where light arrives from. Both are unit world-space vectors. Every pdf
is expressed in solid-angle measure.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
import math
from typing import Optional

from .color import RgbColor, lerp
from .geometry import SurfaceInfo
from .samplers import Sampler
from .sampling import (
    INV_PI, cosine_hemisphere_pdf, cosine_power_hemisphere_pdf, mirror,
    ortho_basis, sample_cosine_hemisphere, sample_cosine_power_hemisphere,
)
from .textures import ColorTexture, Texture
from .vec3 import Vec3


class BsdfType(IntEnum):
    """Scattering class, ordered from softest to sharpest."""
    DIFFUSE = 0
    GLOSSY = 1
    SPECULAR = 2


@dataclass
class BsdfSample:
    """A sampled incoming direction.

    ``color * cos / pdf`` is the throughput factor of the bounce.
    ``is_specular`` marks directions drawn from a delta lobe, whose pdf
    cannot be compared against other strategies.
    """
    in_dir: Vec3
    pdf: float
    cos: float
    color: RgbColor
    is_specular: bool = False


def make_sample(surf: SurfaceInfo, in_dir: Vec3, pdf: float, cos: float,
                color: RgbColor, is_specular: bool = False,
                below: bool = False) -> Optional[BsdfSample]:
    """Return a :class:`BsdfSample`, or None if it is not usable.

    A sample is kept only if its pdf is positive and ``in_dir`` lies on
    the expected side of the geometric surface: above it for
    reflection, below it (``below=True``) for transmission.
    """
    if not pdf > 0.0:
        return None
    side = in_dir.dot(surf.face_normal)
    if (side < 0.0) if below else (side > 0.0):
        return BsdfSample(in_dir, pdf, cos, color, is_specular)
    return None


class Bsdf(ABC):
    """Abstract base class for BSDFs."""

    type: BsdfType = BsdfType.DIFFUSE

    @abstractmethod
    def eval(self, in_dir: Vec3, surf: SurfaceInfo, out_dir: Vec3) -> RgbColor:
        """BSDF value for the pair of directions (zero if not evaluable)."""
        pass

    @abstractmethod
    def sample(self, sampler: Sampler, surf: SurfaceInfo, out_dir: Vec3,
               is_adjoint: bool = False) -> Optional[BsdfSample]:
        """Draw an incoming direction.

        Args:
            sampler: Random source
            surf: Surface point being scattered at
            out_dir: Outgoing direction
            is_adjoint: True when importance rather than radiance is
                being transported

        Returns:
            The sample, or None when sampling failed
        """
        pass

    @abstractmethod
    def pdf(self, in_dir: Vec3, surf: SurfaceInfo, out_dir: Vec3) -> float:
        """Solid-angle density with which :meth:`sample` returns ``in_dir``."""
        pass

    @abstractmethod
    def _key(self) -> tuple:
        pass

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Bsdf):
            return NotImplemented
        return type(self) is type(other) and self._key() == other._key()

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._key()))


class DiffuseBsdf(Bsdf):
    """Lambertian reflector: ``kd / pi``."""

    type = BsdfType.DIFFUSE

    def __init__(self, kd: ColorTexture):
        self.kd = kd

    def eval(self, in_dir: Vec3, surf: SurfaceInfo, out_dir: Vec3) -> RgbColor:
        if in_dir.dot(surf.normal) <= 0.0:
            return RgbColor.black()
        return self.kd.sample_color(surf.tex_coords) * INV_PI

    def sample(self, sampler: Sampler, surf: SurfaceInfo, out_dir: Vec3,
               is_adjoint: bool = False) -> Optional[BsdfSample]:
        local = sample_cosine_hemisphere(sampler(), sampler())
        in_dir = surf.local.to_world(local.dir)
        return make_sample(surf, in_dir, local.pdf, local.dir.z,
                           self.kd.sample_color(surf.tex_coords) * INV_PI)

    def pdf(self, in_dir: Vec3, surf: SurfaceInfo, out_dir: Vec3) -> float:
        return cosine_hemisphere_pdf(in_dir.dot(surf.normal))

    def _key(self) -> tuple:
        return (self.kd,)

    def __repr__(self) -> str:
        return f"DiffuseBsdf({self.kd})"


class PhongBsdf(Bsdf):
    """Physically plausible Phong lobe.

    ``ks * cos^ns(alpha) * (ns + 2) / (2 pi)`` where alpha is the angle
    between ``in_dir`` and the mirror direction of ``out_dir``.
    """

    type = BsdfType.GLOSSY

    def __init__(self, ks: ColorTexture, ns: Texture):
        self.ks = ks
        self.ns = ns

    def eval(self, in_dir: Vec3, surf: SurfaceInfo, out_dir: Vec3) -> RgbColor:
        if in_dir.dot(surf.normal) <= 0.0:
            return RgbColor.black()
        cos_alpha = in_dir.dot(mirror(out_dir, surf.normal))
        if cos_alpha <= 0.0:
            return RgbColor.black()
        ns = self.ns.sample(surf.tex_coords)
        return self.ks.sample_color(surf.tex_coords) * (
            math.pow(cos_alpha, ns) * (ns + 2.0) * (0.5 * INV_PI))

    def sample(self, sampler: Sampler, surf: SurfaceInfo, out_dir: Vec3,
               is_adjoint: bool = False) -> Optional[BsdfSample]:
        ns = self.ns.sample(surf.tex_coords)
        basis = ortho_basis(mirror(out_dir, surf.normal))
        local = sample_cosine_power_hemisphere(ns, sampler(), sampler())
        in_dir = basis.to_world(local.dir)
        cos = in_dir.dot(surf.normal)
        if cos <= 0.0:
            return None
        color = self.ks.sample_color(surf.tex_coords) * (
            math.pow(local.dir.z, ns) * (ns + 2.0) * (0.5 * INV_PI))
        return make_sample(surf, in_dir, local.pdf, cos, color)

    def pdf(self, in_dir: Vec3, surf: SurfaceInfo, out_dir: Vec3) -> float:
        if in_dir.dot(surf.normal) <= 0.0:
            return 0.0
        cos_alpha = in_dir.dot(mirror(out_dir, surf.normal))
        return cosine_power_hemisphere_pdf(self.ns.sample(surf.tex_coords), cos_alpha)

    def _key(self) -> tuple:
        return (self.ks, self.ns)

    def __repr__(self) -> str:
        return f"PhongBsdf({self.ks}, {self.ns})"


class MirrorBsdf(Bsdf):
    """Perfect specular reflector tinted by ``ks``."""

    type = BsdfType.SPECULAR

    def __init__(self, ks: ColorTexture):
        self.ks = ks

    def eval(self, in_dir: Vec3, surf: SurfaceInfo, out_dir: Vec3) -> RgbColor:
        return RgbColor.black()

    def sample(self, sampler: Sampler, surf: SurfaceInfo, out_dir: Vec3,
               is_adjoint: bool = False) -> Optional[BsdfSample]:
        return make_sample(surf, mirror(out_dir, surf.normal), 1.0, 1.0,
                           self.ks.sample_color(surf.tex_coords), is_specular=True)

    def pdf(self, in_dir: Vec3, surf: SurfaceInfo, out_dir: Vec3) -> float:
        return 0.0

    def _key(self) -> tuple:
        return (self.ks,)

    def __repr__(self) -> str:
        return f"MirrorBsdf({self.ks})"


def fresnel_dielectric(eta: float, cos_i: float, cos_t: float) -> float:
    """Unpolarised Fresnel reflectance of a smooth dielectric interface.

    Args:
        eta: Ratio of the indices on the incident and transmitted sides
        cos_i: Cosine of the incident angle
        cos_t: Cosine of the transmitted angle
    """
    rs = (eta * cos_i - cos_t) / (eta * cos_i + cos_t)
    rp = (cos_i - eta * cos_t) / (cos_i + eta * cos_t)
    return 0.5 * (rs * rs + rp * rp)


class GlassBsdf(Bsdf):
    """Smooth dielectric interface.

    ``eta`` is the relative index of refraction, outside over inside
    (about 1/1.5 for glass in air).
    """

    type = BsdfType.SPECULAR

    def __init__(self, ks: ColorTexture, kt: ColorTexture, eta: Texture):
        self.ks = ks
        self.kt = kt
        self.eta = eta

    def eval(self, in_dir: Vec3, surf: SurfaceInfo, out_dir: Vec3) -> RgbColor:
        return RgbColor.black()

    def sample(self, sampler: Sampler, surf: SurfaceInfo, out_dir: Vec3,
               is_adjoint: bool = False) -> Optional[BsdfSample]:
        eta = self.eta.sample(surf.tex_coords)
        if not surf.is_front_side:
            eta = 1.0 / eta
        n = surf.normal
        cos_i = out_dir.dot(n)
        cos2_t = 1.0 - eta * eta * (1.0 - cos_i * cos_i)
        u = sampler()

        if cos2_t > 0.0:
            cos_t = math.sqrt(cos2_t)
            if u >= fresnel_dielectric(eta, cos_i, cos_t):
                in_dir = n * (eta * cos_i - cos_t) - out_dir * eta
                color = self.kt.sample_color(surf.tex_coords)
                if is_adjoint:
                    color = color * (eta * eta)
                return make_sample(surf, in_dir, 1.0, 1.0, color,
                                   is_specular=True, below=True)

        return make_sample(surf, mirror(out_dir, n), 1.0, 1.0,
                           self.ks.sample_color(surf.tex_coords), is_specular=True)

    def pdf(self, in_dir: Vec3, surf: SurfaceInfo, out_dir: Vec3) -> float:
        return 0.0

    def _key(self) -> tuple:
        return (self.ks, self.kt, self.eta)

    def __repr__(self) -> str:
        return f"GlassBsdf({self.ks}, {self.kt}, {self.eta})"


class InterpBsdf(Bsdf):
    """Mixture ``(1 - k) a + k b`` of two BSDFs.

    Sampling picks ``b`` with probability ``k``. Non-specular samples
    are rewritten with the mixture's value and pdf so they remain proper
    samples of the combined BSDF.
    """

    def __init__(self, a: Bsdf, b: Bsdf, k: Texture):
        self.a = a
        self.b = b
        self.k = k
        self.type = BsdfType(min(a.type, b.type))

    def eval(self, in_dir: Vec3, surf: SurfaceInfo, out_dir: Vec3) -> RgbColor:
        k = self.k.sample(surf.tex_coords)
        return lerp(self.a.eval(in_dir, surf, out_dir),
                    self.b.eval(in_dir, surf, out_dir), k)

    def sample(self, sampler: Sampler, surf: SurfaceInfo, out_dir: Vec3,
               is_adjoint: bool = False) -> Optional[BsdfSample]:
        k = self.k.sample(surf.tex_coords)
        if sampler() < k:
            chosen, prob = self.b, k
        else:
            chosen, prob = self.a, 1.0 - k

        sample = chosen.sample(sampler, surf, out_dir, is_adjoint)
        if sample is None:
            return None

        if sample.is_specular:
            sample.pdf *= prob
            sample.color = sample.color * prob
            return sample if sample.pdf > 0.0 else None

        sample.color = self.eval(sample.in_dir, surf, out_dir)
        sample.pdf = self.pdf(sample.in_dir, surf, out_dir)
        return sample if sample.pdf > 0.0 else None

    def pdf(self, in_dir: Vec3, surf: SurfaceInfo, out_dir: Vec3) -> float:
        k = self.k.sample(surf.tex_coords)
        return lerp(self.a.pdf(in_dir, surf, out_dir),
                    self.b.pdf(in_dir, surf, out_dir), k)

    def _key(self) -> tuple:
        return (self.a, self.b, self.k)

    def __repr__(self) -> str:
        return f"InterpBsdf({self.a}, {self.b}, {self.k})"
