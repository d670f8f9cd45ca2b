"""
Texture system.

Implements:
- Constant scalar and color textures
- Image textures with Clamp / Repeat / Mirror wrapping
- Nearest and bilinear filtering

Scalar textures answer ``sample(uv)``. Color textures additionally answer
``sample_color(uv)``; their scalar value is the luminance of that color.
Every texture is hashable so the scene loader can share identical ones.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from enum import Enum
import math
from typing import Tuple

import numpy as np

from .color import RgbColor
from .image import Image

UV = Tuple[float, float]


class WrapMode(Enum):
    CLAMP = 'clamp'
    REPEAT = 'repeat'
    MIRROR = 'mirror'


class ImageFilter(Enum):
    NEAREST = 'nearest'
    BILINEAR = 'bilinear'


def _clamp01(x: float) -> float:
    return 0.0 if x < 0.0 else (1.0 if x > 1.0 else x)


def _repeat(x: float) -> float:
    return x - math.floor(x)


def _mirror(x: float) -> float:
    t = x - 2.0 * math.floor(x * 0.5)
    return 2.0 - t if t > 1.0 else t


WRAP_FUNCTIONS = {
    WrapMode.CLAMP: _clamp01,
    WrapMode.REPEAT: _repeat,
    WrapMode.MIRROR: _mirror,
}


class Texture(ABC):
    """Abstract base class for scalar textures."""

    @abstractmethod
    def sample(self, uv: UV) -> float:
        """Get the scalar texture value at the given texture coordinates."""
        pass

    @abstractmethod
    def _key(self) -> tuple:
        pass

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Texture):
            return NotImplemented
        return type(self) is type(other) and self._key() == other._key()

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._key()))


class ColorTexture(Texture):
    """Texture that produces colors."""

    @abstractmethod
    def sample_color(self, uv: UV) -> RgbColor:
        """Get the texture color at the given texture coordinates."""
        pass

    def sample(self, uv: UV) -> float:
        return self.sample_color(uv).luminance


class ConstantTexture(Texture):
    """A constant scalar."""

    def __init__(self, value: float):
        self.value = float(value)

    def sample(self, uv: UV) -> float:
        return self.value

    def _key(self) -> tuple:
        return (self.value,)

    def __repr__(self) -> str:
        return f"ConstantTexture({self.value})"


class ConstantColorTexture(ColorTexture):
    """A solid color."""

    def __init__(self, color: RgbColor):
        self.color = color

    def sample_color(self, uv: UV) -> RgbColor:
        return self.color

    def sample(self, uv: UV) -> float:
        return self.color.luminance

    def _key(self) -> tuple:
        return self.color.to_tuple()

    def __repr__(self) -> str:
        return f"ConstantColorTexture({self.color})"


class ImageTexture(ColorTexture):
    """A color texture backed by an :class:`Image`.

    Texture coordinate (0, 0) maps to the first stored pixel row and
    column; no vertical flip is applied.
    """

    def __init__(self, image: Image, filter: ImageFilter = ImageFilter.BILINEAR,
                 wrap: WrapMode = WrapMode.REPEAT):
        """Create an image texture.

        Args:
            image: Source raster (RGB, or single channel read as gray)
            filter: Reconstruction filter
            wrap: How coordinates outside [0, 1] are folded back
        """
        if image.width == 0 or image.height == 0:
            raise ValueError("image texture needs a non-empty image")
        self.image = image
        self.filter = filter
        self.wrap = wrap
        self._wrap_fn = WRAP_FUNCTIONS[wrap]
        rgb = image.to_array()
        if rgb.shape[2] < 3:
            rgb = np.repeat(rgb[:, :, :1], 3, axis=2)
        self._pixels = rgb[:, :, :3].tolist()

    def _texel(self, i: int, j: int) -> RgbColor:
        r, g, b = self._pixels[j][i]
        return RgbColor(r, g, b)

    def sample_color(self, uv: UV) -> RgbColor:
        u = self._wrap_fn(uv[0])
        v = self._wrap_fn(uv[1])
        width = self.image.width
        height = self.image.height

        if self.filter == ImageFilter.NEAREST:
            i = min(max(int(math.floor(u * width)), 0), width - 1)
            j = min(max(int(math.floor(v * height)), 0), height - 1)
            return self._texel(i, j)

        x = u * (width - 1)
        y = v * (height - 1)
        i0 = min(int(x), width - 1)
        j0 = min(int(y), height - 1)
        i1 = min(i0 + 1, width - 1)
        j1 = min(j0 + 1, height - 1)
        fx = x - i0
        fy = y - j0

        c00 = self._texel(i0, j0)
        c10 = self._texel(i1, j0)
        c01 = self._texel(i0, j1)
        c11 = self._texel(i1, j1)
        top = c00 * (1.0 - fx) + c10 * fx
        bottom = c01 * (1.0 - fx) + c11 * fx
        return top * (1.0 - fy) + bottom * fy

    def _key(self) -> tuple:
        return (id(self.image), self.filter, self.wrap)

    def __repr__(self) -> str:
        return f"ImageTexture({self.image}, {self.filter.name}, {self.wrap.name})"
