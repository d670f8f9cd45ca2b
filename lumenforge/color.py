"""
RGB color algebra.

Colors are linear tristimulus triples. Nothing in the renderer clamps
them; out-of-range values are only clipped when an image is written to
an 8-bit format.
"""

from __future__ import annotations
import math
from typing import Iterator, Union


class RgbColor:
    """A linear RGB triple with pointwise arithmetic."""

    __slots__ = ('r', 'g', 'b')

    def __init__(self, r: float = 0.0, g: float = 0.0, b: float = 0.0):
        self.r = float(r)
        self.g = float(g)
        self.b = float(b)

    @classmethod
    def gray(cls, value: float) -> RgbColor:
        return cls(value, value, value)

    @classmethod
    def black(cls) -> RgbColor:
        return cls(0.0, 0.0, 0.0)

    def __repr__(self) -> str:
        return f"RgbColor({self.r:.4f}, {self.g:.4f}, {self.b:.4f})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RgbColor):
            return NotImplemented
        return self.r == other.r and self.g == other.g and self.b == other.b

    def __hash__(self) -> int:
        return hash((self.r, self.g, self.b))

    def __iter__(self) -> Iterator[float]:
        yield self.r
        yield self.g
        yield self.b

    def __add__(self, other: Union[RgbColor, float]) -> RgbColor:
        if isinstance(other, RgbColor):
            return RgbColor(self.r + other.r, self.g + other.g, self.b + other.b)
        return RgbColor(self.r + other, self.g + other, self.b + other)

    __radd__ = __add__

    def __sub__(self, other: Union[RgbColor, float]) -> RgbColor:
        if isinstance(other, RgbColor):
            return RgbColor(self.r - other.r, self.g - other.g, self.b - other.b)
        return RgbColor(self.r - other, self.g - other, self.b - other)

    def __mul__(self, other: Union[RgbColor, float]) -> RgbColor:
        if isinstance(other, RgbColor):
            return RgbColor(self.r * other.r, self.g * other.g, self.b * other.b)
        return RgbColor(self.r * other, self.g * other, self.b * other)

    __rmul__ = __mul__

    def __truediv__(self, other: Union[RgbColor, float]) -> RgbColor:
        if isinstance(other, RgbColor):
            return RgbColor(self.r / other.r, self.g / other.g, self.b / other.b)
        inv = 1.0 / other
        return RgbColor(self.r * inv, self.g * inv, self.b * inv)

    def __getitem__(self, index: int) -> float:
        return (self.r, self.g, self.b)[index]

    @property
    def luminance(self) -> float:
        """Rec. 709 relative luminance."""
        return 0.2126 * self.r + 0.7152 * self.g + 0.0722 * self.b

    def is_black(self) -> bool:
        return self.r == 0.0 and self.g == 0.0 and self.b == 0.0

    def is_finite(self) -> bool:
        return math.isfinite(self.r) and math.isfinite(self.g) and math.isfinite(self.b)

    def max_component(self) -> float:
        return max(self.r, self.g, self.b)

    def to_tuple(self) -> tuple:
        return (self.r, self.g, self.b)


def lerp(a, b, t: float):
    """Linear interpolation ``a (1 - t) + b t``.

    Works for floats and for :class:`RgbColor` operands.
    """
    return a * (1.0 - t) + b * t


Color = RgbColor
