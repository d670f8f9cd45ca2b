"""
Random number sources.

Each pixel sample draws from its own generator, seeded from the pixel
coordinates and the sample index, so any subdivision of a sample range
renders the same image.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
import struct

import numpy as np

FNV_OFFSET_BASIS = 0x811C9DC5
FNV_PRIME = 0x01000193


def fnv1a(data: bytes, h: int = FNV_OFFSET_BASIS) -> int:
    """32-bit FNV-1a hash of ``data``."""
    for byte in data:
        h = ((h ^ byte) * FNV_PRIME) & 0xFFFFFFFF
    return h


def pixel_seed(x: int, y: int, sample_index: int) -> int:
    """Seed for pixel (x, y) and sample ``sample_index``.

    FNV-1a over the little-endian 32-bit encodings of the three values.
    """
    return fnv1a(struct.pack('<III', x & 0xFFFFFFFF, y & 0xFFFFFFFF,
                             sample_index & 0xFFFFFFFF))


class Sampler(ABC):
    """Source of uniform floats in [0, 1)."""

    @abstractmethod
    def __call__(self) -> float:
        pass


class PcgSampler(Sampler):
    """Sampler backed by numpy's PCG64 bit generator.

    Values are drawn in blocks to amortise the per-call overhead of the
    generator.
    """

    BLOCK_SIZE = 64

    __slots__ = ('_rng', '_buffer', '_pos')

    def __init__(self, seed: int = 0):
        self._rng = np.random.Generator(np.random.PCG64(seed))
        self._buffer: list = []
        self._pos = 0

    def __call__(self) -> float:
        if self._pos >= len(self._buffer):
            self._buffer = self._rng.random(self.BLOCK_SIZE).tolist()
            self._pos = 0
        value = self._buffer[self._pos]
        self._pos += 1
        return value
