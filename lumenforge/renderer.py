"""
Renderer base class.

Implements:
- Tile-parallel iteration over the image
- Deterministic per-pixel, per-sample seeding
- Pixel-to-image-plane mapping with jitter
- Russian roulette survival probability
"""

from __future__ import annotations
from abc import ABC, abstractmethod
import threading
from typing import Callable, Optional, Tuple

from .color import RgbColor
from .image import Image
from .parallel import Tile, for_each_tile, resolve_thread_count
from .samplers import PcgSampler, Sampler, pixel_seed
from .scene import Scene


def sample_pixel(x: int, y: int, width: int, height: int,
                 sampler: Sampler) -> Tuple[float, float]:
    """Jittered image-plane position inside pixel (x, y).

    Row 0 is the top of the image.
    """
    u = (x + sampler()) * 2.0 / width - 1.0
    v = 1.0 - (y + sampler()) * 2.0 / height
    return u, v


def survival_probability(throughput: RgbColor, min_prob: float, max_prob: float) -> float:
    return min(max(throughput.luminance, min_prob), max_prob)


class Renderer(ABC):
    """Base class for rendering algorithms.

    Subclasses compute the radiance of one pixel sample; the base class
    distributes pixels over tiles and seeds the random source.
    """

    def __init__(self, scene: Scene, tile_size: int = 32, num_threads: int = 0):
        """Create a renderer.

        Args:
            scene: Scene to render (shared read-only by all workers)
            tile_size: Edge length of a tile in pixels
            num_threads: Worker count (0 = auto-detect)
        """
        if scene.camera is None:
            raise ValueError("scene has no camera")
        self.scene = scene
        self.tile_size = tile_size
        self.num_threads = resolve_thread_count(num_threads)
        self._progress_callback: Optional[Callable[[float], None]] = None

    def set_progress_callback(self, callback: Callable[[float], None]) -> None:
        """Set a callback function for per-tile progress updates.

        Args:
            callback: Function that takes progress as float (0.0 to 1.0)
        """
        self._progress_callback = callback

    @abstractmethod
    def radiance(self, x: int, y: int, width: int, height: int,
                 sampler: Sampler) -> RgbColor:
        """Estimate the radiance of one sample of pixel (x, y)."""
        pass

    def render(self, image: Image, sample_index: int, sample_count: int) -> None:
        """Accumulate samples ``[sample_index, sample_index + sample_count)``.

        Each sample is seeded from its pixel and index and added to the
        image on its own, so splitting a range into several calls gives
        the same image as one call.
        """
        width = image.width
        height = image.height
        tiles_total = max(len(range(0, width, self.tile_size))
                          * len(range(0, height, self.tile_size)), 1)
        done = [0]
        done_lock = threading.Lock()

        def render_tile(tile: Tile) -> None:
            xmin, ymin, xmax, ymax = tile
            for y in range(ymin, ymax):
                for x in range(xmin, xmax):
                    for i in range(sample_index, sample_index + sample_count):
                        sampler = PcgSampler(pixel_seed(x, y, i))
                        image.accumulate(x, y, self.radiance(x, y, width, height, sampler))
            if self._progress_callback:
                with done_lock:
                    done[0] += 1
                    fraction = done[0] / tiles_total
                self._progress_callback(fraction)

        for_each_tile(width, height, render_tile, self.tile_size, self.num_threads)
