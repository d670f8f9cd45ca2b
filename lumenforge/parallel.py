"""
Tile-parallel iteration over an image rectangle.

Tiles are disjoint, so workers can write their pixels of a shared image
without locking.
"""

from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
import os
from typing import Callable, List, Tuple

Tile = Tuple[int, int, int, int]


def resolve_thread_count(num_threads: int) -> int:
    """Map 0 (auto-detect) to the CPU count."""
    if num_threads < 0:
        raise ValueError(f"thread count must be >= 0, got {num_threads}")
    if num_threads == 0:
        return os.cpu_count() or 4
    return num_threads


def generate_tiles(width: int, height: int, tile_size: int = 32) -> List[Tile]:
    """Split a ``width`` x ``height`` rectangle into tiles.

    Returns:
        List of ``(xmin, ymin, xmax, ymax)`` bounds, max exclusive
    """
    if tile_size <= 0:
        raise ValueError(f"tile size must be positive, got {tile_size}")
    tiles = []
    for y in range(0, height, tile_size):
        for x in range(0, width, tile_size):
            tiles.append((x, y, min(x + tile_size, width), min(y + tile_size, height)))
    return tiles


def for_each_tile(width: int, height: int, fn: Callable[[Tile], None],
                  tile_size: int = 32, num_threads: int = 0) -> None:
    """Call ``fn`` once per tile, possibly concurrently and in any order.

    Exceptions raised by ``fn`` propagate to the caller once all tiles
    have been scheduled.

    Args:
        width: Image width in pixels
        height: Image height in pixels
        fn: Tile callback receiving ``(xmin, ymin, xmax, ymax)``
        tile_size: Edge length of a tile in pixels
        num_threads: Worker count, 0 for one per CPU
    """
    tiles = generate_tiles(width, height, tile_size)
    workers = min(resolve_thread_count(num_threads), max(len(tiles), 1))
    if workers <= 1:
        for tile in tiles:
            fn(tile)
        return

    with ThreadPoolExecutor(max_workers=workers) as executor:
        for _ in executor.map(fn, tiles):
            pass
