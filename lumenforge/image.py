"""
Image buffer.

A fixed-size multi-channel float raster stored channel-planar: channel
``c`` of pixel ``(x, y)`` lives at ``data[c, y, x]``. The renderer
accumulates radiance into the first three channels; callers divide by
the number of samples before saving.
"""

from __future__ import annotations
from enum import Enum
from pathlib import Path
from typing import Union

import numpy as np

from .color import RgbColor


class ImageFormat(Enum):
    """File formats understood by :meth:`Image.load` and :meth:`Image.save`."""
    AUTO = 'auto'
    PNG = 'png'
    JPEG = 'jpeg'
    TIFF = 'tiff'
    EXR = 'exr'


EXTENSIONS = {
    '.png': ImageFormat.PNG,
    '.jpg': ImageFormat.JPEG,
    '.jpeg': ImageFormat.JPEG,
    '.tif': ImageFormat.TIFF,
    '.tiff': ImageFormat.TIFF,
    '.exr': ImageFormat.EXR,
}


def format_from_extension(path: Union[str, Path]) -> ImageFormat:
    """Guess the format from a file name, ``AUTO`` when unknown."""
    return EXTENSIONS.get(Path(path).suffix.lower(), ImageFormat.AUTO)


class Image:
    """Channel-planar float32 raster."""

    def __init__(self, width: int, height: int, channels: int = 3):
        if width < 0 or height < 0 or channels <= 0:
            raise ValueError(f"invalid image size {width}x{height}x{channels}")
        self.width = width
        self.height = height
        self.channels = channels
        self.data = np.zeros((channels, height, width), dtype=np.float32)

    @classmethod
    def from_array(cls, array: np.ndarray) -> Image:
        """Build an image from an interleaved ``(height, width, channels)`` array."""
        array = np.asarray(array, dtype=np.float32)
        if array.ndim == 2:
            array = array[:, :, None]
        height, width, channels = array.shape
        image = cls(width, height, channels)
        image.data[...] = np.moveaxis(array, 2, 0)
        return image

    def to_array(self) -> np.ndarray:
        """Interleaved ``(height, width, channels)`` copy of the pixels."""
        return np.ascontiguousarray(np.moveaxis(self.data, 0, 2))

    def channel(self, index: int) -> np.ndarray:
        return self.data[index]

    def clear(self) -> None:
        self.data.fill(0.0)

    def rgb_at(self, x: int, y: int) -> RgbColor:
        """Colour of pixel (x, y); single-channel images read as gray."""
        if self.channels >= 3:
            return RgbColor(float(self.data[0, y, x]), float(self.data[1, y, x]),
                            float(self.data[2, y, x]))
        value = float(self.data[0, y, x])
        return RgbColor(value, value, value)

    def accumulate(self, x: int, y: int, color: RgbColor) -> None:
        """Add ``color`` to the RGB channels of pixel (x, y)."""
        data = self.data
        data[0, y, x] += color.r
        data[1, y, x] += color.g
        data[2, y, x] += color.b

    def scale(self, factor: float) -> None:
        """Multiply every channel of every pixel by ``factor`` in place."""
        self.data *= np.float32(factor)

    @classmethod
    def load(cls, path: Union[str, Path], fmt: ImageFormat = ImageFormat.AUTO) -> Image:
        """Read an image file.

        Args:
            path: File to read
            fmt: Codec to use; ``AUTO`` detects it from the extension,
                then from the file signature

        Raises:
            ImageIOError: If the file cannot be decoded
        """
        from .image_io import load_image
        return load_image(path, fmt)

    def save(self, path: Union[str, Path], fmt: ImageFormat = ImageFormat.AUTO) -> None:
        """Write the image.

        ``AUTO`` picks the codec from the extension and falls back to
        OpenEXR when the extension is not recognised.

        Raises:
            ImageIOError: If the image cannot be encoded or written
        """
        from .image_io import save_image
        save_image(self, path, fmt)

    def __repr__(self) -> str:
        return f"Image({self.width}x{self.height}x{self.channels})"
