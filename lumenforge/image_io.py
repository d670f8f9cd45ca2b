"""
Image codecs.

Supports:
- PNG, JPEG and TIFF through Pillow (8 bits per channel)
- OpenEXR through the ``OpenEXR`` bindings (32-bit float)

8-bit values are written as ``min(255, floor(max(f * 256, 0)))`` and read
back as ``value / 255``. No transfer curve is applied in either
direction: the renderer's linear values are stored as they are.
"""

from __future__ import annotations
import logging
from pathlib import Path
from typing import Callable, Dict, Union

import numpy as np
import OpenEXR
from PIL import Image as PILImage

from .image import Image, ImageFormat, format_from_extension

logger = logging.getLogger(__name__)

SIGNATURES = (
    (b'\x89PNG\r\n\x1a\n', ImageFormat.PNG),
    (b'\xff\xd8', ImageFormat.JPEG),
    (b'II*\x00', ImageFormat.TIFF),
    (b'MM\x00*', ImageFormat.TIFF),
    (b'v/1\x01', ImageFormat.EXR),
)

PIL_FORMATS = {
    ImageFormat.PNG: 'PNG',
    ImageFormat.JPEG: 'JPEG',
    ImageFormat.TIFF: 'TIFF',
}


class ImageIOError(Exception):
    """Raised when an image cannot be read or written."""
    pass


def format_from_signature(path: Union[str, Path]) -> ImageFormat:
    """Identify the format from the first bytes of the file."""
    with open(path, 'rb') as f:
        head = f.read(8)
    for magic, fmt in SIGNATURES:
        if head.startswith(magic):
            return fmt
    return ImageFormat.AUTO


def to_8bit(array: np.ndarray) -> np.ndarray:
    """Quantise linear floats to bytes."""
    array = np.nan_to_num(array, nan=0.0, posinf=1.0, neginf=0.0)
    return np.clip(np.floor(array * 256.0), 0, 255).astype(np.uint8)


def _rgb_array(image: Image) -> np.ndarray:
    array = image.to_array()
    if image.channels >= 3:
        return array[:, :, :3]
    return np.repeat(array[:, :, :1], 3, axis=2)


def _load_pil(path: Path) -> Image:
    with PILImage.open(path) as pil_image:
        if pil_image.mode == 'F':
            return Image.from_array(np.asarray(pil_image, dtype=np.float32))
        if pil_image.mode in ('I;16', 'I;16B', 'I;16L', 'I'):
            pixels = np.asarray(pil_image, dtype=np.float32)
            return Image.from_array(pixels / 65535.0)
        if pil_image.mode in ('L', 'RGB', 'RGBA'):
            pixels = np.asarray(pil_image)
        else:
            pixels = np.asarray(pil_image.convert('RGB'))
    return Image.from_array(pixels.astype(np.float32) / 255.0)


def _save_pil(image: Image, path: Path, fmt: ImageFormat) -> None:
    pil_image = PILImage.fromarray(to_8bit(_rgb_array(image)), 'RGB')
    options = {'quality': 95} if fmt == ImageFormat.JPEG else {}
    pil_image.save(path, format=PIL_FORMATS[fmt], **options)


def _load_exr(path: Path) -> Image:
    with OpenEXR.File(str(path)) as infile:
        channels = infile.channels()
        if 'RGBA' in channels:
            pixels = channels['RGBA'].pixels[:, :, :3]
        elif 'RGB' in channels:
            pixels = channels['RGB'].pixels
        elif all(name in channels for name in ('R', 'G', 'B')):
            pixels = np.stack([channels[name].pixels for name in ('R', 'G', 'B')], axis=2)
        elif 'Y' in channels:
            pixels = channels['Y'].pixels
        else:
            raise ImageIOError(f"{path}: no RGB or Y channels (found {sorted(channels)})")
    return Image.from_array(np.asarray(pixels, dtype=np.float32))


def _save_exr(image: Image, path: Path) -> None:
    header = {
        'compression': OpenEXR.ZIP_COMPRESSION,
        'type': OpenEXR.scanlineimage,
    }
    pixels = np.ascontiguousarray(_rgb_array(image), dtype=np.float32)
    with OpenEXR.File(header, {'RGB': pixels}) as outfile:
        outfile.write(str(path))


LOADERS: Dict[ImageFormat, Callable[[Path], Image]] = {
    ImageFormat.PNG: _load_pil,
    ImageFormat.JPEG: _load_pil,
    ImageFormat.TIFF: _load_pil,
    ImageFormat.EXR: _load_exr,
}


def load_image(path: Union[str, Path], fmt: ImageFormat = ImageFormat.AUTO) -> Image:
    """Decode an image file.

    With ``AUTO`` the format is taken from the extension, then from the
    file signature; as a last resort every codec is tried in turn.

    Raises:
        ImageIOError: If the file is missing or no codec can decode it
    """
    path = Path(path)
    if not path.is_file():
        raise ImageIOError(f"{path}: no such file")

    if fmt == ImageFormat.AUTO:
        fmt = format_from_extension(path)
        if fmt == ImageFormat.AUTO:
            fmt = format_from_signature(path)

    candidates = [fmt] if fmt != ImageFormat.AUTO else list(LOADERS)
    errors = []
    for candidate in candidates:
        try:
            image = LOADERS[candidate](path)
        except ImageIOError:
            raise
        except Exception as e:
            errors.append(f"{candidate.value}: {e}")
            continue
        logger.debug("Loaded %s (%dx%d) as %s", path, image.width, image.height,
                     candidate.value)
        return image
    raise ImageIOError(f"{path}: cannot decode image ({'; '.join(errors)})")


def save_image(image: Image, path: Union[str, Path],
               fmt: ImageFormat = ImageFormat.AUTO) -> None:
    """Encode ``image`` to ``path``.

    Raises:
        ImageIOError: If encoding or writing fails
    """
    path = Path(path)
    if fmt == ImageFormat.AUTO:
        fmt = format_from_extension(path)
        if fmt == ImageFormat.AUTO:
            fmt = ImageFormat.EXR

    try:
        if fmt == ImageFormat.EXR:
            _save_exr(image, path)
        else:
            _save_pil(image, path, fmt)
    except (OSError, ValueError, TypeError, RuntimeError) as e:
        raise ImageIOError(f"{path}: cannot write {fmt.value} image: {e}") from e
    logger.info("Saved %s image to %s", fmt.value, path)
