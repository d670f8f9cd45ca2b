"""Tests for image buffer and codecs."""

import os
import tempfile
import pytest
import numpy as np
from lumenforge.color import RgbColor
from lumenforge.image import Image, ImageFormat, format_from_extension
from lumenforge.image_io import (
    ImageIOError, format_from_signature, load_image, save_image, to_8bit,
)


@pytest.fixture
def temp_dir():
    with tempfile.TemporaryDirectory() as d:
        yield d


def gradient(width=8, height=4):
    image = Image(width, height)
    for y in range(height):
        for x in range(width):
            image.accumulate(x, y, RgbColor(x / width, y / height, 0.25))
    return image


class TestImage:
    """Test Image buffer."""

    def test_zero_initialised(self):
        image = Image(4, 3)
        assert image.data.shape == (3, 3, 4)
        assert image.data.dtype == np.float32
        assert not image.data.any()

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            Image(-1, 2)
        with pytest.raises(ValueError):
            Image(2, 2, 0)

    def test_accumulate_and_scale(self):
        image = Image(2, 2)
        image.accumulate(1, 0, RgbColor(1, 2, 3))
        image.accumulate(1, 0, RgbColor(1, 2, 3))
        image.scale(0.5)
        assert image.rgb_at(1, 0) == RgbColor(1, 2, 3)
        assert image.rgb_at(0, 0) == RgbColor(0, 0, 0)

    def test_channel_planar_layout(self):
        image = Image(3, 2)
        image.accumulate(2, 1, RgbColor(0.5, 0.25, 0.125))
        assert image.channel(0)[1, 2] == 0.5
        assert image.data[2, 1, 2] == 0.125

    def test_array_round_trip(self):
        array = np.random.default_rng(0).random((5, 7, 3)).astype(np.float32)
        image = Image.from_array(array)
        assert (image.width, image.height, image.channels) == (7, 5, 3)
        assert np.array_equal(image.to_array(), array)

    def test_clear(self):
        image = gradient()
        image.clear()
        assert not image.data.any()

    def test_gray_pixel(self):
        image = Image.from_array(np.full((1, 1), 0.5, dtype=np.float32))
        assert image.rgb_at(0, 0) == RgbColor(0.5, 0.5, 0.5)


class TestFormatDetection:
    """Test format detection."""

    def test_extensions(self):
        assert format_from_extension('a.PNG') == ImageFormat.PNG
        assert format_from_extension('a.jpg') == ImageFormat.JPEG
        assert format_from_extension('a.jpeg') == ImageFormat.JPEG
        assert format_from_extension('a.tif') == ImageFormat.TIFF
        assert format_from_extension('a.exr') == ImageFormat.EXR
        assert format_from_extension('a.bmp') == ImageFormat.AUTO

    def test_signature(self, temp_dir):
        path = os.path.join(temp_dir, 'image.dat')
        save_image(gradient(), path, ImageFormat.PNG)
        assert format_from_signature(path) == ImageFormat.PNG
        assert load_image(path).width == 8


class TestQuantisation:
    """Test 8-bit conversion."""

    def test_to_8bit(self):
        values = np.array([-1.0, 0.0, 0.5, 0.999, 1.0, 2.0, np.nan, np.inf])
        assert to_8bit(values).tolist() == [0, 0, 128, 255, 255, 255, 0, 255]


class TestCodecs:
    """Test file round trips."""

    @pytest.mark.parametrize("ext", ['.png', '.tif'])
    def test_lossless_8bit(self, temp_dir, ext):
        path = os.path.join(temp_dir, 'out' + ext)
        image = gradient()
        image.save(path)
        loaded = Image.load(path)
        assert (loaded.width, loaded.height) == (8, 4)
        expected = to_8bit(image.to_array()).astype(np.float32) / 255.0
        assert np.allclose(loaded.to_array()[:, :, :3], expected, atol=1e-6)

    def test_jpeg(self, temp_dir):
        path = os.path.join(temp_dir, 'out.jpg')
        image = gradient(16, 16)
        image.save(path)
        loaded = Image.load(path)
        assert (loaded.width, loaded.height) == (16, 16)
        assert np.abs(loaded.to_array()[:, :, :3] - image.to_array()).mean() < 0.05

    def test_exr_preserves_floats(self, temp_dir):
        path = os.path.join(temp_dir, 'out.exr')
        image = gradient()
        image.accumulate(0, 0, RgbColor(10.0, -1.0, 1e-3))
        image.save(path)
        loaded = Image.load(path)
        assert np.array_equal(loaded.to_array()[:, :, :3], image.to_array())

    def test_unknown_extension_saves_exr(self, temp_dir):
        path = os.path.join(temp_dir, 'out.img')
        gradient().save(path)
        assert format_from_signature(path) == ImageFormat.EXR

    def test_load_missing(self, temp_dir):
        with pytest.raises(ImageIOError):
            Image.load(os.path.join(temp_dir, 'missing.png'))

    def test_load_garbage(self, temp_dir):
        path = os.path.join(temp_dir, 'garbage.bin')
        with open(path, 'wb') as f:
            f.write(b'not an image at all')
        with pytest.raises(ImageIOError):
            Image.load(path)

    def test_save_to_missing_directory(self, temp_dir):
        with pytest.raises(ImageIOError):
            gradient().save(os.path.join(temp_dir, 'nope', 'out.png'))
