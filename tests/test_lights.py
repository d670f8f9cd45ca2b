"""Tests for light sources."""

import math
import pytest
from lumenforge.color import RgbColor
from lumenforge.lights import PointLight, AreaLight
from lumenforge.samplers import PcgSampler
from lumenforge.sampling import INV_PI, INV_FOUR_PI
from lumenforge.shapes import Triangle, Sphere, UniformTriangle, UniformSphere
from lumenforge.textures import ConstantColorTexture
from lumenforge.vec3 import Vec3, Point3


def facing_down_light(intensity=1.0):
    """Unit-area triangle light at z = 1 emitting toward -z."""
    tri = Triangle(Point3(0, 0, 1), Point3(0, 2, 1), Point3(1, 0, 1))
    return AreaLight(UniformTriangle(tri), ConstantColorTexture(RgbColor(intensity, intensity, intensity)))


class TestPointLight:
    """Test point light."""

    def test_sample_area(self):
        light = PointLight(Point3(0, 0, 5), RgbColor(2, 2, 2))
        s = light.sample_area(PcgSampler(0), Point3(0, 0, 0))
        assert s.pos == Point3(0, 0, 5)
        assert s.intensity == RgbColor(2, 2, 2)
        assert s.pdf_from == 1.0 and s.pdf_area == 1.0
        assert s.pdf_dir == INV_FOUR_PI
        assert s.cos == 1.0

    def test_not_hittable(self):
        light = PointLight(Point3(0, 0, 5), RgbColor(2, 2, 2))
        assert not light.has_area
        assert light.emission(Point3(0, 0, 0), Vec3(0, 0, -1), (0, 0)).intensity.is_black()
        assert light.pdf_from(Point3(0, 0, 0), (0, 0)) == 0.0

    def test_sample_emission(self):
        light = PointLight(Point3(0, 0, 0), RgbColor(1, 1, 1))
        s = light.sample_emission(PcgSampler(1))
        assert abs(s.dir.length() - 1) < 1e-9
        assert s.pdf_dir == INV_FOUR_PI


class TestAreaLight:
    """Test area light over triangles and spheres."""

    def test_sample_area_from_front(self):
        light = facing_down_light(3.0)
        assert light.has_area
        sampler = PcgSampler(2)
        for _ in range(50):
            s = light.sample_area(sampler, Point3(0.2, 0.2, 0))
            assert s is not None
            assert abs(s.pos.z - 1) < 1e-12
            assert s.pdf_area == 1.0
            assert s.pdf_from == 1.0
            assert 0 < s.cos <= 1
            assert abs(s.pdf_dir - s.cos * INV_PI) < 1e-12
            assert s.intensity == RgbColor(3, 3, 3)

    def test_sample_area_from_behind_rejected(self):
        light = facing_down_light()
        assert light.sample_area(PcgSampler(3), Point3(0.2, 0.2, 2)) is None

    def test_cosine(self):
        light = facing_down_light()
        s = light.sample_area(PcgSampler(4), Point3(0.2, 0.2, -1))
        to_receiver = Point3(0.2, 0.2, -1) - s.pos
        assert abs(s.cos - to_receiver.normalize().dot(Vec3(0, 0, -1))) < 1e-12

    def test_emission_front(self):
        light = facing_down_light(2.0)
        e = light.emission(Point3(0, 0, 0), Vec3(0, 0, -1), (0.2, 0.2))
        assert e.intensity == RgbColor(2, 2, 2)
        assert e.pdf_area == 1.0
        assert abs(e.pdf_dir - INV_PI) < 1e-12

    def test_emission_back_is_black(self):
        light = facing_down_light(2.0)
        e = light.emission(Point3(0, 0, 2), Vec3(0, 0, 1), (0.2, 0.2))
        assert e.intensity.is_black()
        assert e.pdf_area == 0.0

    def test_sample_emission_leaves_front(self):
        light = facing_down_light()
        sampler = PcgSampler(5)
        for _ in range(50):
            s = light.sample_emission(sampler)
            if s is None:
                continue
            assert s.dir.z < 0
            assert abs(s.cos - (-s.dir.z)) < 1e-9
            assert abs(s.pdf_dir - s.cos * INV_PI) < 1e-9

    def test_sphere_light(self):
        light = AreaLight(UniformSphere(Sphere(Point3(0, 0, 0), 1.0)),
                          ConstantColorTexture(RgbColor(1, 1, 1)))
        sampler = PcgSampler(6)
        accepted = 0
        for _ in range(200):
            s = light.sample_area(sampler, Point3(0, 0, 10))
            if s is not None:
                accepted += 1
                assert s.pos.z > 0
                assert abs(s.pdf_area - 1 / (4 * math.pi)) < 1e-12
        assert 60 < accepted < 140

    def test_equality(self):
        assert facing_down_light(1.0) == facing_down_light(1.0)
        assert facing_down_light(1.0) != facing_down_light(2.0)
        assert len({facing_down_light(1.0), facing_down_light(1.0)}) == 1
