"""Tests for OBJ file loader."""

import os
import tempfile
from pathlib import Path
import pytest
import numpy as np
from lumenforge.bsdfs import DiffuseBsdf, PhongBsdf, MirrorBsdf, GlassBsdf, InterpBsdf
from lumenforge.color import RgbColor
from lumenforge.image import Image
from lumenforge.lights import AreaLight
from lumenforge.obj_loader import OBJLoader, OBJParser, ObjMaterial, DEFAULT_COLOR
from lumenforge.ray import Ray
from lumenforge.scene import Scene, SceneLoadError
from lumenforge.textures import ImageTexture, ConstantColorTexture
from lumenforge.vec3 import Vec3, Point3


QUAD_OBJ = """# Quad in the z = 0 plane
mtllib materials.mtl
v 0 0 0
v 1 0 0
v 1 1 0
v 0 1 0
vt 0 0
vt 1 0
vt 1 1
vt 0 1
vn 0 0 1
usemtl {material}
f 1/1/1 2/2/1 3/3/1 4/4/1
"""

MATERIALS_MTL = """
newmtl white
Kd 0.8 0.8 0.8

newmtl shiny
Kd 0.6 0.6 0.6
Ks 0.2 0.2 0.2
Ns 50

newmtl specular
Ks 0.9 0.9 0.9
Ns 20

newmtl mirror
Ks 0.95 0.95 0.95
illum 5

newmtl glass
Ks 1 1 1
Tf 0.9 0.9 0.9
Ni 1.5
illum 7

newmtl lamp
Kd 0 0 0
Ke 4 4 4

newmtl black

newmtl textured
Kd 1 1 1
map_Kd checker.png

newmtl missing_texture
Kd 0.3 0.4 0.5
map_Kd does_not_exist.png
"""


@pytest.fixture
def temp_dir():
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


def write(directory, name, content):
    path = directory / name
    path.write_text(content)
    return path


def load_quad(temp_dir, material, mtl=MATERIALS_MTL):
    obj = write(temp_dir, 'quad.obj', QUAD_OBJ.format(material=material))
    write(temp_dir, 'materials.mtl', mtl)
    scene = Scene()
    mesh = OBJLoader(scene).load(obj)
    return scene, mesh


class TestOBJParser:
    """Test raw OBJ and MTL parsing."""

    def test_triangle(self, temp_dir):
        path = write(temp_dir, 'tri.obj', "v 0 0 0\nv 1 0 0\nv 0 1 0\nf 1 2 3\n")
        obj = OBJParser().parse_obj(path)
        assert len(obj.vertices) == 3
        assert len(obj.faces) == 1
        assert obj.faces[0].corners == ((0, -1, -1), (1, -1, -1), (2, -1, -1))

    def test_fan_triangulation(self, temp_dir):
        path = write(temp_dir, 'pent.obj',
                     "v 0 0 0\nv 1 0 0\nv 2 1 0\nv 1 2 0\nv 0 1 0\nf 1 2 3 4 5\n")
        obj = OBJParser().parse_obj(path)
        assert [tuple(c[0] for c in f.corners) for f in obj.faces] == \
            [(0, 1, 2), (0, 2, 3), (0, 3, 4)]

    def test_negative_indices(self, temp_dir):
        path = write(temp_dir, 'neg.obj', "v 0 0 0\nv 1 0 0\nv 0 1 0\nf -3 -2 -1\n")
        obj = OBJParser().parse_obj(path)
        assert obj.faces[0].corners[0][0] == 0
        assert obj.faces[0].corners[2][0] == 2

    def test_corner_forms(self, temp_dir):
        path = write(temp_dir, 'forms.obj', "v 0 0 0\nv 1 0 0\nv 0 1 0\nvt 0 0\nvn 0 0 1\n"
                                            "f 1/1 2//1 3/1/1\n")
        obj = OBJParser().parse_obj(path)
        assert obj.faces[0].corners == ((0, 0, -1), (1, -1, 0), (2, 0, 0))

    def test_comments_and_unknown_commands(self, temp_dir):
        path = write(temp_dir, 'misc.obj', "# header\no thing\ng group\ns 1\n"
                                           "v 0 0 0 # trailing\nv 1 0 0\nv 0 1 0\n"
                                           "curv 0 1\nf 1 2 3\n")
        obj = OBJParser().parse_obj(path)
        assert len(obj.vertices) == 3
        assert len(obj.faces) == 1

    def test_normals_are_normalized(self, temp_dir):
        path = write(temp_dir, 'n.obj', "vn 0 0 5\n")
        assert OBJParser().parse_obj(path).normals[0] == Vec3(0, 0, 1)

    def test_malformed_line_skipped(self, temp_dir):
        path = write(temp_dir, 'bad.obj', "v 0 0 0\nv 1 0\nv 1 0 0\nv 0 1 0\nf 1 2 9\nf 1 2 3\n")
        obj = OBJParser().parse_obj(path)
        assert len(obj.vertices) == 3
        assert len(obj.faces) == 1

    def test_malformed_line_strict(self, temp_dir):
        path = write(temp_dir, 'bad.obj', "v 0 0 0\nv 1 0\n")
        with pytest.raises(SceneLoadError) as exc_info:
            OBJParser(strict=True).parse_obj(path)
        assert exc_info.value.line == 2
        assert exc_info.value.path == str(path)

    def test_mtl_values(self, temp_dir):
        path = write(temp_dir, 'm.mtl', MATERIALS_MTL)
        materials = {}
        OBJParser().parse_mtl(path, materials)
        assert materials['shiny'].kd == RgbColor(0.6, 0.6, 0.6)
        assert materials['shiny'].ns == 50.0
        assert materials['glass'].illum == 7
        assert materials['glass'].ni == 1.5
        assert materials['glass'].tf == RgbColor(0.9, 0.9, 0.9)
        assert materials['lamp'].is_emissive
        assert not materials['white'].is_emissive
        assert materials['textured'].map_kd == 'checker.png'

    def test_mtl_single_value_color(self, temp_dir):
        path = write(temp_dir, 'm.mtl', "newmtl gray\nKd 0.5\n")
        materials = {}
        OBJParser().parse_mtl(path, materials)
        assert materials['gray'].kd == RgbColor(0.5, 0.5, 0.5)

    def test_mtl_before_newmtl(self, temp_dir):
        path = write(temp_dir, 'm.mtl', "Kd 0.5 0.5 0.5\n")
        with pytest.raises(SceneLoadError):
            OBJParser(strict=True).parse_mtl(path, {})

    def test_missing_mtl_is_warning(self, temp_dir):
        path = write(temp_dir, 'tri.obj', "mtllib nowhere.mtl\nv 0 0 0\nv 1 0 0\nv 0 1 0\nf 1 2 3\n")
        obj = OBJParser().parse_obj(path)
        assert obj.materials == {}
        assert len(obj.faces) == 1


class TestOBJLoader:
    """Test mesh construction and material conversion."""

    def test_missing_file(self, temp_dir):
        with pytest.raises(SceneLoadError):
            OBJLoader(Scene()).load(temp_dir / 'missing.obj')

    def test_quad_mesh(self, temp_dir):
        scene, mesh = load_quad(temp_dir, 'white')
        assert mesh.triangle_count == 2
        assert len(mesh.vertices) == 4
        ray = Ray(Point3(0.75, 0.25, 1), Vec3(0, 0, -1))
        hit = mesh.intersect_closest(ray)
        assert hit is not None
        assert abs(hit.surf.tex_coords[0] - 0.75) < 1e-9
        assert abs(hit.surf.tex_coords[1] - 0.25) < 1e-9

    def test_vertices_without_normals_are_not_shared(self, temp_dir):
        path = write(temp_dir, 'q.obj', "v 0 0 0\nv 1 0 0\nv 1 1 0\nv 0 1 0\nf 1 2 3 4\n")
        mesh = OBJLoader(Scene()).load(path)
        assert len(mesh.vertices) == 6
        assert all(n == Vec3(0, 0, 1) for n in mesh.normals)
        assert all(t == (0.0, 0.0) for t in mesh.tex_coords)

    def test_degenerate_triangle_skipped(self, temp_dir):
        path = write(temp_dir, 'd.obj', "v 0 0 0\nv 1 0 0\nv 2 0 0\nv 0 1 0\nf 1 2 3\nf 1 2 4\n")
        mesh = OBJLoader(Scene()).load(path)
        assert mesh.triangle_count == 1

    def test_diffuse(self, temp_dir):
        scene, mesh = load_quad(temp_dir, 'white')
        bsdf = mesh.bsdfs[0]
        assert isinstance(bsdf, DiffuseBsdf)
        assert bsdf.kd.sample_color((0, 0)) == RgbColor(0.8, 0.8, 0.8)
        assert mesh.bsdfs[0] is mesh.bsdfs[1]
        assert scene.bsdfs == [bsdf]

    def test_diffuse_and_specular_mix(self, temp_dir):
        scene, mesh = load_quad(temp_dir, 'shiny')
        bsdf = mesh.bsdfs[0]
        assert isinstance(bsdf, InterpBsdf)
        assert isinstance(bsdf.a, DiffuseBsdf)
        assert isinstance(bsdf.b, PhongBsdf)
        assert abs(bsdf.k.sample((0, 0)) - 0.25) < 1e-9
        assert bsdf.b.ns.sample((0, 0)) == 50.0

    def test_specular_only(self, temp_dir):
        _, mesh = load_quad(temp_dir, 'specular')
        assert isinstance(mesh.bsdfs[0], PhongBsdf)

    def test_mirror(self, temp_dir):
        _, mesh = load_quad(temp_dir, 'mirror')
        bsdf = mesh.bsdfs[0]
        assert isinstance(bsdf, MirrorBsdf)
        assert bsdf.ks.sample_color((0, 0)) == RgbColor(0.95, 0.95, 0.95)

    def test_glass(self, temp_dir):
        _, mesh = load_quad(temp_dir, 'glass')
        bsdf = mesh.bsdfs[0]
        assert isinstance(bsdf, GlassBsdf)
        assert abs(bsdf.eta.sample((0, 0)) - 1 / 1.5) < 1e-12
        assert bsdf.kt.sample_color((0, 0)) == RgbColor(0.9, 0.9, 0.9)

    def test_black_material(self, temp_dir):
        _, mesh = load_quad(temp_dir, 'black')
        bsdf = mesh.bsdfs[0]
        assert isinstance(bsdf, DiffuseBsdf)
        assert bsdf.kd.sample_color((0, 0)).is_black()

    def test_unknown_material_uses_default(self, temp_dir):
        _, mesh = load_quad(temp_dir, 'nonexistent')
        bsdf = mesh.bsdfs[0]
        assert isinstance(bsdf, DiffuseBsdf)
        assert bsdf.kd.sample_color((0, 0)) == DEFAULT_COLOR

    def test_emissive_material(self, temp_dir):
        scene, mesh = load_quad(temp_dir, 'lamp')
        assert len(scene.lights) == 2
        assert all(isinstance(light, AreaLight) for light in scene.lights)
        assert set(mesh.lights) == {0, 1}
        hit = mesh.intersect_closest(Ray(Point3(0.5, 0.2, 1), Vec3(0, 0, -1)))
        assert hit.light is not None
        e = hit.light.emission(Point3(0.5, 0.2, 1), Vec3(0, 0, 1), hit.surf.surf_coords)
        assert e.intensity == RgbColor(4, 4, 4)

    def test_image_texture(self, temp_dir):
        pixels = np.zeros((2, 2, 3), dtype=np.float32)
        pixels[0, 0] = 1.0
        Image.from_array(pixels).save(temp_dir / 'checker.png')
        scene, mesh = load_quad(temp_dir, 'textured')
        assert isinstance(mesh.bsdfs[0].kd, ImageTexture)
        assert len(scene.images) == 1

    def test_texture_only_diffuse_lobe_keeps_weight(self, temp_dir):
        pixels = np.full((2, 2, 3), 0.5, dtype=np.float32)
        Image.from_array(pixels).save(temp_dir / 'tex.png')
        mtl = "newmtl mapped\nmap_Kd tex.png\nKs 0.5 0.5 0.5\nNs 10\n"
        _, mesh = load_quad(temp_dir, 'mapped', mtl=mtl)
        bsdf = mesh.bsdfs[0]
        assert isinstance(bsdf, InterpBsdf)
        assert isinstance(bsdf.a.kd, ImageTexture)
        # Black Kd weighs as white next to Ks luminance 0.5.
        assert abs(bsdf.k.sample((0, 0)) - 1 / 3) < 1e-9

    def test_missing_texture_falls_back(self, temp_dir):
        scene, mesh = load_quad(temp_dir, 'missing_texture')
        kd = mesh.bsdfs[0].kd
        assert isinstance(kd, ConstantColorTexture)
        assert kd.color == RgbColor(0.3, 0.4, 0.5)
        assert scene.images == []

    def test_identical_materials_shared(self, temp_dir):
        mtl = "newmtl a\nKd 0.5 0.5 0.5\nnewmtl b\nKd 0.5 0.5 0.5\n"
        obj = ("mtllib m.mtl\nv 0 0 0\nv 1 0 0\nv 0 1 0\nv 1 1 0\n"
               "usemtl a\nf 1 2 3\nusemtl b\nf 2 4 3\n")
        write(temp_dir, 'm.mtl', mtl)
        scene = Scene()
        mesh = OBJLoader(scene).load(write(temp_dir, 'two.obj', obj))
        assert mesh.bsdfs[0] is mesh.bsdfs[1]
        assert len(scene.bsdfs) == 1
        assert len(scene.textures) == 1

    def test_mesh_options(self, temp_dir):
        path = write(temp_dir, 'tri.obj', "v 0 0 0\nv 1 0 0\nv 0 1 0\nf 1 2 3\n")
        mesh = OBJLoader(Scene()).load(path, optimize=False)
        assert mesh.triangle_count == 1
