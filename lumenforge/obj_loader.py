"""
OBJ file loader for importing triangle meshes.

Supports:
- Vertices (v), texture coordinates (vt) and normals (vn)
- Faces (f) with fan triangulation and negative (relative) indices
- Object groups (o, g) and smoothing groups (s)
- Material libraries (mtllib) and material references (usemtl)

MTL materials are converted to BSDFs:
- illum 5: mirror tinted by Ks
- illum 7: glass with reflection Ks, transmission Tf and index Ni
- otherwise: diffuse Kd and/or Phong (Ks, Ns), mixed by luminance
Materials with a non-zero Ke (or a map_Ke) also turn every triangle
they are applied to into an area light.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .bsdfs import Bsdf, DiffuseBsdf, GlassBsdf, InterpBsdf, MirrorBsdf, PhongBsdf
from .color import RgbColor
from .image import Image
from .image_io import ImageIOError
from .lights import AreaLight
from .scene import Scene, SceneLoadError
from .shapes import Triangle, UniformTriangle
from .textures import ColorTexture, ConstantColorTexture, ConstantTexture, ImageTexture, Texture
from .triangle_mesh import TriangleMesh
from .vec3 import Vec3

logger = logging.getLogger(__name__)

DEFAULT_COLOR = RgbColor(0.7, 0.7, 0.7)


@dataclass
class ObjMaterial:
    """A material as declared in an MTL file."""
    name: str
    ka: RgbColor = field(default_factory=RgbColor.black)
    kd: RgbColor = field(default_factory=RgbColor.black)
    ks: RgbColor = field(default_factory=RgbColor.black)
    ke: RgbColor = field(default_factory=RgbColor.black)
    tf: RgbColor = field(default_factory=lambda: RgbColor(1.0, 1.0, 1.0))
    ns: float = 1.0
    ni: float = 1.0
    tr: float = 0.0
    d: float = 1.0
    illum: int = 0
    map_ka: str = ''
    map_kd: str = ''
    map_ks: str = ''
    map_ke: str = ''
    map_d: str = ''
    map_bump: str = ''

    @property
    def is_emissive(self) -> bool:
        return not self.ke.is_black() or bool(self.map_ke)


@dataclass
class ObjFace:
    """A triangle: three (position, texcoord, normal) index triples."""
    corners: Tuple[Tuple[int, int, int], Tuple[int, int, int], Tuple[int, int, int]]
    material: str
    line: int


@dataclass
class ObjFile:
    """Raw contents of an OBJ file and its material libraries."""
    vertices: List[Vec3] = field(default_factory=list)
    normals: List[Vec3] = field(default_factory=list)
    tex_coords: List[Tuple[float, float]] = field(default_factory=list)
    faces: List[ObjFace] = field(default_factory=list)
    materials: Dict[str, ObjMaterial] = field(default_factory=dict)
    mtl_files: List[str] = field(default_factory=list)


def _resolve_index(token: str, count: int) -> int:
    """Convert a 1-based (or negative, relative) OBJ index to 0-based."""
    index = int(token)
    if index < 0:
        index += count
    else:
        index -= 1
    if not 0 <= index < count:
        raise ValueError(f"index {token} out of range")
    return index


class OBJParser:
    """Parser for Wavefront OBJ and MTL files.

    In strict mode a malformed line raises :class:`SceneLoadError`;
    otherwise it is logged and skipped.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict

    def _bad_line(self, path: Path, line_num: int, message: str) -> None:
        if self.strict:
            raise SceneLoadError(message, path, line_num)
        logger.warning("%s:%d: %s, skipping line", path, line_num, message)

    def parse_obj(self, path: Path) -> ObjFile:
        """Parse an OBJ file and every material library it references.

        Raises:
            SceneLoadError: If the file cannot be read, or on malformed
                content in strict mode
        """
        obj = ObjFile()
        material = ''
        try:
            lines = path.read_text().splitlines()
        except OSError as e:
            raise SceneLoadError(f"cannot read OBJ file: {e.strerror or e}", path) from e

        for line_num, line in enumerate(lines, 1):
            line = line.split('#', 1)[0].strip()
            if not line:
                continue
            parts = line.split()
            cmd = parts[0]

            try:
                if cmd == 'v':
                    obj.vertices.append(Vec3(float(parts[1]), float(parts[2]), float(parts[3])))
                elif cmd == 'vn':
                    obj.normals.append(
                        Vec3(float(parts[1]), float(parts[2]), float(parts[3])).normalize())
                elif cmd == 'vt':
                    v = float(parts[2]) if len(parts) > 2 else 0.0
                    obj.tex_coords.append((float(parts[1]), v))
                elif cmd == 'f':
                    corners = [self._parse_corner(token, obj) for token in parts[1:]]
                    if len(corners) < 3:
                        raise ValueError("face needs at least 3 vertices")
                    for i in range(1, len(corners) - 1):
                        obj.faces.append(ObjFace(
                            (corners[0], corners[i], corners[i + 1]), material, line_num))
                elif cmd == 'usemtl':
                    material = line[len('usemtl'):].strip()
                elif cmd == 'mtllib':
                    obj.mtl_files.extend(parts[1:])
                elif cmd in ('o', 'g', 's', 'l', 'p'):
                    pass
                else:
                    logger.debug("%s:%d: ignoring unknown command '%s'", path, line_num, cmd)
            except (ValueError, IndexError) as e:
                self._bad_line(path, line_num, f"malformed '{cmd}' line ({e})")

        for mtl_name in obj.mtl_files:
            mtl_path = path.parent / mtl_name
            if not mtl_path.is_file():
                logger.warning("%s: material library '%s' not found", path, mtl_name)
                continue
            self.parse_mtl(mtl_path, obj.materials)
        return obj

    @staticmethod
    def _parse_corner(token: str, obj: ObjFile) -> Tuple[int, int, int]:
        fields = token.split('/')
        v = _resolve_index(fields[0], len(obj.vertices))
        t = -1
        n = -1
        if len(fields) > 1 and fields[1]:
            t = _resolve_index(fields[1], len(obj.tex_coords))
        if len(fields) > 2 and fields[2]:
            n = _resolve_index(fields[2], len(obj.normals))
        return v, t, n

    def parse_mtl(self, path: Path, materials: Dict[str, ObjMaterial]) -> None:
        """Parse an MTL file into ``materials``, keyed by material name."""
        try:
            lines = path.read_text().splitlines()
        except OSError as e:
            raise SceneLoadError(f"cannot read MTL file: {e.strerror or e}", path) from e

        current: Optional[ObjMaterial] = None
        for line_num, line in enumerate(lines, 1):
            line = line.split('#', 1)[0].strip()
            if not line:
                continue
            parts = line.split()
            cmd = parts[0]
            try:
                if cmd == 'newmtl':
                    name = line[len('newmtl'):].strip()
                    current = ObjMaterial(name)
                    materials[name] = current
                    continue
                if current is None:
                    raise ValueError("no material declared yet")

                if cmd in ('Ka', 'Kd', 'Ks', 'Ke', 'Tf'):
                    values = [float(x) for x in parts[1:4]]
                    if len(values) == 1:
                        values *= 3
                    if len(values) != 3:
                        raise ValueError("expected 1 or 3 values")
                    setattr(current, cmd.lower(), RgbColor(*values))
                elif cmd in ('Ns', 'Ni', 'Tr', 'd'):
                    setattr(current, cmd.lower(), float(parts[1]))
                elif cmd == 'illum':
                    current.illum = int(parts[1])
                elif cmd in ('map_Ka', 'map_Kd', 'map_Ks', 'map_Ke', 'map_d'):
                    setattr(current, cmd.lower(), parts[-1])
                elif cmd in ('bump', 'map_bump', 'map_Bump'):
                    current.map_bump = parts[-1]
                else:
                    logger.warning("%s:%d: unknown MTL command '%s'", path, line_num, cmd)
            except (ValueError, IndexError) as e:
                self._bad_line(path, line_num, f"malformed '{cmd}' line ({e})")


class OBJLoader:
    """Builds triangle meshes from OBJ files, registering the BSDFs,
    lights, textures and images it creates with a scene.

    Identical textures and BSDFs are shared, and images are cached by
    absolute path.
    """

    def __init__(self, scene: Scene, strict: bool = False):
        self.scene = scene
        self.parser = OBJParser(strict)
        self._textures: Dict[Texture, Texture] = {}
        self._bsdfs: Dict[Bsdf, Bsdf] = {}
        self._images: Dict[Path, Optional[Image]] = {}

    def load(self, filename, **mesh_options) -> TriangleMesh:
        """Load an OBJ file.

        Args:
            filename: Path to the OBJ file
            **mesh_options: Passed on to :class:`TriangleMesh`

        Returns:
            The mesh; its emissive triangles are also added to
            ``scene.lights``

        Raises:
            SceneLoadError: If the file is missing or malformed
        """
        path = Path(filename)
        if not path.is_file():
            raise SceneLoadError("OBJ file not found", path)
        obj = self.parser.parse_obj(path)
        mesh = self.build_mesh(obj, path.parent, **mesh_options)
        logger.info("Loaded %s: %d triangles, %d materials, %d emissive triangles",
                    path, mesh.triangle_count, len(obj.materials), len(mesh.lights))
        return mesh

    def build_mesh(self, obj: ObjFile, base_dir: Path, **mesh_options) -> TriangleMesh:
        indices: List[int] = []
        vertices: List[Vec3] = []
        normals: List[Vec3] = []
        tex_coords: List[Tuple[float, float]] = []
        bsdfs: List[Bsdf] = []
        lights = {}
        vertex_map: Dict[Tuple[int, int, int], int] = {}
        converted: Dict[str, Tuple[Bsdf, Optional[ColorTexture]]] = {}

        for face in obj.faces:
            p0, p1, p2 = (obj.vertices[c[0]] for c in face.corners)
            face_normal = (p1 - p0).cross(p2 - p0).normalize()
            if face_normal.length_squared() == 0.0:
                logger.debug("Skipping degenerate triangle (line %d)", face.line)
                continue

            for corner in face.corners:
                if corner[2] < 0:
                    # No normal: this corner gets its own vertex with the face normal
                    key = None
                else:
                    key = corner
                    if key in vertex_map:
                        indices.append(vertex_map[key])
                        continue
                index = len(vertices)
                vertices.append(obj.vertices[corner[0]])
                normals.append(obj.normals[corner[2]] if corner[2] >= 0 else face_normal)
                tex_coords.append(obj.tex_coords[corner[1]] if corner[1] >= 0 else (0.0, 0.0))
                if key is not None:
                    vertex_map[key] = index
                indices.append(index)

            if face.material not in converted:
                converted[face.material] = self._convert_material(
                    obj.materials.get(face.material), face.material, base_dir)
            bsdf, emission = converted[face.material]

            tri = len(bsdfs)
            bsdfs.append(bsdf)
            if emission is not None:
                light = AreaLight(UniformTriangle(Triangle(p0, p1, p2)), emission)
                lights[tri] = light
                self.scene.lights.append(light)

        return TriangleMesh(indices, vertices, normals, tex_coords, bsdfs, lights,
                            **mesh_options)

    def _intern_texture(self, texture: Texture) -> Texture:
        existing = self._textures.get(texture)
        if existing is not None:
            return existing
        self._textures[texture] = texture
        self.scene.textures.append(texture)
        return texture

    def _intern_bsdf(self, bsdf: Bsdf) -> Bsdf:
        existing = self._bsdfs.get(bsdf)
        if existing is not None:
            return existing
        self._bsdfs[bsdf] = bsdf
        self.scene.bsdfs.append(bsdf)
        return bsdf

    def _load_image(self, base_dir: Path, name: str) -> Optional[Image]:
        path = (base_dir / name).resolve()
        if path not in self._images:
            try:
                image = Image.load(path)
            except ImageIOError as e:
                logger.warning("Cannot load texture %s (%s); using the constant color", path, e)
                image = None
            else:
                self.scene.images.append(image)
            self._images[path] = image
        return self._images[path]

    def _color_texture(self, color: RgbColor, map_name: str, base_dir: Path) -> ColorTexture:
        if map_name:
            image = self._load_image(base_dir, map_name)
            if image is not None:
                return self._intern_texture(ImageTexture(image))
        return self._intern_texture(ConstantColorTexture(color))

    def _convert_material(self, material: Optional[ObjMaterial], name: str, base_dir: Path
                          ) -> Tuple[Bsdf, Optional[ColorTexture]]:
        """Convert an MTL material to a BSDF and an optional emission texture."""
        if material is None:
            if name:
                logger.warning("Material '%s' not found, using default diffuse", name)
            kd = self._intern_texture(ConstantColorTexture(DEFAULT_COLOR))
            return self._intern_bsdf(DiffuseBsdf(kd)), None

        if material.illum == 5:
            bsdf = MirrorBsdf(self._color_texture(material.ks, material.map_ks, base_dir))
        elif material.illum == 7:
            ni = material.ni if material.ni > 0.0 else 1.0
            bsdf = GlassBsdf(self._color_texture(material.ks, material.map_ks, base_dir),
                             self._intern_texture(ConstantColorTexture(material.tf)),
                             self._intern_texture(ConstantTexture(1.0 / ni)))
        else:
            bsdf = self._convert_phong_diffuse(material, base_dir)

        emission = None
        if material.is_emissive:
            emission = self._color_texture(material.ke, material.map_ke, base_dir)
        return self._intern_bsdf(bsdf), emission

    def _convert_phong_diffuse(self, material: ObjMaterial, base_dir: Path) -> Bsdf:
        has_diffuse = not material.kd.is_black() or bool(material.map_kd)
        has_specular = not material.ks.is_black() or bool(material.map_ks)

        diffuse = None
        if has_diffuse:
            diffuse = self._intern_bsdf(DiffuseBsdf(
                self._color_texture(material.kd, material.map_kd, base_dir)))
        specular = None
        if has_specular:
            specular = self._intern_bsdf(PhongBsdf(
                self._color_texture(material.ks, material.map_ks, base_dir),
                self._intern_texture(ConstantTexture(material.ns))))

        if diffuse is not None and specular is not None:
            # A lobe that exists only through its texture map weighs as white.
            kd = material.kd.luminance or 1.0
            ks = material.ks.luminance or 1.0
            k = ks / (kd + ks)
            return InterpBsdf(diffuse, specular, self._intern_texture(ConstantTexture(k)))
        if specular is not None:
            return specular
        if diffuse is not None:
            return diffuse
        return DiffuseBsdf(self._intern_texture(ConstantColorTexture(RgbColor.black())))
