"""
LumenForge - An offline physically-based path tracer

Renders triangle-mesh scenes with:
- Unidirectional path tracing with next-event estimation
- Multiple importance sampling (balance heuristic)
- Russian roulette path termination
- Diffuse, Phong, mirror, glass and mixed BSDFs
- Point and area lights
- SAH-built BVH with reinsertion optimization
- Deterministic, tile-parallel sample accumulation
- PNG / JPEG / TIFF / OpenEXR output
"""

__version__ = "0.1.0"
__author__ = "LumenForge Team"

from .vec3 import Vec3, Point3
from .color import RgbColor, Color, lerp
from .ray import Ray
from .sampling import Basis, DirSample, ortho_basis
from .samplers import Sampler, PcgSampler, pixel_seed
from .textures import (
    Texture, ColorTexture, ConstantTexture, ConstantColorTexture,
    ImageTexture, ImageFilter, WrapMode
)
from .geometry import SurfaceInfo, Hit, Geometry, EmptyGeometry
from .bsdfs import (
    Bsdf, BsdfType, BsdfSample, DiffuseBsdf, PhongBsdf, MirrorBsdf,
    GlassBsdf, InterpBsdf
)
from .shapes import Triangle, Sphere, ShapeSample, UniformTriangle, UniformSphere
from .lights import (
    Light, PointLight, AreaLight, LightAreaSample, LightEmissionSample, EmissionValue
)
from .bvh import Bvh, SweepSahBuilder, ReinsertionOptimizer
from .triangle_mesh import TriangleMesh
from .camera import Camera, PerspectiveCamera, LensGeometry
from .image import Image, ImageFormat
from .image_io import ImageIOError
from .mis import balance_heuristic
from .scene import Scene, SceneDefaults, SceneLoadError
from .renderer import Renderer
from .path_tracer import PathTracer, PathTracerConfig
from .render_job import RenderJob
from .scene_loader import SceneLoader, load_scene
from .obj_loader import OBJLoader, OBJParser
