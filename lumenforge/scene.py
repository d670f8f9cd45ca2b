"""
Scene container.

The scene owns every BSDF, light, texture and image created while
loading, plus the camera and the root geometry. It is not modified once
rendering starts, so render threads share it without locking.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .camera import Camera
from .geometry import EmptyGeometry, Geometry
from .vec3 import Point3, Vec3


@dataclass
class SceneDefaults:
    """Values used for camera fields missing from a scene file."""
    eye_pos: Point3 = field(default_factory=lambda: Vec3(0, 0, 0))
    dir_vector: Vec3 = field(default_factory=lambda: Vec3(0, 0, 1))
    up_vector: Vec3 = field(default_factory=lambda: Vec3(0, 1, 0))
    fov: float = 60.0
    aspect_ratio: float = 1.0


class Scene:
    """Everything needed to render an image."""

    def __init__(self, camera: Optional[Camera] = None, root: Optional[Geometry] = None):
        self.bsdfs: List = []
        self.lights: List = []
        self.textures: List = []
        self.images: List = []
        self.camera = camera
        self.root: Geometry = root if root is not None else EmptyGeometry()

    def summary(self) -> Dict[str, int]:
        return {
            'bsdfs': len(self.bsdfs),
            'lights': len(self.lights),
            'textures': len(self.textures),
            'images': len(self.images),
        }

    def __repr__(self) -> str:
        counts = ', '.join(f"{k}={v}" for k, v in self.summary().items())
        return f"Scene({counts}, camera={self.camera})"


class SceneLoadError(Exception):
    """Error while loading a scene or one of the files it references.

    Attributes:
        message: Description of the problem
        path: File the problem was found in, if known
        line: 1-based line number, if known
        column: 1-based column number, if known
    """

    def __init__(self, message: str, path=None, line: Optional[int] = None,
                 column: Optional[int] = None):
        self.message = message
        self.path = str(path) if path is not None else None
        self.line = line
        self.column = column
        super().__init__(str(self))

    def __str__(self) -> str:
        location = [part for part in (self.path, self.line, self.column) if part is not None]
        if not location:
            return self.message
        return ':'.join(str(part) for part in location) + ': ' + self.message
