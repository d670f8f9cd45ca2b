"""
Scene file loader.

Scenes are TOML documents:

```toml
root = "box"

[camera]
type = "perspective"
eye = [0.0, 1.0, 3.5]
dir = [0.0, 0.0, -1.0]
up = [0.0, 1.0, 0.0]
fov = 60.0
aspect = 1.5

[[geoms]]
name = "box"
type = "import"
file = "cornell_box.obj"
```

Camera fields that are missing are taken from :class:`SceneDefaults`.
Geometry files are resolved relative to the scene file.
"""

from __future__ import annotations
import logging
from pathlib import Path
import re
import tomllib
from typing import Any, Dict, Optional

from .camera import PerspectiveCamera
from .obj_loader import OBJLoader
from .scene import Scene, SceneDefaults, SceneLoadError
from .vec3 import Vec3

logger = logging.getLogger(__name__)

_TOML_LOCATION = re.compile(r'\(at line (\d+), column (\d+)\)')

CAMERA_TYPES = ('perspective',)
GEOMETRY_TYPES = ('import',)


class SceneLoader:
    """Loader for TOML scene files."""

    def __init__(self, defaults: Optional[SceneDefaults] = None, strict: bool = False):
        """Create a loader.

        Args:
            defaults: Values for missing camera fields
            strict: Treat malformed lines in mesh files as errors
        """
        self.defaults = defaults if defaults else SceneDefaults()
        self.strict = strict

    def load_file(self, filename) -> Scene:
        """Load a scene file.

        Raises:
            SceneLoadError: On unreadable or invalid input
        """
        path = Path(filename)
        try:
            content = path.read_text()
        except OSError as e:
            raise SceneLoadError(f"cannot read scene file: {e.strerror or e}", path) from e
        return self.load_string(content, path)

    def load_string(self, content: str, path: Optional[Path] = None) -> Scene:
        """Load a scene from TOML text.

        Args:
            content: TOML document
            path: File the document came from; relative geometry paths
                are resolved against its directory
        """
        try:
            data = tomllib.loads(content)
        except tomllib.TOMLDecodeError as e:
            line = getattr(e, 'lineno', None)
            column = getattr(e, 'colno', None)
            match = _TOML_LOCATION.search(str(e))
            if line is None and match:
                line, column = int(match.group(1)), int(match.group(2))
            message = _TOML_LOCATION.sub('', getattr(e, 'msg', str(e))).strip()
            raise SceneLoadError(message, path, line, column) from e
        return self.load_dict(data, path)

    def load_dict(self, data: Dict[str, Any], path: Optional[Path] = None) -> Scene:
        """Build a scene from an already-parsed document."""
        base_dir = path.parent if path is not None else Path('.')
        scene = Scene()
        scene.camera = self._parse_camera(data.get('camera', {}), path)

        geoms = data.get('geoms', [])
        if not isinstance(geoms, list):
            raise SceneLoadError("'geoms' must be an array of tables", path)
        by_name: Dict[str, Dict[str, Any]] = {}
        for geom in geoms:
            name = self._require(geom, 'name', str, path, "geometry")
            geom_type = self._require(geom, 'type', str, path, f"geometry '{name}'")
            if geom_type not in GEOMETRY_TYPES:
                raise SceneLoadError(f"unknown geometry type '{geom_type}' for '{name}'", path)
            if name in by_name:
                raise SceneLoadError(f"duplicate geometry name '{name}'", path)
            by_name[name] = geom

        root = data.get('root')
        if root is None:
            if geoms:
                raise SceneLoadError("missing 'root' geometry", path)
            logger.warning("Scene has no geometry")
            return scene
        if root not in by_name:
            raise SceneLoadError(f"unknown root geometry '{root}'", path)

        geom = by_name[root]
        file_name = self._require(geom, 'file', str, path, f"geometry '{root}'")
        strict = bool(geom.get('strict', self.strict))
        loader = OBJLoader(scene, strict=strict)
        scene.root = loader.load(base_dir / file_name)

        logger.info("Scene loaded: %s", ', '.join(f"{v} {k}" for k, v in scene.summary().items()))
        return scene

    @staticmethod
    def _require(table: Dict[str, Any], key: str, kind: type, path, what: str):
        if not isinstance(table, dict):
            raise SceneLoadError(f"{what} must be a table", path)
        if key not in table:
            raise SceneLoadError(f"missing '{key}' in {what}", path)
        value = table[key]
        if not isinstance(value, kind):
            raise SceneLoadError(f"'{key}' in {what} must be a {kind.__name__}", path)
        return value

    def _parse_vec3(self, table: Dict[str, Any], key: str, default: Vec3, path) -> Vec3:
        if key not in table:
            return default
        value = table[key]
        if (not isinstance(value, list) or len(value) != 3
                or not all(isinstance(x, (int, float)) for x in value)):
            raise SceneLoadError(f"camera '{key}' must be an array of 3 numbers", path)
        return Vec3(*value)

    def _parse_number(self, table: Dict[str, Any], key: str, default: float, path) -> float:
        value = table.get(key, default)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise SceneLoadError(f"camera '{key}' must be a number", path)
        return float(value)

    def _parse_camera(self, camera: Dict[str, Any], path) -> PerspectiveCamera:
        if not isinstance(camera, dict):
            raise SceneLoadError("'camera' must be a table", path)
        camera_type = camera.get('type', 'perspective')
        if camera_type not in CAMERA_TYPES:
            raise SceneLoadError(f"unknown camera type '{camera_type}'", path)

        d = self.defaults
        try:
            return PerspectiveCamera(
                self._parse_vec3(camera, 'eye', d.eye_pos, path),
                self._parse_vec3(camera, 'dir', d.dir_vector, path),
                self._parse_vec3(camera, 'up', d.up_vector, path),
                self._parse_number(camera, 'fov', d.fov, path),
                self._parse_number(camera, 'aspect', d.aspect_ratio, path))
        except ValueError as e:
            raise SceneLoadError(f"invalid camera: {e}", path) from e


def load_scene(filename, defaults: Optional[SceneDefaults] = None,
               strict: bool = False) -> Scene:
    """Convenience function to load a scene file.

    Args:
        filename: Path to the TOML scene file
        defaults: Values for missing camera fields
        strict: Treat malformed mesh lines as errors

    Returns:
        The loaded scene
    """
    return SceneLoader(defaults, strict).load_file(filename)
