"""
Unidirectional path tracer.

Implements:
- Next-event estimation toward a uniformly picked light
- Multiple importance sampling (balance heuristic) between BSDF
  sampling and light sampling
- Russian roulette termination driven by path throughput

BSDF pdfs are in solid-angle measure and light pdfs in area measure;
the MIS weights convert between them with the geometry term.
"""

from __future__ import annotations
from dataclasses import dataclass

from .bsdfs import BsdfType
from .color import RgbColor
from .mis import balance_heuristic
from .ray import Ray
from .renderer import Renderer, sample_pixel, survival_probability
from .samplers import Sampler
from .scene import Scene


@dataclass
class PathTracerConfig:
    """Integrator parameters."""
    max_path_len: int = 64
    min_rr_path_len: int = 3
    min_survival_prob: float = 0.05
    max_survival_prob: float = 0.75
    ray_offset: float = 1e-5

    def __post_init__(self):
        if self.max_path_len < 0:
            raise ValueError(f"max_path_len must be >= 0, got {self.max_path_len}")
        if self.min_rr_path_len < 0:
            raise ValueError(f"min_rr_path_len must be >= 0, got {self.min_rr_path_len}")
        for name in ('min_survival_prob', 'max_survival_prob'):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        if self.min_survival_prob > self.max_survival_prob:
            raise ValueError("min_survival_prob must not exceed max_survival_prob")
        if self.ray_offset < 0.0:
            raise ValueError(f"ray_offset must be >= 0, got {self.ray_offset}")


class PathTracer(Renderer):
    """Path tracing renderer with NEE and MIS."""

    def __init__(self, scene: Scene, config: PathTracerConfig = None,
                 tile_size: int = 32, num_threads: int = 0):
        """Create a path tracer.

        Args:
            scene: The scene to render
            config: Integrator configuration (uses defaults if None)
            tile_size: Edge length of a tile in pixels
            num_threads: Worker count (0 = auto-detect)
        """
        super().__init__(scene, tile_size, num_threads)
        self.config = config if config else PathTracerConfig()

    def radiance(self, x: int, y: int, width: int, height: int,
                 sampler: Sampler) -> RgbColor:
        ray = self.scene.camera.generate_ray(sample_pixel(x, y, width, height, sampler))
        return self.trace(ray, sampler)

    def trace(self, ray: Ray, sampler: Sampler) -> RgbColor:
        """Estimate the radiance arriving along ``ray``."""
        config = self.config
        root = self.scene.root
        lights = self.scene.lights
        light_pick_prob = 1.0 / len(lights) if lights else 0.0

        color = RgbColor.black()
        throughput = RgbColor(1.0, 1.0, 1.0)
        pdf_prev = 0.0

        for path_len in range(config.max_path_len):
            hit = root.intersect_closest(ray)
            if hit is None:
                break

            surf = hit.surf
            out_dir = -ray.direction

            # Emitter hit by the random walk
            if hit.light is not None and surf.is_front_side:
                emission = hit.light.emission(ray.origin, out_dir, surf.surf_coords)
                if not emission.intensity.is_black():
                    mis_weight = 1.0
                    if pdf_prev != 0.0:
                        pdf_prev_area = pdf_prev * out_dir.dot(surf.face_normal) / (ray.tmax * ray.tmax)
                        if pdf_prev_area > 0.0:
                            mis_weight = balance_heuristic(
                                pdf_prev_area, emission.pdf_area * light_pick_prob)
                    color = color + throughput * emission.intensity * mis_weight

            bsdf = hit.bsdf
            if bsdf is None:
                break

            if lights and bsdf.type != BsdfType.SPECULAR:
                color = color + throughput * self._direct_lighting(
                    sampler, surf, out_dir, bsdf, lights, light_pick_prob)

            q = 1.0
            if path_len >= config.min_rr_path_len:
                q = survival_probability(throughput, config.min_survival_prob,
                                         config.max_survival_prob)
                if sampler() >= q:
                    break

            sample = bsdf.sample(sampler, surf, out_dir, False)
            if sample is None:
                break

            throughput = throughput * sample.color * (sample.cos / (sample.pdf * q))
            ray = Ray(surf.point, sample.in_dir, config.ray_offset)
            if sample.is_specular or bsdf.type == BsdfType.SPECULAR:
                pdf_prev = 0.0
            else:
                pdf_prev = sample.pdf

        return color

    def _direct_lighting(self, sampler: Sampler, surf, out_dir, bsdf, lights,
                         light_pick_prob: float) -> RgbColor:
        black = RgbColor.black()
        light = lights[min(int(sampler() * len(lights)), len(lights) - 1)]
        light_sample = light.sample_area(sampler, surf.point)
        if light_sample is None or light_sample.intensity.is_black():
            return black

        to_light = light_sample.pos - surf.point
        dist = to_light.length()
        if dist == 0.0:
            return black
        inv_d = 1.0 / dist
        cos_surf = to_light.dot(surf.normal) * inv_d
        if cos_surf <= 0.0:
            return black

        in_dir = to_light * inv_d
        offset = self.config.ray_offset
        shadow_ray = Ray(surf.point, in_dir, offset, dist - offset)
        if self.scene.root.intersect_any(shadow_ray):
            return black

        pdf_light = light_sample.pdf_area * light_pick_prob
        geom = light_sample.cos * inv_d * inv_d
        if light.has_area:
            pdf_bounce = bsdf.pdf(in_dir, surf, out_dir)
            mis_weight = balance_heuristic(pdf_light, pdf_bounce * geom)
        else:
            mis_weight = 1.0

        return (bsdf.eval(in_dir, surf, out_dir) * light_sample.intensity
                * (geom * cos_surf * mis_weight / pdf_light))
