"""Core rendering module.

This module contains the building blocks of the sphere tracer:

Components:
    ray: Ray data structure and vector helpers
    marcher: Sphere tracing and central-difference normal estimation
    shading: Diffuse point-light shading with shadow dimming
    renderer: Scene compilation and the parallel per-pixel render kernel

Tracers, normal estimators and the shader are Taichi functions built for a
specific scene; the renderer inlines them into a single kernel whose
outermost loop is parallel over pixels.
"""

from .ray import Ray, as_vector3, make_ray, ray_at, vec3

# Note: marcher, shading and renderer are NOT imported here to avoid circular
# imports (they depend on the geometry, camera and scene packages, which
# import core.ray). Import them directly, e.g.
#   from raymarcher.core.marcher import march_ray
#   from raymarcher.core.renderer import render

__all__ = [
    "Ray",
    "ray_at",
    "make_ray",
    "vec3",
    "as_vector3",
]
