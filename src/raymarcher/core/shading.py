"""Diffuse point-light shading with a dimming shadow test.

For a hit point p with unit normal n the shader computes:

    L           = light.position - p
    attenuation = 1 / (1 + |L|^2)
    diffuse     = clamp(max(n . L/|L|, 0) * attenuation * light.strength, 0, 1)
    colour      = material * (ambient + diffuse) * shadow

where shadow is SHADOW_FACTOR if a ray marched from p toward the light hits
the union of all loaded object fields before reaching the light, and 1
otherwise. The shadow only dims the surface; it is a stylistic factor, not
an occlusion model.
"""

from typing import Any

import taichi as ti
import taichi.math as tm

from raymarcher.core.marcher import MarchConfig, make_ray_marcher
from raymarcher.core.ray import make_ray, vec3
from raymarcher.geometry.program import ALL_FIELDS
from raymarcher.scene.model import Environment, Light

# Colour multiplier for points whose light is blocked
SHADOW_FACTOR = 0.8


def make_shader(
    sdf: Any,
    light: Light,
    environment: Environment,
    march_config: MarchConfig | None = None,
    shadow_factor: float = SHADOW_FACTOR,
) -> Any:
    """Build the shading function for a scene.

    Args:
        sdf: Indexed field function ``f(index, p)``; shadow rays march
            index ALL_FIELDS, the union of every object.
        light: The scene's point light.
        environment: Ambient light settings.
        march_config: Termination settings for the shadow ray.
        shadow_factor: Multiplier applied to shadowed points.

    Returns:
        A Taichi function ``shade(p: vec3, normal: vec3, colour: vec3) -> vec3``.
    """
    shadow_march = make_ray_marcher(sdf, march_config)
    lx, ly, lz = light.position
    strength = float(light.strength)
    ambient = float(environment.ambient_light)
    dimming = float(shadow_factor)

    @ti.func
    def in_shadow(p: vec3) -> ti.i32:
        to_light = vec3(lx, ly, lz) - p
        light_distance = tm.length(to_light)
        result = shadow_march(make_ray(p, to_light / light_distance), ALL_FIELDS)
        blocked = 0
        if result.hit == 1 and result.depth < light_distance:
            blocked = 1
        return blocked

    @ti.func
    def shade(p: vec3, normal: vec3, colour: vec3) -> vec3:
        shadow = 1.0
        if in_shadow(p) == 1:
            shadow = dimming

        to_light = vec3(lx, ly, lz) - p
        light_distance = tm.length(to_light)
        light_direction = to_light / light_distance
        attenuation = 1.0 / (1.0 + light_distance * light_distance)
        diffuse = tm.clamp(
            ti.max(tm.dot(normal, light_direction), 0.0) * attenuation * strength, 0.0, 1.0
        )

        return colour * (ambient + diffuse) * shadow

    return shade
