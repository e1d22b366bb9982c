"""Ray data structure and vector helpers shared by the marching pipeline.

This module provides the Ray dataclass used inside Taichi functions and a
small host-side helper for turning user input into 3-component tuples.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> origin = ti.math.vec3(0.0, 0.0, 5.0)
    >>> direction = ti.math.vec3(0.0, 0.0, -1.0)
    >>> ray = Ray(origin=origin, direction=direction)
    >>> point = ray_at(ray, 4.0)  # (0, 0, 1)
"""

import math
from collections.abc import Iterable

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

Vector3 = tuple[float, float, float]


@ti.dataclass
class Ray:
    """A ray with an origin point and direction vector.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction vector of the ray (vec3). The marcher
            advances by distance-field values, so this must be unit length.
    """

    origin: vec3
    direction: vec3


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Compute the point along the ray at parameter t.

    Args:
        ray: The ray to evaluate.
        t: The parameter value. Positive values are in front of the origin.

    Returns:
        The point ray.origin + t * ray.direction.
    """
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    """Create a ray from origin and direction."""
    return Ray(origin=origin, direction=direction)


# =============================================================================
# Host-side helpers
# =============================================================================


def as_vector3(value: Iterable[float], name: str = "vector") -> Vector3:
    """Convert an iterable of three numbers into a float tuple.

    Args:
        value: Any iterable holding exactly three finite numbers.
        name: Name used in error messages.

    Returns:
        The components as a tuple of Python floats.

    Raises:
        ValueError: If the value does not hold three finite numbers.
    """
    try:
        components = tuple(float(c) for c in value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{name} must be a sequence of 3 numbers, got {value!r}") from e

    if len(components) != 3:
        raise ValueError(f"{name} must have 3 components, got {len(components)}")
    for c in components:
        if not math.isfinite(c):
            raise ValueError(f"{name} components must be finite, got {components}")
    return components  # type: ignore[return-value]
