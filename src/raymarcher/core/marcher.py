"""Sphere tracing and normal estimation over signed distance fields.

Distance fields are Taichi functions ``f(index: i32, p: vec3) -> f32``
where ``index`` selects one field of a family (for the renderer, one loaded
program per object; see ``geometry.program.field_distance``). A field never
overestimates the distance from ``p`` to the nearest surface, and the marcher
walks a ray by exactly that distance each step:

    depth = min_distance
    repeat max_steps times:
        d = f(index, origin + depth * direction)
        d < epsilon        -> hit at depth
        depth += d
        depth >= max_distance -> miss
    -> miss

Marchers and normal estimators are built by ``make_ray_marcher`` and
``make_normal_estimator``; the returned Taichi functions close over the
field function and the configuration, and take the field index at run time.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from raymarcher.geometry import Sphere
    >>> hit, depth = march_ray(Sphere(radius=1.0), (0, 0, 5), (0, 0, -1))
    >>> hit, round(depth, 3)
    (True, 4.0)
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from raymarcher.core.ray import Ray, as_vector3, make_ray, ray_at, vec3
from raymarcher.geometry.program import compile_geometry, field_distance, load_programs

# =============================================================================
# Marching Constants
# =============================================================================

# Depth at which marching starts (keeps shadow rays off their own surface)
MIN_DISTANCE = 0.1

# Depth beyond which a ray is considered to have escaped the scene
MAX_DISTANCE = 100.0

# Maximum number of marching steps per ray
MAX_STEPS = 100

# Distance below which a sample counts as being on the surface
EPSILON = 1e-4


@dataclass(frozen=True)
class MarchConfig:
    """Termination settings for the sphere tracer.

    Attributes:
        min_distance: Initial depth along the ray.
        max_distance: Depth at which the ray is reported as a miss.
        max_steps: Step budget; exhausting it is a miss.
        epsilon: Surface threshold for a hit.
    """

    min_distance: float = MIN_DISTANCE
    max_distance: float = MAX_DISTANCE
    max_steps: int = MAX_STEPS
    epsilon: float = EPSILON

    def __post_init__(self) -> None:
        if self.min_distance < 0.0:
            raise ValueError(f"min_distance must be >= 0, got {self.min_distance}")
        if self.max_distance <= self.min_distance:
            raise ValueError(
                f"max_distance ({self.max_distance}) must exceed "
                f"min_distance ({self.min_distance})"
            )
        if self.max_steps <= 0:
            raise ValueError(f"max_steps must be positive, got {self.max_steps}")
        if self.epsilon <= 0.0:
            raise ValueError(f"epsilon must be positive, got {self.epsilon}")


@ti.dataclass
class MarchResult:
    """Outcome of marching a single ray.

    Attributes:
        hit: 1 if the surface was reached, 0 on a miss.
        depth: Distance along the ray of the hit. Only valid if hit == 1.
    """

    hit: ti.i32
    depth: ti.f32


# =============================================================================
# Taichi Function Builders
# =============================================================================


def make_ray_marcher(sdf: Any, config: MarchConfig | None = None) -> Any:
    """Build a sphere tracer over an indexed family of distance fields.

    Args:
        sdf: Taichi function ``f(index: i32, p: vec3) -> f32`` giving the
            signed distance of field ``index`` at p.
        config: Termination settings. Defaults to MarchConfig().

    Returns:
        A Taichi function ``march(ray: Ray, index: i32) -> MarchResult``.
    """
    config = config or MarchConfig()
    min_distance = float(config.min_distance)
    max_distance = float(config.max_distance)
    max_steps = int(config.max_steps)
    epsilon = float(config.epsilon)

    @ti.func
    def march(ray: Ray, index: ti.i32) -> MarchResult:
        depth = min_distance
        hit = 0
        # Active flag instead of break, as in the other Taichi loops
        active = 1
        for _ in range(max_steps):
            if active == 1:
                distance = sdf(index, ray_at(ray, depth))
                if distance < epsilon:
                    hit = 1
                    active = 0
                else:
                    depth += distance
                    if depth >= max_distance:
                        active = 0
        return MarchResult(hit=hit, depth=depth)

    return march


def make_normal_estimator(sdf: Any, epsilon: float = EPSILON) -> Any:
    """Build a central-difference normal estimator.

    Args:
        sdf: Taichi function ``f(index: i32, p: vec3) -> f32``.
        epsilon: Offset along each axis.

    Returns:
        A Taichi function ``estimate_normal(index: i32, p: vec3) -> vec3``
        returning a unit vector.
    """
    if epsilon <= 0.0:
        raise ValueError(f"Normal epsilon must be positive, got {epsilon}")
    h = float(epsilon)

    @ti.func
    def estimate_normal(index: ti.i32, p: vec3) -> vec3:
        dx = vec3(h, 0.0, 0.0)
        dy = vec3(0.0, h, 0.0)
        dz = vec3(0.0, 0.0, h)
        gradient = vec3(
            sdf(index, p + dx) - sdf(index, p - dx),
            sdf(index, p + dy) - sdf(index, p - dy),
            sdf(index, p + dz) - sdf(index, p - dz),
        )
        return tm.normalize(gradient)

    return estimate_normal


# =============================================================================
# Host-callable wrappers (testing and debugging)
# =============================================================================


def march_ray(
    source: Any,
    origin: Iterable[float],
    direction: Iterable[float],
    config: MarchConfig | None = None,
) -> tuple[bool, float]:
    """March a single ray against a geometry or object from Python.

    Compiles a one-off kernel and replaces the loaded programs, so this is
    meant for tests and inspection; the renderer marches whole images inside
    one kernel.

    Args:
        source: A Geometry or an Object.
        origin: Ray origin.
        direction: Ray direction; normalized before marching.
        config: Termination settings.

    Returns:
        Tuple of (hit, depth). The depth is meaningless on a miss.
    """
    ox, oy, oz = as_vector3(origin, "origin")
    direction_np = np.asarray(as_vector3(direction, "direction"), dtype=np.float64)
    norm = float(np.linalg.norm(direction_np))
    if norm == 0.0:
        raise ValueError("direction must be non-zero")
    dx, dy, dz = (float(c) for c in direction_np / norm)

    load_programs([compile_geometry(source)])
    march = make_ray_marcher(field_distance, config)
    hit = np.zeros(1, dtype=np.int32)
    depth = np.zeros(1, dtype=np.float32)

    @ti.kernel
    def _march_kernel(
        hit: ti.types.ndarray(dtype=ti.i32, ndim=1),
        depth: ti.types.ndarray(dtype=ti.f32, ndim=1),
    ):
        result = march(make_ray(vec3(ox, oy, oz), vec3(dx, dy, dz)), 0)
        hit[0] = result.hit
        depth[0] = result.depth

    _march_kernel(hit, depth)
    return bool(hit[0]), float(depth[0])


def estimate_normal_at(
    source: Any,
    point: Iterable[float],
    epsilon: float = EPSILON,
) -> npt.NDArray[np.float32]:
    """Estimate the surface normal of a geometry or object at a point.

    Args:
        source: A Geometry or an Object.
        point: Query point, ideally on the surface.
        epsilon: Central-difference offset.

    Returns:
        The unit normal as a float32 array of shape (3,).
    """
    px, py, pz = as_vector3(point, "point")
    estimate_normal = make_normal_estimator(field_distance, epsilon)
    load_programs([compile_geometry(source)])
    normal = np.zeros((1, 3), dtype=np.float32)

    @ti.kernel
    def _normal_kernel(normal: ti.types.ndarray(dtype=vec3, ndim=1)):
        normal[0] = estimate_normal(0, vec3(px, py, pz))

    _normal_kernel(normal)
    return normal[0]
