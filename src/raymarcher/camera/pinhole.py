"""Pinhole camera model for primary ray generation.

The camera builds an orthonormal basis from the look-at parameters:
- forward: from the eye toward the target
- right: forward x world_up
- up: right x forward

A pixel (x, y) of a width x height image is mapped to the camera-space
direction normalize(x - width/2, y - height/2, -focal) with
focal = height / (2 * tan(fov / 2)), then expressed in the world basis as
d.x * right + d.y * up - d.z * forward.

Image rows grow downward, so the default world up vector is (0, -1, 0):
with it, row 0 of the image looks toward world +y. The camera-space frame
is left-handed while the look-at basis is right-handed, so one image axis
is always mirrored: with (0, -1, 0) the right vector points to the
viewer's left and the image is mirrored horizontally.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from raymarcher.scene.model import Camera
    >>> camera = Camera(position=(0.0, 0.0, 5.0), target=(0.0, 0.0, 0.0), fov=45.0)
    >>> basis = compute_camera_basis(camera)
    >>> get_ray = make_ray_generator(basis, 640, 360)
    >>> # Use get_ray(x, y) within a Taichi kernel
"""

import math
from dataclasses import dataclass
from typing import Any

import numpy as np
import taichi as ti
import taichi.math as tm

from raymarcher.core.ray import Ray, Vector3, as_vector3, make_ray, vec3
from raymarcher.scene.model import Camera

# Fixed world up vector (image rows grow downward)
WORLD_UP: Vector3 = (0.0, -1.0, 0.0)

# =============================================================================
# Camera Data Structures
# =============================================================================


@dataclass(frozen=True)
class CameraBasis:
    """Orthonormal look-at basis of a camera.

    Attributes:
        origin: Camera position in world space.
        forward: Unit vector from the eye toward the target.
        right: Unit vector pointing right in the image plane.
        up: Unit vector pointing up in the image plane.
        fov: Vertical field of view in radians.
    """

    origin: Vector3
    forward: Vector3
    right: Vector3
    up: Vector3
    fov: float


# =============================================================================
# Camera Setup (Python-side, called once per render)
# =============================================================================


def compute_camera_basis(camera: Camera, world_up: Vector3 = WORLD_UP) -> CameraBasis:
    """Compute the camera's orthonormal basis.

    Args:
        camera: Camera with position, target and field of view in degrees.
        world_up: Fixed up vector used to orient the camera.

    Returns:
        The camera basis with the field of view converted to radians.

    Raises:
        ValueError: If the view direction is parallel to world_up.
    """
    eye = np.array(camera.position, dtype=np.float64)
    target = np.array(camera.target, dtype=np.float64)
    up_hint = np.array(as_vector3(world_up, "world_up"), dtype=np.float64)

    forward = target - eye
    forward = forward / np.linalg.norm(forward)

    right = np.cross(forward, up_hint)
    right_length = np.linalg.norm(right)
    if right_length < 1e-8:
        raise ValueError(
            f"Camera view direction {tuple(forward)} is parallel to the up vector {world_up}"
        )
    right = right / right_length

    up = np.cross(right, forward)

    return CameraBasis(
        origin=as_vector3(eye, "origin"),
        forward=as_vector3(forward, "forward"),
        right=as_vector3(right, "right"),
        up=as_vector3(up, "up"),
        fov=math.radians(camera.fov),
    )


# =============================================================================
# Ray Generation (Taichi-compatible)
# =============================================================================


def make_ray_generator(basis: CameraBasis, width: int, height: int) -> Any:
    """Build the primary ray function for an image size.

    Args:
        basis: Camera basis from compute_camera_basis().
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        A Taichi function ``get_ray(x: i32, y: i32) -> Ray`` where x is the
        column and y the row, counted from the top-left pixel.
    """
    half_width = width / 2.0
    half_height = height / 2.0
    focal = height / (2.0 * math.tan(basis.fov / 2.0))

    ox, oy, oz = basis.origin
    fx, fy, fz = basis.forward
    rx, ry, rz = basis.right
    ux, uy, uz = basis.up

    @ti.func
    def get_ray(x: ti.i32, y: ti.i32) -> Ray:
        local = tm.normalize(
            vec3(
                ti.cast(x, ti.f32) - half_width,
                ti.cast(y, ti.f32) - half_height,
                -focal,
            )
        )
        direction = (
            local.x * vec3(rx, ry, rz) + local.y * vec3(ux, uy, uz) - local.z * vec3(fx, fy, fz)
        )
        return make_ray(vec3(ox, oy, oz), tm.normalize(direction))

    return get_ray
