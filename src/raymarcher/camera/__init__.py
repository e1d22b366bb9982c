"""Camera module for view and primary ray generation.

Components:
    pinhole: Look-at pinhole camera with a fixed world up vector

Camera responsibilities:
    - Build an orthonormal basis from position, target and up vector
    - Map integer pixel coordinates to unit world-space ray directions

The basis is computed once on the host with NumPy; ray generation is a
Taichi function that closes over the basis and is inlined into the render
kernel, one invocation per pixel.
"""

from .pinhole import WORLD_UP, CameraBasis, compute_camera_basis, make_ray_generator

__all__ = [
    "WORLD_UP",
    "CameraBasis",
    "compute_camera_basis",
    "make_ray_generator",
]
