"""Primitive signed distance fields.

Reference formulas (Inigo Quilez, "distance functions"):

    sphere(p)  = |p| - r
    box(p)     = |max(q, 0)| + min(max(q.x, q.y, q.z), 0),  q = |p| - b

Both are exact distance fields centred on the origin; objects translate the
query point before it reaches them. The formulas are evaluated by
``geometry.program.run_program``.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> Sphere(radius=2.0).distance((3.0, 0.0, 0.0))
    1.0
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from raymarcher.core.ray import Vector3, as_vector3
from raymarcher.geometry.base import Geometry
from raymarcher.geometry.program import OP_CUBE, OP_SPHERE

DEFAULT_RADIUS = 1.0
DEFAULT_HALF_EXTENTS: Vector3 = (1.0, 1.0, 1.0)


@dataclass(frozen=True)
class Sphere(Geometry):
    """A sphere centred on the origin.

    Attributes:
        radius: Sphere radius (strictly positive).
    """

    radius: float = DEFAULT_RADIUS

    type_name = "Sphere"
    opcode = OP_SPHERE

    def __post_init__(self) -> None:
        radius = float(self.radius)
        if not radius > 0.0:
            raise ValueError(f"Sphere radius must be positive, got {self.radius}")
        object.__setattr__(self, "radius", radius)

    def parameters(self) -> Vector3:
        return (self.radius, 0.0, 0.0)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type_name, "radius": self.radius}


@dataclass(frozen=True)
class Cube(Geometry):
    """An axis-aligned box centred on the origin.

    Attributes:
        half_extents: Half the box size along x, y and z (all positive).
    """

    half_extents: Iterable[float] = DEFAULT_HALF_EXTENTS

    type_name = "Cube"
    opcode = OP_CUBE

    def __post_init__(self) -> None:
        extents = as_vector3(self.half_extents, "Cube half_extents")
        if min(extents) <= 0.0:
            raise ValueError(f"Cube half_extents must all be positive, got {extents}")
        object.__setattr__(self, "half_extents", extents)

    def parameters(self) -> Vector3:
        return self.half_extents

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type_name, "half_extents": list(self.half_extents)}
