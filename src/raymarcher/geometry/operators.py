"""Distance-field operators: domain repetition and CSG combinations.

Operators own Objects rather than bare geometry, so every operand carries
its own translation (and material, which only matters for top-level
objects). The combined fields are:

    repetition(p)   = child(mod(p + c/2, c) - c/2)
    union(p)        = min(a(p), b(p))
    subtraction(p)  = max(-b(p), a(p))      # a minus b
    intersection(p) = max(a(p), b(p))

Union is a true lower bound of the distance to the combined surface.
Subtraction and intersection only bound it from below approximately: close
to the seam where the operands cross, the returned value can exceed the
true distance, so the marcher may take slightly imprecise steps there.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from raymarcher.core.ray import Vector3, as_vector3
from raymarcher.geometry.base import Geometry
from raymarcher.geometry.program import (
    OP_INTERSECTION,
    OP_REPEAT,
    OP_SUBTRACTION,
    OP_UNION,
)

if TYPE_CHECKING:
    from raymarcher.scene.model import Object

DEFAULT_PERIOD: Vector3 = (1.0, 1.0, 1.0)


@dataclass(frozen=True)
class InfiniteRepetition(Geometry):
    """Repeat an object infinitely along every axis.

    The query point is folded into the cell centred on the origin with a
    floor-based modulo, which stays well defined for negative coordinates.

    Attributes:
        child: The repeated object.
        period: Cell size along x, y and z (no component may be zero).
    """

    child: "Object"
    period: Iterable[float] = DEFAULT_PERIOD

    type_name = "InfiniteRepetition"
    opcode = OP_REPEAT

    def __post_init__(self) -> None:
        period = as_vector3(self.period, "InfiniteRepetition period")
        if any(c == 0.0 for c in period):
            raise ValueError(f"InfiniteRepetition period must be non-zero, got {period}")
        object.__setattr__(self, "period", period)

    def parameters(self) -> Vector3:
        return self.period

    def operands(self) -> tuple["Object", ...]:
        return (self.child,)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type_name,
            "period": list(self.period),
            "child": self.child.to_dict(),
        }


@dataclass(frozen=True)
class Combination(Geometry):
    """Base for CSG nodes over two operand objects."""

    a: "Object"
    b: "Object"

    def operands(self) -> tuple["Object", ...]:
        return (self.a, self.b)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type_name, "a": self.a.to_dict(), "b": self.b.to_dict()}


@dataclass(frozen=True)
class Union(Combination):
    """Set union of two objects."""

    type_name = "Union"
    opcode = OP_UNION


@dataclass(frozen=True)
class Subtraction(Combination):
    """Object ``a`` with object ``b`` carved out of it."""

    type_name = "Subtraction"
    opcode = OP_SUBTRACTION


@dataclass(frozen=True)
class Intersection(Combination):
    """Set intersection of two objects."""

    type_name = "Intersection"
    opcode = OP_INTERSECTION
