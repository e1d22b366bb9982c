"""Common interface for distance-field geometry.

Every geometry node is an immutable dataclass. Rendering never calls into
the nodes directly: ``geometry.program.compile_geometry`` walks the tree
through ``opcode``, ``parameters()`` and ``operands()`` and flattens it into
an instruction list that one Taichi function evaluates, however large the
tree is.
"""

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, ClassVar

from raymarcher.core.ray import Vector3

if TYPE_CHECKING:
    from raymarcher.scene.model import Object


class Geometry:
    """Base class for all distance-field geometry nodes.

    Subclasses set ``type_name`` (the tag used in scene documents) and
    ``opcode`` (the instruction they compile to), and implement
    ``to_dict()``. Nodes with parameters or operand objects override
    ``parameters()`` and ``operands()``.
    """

    type_name: ClassVar[str] = ""
    opcode: ClassVar[int] = -1

    def parameters(self) -> Vector3:
        """Numeric parameters of this node's instruction."""
        return (0.0, 0.0, 0.0)

    def operands(self) -> tuple["Object", ...]:
        """Child objects, in evaluation order."""
        return ()

    def to_dict(self) -> dict[str, Any]:
        """Return the scene-document form of this node."""
        raise NotImplementedError

    def distance(self, point: Iterable[float]) -> float:
        """Evaluate the signed distance at a single point."""
        # Imported here to avoid a circular import with geometry.program
        from raymarcher.geometry.program import evaluate_distance

        return float(evaluate_distance(self, [point])[0])
