"""Flattened distance-field programs.

A geometry tree is compiled on the host into a linear program with one
instruction per node. A Taichi function then evaluates the program with a
small value stack:

    SPHERE, CUBE      push the primitive's distance at the current point
    REPEAT            fold the current point into the repetition cell
    UNION             pop b, pop a, push min(a, b)
    SUBTRACTION       pop b, pop a, push max(-b, a)
    INTERSECTION      pop b, pop a, push max(a, b)

The programs of every object in a scene are stored back to back in
fixed-capacity fields, one range per object. Kernels that evaluate them loop
over instructions at run time, so neither the number of objects nor the
depth of a tree changes the code Taichi has to compile.

Point registers hold the query point seen at each level of repetition.
Register 0 is the world point, and a REPEAT writes its folded point into the
next register. Object translations are folded into a per-instruction offset
that is subtracted from the register the instruction reads.

The operands of a binary node are emitted deeper-first, so the value stack
never holds more than log2(leaves) + 1 distances.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from raymarcher.geometry import Sphere
    >>> program = compile_geometry(Sphere(radius=2.0))
    >>> len(program), program.stack_depth
    (1, 1)
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, NamedTuple

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from raymarcher.core.ray import Vector3, vec3
from raymarcher.geometry.base import Geometry

# =============================================================================
# Opcodes
# =============================================================================

OP_SPHERE = 0
OP_CUBE = 1
OP_REPEAT = 2
OP_UNION = 3
OP_SUBTRACTION = 4
OP_INTERSECTION = 5

# =============================================================================
# Capacities
# =============================================================================

# Total instructions across all loaded programs
MAX_INSTRUCTIONS = 65536

# Maximum number of loaded programs (one per scene object)
MAX_FIELDS = 4096

# Distances a program may hold on its value stack at once
STACK_SIZE = 24

# Point registers: the world point plus one per level of repetition
MAX_REGISTERS = 8

# Field index selecting the union of every loaded program
ALL_FIELDS = -1

# Distance reported when no program is loaded
FAR = 1e6

_NO_OFFSET: Vector3 = (0.0, 0.0, 0.0)


class _Instruction(NamedTuple):
    opcode: int
    parameters: Vector3
    offset: Vector3
    source: int
    target: int
    swapped: int


@dataclass(frozen=True, eq=False)
class GeometryProgram:
    """A geometry tree compiled to a flat instruction list.

    Attributes:
        opcodes: Instruction opcodes, int32 of shape (N,).
        parameters: Radius (x), half extents or period, float32 of shape (N, 3).
        offsets: Translation subtracted from the source register, (N, 3).
        sources: Register each instruction reads.
        targets: Register a REPEAT writes; equal to the source otherwise.
        swapped: 1 where a binary node's operands were emitted b-first.
        stack_depth: Largest number of distances on the value stack.
        register_count: Number of point registers used.
    """

    opcodes: npt.NDArray[np.int32]
    parameters: npt.NDArray[np.float32]
    offsets: npt.NDArray[np.float32]
    sources: npt.NDArray[np.int32]
    targets: npt.NDArray[np.int32]
    swapped: npt.NDArray[np.int32]
    stack_depth: int
    register_count: int

    def __len__(self) -> int:
        return len(self.opcodes)


# =============================================================================
# Host-side compilation
# =============================================================================


def _translate(offset: Vector3, position: Vector3) -> Vector3:
    return (offset[0] + position[0], offset[1] + position[1], offset[2] + position[2])


def _stack_needs(root: Geometry) -> dict[int, int]:
    """Value stack size needed by every node, keyed by id()."""
    needs: dict[int, int] = {}
    pending = [(root, False)]
    while pending:
        geometry, expanded = pending.pop()
        if id(geometry) in needs:
            continue
        children = [operand.geometry for operand in geometry.operands()]
        if children and not expanded:
            pending.append((geometry, True))
            pending.extend((child, False) for child in children)
            continue

        child_needs = [needs[id(child)] for child in children]
        if len(child_needs) == 2:
            first, second = child_needs
            needs[id(geometry)] = first + 1 if first == second else max(first, second)
        elif child_needs:
            needs[id(geometry)] = child_needs[0]
        else:
            needs[id(geometry)] = 1
    return needs


def compile_geometry(source: Any) -> GeometryProgram:
    """Compile a geometry tree into a flat program.

    Args:
        source: A Geometry, or an Object whose position translates it.

    Returns:
        The compiled program.

    Raises:
        ValueError: If repetitions nest deeper than MAX_REGISTERS - 1 levels,
            or the tree needs more than STACK_SIZE stack slots.
    """
    if isinstance(source, Geometry):
        root, offset = source, _NO_OFFSET
    else:
        root, offset = source.geometry, tuple(source.position)

    needs = _stack_needs(root)
    if needs[id(root)] > STACK_SIZE:
        raise ValueError(
            f"Geometry needs {needs[id(root)]} stack slots; at most {STACK_SIZE} are supported"
        )

    instructions: list[_Instruction] = []
    register_count = 1
    pending: list[Any] = [(root, offset, 0)]
    while pending:
        item = pending.pop()
        if isinstance(item, _Instruction):
            instructions.append(item)
            continue

        geometry, offset, register = item
        operands = geometry.operands()
        if geometry.opcode == OP_REPEAT:
            (child,) = operands
            target = register + 1
            if target >= MAX_REGISTERS:
                raise ValueError(
                    f"InfiniteRepetition nests more than {MAX_REGISTERS - 1} levels deep"
                )
            register_count = max(register_count, target + 1)
            instructions.append(
                _Instruction(OP_REPEAT, geometry.parameters(), offset, register, target, 0)
            )
            # The child's position is relative to the folded cell
            pending.append((child.geometry, tuple(child.position), target))
        elif operands:
            a, b = operands
            swapped = needs[id(b.geometry)] > needs[id(a.geometry)]
            first, second = (b, a) if swapped else (a, b)
            pending.append(
                _Instruction(
                    geometry.opcode, _NO_OFFSET, _NO_OFFSET, register, register, int(swapped)
                )
            )
            pending.append((second.geometry, _translate(offset, second.position), register))
            pending.append((first.geometry, _translate(offset, first.position), register))
        else:
            instructions.append(
                _Instruction(geometry.opcode, geometry.parameters(), offset, register, register, 0)
            )

    return GeometryProgram(
        opcodes=np.array([i.opcode for i in instructions], dtype=np.int32),
        parameters=np.array([i.parameters for i in instructions], dtype=np.float32),
        offsets=np.array([i.offset for i in instructions], dtype=np.float32),
        sources=np.array([i.source for i in instructions], dtype=np.int32),
        targets=np.array([i.target for i in instructions], dtype=np.int32),
        swapped=np.array([i.swapped for i in instructions], dtype=np.int32),
        stack_depth=needs[id(root)],
        register_count=register_count,
    )


# =============================================================================
# Program storage (Taichi fields, allocated on first load)
# =============================================================================

instruction_opcodes = None
instruction_parameters = None
instruction_offsets = None
instruction_sources = None
instruction_targets = None
instruction_swapped = None
field_starts = None
field_ends = None
field_count = None


def _allocate_fields() -> None:
    global instruction_opcodes, instruction_parameters, instruction_offsets
    global instruction_sources, instruction_targets, instruction_swapped
    global field_starts, field_ends, field_count

    if field_count is not None:
        return
    instruction_opcodes = ti.field(dtype=ti.i32, shape=MAX_INSTRUCTIONS)
    instruction_parameters = ti.Vector.field(3, dtype=ti.f32, shape=MAX_INSTRUCTIONS)
    instruction_offsets = ti.Vector.field(3, dtype=ti.f32, shape=MAX_INSTRUCTIONS)
    instruction_sources = ti.field(dtype=ti.i32, shape=MAX_INSTRUCTIONS)
    instruction_targets = ti.field(dtype=ti.i32, shape=MAX_INSTRUCTIONS)
    instruction_swapped = ti.field(dtype=ti.i32, shape=MAX_INSTRUCTIONS)
    field_starts = ti.field(dtype=ti.i32, shape=MAX_FIELDS)
    field_ends = ti.field(dtype=ti.i32, shape=MAX_FIELDS)
    field_count = ti.field(dtype=ti.i32, shape=())


def load_programs(programs: Sequence[GeometryProgram]) -> None:
    """Replace the loaded programs.

    Program ``i`` becomes field index ``i`` for ``field_distance``.

    Raises:
        RuntimeError: If the programs exceed MAX_FIELDS or MAX_INSTRUCTIONS.
    """
    if len(programs) > MAX_FIELDS:
        raise RuntimeError(f"Maximum number of fields ({MAX_FIELDS}) exceeded")
    total = sum(len(program) for program in programs)
    if total > MAX_INSTRUCTIONS:
        raise RuntimeError(
            f"Maximum number of instructions ({MAX_INSTRUCTIONS}) exceeded: {total}"
        )

    _allocate_fields()

    opcodes = np.zeros(MAX_INSTRUCTIONS, dtype=np.int32)
    parameters = np.zeros((MAX_INSTRUCTIONS, 3), dtype=np.float32)
    offsets = np.zeros((MAX_INSTRUCTIONS, 3), dtype=np.float32)
    sources = np.zeros(MAX_INSTRUCTIONS, dtype=np.int32)
    targets = np.zeros(MAX_INSTRUCTIONS, dtype=np.int32)
    swapped = np.zeros(MAX_INSTRUCTIONS, dtype=np.int32)
    starts = np.zeros(MAX_FIELDS, dtype=np.int32)
    ends = np.zeros(MAX_FIELDS, dtype=np.int32)

    cursor = 0
    for i, program in enumerate(programs):
        end = cursor + len(program)
        opcodes[cursor:end] = program.opcodes
        parameters[cursor:end] = program.parameters
        offsets[cursor:end] = program.offsets
        sources[cursor:end] = program.sources
        targets[cursor:end] = program.targets
        swapped[cursor:end] = program.swapped
        starts[i] = cursor
        ends[i] = end
        cursor = end

    instruction_opcodes.from_numpy(opcodes)
    instruction_parameters.from_numpy(parameters)
    instruction_offsets.from_numpy(offsets)
    instruction_sources.from_numpy(sources)
    instruction_targets.from_numpy(targets)
    instruction_swapped.from_numpy(swapped)
    field_starts.from_numpy(starts)
    field_ends.from_numpy(ends)
    field_count[None] = len(programs)


# =============================================================================
# Taichi Functions
# =============================================================================


@ti.func
def fold_into_cell(q: vec3, period: vec3) -> vec3:
    """Fold a point into the repetition cell centred on the origin."""
    shifted = q + 0.5 * period
    return shifted - period * ti.floor(shifted / period) - 0.5 * period


@ti.func
def run_program(start: ti.i32, end: ti.i32, p: vec3) -> ti.f32:
    """Evaluate the instructions in [start, end) at point p."""
    stack = ti.Vector([0.0] * STACK_SIZE, dt=ti.f32)
    xs = ti.Vector([0.0] * MAX_REGISTERS, dt=ti.f32)
    ys = ti.Vector([0.0] * MAX_REGISTERS, dt=ti.f32)
    zs = ti.Vector([0.0] * MAX_REGISTERS, dt=ti.f32)
    xs[0] = p.x
    ys[0] = p.y
    zs[0] = p.z
    top = 0

    for i in range(start, end):
        opcode = instruction_opcodes[i]
        source = instruction_sources[i]
        q = vec3(xs[source], ys[source], zs[source]) - instruction_offsets[i]
        parameters = instruction_parameters[i]

        if opcode == OP_SPHERE:
            stack[top] = tm.length(q) - parameters.x
            top += 1
        elif opcode == OP_CUBE:
            d = ti.abs(q) - parameters
            outside = tm.length(tm.max(d, vec3(0.0, 0.0, 0.0)))
            inside = ti.min(ti.max(d.x, ti.max(d.y, d.z)), 0.0)
            stack[top] = outside + inside
            top += 1
        elif opcode == OP_REPEAT:
            folded = fold_into_cell(q, parameters)
            target = instruction_targets[i]
            xs[target] = folded.x
            ys[target] = folded.y
            zs[target] = folded.z
        else:
            lower = stack[top - 2]
            upper = stack[top - 1]
            a = lower
            b = upper
            if instruction_swapped[i] == 1:
                a = upper
                b = lower
            value = ti.min(a, b)
            if opcode == OP_SUBTRACTION:
                value = ti.max(-b, a)
            elif opcode == OP_INTERSECTION:
                value = ti.max(a, b)
            stack[top - 2] = value
            top -= 1

    return stack[0]


@ti.func
def field_distance(index: ti.i32, p: vec3) -> ti.f32:
    """Signed distance of loaded program ``index`` at p.

    ``ALL_FIELDS`` selects the union of every loaded program, and gives FAR
    when none is loaded.
    """
    first = index
    last = index + 1
    if index == ALL_FIELDS:
        first = 0
        last = field_count[None]

    distance = FAR
    for i in range(first, last):
        distance = ti.min(distance, run_program(field_starts[i], field_ends[i], p))
    return distance


@ti.kernel
def _evaluate_kernel(
    points: ti.types.ndarray(dtype=vec3, ndim=1),
    out: ti.types.ndarray(dtype=ti.f32, ndim=1),
):
    for i in range(points.shape[0]):
        out[i] = field_distance(0, points[i])


def evaluate_distance(source: Any, points: Any) -> npt.NDArray[np.float32]:
    """Evaluate a distance field at many points.

    Replaces the loaded programs with the one compiled from ``source``.

    Args:
        source: A Geometry or an Object.
        points: Array-like of shape (N, 3) or (3,).

    Returns:
        Float32 array of shape (N,) with the signed distances.

    Raises:
        ValueError: If points cannot be reshaped to (N, 3).
    """
    points_np = np.asarray(points, dtype=np.float32)
    if points_np.ndim == 1:
        points_np = points_np.reshape(1, -1)
    if points_np.ndim != 2 or points_np.shape[1] != 3:
        raise ValueError(f"points must have shape (N, 3), got {points_np.shape}")

    distances = np.zeros(points_np.shape[0], dtype=np.float32)
    if points_np.shape[0] == 0:
        return distances

    load_programs([compile_geometry(source)])
    _evaluate_kernel(np.ascontiguousarray(points_np), distances)
    return distances
