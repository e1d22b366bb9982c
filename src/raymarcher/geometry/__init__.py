"""Geometry module for signed distance field primitives and operators.

Components:
    base: Geometry interface
    primitives: Sphere and axis-aligned box centred on the origin
    operators: Infinite repetition and CSG union/subtraction/intersection
    program: Flattening of geometry trees into instruction lists, their
        Taichi evaluator and host-side field evaluation

Every loaded program is evaluated through one Taichi function (@ti.func):
    distance = field_distance(index, p)
negative inside the surface, zero on it, positive outside.
"""

from .base import Geometry
from .operators import InfiniteRepetition, Intersection, Subtraction, Union
from .primitives import Cube, Sphere
from .program import (
    ALL_FIELDS,
    GeometryProgram,
    compile_geometry,
    evaluate_distance,
    field_distance,
    load_programs,
)

__all__ = [
    "Geometry",
    "Sphere",
    "Cube",
    "InfiniteRepetition",
    "Union",
    "Subtraction",
    "Intersection",
    "ALL_FIELDS",
    "GeometryProgram",
    "compile_geometry",
    "evaluate_distance",
    "field_distance",
    "load_programs",
]
