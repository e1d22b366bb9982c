"""Scene document loading and saving.

Scenes are stored as JSON documents:

    {
        "camera": {"position": [0, 0, 5], "target": [0, 0, 0], "fov": 45},
        "environment": {"ambient_light": 0.1, "background_colour": [0, 0, 0]},
        "light": {"position": [0, 4, 3], "strength": 10},
        "objects": [
            {
                "position": [0, 0, 0],
                "material": {"colour": [1, 0, 0]},
                "geometry": {"type": "Sphere", "radius": 1}
            }
        ]
    }

Documents are validated by pydantic models, one per node type. Geometry
nodes are a tagged union on ``"type"``, matched regardless of case,
underscores and hyphens. Composite nodes hold object documents under
``child`` (InfiniteRepetition) or ``a``/``b`` (CSG); a bare geometry
document is accepted there too and wrapped in a default object. Omitted
optional fields take the data model's defaults. Validated documents are
then built into the frozen dataclasses of ``scene.model``.

Example:
    >>> from raymarcher.scene.loader import load_scene
    >>> scene = load_scene("examples/scenes/sphere.json")
    >>> len(scene.objects)
    1
"""

from __future__ import annotations

import json
import typing
from pathlib import Path
from typing import Annotated, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    PositiveFloat,
    Tag,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from raymarcher.geometry import (
    Cube,
    Geometry,
    InfiniteRepetition,
    Intersection,
    Sphere,
    Subtraction,
    Union,
)
from raymarcher.geometry.operators import DEFAULT_PERIOD
from raymarcher.geometry.primitives import DEFAULT_HALF_EXTENTS, DEFAULT_RADIUS
from raymarcher.scene.model import (
    DEFAULT_BACKGROUND,
    DEFAULT_COLOUR,
    ORIGIN,
    Camera,
    Environment,
    Light,
    Material,
    Object,
    Scene,
)

Vector = tuple[float, float, float]
Channel = Annotated[float, Field(ge=0.0, le=1.0)]
Colour = tuple[Channel, Channel, Channel]


class SceneFormatError(ValueError):
    """A scene document is malformed.

    Attributes:
        path: Location of the offending value, e.g. ``objects[2].geometry.type``.
    """

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


class Document(BaseModel):
    """Base for scene document models."""

    model_config = ConfigDict(allow_inf_nan=False)


# =============================================================================
# Geometry documents
# =============================================================================


class SphereDocument(Document):
    type: str = Sphere.type_name
    radius: PositiveFloat = DEFAULT_RADIUS

    def build(self) -> Geometry:
        return Sphere(radius=self.radius)


class CubeDocument(Document):
    type: str = Cube.type_name
    half_extents: tuple[PositiveFloat, PositiveFloat, PositiveFloat] = DEFAULT_HALF_EXTENTS

    def build(self) -> Geometry:
        return Cube(half_extents=self.half_extents)


class InfiniteRepetitionDocument(Document):
    type: str = InfiniteRepetition.type_name
    child: ObjectDocument
    period: Vector = DEFAULT_PERIOD

    @field_validator("period")
    @classmethod
    def _period_is_non_zero(cls, period: Vector) -> Vector:
        if any(c == 0.0 for c in period):
            raise ValueError("every period component must be non-zero")
        return period

    def build(self) -> Geometry:
        return InfiniteRepetition(child=self.child.build(), period=self.period)


class UnionDocument(Document):
    type: str = Union.type_name
    a: ObjectDocument
    b: ObjectDocument

    def build(self) -> Geometry:
        return Union(a=self.a.build(), b=self.b.build())


class SubtractionDocument(Document):
    type: str = Subtraction.type_name
    a: ObjectDocument
    b: ObjectDocument

    def build(self) -> Geometry:
        return Subtraction(a=self.a.build(), b=self.b.build())


class IntersectionDocument(Document):
    type: str = Intersection.type_name
    a: ObjectDocument
    b: ObjectDocument

    def build(self) -> Geometry:
        return Intersection(a=self.a.build(), b=self.b.build())


def normalize_tag(tag: str) -> str:
    return tag.replace("_", "").replace("-", "").lower()


# Geometry classes keyed by normalized type tag
GEOMETRY_TYPES: dict[str, type[Geometry]] = {
    normalize_tag(cls.type_name): cls
    for cls in (Sphere, Cube, InfiniteRepetition, Union, Subtraction, Intersection)
}


def _geometry_tag(value: Any) -> str | None:
    """Pick the union member for a geometry document."""
    if isinstance(value, dict):
        tag = value.get("type")
    else:
        tag = getattr(value, "type", None)
    if not isinstance(tag, str):
        return None
    normalized = normalize_tag(tag)
    # Unknown tags are reported as written
    return normalized if normalized in GEOMETRY_TYPES else tag


GeometryDocument = Annotated[
    typing.Union[
        Annotated[SphereDocument, Tag("sphere")],
        Annotated[CubeDocument, Tag("cube")],
        Annotated[InfiniteRepetitionDocument, Tag("infiniterepetition")],
        Annotated[UnionDocument, Tag("union")],
        Annotated[SubtractionDocument, Tag("subtraction")],
        Annotated[IntersectionDocument, Tag("intersection")],
    ],
    Discriminator(_geometry_tag),
]


# =============================================================================
# Object and scene documents
# =============================================================================


class MaterialDocument(Document):
    colour: Colour = DEFAULT_COLOUR

    def build(self) -> Material:
        return Material(colour=self.colour)


class ObjectDocument(Document):
    geometry: GeometryDocument
    position: Vector = ORIGIN
    material: MaterialDocument = Field(default_factory=MaterialDocument)

    @model_validator(mode="before")
    @classmethod
    def _wrap_bare_geometry(cls, data: Any) -> Any:
        if isinstance(data, dict) and "type" in data:
            return {"geometry": data}
        return data

    def build(self) -> Object:
        return Object(
            geometry=self.geometry.build(),
            position=self.position,
            material=self.material.build(),
        )


class CameraDocument(Document):
    position: Vector
    target: Vector
    fov: float = Field(gt=0.0, lt=180.0)

    @model_validator(mode="after")
    def _position_differs_from_target(self) -> CameraDocument:
        if self.position == self.target:
            raise ValueError("camera position and target must differ")
        return self

    def build(self) -> Camera:
        return Camera(position=self.position, target=self.target, fov=self.fov)


class LightDocument(Document):
    position: Vector
    strength: float = 1.0

    def build(self) -> Light:
        return Light(position=self.position, strength=self.strength)


class EnvironmentDocument(Document):
    ambient_light: float = 0.0
    background_colour: Colour = DEFAULT_BACKGROUND

    def build(self) -> Environment:
        return Environment(
            ambient_light=self.ambient_light, background_colour=self.background_colour
        )


class SceneDocument(Document):
    camera: CameraDocument
    light: LightDocument
    environment: EnvironmentDocument = Field(default_factory=EnvironmentDocument)
    objects: list[ObjectDocument] = Field(default_factory=list)

    def build(self) -> Scene:
        return Scene(
            camera=self.camera.build(),
            light=self.light.build(),
            objects=[obj.build() for obj in self.objects],
            environment=self.environment.build(),
        )


for _model in (
    InfiniteRepetitionDocument,
    UnionDocument,
    SubtractionDocument,
    IntersectionDocument,
    ObjectDocument,
    SceneDocument,
):
    _model.model_rebuild()

_GEOMETRY_ADAPTER: TypeAdapter[Any] = TypeAdapter(GeometryDocument)


# =============================================================================
# Validation
# =============================================================================


def _error_path(root: str, loc: tuple[int | str, ...]) -> str:
    """Render a pydantic error location as ``objects[2].geometry.type``."""
    path = root
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        elif part in GEOMETRY_TYPES:
            # Union member tags are not part of the document
            continue
        else:
            path = f"{path}.{part}" if path else part
    return path


def _format_error(root: str, error: ValidationError) -> SceneFormatError:
    first = error.errors()[0]
    path = _error_path(root, first["loc"])
    message = first["msg"]

    if first["type"] in ("union_tag_invalid", "union_tag_not_found"):
        if not isinstance(first["input"], dict):
            message = f"expected an object, got {type(first['input']).__name__}"
        elif first["type"] == "union_tag_not_found":
            path = f"{path}.type" if path else "type"
            message = "missing or non-string geometry type"
        else:
            path = f"{path}.type" if path else "type"
            known = ", ".join(cls.type_name for cls in GEOMETRY_TYPES.values())
            tag = first["input"]["type"]
            message = f"unknown geometry type {tag!r} (expected one of {known})"

    if error.error_count() > 1:
        message += f" (and {error.error_count() - 1} more errors)"
    return SceneFormatError(path or "scene", message)


def _validate(root: str, validate: Any, data: Any) -> Any:
    """Validate a document and build its data model, reporting errors at root."""
    try:
        document = validate(data)
    except ValidationError as e:
        raise _format_error(root, e) from e
    try:
        return document.build()
    except ValueError as e:
        raise SceneFormatError(root or "scene", str(e)) from e


# =============================================================================
# Public API
# =============================================================================


def geometry_from_dict(data: Any, path: str = "geometry") -> Geometry:
    """Build a geometry node from its document form.

    Args:
        data: Mapping with a ``"type"`` tag and the variant's fields.
        path: Location of ``data`` in the enclosing document, for errors.

    Returns:
        The geometry node.

    Raises:
        SceneFormatError: If the tag is missing or unknown, or a field is
            invalid.
    """
    return _validate(path, _GEOMETRY_ADAPTER.validate_python, data)


def object_from_dict(data: Any, path: str = "object") -> Object:
    """Build an object from its document form.

    A document carrying a ``"type"`` tag is treated as bare geometry and
    wrapped in an object at the origin with the default material.

    Args:
        data: Mapping with ``geometry`` and optional ``position`` and
            ``material``.
        path: Location of ``data`` in the enclosing document, for errors.

    Returns:
        The object.

    Raises:
        SceneFormatError: If the document is malformed.
    """
    return _validate(path, ObjectDocument.model_validate, data)


def scene_from_dict(data: Any) -> Scene:
    """Build a scene from its document form.

    Args:
        data: Mapping with ``camera``, ``light`` and optional ``environment``
            and ``objects``.

    Returns:
        The scene.

    Raises:
        SceneFormatError: If the document is malformed. Its path is relative
            to the document root, e.g. ``camera.target[1]``.
    """
    return _validate("", SceneDocument.model_validate, data)


def load_scene(path: str | Path) -> Scene:
    """Load a scene from a JSON file.

    Args:
        path: Path to the scene document.

    Returns:
        The scene.

    Raises:
        OSError: If the file cannot be read.
        SceneFormatError: If the file is not valid JSON or not a valid scene.
    """
    text = Path(path).read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SceneFormatError(str(path), f"invalid JSON: {e}") from e
    return scene_from_dict(data)


def scene_to_dict(scene: Scene) -> dict[str, Any]:
    """Convert a scene to its document form.

    The result can be passed to json.dump and read back with scene_from_dict.
    """
    return {
        "camera": {
            "position": list(scene.camera.position),
            "target": list(scene.camera.target),
            "fov": scene.camera.fov,
        },
        "environment": {
            "ambient_light": scene.environment.ambient_light,
            "background_colour": list(scene.environment.background_colour),
        },
        "light": {
            "position": list(scene.light.position),
            "strength": scene.light.strength,
        },
        "objects": [obj.to_dict() for obj in scene.objects],
    }


def save_scene(scene: Scene, path: str | Path) -> None:
    """Write a scene to a JSON file."""
    Path(path).write_text(json.dumps(scene_to_dict(scene), indent=2) + "\n", encoding="utf-8")
