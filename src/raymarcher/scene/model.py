"""Scene data model: objects, materials, camera, light and environment.

All types are frozen dataclasses. A Scene owns its objects, each Object owns
its geometry, and composite geometry owns its operand objects, so the whole
description is a strict tree that nothing mutates while rendering.

Example:
    >>> from raymarcher.geometry import Sphere
    >>> scene = Scene(
    ...     camera=Camera(position=(0, 0, 5), target=(0, 0, 0), fov=45.0),
    ...     light=Light(position=(0, 4, 3)),
    ...     objects=(Object(geometry=Sphere(radius=1.0)),),
    ... )
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from raymarcher.core.ray import Vector3, as_vector3
from raymarcher.geometry import Geometry, evaluate_distance

# Opaque red
DEFAULT_COLOUR: Vector3 = (1.0, 0.0, 0.0)

# Black
DEFAULT_BACKGROUND: Vector3 = (0.0, 0.0, 0.0)

ORIGIN: Vector3 = (0.0, 0.0, 0.0)


def _as_colour(value: Iterable[float], name: str) -> Vector3:
    colour = as_vector3(value, name)
    for i, channel in enumerate(colour):
        if channel < 0.0 or channel > 1.0:
            raise ValueError(f"{name} channel {i} = {channel} is outside [0, 1]")
    return colour


@dataclass(frozen=True)
class Material:
    """Surface appearance.

    Attributes:
        colour: Linear RGB colour, each channel in [0, 1].
    """

    colour: Iterable[float] = DEFAULT_COLOUR

    def __post_init__(self) -> None:
        object.__setattr__(self, "colour", _as_colour(self.colour, "Material colour"))


@dataclass(frozen=True)
class Object:
    """A geometry instance placed in the world.

    Attributes:
        geometry: The distance-field geometry.
        position: Translation applied to the geometry.
        material: Surface appearance.
    """

    geometry: Geometry
    position: Iterable[float] = ORIGIN
    material: Material = field(default_factory=Material)

    def __post_init__(self) -> None:
        if not isinstance(self.geometry, Geometry):
            raise ValueError(f"Object geometry must be a Geometry, got {self.geometry!r}")
        object.__setattr__(self, "position", as_vector3(self.position, "Object position"))

    def distance(self, point: Iterable[float]) -> float:
        """Evaluate the geometry's signed distance at point - position."""
        return float(evaluate_distance(self, [point])[0])

    def to_dict(self) -> dict[str, Any]:
        return {
            "position": list(self.position),
            "material": {"colour": list(self.material.colour)},
            "geometry": self.geometry.to_dict(),
        }


@dataclass(frozen=True)
class Camera:
    """Look-at pinhole camera.

    Attributes:
        position: Eye position.
        target: Point the camera looks at.
        fov: Vertical field of view in degrees, in (0, 180).
    """

    position: Iterable[float]
    target: Iterable[float]
    fov: float

    def __post_init__(self) -> None:
        position = as_vector3(self.position, "Camera position")
        target = as_vector3(self.target, "Camera target")
        if position == target:
            raise ValueError("Camera position and target must differ")
        fov = float(self.fov)
        if not 0.0 < fov < 180.0:
            raise ValueError(f"Camera fov must be in (0, 180) degrees, got {self.fov}")
        object.__setattr__(self, "position", position)
        object.__setattr__(self, "target", target)
        object.__setattr__(self, "fov", fov)


@dataclass(frozen=True)
class Light:
    """Single point light.

    Attributes:
        position: Light position.
        strength: Multiplier on the diffuse term.
    """

    position: Iterable[float]
    strength: float = 1.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "position", as_vector3(self.position, "Light position"))
        object.__setattr__(self, "strength", float(self.strength))


@dataclass(frozen=True)
class Environment:
    """Scene-wide lighting and background.

    Attributes:
        ambient_light: Light added to every lit surface.
        background_colour: Colour of pixels whose ray hits nothing.
    """

    ambient_light: float = 0.0
    background_colour: Iterable[float] = DEFAULT_BACKGROUND

    def __post_init__(self) -> None:
        object.__setattr__(self, "ambient_light", float(self.ambient_light))
        object.__setattr__(
            self,
            "background_colour",
            _as_colour(self.background_colour, "Environment background_colour"),
        )


@dataclass(frozen=True)
class Scene:
    """Root of a scene description.

    Attributes:
        camera: The viewing camera.
        light: The point light.
        objects: Ordered objects; converted to a tuple.
        environment: Ambient light and background.
    """

    camera: Camera
    light: Light
    objects: Iterable[Object] = ()
    environment: Environment = field(default_factory=Environment)

    def __post_init__(self) -> None:
        objects = tuple(self.objects)
        for i, obj in enumerate(objects):
            if not isinstance(obj, Object):
                raise ValueError(f"Scene objects[{i}] must be an Object, got {obj!r}")
        object.__setattr__(self, "objects", objects)
