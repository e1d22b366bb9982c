"""Scene module: the scene description and its document format.

Components:
    model: Frozen dataclasses for objects, materials, camera, light and
        environment
    loader: JSON scene documents to and from the data model

A scene is an immutable tree: the Scene owns its objects, each object owns
its geometry, and composite geometry owns its operand objects.
"""

from .loader import (
    SceneFormatError,
    geometry_from_dict,
    load_scene,
    object_from_dict,
    save_scene,
    scene_from_dict,
    scene_to_dict,
)
from .model import Camera, Environment, Light, Material, Object, Scene

__all__ = [
    # Data model
    "Scene",
    "Object",
    "Material",
    "Camera",
    "Light",
    "Environment",
    # Documents
    "SceneFormatError",
    "geometry_from_dict",
    "object_from_dict",
    "scene_from_dict",
    "scene_to_dict",
    "load_scene",
    "save_scene",
]
