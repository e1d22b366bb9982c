"""Pytest configuration for raymarcher tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

from pathlib import Path

import pytest
import taichi as ti

SCENES_DIR = Path(__file__).resolve().parent.parent / "examples" / "scenes"


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls which can cause
    segmentation faults due to Taichi runtime conflicts.
    """
    ti.init(arch=ti.cpu, log_level=ti.WARN)
    yield


@pytest.fixture
def scenes_dir() -> Path:
    """Directory holding the example scene documents."""
    return SCENES_DIR


@pytest.fixture
def sphere_scene():
    """Red unit sphere at the origin seen from z = 5, lit from above."""
    from raymarcher.geometry import Sphere
    from raymarcher.scene.model import Camera, Environment, Light, Material, Object, Scene

    return Scene(
        camera=Camera(position=(0.0, 0.0, 5.0), target=(0.0, 0.0, 0.0), fov=45.0),
        light=Light(position=(0.0, 4.0, 3.0), strength=10.0),
        objects=(Object(geometry=Sphere(radius=1.0), material=Material(colour=(1.0, 0.0, 0.0))),),
        environment=Environment(ambient_light=0.1),
    )
