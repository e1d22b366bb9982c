"""Sphere-tracing renderer: scene compilation and the per-pixel kernel.

A scene is compiled before rendering:

    - each object's geometry is flattened into a program, and all programs
      are loaded into the shared program fields (geometry/program.py)
    - object colours are copied into a colour table field
    - one sphere tracer and one normal estimator over the loaded programs
    - the primary ray generator and the shader

The render kernel's outermost loop runs over every pixel in parallel. Each
pixel marches every object's program in turn and keeps the nearest hit; the
hit object's own field provides the normal, and the shader adds the light,
ambient term and shadow dimming. Shadow rays march the union of all
programs. Pixels whose ray hits nothing take the environment's background
colour. Objects are visited by a run-time loop, so the compiled kernel is
the same size for one object or thousands.

Key features:
    - Per-object primary marching, combined-field shadow marching
    - Caller-provided byte buffer, validated before anything is written
    - Colour quantisation round(clamp(c, 0, 1) * 255)

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from raymarcher.scene.loader import load_scene
    >>> scene = load_scene("examples/scenes/sphere.json")
    >>> buffer = bytearray(640 * 360 * 3)
    >>> render(scene, 640, 360, buffer)
"""

from dataclasses import dataclass, field
from typing import Any

import numpy as np
import numpy.typing as npt
import taichi as ti

from raymarcher.camera.pinhole import WORLD_UP, compute_camera_basis, make_ray_generator
from raymarcher.core.marcher import EPSILON, MarchConfig, make_normal_estimator, make_ray_marcher
from raymarcher.core.ray import Ray, Vector3, as_vector3, ray_at, vec3
from raymarcher.core.shading import SHADOW_FACTOR, make_shader
from raymarcher.geometry.program import (
    MAX_FIELDS,
    compile_geometry,
    field_distance,
    load_programs,
)
from raymarcher.scene.model import Scene

# Bytes per pixel in the output buffer (R, G, B)
CHANNELS = 3

# Material colour per loaded object, allocated on first use
object_colours = None


class BufferTooSmallError(ValueError):
    """The output buffer cannot hold width * height * 3 bytes."""

    def __init__(self, required: int, actual: int) -> None:
        super().__init__(f"Buffer was too small: need {required} bytes, got {actual}")
        self.required = required
        self.actual = actual


@dataclass(frozen=True)
class RenderConfig:
    """Settings for a render call.

    Attributes:
        march: Sphere tracer settings, shared by primary and shadow rays.
        normal_epsilon: Central-difference offset for normal estimation.
        shadow_factor: Colour multiplier for shadowed points.
        world_up: Fixed up vector orienting the camera.
    """

    march: MarchConfig = field(default_factory=MarchConfig)
    normal_epsilon: float = EPSILON
    shadow_factor: float = SHADOW_FACTOR
    world_up: Vector3 = WORLD_UP

    def __post_init__(self) -> None:
        if self.normal_epsilon <= 0.0:
            raise ValueError(f"normal_epsilon must be positive, got {self.normal_epsilon}")
        if not 0.0 <= self.shadow_factor <= 1.0:
            raise ValueError(f"shadow_factor must be in [0, 1], got {self.shadow_factor}")
        object.__setattr__(self, "world_up", as_vector3(self.world_up, "world_up"))


@ti.dataclass
class SurfaceHit:
    """Nearest primary hit across all objects.

    Attributes:
        hit: 1 if any object was hit, 0 otherwise.
        depth: Distance along the primary ray. Only valid if hit == 1.
        index: Index of the hit object in the scene. -1 on a miss.
    """

    hit: ti.i32
    depth: ti.f32
    index: ti.i32


# =============================================================================
# Scene Compilation
# =============================================================================


def load_scene_objects(scene: Scene) -> None:
    """Load the scene's object programs and colours into Taichi fields.

    Object ``i`` of the scene becomes field index ``i``.

    Raises:
        RuntimeError: If the scene exceeds the program capacities.
        ValueError: If an object's geometry cannot be compiled.
    """
    global object_colours

    load_programs([compile_geometry(obj) for obj in scene.objects])

    if object_colours is None:
        object_colours = ti.Vector.field(3, dtype=ti.f32, shape=MAX_FIELDS)
    colours = np.zeros((MAX_FIELDS, 3), dtype=np.float32)
    for i, obj in enumerate(scene.objects):
        colours[i] = obj.material.colour
    object_colours.from_numpy(colours)


def compile_scene(scene: Scene, width: int, height: int, config: RenderConfig) -> Any:
    """Compile a scene into the per-pixel Taichi function.

    Replaces the loaded programs, so only the most recently compiled scene
    can be rendered.

    Args:
        scene: The scene to render.
        width: Image width in pixels.
        height: Image height in pixels.
        config: Render settings.

    Returns:
        A Taichi function ``trace_pixel(x: i32, y: i32) -> vec3`` giving the
        linear colour of a pixel.
    """
    basis = compute_camera_basis(scene.camera, config.world_up)
    get_ray = make_ray_generator(basis, width, height)
    load_scene_objects(scene)

    colours = object_colours
    object_count = len(scene.objects)
    br, bg, bb = scene.environment.background_colour

    march = make_ray_marcher(field_distance, config.march)
    estimate_normal = make_normal_estimator(field_distance, config.normal_epsilon)
    shade = make_shader(
        field_distance,
        scene.light,
        scene.environment,
        config.march,
        config.shadow_factor,
    )

    @ti.func
    def nearest_hit(ray: Ray) -> SurfaceHit:
        best = SurfaceHit(hit=0, depth=0.0, index=-1)
        for index in range(object_count):
            result = march(ray, index)
            if result.hit == 1 and (best.hit == 0 or result.depth < best.depth):
                best = SurfaceHit(hit=1, depth=result.depth, index=index)
        return best

    @ti.func
    def trace_pixel(x: ti.i32, y: ti.i32) -> vec3:
        ray = get_ray(x, y)
        nearest = nearest_hit(ray)
        colour = vec3(br, bg, bb)
        if nearest.hit == 1:
            p = ray_at(ray, nearest.depth)
            normal = estimate_normal(nearest.index, p)
            colour = shade(p, normal, colours[nearest.index])
        return colour

    return trace_pixel


# =============================================================================
# Public Rendering API
# =============================================================================


def _check_dimensions(width: int, height: int) -> None:
    for name, value in (("width", width), ("height", height)):
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
            raise ValueError(f"{name} must be an integer, got {value!r}")
        if value <= 0:
            raise ValueError(f"{name} must be positive, got {value}")


def quantize_colours(colours: npt.NDArray[np.floating[Any]]) -> npt.NDArray[np.uint8]:
    """Convert linear colours to 8-bit channels.

    Each channel becomes round(clamp(c, 0, 1) * 255), rounding halves away
    from zero. NaN channels become 0.

    Args:
        colours: Array of colours with channels in the last axis.

    Returns:
        Array of the same shape with dtype uint8.
    """
    clamped = np.clip(np.nan_to_num(colours, nan=0.0), 0.0, 1.0)
    return np.floor(clamped * 255.0 + 0.5).astype(np.uint8)


def render_colours(
    scene: Scene,
    width: int,
    height: int,
    config: RenderConfig | None = None,
) -> npt.NDArray[np.float32]:
    """Render a scene to linear float colours.

    Args:
        scene: The scene to render.
        width: Image width in pixels.
        height: Image height in pixels.
        config: Render settings. Defaults to RenderConfig().

    Returns:
        Array of shape (height, width, 3) with dtype float32, row 0 at the
        top of the image.
    """
    _check_dimensions(width, height)
    config = config or RenderConfig()
    trace_pixel = compile_scene(scene, width, height, config)
    colours = np.zeros((height, width, CHANNELS), dtype=np.float32)

    @ti.kernel
    def _render_kernel(out: ti.types.ndarray(dtype=vec3, ndim=2)):
        for y, x in ti.ndrange(height, width):
            out[y, x] = trace_pixel(x, y)

    _render_kernel(colours)
    return colours


def render_image(
    scene: Scene,
    width: int,
    height: int,
    config: RenderConfig | None = None,
) -> npt.NDArray[np.uint8]:
    """Render a scene to an 8-bit RGB image.

    Returns:
        Array of shape (height, width, 3) with dtype uint8.
    """
    return quantize_colours(render_colours(scene, width, height, config))


def render(
    scene: Scene,
    width: int,
    height: int,
    buffer: Any,
    config: RenderConfig | None = None,
) -> None:
    """Render a scene into a caller-provided byte buffer.

    The first width * height * 3 bytes of the buffer receive the image,
    row-major with interleaved R, G, B channels. Bytes past that are left
    untouched.

    Args:
        scene: The scene to render.
        width: Image width in pixels.
        height: Image height in pixels.
        buffer: Writable object supporting the buffer protocol (bytearray,
            uint8 NumPy array, memoryview).
        config: Render settings. Defaults to RenderConfig().

    Raises:
        BufferTooSmallError: If the buffer holds fewer than width * height * 3
            bytes. Nothing is written in that case.
        TypeError: If the buffer is read-only.
        ValueError: If width or height is not a positive integer.
    """
    _check_dimensions(width, height)
    view = memoryview(buffer).cast("B")
    required = width * height * CHANNELS
    if view.nbytes < required:
        raise BufferTooSmallError(required, view.nbytes)
    if view.readonly:
        raise TypeError("Output buffer is read-only")

    pixels = render_image(scene, width, height, config)
    view[:required] = pixels.tobytes()
