"""Tests for the renderer.

Tests cover:
- Output buffer contract (size check before writing, tail untouched)
- Dimension validation
- Colour quantisation
- Background on misses and empty scenes
- Nearest-object selection
- End-to-end silhouette of a lit sphere
- Scenes with many objects and deep geometry trees
"""

import numpy as np
import pytest


def _scene(objects=(), background=(0.0, 0.0, 0.0), ambient=0.1, camera_z=5.0):
    from raymarcher.scene.model import Camera, Environment, Light, Scene

    return Scene(
        camera=Camera(position=(0.0, 0.0, camera_z), target=(0.0, 0.0, 0.0), fov=45.0),
        light=Light(position=(0.0, 4.0, 3.0), strength=10.0),
        objects=objects,
        environment=Environment(ambient_light=ambient, background_colour=background),
    )


def _ball(radius, colour, position=(0.0, 0.0, 0.0)):
    from raymarcher.geometry import Sphere
    from raymarcher.scene.model import Material, Object

    return Object(geometry=Sphere(radius=radius), position=position, material=Material(colour))


class TestBufferContract:
    """Tests for writing into caller-provided buffers."""

    def test_short_buffer_raises_before_writing(self, sphere_scene):
        """Test a buffer one byte short raises and is left untouched."""
        from raymarcher.core.renderer import BufferTooSmallError, render

        buffer = bytearray(b"\x07" * (8 * 6 * 3 - 1))
        with pytest.raises(BufferTooSmallError) as excinfo:
            render(sphere_scene, 8, 6, buffer)

        assert excinfo.value.required == 144
        assert excinfo.value.actual == 143
        assert "too small" in str(excinfo.value)
        assert buffer == bytearray(b"\x07" * 143)

    def test_buffer_error_is_value_error(self):
        """Test BufferTooSmallError can be caught as ValueError."""
        from raymarcher.core.renderer import BufferTooSmallError

        assert issubclass(BufferTooSmallError, ValueError)

    def test_larger_buffer_keeps_tail(self, sphere_scene):
        """Test bytes past width * height * 3 are not modified."""
        from raymarcher.core.renderer import render

        buffer = bytearray(b"\xab" * (8 * 6 * 3 + 10))
        render(sphere_scene, 8, 6, buffer)
        assert buffer[-10:] == bytearray(b"\xab" * 10)

    def test_numpy_buffer(self, sphere_scene):
        """Test a uint8 NumPy array is accepted as the buffer."""
        from raymarcher.core.renderer import render, render_image

        buffer = np.zeros(16 * 16 * 3, dtype=np.uint8)
        render(sphere_scene, 16, 16, buffer)
        np.testing.assert_array_equal(
            buffer.reshape(16, 16, 3), render_image(sphere_scene, 16, 16)
        )

    def test_read_only_buffer_is_rejected(self, sphere_scene):
        """Test an immutable buffer is rejected."""
        from raymarcher.core.renderer import render

        with pytest.raises(TypeError, match="read-only"):
            render(sphere_scene, 4, 4, bytes(4 * 4 * 3))

    @pytest.mark.parametrize("width,height", [(0, 4), (4, 0), (-1, 4), (2.5, 4), (True, 4)])
    def test_invalid_dimensions(self, sphere_scene, width, height):
        """Test width and height must be positive integers."""
        from raymarcher.core.renderer import render

        with pytest.raises(ValueError):
            render(sphere_scene, width, height, bytearray(1024))


class TestQuantize:
    """Tests for 8-bit colour conversion."""

    def test_round_and_clamp(self):
        """Test channels become round(clamp(c, 0, 1) * 255)."""
        from raymarcher.core.renderer import quantize_colours

        colours = np.array([0.0, 0.5, 1.0, -1.0, 2.0, np.nan, 0.1, 0.999])
        expected = [0, 128, 255, 0, 255, 0, 26, 255]
        np.testing.assert_array_equal(quantize_colours(colours), expected)

    def test_preserves_shape(self):
        """Test the output keeps the input shape."""
        from raymarcher.core.renderer import quantize_colours

        result = quantize_colours(np.zeros((3, 4, 3), dtype=np.float32))
        assert result.shape == (3, 4, 3)
        assert result.dtype == np.uint8


class TestRenderConfig:
    """Tests for renderer settings."""

    def test_defaults(self):
        """Test the default settings."""
        from raymarcher.camera.pinhole import WORLD_UP
        from raymarcher.core.renderer import RenderConfig
        from raymarcher.core.shading import SHADOW_FACTOR

        config = RenderConfig()
        assert config.shadow_factor == SHADOW_FACTOR
        assert config.world_up == WORLD_UP

    @pytest.mark.parametrize(
        "kwargs",
        [{"normal_epsilon": 0.0}, {"shadow_factor": 1.5}, {"world_up": (0.0, 1.0)}],
    )
    def test_rejects_invalid_settings(self, kwargs):
        """Test invalid settings raise ValueError."""
        from raymarcher.core.renderer import RenderConfig

        with pytest.raises(ValueError):
            RenderConfig(**kwargs)


class TestBackground:
    """Tests for pixels whose rays hit nothing."""

    def test_empty_scene_is_background(self):
        """Test a scene without objects renders the background everywhere."""
        from raymarcher.core.renderer import render

        width, height = 12, 7
        buffer = bytearray(width * height * 3)
        render(_scene(background=(0.2, 0.4, 0.6)), width, height, buffer)

        pixels = np.frombuffer(buffer, dtype=np.uint8).reshape(height, width, 3)
        assert (pixels == [51, 102, 153]).all()

    def test_object_behind_camera_is_not_seen(self):
        """Test an object behind the camera leaves every pixel as background."""
        from raymarcher.core.renderer import render_image

        scene = _scene(
            objects=(_ball(1.0, (1.0, 1.0, 1.0), position=(0.0, 0.0, 10.0)),),
            background=(0.0, 0.0, 1.0),
        )
        image = render_image(scene, 16, 16)
        assert (image == [0, 0, 255]).all()

    def test_render_colours_shape(self, sphere_scene):
        """Test the float render has shape (height, width, 3)."""
        from raymarcher.core.renderer import render_colours

        colours = render_colours(sphere_scene, 10, 6)
        assert colours.shape == (6, 10, 3)
        assert colours.dtype == np.float32


class TestVisibility:
    """Tests for picking the nearest object."""

    @pytest.mark.parametrize("near_first", [True, False])
    def test_nearest_object_wins(self, near_first):
        """Test the object closest to the camera colours the centre pixel."""
        from raymarcher.core.renderer import render_image

        far = _ball(1.0, (1.0, 0.0, 0.0))
        near = _ball(0.5, (0.0, 1.0, 0.0), position=(0.0, 0.0, 2.0))
        objects = (near, far) if near_first else (far, near)

        image = render_image(_scene(objects=objects), 32, 32)
        centre = image[16, 16]
        assert centre[0] == 0
        assert centre[1] > 0

        # Outside the near ball but inside the far one
        ring = image[16, 16 + 7]
        assert ring[0] > 0
        assert ring[1] == 0


class TestEndToEnd:
    """End-to-end render of a lit sphere."""

    def test_sphere_silhouette(self, sphere_scene):
        """Test a unit sphere renders as a centred disc, brighter on top."""
        from raymarcher.core.renderer import render

        size = 64
        buffer = bytearray(size * size * 3)
        render(sphere_scene, size, size, buffer)
        pixels = np.frombuffer(buffer, dtype=np.uint8).reshape(size, size, 3)

        # Red material on black: hit pixels have red only
        mask = pixels[:, :, 0] > 0
        assert (pixels[:, :, 1] == 0).all()
        assert (pixels[:, :, 2] == 0).all()

        # Projected radius ~ 15.8 px, area ~ 780 px
        count = int(mask.sum())
        assert 600 <= count <= 1000

        rows, cols = np.nonzero(mask)
        assert abs(rows.mean() - size / 2) < 1.0
        assert abs(cols.mean() - size / 2) < 1.0

        # Roughly circular: width and height of the disc agree
        row_extent = rows.max() - rows.min()
        col_extent = cols.max() - cols.min()
        assert abs(row_extent - col_extent) <= 2

        # The light is above the sphere (+y), which is the top of the image
        red = pixels[:, :, 0].astype(np.int64)
        assert red[: size // 2].sum() > red[size // 2 :].sum()

    def test_render_is_deterministic(self, sphere_scene):
        """Test two renders of the same scene are identical."""
        from raymarcher.core.renderer import render_image

        first = render_image(sphere_scene, 24, 16)
        second = render_image(sphere_scene, 24, 16)
        np.testing.assert_array_equal(first, second)


class TestLargeScenes:
    """Tests for scenes with many objects or deep geometry."""

    @pytest.mark.parametrize("count", [64, 80])
    def test_many_objects(self, count):
        """Test a row of many small spheres renders, the centre one included."""
        from raymarcher.core.renderer import render_image

        objects = tuple(
            _ball(0.1, (1.0, 1.0, 1.0), position=(i * 0.3 - 3.0, 0.0, 0.0))
            for i in range(count)
        )
        image = render_image(_scene(objects=objects, background=(0.0, 0.0, 1.0)), 8, 8)

        # Sphere 10 sits at the origin, straight ahead of the centre pixel
        centre = image[4, 4]
        assert centre[0] > 0
        assert centre[0] == centre[1] == centre[2]
        # Rows far above and below the row of spheres see only background
        assert (image[0] == [0, 0, 255]).all()

    def test_last_object_is_visible(self):
        """Test the last of many objects is marched like the first."""
        from raymarcher.core.renderer import render_image

        hidden = tuple(
            _ball(0.1, (0.0, 1.0, 0.0), position=(20.0 + i, 0.0, 0.0)) for i in range(100)
        )
        scene = _scene(objects=hidden + (_ball(1.0, (1.0, 0.0, 0.0)),))
        centre = render_image(scene, 16, 16)[8, 8]
        assert centre[0] > 0
        assert centre[1] == 0

    def test_deep_union_chain(self):
        """Test a 30-level left-deep union renders its spheres."""
        from raymarcher.core.renderer import render_image
        from raymarcher.geometry import Sphere, Union
        from raymarcher.scene.model import Material, Object

        node = Object(geometry=Sphere(radius=0.1), position=(-3.0, 0.0, 0.0))
        for i in range(1, 31):
            leaf = Object(geometry=Sphere(radius=0.1), position=(i * 0.3 - 3.0, 0.0, 0.0))
            node = Object(geometry=Union(a=node, b=leaf))
        chain = Object(geometry=node.geometry, material=Material((1.0, 1.0, 1.0)))

        image = render_image(_scene(objects=(chain,), background=(0.0, 0.0, 1.0)), 8, 8)
        centre = image[4, 4]
        assert centre[0] > 0
        assert centre[0] == centre[1] == centre[2]
