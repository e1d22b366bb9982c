"""Unit tests for point-light shading.

Tests cover:
- Diffuse term with inverse-square-style attenuation
- Ambient term
- Shadow dimming, bounded by the distance to the light
- Clamping of the diffuse term
"""

import pytest
import taichi as ti


def _shade(objects, light, environment, p, normal, colour=(1.0, 1.0, 1.0)):
    """Load the objects, run the shader for one point and return its colour."""
    from raymarcher.core.ray import vec3
    from raymarcher.core.shading import make_shader
    from raymarcher.geometry import compile_geometry, field_distance, load_programs

    load_programs([compile_geometry(obj) for obj in objects])
    shade = make_shader(field_distance, light, environment)
    result = ti.field(dtype=ti.math.vec3, shape=())
    px, py, pz = p
    nx, ny, nz = normal
    cr, cg, cb = colour

    @ti.kernel
    def test_kernel():
        result[None] = shade(vec3(px, py, pz), vec3(nx, ny, nz), vec3(cr, cg, cb))

    test_kernel()
    return result.to_numpy().tolist()


def _sphere(radius, position=(0.0, 0.0, 0.0)):
    from raymarcher.geometry import Sphere
    from raymarcher.scene.model import Object

    return Object(geometry=Sphere(radius=radius), position=position)


class TestDiffuse:
    """Tests for the unshadowed diffuse and ambient terms."""

    def test_lit_point(self):
        """Test colour = material * (ambient + n.l / (1 + d^2) * strength)."""
        from raymarcher.scene.model import Environment, Light

        colour = _shade(
            [_sphere(1.0)],
            Light(position=(0.0, 3.0, 0.0), strength=1.0),
            Environment(ambient_light=0.1),
            p=(0.0, 1.0, 0.0),
            normal=(0.0, 1.0, 0.0),
        )
        # d = 2, attenuation = 1/5
        assert colour == pytest.approx([0.3, 0.3, 0.3], abs=1e-4)

    def test_material_colour_scales_result(self):
        """Test the material colour multiplies every channel."""
        from raymarcher.scene.model import Environment, Light

        colour = _shade(
            [_sphere(1.0)],
            Light(position=(0.0, 3.0, 0.0), strength=1.0),
            Environment(ambient_light=0.1),
            p=(0.0, 1.0, 0.0),
            normal=(0.0, 1.0, 0.0),
            colour=(1.0, 0.5, 0.0),
        )
        assert colour == pytest.approx([0.3, 0.15, 0.0], abs=1e-4)

    def test_oblique_light(self):
        """Test the diffuse term follows the cosine of the light angle."""
        from raymarcher.scene.model import Environment, Light

        # Light 45 degrees off the normal at distance sqrt(2)
        colour = _shade(
            [_sphere(1.0)],
            Light(position=(1.0, 2.0, 0.0), strength=1.0),
            Environment(ambient_light=0.0),
            p=(0.0, 1.0, 0.0),
            normal=(0.0, 1.0, 0.0),
        )
        expected = (2.0**-0.5) / 3.0
        assert colour == pytest.approx([expected] * 3, abs=1e-4)

    def test_diffuse_is_clamped(self):
        """Test a strong light saturates the diffuse term at 1."""
        from raymarcher.scene.model import Environment, Light

        colour = _shade(
            [_sphere(1.0)],
            Light(position=(0.0, 3.0, 0.0), strength=100.0),
            Environment(ambient_light=0.25),
            p=(0.0, 1.0, 0.0),
            normal=(0.0, 1.0, 0.0),
        )
        assert colour == pytest.approx([1.25, 1.25, 1.25], abs=1e-4)


class TestShadows:
    """Tests for shadow dimming."""

    def test_blocked_light_dims_by_shadow_factor(self):
        """Test an occluder between the point and the light dims the colour."""
        from raymarcher.core.shading import SHADOW_FACTOR
        from raymarcher.scene.model import Environment, Light

        colour = _shade(
            [_sphere(1.0), _sphere(0.2, position=(0.0, 2.0, 0.0))],
            Light(position=(0.0, 3.0, 0.0), strength=1.0),
            Environment(ambient_light=0.1),
            p=(0.0, 1.0, 0.0),
            normal=(0.0, 1.0, 0.0),
        )
        assert colour == pytest.approx([0.3 * SHADOW_FACTOR] * 3, abs=1e-4)

    def test_occluder_beyond_light_casts_no_shadow(self):
        """Test surfaces behind the light do not block it."""
        from raymarcher.scene.model import Environment, Light

        colour = _shade(
            [_sphere(1.0), _sphere(0.5, position=(0.0, 5.0, 0.0))],
            Light(position=(0.0, 3.0, 0.0), strength=1.0),
            Environment(ambient_light=0.1),
            p=(0.0, 1.0, 0.0),
            normal=(0.0, 1.0, 0.0),
        )
        assert colour == pytest.approx([0.3, 0.3, 0.3], abs=1e-4)

    def test_far_side_is_ambient_and_shadowed(self):
        """Test a point facing away gets only dimmed ambient light."""
        from raymarcher.core.shading import SHADOW_FACTOR
        from raymarcher.scene.model import Environment, Light

        colour = _shade(
            [_sphere(1.0)],
            Light(position=(0.0, 3.0, 0.0), strength=1.0),
            Environment(ambient_light=0.1),
            p=(0.0, -1.0, 0.0),
            normal=(0.0, -1.0, 0.0),
        )
        assert colour == pytest.approx([0.1 * SHADOW_FACTOR] * 3, abs=1e-4)

    def test_occluder_among_many_objects(self):
        """Test the shadow ray sees an occluder listed after many other objects."""
        from raymarcher.core.shading import SHADOW_FACTOR
        from raymarcher.scene.model import Environment, Light

        # A row of small spheres well away from the light path
        bystanders = [_sphere(0.1, position=(5.0 + 0.3 * i, 0.0, -3.0)) for i in range(60)]
        colour = _shade(
            [_sphere(1.0), *bystanders, _sphere(0.2, position=(0.0, 2.0, 0.0))],
            Light(position=(0.0, 3.0, 0.0), strength=1.0),
            Environment(ambient_light=0.1),
            p=(0.0, 1.0, 0.0),
            normal=(0.0, 1.0, 0.0),
        )
        assert colour == pytest.approx([0.3 * SHADOW_FACTOR] * 3, abs=1e-4)
