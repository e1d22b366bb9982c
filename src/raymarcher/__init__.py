"""Sphere-tracing renderer for signed distance field scenes, built on Taichi.

This package renders scenes described as trees of distance-field geometry:
- Sphere and box primitives
- Infinite domain repetition and CSG union/subtraction/intersection
- A look-at pinhole camera and a single point light with shadow dimming
- Parallel per-pixel rendering into a caller-provided RGB byte buffer

Subpackages:
    core: Rays, sphere tracing, normals, shading and the render kernel
    geometry: Distance-field primitives and operators
    scene: Scene data model and JSON scene documents
    camera: Pinhole camera basis and primary ray generation
    preview: PNG export of rendered buffers

Taichi must be initialised (ti.init) before anything is rendered.
"""

__version__ = "0.1.0"
