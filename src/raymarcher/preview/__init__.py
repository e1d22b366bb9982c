"""Preview module for output of rendered images.

Components:
    export: Buffer-to-array conversion and PNG export via Pillow
"""

from .export import buffer_to_array, save_png_from_array, save_png_from_buffer

__all__ = [
    "buffer_to_array",
    "save_png_from_array",
    "save_png_from_buffer",
]
