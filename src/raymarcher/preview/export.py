"""Image export utilities for rendered buffers.

The renderer writes 8-bit RGB bytes, row-major with interleaved channels.
This module views such a buffer as an image array and saves it with Pillow.

Supported formats:
    - PNG (8-bit RGB via Pillow)

Example:
    >>> from raymarcher.core.renderer import render
    >>> from raymarcher.preview.export import save_png_from_buffer
    >>>
    >>> buffer = bytearray(640 * 360 * 3)
    >>> render(scene, 640, 360, buffer)
    >>> save_png_from_buffer(buffer, 640, 360, "out.png")
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

from raymarcher.core.renderer import CHANNELS, BufferTooSmallError


def buffer_to_array(buffer: Any, width: int, height: int) -> npt.NDArray[np.uint8]:
    """View the first width * height * 3 bytes of a buffer as an image.

    Args:
        buffer: Object supporting the buffer protocol, as filled by render().
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        Array of shape (height, width, 3) with dtype uint8. The array shares
        memory with the buffer where possible.

    Raises:
        BufferTooSmallError: If the buffer holds fewer than width * height * 3
            bytes.
    """
    data = np.frombuffer(memoryview(buffer).cast("B"), dtype=np.uint8)
    required = width * height * CHANNELS
    if data.size < required:
        raise BufferTooSmallError(required, data.size)
    return data[:required].reshape(height, width, CHANNELS)


def save_png_from_array(image: npt.NDArray[np.uint8], filepath: str | Path) -> None:
    """Save an 8-bit RGB image array as a PNG file.

    Args:
        image: Array of shape (H, W, 3) with dtype uint8.
        filepath: Output file path (should end in .png).

    Raises:
        ValueError: If the array is not an (H, W, 3) uint8 image.
    """
    if image.dtype != np.uint8 or image.ndim != 3 or image.shape[2] != CHANNELS:
        raise ValueError(f"Expected a (H, W, 3) uint8 image, got {image.shape} {image.dtype}")

    pil_image = PILImage.fromarray(np.ascontiguousarray(image))
    pil_image.save(str(filepath), format="PNG")


def save_png_from_buffer(buffer: Any, width: int, height: int, filepath: str | Path) -> None:
    """Save a rendered RGB byte buffer as a PNG file.

    Args:
        buffer: Object supporting the buffer protocol, as filled by render().
        width: Image width in pixels.
        height: Image height in pixels.
        filepath: Output file path (should end in .png).
    """
    save_png_from_array(buffer_to_array(buffer, width, height), filepath)
