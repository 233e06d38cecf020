"""
Image loading and saving for the pixel-art converter.
"""

import os
from typing import Tuple

import numpy as np
from PIL import Image, ImageOps


def load_rgba(image_path: str) -> np.ndarray:
    """
    Load an image as an (H, W, 4) uint8 RGBA array.

    Args:
        image_path: Path to input image

    Returns:
        RGBA array, auto-oriented from EXIF
    """
    if not os.path.exists(image_path):
        raise FileNotFoundError(f"Image not found: {image_path}")

    with Image.open(image_path) as pil_image:
        pil_image = ImageOps.exif_transpose(pil_image)
        if pil_image.mode != 'RGBA':
            pil_image = pil_image.convert('RGBA')
        return np.array(pil_image, dtype=np.uint8)


def save_rgba(rgba: np.ndarray, output_path: str) -> Tuple[int, int]:
    """Save an RGBA array; returns the saved (width, height)."""
    rgba = np.asarray(rgba, dtype=np.uint8)
    if rgba.ndim != 3 or rgba.shape[2] != 4:
        raise ValueError(f"Expected an (H, W, 4) RGBA array, got shape {rgba.shape}")

    dir_path = os.path.dirname(output_path)
    if dir_path:
        os.makedirs(dir_path, exist_ok=True)

    image = Image.fromarray(rgba)
    if os.path.splitext(output_path)[1].lower() in ('.jpg', '.jpeg'):
        image = image.convert('RGB')
    image.save(output_path)
    return image.size
