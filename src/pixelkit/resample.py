"""
Grid resampling: bilinear downscale onto the working grid and nearest-neighbor
upscale back to the requested output size.
"""

from typing import Tuple

import numpy as np

from .color_math import round_half_up, to_uint8


def fit_within(src_w: int, src_h: int, max_side: int) -> Tuple[int, int]:
    """
    Size of the working grid for a source image.

    The image is shrunk (never enlarged) so both sides fit inside
    ``max_side``; each side is at least one pixel.
    """
    src_w = max(1, int(src_w))
    src_h = max(1, int(src_h))
    max_side = max(1, int(max_side))

    scale = min(max_side / src_w, max_side / src_h, 1.0)
    w = max(1, int(round_half_up(src_w * scale)))
    h = max(1, int(round_half_up(src_h * scale)))
    return w, h


def _bilinear_taps(src_size: int, dst_size: int):
    ratio = src_size / dst_size
    pos = (np.arange(dst_size, dtype=np.float64) + 0.5) * ratio - 0.5
    i0 = np.maximum(0, np.floor(pos)).astype(np.intp)
    i1 = np.minimum(src_size - 1, i0 + 1)
    t = pos - i0
    return i0, i1, t


def downscale_bilinear(src: np.ndarray, dst_w: int, dst_h: int) -> np.ndarray:
    """
    Resize an RGBA raster with half-pixel aligned bilinear sampling.

    Sampling coordinates are clamped to the source edges and all four
    channels, alpha included, are interpolated independently.

    Args:
        src: RGBA raster (H, W, 4) uint8
        dst_w: Destination width
        dst_h: Destination height

    Returns:
        RGBA raster (dst_h, dst_w, 4) uint8
    """
    src_h, src_w = src.shape[:2]
    if (src_w, src_h) == (dst_w, dst_h):
        return src.copy()

    y0, y1, ty = _bilinear_taps(src_h, dst_h)
    x0, x1, tx = _bilinear_taps(src_w, dst_w)

    pixels = src.astype(np.float64)
    v00 = pixels[y0[:, None], x0[None, :]]
    v10 = pixels[y0[:, None], x1[None, :]]
    v01 = pixels[y1[:, None], x0[None, :]]
    v11 = pixels[y1[:, None], x1[None, :]]

    tx = tx[None, :, None]
    ty = ty[:, None, None]
    top = v00 + (v10 - v00) * tx
    bottom = v01 + (v11 - v01) * tx
    return to_uint8(top + (bottom - top) * ty)


def upscale_nearest(src: np.ndarray, out_w: int, out_h: int) -> np.ndarray:
    """Blow the working grid up to the output size keeping hard block edges."""
    src_h, src_w = src.shape[:2]
    sy = np.minimum(src_h - 1, (np.arange(out_h) * src_h) // out_h)
    sx = np.minimum(src_w - 1, (np.arange(out_w) * src_w) // out_w)
    return src[sy[:, None], sx[None, :]].copy()
