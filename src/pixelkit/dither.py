"""
Ordered (Bayer 4x4) dithering applied to colors before palette lookup.
"""

import numpy as np

from .color_math import clamp255

PORTRAIT_DITHER_FACTOR = 0.7


class DitherEngine:
    """Adds a tiled, zero-centred Bayer offset to every color channel."""

    # Bayer 4x4 threshold matrix, values 0..15
    BAYER_MATRIX_4x4 = np.array([
        [0, 8, 2, 10],
        [12, 4, 14, 6],
        [3, 11, 1, 9],
        [15, 7, 13, 5],
    ], dtype=np.float64)

    def __init__(self, strength: float, polished_portrait: bool = False):
        """
        Args:
            strength: Configured dither strength (0 disables dithering)
            polished_portrait: Portrait mode dithers at 70% strength
        """
        self.strength = effective_strength(strength, polished_portrait)

    @property
    def enabled(self) -> bool:
        return self.strength > 0

    def nudge(self, x: int, y: int) -> float:
        """Offset in 8-bit units for one grid position."""
        if not self.enabled:
            return 0.0
        v = self.BAYER_MATRIX_4x4[y & 3, x & 3] / 15
        return float((v - 0.5) * self.strength * 255)

    def nudge_map(self, width: int, height: int) -> np.ndarray:
        """Offsets for a whole grid, shape (height, width)."""
        if not self.enabled:
            return np.zeros((height, width), dtype=np.float64)
        ys = np.arange(height) & 3
        xs = np.arange(width) & 3
        v = self.BAYER_MATRIX_4x4[ys[:, None], xs[None, :]] / 15
        return (v - 0.5) * self.strength * 255

    def apply(self, rgb: np.ndarray) -> np.ndarray:
        """Dither an (H, W, 3) color grid; output is clamped but not rounded."""
        h, w = rgb.shape[:2]
        offsets = self.nudge_map(w, h)
        return clamp255(rgb.astype(np.float64) + offsets[:, :, None])


def effective_strength(strength: float, polished_portrait: bool = False) -> float:
    strength = float(strength)
    return strength * PORTRAIT_DITHER_FACTOR if polished_portrait else strength


def dither_nudge(x: int, y: int, strength: float) -> float:
    """Bayer offset at (x, y) for the given strength; 0 when strength is 0."""
    return DitherEngine(strength).nudge(x, y)
