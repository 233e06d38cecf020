"""
Nearest-palette quantization by CIEDE2000 with optional ordered dithering.
"""

from typing import Tuple

import numpy as np

from .color_math import delta_e2000, rgb_to_lab, to_uint8
from .dither import DitherEngine
from .palette import ALPHA_CUTOFF, PaletteLab


class ColorQuantizer:
    """Maps working-grid pixels onto palette indices."""

    batch_size = 20000

    def __init__(self, palette_lab: PaletteLab, dither: DitherEngine = None):
        self.palette_lab = palette_lab
        self.dither = dither or DitherEngine(0.0)

    def nearest_indices(self, colors: np.ndarray) -> np.ndarray:
        """Nearest palette index for each row of an (N, 3) color array."""
        colors = np.asarray(colors, dtype=np.float64).reshape(-1, 3)
        indices = np.zeros(len(colors), dtype=np.uint8)
        palette = self.palette_lab.lab[np.newaxis, :, :]

        for start in range(0, len(colors), self.batch_size):
            batch = rgb_to_lab(colors[start:start + self.batch_size])
            distances = delta_e2000(batch[:, np.newaxis, :], palette)
            indices[start:start + self.batch_size] = np.argmin(distances, axis=1)
        return indices

    def quantize(self, rgba: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Quantize a working-grid raster.

        Args:
            rgba: (h, w, 4) uint8 raster

        Returns:
            Tuple of (index_grid (h, w) uint8, rendered_rgba (h, w, 4) uint8).
            Transparent pixels get index 0, RGB 0 and keep their alpha.
        """
        h, w = rgba.shape[:2]
        alpha = rgba[:, :, 3]
        opaque = alpha >= ALPHA_CUTOFF

        dithered = self.dither.apply(rgba[:, :, :3])
        grid = np.zeros((h, w), dtype=np.uint8)
        grid[opaque] = self.nearest_indices(dithered[opaque])

        rendered = np.zeros((h, w, 4), dtype=np.uint8)
        rendered[:, :, 3] = alpha
        rendered[opaque, :3] = to_uint8(self.palette_lab.colors)[grid[opaque]]
        return grid, rendered
