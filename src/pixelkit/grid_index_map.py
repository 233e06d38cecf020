"""
GRID_INDEX_MAP: the working grid expressed as palette indices.
Rendering back to RGBA and a digest so identical conversions can be compared.
"""

import hashlib
from dataclasses import dataclass, field
from typing import Dict

import numpy as np

from .color_math import to_uint8
from .palette import ALPHA_CUTOFF


@dataclass
class GridIndexMap:
    """Index grid plus the palette it refers to."""
    grid_data: np.ndarray  # (h, w) uint8 palette indices
    palette_colors: np.ndarray  # (k, 3) float64
    grid_hash: str = field(init=False)

    def __post_init__(self):
        """Validate indices and calculate the grid hash."""
        if self.grid_data.size and int(self.grid_data.max()) >= len(self.palette_colors):
            raise ValueError(
                f"Index {int(self.grid_data.max())} out of range for a "
                f"{len(self.palette_colors)}-color palette"
            )
        self.grid_hash = self._calculate_hash()

    def _calculate_hash(self) -> str:
        """SHA-256 over grid dimensions, rendered palette and index data."""
        h, w = self.grid_data.shape
        hasher = hashlib.sha256()
        hasher.update(f"{w}x{h}|".encode())
        hasher.update(to_uint8(self.palette_colors).tobytes())
        hasher.update(np.ascontiguousarray(self.grid_data, dtype=np.uint8).tobytes())
        return hasher.hexdigest()[:16]

    @property
    def width(self) -> int:
        return self.grid_data.shape[1]

    @property
    def height(self) -> int:
        return self.grid_data.shape[0]

    def verify_invariance(self, other_hash: str) -> bool:
        return self.grid_hash == other_hash

    def color_usage(self, alpha: np.ndarray = None) -> Dict[int, int]:
        """Pixel count per palette index, optionally over opaque cells only."""
        cells = self.grid_data if alpha is None else self.grid_data[alpha >= ALPHA_CUTOFF]
        counts = np.bincount(cells.ravel(), minlength=len(self.palette_colors))
        return {i: int(c) for i, c in enumerate(counts)}


def render_indexed(rgba: np.ndarray, grid: np.ndarray, palette: np.ndarray) -> np.ndarray:
    """
    Paint palette colors into the opaque cells of an RGBA raster.

    Transparent cells (alpha below the cutoff) keep their current RGB and alpha.
    Returns a new array; ``rgba`` is not modified.
    """
    out = rgba.copy()
    opaque = out[:, :, 3] >= ALPHA_CUTOFF
    colors = to_uint8(np.asarray(palette, dtype=np.float64))
    out[opaque, :3] = colors[grid[opaque]]
    return out
