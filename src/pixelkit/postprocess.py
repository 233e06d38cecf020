"""
Cleanup passes over the palette index grid.

Every pass reads its input grid, writes a fresh copy and leaves border cells
untouched; neighbourhoods are taken as shifted views over the grid interior.
"""

import numpy as np

from .palette import PaletteLab

EIGHT_NEIGHBORS = (
    (-1, -1), (-1, 0), (-1, 1),
    (0, -1), (0, 1),
    (1, -1), (1, 0), (1, 1),
)
# N, S, E, W
FOUR_NEIGHBORS = ((-1, 0), (1, 0), (0, 1), (0, -1))

SMOOTH_MIN_PRESERVE_CONTRAST = 0.12
SMOOTH_PRESERVE_FACTOR = 0.75
SPECKLE_MIN_COUNT = 6
SPECKLE_MAX_DE = 12.0
RAMP_SHIFT_MAX_DE = 8.0

ISLAND_MIN_COUNT = 3
ISLAND_MAX_DE = 16.0

SELECTIVE_MIN_DIFFERING = 2
SELECTIVE_MIN_THRESHOLD = 0.3
SELECTIVE_THRESHOLD_BOOST = 0.08


def _has_interior(grid: np.ndarray) -> bool:
    h, w = grid.shape
    return h >= 3 and w >= 3


def _neighbor_stack(grid: np.ndarray, offsets) -> np.ndarray:
    """(len(offsets), h-2, w-2) array of neighbour indices for each interior cell."""
    h, w = grid.shape
    return np.stack([grid[1 + dy:h - 1 + dy, 1 + dx:w - 1 + dx] for dy, dx in offsets])


def _plurality(neighbors: np.ndarray, palette_size: int):
    """Most frequent neighbour index and how often it occurs."""
    counts = np.stack([(neighbors == p).sum(axis=0) for p in range(palette_size)])
    return counts.argmax(axis=0), counts.max(axis=0)


def _max_contrast(center: np.ndarray, neighbors: np.ndarray, lum: np.ndarray) -> np.ndarray:
    return np.abs(lum[center][np.newaxis] - lum[neighbors]).max(axis=0)


def conservative_smooth_indices(grid: np.ndarray, palette_lab: PaletteLab,
                                edge_threshold: float) -> np.ndarray:
    """
    Remove isolated speckles and one-step ramp noise without touching edges.

    Cells whose 8-neighbourhood contains a luminance jump of at least
    max(0.12, 0.75 * edge_threshold) are left alone. Elsewhere a cell
    surrounded by at least six copies of one close color (CIEDE2000 <= 12)
    takes that color; failing that, a cell more than one luminance rank away
    from its neighbourhood average moves one rank toward it when the step
    costs at most 8 CIEDE2000.
    """
    out = grid.copy()
    k = len(palette_lab)
    if not _has_interior(grid) or k < 2:
        return out

    lum = palette_lab.luminance
    delta_e = palette_lab.delta_e
    rank_to_index, index_to_rank = palette_lab.luminance_ranks()
    preserve_contrast = max(SMOOTH_MIN_PRESERVE_CONTRAST, edge_threshold * SMOOTH_PRESERVE_FACTOR)

    center = grid[1:-1, 1:-1]
    neighbors = _neighbor_stack(grid, EIGHT_NEIGHBORS)
    flat = _max_contrast(center, neighbors, lum) < preserve_contrast

    mode, mode_count = _plurality(neighbors, k)
    speckle = (
        flat
        & (mode != center)
        & (mode_count >= SPECKLE_MIN_COUNT)
        & (delta_e[center, mode] <= SPECKLE_MAX_DE)
    )

    rank_sum = index_to_rank[neighbors].sum(axis=0)
    avg_rank = np.floor(rank_sum / 8 + 0.5).astype(np.int64)
    center_rank = index_to_rank[center]
    step = np.where(avg_rank > center_rank, 1, -1)
    target = rank_to_index[np.clip(center_rank + step, 0, k - 1)]
    ramp = (
        flat
        & ~speckle
        & (np.abs(avg_rank - center_rank) > 1)
        & (delta_e[center, target] <= RAMP_SHIFT_MAX_DE)
    )
    if k < 3:
        ramp[:] = False

    inner = out[1:-1, 1:-1]
    inner[speckle] = mode[speckle]
    inner[ramp] = target[ramp]
    return out


def cleanup_tiny_islands(grid: np.ndarray, palette_lab: PaletteLab) -> np.ndarray:
    """Absorb single cells whose N/S/E/W neighbours mostly agree on a close color."""
    out = grid.copy()
    if not _has_interior(grid):
        return out

    center = grid[1:-1, 1:-1]
    neighbors = _neighbor_stack(grid, FOUR_NEIGHBORS)
    mode, mode_count = _plurality(neighbors, len(palette_lab))
    island = (
        (mode != center)
        & (mode_count >= ISLAND_MIN_COUNT)
        & (palette_lab.delta_e[center, mode] <= ISLAND_MAX_DE)
    )

    inner = out[1:-1, 1:-1]
    inner[island] = mode[island]
    return out


def apply_outlines(grid: np.ndarray, palette_lab: PaletteLab, threshold: float) -> np.ndarray:
    """
    Paint boundary cells with the darkest palette color.

    A cell is a boundary when any 4-neighbour holds a different index and the
    largest luminance difference to its 4-neighbours reaches ``threshold``.
    """
    out = grid.copy()
    if not _has_interior(grid):
        return out

    center = grid[1:-1, 1:-1]
    neighbors = _neighbor_stack(grid, FOUR_NEIGHBORS)
    differs = (neighbors != center[np.newaxis]).any(axis=0)
    contrast = _max_contrast(center, neighbors, palette_lab.luminance)

    inner = out[1:-1, 1:-1]
    inner[differs & (contrast >= threshold)] = palette_lab.darkest_index
    return out


def apply_selective_outlines(grid: np.ndarray, palette_lab: PaletteLab,
                             threshold: float) -> np.ndarray:
    """Stricter outlines for portraits: two differing neighbours and a higher contrast bar."""
    out = grid.copy()
    if not _has_interior(grid):
        return out

    stricter = max(SELECTIVE_MIN_THRESHOLD, threshold + SELECTIVE_THRESHOLD_BOOST)
    center = grid[1:-1, 1:-1]
    neighbors = _neighbor_stack(grid, FOUR_NEIGHBORS)
    differing = (neighbors != center[np.newaxis]).sum(axis=0)
    contrast = _max_contrast(center, neighbors, palette_lab.luminance)

    inner = out[1:-1, 1:-1]
    inner[(differing >= SELECTIVE_MIN_DIFFERING) & (contrast >= stricter)] = palette_lab.darkest_index
    return out
