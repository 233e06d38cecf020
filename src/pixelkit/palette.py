"""
Palette construction: adaptive median cut or a fixed preset, with optional
near-duplicate merging and light-to-dark ramp smoothing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

import numpy as np

from .color_math import (
    clamp255,
    delta_e2000,
    luminance,
    pairwise_delta_e,
    rgb_to_lab,
    round_half_up,
)
from .fixed_palettes import AUTO_PRESET, get_preset_colors

# Pixels with alpha below this are treated as transparent everywhere.
ALPHA_CUTOFF = 10

SAMPLING_PIXEL_LIMIT = 20000
MERGE_THRESHOLD_DE = 6.0
MIN_RAMP_SPAN = 0.35
RAMP_ORIGINAL_WEIGHT = 0.55

BLACK_PALETTE = np.zeros((1, 3), dtype=np.float64)


@dataclass
class ColorBox:
    """A bucket of sampled colors plus its per-channel extent."""
    colors: np.ndarray  # (n, 3) int64
    mins: np.ndarray = field(init=False)
    maxs: np.ndarray = field(init=False)

    def __post_init__(self):
        if len(self.colors):
            self.mins = self.colors.min(axis=0)
            self.maxs = self.colors.max(axis=0)
        else:
            self.mins = np.zeros(3, dtype=np.int64)
            self.maxs = np.zeros(3, dtype=np.int64)

    def __len__(self) -> int:
        return len(self.colors)

    @property
    def ranges(self) -> np.ndarray:
        return self.maxs - self.mins

    @property
    def max_range(self) -> int:
        return int(self.ranges.max())

    def split_channel(self) -> int:
        """Channel with the widest range; G wins ties with R, B wins ties with R."""
        r, g, b = (int(v) for v in self.ranges)
        if g >= r and g >= b:
            return 1
        if b >= r and b >= g:
            return 2
        return 0

    def split(self) -> "tuple[ColorBox, ColorBox]":
        """Sort along the split channel and cut at the middle index."""
        channel = self.split_channel()
        order = np.argsort(self.colors[:, channel], kind="stable")
        ordered = self.colors[order]
        mid = len(ordered) // 2
        return ColorBox(ordered[:mid]), ColorBox(ordered[mid:])

    def average(self) -> np.ndarray:
        n = max(1, len(self.colors))
        return round_half_up(self.colors.sum(axis=0) / n)


def sample_opaque_colors(rgba: np.ndarray) -> np.ndarray:
    """
    Collect opaque colors in row-major order.

    Large grids are decimated by taking every second row and column.
    """
    h, w = rgba.shape[:2]
    stride = 2 if w * h > SAMPLING_PIXEL_LIMIT else 1
    sampled = rgba[::stride, ::stride].reshape(-1, 4)
    opaque = sampled[sampled[:, 3] >= ALPHA_CUTOFF]
    return opaque[:, :3].astype(np.int64)


def median_cut_palette(rgba: np.ndarray, k: int) -> np.ndarray:
    """
    Median-cut palette of at most ``k`` colors.

    Args:
        rgba: Working-grid RGBA raster (H, W, 4)
        k: Requested number of colors

    Returns:
        Float64 (n, 3) palette with n <= k; a single black entry when the
        image has no opaque pixels.
    """
    colors = sample_opaque_colors(rgba)
    if len(colors) == 0:
        return BLACK_PALETTE.copy()

    k = max(1, int(k))
    boxes: List[ColorBox] = [ColorBox(colors)]

    while len(boxes) < k:
        boxes.sort(key=lambda box: -box.max_range)
        box = boxes.pop(0)
        if len(box) < 2:
            boxes.insert(0, box)
            break
        boxes.extend(box.split())

    palette = np.array([box.average() for box in boxes], dtype=np.float64)
    return palette[:k]


def merge_near_duplicate_colors(palette, threshold: float = MERGE_THRESHOLD_DE) -> np.ndarray:
    """
    Fold colors closer than ``threshold`` (CIEDE2000) into running-average clusters.

    Colors are visited in palette order; each joins the closest existing
    cluster within the threshold, otherwise it opens a new cluster.
    """
    palette = np.asarray(palette, dtype=np.float64).reshape(-1, 3)
    sums: List[np.ndarray] = []
    counts: List[int] = []
    labs: List[np.ndarray] = []

    for color in palette:
        lab = rgb_to_lab(color)
        if labs:
            distances = delta_e2000(lab, np.array(labs))
            best = int(np.argmin(distances))
            if distances[best] <= threshold:
                sums[best] = sums[best] + color
                counts[best] += 1
                labs[best] = rgb_to_lab(round_half_up(sums[best] / counts[best]))
                continue

        sums.append(color.copy())
        counts.append(1)
        labs.append(lab)

    if not sums:
        return np.zeros((0, 3), dtype=np.float64)
    return np.array(
        [round_half_up(total / count) for total, count in zip(sums, counts)],
        dtype=np.float64,
    )


def _blend(a: np.ndarray, b: np.ndarray, t) -> np.ndarray:
    return clamp255(a + (b - a) * t)


def with_target_luminance(color, target: float) -> np.ndarray:
    """Scale all channels so the color's luminance approaches ``target``."""
    color = np.asarray(color, dtype=np.float64)
    current = max(0.001, float(luminance(color)))
    return clamp255(color * (target / current))


def enforce_light_to_dark_ramp(palette) -> np.ndarray:
    """
    Order by luminance (darkest first) and spread the entries along an even ramp.

    Each color is pulled toward an evenly spaced target luminance over a span of
    at least ``MIN_RAMP_SPAN`` and kept 55% original.
    """
    palette = np.asarray(palette, dtype=np.float64).reshape(-1, 3)
    lum = luminance(palette)
    order = np.argsort(lum, kind="stable")
    ordered = palette[order]
    lum = lum[order]

    n = len(ordered)
    if n <= 2:
        return ordered.copy()

    low = float(lum[0])
    span = max(float(lum[-1]) - low, MIN_RAMP_SPAN)

    ramp = np.empty_like(ordered)
    for index, color in enumerate(ordered):
        target = min(1.0, low + span * (index / (n - 1)))
        adjusted = with_target_luminance(color, target)
        ramp[index] = _blend(color, adjusted, 1.0 - RAMP_ORIGINAL_WEIGHT)
    return ramp


def sample_palette_ramp(palette, target_size: int) -> np.ndarray:
    """Resample an ordered ramp to ``target_size`` entries by linear interpolation."""
    palette = np.asarray(palette, dtype=np.float64).reshape(-1, 3)
    if len(palette) == 0:
        return BLACK_PALETTE.copy()
    if target_size <= 1:
        return palette[:1].copy()
    if len(palette) == target_size:
        return palette.copy()

    max_src = len(palette) - 1
    out = np.empty((target_size, 3), dtype=np.float64)
    for i in range(target_size):
        pos = (i * max_src) / (target_size - 1)
        i0 = int(np.floor(pos))
        i1 = min(max_src, i0 + 1)
        out[i] = _blend(palette[i0], palette[i1], pos - i0)
    return out


def build_palette(rgba: np.ndarray, palette_size: int, preset: str = AUTO_PRESET,
                  smoothing: bool = False) -> np.ndarray:
    """
    Palette for one conversion.

    Args:
        rgba: Working-grid RGBA raster, already prefiltered if applicable
        palette_size: Requested size for the adaptive palette
        preset: "auto" for median cut, otherwise a fixed preset name
        smoothing: Merge near-duplicates and enforce a light-to-dark ramp

    Returns:
        Float64 (k, 3) palette
    """
    adaptive = preset == AUTO_PRESET
    base = median_cut_palette(rgba, palette_size) if adaptive else get_preset_colors(preset)
    if not smoothing:
        return base

    merged = merge_near_duplicate_colors(base, MERGE_THRESHOLD_DE)
    ramped = enforce_light_to_dark_ramp(merged)
    target_size = palette_size if adaptive else len(merged)
    return sample_palette_ramp(ramped, target_size)


@dataclass
class PaletteLab:
    """Per-conversion cache of everything distance queries need about the palette."""
    colors: np.ndarray
    lab: np.ndarray
    luminance: np.ndarray
    delta_e: np.ndarray  # (k, k) pairwise CIEDE2000

    def __len__(self) -> int:
        return len(self.colors)

    @property
    def darkest_index(self) -> int:
        """First index holding the lowest-luminance color."""
        darkest = int(np.argmin(self.luminance))
        matches = np.flatnonzero(np.all(self.colors == self.colors[darkest], axis=1))
        return int(matches[0])

    def luminance_ranks(self):
        """(rank_to_index, index_to_rank) from a stable ascending luminance sort."""
        rank_to_index = np.argsort(self.luminance, kind="stable")
        index_to_rank = np.empty_like(rank_to_index)
        index_to_rank[rank_to_index] = np.arange(len(rank_to_index))
        return rank_to_index, index_to_rank


def build_palette_lab(palette) -> PaletteLab:
    colors = np.asarray(palette, dtype=np.float64).reshape(-1, 3)
    lab = rgb_to_lab(colors)
    return PaletteLab(
        colors=colors,
        lab=lab,
        luminance=luminance(colors),
        delta_e=pairwise_delta_e(lab),
    )
