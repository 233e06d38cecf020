import numpy as np
import pytest
from pathlib import Path
import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from pixelkit.color_math import luminance
from pixelkit.fixed_palettes import get_preset, get_preset_colors, get_preset_info, list_presets
from pixelkit.palette import (
    build_palette,
    build_palette_lab,
    enforce_light_to_dark_ramp,
    median_cut_palette,
    merge_near_duplicate_colors,
    sample_opaque_colors,
    sample_palette_ramp,
)


def _random_rgba(width, height, seed=0, alpha=255):
    rng = np.random.default_rng(seed)
    rgba = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    rgba[:, :, 3] = alpha
    return rgba


def test_median_cut_never_exceeds_requested_size():
    rgba = _random_rgba(16, 16, seed=1)
    for k in (1, 2, 5, 16, 24):
        palette = median_cut_palette(rgba, k)
        assert len(palette) == k
        assert palette.dtype == np.float64


def test_median_cut_keeps_boxes_it_cannot_split():
    rgba = np.zeros((1, 3, 4), dtype=np.uint8)
    rgba[0, :, :3] = [[255, 0, 0], [0, 255, 0], [0, 0, 255]]
    rgba[:, :, 3] = 255

    palette = median_cut_palette(rgba, 8)
    assert len(palette) == 3
    assert sorted(map(tuple, palette.tolist())) == [(0, 0, 255), (0, 255, 0), (255, 0, 0)]


def test_median_cut_reproduces_four_distinct_colors():
    colors = [[255, 0, 0], [0, 255, 0], [0, 0, 255], [255, 255, 0]]
    rgba = np.zeros((2, 2, 4), dtype=np.uint8)
    rgba[:, :, :3] = np.array(colors).reshape(2, 2, 3)
    rgba[:, :, 3] = 255

    palette = median_cut_palette(rgba, 4)
    assert palette.tolist() == [[255, 0, 0], [0, 0, 255], [0, 255, 0], [255, 255, 0]]


def test_median_cut_of_transparent_image_is_black():
    rgba = _random_rgba(8, 8, alpha=0)
    assert median_cut_palette(rgba, 12).tolist() == [[0.0, 0.0, 0.0]]


def test_sampling_respects_alpha_cutoff_and_decimates_large_grids():
    rgba = _random_rgba(4, 1, seed=2)
    rgba[0, :, 3] = [0, 9, 10, 255]
    assert len(sample_opaque_colors(rgba)) == 2

    large = _random_rgba(200, 200, seed=3)
    assert len(sample_opaque_colors(large)) == 100 * 100
    small = _random_rgba(100, 100, seed=4)
    assert len(sample_opaque_colors(small)) == 100 * 100


def test_merge_near_duplicates_clusters_in_palette_order():
    palette = np.array([
        [200, 0, 0],
        [0, 0, 200],
        [202, 1, 0],
        [100, 100, 100],
        [1, 0, 203],
    ], dtype=np.float64)

    merged = merge_near_duplicate_colors(palette, 6.0)
    assert merged.tolist() == [[201, 1, 0], [1, 0, 202], [100, 100, 100]]


def test_merge_is_monotonic_in_threshold():
    palette = np.array([
        [200, 0, 0], [0, 0, 200], [202, 1, 0], [100, 100, 100], [1, 0, 203],
        [110, 100, 100], [250, 250, 250], [30, 30, 30],
    ], dtype=np.float64)

    sizes = [len(merge_near_duplicate_colors(palette, t)) for t in (0.0, 2.0, 6.0, 20.0, 1000.0)]
    assert sizes == sorted(sizes, reverse=True)
    assert sizes[0] == len(palette)
    assert sizes[-1] == 1


def test_merge_folds_exact_duplicates_even_at_zero_threshold():
    merged = merge_near_duplicate_colors([[10, 10, 10], [10, 10, 10], [90, 90, 90]], 0.0)
    assert merged.tolist() == [[10, 10, 10], [90, 90, 90]]


def test_ramp_orders_dark_to_light_and_pulls_toward_even_targets():
    palette = [[200, 200, 200], [10, 10, 10], [100, 100, 100]]
    ramp = enforce_light_to_dark_ramp(palette)

    np.testing.assert_allclose(ramp[0], [10, 10, 10], atol=1e-9)
    np.testing.assert_allclose(ramp[1], [102.25, 102.25, 102.25], atol=1e-9)
    np.testing.assert_allclose(ramp[2], [200, 200, 200], atol=1e-9)


def test_ramp_enforces_a_minimum_luminance_span():
    ramp = enforce_light_to_dark_ramp([[102, 102, 102], [100, 100, 100], [101, 101, 101]])
    lum = luminance(ramp)
    assert np.all(np.diff(lum) > 0)
    assert ramp[2][0] > 130


def test_ramp_leaves_two_colors_sorted_only():
    ramp = enforce_light_to_dark_ramp([[255, 255, 255], [0, 0, 0]])
    assert ramp.tolist() == [[0, 0, 0], [255, 255, 255]]


def test_sample_palette_ramp_interpolates_fractional_positions():
    ramp = np.array([[0, 0, 0], [100, 100, 100]], dtype=np.float64)
    assert sample_palette_ramp(ramp, 3).tolist() == [[0, 0, 0], [50, 50, 50], [100, 100, 100]]
    assert sample_palette_ramp(ramp, 1).tolist() == [[0, 0, 0]]
    assert sample_palette_ramp(ramp, 2).tolist() == ramp.tolist()
    assert sample_palette_ramp(np.zeros((0, 3)), 4).tolist() == [[0, 0, 0]]


def test_preset_palette_is_used_verbatim_without_smoothing():
    rgba = _random_rgba(8, 8, seed=5)
    palette = build_palette(rgba, 16, "gameboy", smoothing=False)
    assert palette.tolist() == [[15, 56, 15], [48, 98, 48], [139, 172, 15], [155, 188, 15]]


def test_smoothed_preset_keeps_the_merged_count():
    rgba = _random_rgba(8, 8, seed=6)
    for name in list_presets():
        merged = merge_near_duplicate_colors(get_preset_colors(name))
        palette = build_palette(rgba, 24, name, smoothing=True)
        assert len(palette) == len(merged)


def test_smoothed_adaptive_palette_has_the_requested_size():
    rgba = np.zeros((4, 4, 4), dtype=np.uint8)
    rgba[:, :2, :3] = 30
    rgba[:, 2:, :3] = 220
    rgba[:, :, 3] = 255

    palette = build_palette(rgba, 6, "auto", smoothing=True)
    assert len(palette) == 6
    assert np.all(np.diff(luminance(palette)) >= 0)


def test_palette_lab_darkest_index_picks_the_first_duplicate():
    palette_lab = build_palette_lab([[50, 50, 50], [0, 0, 0], [0, 0, 0], [200, 200, 200]])
    assert palette_lab.darkest_index == 1
    assert palette_lab.delta_e.shape == (4, 4)


def test_luminance_ranks_are_stable():
    palette_lab = build_palette_lab([[10, 10, 10], [5, 5, 5], [10, 10, 10]])
    rank_to_index, index_to_rank = palette_lab.luminance_ranks()
    assert rank_to_index.tolist() == [1, 0, 2]
    assert index_to_rank.tolist() == [1, 0, 2]


def test_preset_catalogue():
    assert list_presets() == ["portrait_warm", "retro_comic", "pico8", "nes", "gameboy", "muted_pastel"]
    sizes = {name: info["size"] for name, info in get_preset_info().items()}
    assert sizes == {
        "portrait_warm": 10,
        "retro_comic": 12,
        "pico8": 16,
        "nes": 16,
        "gameboy": 4,
        "muted_pastel": 12,
    }
    assert get_preset("pico8").hex_colors[8] == "#ff004d"
    with pytest.raises(ValueError):
        get_preset("unknown")
