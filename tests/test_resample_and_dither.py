import numpy as np
import pytest
from pathlib import Path
import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from pixelkit.dither import DitherEngine, dither_nudge
from pixelkit.palette import build_palette_lab
from pixelkit.quantize import ColorQuantizer
from pixelkit.resample import downscale_bilinear, fit_within, upscale_nearest


def _solid(width, height, rgba):
    return np.tile(np.array(rgba, dtype=np.uint8), (height, width, 1))


def test_fit_within_shrinks_but_never_enlarges():
    assert fit_within(400, 200, 100) == (100, 50)
    assert fit_within(200, 400, 250) == (125, 250)
    assert fit_within(50, 30, 100) == (50, 30)
    assert fit_within(1000, 1, 100) == (100, 1)
    assert fit_within(3, 3, 1) == (1, 1)


def test_downscale_to_same_size_returns_an_equal_copy():
    rng = np.random.default_rng(3)
    src = rng.integers(0, 256, size=(7, 9, 4), dtype=np.uint8)
    out = downscale_bilinear(src, 9, 7)
    assert np.array_equal(out, src)
    assert out is not src


def test_same_size_downscale_then_upscale_is_the_identity():
    rng = np.random.default_rng(5)
    src = rng.integers(0, 256, size=(6, 11, 4), dtype=np.uint8)
    out = upscale_nearest(downscale_bilinear(src, 11, 6), 11, 6)
    assert np.array_equal(out, src)


def test_downscale_keeps_uniform_images_uniform():
    src = _solid(40, 30, (10, 20, 30, 255))
    out = downscale_bilinear(src, 8, 6)
    assert out.shape == (6, 8, 4)
    assert np.all(out == np.array([10, 20, 30, 255], dtype=np.uint8))


def test_downscale_interpolates_alpha_and_rounds_half_to_even():
    src = np.array([[[0, 0, 0, 0], [255, 255, 255, 255]]], dtype=np.uint8)
    out = downscale_bilinear(src, 1, 1)
    assert out.tolist() == [[[128, 128, 128, 128]]]


def test_upscale_nearest_produces_crisp_blocks():
    src = np.arange(2 * 2 * 4, dtype=np.uint8).reshape(2, 2, 4)
    out = upscale_nearest(src, 8, 8)
    assert out.shape == (8, 8, 4)
    for y in range(8):
        for x in range(8):
            assert np.array_equal(out[y, x], src[y // 4, x // 4])


def test_upscale_nearest_handles_non_integer_ratios():
    src = np.arange(3 * 3 * 4, dtype=np.uint8).reshape(3, 3, 4)
    out = upscale_nearest(src, 7, 5)
    assert out.shape == (5, 7, 4)
    columns = [int(np.argwhere(np.all(src[0] == out[0, x], axis=1))[0][0]) for x in range(7)]
    assert columns == [0, 0, 0, 1, 1, 2, 2]


def test_dither_is_zero_at_strength_zero():
    engine = DitherEngine(0.0)
    assert not engine.enabled
    assert all(engine.nudge(x, y) == 0.0 for x in range(4) for y in range(4))
    assert np.all(engine.nudge_map(6, 5) == 0)

    rgb = np.full((5, 6, 3), 77, dtype=np.uint8)
    assert np.array_equal(engine.apply(rgb), rgb.astype(np.float64))


def test_dither_nudge_follows_the_bayer_matrix():
    assert dither_nudge(0, 0, 0.2) == pytest.approx(-25.5)
    assert dither_nudge(3, 0, 0.2) == pytest.approx((10 / 15 - 0.5) * 51)
    assert dither_nudge(0, 3, 0.2) == pytest.approx(25.5)


def test_dither_nudge_is_deterministic_and_tiles_every_four_cells():
    engine = DitherEngine(0.3)
    for y in range(4):
        for x in range(4):
            assert engine.nudge(x, y) == engine.nudge(x + 4, y + 8)
            assert engine.nudge(x, y) == DitherEngine(0.3).nudge(x, y)

    grid = engine.nudge_map(9, 7)
    assert grid[6, 8] == pytest.approx(engine.nudge(8, 6))


def test_portrait_mode_dithers_at_seventy_percent():
    assert DitherEngine(0.2, polished_portrait=True).strength == pytest.approx(0.14)
    assert DitherEngine(0.2, polished_portrait=False).strength == pytest.approx(0.2)


def test_dither_apply_clamps_without_rounding():
    engine = DitherEngine(0.35)
    rgb = np.zeros((4, 4, 3), dtype=np.uint8)
    rgb[:2] = 255
    out = engine.apply(rgb)
    assert out.min() >= 0 and out.max() <= 255
    assert out.dtype == np.float64
    assert np.any(out != np.rint(out))


def test_quantizer_breaks_ties_toward_the_first_index():
    palette = build_palette_lab([[200, 30, 30], [10, 10, 10], [10, 10, 10]])
    quantizer = ColorQuantizer(palette)
    indices = quantizer.nearest_indices(np.array([[12, 12, 12], [10, 10, 10], [210, 40, 30]]))
    assert indices.tolist() == [1, 1, 0]

    rgba = np.zeros((2, 2, 4), dtype=np.uint8)
    rgba[:, :, 3] = [[255, 255], [255, 0]]
    grid, rendered = quantizer.quantize(rgba)
    assert grid.tolist() == [[1, 1], [1, 0]]
    assert rendered[1, 1].tolist() == [0, 0, 0, 0]
