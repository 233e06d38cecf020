from pathlib import Path
import sys

import numpy as np
import pytest
import yaml
from click.testing import CliRunner
from PIL import Image

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from pixelkit.cli import cli
from pixelkit.config import ConfigError, PixelArtConfig
from pixelkit.image_io import load_rgba, save_rgba


def _create_demo_image(tmp_path: Path, size=(40, 24)) -> Path:
    """Create a small two-tone image with a transparent corner."""
    width, height = size
    rgba = np.zeros((height, width, 4), dtype=np.uint8)
    rgba[:, : width // 2, :3] = [230, 120, 40]
    rgba[:, width // 2:, :3] = [40, 60, 150]
    rgba[:, :, 3] = 255
    rgba[:4, :4, 3] = 0
    image_path = tmp_path / "demo_input.png"
    Image.fromarray(rgba).save(image_path)
    return image_path


def test_missing_config_file_gives_defaults(tmp_path):
    config = PixelArtConfig.from_yaml(str(tmp_path / "missing.yaml"))
    assert config.grid.grid_max == 100
    assert config.palette.size == 16
    assert config.palette.preset == "auto"
    assert config.dither.strength == 0.0
    assert config.edges.threshold == 0.35
    assert config.processing.polished_portrait is False


def test_config_yaml_round_trip(tmp_path):
    path = tmp_path / "nested" / "config.yaml"
    config = PixelArtConfig()
    config.palette.preset = "nes"
    config.edges.enabled = True
    config.grid.output_scale = 4
    config.save_yaml(str(path))

    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert data["palette"]["preset"] == "nes"

    loaded = PixelArtConfig.from_yaml(str(path))
    assert loaded.to_dict() == config.to_dict()


def test_overrides_take_precedence_and_none_is_ignored(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("palette:\n  size: 8\n  smoothing: true\n", encoding="utf-8")

    config = PixelArtConfig.from_yaml(
        str(path), palette_size=None, dither_strength=0.2, grid_max=250, verbose=True,
    )
    assert config.palette.size == 8
    assert config.palette.smoothing is True
    assert config.dither.strength == 0.2
    assert config.grid.grid_max == 250
    assert config.processing.verbose is True


@pytest.mark.parametrize("overrides", [
    dict(palette_size=30),
    dict(palette_preset="sepia"),
    dict(dither_strength=0.5),
    dict(edges_threshold=1.5),
    dict(grid_max=0),
    dict(no_such_setting=1),
])
def test_invalid_configuration_raises(tmp_path, overrides):
    with pytest.raises(ConfigError):
        PixelArtConfig.from_yaml(str(tmp_path / "missing.yaml"), **overrides)


def test_unknown_yaml_keys_raise(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("dither:\n  mode: fs\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        PixelArtConfig.from_yaml(str(path))


def test_to_request_scales_the_working_grid():
    config = PixelArtConfig()
    config.grid.grid_max = 50
    config.grid.output_scale = 3
    config.palette.preset = "gameboy"

    rgba = np.zeros((100, 200, 4), dtype=np.uint8)
    request = config.to_request(200, 100, rgba)
    assert (request.out_width, request.out_height) == (150, 75)
    assert request.palette_preset == "gameboy"
    assert request.src_buffer == rgba.tobytes()

    explicit = config.to_request(200, 100, rgba, 20, 10)
    assert (explicit.out_width, explicit.out_height) == (20, 10)


def test_image_io_round_trip(tmp_path):
    rgba = np.random.default_rng(1).integers(0, 256, size=(5, 7, 4), dtype=np.uint8)
    path = tmp_path / "out" / "image.png"
    assert save_rgba(rgba, str(path)) == (7, 5)
    assert np.array_equal(load_rgba(str(path)), rgba)

    with pytest.raises(FileNotFoundError):
        load_rgba(str(tmp_path / "nope.png"))


def test_cli_convert_writes_scaled_pixel_art(tmp_path):
    image_path = _create_demo_image(tmp_path)
    output_path = tmp_path / "pixel.png"

    runner = CliRunner()
    result = runner.invoke(cli, [
        "convert", str(image_path), str(output_path),
        "--config", str(tmp_path / "missing.yaml"),
        "--grid-max", "20",
        "--palette-size", "4",
        "--scale", "5",
        "--edges",
    ])
    assert result.exit_code == 0, result.output
    assert "[OK]" in result.output

    with Image.open(output_path) as image:
        assert image.size == (100, 60)
        assert image.mode == "RGBA"


def test_cli_convert_reports_errors(tmp_path):
    image_path = _create_demo_image(tmp_path)
    runner = CliRunner()
    result = runner.invoke(cli, [
        "convert", str(image_path), str(tmp_path / "pixel.png"),
        "--config", str(tmp_path / "missing.yaml"),
        "--palette-size", "40",
    ])
    assert result.exit_code == 1
    assert "[X] Error" in result.output


def test_cli_lists_presets():
    result = CliRunner().invoke(cli, ["presets"])
    assert result.exit_code == 0
    assert "pico8 (16 colors)" in result.output
    assert "#0f380f" in result.output


def test_cli_init_config_writes_loadable_defaults(tmp_path):
    output = tmp_path / "config.yaml"
    result = CliRunner().invoke(cli, ["init-config", "--output", str(output)])
    assert result.exit_code == 0
    assert PixelArtConfig.from_yaml(str(output)).to_dict() == PixelArtConfig().to_dict()
