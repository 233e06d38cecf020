"""
Command-line interface for the pixel-art converter.
"""

import os
import sys

import click

from . import __version__
from .config import PixelArtConfig
from .fixed_palettes import AUTO_PRESET, get_preset_info, list_presets
from .image_io import load_rgba, save_rgba
from .messages import GRID_MAX_CHOICES
from .pipeline import PixelArtPipeline


@click.group()
@click.version_option(version=__version__)
def cli():
    """
    Pixel-Art Converter

    Turn any image into a limited-palette pixel-art rendition.
    """
    pass


@cli.command()
@click.argument('input_image', type=click.Path(exists=True, dir_okay=False))
@click.argument('output_image', type=click.Path(dir_okay=False))
@click.option('--config', '-c', default='config.yaml', help='Configuration file path')
@click.option('--grid-max', '-g', type=int, help=f'Longest side of the working grid (UI offers {GRID_MAX_CHOICES})')
@click.option('--palette-size', '-k', type=int, help='Number of colors for the auto palette (2-24)')
@click.option('--preset', '-p', type=click.Choice([AUTO_PRESET] + list_presets()), help='Fixed palette preset')
@click.option('--smoothing/--no-smoothing', default=None, help='Palette ramp smoothing and speckle cleanup')
@click.option('--portrait/--no-portrait', default=None, help='Polished portrait mode')
@click.option('--dither', '-d', type=float, help='Ordered dither strength (0-0.35)')
@click.option('--edges/--no-edges', default=None, help='Dark outlines along strong edges')
@click.option('--edge-threshold', '-e', type=float, help='Luminance contrast needed for an outline (0-1)')
@click.option('--scale', '-s', type=int, help='Output pixels per grid cell')
@click.option('--verbose', '-v', is_flag=True, help='Print stage progress')
def convert(input_image, output_image, config, grid_max, palette_size, preset, smoothing,
            portrait, dither, edges, edge_threshold, scale, verbose):
    """
    Convert an image to pixel art.

    INPUT_IMAGE: Path to input image (PNG/JPG supported)
    OUTPUT_IMAGE: Path for the output image
    """
    try:
        settings = PixelArtConfig.from_yaml(
            config,
            grid_max=grid_max,
            palette_size=palette_size,
            palette_preset=preset,
            palette_smoothing=smoothing,
            polished_portrait=portrait,
            dither_strength=dither,
            edges_enabled=edges,
            edges_threshold=edge_threshold,
            output_scale=scale,
            verbose=verbose or None,
        )

        rgba = load_rgba(input_image)
        height, width = rgba.shape[:2]
        if settings.processing.verbose:
            click.echo(f"Loaded {input_image}: {width}x{height}")

        request = settings.to_request(width, height, rgba)
        result = PixelArtPipeline(verbose=settings.processing.verbose).run(request)

        out_w, out_h = save_rgba(result.output_rgba, output_image)
        grid_w, grid_h = result.metadata['grid_size']
        click.echo(
            f"[OK] Pixel art saved: {output_image} "
            f"({out_w}x{out_h}, grid {grid_w}x{grid_h}, {len(result.palette)} colors)"
        )

    except Exception as e:
        click.echo(f"[X] Error: {e}", err=True)
        sys.exit(1)


@cli.command()
def presets():
    """List the fixed palette presets."""
    for name, info in get_preset_info().items():
        click.echo(f"{name} ({info['size']} colors): {info['description']}")
        click.echo("  " + " ".join(color['hex'] for color in info['colors']))


@cli.command()
@click.option('--output', '-o', default='config.yaml', help='Output configuration file path')
def init_config(output):
    """Create a default configuration file."""
    try:
        if os.path.exists(output) and not click.confirm(f"Configuration file '{output}' already exists. Overwrite?"):
            click.echo("Configuration creation cancelled.")
            return

        PixelArtConfig().save_yaml(output)
        click.echo(f"[OK] Default configuration created: {output}")

    except Exception as e:
        click.echo(f"[X] Error creating configuration: {e}", err=True)
        sys.exit(1)


def main():
    """Main CLI entry point."""
    cli()


if __name__ == '__main__':
    main()
