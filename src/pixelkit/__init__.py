"""
Pixel-Art Converter

Converts arbitrary RGBA images into limited-palette pixel art: downscale onto a
working grid, build or pick a palette, quantize in CIEDE2000 with optional
ordered dithering, clean up the index grid, outline edges and upscale.
"""

__version__ = "1.0.0"
__author__ = "Pixel-Art Converter"

from .config import PixelArtConfig
from .dither import DitherEngine
from .fixed_palettes import get_preset, get_preset_info, list_presets
from .grid_index_map import GridIndexMap
from .messages import (
    InvalidRequestError,
    PixelArtError,
    ProcessPixelArtDone,
    ProcessPixelArtRequest,
)
from .pipeline import PipelineResult, PixelArtPipeline, process_pixel_art
from .quantize import ColorQuantizer
from .worker import PixelArtWorker, ProcessingError

__all__ = [
    "PixelArtConfig",
    "DitherEngine",
    "get_preset",
    "get_preset_info",
    "list_presets",
    "GridIndexMap",
    "InvalidRequestError",
    "PixelArtError",
    "ProcessPixelArtDone",
    "ProcessPixelArtRequest",
    "PipelineResult",
    "PixelArtPipeline",
    "process_pixel_art",
    "ColorQuantizer",
    "PixelArtWorker",
    "ProcessingError",
]
