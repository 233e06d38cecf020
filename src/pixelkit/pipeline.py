"""
Main pixel-art conversion pipeline.
Runs every stage in a fixed order over buffers owned by a single request.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

import numpy as np

from .dither import DitherEngine
from .grid_index_map import GridIndexMap, render_indexed
from .image_preprocessor import ImagePreprocessor
from .messages import ProcessPixelArtDone, ProcessPixelArtRequest
from .palette import build_palette, build_palette_lab
from .postprocess import (
    apply_outlines,
    apply_selective_outlines,
    cleanup_tiny_islands,
    conservative_smooth_indices,
)
from .quantize import ColorQuantizer
from .resample import upscale_nearest


@dataclass
class PipelineResult:
    """Everything a conversion produced, for callers that want more than bytes."""
    output_rgba: np.ndarray
    grid_rgba: np.ndarray
    grid_map: GridIndexMap
    palette: np.ndarray
    stages: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_message(self) -> ProcessPixelArtDone:
        h, w = self.output_rgba.shape[:2]
        return ProcessPixelArtDone(out_width=w, out_height=h, out_buffer=self.output_rgba)


class PixelArtPipeline:
    """Downscale, palette, quantize, clean up, outline, upscale."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def _log(self, message: str):
        if self.verbose:
            print(message)

    def run(self, request: ProcessPixelArtRequest) -> PipelineResult:
        """
        Convert one request.

        Args:
            request: Source raster and settings; validated, then clamped

        Returns:
            PipelineResult with the upscaled raster and the final index grid
        """
        request = request.validate().normalized()
        stages = ["downscale"]

        preprocessor = ImagePreprocessor(request.grid_max, request.polished_portrait)
        pre = preprocessor.process(request.src_rgba())
        grid_w, grid_h = pre.grid_size
        self._log(f"Working grid: {grid_w}x{grid_h} (from {request.src_width}x{request.src_height})")
        if request.polished_portrait:
            stages.append("prefilter")

        palette = build_palette(
            pre.prepared_rgba,
            request.palette_size,
            request.palette_preset,
            request.palette_smoothing,
        )
        palette_lab = build_palette_lab(palette)
        stages.append("palette")
        self._log(f"Palette: {len(palette)} colors ({request.palette_preset})")

        dither = DitherEngine(request.dither_strength, request.polished_portrait)
        quantizer = ColorQuantizer(palette_lab, dither)
        grid, grid_rgba = quantizer.quantize(pre.prepared_rgba)
        stages.append("quantize")
        self._log(f"Quantized {grid_w * grid_h:,} cells (dither strength {dither.strength:.3f})")

        if request.palette_smoothing:
            grid = conservative_smooth_indices(grid, palette_lab, request.edge_threshold)
            grid_rgba = render_indexed(grid_rgba, grid, palette)
            stages.append("smooth")

        if request.polished_portrait:
            grid = cleanup_tiny_islands(grid, palette_lab)
            grid_rgba = render_indexed(grid_rgba, grid, palette)
            stages.append("islands")

        if request.edge_enabled:
            if request.polished_portrait:
                grid = apply_selective_outlines(grid, palette_lab, request.edge_threshold)
            else:
                grid = apply_outlines(grid, palette_lab, request.edge_threshold)
            grid_rgba = render_indexed(grid_rgba, grid, palette)
            stages.append("outline")

        output = upscale_nearest(grid_rgba, request.out_width, request.out_height)
        stages.append("upscale")

        grid_map = GridIndexMap(grid_data=grid, palette_colors=palette)
        self._log(f"Output: {request.out_width}x{request.out_height}, grid hash {grid_map.grid_hash}")

        metadata = dict(pre.metadata)
        metadata.update({
            "palette_size": len(palette),
            "palette_preset": request.palette_preset,
            "color_usage": grid_map.color_usage(grid_rgba[:, :, 3]),
            "grid_hash": grid_map.grid_hash,
        })
        return PipelineResult(
            output_rgba=output,
            grid_rgba=grid_rgba,
            grid_map=grid_map,
            palette=palette,
            stages=stages,
            metadata=metadata,
        )

    def process(self, request: Union[ProcessPixelArtRequest, Dict[str, Any]]) -> ProcessPixelArtDone:
        """Message-level entry point: request record or wire dict in, result record out."""
        if isinstance(request, dict):
            request = ProcessPixelArtRequest.from_message(request)
        return self.run(request).to_message()


def process_pixel_art(request: Union[ProcessPixelArtRequest, Dict[str, Any]],
                      verbose: bool = False) -> ProcessPixelArtDone:
    """
    Convenience function to convert a single request.

    Args:
        request: ProcessPixelArtRequest or its wire dict
        verbose: Print stage progress

    Returns:
        ProcessPixelArtDone with ``out_width * out_height * 4`` RGBA bytes
    """
    return PixelArtPipeline(verbose=verbose).process(request)
