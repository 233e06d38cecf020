"""
Configuration management for the pixel-art converter.
"""

import os
import yaml
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from .fixed_palettes import AUTO_PRESET, is_known_preset, list_presets
from .messages import (
    DITHER_STRENGTH_MAX,
    PALETTE_SIZE_MAX,
    PALETTE_SIZE_MIN,
    PixelArtError,
    ProcessPixelArtRequest,
)
from .resample import fit_within


class ConfigError(PixelArtError, ValueError):
    """Invalid configuration value."""


@dataclass
class GridConfig:
    """Working grid and output size."""
    grid_max: int = 100
    output_scale: int = 8
    output_width: Optional[int] = None
    output_height: Optional[int] = None

    def output_size(self, src_width: int, src_height: int):
        """Explicit output size if set, else the working grid times ``output_scale``."""
        grid_w, grid_h = fit_within(src_width, src_height, self.grid_max)
        out_w = self.output_width or grid_w * self.output_scale
        out_h = self.output_height or grid_h * self.output_scale
        return out_w, out_h


@dataclass
class PaletteConfig:
    """Palette selection."""
    size: int = 16
    preset: str = AUTO_PRESET
    smoothing: bool = False


@dataclass
class DitherConfig:
    """Ordered dithering configuration."""
    strength: float = 0.0


@dataclass
class EdgeConfig:
    """Outline configuration."""
    enabled: bool = False
    threshold: float = 0.35


@dataclass
class ProcessingConfig:
    """Processing mode."""
    polished_portrait: bool = False
    verbose: bool = False


@dataclass
class PixelArtConfig:
    """Main configuration class."""
    config_file: Optional[str] = None

    grid: GridConfig = field(default_factory=GridConfig)
    palette: PaletteConfig = field(default_factory=PaletteConfig)
    dither: DitherConfig = field(default_factory=DitherConfig)
    edges: EdgeConfig = field(default_factory=EdgeConfig)
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)

    @classmethod
    def from_yaml(cls, config_path: Optional[str] = None, **overrides) -> "PixelArtConfig":
        """Load configuration from YAML file with optional overrides."""
        data = {}
        if config_path and os.path.exists(config_path):
            with open(config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ConfigError(f"Configuration file {config_path} must contain a mapping")

        try:
            config = cls(
                config_file=config_path,
                grid=GridConfig(**(data.get('grid') or {})),
                palette=PaletteConfig(**(data.get('palette') or {})),
                dither=DitherConfig(**(data.get('dither') or {})),
                edges=EdgeConfig(**(data.get('edges') or {})),
                processing=ProcessingConfig(**(data.get('processing') or {})),
            )
        except TypeError as e:
            raise ConfigError(f"Unknown configuration key in {config_path}: {e}") from e

        config.apply_overrides(**overrides)
        config.validate()
        return config

    def apply_overrides(self, **overrides):
        """Apply CLI overrides; ``None`` values leave the loaded setting alone."""
        sections = (self.grid, self.palette, self.dither, self.edges, self.processing)
        for key, value in overrides.items():
            if value is None:
                continue
            section_name, _, attr = key.partition('_')
            section = getattr(self, section_name, None)
            if attr and section in sections and hasattr(section, attr):
                setattr(section, attr, value)
                continue
            for section in sections:
                if hasattr(section, key):
                    setattr(section, key, value)
                    break
            else:
                raise ConfigError(f"Unknown configuration override: {key}")

    def validate(self):
        """Validate configuration parameters."""
        if self.grid.grid_max < 1:
            raise ConfigError("grid_max must be at least 1")

        if self.grid.output_scale < 1:
            raise ConfigError("output_scale must be at least 1")

        for name in ('output_width', 'output_height'):
            value = getattr(self.grid, name)
            if value is not None and value < 1:
                raise ConfigError(f"{name} must be positive")

        if not (PALETTE_SIZE_MIN <= self.palette.size <= PALETTE_SIZE_MAX):
            raise ConfigError(
                f"Palette size must be between {PALETTE_SIZE_MIN} and {PALETTE_SIZE_MAX}"
            )

        if not is_known_preset(self.palette.preset):
            raise ConfigError(
                f"Unknown palette preset '{self.palette.preset}'. "
                f"Available: {[AUTO_PRESET] + list_presets()}"
            )

        if not (0 <= self.dither.strength <= DITHER_STRENGTH_MAX):
            raise ConfigError(f"Dither strength must be between 0 and {DITHER_STRENGTH_MAX}")

        if not (0 <= self.edges.threshold <= 1):
            raise ConfigError("Edge threshold must be between 0 and 1")

    def to_request(self, width: int, height: int, buffer,
                   out_width: Optional[int] = None,
                   out_height: Optional[int] = None) -> ProcessPixelArtRequest:
        """Build a conversion request for a source raster of ``width`` x ``height``."""
        if out_width is None or out_height is None:
            default_w, default_h = self.grid.output_size(width, height)
            out_width = out_width or default_w
            out_height = out_height or default_h

        if isinstance(buffer, np.ndarray):
            buffer = np.ascontiguousarray(buffer, dtype=np.uint8)

        return ProcessPixelArtRequest(
            src_width=width,
            src_height=height,
            src_buffer=buffer,
            out_width=out_width,
            out_height=out_height,
            grid_max=self.grid.grid_max,
            palette_size=self.palette.size,
            palette_preset=self.palette.preset,
            palette_smoothing=self.palette.smoothing,
            polished_portrait=self.processing.polished_portrait,
            dither_strength=self.dither.strength,
            edge_enabled=self.edges.enabled,
            edge_threshold=self.edges.threshold,
        )

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return {
            'grid': {
                'grid_max': self.grid.grid_max,
                'output_scale': self.grid.output_scale,
                'output_width': self.grid.output_width,
                'output_height': self.grid.output_height,
            },
            'palette': {
                'size': self.palette.size,
                'preset': self.palette.preset,
                'smoothing': self.palette.smoothing,
            },
            'dither': {
                'strength': self.dither.strength,
            },
            'edges': {
                'enabled': self.edges.enabled,
                'threshold': self.edges.threshold,
            },
            'processing': {
                'polished_portrait': self.processing.polished_portrait,
                'verbose': self.processing.verbose,
            },
        }

    def save_yaml(self, path: Optional[str] = None):
        """Save configuration to YAML file."""
        if path is None:
            path = self.config_file or "config.yaml"

        dir_path = os.path.dirname(path)
        if dir_path:
            os.makedirs(dir_path, exist_ok=True)

        with open(path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, indent=2, sort_keys=False)
