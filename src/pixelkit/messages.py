"""
Request/response records exchanged between a caller and the conversion worker.

Buffers travel as immutable ``bytes`` so neither side can mutate memory the
other one still reads. On the wire (``to_message``/``from_message``) keys use
the camelCase names of the message protocol.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace, fields
from typing import Any, Dict

import numpy as np

from .fixed_palettes import AUTO_PRESET, is_known_preset, list_presets

PROCESS_PIXEL_ART = "PROCESS_PIXEL_ART"
PROCESS_PIXEL_ART_DONE = "PROCESS_PIXEL_ART_DONE"

GRID_MAX_CHOICES = (100, 250)
PALETTE_SIZE_MIN = 2
PALETTE_SIZE_MAX = 24
DITHER_STRENGTH_MAX = 0.35


class PixelArtError(Exception):
    """Base class for all pixel-art conversion errors."""


class InvalidRequestError(PixelArtError, ValueError):
    """The request cannot be processed (bad type, dimensions or buffer)."""


def _clamp(value, low, high):
    # NaN compares false both ways; treat it as the lower bound
    if isinstance(value, float) and math.isnan(value):
        return low
    return low if value < low else high if value > high else value


def _to_bytes(buffer) -> bytes:
    if isinstance(buffer, bytes):
        return buffer
    if isinstance(buffer, np.ndarray):
        return np.ascontiguousarray(buffer, dtype=np.uint8).tobytes()
    return bytes(buffer)


_WIRE_NAMES = {
    "src_width": "srcWidth",
    "src_height": "srcHeight",
    "src_buffer": "srcBuffer",
    "out_width": "outWidth",
    "out_height": "outHeight",
    "grid_max": "gridMax",
    "palette_size": "paletteSize",
    "palette_preset": "palettePreset",
    "palette_smoothing": "paletteSmoothing",
    "polished_portrait": "polishedPortrait",
    "dither_strength": "ditherStrength",
    "edge_enabled": "edgeEnabled",
    "edge_threshold": "edgeThreshold",
    "out_buffer": "outBuffer",
}


@dataclass(frozen=True)
class ProcessPixelArtRequest:
    """One conversion request: source RGBA bytes plus processing settings."""
    src_width: int
    src_height: int
    src_buffer: bytes
    out_width: int
    out_height: int
    grid_max: int = 100
    palette_size: int = 16
    palette_preset: str = AUTO_PRESET
    palette_smoothing: bool = False
    polished_portrait: bool = False
    dither_strength: float = 0.0
    edge_enabled: bool = False
    edge_threshold: float = 0.35

    type = PROCESS_PIXEL_ART

    def __post_init__(self):
        object.__setattr__(self, "src_buffer", _to_bytes(self.src_buffer))

    @classmethod
    def from_rgba(cls, rgba: np.ndarray, out_width: int, out_height: int,
                  **settings) -> "ProcessPixelArtRequest":
        """Build a request from an (H, W, 4) uint8 raster."""
        if rgba.ndim != 3 or rgba.shape[2] != 4:
            raise InvalidRequestError(f"Expected an (H, W, 4) RGBA array, got shape {rgba.shape}")
        height, width = rgba.shape[:2]
        return cls(
            src_width=width,
            src_height=height,
            src_buffer=rgba,
            out_width=out_width,
            out_height=out_height,
            **settings,
        )

    @classmethod
    def from_message(cls, message: Dict[str, Any]) -> "ProcessPixelArtRequest":
        """Parse a wire message; unknown keys are ignored."""
        msg_type = message.get("type")
        if msg_type != PROCESS_PIXEL_ART:
            raise InvalidRequestError(f"Unexpected message type {msg_type!r}")

        kwargs = {}
        for f in fields(cls):
            wire_name = _WIRE_NAMES[f.name]
            if wire_name in message:
                kwargs[f.name] = message[wire_name]
            elif f.name in message:
                kwargs[f.name] = message[f.name]

        missing = [
            _WIRE_NAMES[name]
            for name in ("src_width", "src_height", "src_buffer", "out_width", "out_height")
            if name not in kwargs
        ]
        if missing:
            raise InvalidRequestError(f"Request is missing required fields: {missing}")
        return cls(**kwargs)

    def to_message(self) -> Dict[str, Any]:
        message: Dict[str, Any] = {"type": PROCESS_PIXEL_ART}
        for f in fields(self):
            message[_WIRE_NAMES[f.name]] = getattr(self, f.name)
        return message

    def validate(self) -> "ProcessPixelArtRequest":
        """Reject requests that would lead to out-of-bounds buffer access."""
        for name in ("src_width", "src_height", "out_width", "out_height"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 1:
                raise InvalidRequestError(f"{_WIRE_NAMES[name]} must be a positive integer, got {value!r}")

        expected = self.src_width * self.src_height * 4
        if len(self.src_buffer) != expected:
            raise InvalidRequestError(
                f"srcBuffer holds {len(self.src_buffer)} bytes, expected {expected} "
                f"for {self.src_width}x{self.src_height} RGBA"
            )

        if not is_known_preset(self.palette_preset):
            raise InvalidRequestError(
                f"Unknown palette preset '{self.palette_preset}'. "
                f"Available: {[AUTO_PRESET] + list_presets()}"
            )
        return self

    def normalized(self) -> "ProcessPixelArtRequest":
        """Copy with every tunable clamped into its supported range."""
        return replace(
            self,
            grid_max=max(1, int(self.grid_max)),
            palette_size=int(_clamp(int(self.palette_size), PALETTE_SIZE_MIN, PALETTE_SIZE_MAX)),
            palette_smoothing=bool(self.palette_smoothing),
            polished_portrait=bool(self.polished_portrait),
            dither_strength=float(_clamp(float(self.dither_strength), 0.0, DITHER_STRENGTH_MAX)),
            edge_enabled=bool(self.edge_enabled),
            edge_threshold=float(_clamp(float(self.edge_threshold), 0.0, 1.0)),
        )

    def src_rgba(self) -> np.ndarray:
        """Read-only (H, W, 4) view over the source bytes."""
        return np.frombuffer(self.src_buffer, dtype=np.uint8).reshape(
            self.src_height, self.src_width, 4
        )


@dataclass(frozen=True)
class ProcessPixelArtDone:
    """Conversion result: RGBA bytes of the requested output size."""
    out_width: int
    out_height: int
    out_buffer: bytes

    type = PROCESS_PIXEL_ART_DONE

    def __post_init__(self):
        object.__setattr__(self, "out_buffer", _to_bytes(self.out_buffer))

    @classmethod
    def from_message(cls, message: Dict[str, Any]) -> "ProcessPixelArtDone":
        if message.get("type") != PROCESS_PIXEL_ART_DONE:
            raise InvalidRequestError(f"Unexpected message type {message.get('type')!r}")
        return cls(
            out_width=message["outWidth"],
            out_height=message["outHeight"],
            out_buffer=message["outBuffer"],
        )

    def to_message(self) -> Dict[str, Any]:
        return {
            "type": PROCESS_PIXEL_ART_DONE,
            "outWidth": self.out_width,
            "outHeight": self.out_height,
            "outBuffer": self.out_buffer,
        }

    def to_rgba(self) -> np.ndarray:
        """Read-only (H, W, 4) view over the output bytes."""
        return np.frombuffer(self.out_buffer, dtype=np.uint8).reshape(
            self.out_height, self.out_width, 4
        )
