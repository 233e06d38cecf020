"""
Fixed, curated palettes selectable instead of the adaptive median-cut palette.
Entries are reproduced verbatim; their order matters for ramp smoothing.
"""

from typing import List, Dict, Optional, Tuple
from dataclasses import dataclass

import numpy as np

AUTO_PRESET = "auto"

RGB = Tuple[int, int, int]


@dataclass(frozen=True)
class FixedPalette:
    """A named preset palette."""
    name: str
    description: str
    colors: Tuple[RGB, ...]

    def __post_init__(self):
        """Validate preset size and channel ranges."""
        if not 1 <= len(self.colors) <= 24:
            raise ValueError(f"Palette {self.name} must have 1-24 colors, got {len(self.colors)}")
        for color in self.colors:
            if len(color) != 3 or any(not 0 <= c <= 255 for c in color):
                raise ValueError(f"Palette {self.name} has invalid color {color}")

    def __len__(self) -> int:
        return len(self.colors)

    def as_array(self) -> np.ndarray:
        """Colors as a fresh float64 (k, 3) array."""
        return np.array(self.colors, dtype=np.float64)

    @property
    def hex_colors(self) -> List[str]:
        return [f"#{r:02x}{g:02x}{b:02x}" for r, g, b in self.colors]


_PRESETS: Dict[str, FixedPalette] = {
    "portrait_warm": FixedPalette(
        name="portrait_warm",
        description="Warm skin ramp from cream highlights to deep umber",
        colors=(
            (255, 234, 210), (248, 206, 174), (231, 175, 145), (212, 145, 118),
            (184, 113, 96), (146, 84, 72), (113, 62, 58), (82, 46, 50),
            (58, 33, 38), (37, 24, 30),
        ),
    ),
    "retro_comic": FixedPalette(
        name="retro_comic",
        description="Saturated print-comic inks with navy and slate keys",
        colors=(
            (255, 244, 219), (255, 210, 74), (255, 129, 65), (233, 62, 89),
            (162, 54, 129), (82, 64, 189), (45, 134, 196), (64, 200, 162),
            (104, 207, 98), (31, 38, 56), (94, 104, 124), (228, 235, 245),
        ),
    ),
    "pico8": FixedPalette(
        name="pico8",
        description="PICO-8 fantasy console palette",
        colors=(
            (0, 0, 0), (29, 43, 83), (126, 37, 83), (0, 135, 81),
            (171, 82, 54), (95, 87, 79), (194, 195, 199), (255, 241, 232),
            (255, 0, 77), (255, 163, 0), (255, 236, 39), (0, 228, 54),
            (41, 173, 255), (131, 118, 156), (255, 119, 168), (255, 204, 170),
        ),
    ),
    "nes": FixedPalette(
        name="nes",
        description="Subset of the NES PPU palette",
        colors=(
            (124, 124, 124), (0, 0, 252), (0, 0, 188), (68, 40, 188),
            (148, 0, 132), (168, 0, 32), (168, 16, 0), (136, 20, 0),
            (80, 48, 0), (0, 120, 0), (0, 104, 0), (0, 88, 0),
            (0, 64, 88), (0, 0, 0), (188, 188, 188), (248, 248, 248),
        ),
    ),
    "gameboy": FixedPalette(
        name="gameboy",
        description="Four-shade DMG Game Boy greens",
        colors=((15, 56, 15), (48, 98, 48), (139, 172, 15), (155, 188, 15)),
    ),
    "muted_pastel": FixedPalette(
        name="muted_pastel",
        description="Soft desaturated pastels with two grey anchors",
        colors=(
            (244, 232, 226), (228, 205, 200), (214, 187, 202), (196, 186, 222),
            (182, 197, 230), (178, 211, 214), (188, 216, 188), (212, 219, 176),
            (232, 214, 170), (211, 181, 168), (162, 150, 160), (114, 110, 124),
        ),
    ),
}


def list_presets() -> List[str]:
    """Names of the fixed presets, in declaration order."""
    return list(_PRESETS.keys())


def is_known_preset(name: str) -> bool:
    """True for "auto" or any fixed preset name."""
    return name == AUTO_PRESET or name in _PRESETS


def get_preset(name: str) -> FixedPalette:
    """Get a fixed preset by name."""
    if name not in _PRESETS:
        raise ValueError(f"Unknown palette preset '{name}'. Available: {list_presets()}")
    return _PRESETS[name]


def get_preset_colors(name: str) -> np.ndarray:
    """Preset colors as a float64 (k, 3) array; callers may mutate the copy."""
    return get_preset(name).as_array()


def get_preset_info(name: Optional[str] = None) -> Dict[str, Dict]:
    """Describe one preset, or all of them when ``name`` is None."""
    names = [name] if name is not None else list_presets()
    info = {}
    for preset_name in names:
        preset = get_preset(preset_name)
        info[preset_name] = {
            "name": preset.name,
            "description": preset.description,
            "size": len(preset),
            "colors": [
                {"rgb": list(rgb), "hex": hex_value}
                for rgb, hex_value in zip(preset.colors, preset.hex_colors)
            ],
        }
    return info
