"""
Render configuration with environment overrides.
"""

import os
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from .charsets import ASCII_STANDARD, get_charset


@dataclass
class RenderConfig:
    """Configuration for image-to-text rendering."""
    alphabet: str = ASCII_STANDARD         # Ordered candidate glyphs
    resolution: Tuple[int, int] = (1, 2)   # Brightness samples per glyph (cols, rows)
    invert: bool = False                   # Use 1 - luminance (light text on dark)
    device: str = "auto"                   # "auto", "cpu", "cuda", "mps"
    font_path: Optional[str] = None        # Font used to rasterize glyphs
    enhance_contrast: bool = False         # CLAHE on the source image first
    char_aspect: float = 0.5               # Glyph cell width / height

    @classmethod
    def from_env(cls, **overrides) -> "RenderConfig":
        """
        Defaults, then ASCII_SHADE_* environment variables, then ``overrides``.

        Recognised variables:
            ASCII_SHADE_DEVICE: torch device name
            ASCII_SHADE_FONT: path to a TrueType font
            ASCII_SHADE_CHARSET: charset name (see list_charsets())
            ASCII_SHADE_RESOLUTION: "cols,rows"
        """
        config = cls()

        device = os.getenv("ASCII_SHADE_DEVICE")
        if device:
            config.device = device

        font_path = os.getenv("ASCII_SHADE_FONT")
        if font_path:
            config.font_path = font_path

        charset = os.getenv("ASCII_SHADE_CHARSET")
        if charset:
            config.alphabet = get_charset(charset)

        resolution = os.getenv("ASCII_SHADE_RESOLUTION")
        if resolution:
            config.resolution = parse_resolution(resolution)

        return replace(config, **overrides)


def parse_resolution(value: str) -> Tuple[int, int]:
    """Parse "cols,rows" (or "colsxrows") into a pair of ints."""
    parts = value.lower().replace("x", ",").split(",")
    if len(parts) != 2:
        raise ValueError(f"Invalid resolution {value!r}, expected 'cols,rows'")
    try:
        cols, rows = int(parts[0]), int(parts[1])
    except ValueError:
        raise ValueError(f"Invalid resolution {value!r}, expected 'cols,rows'") from None
    return (cols, rows)
