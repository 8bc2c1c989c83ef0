"""
Glyph Rasterizer

Draws one character at a time into an off-screen RGBA surface and samples
its alpha coverage down to a ``cols x rows`` brightness profile.

Two scratch surfaces are kept for the lifetime of the rasterizer:
- a square measurement surface the glyph is drawn into at full size
- a resolution-sized sample surface the glyph's advance box is scaled into

Both are cleared after every character, so one glyph can never bleed into
the next one's profile.
"""

import logging
import math
from typing import Optional, Sequence, Union

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from .model import SamplingResolution

logger = logging.getLogger(__name__)

# Pixel size of the measurement surface and of the font drawn into it
GLYPH_RENDER_SIZE = 64

# Bold monospace first; the regular cuts are fallbacks
_FONT_CANDIDATES = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSansMono-Bold.ttf",  # Debian/Ubuntu
    "/usr/share/fonts/TTF/DejaVuSansMono-Bold.ttf",  # Arch
    "/usr/share/fonts/dejavu-sans-mono-fonts/DejaVuSansMono-Bold.ttf",  # Fedora
    "/System/Library/Fonts/Menlo.ttc",  # macOS
    "/System/Library/Fonts/Monaco.dfont",  # macOS fallback
    "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf",
    "consolab.ttf",  # Windows
    "Consolas",
]

_TRANSPARENT = (0, 0, 0, 0)
_INK = (0, 0, 0, 255)


def load_monospace_font(size: int, font_path: Optional[str] = None) -> ImageFont.ImageFont:
    """
    Get a monospace font for rendering.

    Args:
        size: Font size in pixels
        font_path: Preferred font file; system fonts are tried if it fails

    Returns:
        A TrueType font, or Pillow's built-in default scaled to ``size``
    """
    if font_path:
        try:
            return ImageFont.truetype(font_path, size)
        except (OSError, IOError):
            logger.warning("Could not load font %s, falling back to system fonts", font_path)

    for font_name in _FONT_CANDIDATES:
        try:
            return ImageFont.truetype(font_name, size)
        except (OSError, IOError):
            continue

    logger.warning("No monospace TrueType font found, using Pillow's default font")
    return ImageFont.load_default(size)


class GlyphRasterizer:
    """
    Turns characters into brightness profiles.

    The result for a character depends only on the character, the
    resolution and the font, never on what was rasterized before it.

    Example:
        >>> rasterizer = GlyphRasterizer()
        >>> profile = rasterizer.rasterize("#", (1, 2))
        >>> profile.shape
        (2,)
    """

    def __init__(self, font_path: Optional[str] = None, render_size: int = GLYPH_RENDER_SIZE):
        self.render_size = render_size
        self.font = load_monospace_font(render_size, font_path)
        # Bitmap fallback fonts don't support anchors
        self._anchor = "lm" if isinstance(self.font, ImageFont.FreeTypeFont) else None

        self._measure = Image.new("RGBA", (render_size, render_size), _TRANSPARENT)
        self._measure_draw = ImageDraw.Draw(self._measure)

        self._resolution: Optional[SamplingResolution] = None
        self._sample: Optional[Image.Image] = None

    def _ensure_sample_surface(self, resolution: SamplingResolution):
        if resolution != self._resolution:
            self._sample = Image.new("RGBA", (resolution.cols, resolution.rows), _TRANSPARENT)
            self._resolution = resolution

    def _clear(self):
        size = self.render_size
        self._measure_draw.rectangle((0, 0, size, size), fill=_TRANSPARENT)
        self._sample.paste(_TRANSPARENT, (0, 0, self._sample.width, self._sample.height))

    def measure(self, char: str) -> int:
        """Natural advance width of ``char`` in pixels, clamped to the surface."""
        return min(int(math.ceil(self.font.getlength(char))), self.render_size)

    def rasterize(
        self,
        char: str,
        resolution: Union[SamplingResolution, Sequence[int]],
    ) -> np.ndarray:
        """
        Render a single character to a brightness profile.

        Args:
            char: Single character to render
            resolution: Sampling resolution (cols, rows)

        Returns:
            float32 vector of ``cols * rows`` alpha coverages in [0, 1],
            row-major within the cell. Zero-width glyphs give all zeros.
        """
        resolution = SamplingResolution.coerce(resolution)
        self._ensure_sample_surface(resolution)
        size = self.render_size

        try:
            width = self.measure(char)
            if width > 0:
                if self._anchor:
                    self._measure_draw.text((0, size / 2), char, font=self.font, fill=_INK, anchor=self._anchor)
                else:
                    self._measure_draw.text((0, size // 4), char, font=self.font, fill=_INK)

                glyph = self._measure.crop((0, 0, width, size)).resize(
                    (resolution.cols, resolution.rows),
                    Image.Resampling.BOX,
                )
                self._sample.paste(glyph, (0, 0))

            alpha = np.asarray(self._sample.getchannel("A"), dtype=np.float32) / 255.0
        finally:
            self._clear()

        return alpha.reshape(-1)
