"""
Image-to-Text-Art Renderer

Converts raster images into grids of monospace glyphs whose local
brightness approximates the image:
- Glyph brightness profiles rasterized incrementally on a background thread
- Brightness field and glyph matching as PyTorch kernels (CUDA / MPS / CPU)
- Named charsets, text/HTML/PNG export

Example:
    >>> from ascii_shade import image_to_text
    >>> image_to_text("photo.jpg", char_width=100).display()
"""

__version__ = "0.1.0"

from .cache import GlyphProfileCache, ProfileSnapshot
from .charsets import get_charset, list_charsets
from .config import RenderConfig
from .model import BrightnessBounds, SamplingResolution
from .pipeline import ImageToText, image_to_text
from .rasterizer import GlyphRasterizer
from .result import TextArtResult

__all__ = [
    "BrightnessBounds",
    "GlyphProfileCache",
    "GlyphRasterizer",
    "ImageToText",
    "ProfileSnapshot",
    "RenderConfig",
    "SamplingResolution",
    "TextArtResult",
    "get_charset",
    "image_to_text",
    "list_charsets",
]
