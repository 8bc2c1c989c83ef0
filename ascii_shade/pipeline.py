"""
Image-to-Text Pipeline

Wires the glyph profile cache to the two matching kernels:

    alphabet + resolution --> GlyphProfileCache --> ProfileSnapshot --+
                                                                      v
    image + output size ----> BrightnessKernel --> field --> GlyphMatcherKernel
                                                                      |
                                             text <-- assemble_text <-+

A render is a pure function of (image, output size, resolution, ready
profile snapshot, inversion), so the last result is memoised on exactly
those inputs. Renders never wait for pending glyphs; they use whatever is
ready and simply re-render once more glyphs arrive.

This is the main entry point for the library.
"""

import logging
import time
from dataclasses import replace
from typing import Optional, Sequence, Tuple, Union

import numpy as np
import torch

from .assembler import assemble_text
from .cache import GlyphProfileCache, ProfileSnapshot
from .charsets import get_charset, unique_characters
from .config import RenderConfig
from .kernels import BrightnessKernel, GlyphMatcherKernel, select_device, to_numpy
from .model import SamplingResolution
from .preprocessing import (
    ImageLike,
    enhance_contrast,
    fit_output_size,
    image_size,
    load_image,
    to_rgba_array,
)
from .result import TextArtResult, create_result

logger = logging.getLogger(__name__)


class ImageToText:
    """
    Image-to-text-art renderer.

    Example:
        >>> converter = ImageToText(charset="ascii_dense")
        >>> result = converter.convert("photo.jpg", char_width=100)
        >>> result.display()
        >>> result.save("photo.html")
    """

    def __init__(
        self,
        config: Optional[RenderConfig] = None,
        rasterizer=None,
        charset: Optional[str] = None,
        **overrides,
    ):
        """
        Args:
            config: Render configuration (defaults to RenderConfig.from_env())
            rasterizer: Glyph rasterizer; a font-based one is built if omitted
            charset: Named charset to use as the alphabet (see list_charsets())
            **overrides: Any RenderConfig field
        """
        config = config or RenderConfig.from_env()
        if charset and "alphabet" not in overrides:
            overrides["alphabet"] = get_charset(charset)
        self.config = replace(config, **overrides) if overrides else config
        self.charset_name = charset

        self.cache = GlyphProfileCache(rasterizer=rasterizer, font_path=self.config.font_path)

        self.device = select_device(self.config.device)
        self._brightness = BrightnessKernel(self.device)
        self._matcher = GlyphMatcherKernel(self.device)

        self._source = None
        self._source_contrast = False
        self._source_tensor: Optional[torch.Tensor] = None
        self._memo_key = None
        self._memo_text: Optional[str] = None

    def set_device(self, device: Union[str, torch.device]):
        """Move the kernels to another device, disposing the old ones."""
        self._brightness.dispose()
        self._matcher.dispose()
        self.device = select_device(device)
        self._brightness = BrightnessKernel(self.device)
        self._matcher = GlyphMatcherKernel(self.device)
        self._source = self._source_tensor = None
        self._memo_key = self._memo_text = None

    # ------------------------------------------------------------------ #
    # Stages
    # ------------------------------------------------------------------ #

    def _image_tensor(self, image) -> torch.Tensor:
        contrast = bool(self.config.enhance_contrast)
        if image is not self._source or contrast != self._source_contrast:
            rgba = to_rgba_array(image)
            if contrast:
                rgba = enhance_contrast(rgba)
            self._source_tensor = torch.from_numpy(np.ascontiguousarray(rgba)).to(self.device)
            self._source, self._source_contrast = image, contrast
        return self._source_tensor

    def brightness_field(
        self,
        image,
        output_size: Tuple[int, int],
        snapshot: ProfileSnapshot,
        invert: bool = False,
    ) -> torch.Tensor:
        """Brightness field of ``image`` for an (columns, rows) output grid."""
        cols, rows = snapshot.resolution
        field_size = (output_size[0] * cols, output_size[1] * rows)
        width, height = image_size(image)
        scale = (width / field_size[0], height / field_size[1])
        return self._brightness(
            self._image_tensor(image),
            field_size,
            scale,
            invert=invert,
            bounds=snapshot.bounds,
        )

    def match(
        self,
        image,
        output_size: Tuple[int, int],
        snapshot: ProfileSnapshot,
        invert: bool = False,
    ) -> np.ndarray:
        """(rows, columns) grid of indices into ``snapshot.characters``."""
        field = self.brightness_field(image, output_size, snapshot, invert)
        grid = self._matcher(
            field,
            snapshot.resolution,
            snapshot.profiles,
            len(snapshot),
            bounds=snapshot.bounds,
        )
        return to_numpy(grid)

    # ------------------------------------------------------------------ #
    # Rendering
    # ------------------------------------------------------------------ #

    def render(
        self,
        image: Optional[ImageLike],
        output_size: Sequence[int],
        alphabet: Optional[str] = None,
        resolution: Optional[Sequence[int]] = None,
        invert: Optional[bool] = None,
    ) -> str:
        """
        Render ``image`` into an output grid of ``(columns, rows)`` glyphs.

        Missing glyph profiles are requested but not waited for: only glyphs
        that are already rasterized take part in this render.

        Args:
            image: Source image (None renders nothing)
            output_size: (columns, rows) of the output grid
            alphabet: Candidate glyphs (defaults to config.alphabet)
            resolution: Sampling resolution (defaults to config.resolution)
            invert: Invert luminance (defaults to config.invert)

        Returns:
            Text block, or "" when there is nothing to render
        """
        alphabet = self.config.alphabet if alphabet is None else alphabet
        resolution = self.config.resolution if resolution is None else resolution
        invert = self.config.invert if invert is None else invert

        try:
            resolution = SamplingResolution.coerce(resolution)
        except (TypeError, ValueError):
            return ""
        if not resolution.is_valid:
            return ""

        self.cache.request_characters(alphabet, resolution)

        image = load_image(image)
        columns, rows = int(output_size[0]), int(output_size[1])
        width, height = image_size(image)
        if width <= 0 or height <= 0 or columns <= 0 or rows <= 0:
            return ""

        snapshot = self.cache.snapshot(alphabet)
        if snapshot.is_empty:
            return ""

        key = (
            columns, rows, snapshot.resolution, snapshot.characters,
            snapshot.version, bool(invert), self.config.enhance_contrast,
        )
        if image is self._source and key == self._memo_key:
            return self._memo_text

        grid = self.match(image, (columns, rows), snapshot, bool(invert))
        text = assemble_text(grid, snapshot.characters)

        self._memo_key, self._memo_text = key, text
        return text

    def convert(
        self,
        image: ImageLike,
        char_width: int = 80,
        char_height: Optional[int] = None,
        wait: bool = True,
        timeout: Optional[float] = 30.0,
        **render_kwargs,
    ) -> TextArtResult:
        """
        Convert an image to text art, sizing the grid from the image's aspect ratio.

        Args:
            image: PIL Image, array, tensor or path to image file
            char_width: Output width in characters
            char_height: Output height in characters (auto if None)
            wait: Wait for every glyph of the alphabet to be rasterized first
            timeout: Seconds to wait for glyphs
            **render_kwargs: alphabet, resolution, invert (see render())

        Returns:
            TextArtResult with render metadata
        """
        start_time = time.time()
        image = load_image(image)
        alphabet = render_kwargs.get("alphabet")
        if alphabet is None:
            alphabet = self.config.alphabet
        resolution = render_kwargs.get("resolution")
        if resolution is None:
            resolution = self.config.resolution

        if wait:
            self.cache.request_characters(alphabet, resolution)
            if not self.cache.wait_until_ready(alphabet, timeout=timeout):
                logger.warning("Timed out waiting for glyphs, rendering with %d pending", len(self.cache.pending))
        glyph_time = time.time() - start_time

        output_size = fit_output_size(image_size(image), char_width, char_height, self.config.char_aspect)

        map_start = time.time()
        text = self.render(image, output_size, **render_kwargs)
        map_time = time.time() - map_start

        return create_result(
            text=text,
            source_image=image if hasattr(image, "convert") else None,
            charset=self.charset_name,
            glyphs=len(unique_characters(alphabet)),
            resolution=f"{resolution[0]}x{resolution[1]}",
            output_size=f"{output_size[0]}x{output_size[1]}",
            device=str(self.device),
            glyph_time=f"{glyph_time:.2f}s",
            mapping_time=f"{map_time:.2f}s",
        )

    def close(self):
        self.cache.close()
        self._brightness.dispose()
        self._matcher.dispose()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


# Convenience function for quick usage
def image_to_text(
    image: ImageLike,
    char_width: int = 80,
    charset: str = "ascii_standard",
    **kwargs,
) -> TextArtResult:
    """
    Quick function to convert an image to text art.

    Args:
        image: PIL Image or path to image
        char_width: Output width in characters
        charset: Character set name
        **kwargs: RenderConfig fields, or convert() arguments

    Returns:
        TextArtResult with the rendered text
    """
    convert_kwargs = {k: kwargs.pop(k) for k in ("char_height", "wait", "timeout") if k in kwargs}
    with ImageToText(charset=charset, **kwargs) as converter:
        return converter.convert(image, char_width=char_width, **convert_kwargs)
