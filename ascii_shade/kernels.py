"""
GPU Matching Kernels

Two data-parallel stages built on PyTorch (works with CUDA, and with MPS on
Apple Silicon):

1. BrightnessKernel: samples the source image once per sub-cell position
   and turns each sample into a normalised luminance value.
2. GlyphMatcherKernel: compares every output cell's sub-samples with every
   candidate glyph profile and keeps the closest glyph.

Every output position depends only on the inputs, never on another
position, so results are identical whatever the device or chunking.

Distance policy: sum of squared differences between the field samples and
the bounds-normalised profile samples.
"""

from typing import Optional, Sequence, Tuple, Union

import numpy as np
import torch

from .model import BrightnessBounds, SamplingResolution

# Rec. 709 luma coefficients
LUMA_WEIGHTS = (0.2126, 0.7152, 0.0722)

# Smallest candidate loop bound the matcher compiles for
MIN_LOOP_BOUND = 16

# Max elements of the (cells x candidates x samples) difference tensor per chunk
_CHUNK_ELEMENTS = 1 << 24


def select_device(device: Union[str, torch.device] = "auto") -> torch.device:
    """Resolve "auto" to MPS, then CUDA, then CPU."""
    if isinstance(device, torch.device):
        return device
    if device == "auto":
        if torch.backends.mps.is_available():
            return torch.device("mps")
        elif torch.cuda.is_available():
            return torch.device("cuda")
        else:
            return torch.device("cpu")
    return torch.device(device)


def next_loop_bound(profile_count: int, floor: int = MIN_LOOP_BOUND) -> int:
    """Round ``profile_count`` up to a power of two, never below ``floor``."""
    bound = max(int(floor), 1)
    while bound < profile_count:
        bound *= 2
    return bound


class BrightnessKernel:
    """
    Downsamples an RGBA image into a brightness field.

    Field position (x, y) reads source pixel
    (floor(scale_x * x), floor(scale_y * y)) and computes
    ``L = (0.2126 r + 0.7152 g + 0.0722 b) * a``, optionally inverted to
    ``1 - L``, then normalises it into [0, 1] with the glyph brightness
    bounds.

    The nearest-pixel index tables are rebuilt only when the field size,
    scale or image size change.
    """

    def __init__(self, device: Union[str, torch.device] = "auto"):
        self.device = select_device(device)
        self.field_size: Tuple[int, int] = (0, 0)
        self.recompilations = 0
        self._plan = None
        self._xs: Optional[torch.Tensor] = None
        self._ys: Optional[torch.Tensor] = None

    def configure(
        self,
        field_size: Tuple[int, int],
        scale: Tuple[float, float],
        image_size: Tuple[int, int],
    ) -> bool:
        """Prepare index tables for a (width, height) field. Returns True if rebuilt."""
        plan = (tuple(field_size), tuple(scale), tuple(image_size))
        if plan == self._plan:
            return False

        field_w, field_h = field_size
        image_w, image_h = image_size
        self._xs = self._nearest(field_w, scale[0], image_w)
        self._ys = self._nearest(field_h, scale[1], image_h)
        self.field_size = (field_w, field_h)
        self._plan = plan
        self.recompilations += 1
        return True

    def _nearest(self, count: int, scale: float, limit: int) -> torch.Tensor:
        positions = torch.arange(count, dtype=torch.float64) * scale
        return positions.floor().long().clamp_(0, limit - 1).to(self.device)

    def dispose(self):
        self._plan = None
        self._xs = self._ys = None

    def __call__(
        self,
        image: torch.Tensor,
        field_size: Tuple[int, int],
        scale: Tuple[float, float],
        invert: bool = False,
        bounds: Optional[BrightnessBounds] = None,
    ) -> torch.Tensor:
        """
        Compute the brightness field.

        Args:
            image: (H, W, 4) float tensor, RGBA in [0, 1]
            field_size: (width, height) of the field
            scale: (image_w / field_w, image_h / field_h)
            invert: Use ``1 - L`` instead of ``L``
            bounds: Glyph brightness bounds to normalise with

        Returns:
            (height, width) float32 tensor
        """
        image = image.to(device=self.device, dtype=torch.float32)
        image_h, image_w = image.shape[:2]
        self.configure(field_size, scale, (image_w, image_h))

        pixels = image.index_select(0, self._ys).index_select(1, self._xs)
        r, g, b, a = pixels.unbind(dim=-1)
        value = (r * LUMA_WEIGHTS[0] + g * LUMA_WEIGHTS[1] + b * LUMA_WEIGHTS[2]) * a

        if invert:
            value = 1.0 - value
        if bounds is not None:
            value = bounds.normalize(value)
        return value


class GlyphMatcherKernel:
    """
    Assigns each output cell the index of its closest glyph profile.

    Candidate profiles live in a padded buffer of ``loop_bound`` rows. The
    bound is a power of two (at least MIN_LOOP_BOUND), so the buffer is only
    reallocated when the candidate count crosses a power of two or the
    sample count / output size changes. Padding rows never win: their
    distance is +inf.

    Ties go to the lowest candidate index.
    """

    def __init__(self, device: Union[str, torch.device] = "auto", min_loop_bound: int = MIN_LOOP_BOUND):
        self.device = select_device(device)
        self.min_loop_bound = min_loop_bound
        self.output_size: Tuple[int, int] = (0, 0)
        self.loop_bound = 0
        self.sample_count = 0
        self.recompilations = 0
        self._profiles: Optional[torch.Tensor] = None
        self._penalty: Optional[torch.Tensor] = None

    def configure(self, output_size: Tuple[int, int], profile_count: int, sample_count: int) -> bool:
        """Re-derive the loop bound. Returns True if the buffers were rebuilt."""
        output_size = tuple(output_size)
        bound = next_loop_bound(profile_count, self.min_loop_bound)
        if (
            self._profiles is not None
            and output_size == self.output_size
            and bound == self.loop_bound
            and sample_count == self.sample_count
        ):
            return False

        self.dispose()
        self.output_size = output_size
        self.loop_bound = bound
        self.sample_count = sample_count
        self._profiles = torch.zeros((bound, sample_count), dtype=torch.float32, device=self.device)
        self._penalty = torch.zeros(bound, dtype=torch.float32, device=self.device)
        self.recompilations += 1
        return True

    def dispose(self):
        self._profiles = None
        self._penalty = None

    def __call__(
        self,
        field: torch.Tensor,
        resolution: Union[SamplingResolution, Sequence[int]],
        profiles,
        profile_count: int,
        bounds: Optional[BrightnessBounds] = None,
    ) -> torch.Tensor:
        """
        Match glyphs to every output cell.

        Args:
            field: (out_h * rows, out_w * cols) brightness field
            resolution: Sampling resolution (cols, rows)
            profiles: (>= profile_count, cols * rows) candidate profiles
            profile_count: Number of candidates to consider
            bounds: Glyph brightness bounds to normalise profiles with

        Returns:
            (out_h, out_w) long tensor of candidate indices
        """
        cols, rows = SamplingResolution.coerce(resolution)
        field = field.to(device=self.device, dtype=torch.float32)
        out_h, out_w = field.shape[0] // rows, field.shape[1] // cols
        if profile_count <= 0 or out_h == 0 or out_w == 0:
            return torch.zeros((out_h, out_w), dtype=torch.long, device=self.device)

        samples = cols * rows
        self.configure((out_w, out_h), profile_count, samples)

        candidates = torch.as_tensor(profiles, dtype=torch.float32, device=self.device)[:profile_count]
        if bounds is not None:
            candidates = bounds.normalize(candidates)
        self._profiles.zero_()
        self._profiles[:profile_count] = candidates.reshape(profile_count, samples)
        self._penalty.fill_(float("inf"))
        self._penalty[:profile_count] = 0.0

        # (out_h, rows, out_w, cols) -> one row of samples per cell, p = x + y * cols
        cells = (
            field[: out_h * rows, : out_w * cols]
            .reshape(out_h, rows, out_w, cols)
            .permute(0, 2, 1, 3)
            .reshape(out_h * out_w, samples)
        )

        n_cells = cells.shape[0]
        chunk = max(1, _CHUNK_ELEMENTS // (self.loop_bound * samples))
        best = torch.empty(n_cells, dtype=torch.long, device=self.device)
        for start in range(0, n_cells, chunk):
            diff = cells[start:start + chunk, None, :] - self._profiles[None, :, :]
            distance = (diff * diff).sum(dim=-1) + self._penalty
            best[start:start + chunk] = distance.argmin(dim=1)

        return best.reshape(out_h, out_w)


def to_numpy(tensor: torch.Tensor) -> np.ndarray:
    return tensor.detach().cpu().numpy()
