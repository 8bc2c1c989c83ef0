"""
Rasterization request/response messages exchanged between the glyph cache
and the background render worker.
"""

from dataclasses import dataclass, field
from typing import Tuple

import numpy as np

from .model import BrightnessBounds, SamplingResolution


@dataclass(frozen=True)
class RenderRequest:
    """Characters to rasterize under one resolution.

    ``generation`` increases every time the cache switches resolution, so
    results can be matched to the request epoch that produced them even if
    the resolution later switches back to an equal value.
    """
    characters: Tuple[str, ...]
    resolution: SamplingResolution
    generation: int = 0


@dataclass(frozen=True)
class RenderResponse:
    """One rasterized batch. ``bounds`` cover this batch only."""
    resolution: SamplingResolution
    generation: int
    bounds: BrightnessBounds = field(default_factory=BrightnessBounds.empty)
    characters: Tuple[Tuple[str, np.ndarray], ...] = ()

    def __len__(self) -> int:
        return len(self.characters)
