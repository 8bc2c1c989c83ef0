"""
Sampling Resolution and Brightness Bounds

The two small value types shared by the glyph cache and the matching kernels.
"""

from dataclasses import dataclass
from typing import NamedTuple, Sequence, Union

import numpy as np


class SamplingResolution(NamedTuple):
    """Number of brightness samples taken per glyph cell, in each axis."""
    cols: int
    rows: int

    @classmethod
    def coerce(cls, value: Union["SamplingResolution", Sequence[int]]) -> "SamplingResolution":
        """Build a resolution from any ``(cols, rows)`` pair."""
        if isinstance(value, cls):
            return value
        cols, rows = value
        return cls(int(cols), int(rows))

    @property
    def is_valid(self) -> bool:
        return self.cols >= 1 and self.rows >= 1

    @property
    def size(self) -> int:
        """Length of a profile sampled at this resolution."""
        return self.cols * self.rows

    def __str__(self) -> str:
        return f"{self.cols}x{self.rows}"


@dataclass(frozen=True)
class BrightnessBounds:
    """
    Running (min, max) of observed glyph brightness.

    The empty state is the inverted pair (1, 0): any real sample widens it
    into a proper range. Bounds are immutable; ``merge`` returns a new value
    that never shrinks either end.
    """
    min: float = 1.0
    max: float = 0.0

    @classmethod
    def empty(cls) -> "BrightnessBounds":
        return cls(1.0, 0.0)

    @classmethod
    def from_values(cls, values) -> "BrightnessBounds":
        """Bounds covering every sample in ``values`` (empty if there are none)."""
        arr = np.asarray(values, dtype=np.float32)
        if arr.size == 0:
            return cls.empty()
        return cls(float(arr.min()), float(arr.max()))

    @property
    def is_empty(self) -> bool:
        return self.min > self.max

    @property
    def is_degenerate(self) -> bool:
        """True when there is no range to normalise into."""
        return self.max <= self.min

    @property
    def span(self) -> float:
        return 0.0 if self.is_degenerate else self.max - self.min

    def merge(self, other: "BrightnessBounds") -> "BrightnessBounds":
        return BrightnessBounds(min(self.min, other.min), max(self.max, other.max))

    def normalize(self, values):
        """
        Map ``values`` linearly into [0, 1] using these bounds.

        Works on numpy arrays and torch tensors alike. Degenerate bounds map
        everything to 0.
        """
        if self.is_degenerate:
            return values * 0
        return ((values - self.min) / (self.max - self.min)).clip(0.0, 1.0)

    def as_tuple(self):
        return (self.min, self.max)
