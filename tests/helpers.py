"""
Stub rasterizers shared by the cache, worker and pipeline tests.
"""

import threading

import numpy as np

from ascii_shade.model import SamplingResolution

TIMEOUT = 10

# '.' fully transparent, '#' fully opaque
DOTS = {".": 0.0, "#": 1.0}


class ConstantRasterizer:
    """Every glyph is a uniform profile; value looked up per character."""

    def __init__(self, values=None, default=0.5):
        self.values = dict(values or {})
        self.default = default
        self.calls = []

    def rasterize(self, char, resolution):
        self.calls.append(char)
        resolution = SamplingResolution.coerce(resolution)
        return np.full(resolution.size, self.values.get(char, self.default), dtype=np.float32)


class BlockingRasterizer(ConstantRasterizer):
    """Blocks on the first call until released."""

    def __init__(self, values=None, default=0.5):
        super().__init__(values, default)
        self.started = threading.Event()
        self.release = threading.Event()

    def rasterize(self, char, resolution):
        if not self.started.is_set():
            self.started.set()
            self.release.wait(TIMEOUT)
        return super().rasterize(char, resolution)


class GatedRasterizer(ConstantRasterizer):
    """Holds back one character until the gate opens."""

    def __init__(self, gated, values=DOTS):
        super().__init__(values)
        self.gated = gated
        self.gate = threading.Event()

    def rasterize(self, char, resolution):
        if char == self.gated:
            self.gate.wait(TIMEOUT)
        return super().rasterize(char, resolution)
