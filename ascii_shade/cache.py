"""
Glyph Profile Cache

Owns the brightness profile of every requested character, the running
brightness bounds and the generation counter that ties worker results to
the sampling resolution they were computed at.

All cache state is mutated on the host thread only: the render worker posts
finished batches to its result channel and ``pump()`` merges them here.
"""

import logging
import queue
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .charsets import unique_characters
from .model import BrightnessBounds, SamplingResolution
from .protocol import RenderRequest, RenderResponse
from .rasterizer import GlyphRasterizer
from .worker import BATCH_SIZE, RenderWorker

logger = logging.getLogger(__name__)

DEFAULT_RESOLUTION = SamplingResolution(1, 2)

ResolutionLike = Union[SamplingResolution, Sequence[int]]


@dataclass(frozen=True)
class ProfileSnapshot:
    """
    Immutable view of the ready profiles for one alphabet.

    Attributes:
        characters: Ready characters, in alphabet order
        profiles: (len(characters), cols*rows) float32 matrix
        bounds: Brightness bounds at snapshot time
        resolution: Resolution the profiles were sampled at
        version: Cache version; changes whenever profiles or bounds change
    """
    characters: Tuple[str, ...]
    profiles: np.ndarray
    bounds: BrightnessBounds
    resolution: SamplingResolution
    version: int

    def __len__(self) -> int:
        return len(self.characters)

    @property
    def is_empty(self) -> bool:
        return not self.characters


class GlyphProfileCache:
    """
    Incremental, non-blocking cache of glyph brightness profiles.

    Example:
        >>> cache = GlyphProfileCache()
        >>> cache.request_characters(" .:#", (1, 2))
        [' ', '.', ':', '#']
        >>> cache.wait_until_ready(timeout=5)
        True
        >>> [char for char, profile in cache.view(" .:#")]
        [' ', '.', ':', '#']

    Pass either a ``rasterizer`` (wrapped in a new worker) or a ready
    ``worker``, not both.
    """

    def __init__(
        self,
        rasterizer=None,
        worker: Optional[RenderWorker] = None,
        font_path: Optional[str] = None,
        batch_size: int = BATCH_SIZE,
    ):
        if worker is not None and rasterizer is not None:
            raise ValueError("Pass either a rasterizer or a worker, not both")
        if worker is None:
            worker = RenderWorker(rasterizer or GlyphRasterizer(font_path), batch_size=batch_size)
        self._worker = worker

        self._profiles: Dict[str, Optional[np.ndarray]] = {}
        self._bounds = BrightnessBounds.empty()
        self._resolution = DEFAULT_RESOLUTION
        self._generation = 0
        self._version = 0
        self._listeners: List[Callable[[RenderResponse], None]] = []

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def resolution(self) -> SamplingResolution:
        return self._resolution

    @property
    def bounds(self) -> BrightnessBounds:
        return self._bounds

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def version(self) -> int:
        return self._version

    @property
    def worker(self) -> RenderWorker:
        return self._worker

    @property
    def pending(self) -> List[str]:
        return [c for c, p in self._profiles.items() if p is None]

    def is_ready(self, char: str) -> bool:
        return self._profiles.get(char) is not None

    def add_listener(self, callback: Callable[[RenderResponse], None]):
        """Call ``callback(response)`` after every merged batch."""
        self._listeners.append(callback)

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    def request_characters(self, chars: Iterable[str], resolution: ResolutionLike) -> List[str]:
        """
        Make sure every character of ``chars`` is ready or on its way.

        Returns immediately. A resolution different from the cached one
        drops every profile and resets the bounds first.

        Args:
            chars: Alphabet string; line breaks are ignored
            resolution: Sampling resolution (cols, rows)

        Returns:
            The characters newly sent for rasterization
        """
        try:
            resolution = SamplingResolution.coerce(resolution)
        except (TypeError, ValueError):
            logger.debug("Ignoring request with malformed resolution %r", resolution)
            return []
        if not resolution.is_valid:
            logger.debug("Ignoring request with degenerate resolution %s", resolution)
            return []

        changed = resolution != self._resolution
        if changed:
            self._reset(resolution)

        new_chars = [c for c in unique_characters(chars) if c not in self._profiles]
        for char in new_chars:
            self._profiles[char] = None

        # A resolution change is sent even without characters so the worker drops its backlog
        if new_chars or changed:
            self._worker.submit(RenderRequest(tuple(new_chars), resolution, self._generation))
        return new_chars

    def _reset(self, resolution: SamplingResolution):
        logger.debug(
            "Sampling resolution %s -> %s, clearing %d profiles",
            self._resolution, resolution, len(self._profiles),
        )
        self._profiles = {}
        self._bounds = BrightnessBounds.empty()
        self._resolution = resolution
        self._generation += 1
        self._version += 1

    # ------------------------------------------------------------------ #
    # Results
    # ------------------------------------------------------------------ #

    def pump(self) -> int:
        """Merge every result the worker has posted so far. Returns batches merged."""
        merged = 0
        while True:
            try:
                response = self._worker.results.get_nowait()
            except queue.Empty:
                return merged
            merged += self._merge(response)

    def _merge(self, response: RenderResponse) -> bool:
        if response.generation != self._generation:
            logger.debug("Dropping %d stale profiles rendered at %s", len(response), response.resolution)
            return False

        for char, profile in response.characters:
            self._profiles[char] = profile
        self._bounds = self._bounds.merge(response.bounds)
        self._version += 1

        for listener in list(self._listeners):
            listener(response)
        return True

    def _has_pending(self, chars: Optional[Iterable[str]]) -> bool:
        if chars is None:
            return any(p is None for p in self._profiles.values())
        return any(c in self._profiles and self._profiles[c] is None for c in unique_characters(chars))

    def wait_until_ready(self, chars: Optional[Iterable[str]] = None, timeout: Optional[float] = None) -> bool:
        """
        Block until no requested character (of ``chars``, if given) is pending.

        Returns:
            False if ``timeout`` seconds passed first
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        self.pump()
        while self._has_pending(chars):
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return False
            try:
                response = self._worker.results.get(timeout=remaining)
            except queue.Empty:
                return False
            self._merge(response)
        return True

    # ------------------------------------------------------------------ #
    # Views
    # ------------------------------------------------------------------ #

    def view(self, chars: Iterable[str]) -> List[Tuple[str, Optional[np.ndarray]]]:
        """Ordered ``(character, profile-or-None)`` pairs for ``chars``."""
        self.pump()
        return [(c, self._profiles.get(c)) for c in unique_characters(chars)]

    def snapshot(self, chars: Iterable[str]) -> ProfileSnapshot:
        """Ready profiles of ``chars`` only; pending characters are left out."""
        ready = [(c, p) for c, p in self.view(chars) if p is not None]
        if ready:
            profiles = np.stack([p for _, p in ready]).astype(np.float32)
        else:
            profiles = np.zeros((0, self._resolution.size), dtype=np.float32)

        return ProfileSnapshot(
            characters=tuple(c for c, _ in ready),
            profiles=profiles,
            bounds=self._bounds,
            resolution=self._resolution,
            version=self._version,
        )

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def close(self):
        self._worker.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
