"""
Background Render Loop

A single worker thread drains rasterization requests in fixed-size batches
and posts each finished batch to a result channel. The host thread never
waits on it: requests are dropped into an inbox queue and results are picked
up whenever the host next looks.

Between batches the worker yields and reads any requests that arrived while
it was busy. If one of them switched the cache to a new generation (a new
sampling resolution) the batch it just finished is discarded, since its
profiles were sampled on a superseded grid.
"""

import logging
import queue
import threading
import time
from collections import deque
from typing import Optional, Sequence

import numpy as np

from .model import BrightnessBounds, SamplingResolution
from .protocol import RenderRequest, RenderResponse

logger = logging.getLogger(__name__)

# Characters rasterized per batch before the worker yields
BATCH_SIZE = 128

# Pending request messages before submit() compacts the inbox
INBOX_SIZE = 256

_STOP = object()


def rasterize_batch(
    rasterizer,
    characters: Sequence[str],
    resolution: SamplingResolution,
    generation: int = 0,
) -> RenderResponse:
    """
    Rasterize ``characters`` and collect the batch's brightness bounds.

    A character that fails to rasterize still gets an all-zero profile so
    it is marked ready and never retried.
    """
    bounds = BrightnessBounds.empty()
    profiles = []

    for char in characters:
        try:
            profile = np.asarray(rasterizer.rasterize(char, resolution), dtype=np.float32).reshape(-1)
            if profile.size != resolution.size:
                raise ValueError(f"expected {resolution.size} samples, got {profile.size}")
        except Exception as e:
            logger.warning("Rasterizing %r at %s failed: %s", char, resolution, e)
            profile = np.zeros(resolution.size, dtype=np.float32)

        profile = np.clip(profile, 0.0, 1.0)
        bounds = bounds.merge(BrightnessBounds.from_values(profile))
        profiles.append((char, profile))

    return RenderResponse(
        resolution=resolution,
        generation=generation,
        bounds=bounds,
        characters=tuple(profiles),
    )


class RenderWorker:
    """
    Rasterizes queued characters on a background thread.

    The thread starts on the first ``submit`` and blocks on the inbox while
    there is nothing to do. The host side never blocks: when the inbox is
    full, messages for superseded generations are discarded and the rest
    are folded into a single request.

    Args:
        rasterizer: Object with ``rasterize(char, resolution) -> vector``
        batch_size: Characters per batch
        results: Result channel; a fresh queue is created if omitted
    """

    def __init__(
        self,
        rasterizer,
        batch_size: int = BATCH_SIZE,
        results: Optional[queue.Queue] = None,
    ):
        self.rasterizer = rasterizer
        self.batch_size = batch_size
        self.inbox: queue.Queue = queue.Queue(maxsize=INBOX_SIZE)
        self.results: queue.Queue = results if results is not None else queue.Queue()

        # Only touched by the worker thread
        self._backlog: deque = deque()
        self._queued: set = set()
        self._resolution: Optional[SamplingResolution] = None
        self._generation: Optional[int] = None

        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._closed = False

        self.batches_posted = 0
        self.batches_dropped = 0

    # ------------------------------------------------------------------ #
    # Host side
    # ------------------------------------------------------------------ #

    def submit(self, request: RenderRequest):
        """Queue a request; starts the worker thread if it is not running."""
        with self._lock:
            if self._closed:
                raise RuntimeError("RenderWorker is closed")
            if self._thread is None or not self._thread.is_alive():
                self._thread = threading.Thread(
                    target=self._run, name="GlyphRenderWorker", daemon=True
                )
                self._thread.start()
            try:
                self.inbox.put_nowait(request)
            except queue.Full:
                self.inbox.put_nowait(self._compact(request))

    def _compact(self, request: RenderRequest) -> RenderRequest:
        """
        Empty the inbox and merge every message of ``request``'s generation
        into one request. Older generations would be discarded by the worker
        anyway.
        """
        characters = []
        for message in self._take_all():
            if message is not _STOP and message.generation == request.generation:
                characters.extend(message.characters)
        characters.extend(request.characters)

        logger.debug("Inbox full, compacted to %d characters at %s", len(characters), request.resolution)
        return RenderRequest(tuple(dict.fromkeys(characters)), request.resolution, request.generation)

    def _take_all(self) -> list:
        messages = []
        while True:
            try:
                messages.append(self.inbox.get_nowait())
            except queue.Empty:
                return messages

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def close(self, timeout: float = 1.0):
        """Stop the worker thread. Pending requests are discarded."""
        with self._lock:
            self._closed = True
            thread = self._thread
            if thread is not None and thread.is_alive():
                try:
                    self.inbox.put_nowait(_STOP)
                except queue.Full:
                    self._take_all()
                    self.inbox.put_nowait(_STOP)
        if thread is not None:
            thread.join(timeout=timeout)

    # ------------------------------------------------------------------ #
    # Worker thread
    # ------------------------------------------------------------------ #

    def _run(self):
        while True:
            if not self._backlog:
                if not self._accept(self.inbox.get()):
                    return
            if not self._drain_inbox():
                return
            if self._backlog and not self._process_batch():
                return

    def _accept(self, message) -> bool:
        """Apply one inbox message. Returns False on the stop sentinel."""
        if message is _STOP:
            return False

        if message.generation != self._generation:
            if self._backlog:
                logger.debug(
                    "Resolution changed to %s, discarding %d queued characters",
                    message.resolution, len(self._backlog),
                )
            self._generation = message.generation
            self._resolution = message.resolution
            self._backlog.clear()
            self._queued.clear()

        for char in message.characters:
            if char not in self._queued:
                self._queued.add(char)
                self._backlog.append(char)
        return True

    def _drain_inbox(self) -> bool:
        while True:
            try:
                message = self.inbox.get_nowait()
            except queue.Empty:
                return True
            if not self._accept(message):
                return False

    def _process_batch(self) -> bool:
        count = min(self.batch_size, len(self._backlog))
        chars = [self._backlog.popleft() for _ in range(count)]
        generation, resolution = self._generation, self._resolution

        response = rasterize_batch(self.rasterizer, chars, resolution, generation)

        # Let the host run, then see whether it moved on while we worked
        time.sleep(0)
        alive = self._drain_inbox()

        if self._generation != generation:
            self.batches_dropped += 1
            logger.debug("Dropping stale batch of %d glyphs rendered at %s", len(response), resolution)
        else:
            self.batches_posted += 1
            self.results.put(response)
        return alive
