"""
Glyph profile cache: deduplication, resolution resets, stale results and views.
"""

import queue
import time
import unittest

import numpy as np

from ascii_shade.cache import GlyphProfileCache
from ascii_shade.model import BrightnessBounds, SamplingResolution
from ascii_shade.protocol import RenderResponse
from ascii_shade.worker import INBOX_SIZE, RenderWorker, rasterize_batch

from helpers import TIMEOUT, BlockingRasterizer, ConstantRasterizer


class ManualWorker:
    """Records requests; the test decides what gets posted back and when."""

    def __init__(self):
        self.requests = []
        self.results = queue.Queue()

    def submit(self, request):
        self.requests.append(request)

    def respond(self, request, rasterizer, chars=None):
        self.results.put(rasterize_batch(
            rasterizer,
            request.characters if chars is None else chars,
            request.resolution,
            request.generation,
        ))

    def close(self):
        pass


class TestCacheWithWorkerThread(unittest.TestCase):

    def setUp(self):
        self.rasterizer = ConstantRasterizer({".": 0.1, "#": 0.9})
        self.cache = GlyphProfileCache(rasterizer=self.rasterizer)

    def tearDown(self):
        self.cache.close()

    def test_profiles_become_ready(self):
        self.cache.request_characters(".#", (2, 3))
        self.assertTrue(self.cache.wait_until_ready(timeout=TIMEOUT))

        view = self.cache.view(".#")
        self.assertEqual([c for c, _ in view], [".", "#"])
        for _, profile in view:
            self.assertEqual(profile.shape, (6,))
        self.assertAlmostEqual(self.cache.bounds.min, 0.1, places=6)
        self.assertAlmostEqual(self.cache.bounds.max, 0.9, places=6)

    def test_same_request_twice_is_not_rerasterized(self):
        self.assertEqual(self.cache.request_characters("ab.", (1, 2)), ["a", "b", "."])
        self.assertTrue(self.cache.wait_until_ready(timeout=TIMEOUT))
        self.assertEqual(self.cache.request_characters("ab.", (1, 2)), [])
        self.assertEqual(self.cache.request_characters(".ba", [1, 2]), [])
        self.assertTrue(self.cache.wait_until_ready(timeout=TIMEOUT))
        self.assertEqual(sorted(self.rasterizer.calls), [".", "a", "b"])

    def test_resolution_change_rerasterizes_at_new_size(self):
        self.cache.request_characters(".#", (1, 2))
        self.assertTrue(self.cache.wait_until_ready(timeout=TIMEOUT))

        self.cache.request_characters(".#", (3, 3))
        self.assertTrue(self.cache.wait_until_ready(timeout=TIMEOUT))
        for _, profile in self.cache.view(".#"):
            self.assertEqual(profile.shape, (9,))

    def test_newline_never_requested(self):
        new = self.cache.request_characters("a\nb\n", (1, 1))
        self.assertEqual(new, ["a", "b"])
        self.assertTrue(self.cache.wait_until_ready(timeout=TIMEOUT))
        self.assertEqual([c for c, _ in self.cache.view("a\nb")], ["a", "b"])
        self.assertNotIn("\n", self.rasterizer.calls)


class TestCacheState(unittest.TestCase):

    def setUp(self):
        self.worker = ManualWorker()
        self.rasterizer = ConstantRasterizer({"a": 0.2, "b": 0.6, "c": 0.4})
        self.cache = GlyphProfileCache(worker=self.worker)

    def test_pending_until_merged(self):
        self.cache.request_characters("ab", (1, 2))
        self.assertEqual(self.cache.view("ab"), [("a", None), ("b", None)])
        self.assertTrue(self.cache.snapshot("ab").is_empty)

        self.worker.respond(self.worker.requests[-1], self.rasterizer)
        view = self.cache.view("ab")
        self.assertTrue(all(profile is not None for _, profile in view))

    def test_snapshot_excludes_pending(self):
        self.cache.request_characters("abc", (1, 2))
        self.worker.respond(self.worker.requests[-1], self.rasterizer, chars=("a", "c"))

        snapshot = self.cache.snapshot("abc")
        self.assertEqual(snapshot.characters, ("a", "c"))
        self.assertEqual(snapshot.profiles.shape, (2, 2))
        self.assertEqual(self.cache.pending, ["b"])
        self.assertFalse(self.cache.wait_until_ready(timeout=0.05))
        self.assertTrue(self.cache.wait_until_ready("ac", timeout=0.05))

    def test_pending_characters_not_reenqueued(self):
        self.cache.request_characters("ab", (1, 2))
        self.cache.request_characters("abc", (1, 2))
        self.assertEqual([r.characters for r in self.worker.requests], [("a", "b"), ("c",)])

    def test_resolution_change_resets_everything(self):
        self.cache.request_characters("ab", (1, 2))
        self.worker.respond(self.worker.requests[-1], self.rasterizer)
        self.cache.pump()
        self.assertFalse(self.cache.bounds.is_empty)
        old_generation = self.cache.generation

        self.cache.request_characters("ab", (2, 2))
        self.assertEqual(self.cache.view("ab"), [("a", None), ("b", None)])
        self.assertEqual(self.cache.bounds, BrightnessBounds.empty())
        self.assertEqual(self.cache.resolution, SamplingResolution(2, 2))
        self.assertEqual(self.cache.generation, old_generation + 1)
        self.assertEqual(self.worker.requests[-1].characters, ("a", "b"))

    def test_resolution_change_without_characters_still_notifies_worker(self):
        self.cache.request_characters("ab", (1, 2))
        self.cache.request_characters("", (4, 4))
        self.assertEqual(len(self.worker.requests), 2)
        self.assertEqual(self.worker.requests[-1].characters, ())
        self.assertEqual(self.worker.requests[-1].generation, self.cache.generation)

    def test_stale_results_dropped(self):
        self.cache.request_characters("ab", (1, 2))
        stale_request = self.worker.requests[-1]
        self.cache.request_characters("ab", (2, 1))

        self.worker.respond(stale_request, self.rasterizer)
        self.assertEqual(self.cache.pump(), 0)
        self.assertEqual(self.cache.view("ab"), [("a", None), ("b", None)])
        self.assertTrue(self.cache.bounds.is_empty)

        self.worker.respond(self.worker.requests[-1], self.rasterizer)
        self.assertEqual(self.cache.pump(), 1)
        self.assertTrue(self.cache.is_ready("a"))

    def test_switching_back_to_old_resolution_still_drops_old_results(self):
        self.cache.request_characters("a", (1, 2))
        first = self.worker.requests[-1]
        self.cache.request_characters("a", (2, 2))
        self.cache.request_characters("a", (1, 2))

        self.worker.respond(first, self.rasterizer)
        self.assertEqual(self.cache.pump(), 0)
        self.assertFalse(self.cache.is_ready("a"))

    def test_degenerate_resolution_ignored(self):
        self.cache.request_characters("ab", (1, 2))
        before = (self.cache.resolution, self.cache.generation, len(self.worker.requests))

        self.assertEqual(self.cache.request_characters("xyz", (0, 2)), [])
        self.assertEqual(self.cache.request_characters("xyz", (3, -1)), [])
        self.assertEqual(self.cache.request_characters("xyz", "bad"), [])

        after = (self.cache.resolution, self.cache.generation, len(self.worker.requests))
        self.assertEqual(before, after)
        self.assertEqual(self.cache.view("x"), [("x", None)])
        self.assertFalse("x" in self.cache.pending)

    def test_bounds_widen_monotonically(self):
        self.cache.request_characters("abc", (1, 1))
        request = self.worker.requests[-1]
        seen = []
        for char in ("c", "b", "a"):
            self.worker.respond(request, self.rasterizer, chars=(char,))
            self.cache.pump()
            seen.append(self.cache.bounds)

        for before, after in zip(seen, seen[1:]):
            self.assertLessEqual(after.min, before.min)
            self.assertGreaterEqual(after.max, before.max)
            self.assertLessEqual(after.min, after.max)
        self.assertAlmostEqual(seen[-1].min, 0.2, places=6)
        self.assertAlmostEqual(seen[-1].max, 0.6, places=6)

    def test_listeners_and_version(self):
        received = []
        self.cache.add_listener(received.append)
        self.cache.request_characters("ab", (1, 2))
        version = self.cache.version

        self.worker.respond(self.worker.requests[-1], self.rasterizer)
        self.cache.pump()
        self.assertEqual(len(received), 1)
        self.assertIsInstance(received[0], RenderResponse)
        self.assertGreater(self.cache.version, version)


class TestCacheWithRealWorker(unittest.TestCase):

    def test_small_batches(self):
        rasterizer = ConstantRasterizer()
        worker = RenderWorker(rasterizer, batch_size=3)
        with GlyphProfileCache(worker=worker) as cache:
            cache.request_characters("abcdefgh", (1, 1))
            self.assertTrue(cache.wait_until_ready(timeout=TIMEOUT))
            self.assertEqual(len(cache.snapshot("abcdefgh")), 8)

    def test_resolution_changes_while_busy_do_not_block(self):
        rasterizer = BlockingRasterizer()
        self.addCleanup(rasterizer.release.set)
        with GlyphProfileCache(rasterizer=rasterizer) as cache:
            cache.request_characters("a", (1, 1))
            self.assertTrue(rasterizer.started.wait(TIMEOUT))

            start = time.monotonic()
            for i in range(INBOX_SIZE + 50):
                cache.request_characters("a", (1 + i % 2, 1))
            self.assertLess(time.monotonic() - start, 2)

            rasterizer.release.set()
            self.assertTrue(cache.wait_until_ready(timeout=TIMEOUT))
            self.assertEqual(cache.resolution, SamplingResolution(2, 1))
            self.assertEqual(cache.view("a")[0][1].shape, (2,))

    def test_rasterizer_and_worker_are_exclusive(self):
        worker = RenderWorker(ConstantRasterizer())
        self.addCleanup(worker.close)
        with self.assertRaises(ValueError):
            GlyphProfileCache(rasterizer=ConstantRasterizer(), worker=worker)


if __name__ == "__main__":
    unittest.main()
