"""
End-to-end rendering: the reference scenarios, degenerate inputs, partial
glyph sets and memoisation.
"""

import unittest
from unittest.mock import patch

import numpy as np
from PIL import Image

from ascii_shade import ImageToText, RenderConfig, image_to_text
from ascii_shade.model import SamplingResolution

from helpers import DOTS, TIMEOUT, ConstantRasterizer, GatedRasterizer

LEVELS = " .:-=+*#%@"
LEVEL_VALUES = {c: i / 10 for i, c in enumerate(LEVELS)}


def solid(color, size=(1, 1)):
    return Image.new("RGBA", size, color)


def halves(left, right, size=(4, 2)):
    image = Image.new("RGBA", size, left)
    image.paste(right, (size[0] // 2, 0, size[0], size[1]))
    return image


class PipelineTestCase(unittest.TestCase):

    def make_converter(self, rasterizer=None, **overrides):
        config = RenderConfig(alphabet=".#", resolution=(1, 1), device="cpu")
        converter = ImageToText(config=config, rasterizer=rasterizer or ConstantRasterizer(DOTS), **overrides)
        self.addCleanup(converter.close)
        return converter

    def ready(self, converter, alphabet=None, resolution=None):
        alphabet = converter.config.alphabet if alphabet is None else alphabet
        resolution = converter.config.resolution if resolution is None else resolution
        converter.cache.request_characters(alphabet, resolution)
        self.assertTrue(converter.cache.wait_until_ready(alphabet, timeout=TIMEOUT))
        return converter


class TestScenarios(PipelineTestCase):

    def test_black_pixel_matches_transparent_glyph(self):
        converter = self.ready(self.make_converter())
        self.assertEqual(converter.render(solid((0, 0, 0, 255)), (1, 1)), ".")

    def test_inverted_black_pixel_matches_opaque_glyph(self):
        converter = self.ready(self.make_converter())
        self.assertEqual(converter.render(solid((0, 0, 0, 255)), (1, 1), invert=True), "#")

    def test_empty_alphabet(self):
        converter = self.ready(self.make_converter())
        self.assertEqual(converter.render(solid((0, 0, 0, 255)), (1, 1), alphabet=""), "")
        self.assertEqual(converter.render(solid((0, 0, 0, 255)), (1, 1), alphabet="\n\n"), "")

    def test_two_cells_match_independently(self):
        converter = self.ready(self.make_converter())
        image = halves((0, 0, 0, 255), (255, 255, 255, 255))
        self.assertEqual(converter.render(image, (2, 1)), ".#")
        self.assertEqual(converter.render(image, (2, 1), invert=True), "#.")

    def test_rows_joined_with_newlines(self):
        converter = self.ready(self.make_converter())
        image = Image.new("RGBA", (2, 2), (0, 0, 0, 255))
        image.putpixel((1, 0), (255, 255, 255, 255))
        image.putpixel((0, 1), (255, 255, 255, 255))
        self.assertEqual(converter.render(image, (2, 2)), ".#\n#.")

    def test_numpy_input(self):
        converter = self.ready(self.make_converter())
        array = np.zeros((2, 4, 3), dtype=np.uint8)
        array[:, 2:] = 255
        self.assertEqual(converter.render(array, (2, 1)), ".#")

        floats = np.zeros((2, 4), dtype=np.float32)
        floats[:, :2] = 1.0
        self.assertEqual(converter.render(floats, (2, 1)), "#.")


class TestDegenerateInputs(PipelineTestCase):

    def test_missing_or_empty_image(self):
        converter = self.ready(self.make_converter())
        self.assertEqual(converter.render(None, (4, 4)), "")
        self.assertEqual(converter.render(np.zeros((0, 0, 4), dtype=np.uint8), (4, 4)), "")

    def test_zero_output(self):
        converter = self.ready(self.make_converter())
        image = solid((0, 0, 0, 255), (8, 8))
        self.assertEqual(converter.render(image, (0, 3)), "")
        self.assertEqual(converter.render(image, (3, 0)), "")

    def test_degenerate_resolution_leaves_cache_alone(self):
        converter = self.ready(self.make_converter())
        before = (converter.cache.resolution, converter.cache.generation)
        self.assertEqual(converter.render(solid((0, 0, 0, 255)), (1, 1), resolution=(0, 1)), "")
        self.assertEqual((converter.cache.resolution, converter.cache.generation), before)

    def test_identical_glyphs_do_not_divide_by_zero(self):
        converter = self.make_converter(rasterizer=ConstantRasterizer({"a": 0.5, "b": 0.5}))
        self.ready(converter, "ab")
        text = converter.render(solid((128, 128, 128, 255), (4, 4)), (3, 2), alphabet="ab")
        self.assertEqual(text, "aaa\naaa")


class TestPartialGlyphs(PipelineTestCase):

    def test_pending_glyphs_excluded(self):
        rasterizer = GatedRasterizer("#")
        converter = self.make_converter(rasterizer=rasterizer)
        self.ready(converter, ".")

        image = halves((0, 0, 0, 255), (255, 255, 255, 255))
        self.assertEqual(converter.render(image, (2, 1)), "..")
        self.assertEqual(converter.cache.pending, ["#"])

        rasterizer.gate.set()
        self.assertTrue(converter.cache.wait_until_ready(timeout=TIMEOUT))
        self.assertEqual(converter.render(image, (2, 1)), ".#")

    def test_resolution_change_rerenders(self):
        converter = self.ready(self.make_converter())
        image = halves((0, 0, 0, 255), (255, 255, 255, 255))
        self.assertEqual(converter.render(image, (2, 1)), ".#")

        self.ready(converter, resolution=(2, 2))
        text = converter.render(image, (1, 1), resolution=(2, 2))
        self.assertEqual(len(text), 1)
        self.assertEqual(converter.cache.resolution, SamplingResolution(2, 2))


class TestMemoisation(PipelineTestCase):

    def test_same_inputs_reuse_result(self):
        converter = self.ready(self.make_converter())
        image = halves((0, 0, 0, 255), (255, 255, 255, 255))

        with patch.object(converter, "match", wraps=converter.match) as match:
            first = converter.render(image, (2, 1))
            second = converter.render(image, (2, 1))
            self.assertEqual(first, second)
            self.assertEqual(match.call_count, 1)

            converter.render(image, (2, 1), invert=True)
            converter.render(image, (1, 1))
            converter.render(image.copy(), (1, 1))
            self.assertEqual(match.call_count, 4)

    def test_deterministic_across_converters(self):
        rng = np.random.default_rng(3)
        array = rng.integers(0, 256, size=(24, 40, 4), dtype=np.uint8)

        outputs = []
        for _ in range(2):
            converter = self.make_converter(rasterizer=ConstantRasterizer(LEVEL_VALUES))
            self.ready(converter, LEVELS, (2, 2))
            outputs.append(converter.render(array, (10, 6), alphabet=LEVELS, resolution=(2, 2)))
        self.assertEqual(outputs[0], outputs[1])
        self.assertEqual([len(line) for line in outputs[0].split("\n")], [10] * 6)

    def test_toggling_contrast_rebuilds_image(self):
        rng = np.random.default_rng(5)
        array = rng.integers(100, 156, size=(64, 64, 3), dtype=np.uint8)

        converter = self.ready(self.make_converter(rasterizer=ConstantRasterizer(LEVEL_VALUES)), LEVELS)
        plain = converter.render(array, (16, 16), alphabet=LEVELS)
        converter.config.enhance_contrast = True
        toggled = converter.render(array, (16, 16), alphabet=LEVELS)

        fresh = self.make_converter(rasterizer=ConstantRasterizer(LEVEL_VALUES), enhance_contrast=True)
        self.ready(fresh, LEVELS)
        self.assertEqual(toggled, fresh.render(array, (16, 16), alphabet=LEVELS))
        self.assertNotEqual(toggled, plain)


class TestConvert(PipelineTestCase):

    def test_convert_fits_aspect_ratio(self):
        converter = self.make_converter()
        result = converter.convert(solid((0, 0, 0, 255), (40, 40)), char_width=8, timeout=TIMEOUT)
        self.assertEqual(result.text, "\n".join(["." * 8] * 4))
        self.assertEqual((result.width, result.height), (8, 4))
        self.assertEqual(result.metadata["resolution"], "1x1")
        self.assertEqual(result.metadata["glyphs"], 2)

    def test_real_glyphs_smoke(self):
        gradient = np.tile(np.linspace(0, 255, 64, dtype=np.uint8), (32, 1))
        result = image_to_text(gradient, char_width=16, charset="ascii_dense", device="cpu", timeout=60)
        lines = result.text.split("\n")
        self.assertEqual(len(lines), 4)
        self.assertTrue(all(len(line) == 16 for line in lines))
        self.assertTrue(set(result.text.replace("\n", "")) <= set(" .'`^\",:;Il!i><~+_-?][}{1)(|/tfjrxnuvczXYUJCLQ0OZmwqpdbkhao*#MW&8%B@$"))
        # Dark on the left, bright on the right
        self.assertNotEqual(lines[0][0], lines[0][-1])


if __name__ == "__main__":
    unittest.main()
