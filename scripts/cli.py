#!/usr/bin/env python3
"""
Image-to-Text-Art Converter

A command-line interface for turning images into monospace text art.

Usage:
    python scripts/cli.py photo.jpg                     # Print to terminal
    python scripts/cli.py photo.jpg -w 120 --invert     # Wider, light-on-dark
    python scripts/cli.py *.png -o outputs/             # Batch, save .txt files
    python scripts/cli.py --help                        # Help
"""

import argparse
import logging
import os
import sys
import time

from tqdm import tqdm

# Add project to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ascii_shade import ImageToText, RenderConfig, list_charsets
from ascii_shade.charsets import get_charset
from ascii_shade.config import parse_resolution
from ascii_shade.exporter import render_text_to_image


def build_converter(args) -> ImageToText:
    """Create the converter from parsed arguments."""
    overrides = {}
    if args.alphabet:
        overrides["alphabet"] = args.alphabet.replace("\\n", "")
    elif args.charset:
        overrides["alphabet"] = get_charset(args.charset)
    if args.resolution:
        overrides["resolution"] = parse_resolution(args.resolution)
    if args.device:
        overrides["device"] = args.device
    if args.font:
        overrides["font_path"] = args.font
    overrides["invert"] = args.invert
    overrides["enhance_contrast"] = args.contrast

    config = RenderConfig.from_env(**overrides)

    print("🚀 Initializing converter...")
    converter = ImageToText(config=config, charset=args.charset if not args.alphabet else None)
    print(f"   Device: {converter.device}")
    print(f"   Resolution: {config.resolution[0]}x{config.resolution[1]} samples per glyph")
    return converter


def output_path_for(image_path: str, output: str, extension: str) -> str:
    """Where to save the render of ``image_path``."""
    stem = os.path.splitext(os.path.basename(image_path))[0]
    if output.endswith(os.sep) or os.path.isdir(output):
        return os.path.join(output, stem + extension)
    root, _ = os.path.splitext(output)
    return root + extension


def convert_one(converter, image_path: str, args, batch: bool):
    result = converter.convert(
        image_path,
        char_width=args.width,
        char_height=args.height,
        timeout=args.timeout,
    )

    if not batch:
        print("=" * min(args.width, 80))
        print(result.text)
        print("=" * min(args.width, 80))

    if args.output:
        txt_path = output_path_for(image_path, args.output, ".txt")
        os.makedirs(os.path.dirname(txt_path) or ".", exist_ok=True)
        result.save(txt_path)
        if not batch:
            print(f"✅ Saved text to {txt_path}")

        if args.html:
            html_path = output_path_for(image_path, args.output, ".html")
            result.save(html_path)

        if args.png:
            png_path = render_text_to_image(
                result.text,
                output_path=output_path_for(image_path, args.output, ".png"),
                font_path=args.font,
            )
            if png_path and not batch:
                print(f"✅ Saved image to {png_path}")

    return result


def main():
    parser = argparse.ArgumentParser(
        description="Convert images to monospace text art",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Charsets: {", ".join(list_charsets())}

Examples:
  python scripts/cli.py cat.jpg
    Render with the standard ASCII charset, 80 columns

  python scripts/cli.py cat.jpg --charset ansi_blocks --resolution 2,4
    Block glyphs, 8 brightness samples per glyph

  python scripts/cli.py frames/*.png -o outputs/ --png
    Batch-convert, saving .txt and .png renders
""",
    )

    parser.add_argument("images", nargs="+", help="Image file(s) to convert")
    parser.add_argument("--width", "-w", type=int, default=80, help="Output width in characters (default: 80)")
    parser.add_argument("--height", type=int, default=None, help="Max output height in characters")
    parser.add_argument("--charset", "-c", choices=list_charsets(), default=None, help="Named charset")
    parser.add_argument("--alphabet", "-a", type=str, default=None, help="Explicit candidate glyphs")
    parser.add_argument("--resolution", "-r", type=str, default=None, help="Samples per glyph as cols,rows (default: 1,2)")
    parser.add_argument("--invert", "-i", action="store_true", help="Invert luminance (light text on dark)")
    parser.add_argument("--contrast", action="store_true", help="Enhance contrast (CLAHE) before matching")
    parser.add_argument("--device", "-d", type=str, default=None, help="auto, cpu, cuda or mps")
    parser.add_argument("--font", type=str, default=None, help="TrueType font used for glyphs")
    parser.add_argument("--timeout", type=float, default=60.0, help="Seconds to wait for glyph rasterization")
    parser.add_argument("--output", "-o", type=str, default=None, help="Output file or directory")
    parser.add_argument("--html", action="store_true", help="Also save an HTML page (needs --output)")
    parser.add_argument("--png", action="store_true", help="Also save a PNG render (needs --output)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s: %(message)s")

    try:
        converter = build_converter(args)
    except ValueError as e:
        parser.error(str(e))

    batch = len(args.images) > 1
    start = time.time()
    failures = 0

    with converter:
        images = tqdm(args.images, desc="Converting", unit="image") if batch else args.images
        for image_path in images:
            try:
                convert_one(converter, image_path, args, batch)
            except (OSError, ValueError) as e:
                failures += 1
                print(f"❌ {image_path}: {e}")

    print(f"\n✅ Converted {len(args.images) - failures}/{len(args.images)} image(s) in {time.time() - start:.1f}s")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
