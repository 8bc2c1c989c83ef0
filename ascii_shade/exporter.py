import os
from typing import Optional

from PIL import Image, ImageDraw

from .rasterizer import load_monospace_font


def render_text_to_image(
    text: str,
    output_path: str = "outputs/text_art.png",
    font_size: int = 18,
    bg_color: str = "white",
    text_color: str = "black",
    font_path: Optional[str] = None,
) -> Optional[str]:
    """
    Renders a text block to a PNG image.
    Returns the path to the saved image, or None for empty text.
    """
    lines = text.splitlines()
    if not lines:
        return None

    # Monospace is crucial
    font = load_monospace_font(font_size, font_path)

    # Every cell is as wide as the advance of 'M'
    char_width = max(1, int(round(font.getlength("M"))))
    left, top, right, bottom = font.getbbox("M")
    char_height = (bottom - top) + 4

    max_line_len = max(len(line) for line in lines)
    img_width = max_line_len * char_width + 40
    img_height = len(lines) * char_height + 40

    image = Image.new("RGB", (img_width, img_height), color=bg_color)
    draw = ImageDraw.Draw(image)

    y_text = 20
    for line in lines:
        draw.text((20, y_text), line, font=font, fill=text_color)
        y_text += char_height

    output_path = os.path.abspath(output_path)
    os.makedirs(os.path.dirname(output_path), exist_ok=True)
    image.save(output_path)

    return output_path
