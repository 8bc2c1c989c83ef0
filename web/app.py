"""
Image-to-Text-Art - Web Interface

Gradio demo around ImageToText:
- Image upload
- Charset or custom alphabet
- Sampling resolution, output width and luminance inversion
- Copy/download of the rendered text
"""

import os
import sys
import tempfile

import gradio as gr

# Add project to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ascii_shade import ImageToText, get_charset, list_charsets
from ascii_shade.preprocessing import fit_output_size

# Shared converter (loaded once); keeps its glyph cache between requests
converter = None


def get_converter() -> ImageToText:
    global converter
    if converter is None:
        converter = ImageToText()
    return converter


def convert_image(image, charset, custom_alphabet, width, cols, rows, invert):
    """Render the uploaded image; returns (text, download path, status)."""
    if image is None:
        return "", None, "Upload an image first"

    alphabet = custom_alphabet if custom_alphabet else get_charset(charset)
    resolution = (int(cols), int(rows))

    active = get_converter()
    active.cache.request_characters(alphabet, resolution)
    if not active.cache.wait_until_ready(alphabet, timeout=30):
        status = f"⚠️ {len(active.cache.pending)} glyphs still rendering, showing a partial result"
    else:
        status = "✅ Done"

    output_size = fit_output_size(image.size, int(width), char_aspect=active.config.char_aspect)
    text = active.render(image, output_size, alphabet=alphabet, resolution=resolution, invert=invert)

    path = None
    if text:
        with tempfile.NamedTemporaryFile("w", suffix=".txt", delete=False, encoding="utf-8") as f:
            f.write(text)
            path = f.name
    return text, path, f"{status} ({output_size[0]}x{output_size[1]} glyphs on {active.device})"


def build_app() -> gr.Blocks:
    with gr.Blocks(title="Image to Text Art") as app:
        gr.Markdown("# Image to Text Art")

        with gr.Row():
            with gr.Column(scale=1):
                image = gr.Image(type="pil", image_mode="RGBA", label="Source image")
                charset = gr.Dropdown(list_charsets(), value="ascii_standard", label="Charset")
                custom_alphabet = gr.Textbox(label="Custom alphabet (overrides charset)", value="")
                width = gr.Slider(10, 300, value=100, step=1, label="Width (characters)")
                with gr.Row():
                    cols = gr.Slider(1, 8, value=1, step=1, label="Samples across")
                    rows = gr.Slider(1, 8, value=2, step=1, label="Samples down")
                invert = gr.Checkbox(label="Invert (light text on dark)", value=False)
                button = gr.Button("Convert", variant="primary")

            with gr.Column(scale=2):
                output = gr.Textbox(label="Text art", lines=30, max_lines=80, show_copy_button=True)
                download = gr.File(label="Download")
                status = gr.Markdown()

        button.click(
            convert_image,
            inputs=[image, charset, custom_alphabet, width, cols, rows, invert],
            outputs=[output, download, status],
        )

    return app


if __name__ == "__main__":
    build_app().launch(
        server_name="0.0.0.0",
        server_port=int(os.environ.get("GRADIO_SERVER_PORT", 7860)),
    )
