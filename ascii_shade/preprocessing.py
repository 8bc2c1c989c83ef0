"""
Image Preprocessing Utilities

Gets source images into the form the brightness kernel expects:
- Loading from paths, PIL images, numpy arrays or torch tensors
- RGBA float conversion with consistent [0, 1] normalisation
- Output grid sizing with aspect ratio preservation
- Optional contrast enhancement (CLAHE)
"""

from pathlib import Path
from typing import Optional, Tuple, Union

import cv2
import numpy as np
import torch
from PIL import Image

ImageLike = Union[str, Path, Image.Image, np.ndarray, torch.Tensor]


def load_image(source: ImageLike):
    """Open ``source`` if it is a path, otherwise return it unchanged."""
    if isinstance(source, (str, Path)):
        return Image.open(source)
    return source


def image_size(image) -> Tuple[int, int]:
    """(width, height) of any supported image; (0, 0) for None."""
    if image is None:
        return (0, 0)
    if isinstance(image, Image.Image):
        return image.size
    if isinstance(image, (np.ndarray, torch.Tensor)):
        if image.ndim < 2:
            return (0, 0)
        return (int(image.shape[1]), int(image.shape[0]))
    raise TypeError(f"Unsupported image type: {type(image).__name__}")


def to_rgba_array(image) -> np.ndarray:
    """
    Convert an image to an (H, W, 4) float32 RGBA array in [0, 1].

    Integer arrays are treated as 0-255, float arrays as already normalised.
    Grayscale and RGB inputs get an opaque alpha channel.

    Args:
        image: PIL Image, numpy array or torch tensor (H, W[, C])

    Returns:
        RGBA float32 array
    """
    if isinstance(image, Image.Image):
        return np.asarray(image.convert("RGBA"), dtype=np.float32) / 255.0

    if isinstance(image, torch.Tensor):
        arr = image.detach().cpu().numpy()
    elif isinstance(image, np.ndarray):
        arr = image
    else:
        raise TypeError(f"Unsupported image type: {type(image).__name__}")

    if arr.ndim == 2:
        arr = arr[..., np.newaxis]
    if arr.ndim != 3 or arr.shape[2] not in (1, 3, 4):
        raise ValueError(f"Expected an (H, W), (H, W, 3) or (H, W, 4) image, got shape {arr.shape}")

    if np.issubdtype(arr.dtype, np.integer) or arr.dtype == np.bool_:
        arr = arr.astype(np.float32) / (1.0 if arr.dtype == np.bool_ else 255.0)
    else:
        arr = arr.astype(np.float32)

    height, width, channels = arr.shape
    if channels == 1:
        arr = np.repeat(arr, 3, axis=2)
    if arr.shape[2] == 3:
        arr = np.concatenate([arr, np.ones((height, width, 1), dtype=np.float32)], axis=2)

    return np.clip(arr, 0.0, 1.0)


def enhance_contrast(
    rgba: np.ndarray,
    clip_limit: float = 2.0,
    tile_grid_size: Tuple[int, int] = (8, 8),
) -> np.ndarray:
    """
    Enhance contrast using CLAHE (Contrast Limited Adaptive Histogram Equalization).

    Only the lightness channel (Lab) is equalised; alpha is left untouched.

    Args:
        rgba: (H, W, 4) float RGBA image in [0, 1]
        clip_limit: Threshold for contrast limiting
        tile_grid_size: Size of grid for equalization

    Returns:
        Contrast-enhanced float RGBA image
    """
    rgb = (rgba[..., :3] * 255.0).round().astype(np.uint8)
    lab = cv2.cvtColor(rgb, cv2.COLOR_RGB2LAB)

    clahe = cv2.createCLAHE(clipLimit=clip_limit, tileGridSize=tile_grid_size)
    lab[..., 0] = clahe.apply(np.ascontiguousarray(lab[..., 0]))

    enhanced = cv2.cvtColor(lab, cv2.COLOR_LAB2RGB).astype(np.float32) / 255.0
    return np.concatenate([enhanced, rgba[..., 3:]], axis=2)


def fit_output_size(
    size: Tuple[int, int],
    char_width: int = 80,
    char_height: Optional[int] = None,
    char_aspect: float = 0.5,
    maintain_aspect: bool = True,
) -> Tuple[int, int]:
    """
    Output grid size (columns, rows) for an image of ``size`` pixels.

    Args:
        size: Source image (width, height)
        char_width: Target width in characters
        char_height: Target height in characters (auto if None)
        char_aspect: Glyph cell width / height (cells are ~2x taller than wide)
        maintain_aspect: Whether to maintain aspect ratio

    Returns:
        (columns, rows); (0, 0) for an empty image
    """
    width, height = size
    if width <= 0 or height <= 0 or char_width <= 0:
        return (0, 0)

    if not maintain_aspect:
        return (char_width, char_height or 40)

    rows = max(1, int(round(char_width * height / width * char_aspect)))
    if char_height is not None:
        rows = min(char_height, rows)
    return (char_width, rows)
