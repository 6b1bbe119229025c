# wfcgen/io/load_data.py
# WO-00: Sample image decoding + JSON config loading

from __future__ import annotations
import json
from typing import Any

import numpy as np
from PIL import Image, UnidentifiedImageError

from wfcgen.errors import ImageDecodeError


def load_image(path: str) -> np.ndarray:
    """
    Decode a sample image into an (H, W, 4) uint8 RGBA raster.

    Any Pillow-readable format is accepted (the bundled samples are BMP);
    palette/RGB/greyscale images are converted to RGBA.

    Args:
        path: image file path

    Returns:
        np.ndarray: RGBA raster indexed [y, x]

    Raises:
        ImageDecodeError: missing file or undecodable content
    """
    try:
        with Image.open(path) as img:
            img.load()
            rgba = img.convert("RGBA")
    except FileNotFoundError:
        raise ImageDecodeError(path, "file not found") from None
    except (UnidentifiedImageError, OSError) as e:
        raise ImageDecodeError(path, str(e)) from e

    return np.array(rgba, dtype=np.uint8)


def load_config(path: str) -> dict[str, Any]:
    """
    Load a generation config from JSON.

    Expected format (all keys but source_image optional):
    {"source_image": "rooms.bmp", "output_width": 12, "fragment_width": 3, ...}

    Args:
        path: path to config JSON file

    Returns:
        dict: parsed config
    """
    with open(path, "r") as f:
        return json.load(f)
