from __future__ import annotations

from pathlib import Path

import numpy as np
from PIL import Image


def load_image(path: str | Path, gray: bool = False) -> np.ndarray:
    """
    Load an image as uint8, (H,W) for grayscale or (H,W,3) RGB otherwise.
    """
    with Image.open(Path(path)) as im:
        im = im.convert("L" if gray else "RGB")
        arr = np.asarray(im, dtype=np.uint8)
    return arr


def save_image(path: str | Path, image: np.ndarray) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    arr = np.clip(np.asarray(image), 0, 255).astype(np.uint8)
    img = Image.fromarray(arr)
    if p.suffix.lower() == ".webp":
        img.save(p, lossless=True)
    else:
        img.save(p)
    return p
