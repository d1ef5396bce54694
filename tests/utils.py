"""Synthetic image helpers shared by the test modules."""
import errno
from pathlib import Path
from typing import Tuple

import numpy as np
from PIL import Image

from printprep.config import PrintFormat
from printprep.fingerprint import PerceptualFingerprint, fingerprint

SMALL_FORMATS = (PrintFormat("8x10", 240, 300), PrintFormat("11x17", 330, 510))


def make_pixels(size: Tuple[int, int], seed: int, shift: int = 0) -> np.ndarray:
    """Smooth random image as an RGB array of the given (width, height)."""
    rng = np.random.default_rng(seed)
    control = rng.integers(20, 230, size=(5, 4, 3), dtype=np.uint8)
    smooth = Image.fromarray(control).resize(size, Image.BICUBIC)
    pixels = np.asarray(smooth).astype(np.int16) + shift
    return np.clip(pixels, 0, 255).astype(np.uint8)


def write_image(
    path: Path,
    size: Tuple[int, int] = (300, 375),
    seed: int = 0,
    shift: int = 0,
    fmt: str = "PNG",
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(make_pixels(size, seed, shift)).save(path, format=fmt)
    return path


def fingerprint_path(path: Path, hash_size: int = 8) -> PerceptualFingerprint:
    with Image.open(path) as img:
        return fingerprint(img.convert("RGB"), hash_size=hash_size)


class ShortWrite:
    """Writable file that stores half of what it is given, then reports a full disk."""

    def __init__(self, path, mode="wb"):
        self._file = open(path, mode)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self._file.close()
        return False

    def write(self, data):
        self._file.write(data[: len(data) // 2])
        self._file.flush()
        raise OSError(errno.ENOSPC, "No space left on device")
