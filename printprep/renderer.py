"""Rendering accepted images to exact print sizes with per-format numbering."""
from __future__ import annotations

import logging
import os
import re
import threading
from io import BytesIO
from pathlib import Path
from typing import Dict, Tuple

from PIL import Image

from .config import DEFAULT_CONFIG, PipelineConfig, PrintFormat
from .inspector import open_candidate
from .models import Accepted, CandidateImage, ResizedOutput

logger = logging.getLogger(__name__)

RESIZED_DIRNAME = "resized"
PARTIAL_SUFFIX = ".part"
_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_WHITESPACE = re.compile(r"\s+")


# -----------------------------
# Sequence numbering
# -----------------------------
class SequenceCounter:
    """Independent, thread-safe counters per print format, starting at 1."""

    def __init__(self, start: int = 1):
        self._start = start
        self._values: Dict[str, int] = {}
        self._lock = threading.Lock()

    def next(self, format_name: str) -> int:
        with self._lock:
            value = self._values.get(format_name, self._start)
            self._values[format_name] = value + 1
            return value


# -----------------------------
# Output path generation
# -----------------------------
def clean_filename_part(value: str) -> str:
    value = _UNSAFE_CHARS.sub("", value or "")
    return _WHITESPACE.sub(" ", value).strip(" .")


def output_filename(sequence: int, celebrity: str, show: str, format_name: str) -> str:
    """Build ``NN - Celebrity - Show - format.jpg``; NN sorts in presentation order."""
    parts = [f"{sequence:02d}"]
    parts.extend(p for p in (clean_filename_part(celebrity), clean_filename_part(show)) if p)
    parts.append(clean_filename_part(format_name))
    return " - ".join(parts) + ".jpg"


def format_directory(output_root: Path, format_name: str) -> Path:
    return Path(output_root) / RESIZED_DIRNAME / clean_filename_part(format_name)


# -----------------------------
# Resizing and encoding
# -----------------------------
def fit_to_canvas(
    image: Image.Image,
    target_size: Tuple[int, int],
    background: Tuple[int, int, int] = (255, 255, 255),
) -> Image.Image:
    """Fit inside the target size preserving aspect ratio; pad the rest with background."""
    tw, th = target_size
    scale = min(tw / image.width, th / image.height)
    new_width = min(tw, max(1, int(round(image.width * scale))))
    new_height = min(th, max(1, int(round(image.height * scale))))

    if (new_width, new_height) != image.size:
        image = image.resize((new_width, new_height), Image.LANCZOS)

    if image.size == (tw, th):
        return image

    canvas = Image.new("RGB", (tw, th), background)
    left = (tw - new_width) // 2
    top = (th - new_height) // 2
    canvas.paste(image, (left, top))
    return canvas


def encode_jpeg(image: Image.Image, config: PipelineConfig = DEFAULT_CONFIG) -> bytes:
    """Encode deterministically as progressive JPEG."""
    buffer = BytesIO()
    image.save(
        buffer,
        format="JPEG",
        quality=config.jpeg_quality,
        optimize=True,
        progressive=True,
        dpi=config.dpi,
    )
    return buffer.getvalue()


def render_bytes(
    candidate: CandidateImage,
    fmt: PrintFormat,
    config: PipelineConfig = DEFAULT_CONFIG,
) -> Tuple[bytes, Tuple[int, int]]:
    """Decode the source and encode it at the format's exact size.

    Raises ValueError for anything wrong with the source image.
    """
    try:
        image, _ = open_candidate(candidate)
        target = fmt.sized_for(image.width, image.height)
        canvas = fit_to_canvas(image, target, config.background)
        data = encode_jpeg(canvas, config)
    except Exception as e:
        raise ValueError(f"Unable to render {candidate.filename} as {fmt.name}: {e}") from e
    return data, canvas.size


def render(
    candidate: CandidateImage,
    verdict: Accepted,
    fmt: PrintFormat,
    sequence: int,
    output_root: Path,
    celebrity: str = "",
    config: PipelineConfig = DEFAULT_CONFIG,
    dry_run: bool = False,
) -> ResizedOutput:
    """
    Render one accepted image for one print format and write exactly one file.

    Source-side failures raise ValueError. Failures creating the format
    directory or writing the file propagate as OSError; a failed write
    leaves nothing behind under the output name or the partial name.
    """
    data, (width, height) = render_bytes(candidate, fmt, config)

    out_dir = format_directory(output_root, fmt.name)
    output_path = out_dir / output_filename(sequence, celebrity, candidate.role.role_name, fmt.name)

    if not dry_run:
        out_dir.mkdir(parents=True, exist_ok=True)
        partial_path = output_path.with_name(output_path.name + PARTIAL_SUFFIX)
        try:
            with open(partial_path, "wb") as f:
                f.write(data)
            os.replace(partial_path, output_path)
        except OSError:
            partial_path.unlink(missing_ok=True)
            raise

    logger.info(f"Resized {candidate.filename} to {fmt.name} -> {output_path.name}")
    return ResizedOutput(
        path=output_path,
        format=fmt.name,
        sequence=sequence,
        candidate=candidate,
        verdict=verdict,
        width=width,
        height=height,
        file_size=len(data),
    )
