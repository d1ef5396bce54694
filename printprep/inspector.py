"""Decoding, resolution/size/format checks and quality metrics for candidates."""
from __future__ import annotations

import logging
from io import BytesIO
from pathlib import Path
from typing import List, Tuple

import cv2
import numpy as np
from PIL import Image, ImageOps

from . import filters
from .config import DEFAULT_CONFIG, SQUARE_TOLERANCE, PipelineConfig
from .fingerprint import fingerprint
from .formats import orientation, select_formats
from .models import Accepted, CandidateImage, Rejected, RejectReason, ValidationVerdict

logger = logging.getLogger(__name__)

GROUP_KEYWORDS = ("group", "cast", "ensemble")


# -----------------------------
# Image IO helpers
# -----------------------------
def open_candidate(candidate: CandidateImage) -> Tuple[Image.Image, str]:
    """Fully decode a candidate and apply EXIF orientation.

    Returns the RGB image and the declared container format (lowercase).
    """
    source = BytesIO(candidate.data) if candidate.data is not None else Path(candidate.filepath)
    with Image.open(source) as img:
        declared = (img.format or "").lower()
        img.load()
        img = ImageOps.exif_transpose(img)
        if img.mode != "RGB":
            img = img.convert("RGB")
        else:
            img = img.copy()
    return img, declared


# -----------------------------
# Image quality assessment
# -----------------------------
def assess_quality(image: Image.Image, config: PipelineConfig = DEFAULT_CONFIG) -> dict:
    """Return sharpness/brightness/contrast metrics measured on a downsized probe."""
    probe = image.copy()
    probe.thumbnail((config.quality_probe_size, config.quality_probe_size), Image.LANCZOS)
    img_array = np.array(probe)

    gray = cv2.cvtColor(img_array, cv2.COLOR_RGB2GRAY)
    sharpness = float(cv2.Laplacian(gray, cv2.CV_64F).var())
    brightness = float(np.mean(img_array))
    contrast = float(np.std(img_array))

    return {
        "sharpness": round(sharpness, 2),
        "brightness": round(brightness, 2),
        "contrast": round(contrast, 2),
        "is_blurry": sharpness < config.sharpness_threshold,
        "is_dark": brightness < config.brightness_dark_threshold,
    }


def generate_tags(
    width: int,
    height: int,
    filename: str,
    role_name: str,
    quality: dict,
    square_tolerance: float = SQUARE_TOLERANCE,
) -> List[str]:
    tags = [orientation(width, height, square_tolerance)]

    lower_filename = filename.lower()
    if any(keyword in lower_filename for keyword in GROUP_KEYWORDS):
        tags.append("group")
    else:
        tags.append("individual")

    if role_name:
        tags.append("role:" + "_".join(role_name.split()))

    if quality.get("is_blurry"):
        tags.append("blurry")
    if quality.get("is_dark"):
        tags.append("dark")
    return tags


def print_warnings(verdict: Accepted, config: PipelineConfig = DEFAULT_CONFIG) -> List[str]:
    """Return warnings worth a manual look before printing. Never rejects."""
    warnings = []
    quality = verdict.quality
    if quality.get("is_blurry"):
        warnings.append(f"Image may be too soft for print (sharpness: {quality.get('sharpness', 0)})")
    if quality.get("is_dark"):
        warnings.append(f"Image may be too dark (brightness: {quality.get('brightness', 0)})")
    if quality.get("contrast", 255) < config.low_contrast_threshold:
        warnings.append(f"Low contrast (std: {quality.get('contrast', 0)}) - check print result")
    return warnings


# -----------------------------
# Inspection
# -----------------------------
def inspect(candidate: CandidateImage, config: PipelineConfig = DEFAULT_CONFIG) -> ValidationVerdict:
    """
    Decode a candidate and check it can be printed.

    Checks, in order: decodable, qualifies for at least one print format,
    byte size above the thumbnail floor, allowed container format. Accepted
    images carry their fingerprint from the same decode.
    """
    try:
        image, declared = open_candidate(candidate)
        file_size = candidate.byte_size()
    except Exception as e:
        logger.debug(f"Unable to decode {candidate.filename}: {e}")
        return Rejected(RejectReason.PROCESSING_ERROR, str(e))

    width, height = image.size
    formats = select_formats(width, height, config)
    if not formats:
        return Rejected(RejectReason.RESOLUTION_TOO_LOW, f"{width}x{height}")

    if file_size < config.min_file_bytes:
        return Rejected(RejectReason.FILE_TOO_SMALL, f"{file_size} bytes")

    if declared not in config.allowed_formats:
        return Rejected(RejectReason.UNSUPPORTED_FORMAT, declared or "unknown")

    fp = fingerprint(image, hash_size=config.hash_size)
    quality = assess_quality(image, config)
    tags = generate_tags(
        width, height, candidate.filename, candidate.role.role_name, quality, config.square_tolerance
    )

    del image
    return Accepted(
        width=width,
        height=height,
        format=declared,
        file_size=file_size,
        fingerprint=fp,
        formats=tuple(formats),
        tags=tuple(tags),
        quality=quality,
    )


def validate_candidate(candidate: CandidateImage, config: PipelineConfig = DEFAULT_CONFIG) -> ValidationVerdict:
    """Policy filters, then inspection. Safe to run concurrently per candidate."""
    try:
        rejection = filters.evaluate(candidate)
        if rejection is not None:
            return rejection
        return inspect(candidate, config)
    except Exception as e:
        logger.error(f"Unexpected error inspecting {candidate.filename}: {e}")
        return Rejected(RejectReason.PROCESSING_ERROR, str(e))
