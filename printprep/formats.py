"""Mapping of image geometry to qualifying print formats."""
from __future__ import annotations

from typing import List

from .config import DEFAULT_CONFIG, SQUARE_TOLERANCE, PipelineConfig, PrintFormat


def orientation(width: int, height: int, square_tolerance: float = SQUARE_TOLERANCE) -> str:
    ratio = width / height
    if ratio > 1.0 + square_tolerance:
        return "landscape"
    if ratio < 1.0 - square_tolerance:
        return "portrait"
    return "square"


def portrait_ratio(width: int, height: int) -> float:
    """Aspect ratio with landscape images flipped, so it is always <= 1."""
    if width > height:
        return height / width
    return width / height


def meets_minimum(width: int, height: int, fmt: PrintFormat) -> bool:
    """Check resolution irrespective of orientation (short vs short, long vs long)."""
    short_side, long_side = sorted((width, height))
    fmt_short, fmt_long = sorted((fmt.width, fmt.height))
    return short_side >= fmt_short and long_side >= fmt_long


def select_formats(
    width: int,
    height: int,
    config: PipelineConfig = DEFAULT_CONFIG,
) -> List[PrintFormat]:
    """
    Return the print formats an image qualifies for, in configured order.

    - Only formats whose minimum resolution is met are considered.
    - Formats whose canonical ratio lies within ``ratio_tolerance`` of the
      image ratio win; there may be two of them.
    - Images far from every canonical ratio still resolve: extremely
      elongated ones (beyond ``elongated_tolerance``) get every eligible
      format, the rest get the eligible format with the nearest ratio.
    """
    if width <= 0 or height <= 0:
        return []

    eligible = [fmt for fmt in config.formats if meets_minimum(width, height, fmt)]
    if not eligible:
        return []

    ratio = portrait_ratio(width, height)
    distances = [abs(ratio - fmt.ratio) for fmt in eligible]

    matched = [fmt for fmt, d in zip(eligible, distances) if d <= config.ratio_tolerance]
    if matched:
        return matched

    nearest = min(abs(ratio - fmt.ratio) for fmt in config.formats)
    if nearest > config.elongated_tolerance:
        return eligible

    best = min(range(len(eligible)), key=lambda i: distances[i])
    return [eligible[best]]
