"""Print formats and pipeline configuration."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import FrozenSet, Mapping, Optional, Tuple


# -----------------------------
# Print formats
# -----------------------------
@dataclass(frozen=True)
class PrintFormat:
    """A named print size.

    ``width``/``height`` are both the minimum source resolution and the exact
    output pixel size, expressed in portrait orientation at 300 DPI.
    """
    name: str
    width: int
    height: int

    @property
    def ratio(self) -> float:
        return self.width / self.height

    def sized_for(self, source_width: int, source_height: int) -> Tuple[int, int]:
        """Return the output size in the same orientation as the source."""
        if source_width > source_height:
            return self.height, self.width
        return self.width, self.height


FORMAT_8X10 = PrintFormat("8x10", 2400, 3000)
FORMAT_11X17 = PrintFormat("11x17", 3300, 5100)
DEFAULT_FORMATS: Tuple[PrintFormat, ...] = (FORMAT_8X10, FORMAT_11X17)
SQUARE_TOLERANCE = 0.1


# -----------------------------
# Configuration
# -----------------------------
@dataclass
class PipelineConfig:
    """Configurable curation and rendering parameters."""
    formats: Tuple[PrintFormat, ...] = DEFAULT_FORMATS
    dedup_threshold: float = 0.85                      # similarity at which images are duplicates
    max_images_per_role: int = 50                      # accepted images kept per role
    min_file_bytes: int = 50_000                       # thumbnail/placeholder floor
    allowed_formats: FrozenSet[str] = field(
        default_factory=lambda: frozenset({"jpeg", "png", "webp"})
    )
    ratio_tolerance: float = 0.1                       # band around a format's canonical ratio
    elongated_tolerance: float = 0.25                  # beyond this, image counts as elongated
    square_tolerance: float = SQUARE_TOLERANCE         # band around 1:1 labelled square
    hash_size: int = 8                                 # pHash side length (bits = hash_size**2)
    jpeg_quality: int = 95
    dpi: Tuple[int, int] = (300, 300)
    background: Tuple[int, int, int] = (255, 255, 255)
    workers: int = 4                                   # concurrent decodes
    role_workers: int = 2                              # roles validated concurrently
    sharpness_threshold: float = 100.0                 # blur detection threshold
    brightness_dark_threshold: float = 60.0            # darkness threshold
    low_contrast_threshold: float = 20.0               # pixel std below which prints look flat
    quality_probe_size: int = 512                      # long side of the quality-metrics probe

    def format_named(self, name: str) -> Optional[PrintFormat]:
        for fmt in self.formats:
            if fmt.name == name:
                return fmt
        return None

    def with_min_dimensions(self, name: str, width: int, height: int) -> "PipelineConfig":
        """Return a copy with the minimum dimensions of one format replaced."""
        formats = tuple(
            PrintFormat(fmt.name, width, height) if fmt.name == name else fmt
            for fmt in self.formats
        )
        return replace(self, formats=formats)

    def validate(self) -> "PipelineConfig":
        if not self.formats:
            raise ValueError("At least one print format is required")
        for fmt in self.formats:
            if fmt.width <= 0 or fmt.height <= 0:
                raise ValueError(f"Invalid dimensions for format {fmt.name}: {fmt.width}x{fmt.height}")
        if not 0.0 < self.dedup_threshold <= 1.0:
            raise ValueError(f"dedup_threshold must be in (0, 1], got {self.dedup_threshold}")
        if self.max_images_per_role <= 0:
            raise ValueError(f"max_images_per_role must be positive, got {self.max_images_per_role}")
        if self.workers <= 0 or self.role_workers <= 0:
            raise ValueError("Worker counts must be positive")
        if self.elongated_tolerance < self.ratio_tolerance:
            raise ValueError("elongated_tolerance must not be narrower than ratio_tolerance")
        if not 0.0 <= self.square_tolerance < 1.0:
            raise ValueError(f"square_tolerance must be in [0, 1), got {self.square_tolerance}")
        return self

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PipelineConfig":
        """Build a config from deployment environment variables.

        Recognised: MIN_WIDTH_8X10, MIN_HEIGHT_8X10, MIN_WIDTH_11X17,
        MIN_HEIGHT_11X17, MAX_IMAGES_PER_ROLE, DEDUP_THRESHOLD,
        PRINTPREP_WORKERS. Unset or empty variables keep the defaults.
        """
        env = os.environ if environ is None else environ
        config = cls()

        for fmt in DEFAULT_FORMATS:
            suffix = fmt.name.upper()
            width = _env_value(env, f"MIN_WIDTH_{suffix}", int)
            height = _env_value(env, f"MIN_HEIGHT_{suffix}", int)
            if width is not None or height is not None:
                config = config.with_min_dimensions(
                    fmt.name,
                    width if width is not None else fmt.width,
                    height if height is not None else fmt.height,
                )

        max_images = _env_value(env, "MAX_IMAGES_PER_ROLE", int)
        if max_images is not None:
            config.max_images_per_role = max_images
        threshold = _env_value(env, "DEDUP_THRESHOLD", float)
        if threshold is not None:
            config.dedup_threshold = threshold
        workers = _env_value(env, "PRINTPREP_WORKERS", int)
        if workers is not None:
            config.workers = workers

        return config.validate()


def _env_value(env: Mapping[str, str], name: str, cast):
    raw = env.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from exc


DEFAULT_CONFIG = PipelineConfig()
