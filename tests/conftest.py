"""Shared fixtures: synthetic candidates and a small-format config for fast tests."""
from pathlib import Path
from typing import Tuple

import pytest

from printprep.config import PipelineConfig
from printprep.models import CandidateImage, RoleContext

from .utils import SMALL_FORMATS, write_image


@pytest.fixture
def small_config() -> PipelineConfig:
    return PipelineConfig(formats=SMALL_FORMATS, min_file_bytes=500, workers=2, role_workers=2)


@pytest.fixture
def twilight() -> RoleContext:
    return RoleContext(role_name="Twilight", character="Bella Swan", actor_name="Kristen Stewart")


@pytest.fixture
def image_factory(tmp_path: Path):
    """Return a callable that writes a synthetic image and wraps it as a candidate."""

    def _make(
        name: str,
        role: RoleContext,
        size: Tuple[int, int] = (300, 375),
        seed: int = 0,
        shift: int = 0,
        fmt: str = "PNG",
        **kwargs,
    ) -> CandidateImage:
        path = write_image(tmp_path / "downloads" / name, size=size, seed=seed, shift=shift, fmt=fmt)
        kwargs.setdefault("source_url", f"https://images.example.org/{name}")
        return CandidateImage(filepath=path, role=role, **kwargs)

    return _make
