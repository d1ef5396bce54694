"""Curation and print-format rendering of role/character photographs."""
from __future__ import annotations

from .config import DEFAULT_CONFIG, DEFAULT_FORMATS, PipelineConfig, PrintFormat
from .models import (
    Accepted,
    CandidateImage,
    Rejected,
    RejectReason,
    ResizedOutput,
    RoleContext,
)
from .pipeline import PipelineResult, run_pipeline

__version__ = "1.0.0"

__all__ = [
    "Accepted",
    "CandidateImage",
    "DEFAULT_CONFIG",
    "DEFAULT_FORMATS",
    "PipelineConfig",
    "PipelineResult",
    "PrintFormat",
    "Rejected",
    "RejectReason",
    "ResizedOutput",
    "RoleContext",
    "run_pipeline",
]
