"""Records passed between the curation stages."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .config import PrintFormat
from .fingerprint import PerceptualFingerprint


@dataclass(frozen=True)
class RoleContext:
    """The character/work pairing a batch of candidates was fetched for."""
    role_name: str
    character: Optional[str] = None
    is_voice_role: bool = False
    franchise_name: Optional[str] = None
    actor_name: Optional[str] = None


@dataclass(frozen=True)
class CandidateImage:
    """A downloaded file plus its provenance. Read-only to the pipeline."""
    filepath: Path
    role: RoleContext
    source_url: str = ""
    title: str = ""
    data: Optional[bytes] = field(default=None, repr=False)
    vision_verdict: Optional[bool] = None

    @property
    def filename(self) -> str:
        return Path(self.filepath).name

    def byte_size(self) -> int:
        if self.data is not None:
            return len(self.data)
        return Path(self.filepath).stat().st_size


class RejectReason(str, Enum):
    WATERMARK_DETECTED = "watermark_detected"
    FAN_CONTENT_DETECTED = "fan_content_detected"
    ACTOR_PHOTO_IN_VOICE_ROLE = "actor_photo_in_voice_role"
    VISION_REJECTED = "vision_rejected"
    PROCESSING_ERROR = "processing_error"
    RESOLUTION_TOO_LOW = "resolution_too_low"
    FILE_TOO_SMALL = "file_too_small"
    UNSUPPORTED_FORMAT = "unsupported_format"
    DUPLICATE_DETECTED = "duplicate_detected"
    ROLE_LIMIT_REACHED = "role_limit_reached"


@dataclass(frozen=True)
class Rejected:
    reason: RejectReason
    detail: str = ""

    @property
    def message(self) -> str:
        if self.detail:
            return f"{self.reason.value}: {self.detail}"
        return self.reason.value


@dataclass(frozen=True)
class Accepted:
    """Inspection result for an image that may go on to dedup and rendering."""
    width: int
    height: int
    format: str
    file_size: int
    fingerprint: PerceptualFingerprint
    formats: Tuple[PrintFormat, ...]
    tags: Tuple[str, ...] = ()
    quality: Dict[str, object] = field(default_factory=dict, compare=False)


ValidationVerdict = Union[Accepted, Rejected]


@dataclass(frozen=True)
class AcceptedImage:
    """A candidate that survived validation and deduplication."""
    candidate: CandidateImage
    verdict: Accepted
    index: int = 0                                     # position in the role's candidate list


@dataclass(frozen=True)
class ResizedOutput:
    """One accepted image rendered for one print format."""
    path: Path
    format: str
    sequence: int
    candidate: CandidateImage
    verdict: Accepted
    width: int
    height: int
    file_size: int

    @property
    def filename(self) -> str:
        return self.path.name


@dataclass
class CandidateReport:
    """Machine-readable outcome for one candidate."""
    filename: str
    role: str
    status: str
    reason: Optional[str] = None
    formats: List[str] = field(default_factory=list)
    outputs: List[str] = field(default_factory=list)
    hash: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "input": self.filename,
            "role": self.role,
            "status": self.status,
            "reason": self.reason,
            "formats": list(self.formats),
            "outputs": list(self.outputs),
            "hash": self.hash,
        }
