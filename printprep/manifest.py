"""Aggregation of rendered outputs into the deliverable manifest."""
from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .config import SQUARE_TOLERANCE
from .formats import orientation
from .models import ResizedOutput

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "manifest.json"
ID_LENGTH = 8


def image_id(filename: str, format_name: str, role: str) -> str:
    """Short display/dedup token. Not a security identifier."""
    data = f"{filename}_{format_name}_{role}"
    return hashlib.md5(data.encode("utf-8")).hexdigest()[:ID_LENGTH]


def iso_timestamp(moment: Optional[datetime] = None) -> str:
    moment = moment or datetime.now(timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class ManifestEntry:
    id: str
    filename: str
    original_filename: str
    role: str
    format: str
    width: int
    height: int
    tags: Sequence[str]
    source_url: str
    orientation: str
    file_size: int
    hash: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "filename": self.filename,
            "originalFilename": self.original_filename,
            "role": self.role,
            "format": self.format,
            "dimensions": {"width": self.width, "height": self.height},
            "tags": list(self.tags),
            "sourceUrl": self.source_url,
            "orientation": self.orientation,
            "fileSize": self.file_size,
            "hash": self.hash,
        }


@dataclass(frozen=True)
class Manifest:
    celebrity: str
    generated: str
    formats: Dict[str, int]
    images: List[ManifestEntry]
    roles: Dict[str, int] = field(default_factory=dict)

    @property
    def total_images(self) -> int:
        return len(self.images)

    def to_dict(self) -> dict:
        return {
            "celebrity": self.celebrity,
            "generated": self.generated,
            "totalImages": self.total_images,
            "formats": dict(self.formats),
            "roles": dict(self.roles),
            "images": [entry.to_dict() for entry in self.images],
        }


def create_entry(output: ResizedOutput, square_tolerance: float = SQUARE_TOLERANCE) -> ManifestEntry:
    role = output.candidate.role.role_name
    return ManifestEntry(
        id=image_id(output.filename, output.format, role),
        filename=output.filename,
        original_filename=output.candidate.filename,
        role=role,
        format=output.format,
        width=output.width,
        height=output.height,
        tags=tuple(output.verdict.tags),
        source_url=output.candidate.source_url,
        orientation=orientation(output.width, output.height, square_tolerance),
        file_size=output.file_size,
        hash=str(output.verdict.fingerprint),
    )


def format_counts(outputs: Iterable[ResizedOutput]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for output in outputs:
        counts[output.format] = counts.get(output.format, 0) + 1
    return counts


def build(
    outputs: Sequence[ResizedOutput],
    celebrity: str,
    role_names: Optional[Iterable[str]] = None,
    generated: Optional[datetime] = None,
    square_tolerance: float = SQUARE_TOLERANCE,
) -> Manifest:
    """
    Aggregate rendered outputs into a manifest.

    ``role_names`` lets the caller list roles that produced nothing; any
    role with outputs is counted regardless.
    """
    roles: Dict[str, int] = {name: 0 for name in (role_names or ())}
    for output in outputs:
        name = output.candidate.role.role_name
        roles[name] = roles.get(name, 0) + 1

    manifest = Manifest(
        celebrity=celebrity,
        generated=iso_timestamp(generated),
        formats=format_counts(outputs),
        images=[create_entry(output, square_tolerance) for output in outputs],
        roles=roles,
    )
    logger.info(f"Manifest generated with {manifest.total_images} images")
    return manifest


def write_manifest(manifest: Manifest, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(manifest.to_dict(), indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return path
