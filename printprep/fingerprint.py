"""Perceptual hashing and per-role duplicate detection."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Optional, Tuple

import imagehash
from PIL import Image

if TYPE_CHECKING:
    from .models import RoleContext


logger = logging.getLogger(__name__)


# -----------------------------
# Fingerprints
# -----------------------------
@dataclass(frozen=True)
class PerceptualFingerprint:
    """Hex form of a DCT perceptual hash. Depends on pixel content only."""
    value: str

    def __str__(self) -> str:
        return self.value

    @property
    def bits(self) -> int:
        return len(self.value) * 4

    def to_hash(self) -> imagehash.ImageHash:
        return imagehash.hex_to_hash(self.value)


def fingerprint(image: Image.Image, hash_size: int = 8) -> PerceptualFingerprint:
    """Compute the perceptual fingerprint of already-decoded pixels."""
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    return PerceptualFingerprint(str(imagehash.phash(image, hash_size=hash_size)))


def similarity(a: PerceptualFingerprint, b: PerceptualFingerprint) -> float:
    """Fraction of matching hash bits, in [0, 1]. Mismatched lengths score 0."""
    if a.bits != b.bits or a.bits == 0:
        return 0.0
    if a.value == b.value:
        return 1.0
    distance = a.to_hash() - b.to_hash()
    return 1.0 - distance / a.bits


# -----------------------------
# Dedup index
# -----------------------------
class DedupIndex:
    """Accepted fingerprints for one role batch.

    No two registered fingerprints have similarity >= threshold. The lock is
    held only across compare-and-register; fingerprinting happens outside.
    """

    def __init__(self, role: Optional["RoleContext"] = None, threshold: float = 0.85):
        self.role = role
        self.threshold = threshold
        self._entries: List[Tuple[PerceptualFingerprint, Any]] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def _scan(self, fp: PerceptualFingerprint) -> Optional[Tuple[Any, float]]:
        for existing, representative in self._entries:
            score = similarity(fp, existing)
            if score >= self.threshold:
                return representative, score
        return None

    def check_and_register(self, fp: PerceptualFingerprint, representative: Any = None) -> bool:
        """Return True if ``fp`` duplicates a registered entry; otherwise register it."""
        with self._lock:
            match = self._scan(fp)
            if match is not None:
                other, score = match
                logger.info(f"Duplicate detected: {score:.2f} similarity with {other}")
                return True
            self._entries.append((fp, representative))
            return False
