"""
Policy filters applied to candidate metadata before any decoding.

Checks run in a fixed order and stop at the first match:
1. watermark / stock-photo sources
2. fan-made content
3. performer photos sourced for a voice role
4. an externally supplied vision verdict, when present
"""
from __future__ import annotations

import logging
import re
from typing import Iterable, Optional, Tuple
from urllib.parse import urlparse

from .models import CandidateImage, Rejected, RejectReason, RoleContext

logger = logging.getLogger(__name__)


# -----------------------------
# Keyword lists
# -----------------------------
STOCK_KEYWORDS: Tuple[str, ...] = (
    "watermark",
    "shutterstock",
    "gettyimages",
    "getty images",
    "alamy",
    "istockphoto",
    "istock",
    "dreamstime",
    "depositphotos",
    "123rf",
    "bigstock",
    "adobestock",
    "adobe stock",
    "stock photo",
)

WATERMARK_PATH_PATTERNS: Tuple[str, ...] = ("/preview/", "/comp/", "/watermark/")

STOCK_DOMAINS: Tuple[str, ...] = (
    "shutterstock.com",
    "gettyimages.com",
    "alamy.com",
    "istockphoto.com",
    "dreamstime.com",
    "depositphotos.com",
    "123rf.com",
    "stock.adobe.com",
    "bigstockphoto.com",
    "pond5.com",
)

FAN_KEYWORDS: Tuple[str, ...] = (
    "fanart",
    "fan art",
    "fan made",
    "fanmade",
    "fan edit",
    "drawing",
    "sketch",
    "artwork",
    "cosplay",
    "meme",
    "parody",
    "redraw",
)

FAN_DOMAINS: Tuple[str, ...] = (
    "deviantart.com",
    "fanpop.com",
    "artstation.com",
    "pixiv.net",
    "tumblr.com",
    "fanart.tv",
    "wattpad.com",
    "reddit.com",
)

CHARACTER_CONTEXT_KEYWORDS: Tuple[str, ...] = (
    "animated",
    "animation",
    "anime",
    "cartoon",
    "character",
    "scene",
    "episode",
    "screenshot",
    "still",
    "voice",
)

_SEPARATORS = re.compile(r"(%20|[-_.+/\\])+")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(*parts: Optional[str]) -> str:
    """Lowercase and join text, treating filename separators as spaces."""
    joined = " ".join(p for p in parts if p)
    joined = _SEPARATORS.sub(" ", joined.lower())
    return _WHITESPACE.sub(" ", joined).strip()


def _contains_any(haystacks: Iterable[str], needles: Iterable[str]) -> Optional[str]:
    haystacks = [h for h in haystacks if h]
    for needle in needles:
        for haystack in haystacks:
            if needle in haystack:
                return needle
    return None


def _host(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def _host_matches(host: str, domains: Iterable[str]) -> Optional[str]:
    for domain in domains:
        if host == domain or host.endswith("." + domain):
            return domain
    return None


def _raw_fields(candidate: CandidateImage) -> Tuple[str, str, str]:
    return (
        candidate.filename.lower(),
        (candidate.source_url or "").lower(),
        (candidate.title or "").lower(),
    )


# -----------------------------
# Individual checks
# -----------------------------
def check_watermark(candidate: CandidateImage) -> Optional[Rejected]:
    filename, url, title = _raw_fields(candidate)
    hit = (
        _contains_any((filename, url, title), STOCK_KEYWORDS)
        or _contains_any((url,), WATERMARK_PATH_PATTERNS)
        or _host_matches(_host(url), STOCK_DOMAINS)
    )
    if hit:
        return Rejected(RejectReason.WATERMARK_DETECTED, hit)
    return None


def check_fan_content(candidate: CandidateImage) -> Optional[Rejected]:
    filename, url, title = _raw_fields(candidate)
    normalized = normalize_text(candidate.filename, candidate.title)
    hit = (
        _contains_any((filename, url, title, normalized), FAN_KEYWORDS)
        or _host_matches(_host(url), FAN_DOMAINS)
    )
    if hit:
        return Rejected(RejectReason.FAN_CONTENT_DETECTED, hit)
    return None


def character_context_keywords(role: RoleContext) -> Tuple[str, ...]:
    extra = [normalize_text(name) for name in (role.character, role.franchise_name) if name]
    return CHARACTER_CONTEXT_KEYWORDS + tuple(k for k in extra if k)


def check_voice_role(candidate: CandidateImage) -> Optional[Rejected]:
    """Voice-role prints should show the character, not the performer."""
    role = candidate.role
    if not (role.is_voice_role and role.character and role.actor_name):
        return None

    text = f" {normalize_text(candidate.filename, candidate.title)} "
    actor = normalize_text(role.actor_name)
    if not actor or f" {actor} " not in text:
        return None
    if _contains_any((text,), character_context_keywords(role)):
        return None
    return Rejected(RejectReason.ACTOR_PHOTO_IN_VOICE_ROLE, role.actor_name)


def check_vision_verdict(candidate: CandidateImage) -> Optional[Rejected]:
    if candidate.vision_verdict is False:
        return Rejected(RejectReason.VISION_REJECTED)
    return None


POLICY_CHECKS = (
    check_watermark,
    check_fan_content,
    check_voice_role,
    check_vision_verdict,
)


def evaluate(candidate: CandidateImage) -> Optional[Rejected]:
    """Return the first policy rejection for a candidate, or None to accept."""
    for check in POLICY_CHECKS:
        rejection = check(candidate)
        if rejection is not None:
            logger.debug(f"{candidate.filename}: {check.__name__} -> {rejection.message}")
            return rejection
    return None
