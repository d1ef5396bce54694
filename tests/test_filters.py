from pathlib import Path

import pytest

from printprep import filters
from printprep.models import CandidateImage, RejectReason, RoleContext

ROLE = RoleContext(role_name="Twilight", character="Bella Swan", actor_name="Kristen Stewart")
PIKACHU = RoleContext(
    role_name="Pokemon",
    character="Pikachu",
    is_voice_role=True,
    franchise_name="Pokemon",
    actor_name="Ash Ketchum",
)


def candidate(filename="bella-swan-still.jpg", url="https://images.example.org/a.jpg", title="", role=ROLE, **kw):
    return CandidateImage(filepath=Path("/downloads") / filename, role=role, source_url=url, title=title, **kw)


def test_clean_candidate_passes():
    """Verify a candidate with neutral metadata is accepted."""
    assert filters.evaluate(candidate(title="Bella Swan in Twilight")) is None


@pytest.mark.parametrize(
    "kwargs",
    [
        {"url": "https://www.shutterstock.com/image-photo/bella-123.jpg"},
        {"url": "https://media.example.com/preview/bella.jpg"},
        {"url": "https://cdn.example.com/comp/12345.jpg"},
        {"filename": "gettyimages-1234567.jpg"},
        {"title": "Twilight Stock Photo - Alamy"},
        {"url": "https://c8.alamy.com/zooms/abc.jpg"},
    ],
)
def test_watermark_sources_rejected(kwargs):
    """Verify stock vendors and watermark URL paths are rejected."""
    rejection = filters.evaluate(candidate(**kwargs))
    assert rejection is not None
    assert rejection.reason is RejectReason.WATERMARK_DETECTED


@pytest.mark.parametrize(
    "kwargs",
    [
        {"url": "https://www.deviantart.com/someone/art/bella-123"},
        {"filename": "bella-fan-art.jpg"},
        {"title": "My Bella Swan drawing"},
        {"url": "https://somebody.tumblr.com/post/1.jpg"},
    ],
)
def test_fan_content_rejected(kwargs):
    """Verify fan-art domains and keywords are rejected."""
    rejection = filters.evaluate(candidate(**kwargs))
    assert rejection is not None
    assert rejection.reason is RejectReason.FAN_CONTENT_DETECTED


def test_watermark_takes_precedence_over_fan_content():
    """Verify the checks short-circuit in fixed order."""
    rejection = filters.evaluate(candidate(url="https://www.shutterstock.com/x.jpg", title="fan art"))
    assert rejection.reason is RejectReason.WATERMARK_DETECTED


def test_actor_photo_in_voice_role_rejected():
    """Verify a performer headshot without character context is rejected for a voice role."""
    rejection = filters.evaluate(
        candidate(filename="ash-ketchum-actor-headshot.jpg", title="ash-ketchum-actor-headshot.jpg", role=PIKACHU)
    )
    assert rejection is not None
    assert rejection.reason is RejectReason.ACTOR_PHOTO_IN_VOICE_ROLE


@pytest.mark.parametrize(
    "title",
    [
        "Ash Ketchum with Pikachu",
        "Ash Ketchum animated episode screenshot",
        "Pokemon - Ash Ketchum",
    ],
)
def test_voice_role_with_character_context_passes(title):
    """Verify character or animation context keeps the image."""
    assert filters.evaluate(candidate(filename="img_01.jpg", title=title, role=PIKACHU)) is None


def test_voice_role_without_actor_name_in_text_passes():
    """Verify images that never mention the performer are not touched by the voice check."""
    assert filters.evaluate(candidate(filename="headshot.jpg", title="headshot", role=PIKACHU)) is None


def test_actor_name_ignored_for_live_action_role():
    """Verify the voice check only runs for voice roles."""
    assert filters.evaluate(candidate(filename="kristen-stewart-headshot.jpg")) is None


def test_actor_name_must_match_whole_words():
    """Verify partial name matches do not trigger the voice check."""
    role = RoleContext(role_name="Show", character="Hero", is_voice_role=True, actor_name="Al")
    assert filters.evaluate(candidate(filename="alan-portrait.jpg", role=role)) is None


def test_vision_verdict_consumed():
    """Verify an external rejection verdict is honoured and an approval is not a rejection."""
    assert filters.evaluate(candidate(vision_verdict=False)).reason is RejectReason.VISION_REJECTED
    assert filters.evaluate(candidate(vision_verdict=True)) is None


def test_normalize_text():
    """Verify normalize text behavior."""
    assert filters.normalize_text("Ash_Ketchum-Actor.JPG", None, "Red%20Carpet") == "ash ketchum actor jpg red carpet"
