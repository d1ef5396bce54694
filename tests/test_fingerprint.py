import shutil
import threading
from pathlib import Path

from PIL import Image

from printprep.fingerprint import DedupIndex, PerceptualFingerprint, fingerprint, similarity

from .utils import fingerprint_path, make_pixels, write_image


def test_fingerprint_is_idempotent(tmp_path: Path):
    """Verify repeated fingerprinting of identical bytes gives the same value."""
    path = write_image(tmp_path / "a.png", seed=1)
    assert fingerprint_path(path) == fingerprint_path(path)


def test_fingerprint_ignores_path_and_container(tmp_path: Path):
    """Verify the fingerprint depends on pixels only."""
    original = write_image(tmp_path / "a.png", seed=1)
    copy = tmp_path / "elsewhere" / "renamed.png"
    copy.parent.mkdir()
    shutil.copy(original, copy)
    assert fingerprint_path(original) == fingerprint_path(copy)
    assert fingerprint(Image.fromarray(make_pixels((300, 375), 1))) == fingerprint_path(original)


def test_similarity_bounds_and_symmetry(tmp_path: Path):
    """Verify similarity is 1 for itself, symmetric and within [0, 1]."""
    a = fingerprint_path(write_image(tmp_path / "a.png", seed=1))
    b = fingerprint_path(write_image(tmp_path / "b.png", seed=2))
    assert similarity(a, a) == 1.0
    assert similarity(a, b) == similarity(b, a)
    assert 0.0 <= similarity(a, b) < 1.0


def test_near_duplicate_scores_above_threshold(tmp_path: Path):
    """Verify a brightness-shifted copy is recognised as a near-duplicate."""
    a = fingerprint_path(write_image(tmp_path / "a.png", seed=3))
    b = fingerprint_path(write_image(tmp_path / "b.png", seed=3, shift=3))
    assert similarity(a, b) >= 0.85


def test_distinct_images_score_below_threshold(tmp_path: Path):
    """Verify unrelated images stay under the default threshold."""
    fps = [fingerprint_path(write_image(tmp_path / f"{i}.png", seed=10 + i)) for i in range(4)]
    for i, a in enumerate(fps):
        for b in fps[i + 1:]:
            assert similarity(a, b) < 0.85


def test_mismatched_hash_lengths_score_zero():
    """Verify fingerprints of different sizes never match."""
    assert similarity(PerceptualFingerprint("ff" * 8), PerceptualFingerprint("ff" * 32)) == 0.0


def test_similarity_counts_bits():
    """Verify one differing nibble bit lowers similarity by 1/64."""
    a = PerceptualFingerprint("0000000000000000")
    b = PerceptualFingerprint("0000000000000001")
    assert similarity(a, b) == 1.0 - 1 / 64


def test_dedup_index_registers_first_and_rejects_duplicate():
    """Verify check_and_register semantics."""
    index = DedupIndex(threshold=0.85)
    fp = PerceptualFingerprint("8f3c0a1b2c3d4e5f")
    assert index.check_and_register(fp, "first.jpg") is False
    assert index.check_and_register(fp, "second.jpg") is True
    assert len(index) == 1
    assert index.check_and_register(PerceptualFingerprint("8f3c0a1b2c3d4e5e"), "third.jpg") is True


def test_dedup_threshold_controls_permissiveness():
    """Verify a higher threshold rejects fewer near-matches."""
    a = PerceptualFingerprint("0000000000000000")
    b = PerceptualFingerprint("000000000000000f")  # 4 bits apart -> 0.9375

    strict = DedupIndex(threshold=0.85)
    strict.check_and_register(a)
    assert strict.check_and_register(b) is True

    lenient = DedupIndex(threshold=0.95)
    lenient.check_and_register(a)
    assert lenient.check_and_register(b) is False
    assert len(lenient) == 2


def test_indexes_are_independent_per_role():
    """Verify registering in one role's index does not affect another."""
    fp = PerceptualFingerprint("0123456789abcdef")
    first, second = DedupIndex(threshold=0.85), DedupIndex(threshold=0.85)
    assert first.check_and_register(fp) is False
    assert second.check_and_register(fp) is False


def test_concurrent_registration_admits_one():
    """Verify two threads cannot both register the same fingerprint."""
    index = DedupIndex(threshold=0.85)
    fp = PerceptualFingerprint("fedcba9876543210")
    results = []
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        results.append(index.check_and_register(fp))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(False) == 1
    assert len(index) == 1
