"""
Command-line entry point.

Usage
-----
    printprep <candidates.json> <output_folder>

    Options:
        --celebrity NAME             Override the celebrity named in the input file
        --jsonl                      Emit one JSON report per candidate to stdout
        --no-summary                 Suppress summary output
        --dry-run                    Process without writing files
        --dedup-threshold F          Similarity at which images count as duplicates
        --max-images-per-role N      Accepted images kept per role
        --workers N                  Concurrent image decodes
        --log-level LEVEL            Logging level (default: WARNING)

The input file is either a list of candidate records or an object with
``celebrity`` and ``candidates`` keys. Each record holds ``filepath``,
``roleName`` and optionally ``sourceUrl``, ``title``, ``character``,
``isVoiceRole``, ``franchiseName``, ``actorName`` and ``visionVerdict``.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .config import PipelineConfig
from .manifest import MANIFEST_FILENAME, write_manifest
from .models import CandidateImage, RoleContext
from .pipeline import exit_code, run_pipeline, summarize

logger = logging.getLogger(__name__)


# -----------------------------
# Input loading
# -----------------------------
def _text(record: dict, key: str) -> str:
    """Optional text field; JSON numbers are kept as their string form."""
    value = record.get(key)
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        raise ValueError(f"Field {key!r} must be text, got {type(value).__name__}: {record!r}")
    return str(value).strip()


def candidate_from_record(record: dict, base_dir: Path, celebrity: str) -> CandidateImage:
    if not isinstance(record, dict):
        raise ValueError(f"Candidate record must be an object: {record!r}")
    if not record.get("filepath") or not record.get("roleName"):
        missing = "filepath" if not record.get("filepath") else "roleName"
        raise ValueError(f"Candidate record missing required field '{missing}': {record!r}")

    filepath = Path(_text(record, "filepath"))
    if not filepath.is_absolute():
        filepath = base_dir / filepath

    role = RoleContext(
        role_name=_text(record, "roleName"),
        character=_text(record, "character") or None,
        is_voice_role=bool(record.get("isVoiceRole", False)),
        franchise_name=_text(record, "franchiseName") or None,
        actor_name=_text(record, "actorName") or celebrity or None,
    )
    verdict = record.get("visionVerdict")
    return CandidateImage(
        filepath=filepath,
        role=role,
        source_url=_text(record, "sourceUrl"),
        title=_text(record, "title"),
        vision_verdict=None if verdict is None else bool(verdict),
    )


def load_candidates(path: Path, celebrity: Optional[str] = None) -> Tuple[str, List[CandidateImage]]:
    """Read a candidates file. Returns (celebrity, candidates)."""
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Input file not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}") from e

    if isinstance(payload, list):
        records = payload
        name = celebrity or ""
    elif isinstance(payload, dict):
        records = payload.get("candidates", [])
        name = celebrity or payload.get("celebrity") or ""
    else:
        raise ValueError(f"Unexpected top-level JSON type in {path}: {type(payload).__name__}")

    if not isinstance(records, list):
        raise ValueError(f"'candidates' must be a list in {path}")

    base_dir = path.parent
    return name, [candidate_from_record(record, base_dir, name) for record in records]


# -----------------------------
# Main entry point
# -----------------------------
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="printprep",
        description="Vet, deduplicate and print-format candidate images per role.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("input_file", help="JSON file listing candidate images.")
    parser.add_argument("output_folder", help="Folder where resized images and manifest.json are written.")
    parser.add_argument("--celebrity", help="Celebrity name used in filenames and the manifest.")
    parser.add_argument(
        "--jsonl",
        action="store_true",
        help="Emit one JSON report per candidate to stdout (useful for machine processing).",
    )
    parser.add_argument(
        "--no-summary",
        action="store_true",
        help="Suppress the end-of-run summary line.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Process images but don't write output files (for testing).",
    )
    parser.add_argument("--dedup-threshold", type=float, help="Duplicate similarity threshold (default: 0.85).")
    parser.add_argument("--max-images-per-role", type=int, help="Maximum accepted images per role (default: 50).")
    parser.add_argument("--workers", type=int, help="Concurrent image decodes (default: 4).")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: WARNING).",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> PipelineConfig:
    config = PipelineConfig.from_env()
    overrides = {
        "dedup_threshold": args.dedup_threshold,
        "max_images_per_role": args.max_images_per_role,
        "workers": args.workers,
    }
    overrides = {key: value for key, value in overrides.items() if value is not None}
    return replace(config, **overrides).validate()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    log_level = getattr(logging, args.log_level.upper())
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stderr)]
    )

    if args.dry_run:
        logger.info("DRY RUN MODE - no files will be written")

    try:
        config = config_from_args(args)
        celebrity, candidates = load_candidates(Path(args.input_file), args.celebrity)
        output_root = Path(args.output_folder)
        result = run_pipeline(candidates, output_root, celebrity, config, dry_run=args.dry_run)

        if not args.dry_run:
            manifest_path = write_manifest(result.manifest, output_root / MANIFEST_FILENAME)
            logger.info(f"Saved manifest to {manifest_path}")

        if args.jsonl:
            for report in result.reports():
                print(json.dumps(report.to_dict(), ensure_ascii=False))

        for role_name in result.empty_roles():
            logger.warning(f"Role {role_name} produced no printable images")

        if not args.no_summary and not args.jsonl:
            summary_msg = summarize(result)
            if log_level <= logging.INFO:
                logger.info(summary_msg)
            else:
                # Always print summary to stderr even if logging is quiet
                print(summary_msg, file=sys.stderr)

        return exit_code(result)
    except FileNotFoundError as e:
        logger.critical(f"Fatal: {e}")
        return 2
    except ValueError as e:
        logger.critical(f"Fatal: {e}")
        return 2
    except Exception as e:
        logger.critical(f"Fatal: Unexpected error: {e}", exc_info=True)
        return 3


if __name__ == "__main__":
    raise SystemExit(main())
