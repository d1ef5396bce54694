"""
Batch orchestration: validate, deduplicate, render and summarise.

Validation (filters, decode, fingerprint) runs concurrently in a bounded
thread pool. Dedup registration and sequence-number claiming happen
serially in candidate order, so repeated runs over the same input produce
the same accepted set and the same filenames.
"""
from __future__ import annotations

import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import ExitStack
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from .config import DEFAULT_CONFIG, PipelineConfig
from .fingerprint import DedupIndex
from .inspector import print_warnings, validate_candidate
from .manifest import Manifest, build
from .models import (
    AcceptedImage,
    CandidateImage,
    CandidateReport,
    Rejected,
    RejectReason,
    ResizedOutput,
    RoleContext,
    ValidationVerdict,
)
from .renderer import SequenceCounter, format_directory, render

logger = logging.getLogger(__name__)


@dataclass
class RoleBatch:
    """Everything that happened to one role's candidates."""
    role: RoleContext
    candidates: List[CandidateImage]
    verdicts: List[ValidationVerdict] = field(default_factory=list)
    accepted: List[AcceptedImage] = field(default_factory=list)
    outputs: List[ResizedOutput] = field(default_factory=list)
    render_errors: Dict[int, Rejected] = field(default_factory=dict)
    error: Optional[str] = None

    def reject(self, index: int, rejection: Rejected) -> None:
        self.verdicts[index] = rejection
        logger.warning(f"Rejected {self.candidates[index].filename}: {rejection.message}")

    @property
    def rejected(self) -> List[Tuple[CandidateImage, Rejected]]:
        return [
            (candidate, verdict)
            for candidate, verdict in zip(self.candidates, self.verdicts)
            if isinstance(verdict, Rejected)
        ]

    @property
    def aborted(self) -> bool:
        return self.error is not None

    @property
    def render_failed(self) -> List[AcceptedImage]:
        """Accepted images none of whose formats could be rendered."""
        if self.aborted:
            return []
        rendered = {id(output.candidate) for output in self.outputs}
        return [
            item for item in self.accepted
            if item.index in self.render_errors and id(item.candidate) not in rendered
        ]

    def reports(self) -> List[CandidateReport]:
        outputs_by_index: Dict[int, List[ResizedOutput]] = {}
        accepted_index = {id(item.candidate): item.index for item in self.accepted}
        for output in self.outputs:
            idx = accepted_index[id(output.candidate)]
            outputs_by_index.setdefault(idx, []).append(output)

        reports = []
        for idx, (candidate, verdict) in enumerate(zip(self.candidates, self.verdicts)):
            report = CandidateReport(filename=candidate.filename, role=self.role.role_name, status="accepted")
            if isinstance(verdict, Rejected):
                report.status = "rejected"
                report.reason = verdict.message
            else:
                report.formats = [fmt.name for fmt in verdict.formats]
                report.outputs = [str(o.path) for o in outputs_by_index.get(idx, [])]
                report.hash = str(verdict.fingerprint)
                if idx in self.render_errors:
                    report.reason = self.render_errors[idx].message
                    if not report.outputs:
                        report.status = "render_failed"
                if self.aborted:
                    report.status = "aborted"
                    report.reason = self.error
            reports.append(report)
        return reports


@dataclass
class PipelineResult:
    batches: List[RoleBatch]
    manifest: Manifest

    @property
    def outputs(self) -> List[ResizedOutput]:
        return [output for batch in self.batches for output in batch.outputs]

    def reports(self) -> List[CandidateReport]:
        return [report for batch in self.batches for report in batch.reports()]

    def rejection_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for batch in self.batches:
            for _, rejection in batch.rejected:
                counts[rejection.reason.value] = counts.get(rejection.reason.value, 0) + 1
        return counts

    def empty_roles(self) -> List[str]:
        return [batch.role.role_name for batch in self.batches if not batch.outputs]


def group_by_role(candidates: Iterable[CandidateImage]) -> List[Tuple[RoleContext, List[CandidateImage]]]:
    """Group candidates by role, keeping first-appearance order of roles and images."""
    groups: Dict[RoleContext, List[CandidateImage]] = {}
    for candidate in candidates:
        groups.setdefault(candidate.role, []).append(candidate)
    return list(groups.items())


def _pool(stack: ExitStack, executor: Optional[Executor], workers: int) -> Executor:
    if executor is not None:
        return executor
    return stack.enter_context(ThreadPoolExecutor(max_workers=workers))


# -----------------------------
# Validation and deduplication
# -----------------------------
def process_role(
    role: RoleContext,
    candidates: Iterable[CandidateImage],
    config: PipelineConfig = DEFAULT_CONFIG,
    executor: Optional[Executor] = None,
) -> RoleBatch:
    """Validate a role's candidates and keep the non-duplicate ones, in input order."""
    batch = RoleBatch(role=role, candidates=list(candidates))
    logger.info(f"Validating {len(batch.candidates)} images for {role.role_name}...")

    with ExitStack() as stack:
        pool = _pool(stack, executor, config.workers)
        batch.verdicts = list(pool.map(partial(validate_candidate, config=config), batch.candidates))

    index = DedupIndex(role, config.dedup_threshold)
    for i, (candidate, verdict) in enumerate(zip(batch.candidates, batch.verdicts)):
        if isinstance(verdict, Rejected):
            logger.warning(f"Rejected {candidate.filename}: {verdict.message}")
            continue
        if len(batch.accepted) >= config.max_images_per_role:
            batch.reject(i, Rejected(RejectReason.ROLE_LIMIT_REACHED, str(config.max_images_per_role)))
            continue
        if index.check_and_register(verdict.fingerprint, candidate.filename):
            batch.reject(i, Rejected(RejectReason.DUPLICATE_DETECTED))
            continue

        batch.accepted.append(AcceptedImage(candidate=candidate, verdict=verdict, index=i))
        for warning in print_warnings(verdict, config):
            logger.warning(f"{candidate.filename}: {warning}")

    logger.info(
        f"Validation complete for {role.role_name}: "
        f"{len(batch.accepted)}/{len(batch.candidates)} images passed"
    )
    return batch


# -----------------------------
# Rendering
# -----------------------------
def render_role(
    batch: RoleBatch,
    counter: SequenceCounter,
    output_root: Path,
    celebrity: str = "",
    config: PipelineConfig = DEFAULT_CONFIG,
    executor: Optional[Executor] = None,
    dry_run: bool = False,
) -> RoleBatch:
    """
    Render every accepted image of a role to each of its formats.

    Sequence numbers are claimed serially in accepted order before any
    rendering starts. A ValueError affects only its image; an OSError
    (output directory or disk) aborts the role and removes what it wrote.
    """
    jobs = [
        (item, fmt, counter.next(fmt.name))
        for item in batch.accepted
        for fmt in item.verdict.formats
    ]
    if not jobs:
        if not batch.accepted:
            logger.warning(f"No images survived for {batch.role.role_name}")
        return batch

    failure: Optional[OSError] = None
    outputs: List[ResizedOutput] = []
    with ExitStack() as stack:
        try:
            if not dry_run:
                for name in sorted({fmt.name for _, fmt, _ in jobs}):
                    format_directory(output_root, name).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            failure = e
        else:
            pool = _pool(stack, executor, config.workers)
            futures = [
                pool.submit(
                    render, item.candidate, item.verdict, fmt, sequence,
                    output_root, celebrity, config, dry_run,
                )
                for item, fmt, sequence in jobs
            ]
            for (item, fmt, _), future in zip(jobs, futures):
                try:
                    outputs.append(future.result())
                except ValueError as e:
                    rejection = Rejected(RejectReason.PROCESSING_ERROR, str(e))
                    batch.render_errors[item.index] = rejection
                    logger.warning(f"Failed to resize {item.candidate.filename} to {fmt.name}: {e}")
                except OSError as e:
                    if failure is None:
                        failure = e

    if failure is not None:
        batch.error = f"{type(failure).__name__}: {failure}"
        logger.critical(f"Aborting role {batch.role.role_name}: {batch.error}")
        if not dry_run:
            for output in outputs:
                output.path.unlink(missing_ok=True)
        return batch

    batch.outputs = outputs
    logger.info(f"Resizing complete for {batch.role.role_name}: {len(outputs)} output files")
    return batch


# -----------------------------
# Whole run
# -----------------------------
def run_pipeline(
    candidates: Iterable[CandidateImage],
    output_root: Path,
    celebrity: str = "",
    config: PipelineConfig = DEFAULT_CONFIG,
    dry_run: bool = False,
    generated: Optional[datetime] = None,
) -> PipelineResult:
    """Curate and render every role, then build the manifest (not written here)."""
    config.validate()
    output_root = Path(output_root)
    groups = group_by_role(candidates)
    counter = SequenceCounter()

    with ThreadPoolExecutor(max_workers=config.workers) as image_pool, \
            ThreadPoolExecutor(max_workers=config.role_workers) as role_pool:
        futures = [
            role_pool.submit(process_role, role, items, config, image_pool)
            for role, items in groups
        ]
        batches = [future.result() for future in futures]

        for batch in batches:
            render_role(batch, counter, output_root, celebrity, config, image_pool, dry_run)

    outputs = [output for batch in batches for output in batch.outputs]
    role_names = [batch.role.role_name for batch in batches]
    manifest = build(outputs, celebrity, role_names, generated, config.square_tolerance)
    return PipelineResult(batches=batches, manifest=manifest)


def summarize(result: PipelineResult) -> str:
    total = sum(len(batch.candidates) for batch in result.batches)
    accepted = sum(len(batch.accepted) for batch in result.batches)
    render_failed = sum(len(batch.render_failed) for batch in result.batches)
    rejections = result.rejection_counts()
    rejected_desc = ", ".join(f"{reason}={count}" for reason, count in sorted(rejections.items()))
    formats_desc = ", ".join(f"{name}={count}" for name, count in result.manifest.formats.items())
    aborted = sum(1 for batch in result.batches if batch.aborted)
    return (
        f"Summary: Processed {total} candidate(s) across {len(result.batches)} role(s) - "
        f"Accepted={accepted - render_failed}, Rejected={total - accepted}"
        + (f" ({rejected_desc})" if rejected_desc else "")
        + f", RenderFailed={render_failed}"
        + f", Outputs={result.manifest.total_images}"
        + (f" ({formats_desc})" if formats_desc else "")
        + f", EmptyRoles={len(result.empty_roles())}, AbortedRoles={aborted}"
    )


def exit_code(result: PipelineResult) -> int:
    """0 when every role produced outputs; 1 when any role is empty or aborted."""
    if result.empty_roles():
        return 1
    return 0
