"""Job summaries, history exports and plain-text review reports."""
from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from .exporters import write_csv
from .models import Reference, ReferenceStatus, resolve_display_value
from .reconciler import CorrectionReconciler

HISTORY_CSV_HEADER = ["Date", "Filename", "Entries", "Verified", "Issues", "Status"]

ISSUE_STATUSES = {ReferenceStatus.ISSUE, ReferenceStatus.RETRACTED, ReferenceStatus.NOT_FOUND}


class JobSummary(BaseModel):
    """Per-job counts shown on the dashboard and in the history export."""

    file_name: str
    created_at: datetime = Field(default_factory=datetime.now)
    status: str = "completed"
    total_references: int = 0
    verified_count: int = 0
    issues_count: int = 0
    warnings_count: int = 0
    duplicate_count: int = 0


def summarize_job(
    references: Sequence[Reference],
    file_name: str,
    created_at: Optional[datetime] = None,
    status: str = "completed",
) -> JobSummary:
    statuses = [ReferenceStatus(ref.status) for ref in references]
    return JobSummary(
        file_name=file_name,
        created_at=created_at or datetime.now(),
        status=status,
        total_references=len(references),
        verified_count=sum(1 for item in statuses if item == ReferenceStatus.VERIFIED),
        issues_count=sum(1 for item in statuses if item in ISSUE_STATUSES),
        warnings_count=sum(1 for item in statuses if item == ReferenceStatus.WARNING),
        duplicate_count=sum(1 for item in statuses if item == ReferenceStatus.DUPLICATE),
    )


def _history_date(value: datetime) -> str:
    return f"{value.strftime('%b')} {value.day}, {value.year}"


def to_history_csv(jobs: Sequence[JobSummary]) -> str:
    """Render the job-history export; dates contain a comma and are quoted."""
    rows = [
        [
            _history_date(job.created_at),
            job.file_name,
            job.total_references,
            job.verified_count,
            job.issues_count,
            job.status,
        ]
        for job in jobs
    ]
    return write_csv(HISTORY_CSV_HEADER, rows)


def history_filename(day: Optional[date] = None) -> str:
    day = day or date.today()
    return f"refcheck_history_{day.isoformat()}.csv"


def render_report(
    references: Sequence[Reference],
    summary: Optional[JobSummary] = None,
    reconciler: Optional[CorrectionReconciler] = None,
) -> str:
    """Return a human-readable summary of references still needing review."""
    reconciler = reconciler or CorrectionReconciler()
    summary = summary or summarize_job(references, file_name="")

    lines: List[str] = ["Reference Reconciliation Report"]
    if summary.file_name:
        lines.append(f"File: {summary.file_name}")
    lines.append(f"Reference entries: {summary.total_references}")
    lines.append(f"Verified: {summary.verified_count}")
    lines.append(f"Warnings: {summary.warnings_count}")
    lines.append(f"Issues: {summary.issues_count}")

    pending = []
    for ref in references:
        if ref.user_decision is not None:
            continue
        fixes = reconciler.compute_quick_fixes(ref)
        if fixes:
            pending.append((ref, fixes))

    if not pending:
        lines.append("No pending corrections.")
        return "\n".join(lines)

    lines.append("Pending corrections:")
    for ref, fixes in pending:
        title = resolve_display_value(ref, "title") or ref.id
        lines.append(f"- {ref.key or ref.id}: {title}")
        for fix in fixes:
            lines.append(f"    {fix.title} -> {fix.suggested_value}")
    return "\n".join(lines)
