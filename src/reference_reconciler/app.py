"""High-level orchestrator for reference reconciliation workflows."""
from __future__ import annotations

from contextlib import ExitStack, contextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Set
import threading

from loguru import logger

from .config import Settings
from .duplicates import DuplicateGrouper, IgnoreList, assign_group_ids
from .errors import (
    ConcurrentModificationError,
    DuplicateReferenceIdError,
    ReconciliationError,
    StaleMergeTargetError,
)
from .exporters import ExportResult, export_references
from .formatter import CitationFormatter, assign_unique_keys
from .models import Difference, DuplicateGroup, FormattedCitation, QuickFix, Reference
from .reconciler import CorrectionReconciler, FixSelection
from .report import JobSummary, render_report, summarize_job
from .schemas import CorrectionRequest, CorrectionResponse, MergeRequest, MergeResponse
from .store import InMemoryReferenceStore, ReferenceStore


class InFlightRegistry:
    """Thread-safe set of references and groups with a commit in progress."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active: Set[str] = set()

    @contextmanager
    def claim(self, key: str) -> Iterator[None]:
        with self._lock:
            if key in self._active:
                raise ConcurrentModificationError(f"A commit for {key} is already in flight")
            self._active.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._active.discard(key)

    def is_active(self, key: str) -> bool:
        with self._lock:
            return key in self._active


class ReconciliationApp:
    """Coordinates ingestion, duplicate review, corrections and export for one job."""

    def __init__(
        self,
        store: ReferenceStore | None = None,
        grouper: DuplicateGrouper | None = None,
        reconciler: CorrectionReconciler | None = None,
        formatter: CitationFormatter | None = None,
        settings: Settings | None = None,
        ignore_list: IgnoreList | None = None,
    ):
        self.store = store or InMemoryReferenceStore()
        self.grouper = grouper or DuplicateGrouper()
        self.reconciler = reconciler or CorrectionReconciler()
        self.formatter = formatter or CitationFormatter()
        self.settings = settings or Settings()
        self.ignore_list = ignore_list or IgnoreList()
        self.in_flight = InFlightRegistry()

    def ingest(self, records: Iterable[Mapping[str, Any] | Reference]) -> List[Reference]:
        """Normalize records, give every reference a unique key and store them."""
        incoming = [Reference.from_record(record) for record in records]
        existing = self.store.all()
        seen = {ref.id for ref in existing}
        for ref in incoming:
            if ref.id in seen:
                raise DuplicateReferenceIdError(f"Duplicate reference id: {ref.id}")
            seen.add(ref.id)

        keyed = assign_unique_keys(existing + incoming)[len(existing):]
        for ref in keyed:
            self.store.save(ref)
        logger.info("Ingested {} references", len(keyed))
        return keyed

    def references(self) -> List[Reference]:
        return self.store.all()

    def duplicate_groups(self) -> List[DuplicateGroup]:
        """Recompute duplicate groups, record group ids and hide ignored groups."""
        current = self.store.all()
        groups = self.grouper.group(current)
        updated = {ref.id: ref for ref in assign_group_ids(current, groups)}
        for ref in current:
            if updated[ref.id] is not ref:
                self.store.save(updated[ref.id])
        for group in groups:
            group.references = [updated[ref.id] for ref in group.references]
            group.canonical_reference = updated[group.canonical_id]
        return self.ignore_list.visible(groups)

    def ignore_group(self, group_id: str) -> None:
        with self.in_flight.claim(f"group:{group_id}"):
            self.ignore_list.ignore(group_id)
        logger.info("Duplicate group {} ignored", group_id)

    def differences(self, reference_id: str) -> List[Difference]:
        return self.reconciler.compute_differences(self.store.get(reference_id))

    def quick_fixes(self, reference_id: str) -> List[QuickFix]:
        return self.reconciler.compute_quick_fixes(self.store.get(reference_id))

    def confidence_breakdown(self, reference_id: str) -> List[str]:
        return self.reconciler.compute_confidence_breakdown(self.store.get(reference_id))

    def format_reference(
        self, reference_id: str, style: object = None, number: int = 1
    ) -> FormattedCitation:
        style = style or self.settings.default_style
        return self.formatter.format(self.store.get(reference_id), style, number=number)

    def commit_correction(self, request: CorrectionRequest) -> CorrectionResponse:
        """Apply an accept/reject decision and persist the result."""
        try:
            with self.in_flight.claim(f"reference:{request.reference_id}"):
                reference = self.store.get(request.reference_id)
                updated = self.reconciler.apply_decision(
                    reference, request.accepted, request.corrected_fields
                )
                self.store.save(updated)
        except ReconciliationError as exc:
            logger.warning("Correction for {} rejected: {}", request.reference_id, exc)
            return CorrectionResponse(success=False, error=str(exc))

        message = "Corrections applied successfully" if request.accepted else "Reference marked as reviewed"
        logger.info("Reference {} {}", request.reference_id, request.decision.value)
        return CorrectionResponse(success=True, message=message, reference=updated)

    def commit_quick_fixes(self, reference_id: str, selection: FixSelection) -> CorrectionResponse:
        """Accept the quick fixes ticked in ``selection``."""
        try:
            fixes = self.quick_fixes(reference_id)
        except ReconciliationError as exc:
            return CorrectionResponse(success=False, error=str(exc))
        request = CorrectionRequest(
            reference_id=reference_id,
            decision="accepted",
            corrected_fields=selection.corrections(fixes),
        )
        response = self.commit_correction(request)
        if response.success:
            selection.clear()
        return response

    def commit_merge(self, request: MergeRequest) -> MergeResponse:
        """Keep ``primary_id`` and delete the other members of the group.

        The group is recomputed from the current collection; if its
        membership no longer matches the request, nothing is deleted.
        """
        try:
            with ExitStack() as claims:
                claims.enter_context(self.in_flight.claim(f"group:{request.group_id}"))
                if request.group_id in self.ignore_list:
                    raise StaleMergeTargetError(f"Duplicate group {request.group_id} was ignored")
                current = self.store.all()
                groups = {group.group_id: group for group in self.grouper.group(current)}
                group = groups.get(request.group_id)
                if group is None:
                    raise StaleMergeTargetError(f"Duplicate group {request.group_id} no longer exists")
                ids_to_delete = self.grouper.merge_group(group, request.primary_id, current)
                if request.ids_to_delete and set(request.ids_to_delete) != set(ids_to_delete):
                    raise StaleMergeTargetError(
                        f"Duplicate group {request.group_id} membership changed since it was reviewed"
                    )
                for ref_id in group.member_ids:
                    claims.enter_context(self.in_flight.claim(f"reference:{ref_id}"))
                deleted = self.store.delete(ids_to_delete)
                primary = self.store.get(request.primary_id)
                self.store.save(primary.model_copy(update={"duplicate_group_id": None}))
        except ReconciliationError as exc:
            logger.warning("Merge of group {} rejected: {}", request.group_id, exc)
            return MergeResponse(success=False, error=str(exc))

        logger.info(
            "Merged group {}: kept {}, removed {} duplicates", request.group_id, request.primary_id, deleted
        )
        return MergeResponse(
            success=True,
            deleted_count=deleted,
            message=f"Kept {request.primary_id}, removed {deleted} duplicates",
        )

    def export(
        self,
        fmt: object,
        basename: str | None = None,
        style: object = None,
        reference_ids: Optional[List[str]] = None,
    ) -> ExportResult:
        if reference_ids:
            references = [self.store.get(ref_id) for ref_id in reference_ids]
        else:
            references = self.store.all()
        return export_references(
            references,
            fmt,
            basename=basename or self.settings.export_basename,
            style=style or self.settings.default_style,
            formatter=self.formatter,
        )

    def summary(
        self, file_name: str, created_at: datetime | None = None, status: str = "completed"
    ) -> JobSummary:
        return summarize_job(self.store.all(), file_name, created_at=created_at, status=status)

    def report(self, file_name: str = "") -> str:
        references = self.store.all()
        return render_report(
            references,
            summary=summarize_job(references, file_name),
            reconciler=self.reconciler,
        )

    def decisions(self) -> Dict[str, Optional[str]]:
        return {
            ref.id: getattr(ref.user_decision, "value", None) for ref in self.store.all()
        }
