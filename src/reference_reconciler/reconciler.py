"""Compare original and canonical reference fields and apply user decisions."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Set
import re

from loguru import logger

from .errors import InvalidCorrectionError
from .models import (
    SNAPSHOT_FIELDS,
    Difference,
    QuickFix,
    Reference,
    ReferenceStatus,
    UserDecision,
    coerce_year,
    resolve_display_value,
)
from .normalization import same_text, split_authors

CRITICAL_FIELDS = {"title", "year"}
BREAKDOWN_THRESHOLD = 80
SEVERE_THRESHOLD = 50

CORRECTED_PREFIX = "✓ Corrected: "
VERIFIED_MARKER = "✓ Verified"
REJECTED_MARKER = "⚠ Needs review: user kept original values"

# Labels used in the "Corrected" marker, in marker order.
_FIELD_LABELS = {
    "title": "title",
    "authors": "authors",
    "year": "year",
    "venue": "venue",
    "doi": "DOI",
}

# Words that tie a free-text issue to the field it complains about.
_FIELD_KEYWORDS = {
    "title": ("title",),
    "authors": ("author",),
    "year": ("year",),
    "venue": ("venue", "journal", "source"),
    "doi": ("doi", "identifier"),
}

_MARKER_PREFIXES = ("✓ corrected", "✓ verified", "⚠ needs review")


class FixSelection:
    """Transient set of quick fixes the user ticked before committing.

    Owned by the caller; nothing here is written to a Reference until the
    selection is turned into corrections and passed to ``apply_decision``.
    """

    def __init__(self, fix_ids: Optional[Iterable[str]] = None):
        self._applied: Set[str] = set(fix_ids or [])

    def toggle(self, fix: QuickFix) -> bool:
        if fix.id in self._applied:
            self._applied.discard(fix.id)
            return False
        self._applied.add(fix.id)
        return True

    def apply(self, fix: QuickFix) -> None:
        self._applied.add(fix.id)

    def is_applied(self, fix: QuickFix) -> bool:
        return fix.id in self._applied

    def clear(self) -> None:
        self._applied.clear()

    def corrections(self, fixes: Iterable[QuickFix]) -> Dict[str, Any]:
        return {fix.field: fix.suggested_value for fix in fixes if fix.id in self._applied}

    def __len__(self) -> int:
        return len(self._applied)


class CorrectionReconciler:
    """Derive differences, quick fixes and confidence notes for one reference."""

    def compute_differences(self, reference: Reference) -> List[Difference]:
        canonical = reference.canonical
        if canonical is None:
            return []
        original = reference.original
        differences: List[Difference] = []

        def add(field_name: str, original_value: Any, canonical_value: Any, informational: bool = False) -> None:
            differences.append(
                Difference(
                    field=field_name,
                    original_value=original_value,
                    canonical_value=canonical_value,
                    is_critical=field_name in CRITICAL_FIELDS and not informational,
                    informational=informational,
                )
            )

        if canonical.title is not None and not same_text(original.title, canonical.title):
            add("title", original.title, canonical.title)
        if canonical.year is not None and original.year != canonical.year:
            add("year", original.year, canonical.year)
        if canonical.authors is not None and not same_text(original.authors, canonical.authors):
            add("authors", original.authors, canonical.authors)
        if canonical.venue is not None and not same_text(original.venue, canonical.venue):
            add("venue", original.venue, canonical.venue)

        if not original.doi:
            add("doi", original.doi or None, canonical.doi, informational=True)
        elif canonical.doi is not None and original.doi != canonical.doi:
            add("doi", original.doi, canonical.doi)
        return differences

    def compute_quick_fixes(self, reference: Reference) -> List[QuickFix]:
        fixes: List[QuickFix] = []
        for diff in self.compute_differences(reference):
            if diff.canonical_value in (None, ""):
                continue
            builder = getattr(self, f"_fix_{diff.field}")
            fixes.append(builder(diff))
        return fixes

    @staticmethod
    def _fix_title(diff: Difference) -> QuickFix:
        return QuickFix(
            id="fix-title",
            field="title",
            suggested_value=diff.canonical_value,
            title="Correct title",
            description="Update to verified database version",
        )

    @staticmethod
    def _fix_year(diff: Difference) -> QuickFix:
        if diff.original_value is None:
            description = f"Set to {diff.canonical_value}"
        else:
            description = f"Change from {diff.original_value} to {diff.canonical_value}"
        return QuickFix(
            id="fix-year",
            field="year",
            suggested_value=diff.canonical_value,
            title="Correct publication year",
            description=description,
        )

    @staticmethod
    def _fix_authors(diff: Difference) -> QuickFix:
        original_count = len(split_authors(diff.original_value))
        canonical_count = len(split_authors(diff.canonical_value))
        if original_count != canonical_count:
            return QuickFix(
                id="fix-authors",
                field="authors",
                suggested_value=diff.canonical_value,
                title=f"Update author list ({original_count} → {canonical_count} authors)",
                description="Complete verified author list from academic database",
            )
        return QuickFix(
            id="normalize-authors",
            field="authors",
            suggested_value=diff.canonical_value,
            title="Normalize author formatting",
            description="Format author names as recorded in the academic database",
        )

    @staticmethod
    def _fix_venue(diff: Difference) -> QuickFix:
        if not diff.original_value:
            return QuickFix(
                id="add-venue",
                field="venue",
                suggested_value=diff.canonical_value,
                title="Add publication venue",
                description="Journal/conference information from database",
            )
        return QuickFix(
            id="fix-venue",
            field="venue",
            suggested_value=diff.canonical_value,
            title="Correct publication venue",
            description=f"Change from {diff.original_value} to {diff.canonical_value}",
        )

    @staticmethod
    def _fix_doi(diff: Difference) -> QuickFix:
        if diff.informational:
            return QuickFix(
                id="add-doi",
                field="doi",
                suggested_value=diff.canonical_value,
                title="Add missing DOI",
                description="Digital Object Identifier found in academic database",
            )
        return QuickFix(
            id="fix-doi",
            field="doi",
            suggested_value=diff.canonical_value,
            title="Correct DOI",
            description=f"Replace {diff.original_value} with the registered DOI",
        )

    def compute_confidence_breakdown(self, reference: Reference) -> List[str]:
        score = reference.confidence_score
        if score >= BREAKDOWN_THRESHOLD:
            return []
        notes: List[str] = []
        original = reference.original
        canonical = reference.canonical
        if canonical is not None:
            if canonical.title and original.title and not same_text(original.title, canonical.title):
                notes.append("Title mismatch: your version differs from the academic database")
            if canonical.year is not None and original.year is not None and original.year != canonical.year:
                notes.append(
                    f"Year discrepancy: you have {original.year}, database shows {canonical.year}"
                )
            if canonical.authors and original.authors:
                original_count = len(split_authors(original.authors))
                canonical_count = len(split_authors(canonical.authors))
                if original_count != canonical_count:
                    notes.append(
                        f"Author list differs: {original_count} in your file vs "
                        f"{canonical_count} in database"
                    )
        if not resolve_display_value(reference, "doi"):
            notes.append("DOI not found - reduces verifiability")
        if score < SEVERE_THRESHOLD:
            notes.append("Multiple significant mismatches detected - please review carefully")
        return notes

    def apply_decision(
        self,
        reference: Reference,
        accept: bool,
        explicit_corrections: Optional[Mapping[str, Any]] = None,
    ) -> Reference:
        """Return ``reference`` with the user's accept/reject decision applied."""
        if not accept:
            touched = [diff.field for diff in self.compute_differences(reference) if not diff.informational]
            updated = reference.model_copy(
                update={
                    "status": ReferenceStatus.VERIFIED,
                    "user_decision": UserDecision.REJECTED,
                    "issues": _replace_issues(reference.issues, REJECTED_MARKER, touched),
                }
            )
            logger.debug("Reference {} rejected correction", reference.id)
            return updated

        if explicit_corrections is not None:
            values = _validated_corrections(explicit_corrections)
        else:
            values = _canonical_values(reference)

        original = reference.original
        changes: Dict[str, Any] = {}
        for name in SNAPSHOT_FIELDS:
            if name in values and values[name] != getattr(original, name):
                changes[name] = values[name]

        if not changes and reference.user_decision == UserDecision.ACCEPTED:
            return reference.model_copy(deep=True)

        changed = [name for name in SNAPSHOT_FIELDS if name in changes]
        if changed:
            marker = CORRECTED_PREFIX + ", ".join(_FIELD_LABELS[name] for name in changed)
        else:
            marker = VERIFIED_MARKER
        touched = changed or list(values)

        updated = reference.model_copy(
            update={
                "original": original.model_copy(update=changes),
                "status": ReferenceStatus.VERIFIED,
                "confidence_score": 100,
                "user_decision": UserDecision.ACCEPTED,
                "issues": _replace_issues(reference.issues, marker, touched),
            },
            deep=True,
        )
        logger.debug("Reference {} accepted: {}", reference.id, marker)
        return updated


def _validated_corrections(corrections: Mapping[str, Any]) -> Dict[str, Any]:
    unknown = [name for name in corrections if name not in SNAPSHOT_FIELDS]
    if unknown:
        raise InvalidCorrectionError(f"Cannot correct unknown fields: {', '.join(sorted(unknown))}")
    values: Dict[str, Any] = {}
    for name, value in corrections.items():
        if value in (None, ""):
            continue
        if name == "year":
            year = coerce_year(value)
            if year is None:
                raise InvalidCorrectionError(f"Year correction is not numeric: {value!r}")
            values[name] = year
        else:
            values[name] = str(value).strip()
    return values


def _canonical_values(reference: Reference) -> Dict[str, Any]:
    if reference.canonical is None:
        return {}
    return {
        name: getattr(reference.canonical, name)
        for name in SNAPSHOT_FIELDS
        if getattr(reference.canonical, name) is not None
    }


def _replace_issues(issues: List[str], marker: str, touched_fields: Iterable[str]) -> List[str]:
    """Put ``marker`` first and drop earlier markers and issues about touched fields."""
    keywords = [word for name in touched_fields for word in _FIELD_KEYWORDS.get(name, ())]
    kept = []
    for issue in issues:
        lowered = issue.lower()
        if lowered.startswith(_MARKER_PREFIXES):
            continue
        if any(re.search(rf"\b{re.escape(word)}s?\b", lowered) for word in keywords):
            continue
        kept.append(issue)
    return [marker] + kept


__all__ = [
    "CorrectionReconciler",
    "FixSelection",
    "CORRECTED_PREFIX",
    "REJECTED_MARKER",
    "VERIFIED_MARKER",
]
