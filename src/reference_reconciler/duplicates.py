"""Duplicate detection over a job's reference collection."""
from __future__ import annotations

import hashlib
from typing import Iterable, List, Optional, Sequence, Set

from loguru import logger

from .errors import StaleMergeTargetError
from .models import DuplicateGroup, Reference, resolve_display_value
from .normalization import normalize_doi, normalize_for_comparison


class SimilarityPredicate:
    """Base interface for deciding whether two references describe one work."""

    name: str = "base"

    def matches(self, first: Reference, second: Reference) -> bool:  # pragma: no cover - interface
        raise NotImplementedError


class TitleContainmentPredicate(SimilarityPredicate):
    """Normalized titles are equal, or one contains the other."""

    name = "title-containment"

    def matches(self, first: Reference, second: Reference) -> bool:
        a = normalize_for_comparison(resolve_display_value(first, "title"))
        b = normalize_for_comparison(resolve_display_value(second, "title"))
        if not a or not b:
            return False
        return a == b or a in b or b in a


class DoiMatchPredicate(SimilarityPredicate):
    """Both references carry the same non-empty DOI."""

    name = "doi"

    def matches(self, first: Reference, second: Reference) -> bool:
        a = normalize_doi(resolve_display_value(first, "doi"))
        b = normalize_doi(resolve_display_value(second, "doi"))
        return bool(a) and a == b


class AnyPredicate(SimilarityPredicate):
    """Match when any of the wrapped predicates matches."""

    def __init__(self, predicates: List[SimilarityPredicate]):
        self.predicates = predicates
        self.name = "any(" + ",".join(p.name for p in predicates) + ")"

    def matches(self, first: Reference, second: Reference) -> bool:
        return any(predicate.matches(first, second) for predicate in self.predicates)


def default_predicate() -> SimilarityPredicate:
    return AnyPredicate([TitleContainmentPredicate(), DoiMatchPredicate()])


def group_id_for(member_ids: Iterable[str]) -> str:
    """Derive a stable group id from member ids, independent of their order."""
    payload = "\n".join(sorted(member_ids))
    return "dup-" + hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


class DuplicateGrouper:
    """Cluster references into duplicate groups and elect a canonical member."""

    def __init__(self, predicate: Optional[SimilarityPredicate] = None):
        self.predicate = predicate or default_predicate()

    def group(self, references: Sequence[Reference]) -> List[DuplicateGroup]:
        groups: List[DuplicateGroup] = []
        processed: Set[int] = set()

        for i, ref in enumerate(references):
            if i in processed:
                continue
            members = [ref]
            for j in range(i + 1, len(references)):
                if j in processed:
                    continue
                if self.predicate.matches(ref, references[j]):
                    members.append(references[j])
                    processed.add(j)
            if len(members) < 2:
                continue
            processed.add(i)
            group = DuplicateGroup(
                group_id=group_id_for(member.id for member in members),
                references=members,
                canonical_reference=elect_canonical(members),
                has_issues=_has_unrelated_issues(members),
            )
            logger.debug(
                "Duplicate group {} with {} members, canonical {}",
                group.group_id,
                len(members),
                group.canonical_id,
            )
            groups.append(group)

        logger.info("Found {} duplicate groups among {} references", len(groups), len(references))
        return groups

    @staticmethod
    def merge_group(
        group: DuplicateGroup,
        keep_id: str,
        collection: Optional[Iterable[Reference]] = None,
    ) -> List[str]:
        """Return the ids to delete when ``keep_id`` is kept.

        When ``collection`` is given, every member must still be present in
        it; otherwise the group is stale and nothing is returned.
        """
        member_ids = group.member_ids
        if keep_id not in member_ids:
            raise StaleMergeTargetError(
                f"Reference {keep_id} is not a member of duplicate group {group.group_id}"
            )
        if collection is not None:
            present = {ref.id for ref in collection}
            missing = [ref_id for ref_id in member_ids if ref_id not in present]
            if missing:
                raise StaleMergeTargetError(
                    f"Duplicate group {group.group_id} references missing ids: {', '.join(missing)}"
                )
        return [ref_id for ref_id in member_ids if ref_id != keep_id]


def elect_canonical(members: Sequence[Reference]) -> Reference:
    """Prefer a member with a DOI, then the higher confidence; ties keep the first."""
    best = members[0]
    for candidate in members[1:]:
        if (candidate.has_doi, candidate.confidence_score) > (best.has_doi, best.confidence_score):
            best = candidate
    return best


def _has_unrelated_issues(members: Sequence[Reference]) -> bool:
    return any(
        "duplicate" not in issue.lower() for member in members for issue in member.issues
    )


def assign_group_ids(
    references: Sequence[Reference], groups: Sequence[DuplicateGroup]
) -> List[Reference]:
    """Return copies of ``references`` with ``duplicate_group_id`` reflecting ``groups``."""
    membership = {ref_id: group.group_id for group in groups for ref_id in group.member_ids}
    updated = []
    for ref in references:
        group_id = membership.get(ref.id)
        if ref.duplicate_group_id == group_id:
            updated.append(ref)
        else:
            updated.append(ref.model_copy(update={"duplicate_group_id": group_id}))
    return updated


class IgnoreList:
    """Caller-owned set of duplicate groups the user marked as not duplicates."""

    def __init__(self, group_ids: Optional[Iterable[str]] = None):
        self._ignored: Set[str] = set(group_ids or [])

    def ignore(self, group_id: str) -> None:
        self._ignored.add(group_id)

    def is_ignored(self, group_id: str) -> bool:
        return group_id in self._ignored

    def visible(self, groups: Iterable[DuplicateGroup]) -> List[DuplicateGroup]:
        return [group for group in groups if group.group_id not in self._ignored]

    def __contains__(self, group_id: object) -> bool:
        return group_id in self._ignored

    def __len__(self) -> int:
        return len(self._ignored)


__all__ = [
    "AnyPredicate",
    "DoiMatchPredicate",
    "DuplicateGrouper",
    "IgnoreList",
    "SimilarityPredicate",
    "TitleContainmentPredicate",
    "assign_group_ids",
    "default_predicate",
    "elect_canonical",
    "group_id_for",
]
