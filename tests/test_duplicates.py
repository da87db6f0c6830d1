import pytest

from reference_reconciler.duplicates import (
    DoiMatchPredicate,
    DuplicateGrouper,
    IgnoreList,
    TitleContainmentPredicate,
    assign_group_ids,
    group_id_for,
)
from reference_reconciler.errors import StaleMergeTargetError
from reference_reconciler.models import Reference


def _ref(ref_id: str, title: str, doi=None, confidence: int = 50, issues=None) -> Reference:
    return Reference.from_record(
        {
            "id": ref_id,
            "original": {"title": title, "doi": doi},
            "confidence_score": confidence,
            "issues": issues or [],
        }
    )


def test_case_and_punctuation_variants_group_with_doi_member_canonical():
    refs = [
        _ref("a", "Deep Learning for NLP", confidence=95),
        _ref("b", "deep learning for nlp.", doi="10.1000/dl", confidence=40),
        _ref("c", "Something unrelated"),
    ]
    groups = DuplicateGrouper().group(refs)
    assert len(groups) == 1
    group = groups[0]
    assert group.member_ids == ["a", "b"]
    assert group.canonical_id == "b"


def test_title_containment_is_symmetric_and_ignores_empty_titles():
    predicate = TitleContainmentPredicate()
    short = _ref("a", "Graph networks")
    long = _ref("b", "Graph networks: a survey")
    assert predicate.matches(short, long)
    assert predicate.matches(long, short)
    assert not predicate.matches(_ref("x", ""), _ref("y", ""))


def test_doi_predicate_normalizes_prefixes():
    first = _ref("a", "One", doi="https://doi.org/10.1/ABC")
    second = _ref("b", "Two", doi="10.1/abc")
    assert DoiMatchPredicate().matches(first, second)
    assert not DoiMatchPredicate().matches(_ref("c", "Three"), _ref("d", "Four"))


def test_grouping_is_partition_and_ties_keep_first():
    refs = [
        _ref("a", "Same title", confidence=70),
        _ref("b", "Same title", confidence=70),
        _ref("c", "Same title.", confidence=10),
    ]
    groups = DuplicateGrouper().group(refs)
    assert len(groups) == 1
    assert groups[0].member_ids == ["a", "b", "c"]
    assert groups[0].canonical_id == "a"


def test_group_flags_issues_unrelated_to_duplication():
    refs = [
        _ref("a", "Same title", issues=["Possible duplicate entry"]),
        _ref("b", "Same title", issues=["Year mismatch"]),
    ]
    assert DuplicateGrouper().group(refs)[0].has_issues
    clean = [_ref("a", "Same title", issues=["Possible duplicate entry"]), _ref("b", "Same title")]
    assert not DuplicateGrouper().group(clean)[0].has_issues


def test_group_id_is_order_independent():
    assert group_id_for(["b", "a"]) == group_id_for(["a", "b"])
    assert group_id_for(["a", "b"]).startswith("dup-")
    assert group_id_for(["a", "b"]) != group_id_for(["a", "c"])


def test_merge_group_returns_other_members():
    refs = [_ref("a", "Same title"), _ref("b", "Same title"), _ref("c", "Same title")]
    group = DuplicateGrouper().group(refs)[0]
    assert DuplicateGrouper.merge_group(group, "b", refs) == ["a", "c"]


def test_merge_group_rejects_stale_targets():
    refs = [_ref("a", "Same title"), _ref("b", "Same title")]
    group = DuplicateGrouper().group(refs)[0]
    with pytest.raises(StaleMergeTargetError):
        DuplicateGrouper.merge_group(group, "zzz")
    with pytest.raises(StaleMergeTargetError):
        DuplicateGrouper.merge_group(group, "a", refs[:1])


def test_assign_group_ids_sets_and_clears_membership():
    refs = [_ref("a", "Same title"), _ref("b", "Same title"), _ref("c", "Other")]
    groups = DuplicateGrouper().group(refs)
    updated = assign_group_ids(refs, groups)
    assert updated[0].duplicate_group_id == groups[0].group_id
    assert updated[1].duplicate_group_id == groups[0].group_id
    assert updated[2] is refs[2]

    cleared = assign_group_ids(updated, [])
    assert all(ref.duplicate_group_id is None for ref in cleared)
    # Inputs are left untouched.
    assert refs[0].duplicate_group_id is None


def test_ignore_list_hides_groups_without_mutating_references():
    refs = [_ref("a", "Same title"), _ref("b", "Same title")]
    groups = DuplicateGrouper().group(refs)
    ignored = IgnoreList()
    ignored.ignore(groups[0].group_id)
    assert ignored.visible(groups) == []
    assert groups[0].group_id in ignored
    assert len(ignored) == 1
    assert refs[0].duplicate_group_id is None
