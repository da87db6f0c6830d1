import threading

import pytest

from reference_reconciler.app import InFlightRegistry, ReconciliationApp
from reference_reconciler.config import Settings
from reference_reconciler.errors import ConcurrentModificationError, DuplicateReferenceIdError
from reference_reconciler.models import ReferenceStatus, UserDecision
from reference_reconciler.reconciler import CorrectionReconciler, FixSelection
from reference_reconciler.schemas import CorrectionRequest, MergeRequest


@pytest.fixture()
def app(sample_records):
    application = ReconciliationApp()
    application.ingest(sample_records)
    return application


def test_ingest_assigns_unique_keys(app):
    keys = {ref.id: ref.key for ref in app.references()}
    assert keys == {"r1": "Smith2021", "r2": "Smith2021a", "r3": "Lee2019"}


def test_ingest_rejects_duplicate_ids(app, sample_records):
    with pytest.raises(DuplicateReferenceIdError):
        app.ingest(sample_records[:1])
    with pytest.raises(DuplicateReferenceIdError):
        ReconciliationApp().ingest([{"id": "x"}, {"id": "x"}])


def test_duplicate_groups_record_group_ids(app):
    groups = app.duplicate_groups()
    assert len(groups) == 1
    group = groups[0]
    assert group.member_ids == ["r1", "r2"]
    assert group.canonical_id == "r2"
    assert app.store.get("r1").duplicate_group_id == group.group_id
    assert app.store.get("r3").duplicate_group_id is None


def test_ignored_groups_are_hidden(app):
    group_id = app.duplicate_groups()[0].group_id
    app.ignore_group(group_id)
    assert app.duplicate_groups() == []


def test_commit_correction_accepts_canonical_values(app):
    response = app.commit_correction(CorrectionRequest(reference_id="r1", decision="accepted"))
    assert response.success
    assert response.message == "Corrections applied successfully"
    stored = app.store.get("r1")
    assert stored.original.year == 2021
    assert stored.original.venue == "Proceedings of ACL"
    assert stored.status == ReferenceStatus.VERIFIED
    assert stored.issues[0] == "✓ Corrected: year, venue"
    assert response.reference == stored


def test_commit_correction_from_camel_case_payload(app):
    request = CorrectionRequest.model_validate(
        {"referenceId": "r3", "decision": "accepted", "correctedFields": {"source": "Chem Reviews"}}
    )
    response = app.commit_correction(request)
    assert response.success
    assert app.store.get("r3").original.venue == "Chem Reviews"


def test_commit_rejection(app):
    response = app.commit_correction(CorrectionRequest(reference_id="r1", decision="rejected"))
    assert response.success
    assert response.message == "Reference marked as reviewed"
    assert app.store.get("r1").user_decision == UserDecision.REJECTED
    assert app.decisions()["r1"] == "rejected"


def test_commit_correction_reports_errors(app):
    missing = app.commit_correction(CorrectionRequest(reference_id="nope", decision="accepted"))
    assert not missing.success
    assert "nope" in missing.error

    invalid = app.commit_correction(
        CorrectionRequest(reference_id="r1", decision="accepted", corrected_fields={"isbn": "1"})
    )
    assert not invalid.success
    assert app.store.get("r1").user_decision is None


def test_concurrent_correction_for_same_reference_is_rejected(app):
    with app.in_flight.claim("reference:r1"):
        response = app.commit_correction(CorrectionRequest(reference_id="r1", decision="accepted"))
        other = app.commit_correction(CorrectionRequest(reference_id="r3", decision="rejected"))
    assert not response.success
    assert "in flight" in response.error
    assert app.store.get("r1").user_decision is None
    assert other.success


def test_in_flight_registry_releases_claims_after_errors():
    registry = InFlightRegistry()
    with pytest.raises(RuntimeError):
        with registry.claim("group:g"):
            assert registry.is_active("group:g")
            with pytest.raises(ConcurrentModificationError):
                with registry.claim("group:g"):
                    pass
            raise RuntimeError("boom")
    assert not registry.is_active("group:g")


def test_commit_quick_fixes_applies_selected_fixes_only(app):
    fixes = app.quick_fixes("r1")
    assert [fix.id for fix in fixes] == ["fix-year", "fix-venue"]
    selection = FixSelection()
    selection.apply(fixes[0])
    response = app.commit_quick_fixes("r1", selection)
    assert response.success
    stored = app.store.get("r1")
    assert stored.original.year == 2021
    assert stored.original.venue == "ACL"
    assert len(selection) == 0


def test_commit_merge_deletes_other_members(app):
    group = app.duplicate_groups()[0]
    response = app.commit_merge(
        MergeRequest(group_id=group.group_id, primary_id="r2", ids_to_delete=["r1"])
    )
    assert response.success
    assert response.deleted_count == 1
    assert "r1" not in app.store
    assert app.store.get("r2").duplicate_group_id is None
    assert app.duplicate_groups() == []


def test_commit_merge_rejects_stale_group(app):
    group = app.duplicate_groups()[0]
    first = app.commit_merge(MergeRequest(group_id=group.group_id, primary_id="r2"))
    assert first.success
    again = app.commit_merge(MergeRequest(group_id=group.group_id, primary_id="r1"))
    assert not again.success
    assert "no longer exists" in again.error
    assert len(app.store) == 2


def test_commit_merge_rejects_changed_membership(app):
    group = app.duplicate_groups()[0]
    response = app.commit_merge(
        MergeRequest(group_id=group.group_id, primary_id="r2", ids_to_delete=["r1", "r3"])
    )
    assert not response.success
    assert "membership changed" in response.error
    assert len(app.store) == 3


def test_merge_of_ignored_or_busy_group_is_rejected(app):
    group_id = app.duplicate_groups()[0].group_id
    with app.in_flight.claim(f"group:{group_id}"):
        busy = app.commit_merge(MergeRequest(group_id=group_id, primary_id="r2"))
        with pytest.raises(ConcurrentModificationError):
            app.ignore_group(group_id)
    assert not busy.success

    app.ignore_group(group_id)
    ignored = app.commit_merge(MergeRequest(group_id=group_id, primary_id="r2"))
    assert not ignored.success
    assert len(app.store) == 3


def test_export_uses_settings_defaults(sample_records):
    app = ReconciliationApp(settings=Settings(default_style="vancouver", export_basename="thesis"))
    app.ingest(sample_records)
    result = app.export("txt")
    assert result.filename == "thesis.txt"
    assert "1. Smith J, Doe J." in result.content

    subset = app.export("bibtex", reference_ids=["r3"])
    assert subset.filename == "thesis.bib"
    assert subset.content.startswith("@article{Lee2019,")


def test_format_reference_and_summary(app):
    formatted = app.format_reference("r1")
    assert formatted.in_text == "(Smith & Doe, 2021)"
    summary = app.summary("refs.bib")
    assert summary.total_references == 3
    assert summary.verified_count == 1
    assert summary.issues_count == 1
    assert app.report("refs.bib").startswith("Reference Reconciliation Report\nFile: refs.bib")


class _PausingReconciler(CorrectionReconciler):
    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()

    def apply_decision(self, reference, accept, explicit_corrections=None):
        self.entered.set()
        self.release.wait(timeout=5)
        return super().apply_decision(reference, accept, explicit_corrections)


def test_merge_waits_out_a_correction_on_a_member(sample_records):
    reconciler = _PausingReconciler()
    app = ReconciliationApp(reconciler=reconciler)
    app.ingest(sample_records)
    group_id = app.duplicate_groups()[0].group_id
    responses = {}

    def correct():
        request = CorrectionRequest(reference_id="r1", decision="accepted")
        responses["correction"] = app.commit_correction(request)

    worker = threading.Thread(target=correct)
    worker.start()
    assert reconciler.entered.wait(timeout=5)
    busy = app.commit_merge(MergeRequest(group_id=group_id, primary_id="r2"))
    reconciler.release.set()
    worker.join(timeout=5)

    assert not busy.success
    assert "reference:r1" in busy.error
    assert responses["correction"].success
    assert [ref.id for ref in app.references()] == ["r1", "r2", "r3"]
    assert not app.in_flight.is_active("group:" + group_id)

    merged = app.commit_merge(MergeRequest(group_id=group_id, primary_id="r2"))
    assert merged.success
    assert [ref.id for ref in app.references()] == ["r2", "r3"]
