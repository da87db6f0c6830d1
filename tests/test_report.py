from datetime import date, datetime

from reference_reconciler.models import Reference
from reference_reconciler.report import (
    HISTORY_CSV_HEADER,
    JobSummary,
    history_filename,
    render_report,
    summarize_job,
    to_history_csv,
)


def _refs():
    return [
        Reference.from_record({"id": "a", "original": {"title": "A"}, "status": "verified"}),
        Reference.from_record({"id": "b", "original": {"title": "B"}, "status": "retracted"}),
        Reference.from_record({"id": "c", "original": {"title": "C"}, "status": "warning"}),
        Reference.from_record({"id": "d", "original": {"title": "D"}, "status": "duplicate"}),
        Reference.from_record({"id": "e", "original": {"title": "E"}, "status": "not_found"}),
    ]


def test_summarize_job_counts_statuses():
    summary = summarize_job(_refs(), "thesis.bib", created_at=datetime(2026, 10, 18))
    assert summary.total_references == 5
    assert summary.verified_count == 1
    assert summary.issues_count == 2
    assert summary.warnings_count == 1
    assert summary.duplicate_count == 1


def test_history_csv_quotes_dates():
    jobs = [
        JobSummary(
            file_name="thesis.bib",
            created_at=datetime(2026, 10, 8, 14, 30),
            total_references=12,
            verified_count=9,
            issues_count=2,
        )
    ]
    lines = to_history_csv(jobs).splitlines()
    assert lines[0] == ",".join(HISTORY_CSV_HEADER)
    assert lines[1] == '"Oct 8, 2026",thesis.bib,12,9,2,completed'


def test_history_csv_without_jobs_is_header_only():
    assert to_history_csv([]) == ",".join(HISTORY_CSV_HEADER) + "\n"


def test_history_filename_uses_iso_date():
    assert history_filename(date(2026, 10, 18)) == "refcheck_history_2026-10-18.csv"


def test_render_report_lists_pending_corrections():
    ref = Reference.from_record(
        {
            "id": "x",
            "key": "Doe2020",
            "original": {"title": "Old", "year": 2020, "doi": "10.1/x"},
            "canonical": {"title": "New", "year": 2020, "doi": "10.1/x"},
        }
    )
    report = render_report([ref], summary=summarize_job([ref], "refs.bib"))
    lines = report.splitlines()
    assert lines[0] == "Reference Reconciliation Report"
    assert "File: refs.bib" in lines
    assert "Pending corrections:" in lines
    assert "- Doe2020: New" in lines
    assert "    Correct title -> New" in lines


def test_render_report_without_pending_corrections():
    report = render_report(_refs())
    assert report.splitlines()[-1] == "No pending corrections."
    assert "Reference entries: 5" in report
