"""Reference type classification heuristics."""
from __future__ import annotations

from dataclasses import dataclass

from .models import Reference, resolve_display_value


@dataclass(frozen=True)
class ReferenceType:
    key: str
    label: str
    bibtex: str
    ris: str
    endnote: str


REFERENCE_TYPES = {
    "journal": ReferenceType("journal", "Journal Article", "article", "JOUR", "Journal Article"),
    "book": ReferenceType("book", "Book", "book", "BOOK", "Book"),
    "chapter": ReferenceType("chapter", "Book Chapter", "incollection", "CHAP", "Book Section"),
    "conference": ReferenceType(
        "conference", "Conference Paper", "inproceedings", "CONF", "Conference Paper"
    ),
    "thesis": ReferenceType("thesis", "Thesis", "phdthesis", "THES", "Thesis"),
    "report": ReferenceType("report", "Report", "techreport", "RPRT", "Report"),
    "preprint": ReferenceType("preprint", "Preprint", "misc", "GEN", "Preprint"),
    "website": ReferenceType("website", "Website", "misc", "ELEC", "Web Page"),
    "dataset": ReferenceType("dataset", "Dataset", "misc", "DATA", "Dataset"),
    "unknown": ReferenceType("unknown", "Unknown", "article", "GEN", "Generic"),
}


_BIBTEX_TYPES = {
    "article",
    "book",
    "booklet",
    "conference",
    "inbook",
    "incollection",
    "inproceedings",
    "manual",
    "mastersthesis",
    "misc",
    "online",
    "phdthesis",
    "proceedings",
    "techreport",
    "unpublished",
}

_DECLARED_TYPE_MAP = {
    # BibTeX entry types
    "article": "journal",
    "book": "book",
    "inbook": "chapter",
    "incollection": "chapter",
    "inproceedings": "conference",
    "conference": "conference",
    "proceedings": "conference",
    "phdthesis": "thesis",
    "mastersthesis": "thesis",
    "techreport": "report",
    "online": "website",
    # Crossref work types
    "journal-article": "journal",
    "article-journal": "journal",
    "book-chapter": "chapter",
    "proceedings-article": "conference",
    "posted-content": "preprint",
    "dataset": "dataset",
    "report": "report",
    "dissertation": "thesis",
}


def classify_reference(reference: Reference) -> str:
    """Return a normalized reference type key for the entry."""
    declared = str(reference.metadata.get("entry_type") or "").strip().lower()
    if declared:
        mapped = _DECLARED_TYPE_MAP.get(declared)
        if mapped:
            return mapped

    venue = str(resolve_display_value(reference, "venue") or "").lower()
    title = str(resolve_display_value(reference, "title") or "").lower()
    url = str(reference.metadata.get("url") or "").lower()

    if _looks_like_dataset(venue, title, url):
        return "dataset"
    if _looks_like_preprint(venue, url):
        return "preprint"
    if _looks_like_conference(venue):
        return "conference"
    if venue:
        return "journal"
    if url:
        return "website"
    return "unknown"


def _looks_like_dataset(venue: str, title: str, url: str) -> bool:
    dataset_terms = ["dataset", "data set", "data repository"]
    repo_terms = ["zenodo", "figshare", "dryad", "kaggle", "dataverse"]
    return (
        any(term in venue for term in dataset_terms + repo_terms)
        or any(term in url for term in repo_terms)
        or any(term in title for term in dataset_terms)
    )


def _looks_like_preprint(venue: str, url: str) -> bool:
    preprint_terms = ["preprint", "arxiv", "biorxiv", "medrxiv", "ssrn"]
    return any(term in venue for term in preprint_terms) or any(term in url for term in preprint_terms)


def _looks_like_conference(venue: str) -> bool:
    conf_terms = ["proceedings", "conference", "symposium", "workshop"]
    return any(term in venue for term in conf_terms)


def type_for(reference: Reference) -> ReferenceType:
    return REFERENCE_TYPES[classify_reference(reference)]


def bibtex_type_for(reference: Reference) -> str:
    """Return the BibTeX entry type; declared BibTeX types are kept verbatim."""
    declared = str(reference.metadata.get("entry_type") or "").strip().lower()
    if not declared:
        return "article"
    if declared in _BIBTEX_TYPES:
        return declared
    mapped = _DECLARED_TYPE_MAP.get(declared)
    return REFERENCE_TYPES[mapped].bibtex if mapped else "article"

