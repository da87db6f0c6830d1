import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

import pytest

from reference_reconciler.models import Reference


@pytest.fixture()
def make_reference():
    """Build a Reference from keyword overrides on a verified-looking record."""

    def factory(ref_id: str = "ref-1", **overrides) -> Reference:
        record = {
            "id": ref_id,
            "original": {
                "title": "Attention is all you need",
                "authors": "Vaswani, Ashish and Shazeer, Noam",
                "year": 2017,
                "venue": "NeurIPS",
                "doi": None,
            },
            "canonical": {
                "title": "Attention Is All You Need",
                "authors": "Vaswani, Ashish and Shazeer, Noam",
                "year": 2017,
                "venue": "Advances in Neural Information Processing Systems",
                "doi": "10.5555/3295222.3295349",
            },
            "status": "warning",
            "confidence_score": 72,
        }
        record.update(overrides)
        return Reference.from_record(record)

    return factory


@pytest.fixture()
def sample_records():
    """A small job: one mismatched entry, two duplicates and one without a canonical match."""

    return [
        {
            "id": "r1",
            "original_title": "Deep Learning for NLP",
            "original_authors": "Smith, John and Doe, Jane",
            "original_year": "2020",
            "original_source": "ACL",
            "canonical_title": "Deep Learning for NLP",
            "canonical_authors": "Smith, John and Doe, Jane",
            "canonical_year": 2021,
            "venue": "Proceedings of ACL",
            "status": "warning",
            "confidence": 65,
        },
        {
            "id": "r2",
            "original_title": "deep learning for nlp.",
            "original_authors": "J. Smith",
            "original_year": 2021,
            "original_doi": "10.1000/dl-nlp",
            "status": "verified",
            "confidence": 90,
        },
        {
            "id": "r3",
            "originalTitle": "Graph neural networks in chemistry",
            "originalAuthors": "Lee, Min",
            "originalYear": 2019,
            "status": "not_found",
            "confidence": 10,
            "issues": ["No match found in Crossref"],
        },
    ]
