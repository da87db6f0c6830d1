"""Exporters for reconciled reference sets."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from io import StringIO
from pathlib import PurePath
from typing import Callable, Dict, List, Optional, Sequence
import csv
import json

from loguru import logger

from .errors import UnsupportedFormatError
from .formatter import CitationFormatter, CitationStyle, author_list, generate_bibtex_entry, generate_key
from .models import Reference, resolve_display_value
from .reference_types import type_for

REFERENCE_CSV_HEADER = ["Title", "Authors", "Year", "Venue", "DOI", "Status"]


class ExportFormat(str, Enum):
    BIBTEX = "bibtex"
    RIS = "ris"
    CSV = "csv"
    JSON = "json"
    WORD = "word"
    TXT = "txt"
    ENDNOTE = "endnote"

    @classmethod
    def parse(cls, value: object) -> "ExportFormat":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise UnsupportedFormatError(value)


EXTENSIONS = {
    ExportFormat.BIBTEX: "bib",
    ExportFormat.RIS: "ris",
    ExportFormat.CSV: "csv",
    ExportFormat.JSON: "json",
    ExportFormat.WORD: "txt",
    ExportFormat.TXT: "txt",
    ExportFormat.ENDNOTE: "enw",
}

MIME_TYPES = {
    ExportFormat.BIBTEX: "application/x-bibtex",
    ExportFormat.RIS: "application/x-research-info-systems",
    ExportFormat.CSV: "text/csv",
    ExportFormat.JSON: "application/json",
    ExportFormat.WORD: "text/plain",
    ExportFormat.TXT: "text/plain",
    ExportFormat.ENDNOTE: "application/x-endnote-refer",
}


@dataclass
class ExportResult:
    """A complete export file body and its suggested filename."""

    content: str
    filename: str
    mime_type: str
    format: ExportFormat

    def encode(self) -> bytes:
        return self.content.encode("utf-8")


def _text(reference: Reference, field_name: str) -> str:
    value = resolve_display_value(reference, field_name)
    return "" if value is None else str(value)


def _status(reference: Reference) -> str:
    return getattr(reference.status, "value", str(reference.status))


def to_bibtex(references: Sequence[Reference]) -> str:
    return "\n\n".join(generate_bibtex_entry(ref) for ref in references)


def to_ris(references: Sequence[Reference]) -> str:
    entries = []
    for ref in references:
        lines = [f"TY  - {type_for(ref).ris}"]
        title = _text(ref, "title")
        if title:
            lines.append(f"TI  - {title}")
        for author in author_list(resolve_display_value(ref, "authors")):
            lines.append(f"AU  - {author}")
        year = _text(ref, "year")
        if year:
            lines.append(f"PY  - {year}")
        venue = _text(ref, "venue")
        if venue:
            lines.append(f"JO  - {venue}")
        metadata = ref.metadata
        if metadata.get("volume"):
            lines.append(f"VL  - {metadata['volume']}")
        if metadata.get("issue"):
            lines.append(f"IS  - {metadata['issue']}")
        if metadata.get("pages"):
            start, end = _split_pages(str(metadata["pages"]))
            if start:
                lines.append(f"SP  - {start}")
            if end:
                lines.append(f"EP  - {end}")
        if metadata.get("publisher"):
            lines.append(f"PB  - {metadata['publisher']}")
        doi = _text(ref, "doi")
        if doi:
            lines.append(f"DO  - {doi}")
        if metadata.get("url"):
            lines.append(f"UR  - {metadata['url']}")
        lines.append("ER  - ")
        entries.append("\n".join(lines))
    return "\n\n".join(entries)


def to_endnote(references: Sequence[Reference]) -> str:
    """Render EndNote tagged import records (``.enw``)."""
    records = []
    for ref in references:
        ref_type = type_for(ref)
        lines = [f"%0 {ref_type.endnote}"]
        for author in author_list(resolve_display_value(ref, "authors")):
            lines.append(f"%A {author}")
        title = _text(ref, "title")
        if title:
            lines.append(f"%T {title}")
        venue = _text(ref, "venue")
        if venue:
            tag = "%B" if ref_type.key in {"conference", "chapter"} else "%J"
            lines.append(f"{tag} {venue}")
        year = _text(ref, "year")
        if year:
            lines.append(f"%D {year}")
        metadata = ref.metadata
        if metadata.get("volume"):
            lines.append(f"%V {metadata['volume']}")
        if metadata.get("issue"):
            lines.append(f"%N {metadata['issue']}")
        if metadata.get("pages"):
            lines.append(f"%P {metadata['pages']}")
        if metadata.get("publisher"):
            lines.append(f"%I {metadata['publisher']}")
        doi = _text(ref, "doi")
        if doi:
            lines.append(f"%R {doi}")
        if metadata.get("url"):
            lines.append(f"%U {metadata['url']}")
        lines.append(f"%F {generate_key(ref)}")
        records.append("\n".join(lines))
    return "\n\n".join(records)


def write_csv(header: Sequence[str], rows: Sequence[Sequence[object]]) -> str:
    """Write CSV with minimal quoting: only fields holding a comma, quote or newline are quoted."""
    buffer = StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def to_csv(references: Sequence[Reference]) -> str:
    rows = [
        [
            _text(ref, "title"),
            _text(ref, "authors"),
            _text(ref, "year"),
            _text(ref, "venue"),
            _text(ref, "doi"),
            _status(ref),
        ]
        for ref in references
    ]
    return write_csv(REFERENCE_CSV_HEADER, rows)


def to_json(references: Sequence[Reference]) -> str:
    records = []
    for ref in references:
        records.append(
            {
                "id": ref.id,
                "key": generate_key(ref),
                "type": type_for(ref).label,
                "title": resolve_display_value(ref, "title"),
                "authors": author_list(resolve_display_value(ref, "authors")),
                "year": resolve_display_value(ref, "year"),
                "venue": resolve_display_value(ref, "venue"),
                "doi": resolve_display_value(ref, "doi"),
                "status": _status(ref),
                "confidence_score": ref.confidence_score,
                "issues": list(ref.issues),
                "user_decision": getattr(ref.user_decision, "value", None),
                "metadata": ref.metadata,
            }
        )
    return json.dumps(records, indent=2, ensure_ascii=False, default=str)


def to_plain_text(
    references: Sequence[Reference],
    style: object = CitationStyle.APA,
    formatter: Optional[CitationFormatter] = None,
) -> str:
    formatter = formatter or CitationFormatter()
    lines = ["REFERENCES", ""]
    for citation_number, ref in enumerate(references, start=1):
        formatted = formatter.format(ref, style, number=citation_number)
        lines.append(f"{citation_number}. {formatted.bibliography}")
        lines.append("")
    return "\n".join(lines)


def suggested_filename(basename: str, fmt: ExportFormat) -> str:
    """Return ``<basename>.<ext>``, replacing any extension already on ``basename``."""
    stem = PurePath(basename.strip() or "references").name
    if "." in stem:
        stem = stem.rsplit(".", 1)[0] or stem
    return f"{stem}.{EXTENSIONS[fmt]}"


def export_references(
    references: Sequence[Reference],
    fmt: object,
    basename: str = "references",
    style: object = CitationStyle.APA,
    formatter: Optional[CitationFormatter] = None,
) -> ExportResult:
    """Serialize ``references`` in ``fmt``; unknown formats raise ``UnsupportedFormatError``."""
    export_format = ExportFormat.parse(fmt)
    writers: Dict[ExportFormat, Callable[[Sequence[Reference]], str]] = {
        ExportFormat.BIBTEX: to_bibtex,
        ExportFormat.RIS: to_ris,
        ExportFormat.CSV: to_csv,
        ExportFormat.JSON: to_json,
        ExportFormat.ENDNOTE: to_endnote,
        ExportFormat.WORD: lambda refs: to_plain_text(refs, style, formatter),
        ExportFormat.TXT: lambda refs: to_plain_text(refs, style, formatter),
    }
    content = writers[export_format](references)
    logger.info("Exported {} references as {}", len(references), export_format.value)
    return ExportResult(
        content=content,
        filename=suggested_filename(basename, export_format),
        mime_type=MIME_TYPES[export_format],
        format=export_format,
    )


def _split_pages(pages: str) -> tuple[str | None, str | None]:
    for dash in ("--", "–", "-"):
        if dash in pages:
            start, end = pages.split(dash, 1)
            return start.strip(), end.strip()
    return pages.strip(), None


__all__: List[str] = [
    "EXTENSIONS",
    "ExportFormat",
    "ExportResult",
    "REFERENCE_CSV_HEADER",
    "export_references",
    "suggested_filename",
    "to_bibtex",
    "to_csv",
    "to_endnote",
    "to_json",
    "to_plain_text",
    "to_ris",
    "write_csv",
]
