"""Citation formatting and BibTeX generation for references."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence
import re

from .models import FormattedCitation, Reference, resolve_display_value
from .normalization import (
    ascii_fold,
    initials,
    invert_name,
    last_name,
    split_authors,
)
from .reference_types import bibtex_type_for

UNKNOWN_AUTHOR = "Unknown Author"
UNKNOWN_YEAR = "Unknown Year"
UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_VENUE = "Unknown Venue"

APA_MAX_LISTED_AUTHORS = 20
VANCOUVER_MAX_LISTED_AUTHORS = 6


class CitationStyle(str, Enum):
    APA = "apa"
    HARVARD = "harvard"
    CHICAGO = "chicago"
    MLA = "mla"
    IEEE = "ieee"
    VANCOUVER = "vancouver"
    LATEX_PLAIN = "latex-plain"
    LATEX_ALPHA = "latex-alpha"
    LATEX_UNSRT = "latex-unsrt"
    LATEX_ABBRV = "latex-abbrv"
    NATBIB = "natbib"
    BIBLATEX = "biblatex"

    @classmethod
    def values(cls) -> List[str]:
        return [style.value for style in cls]

    @classmethod
    def parse(cls, value: object) -> Optional["CitationStyle"]:
        """Return the style named by ``value``, or ``None`` when unknown."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip().lower().replace("_", "-").replace(" ", "-")
        try:
            return cls(key)
        except ValueError:
            return None


_LATEX_VARIANTS = {
    CitationStyle.LATEX_PLAIN: "plain",
    CitationStyle.LATEX_ALPHA: "alpha",
    CitationStyle.LATEX_UNSRT: "unsrt",
    CitationStyle.LATEX_ABBRV: "abbrv",
}

_AND = re.compile(r"\s+and\s+", re.IGNORECASE)


@dataclass
class _Resolved:
    authors: List[str]
    authors_raw: Optional[str]
    title: str
    year: str
    venue: str
    doi: Optional[str]


def author_list(raw: Optional[str]) -> List[str]:
    """Split a display author string, keeping a lone inverted name intact."""
    if not raw:
        return []
    pieces = split_authors(raw)
    lone_inverted = (
        not _AND.search(raw)
        and len(pieces) == 2
        and "," in raw
        and not re.search(r"[;&]", raw)
        and len(pieces[0].split()) == 1
    )
    return [raw.strip()] if lone_inverted else pieces


def _resolve(reference: Reference) -> _Resolved:
    raw_authors = resolve_display_value(reference, "authors")
    year = resolve_display_value(reference, "year")
    return _Resolved(
        authors=author_list(raw_authors),
        authors_raw=raw_authors,
        title=resolve_display_value(reference, "title") or UNKNOWN_TITLE,
        year=str(year) if year is not None else UNKNOWN_YEAR,
        venue=resolve_display_value(reference, "venue") or UNKNOWN_VENUE,
        doi=resolve_display_value(reference, "doi"),
    )


def _join_sentences(parts: Iterable[str]) -> str:
    sentences = []
    for part in parts:
        text = part.strip().rstrip(".").strip()
        if not text:
            continue
        sentences.append(text if text[-1] in "?!" else text + ".")
    return " ".join(sentences)


def _quoted(title: str, punctuation: str) -> str:
    text = title.strip().rstrip(".")
    if text and text[-1] in "?!":
        return f'"{text}"'
    return f'"{text}{punctuation}"'


def _short_names(authors: Sequence[str]) -> str:
    names = [last_name(author) or author for author in authors]
    if not names:
        return UNKNOWN_AUTHOR
    if len(names) == 1:
        return names[0]
    if len(names) == 2:
        return f"{names[0]} & {names[1]}"
    return f"{names[0]} et al."


def _serial_list(authors: Sequence[str], conjunction: str, oxford: bool = True) -> str:
    if not authors:
        return UNKNOWN_AUTHOR
    if len(authors) == 1:
        return authors[0]
    if len(authors) == 2:
        return f"{authors[0]} {conjunction} {authors[1]}"
    comma = "," if oxford else ""
    return ", ".join(authors[:-1]) + f"{comma} {conjunction} " + authors[-1]


def generate_key(reference: Reference) -> str:
    """Return the citation key, deriving ``<LastName><Year>`` when none is set."""
    existing = (reference.key or "").strip()
    if existing and existing != "undefined":
        return existing
    authors = author_list(resolve_display_value(reference, "authors"))
    name = ascii_fold(last_name(authors[0])) if authors else ""
    name = re.sub(r"[^A-Za-z0-9]", "", name)
    if not name or name.lower() == "undefined":
        name = "Unknown"
    year = resolve_display_value(reference, "year")
    return f"{name}{year if year is not None else '0000'}"


def _key_suffix(index: int) -> str:
    letters = ""
    index += 1
    while index:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord("a") + remainder) + letters
    return letters


def assign_unique_keys(references: Sequence[Reference]) -> List[Reference]:
    """Return copies with generated keys, suffixing collisions with a, b, c..."""
    used: set[str] = set()
    updated: List[Reference] = []
    for ref in references:
        base = generate_key(ref)
        key = base
        index = 0
        while key in used:
            key = base + _key_suffix(index)
            index += 1
        used.add(key)
        updated.append(ref if ref.key == key else ref.model_copy(update={"key": key}))
    return updated


def generate_bibtex_entry(reference: Reference) -> str:
    """Render a BibTeX entry with a fixed field order."""
    resolved = _resolve(reference)
    entry_type = bibtex_type_for(reference)
    venue_field = "booktitle" if entry_type in {"inproceedings", "incollection", "conference"} else "journal"
    authors = " and ".join(resolved.authors) if resolved.authors else UNKNOWN_AUTHOR

    fields = [
        ("title", resolved.title),
        ("author", authors),
        ("year", resolved.year),
        (venue_field, resolved.venue),
    ]
    metadata = reference.metadata
    optional = [
        ("doi", resolved.doi),
        ("volume", metadata.get("volume")),
        ("pages", metadata.get("pages")),
        ("number", metadata.get("issue") or metadata.get("number")),
        ("publisher", metadata.get("publisher")),
        ("url", metadata.get("url")),
    ]
    fields.extend((name, str(value)) for name, value in optional if value not in (None, ""))

    body = ",\n".join(f"  {name} = {{{value}}}" for name, value in fields)
    return f"@{entry_type}{{{generate_key(reference)},\n{body}\n}}"


class CitationFormatter:
    """Format references into in-text citations and bibliography entries.

    Unknown styles fall back to a plain LaTeX ``\\cite`` so formatting never
    fails on user-supplied style names.
    """

    def format(
        self, reference: Reference, style: object = CitationStyle.APA, number: int = 1
    ) -> FormattedCitation:
        parsed = CitationStyle.parse(style)
        if parsed is None or parsed in _LATEX_VARIANTS:
            return self.format_latex(reference, number, variant=_LATEX_VARIANTS.get(parsed, "plain"))
        formatter = getattr(self, f"format_{parsed.value}")
        return formatter(reference, number)

    def format_many(
        self, references: Sequence[Reference], style: object = CitationStyle.APA
    ) -> List[FormattedCitation]:
        return [self.format(ref, style, number=idx) for idx, ref in enumerate(references, start=1)]

    def format_apa(self, reference: Reference, number: int = 1) -> FormattedCitation:
        r = _resolve(reference)
        if len(r.authors) > APA_MAX_LISTED_AUTHORS:
            authors = f"{r.authors[0]} et al."
        else:
            authors = _serial_list(r.authors, "&")
        bibliography = _join_sentences([authors, f"({r.year})", r.title, r.venue])
        if r.doi:
            bibliography += f" https://doi.org/{r.doi}"
        return FormattedCitation(
            in_text=f"({_short_names(r.authors)}, {r.year})",
            bibliography=bibliography,
            style_name="APA 7th",
        )

    def format_harvard(self, reference: Reference, number: int = 1) -> FormattedCitation:
        r = _resolve(reference)
        authors = _serial_list(r.authors, "and", oxford=False)
        return FormattedCitation(
            in_text=f"({_short_names(r.authors)}, {r.year})",
            bibliography=_join_sentences([f"{authors} ({r.year})", r.title, r.venue]),
            style_name="Harvard",
        )

    def format_chicago(self, reference: Reference, number: int = 1) -> FormattedCitation:
        r = _resolve(reference)
        authors = _join_sentences([_serial_list(r.authors, "and")])
        bibliography = f"{authors} {_quoted(r.title, '.')} {r.venue} ({r.year})."
        return FormattedCitation(
            in_text=f"({_short_names(r.authors)} {r.year})",
            bibliography=bibliography,
            style_name="Chicago 17th",
        )

    def format_mla(self, reference: Reference, number: int = 1) -> FormattedCitation:
        r = _resolve(reference)
        if r.authors:
            name = invert_name(r.authors[0])
            if len(r.authors) > 1 or "et al" in (r.authors_raw or "").lower():
                name += ", et al."
            lead = last_name(r.authors[0]) or r.authors[0]
        else:
            name = UNKNOWN_AUTHOR
            lead = UNKNOWN_AUTHOR
        bibliography = f"{_join_sentences([name])} {_quoted(r.title, '.')} {r.venue}, {r.year}."
        return FormattedCitation(in_text=f"({lead})", bibliography=bibliography, style_name="MLA 9th")

    def format_ieee(self, reference: Reference, number: int = 1) -> FormattedCitation:
        r = _resolve(reference)
        bibliography = f"{_serial_list(r.authors, 'and')}, {_quoted(r.title, ',')} {r.venue}, {r.year}"
        if r.doi:
            bibliography += f", doi: {r.doi}"
        return FormattedCitation(in_text=f"[{number}]", bibliography=bibliography + ".", style_name="IEEE")

    def format_vancouver(self, reference: Reference, number: int = 1) -> FormattedCitation:
        r = _resolve(reference)
        names = [f"{last_name(author)} {initials(author)}".strip() for author in r.authors]
        if not names:
            authors = UNKNOWN_AUTHOR
        elif len(names) <= VANCOUVER_MAX_LISTED_AUTHORS:
            authors = ", ".join(names)
        else:
            authors = ", ".join(names[:VANCOUVER_MAX_LISTED_AUTHORS]) + ", et al."
        return FormattedCitation(
            in_text=f"({number})",
            bibliography=_join_sentences([authors, r.title, r.venue, r.year]),
            style_name="Vancouver",
        )

    def format_latex(self, reference: Reference, number: int = 1, variant: str = "plain") -> FormattedCitation:
        key = generate_key(reference)
        return FormattedCitation(
            in_text=f"\\cite{{{key}}}",
            bibliography=generate_bibtex_entry(reference),
            style_name="LaTeX",
            extra={"latex": True, "bibliography_style": variant},
        )

    def format_natbib(self, reference: Reference, number: int = 1) -> FormattedCitation:
        key = generate_key(reference)
        r = _resolve(reference)
        return FormattedCitation(
            in_text=f"\\citep{{{key}}}",
            bibliography=generate_bibtex_entry(reference),
            style_name="NatBib",
            extra={
                "latex": True,
                "in_text_narrative": f"\\citet{{{key}}}",
                "preview": f"{_short_names(r.authors)} ({r.year})",
            },
        )

    def format_biblatex(self, reference: Reference, number: int = 1) -> FormattedCitation:
        key = generate_key(reference)
        return FormattedCitation(
            in_text=f"\\autocite{{{key}}}",
            bibliography=generate_bibtex_entry(reference),
            style_name="BibLaTeX",
            extra={"latex": True},
        )


def style_labels() -> Dict[str, str]:
    """Map style values to human-readable names."""
    labels = {
        CitationStyle.APA: "APA 7th Edition",
        CitationStyle.HARVARD: "Harvard",
        CitationStyle.MLA: "MLA 9th Edition",
        CitationStyle.CHICAGO: "Chicago 17th Edition",
        CitationStyle.IEEE: "IEEE",
        CitationStyle.VANCOUVER: "Vancouver",
        CitationStyle.LATEX_PLAIN: "LaTeX Plain",
        CitationStyle.LATEX_ALPHA: "LaTeX Alpha",
        CitationStyle.LATEX_UNSRT: "LaTeX Unsrt",
        CitationStyle.LATEX_ABBRV: "LaTeX Abbrv",
        CitationStyle.NATBIB: "NatBib",
        CitationStyle.BIBLATEX: "BibLaTeX",
    }
    return {style.value: label for style, label in labels.items()}
