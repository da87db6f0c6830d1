"""Normalization helpers for author lists, titles and identifiers."""
from __future__ import annotations

from typing import List
import re
import unicodedata

_AND_SEPARATOR = re.compile(r"\s+and\s+", re.IGNORECASE)
_LIST_SEPARATOR = re.compile(r"[,;&]")
_ET_AL = re.compile(r"\s*,?\s*et\s+al\.?\s*$", re.IGNORECASE)
_DOI_PREFIX = re.compile(r"^(https?://(dx\.)?doi\.org/|doi:\s*)", re.IGNORECASE)


def split_authors(value: str | None) -> List[str]:
    """Split an author string into individual names.

    The ``" and "`` separator wins when present, so inverted names such as
    ``"Smith, John and Doe, Jane"`` keep their commas. Otherwise commas,
    semicolons and ampersands separate names.
    """
    if not value:
        return []
    if _AND_SEPARATOR.search(value):
        parts = _AND_SEPARATOR.split(value)
    else:
        parts = _LIST_SEPARATOR.split(value)
    return [part.strip() for part in parts if part.strip()]


def strip_et_al(name: str) -> str:
    return _ET_AL.sub("", name).strip()


def last_name(author: str | None) -> str:
    """Return the family name of a single author."""
    if not author:
        return ""
    name = strip_et_al(author)
    if "," in name:
        return name.split(",", 1)[0].strip()
    tokens = name.split()
    return tokens[-1] if tokens else ""


def given_names(author: str) -> List[str]:
    """Return the given-name tokens of a single author, in order."""
    name = strip_et_al(author)
    if "," in name:
        return name.split(",", 1)[1].split()
    return name.split()[:-1]


def initials(author: str) -> str:
    """Return upper-case initials of the given names (``"John A."`` -> ``"JA"``)."""
    letters = []
    for token in given_names(author):
        for piece in token.split("-"):
            piece = piece.strip(".")
            if piece:
                letters.append(piece[0].upper())
    return "".join(letters)


def invert_name(author: str) -> str:
    """Render an author as ``"Last, First"``."""
    family = last_name(author)
    given = " ".join(given_names(author))
    return f"{family}, {given}" if given else family


def normalize_for_comparison(value: str | None) -> str:
    """Lower-case, strip punctuation and collapse whitespace.

    Only for equality and containment tests, never for display.
    """
    if not value:
        return ""
    text = ascii_fold(value).lower()
    text = re.sub(r"[^\w\s]", " ", text)
    text = re.sub(r"\s+", " ", text).strip()
    return text


def ascii_fold(value: str) -> str:
    text = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in text if not unicodedata.combining(ch))


def normalize_doi(doi: str | None) -> str:
    if not doi:
        return ""
    return _DOI_PREFIX.sub("", doi.strip()).strip().lower()


def same_text(a: str | None, b: str | None) -> bool:
    """Case-insensitive comparison of trimmed values."""
    return (a or "").strip().lower() == (b or "").strip().lower()
