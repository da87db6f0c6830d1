"""Data models for reference reconciliation workflows."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional
import math
import re

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

SNAPSHOT_FIELDS = ("title", "authors", "year", "venue", "doi")


class ReferenceStatus(str, Enum):
    VERIFIED = "verified"
    WARNING = "warning"
    ISSUE = "issue"
    RETRACTED = "retracted"
    NOT_FOUND = "not_found"
    DUPLICATE = "duplicate"


class UserDecision(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


def coerce_year(value: Any) -> Optional[int]:
    """Return a year as an integer, or ``None`` when it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    match = re.search(r"\b(\d{4})\b", text)
    return int(match.group(1)) if match else None


class FieldSnapshot(BaseModel):
    """Title, authors, year, venue and DOI as seen by one source."""

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    authors: Optional[str] = None
    year: Optional[int] = None
    venue: Optional[str] = None
    doi: Optional[str] = None

    @field_validator("year", mode="before")
    @classmethod
    def _year(cls, value: Any) -> Optional[int]:
        return coerce_year(value)

    @field_validator("title", "authors", "venue", "doi", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, (list, tuple)):
            value = " and ".join(str(item) for item in value if item)
        return str(value).strip()

    def blank_to_none(self) -> "FieldSnapshot":
        """Return a copy where empty strings are ``None`` (canonical snapshots)."""
        return self.model_copy(
            update={name: None for name in SNAPSHOT_FIELDS if getattr(self, name) == ""}
        )

    def is_empty(self) -> bool:
        return all(getattr(self, name) in (None, "") for name in SNAPSHOT_FIELDS)


# Flat record spellings accepted at ingestion, mapped onto the nested shape.
_ORIGINAL_ALIASES = {
    "title": ("original_title", "originalTitle", "title"),
    "authors": ("original_authors", "originalAuthors", "authors"),
    "year": ("original_year", "originalYear", "year"),
    "venue": ("original_source", "originalSource", "source", "venue"),
    "doi": ("original_doi", "originalDoi", "doi"),
}
_CANONICAL_ALIASES = {
    "title": ("canonical_title", "canonicalTitle"),
    "authors": ("canonical_authors", "canonicalAuthors"),
    "year": ("canonical_year", "canonicalYear"),
    "venue": ("canonical_venue", "canonicalVenue", "canonical_source", "canonicalSource"),
    "doi": ("canonical_doi", "canonicalDoi"),
}
_TOP_LEVEL_ALIASES = {
    "key": ("bibtex_key", "bibtexKey"),
    "confidence_score": ("confidence",),
}
_METADATA_ALIASES = {
    "entry_type": ("bibtex_type", "bibtexType", "entry_type", "entryType"),
    "url": ("url",),
}


def _first_present(record: Mapping[str, Any], names: tuple) -> tuple[bool, Any]:
    for name in names:
        if name in record:
            return True, record[name]
    return False, None


class Reference(BaseModel):
    """One bibliographic entry of a job."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    id: str = Field(frozen=True)
    key: Optional[str] = None
    original: FieldSnapshot = Field(default_factory=FieldSnapshot)
    canonical: Optional[FieldSnapshot] = None
    status: ReferenceStatus = ReferenceStatus.WARNING
    confidence_score: int = 0
    issues: List[str] = Field(default_factory=list)
    duplicate_group_id: Optional[str] = None
    user_decision: Optional[UserDecision] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", mode="before")
    @classmethod
    def _id(cls, value: Any) -> str:
        text = "" if value is None else str(value).strip()
        if not text:
            raise ValueError("reference id must be non-empty")
        return text

    @field_validator("confidence_score", mode="before")
    @classmethod
    def _clamp_score(cls, value: Any) -> int:
        try:
            number = float(value)
        except OverflowError:
            number = float("inf") if value > 0 else float("-inf")
        except (TypeError, ValueError):
            return 0
        if math.isnan(number):
            return 0
        return int(round(max(0.0, min(100.0, number))))

    @field_validator("canonical", mode="after")
    @classmethod
    def _canonical(cls, value: Optional[FieldSnapshot]) -> Optional[FieldSnapshot]:
        if value is None:
            return None
        value = value.blank_to_none()
        return None if value.is_empty() else value

    @field_validator("issues", mode="before")
    @classmethod
    def _issues(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return [str(item) for item in value]

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata(cls, value: Any) -> Dict[str, Any]:
        return dict(value) if value else {}

    @model_validator(mode="before")
    @classmethod
    def _normalize_record(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        return normalize_record(data)

    @classmethod
    def from_record(cls, record: Mapping[str, Any] | "Reference") -> "Reference":
        """Build a Reference from any supported record shape."""
        if isinstance(record, Reference):
            return record
        return cls.model_validate(record)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @property
    def has_doi(self) -> bool:
        return bool(resolve_display_value(self, "doi"))


def normalize_record(record: Mapping[str, Any]) -> Dict[str, Any]:
    """Fold legacy flat field spellings into the nested Reference shape."""
    data = dict(record)

    if not isinstance(data.get("original"), (Mapping, FieldSnapshot)):
        original: Dict[str, Any] = {}
        for name, aliases in _ORIGINAL_ALIASES.items():
            found, value = _first_present(data, aliases)
            if found:
                original[name] = value
        data["original"] = original

    if "canonical" not in data:
        canonical: Dict[str, Any] = {}
        for name, aliases in _CANONICAL_ALIASES.items():
            found, value = _first_present(data, aliases)
            if found:
                canonical[name] = value
        # Legacy rows store the registry venue as ``venue`` beside the user's source.
        has_source = any(name in data for name in ("original_source", "originalSource", "source"))
        if "venue" not in canonical and has_source and data.get("venue"):
            canonical["venue"] = data["venue"]
        data["canonical"] = canonical or None

    for name, aliases in _TOP_LEVEL_ALIASES.items():
        if name not in data and to_camel(name) not in data:
            found, value = _first_present(data, aliases)
            if found:
                data[name] = value

    metadata = dict(data.get("metadata") or {})
    for name, aliases in _METADATA_ALIASES.items():
        if name not in metadata:
            found, value = _first_present(data, aliases)
            if found and value:
                metadata[name] = value
    data["metadata"] = metadata
    return data


def resolve_display_value(reference: Reference, field_name: str) -> Any:
    """Return the value shown for ``field_name`` of ``reference``.

    Canonical values win over original ones; empty values fall through to
    the next source.
    """
    if field_name not in SNAPSHOT_FIELDS:
        raise KeyError(field_name)
    for snapshot in (reference.canonical, reference.original):
        if snapshot is None:
            continue
        value = getattr(snapshot, field_name)
        if value not in (None, ""):
            return value
    return None


@dataclass(frozen=True)
class Difference:
    """A field whose original and canonical values disagree."""

    field: str
    original_value: Any
    canonical_value: Any
    is_critical: bool = False
    informational: bool = False


@dataclass(frozen=True)
class QuickFix:
    """A proposed single-field correction derived from a Difference."""

    id: str
    field: str
    suggested_value: Any
    title: str
    description: str = ""


@dataclass
class DuplicateGroup:
    """References believed to describe the same work."""

    group_id: str
    references: List[Reference]
    canonical_reference: Reference
    has_issues: bool = False

    @property
    def member_ids(self) -> List[str]:
        return [ref.id for ref in self.references]

    @property
    def canonical_id(self) -> str:
        return self.canonical_reference.id

    def __len__(self) -> int:
        return len(self.references)


@dataclass
class FormattedCitation:
    """In-text and bibliography renderings of one reference."""

    in_text: str
    bibliography: str
    style_name: str
    extra: Dict[str, Any] = field(default_factory=dict)
