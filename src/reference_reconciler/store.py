"""Reference collection interfaces used by the orchestrator."""
from __future__ import annotations

from typing import Dict, Iterable, List

from .errors import DuplicateReferenceIdError, ReferenceNotFoundError
from .models import Reference


class ReferenceStore:
    """Base interface for the caller-owned reference collection of one job."""

    name: str = "base"

    def all(self) -> List[Reference]:  # pragma: no cover - interface
        raise NotImplementedError

    def get(self, reference_id: str) -> Reference:  # pragma: no cover - interface
        raise NotImplementedError

    def save(self, reference: Reference) -> Reference:  # pragma: no cover - interface
        raise NotImplementedError

    def delete(self, reference_ids: Iterable[str]) -> int:  # pragma: no cover - interface
        raise NotImplementedError

    def __contains__(self, reference_id: object) -> bool:
        try:
            self.get(str(reference_id))
        except ReferenceNotFoundError:
            return False
        return True


class InMemoryReferenceStore(ReferenceStore):
    """Insertion-ordered store suitable for tests and single-process use."""

    def __init__(self, references: Iterable[Reference] = ()):
        self.name = "memory"
        self._items: Dict[str, Reference] = {}
        for ref in references:
            if ref.id in self._items:
                raise DuplicateReferenceIdError(f"Duplicate reference id: {ref.id}")
            self._items[ref.id] = ref

    def all(self) -> List[Reference]:
        return list(self._items.values())

    def get(self, reference_id: str) -> Reference:
        try:
            return self._items[reference_id]
        except KeyError:
            raise ReferenceNotFoundError(reference_id) from None

    def save(self, reference: Reference) -> Reference:
        self._items[reference.id] = reference
        return reference

    def delete(self, reference_ids: Iterable[str]) -> int:
        ids = list(reference_ids)
        missing = [ref_id for ref_id in ids if ref_id not in self._items]
        if missing:
            raise ReferenceNotFoundError(", ".join(missing))
        for ref_id in ids:
            del self._items[ref_id]
        return len(ids)

    def __len__(self) -> int:
        return len(self._items)
