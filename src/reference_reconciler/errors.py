"""Exception types raised by the reconciliation engine."""
from __future__ import annotations


class ReconciliationError(Exception):
    """Base class for engine errors."""


class StaleMergeTargetError(ReconciliationError):
    """A merge referenced a reference or group that is no longer present."""


class UnsupportedFormatError(ReconciliationError, ValueError):
    """Export was requested in a format the serializer does not know."""

    def __init__(self, fmt: object):
        super().__init__(f"Unsupported export format: {fmt}")
        self.format = fmt


class InvalidCorrectionError(ReconciliationError, ValueError):
    """A correction named a field the reconciler cannot write."""


class ReferenceNotFoundError(ReconciliationError, LookupError):
    """No reference with the requested id exists in the collection."""

    def __init__(self, reference_id: str):
        super().__init__(f"Reference not found: {reference_id}")
        self.reference_id = reference_id


class DuplicateReferenceIdError(ReconciliationError, ValueError):
    """Two references in one job share an id."""


class ConcurrentModificationError(ReconciliationError):
    """Another commit for the same reference or group is still in flight."""
