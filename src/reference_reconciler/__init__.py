"""Reference reconciliation, duplicate review and citation export toolkit."""

from loguru import logger

from .app import ReconciliationApp
from .config import Settings, configure_logging
from .duplicates import DuplicateGrouper, IgnoreList
from .errors import (
    ConcurrentModificationError,
    DuplicateReferenceIdError,
    InvalidCorrectionError,
    ReconciliationError,
    ReferenceNotFoundError,
    StaleMergeTargetError,
    UnsupportedFormatError,
)
from .exporters import ExportFormat, ExportResult, export_references
from .formatter import CitationFormatter, CitationStyle, generate_bibtex_entry, generate_key
from .models import (
    Difference,
    DuplicateGroup,
    FieldSnapshot,
    FormattedCitation,
    QuickFix,
    Reference,
    ReferenceStatus,
    UserDecision,
    resolve_display_value,
)
from .reconciler import CorrectionReconciler, FixSelection
from .store import InMemoryReferenceStore, ReferenceStore

logger.disable("reference_reconciler")

__all__ = [
    "ReconciliationApp",
    "Settings",
    "configure_logging",
    "DuplicateGrouper",
    "IgnoreList",
    "CorrectionReconciler",
    "FixSelection",
    "CitationFormatter",
    "CitationStyle",
    "generate_bibtex_entry",
    "generate_key",
    "ExportFormat",
    "ExportResult",
    "export_references",
    "Reference",
    "FieldSnapshot",
    "ReferenceStatus",
    "UserDecision",
    "Difference",
    "QuickFix",
    "DuplicateGroup",
    "FormattedCitation",
    "resolve_display_value",
    "ReferenceStore",
    "InMemoryReferenceStore",
    "ReconciliationError",
    "StaleMergeTargetError",
    "UnsupportedFormatError",
    "InvalidCorrectionError",
    "ReferenceNotFoundError",
    "DuplicateReferenceIdError",
    "ConcurrentModificationError",
]
