"""Structural editing — index, resolve, patch and validate named changes."""

from .models import (
    ActionKind, ChangeRequest, ClassInfo, Confidence, FileIndex,
    ResolutionResult, ResolvedEdit, SymbolInfo,
)
from .errors import EditError, ErrorKind, PatchError
from .source_index import SourceIndex
from .target_resolver import TargetResolver
from .batch_patcher import BatchPatcher, PatchResult
from .validation import (
    ChangeValidation, ValidationIssue, ValidationOptions,
    ValidationOrchestrator, ValidationSummary,
)
from .metrics import log_apply_metric, read_apply_stats

__all__ = [
    "ActionKind", "ChangeRequest", "ClassInfo", "Confidence", "FileIndex",
    "ResolutionResult", "ResolvedEdit", "SymbolInfo",
    "EditError", "ErrorKind", "PatchError",
    "SourceIndex", "TargetResolver", "BatchPatcher", "PatchResult",
    "ChangeValidation", "ValidationIssue", "ValidationOptions",
    "ValidationOrchestrator", "ValidationSummary",
    "log_apply_metric", "read_apply_stats",
]
