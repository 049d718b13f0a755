"""
Error taxonomy for structural edits.

Every failure that can stop one file's batch is an ``EditError`` subclass.
They are raised while planning or folding a single file and caught at the
file boundary, where they become a :class:`PatchError` record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional


class ErrorKind(str, Enum):
    """Stable identifiers for every reportable failure."""
    STRUCTURAL_PARSE_FAILURE = "structural_parse_failure"
    TARGET_NOT_FOUND = "target_not_found"
    AMBIGUOUS_OR_OVERSIZED_MATCH = "ambiguous_or_oversized_match"
    OVERLAPPING_EDITS_IN_FILE = "overlapping_edits_in_file"
    CREATE_FILE_CONFLICT = "create_file_conflict"
    UNSUPPORTED_ACTION = "unsupported_action"
    SNAPSHOT_MISMATCH = "snapshot_mismatch"
    IO_ERROR = "io_error"


@dataclass(frozen=True)
class PatchError:
    """Structured description of why one file's batch was not applied."""
    kind: ErrorKind
    message: str
    request_index: Optional[int] = None
    suggestions: tuple[str, ...] = field(default_factory=tuple)

    def as_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "request_index": self.request_index,
            "suggestions": list(self.suggestions),
        }


class EditError(Exception):
    """Base class for failures that invalidate one file's batch."""

    kind: ErrorKind = ErrorKind.TARGET_NOT_FOUND

    def __init__(
        self,
        message: str,
        request_index: Optional[int] = None,
        suggestions: Optional[Iterable[str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.request_index = request_index
        self.suggestions = list(suggestions or [])

    def to_patch_error(self) -> PatchError:
        return PatchError(
            kind=self.kind,
            message=self.message,
            request_index=self.request_index,
            suggestions=tuple(self.suggestions),
        )


class StructuralParseFailure(EditError):
    """The grammar could not parse the file (syntax error or unsupported language)."""
    kind = ErrorKind.STRUCTURAL_PARSE_FAILURE


class TargetNotFound(EditError):
    """A named symbol, class or text block could not be located."""
    kind = ErrorKind.TARGET_NOT_FOUND


class AmbiguousOrOversizedMatch(EditError):
    """A textual match was too large or not unique to be trusted."""
    kind = ErrorKind.AMBIGUOUS_OR_OVERSIZED_MATCH


class OverlappingEditsInFile(EditError):
    """Two resolved spans in the same file intersect."""
    kind = ErrorKind.OVERLAPPING_EDITS_IN_FILE


class CreateFileConflict(EditError):
    """``create_file`` was mixed with other actions on the same file."""
    kind = ErrorKind.CREATE_FILE_CONFLICT


class UnsupportedAction(EditError):
    """The action kind is not one the engine knows how to apply."""
    kind = ErrorKind.UNSUPPORTED_ACTION


class SnapshotMismatch(EditError):
    """A span does not fit the text it is being applied to."""
    kind = ErrorKind.SNAPSHOT_MISMATCH


class FileAccessError(EditError):
    """The file could not be read or written."""
    kind = ErrorKind.IO_ERROR


_ERRORS_BY_KIND: dict[ErrorKind, type[EditError]] = {
    cls.kind: cls
    for cls in (
        StructuralParseFailure, TargetNotFound, AmbiguousOrOversizedMatch,
        OverlappingEditsInFile, CreateFileConflict, UnsupportedAction,
        SnapshotMismatch, FileAccessError,
    )
}


def error_for(
    kind: ErrorKind,
    message: str,
    request_index: Optional[int] = None,
    suggestions: Optional[Iterable[str]] = None,
) -> EditError:
    """Build the ``EditError`` subclass matching *kind*."""
    cls = _ERRORS_BY_KIND.get(kind, EditError)
    return cls(message, request_index=request_index, suggestions=suggestions)
