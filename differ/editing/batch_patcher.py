"""
Batch patcher — turns one file's change requests into positional edits
and folds them into new content.

All edits of a batch are resolved against the same snapshot.  They are
applied highest offset first, so offsets recorded against the snapshot
stay valid for every edit still waiting to be applied.  Any failure
rejects the whole file; nothing is partially applied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from ..spans import Span, position_at
from .errors import (
    CreateFileConflict,
    EditError,
    ErrorKind,
    OverlappingEditsInFile,
    PatchError,
    SnapshotMismatch,
    StructuralParseFailure,
    UnsupportedAction,
    error_for,
)
from .models import (
    ADD_SYMBOL_ACTIONS,
    ActionKind,
    ChangeRequest,
    FileIndex,
    ResolvedEdit,
)
from .source_index import SourceIndex
from .target_resolver import TargetResolver

logger = logging.getLogger(__name__)


@dataclass
class PatchResult:
    """Outcome of patching one file."""
    file: str
    success: bool = False
    content: Optional[str] = None
    edits_applied: int = 0
    error: Optional[PatchError] = None

    def as_dict(self) -> dict:
        return {
            "file": self.file,
            "success": self.success,
            "edits_applied": self.edits_applied,
            "error": self.error.as_dict() if self.error else None,
        }


class BatchPatcher:
    """Plan and apply structural edits for one file at a time."""

    def __init__(
        self,
        source_index: SourceIndex,
        resolver: Optional[TargetResolver] = None,
    ) -> None:
        self._index = source_index
        self._resolver = resolver or TargetResolver()

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan(
        self,
        path: str,
        text: str,
        requests: Sequence[ChangeRequest],
        indices: Optional[Sequence[int]] = None,
        language: Optional[str] = None,
    ) -> list[ResolvedEdit]:
        """Resolve every request against *text* and return positional edits.

        Parameters
        ----------
        path:
            The file the requests target; its extension picks the grammar
            unless *language* is given.
        text:
            The exact snapshot all offsets refer to.
        requests:
            Change requests for this file, in arrival order.
        indices:
            Batch-wide request numbers reported in errors. Defaults to
            the position within *requests*.

        Raises
        ------
        EditError
            For the first request that cannot be planned.
        """
        numbers = list(indices) if indices is not None else list(range(len(requests)))
        if len(numbers) != len(requests):
            raise ValueError("indices must match requests one to one")

        kinds: list[ActionKind] = []
        for req, idx in zip(requests, numbers):
            kind = req.action_kind
            if kind is None:
                raise UnsupportedAction(f"Unsupported action: {req.action!r}", idx)
            kinds.append(kind)

        source = text.encode("utf-8")
        if ActionKind.CREATE_FILE in kinds:
            if len(kinds) > 1:
                idx = numbers[kinds.index(ActionKind.CREATE_FILE)]
                raise CreateFileConflict(
                    f"create_file cannot be combined with other changes to {path}",
                    idx,
                )
            return [ResolvedEdit(
                file=path,
                span=Span(position_at(source, 0), position_at(source, len(source))),
                replacement=requests[0].code,
                action=ActionKind.CREATE_FILE,
                request_index=numbers[0],
            )]

        lang = language or self._index.detect_language(path)
        if lang is None:
            raise StructuralParseFailure(f"Unsupported file type: {path}", numbers[0])
        index = self._index.build(text, lang)
        if not index.parse_ok:
            raise StructuralParseFailure(
                f"Cannot parse {path}: {index.parse_error}", numbers[0],
            )

        edits = []
        for req, kind, idx in zip(requests, kinds, numbers):
            res = self._resolver.resolve(index, kind, req.target, req.enclosing_class)
            if not res.exists or res.span is None:
                raise error_for(
                    res.error or ErrorKind.TARGET_NOT_FOUND,
                    res.reason or f"Target '{req.target}' not found in {path}",
                    idx,
                    res.suggestions,
                )
            edits.append(self._positional_edit(path, index, req, kind, res.span, idx))
        logger.debug("[Patch] Planned %d edit(s) for %s", len(edits), path)
        return edits

    @staticmethod
    def _positional_edit(
        path: str,
        index: FileIndex,
        req: ChangeRequest,
        kind: ActionKind,
        span: Span,
        request_index: int,
    ) -> ResolvedEdit:
        source = index.source
        code = req.code

        if kind is ActionKind.DELETE_FUNCTION:
            replacement = ""
        elif kind is ActionKind.INSERT_AFTER:
            eol = source.find(b"\n", span.end.offset)
            if eol == -1:
                span = Span.point(position_at(source, len(source)))
                replacement = "\n" + _terminated(code)
            else:
                span = Span.point(position_at(source, eol + 1))
                replacement = _terminated(code)
        elif kind is ActionKind.INSERT_BEFORE:
            line_start = source.rfind(b"\n", 0, span.start.offset) + 1
            span = Span.point(position_at(source, line_start))
            replacement = _terminated(code)
        elif kind is ActionKind.MODIFY_LINE:
            replacement = code.rstrip("\r\n")
        elif kind is ActionKind.ADD_IMPORT:
            if index.imports:
                replacement = "\n" + code.rstrip("\r\n")
            else:
                replacement = _terminated(code)
        elif kind in ADD_SYMBOL_ACTIONS:
            if not source:
                prefix = ""
            elif source.endswith(b"\n"):
                prefix = "\n"
            else:
                prefix = "\n\n"
            replacement = prefix + _terminated(code)
        elif kind is ActionKind.ADD_METHOD:
            at = span.start.offset
            # Mid-line insertion points (end of the last statement) need a line break first.
            if at > 0 and source[at - 1:at] != b"\n" and not code.startswith(("\n", "\r\n")):
                replacement = "\n" + code
            else:
                replacement = code
        else:
            # replace_function, replace_method, replace_block
            replacement = code

        return ResolvedEdit(
            file=path,
            span=span,
            replacement=replacement,
            action=kind,
            request_index=request_index,
        )

    # ------------------------------------------------------------------
    # Applying
    # ------------------------------------------------------------------

    def apply(self, text: str, edits: Sequence[ResolvedEdit]) -> str:
        """Fold *edits* into *text* and return the new content.

        Raises
        ------
        EditError
            ``UnsupportedAction``, ``CreateFileConflict``,
            ``SnapshotMismatch`` or ``OverlappingEditsInFile``.
        """
        for edit in edits:
            if ActionKind.coerce(edit.action) is None:
                raise UnsupportedAction(
                    f"Unsupported action: {edit.action!r}", edit.request_index,
                )

        creates = [e for e in edits if ActionKind.coerce(e.action) is ActionKind.CREATE_FILE]
        if creates:
            if len(edits) > 1:
                raise CreateFileConflict(
                    "create_file cannot be combined with other changes to the same file",
                    creates[0].request_index,
                )
            return creates[0].replacement

        source = text.encode("utf-8")
        size = len(source)
        for edit in edits:
            lo, hi = edit.span.start.offset, edit.span.end.offset
            if not 0 <= lo <= hi <= size:
                raise SnapshotMismatch(
                    f"Edit span [{lo}, {hi}) does not fit a {size}-byte file",
                    edit.request_index,
                )

        ordered = sorted(
            edits,
            key=lambda e: (e.span.start.offset, e.span.end.offset, e.request_index),
        )
        for i, first in enumerate(ordered):
            for second in ordered[i + 1:]:
                if second.span.start.offset >= first.span.end.offset:
                    break
                if first.span.overlaps(second.span):
                    raise OverlappingEditsInFile(
                        f"Change {first.request_index} and change "
                        f"{second.request_index} touch overlapping text",
                        second.request_index,
                    )

        acc = source
        for edit in reversed(ordered):
            lo, hi = edit.span.start.offset, edit.span.end.offset
            acc = acc[:lo] + edit.replacement.encode("utf-8") + acc[hi:]
        return acc.decode("utf-8")

    # ------------------------------------------------------------------
    # Plan + apply at the file boundary
    # ------------------------------------------------------------------

    def patch_file(
        self,
        path: str,
        text: str,
        requests: Sequence[ChangeRequest],
        indices: Optional[Sequence[int]] = None,
        language: Optional[str] = None,
    ) -> PatchResult:
        """Plan and apply *requests* to *text*; errors become ``PatchResult.error``."""
        result = PatchResult(file=path)
        try:
            edits = self.plan(path, text, requests, indices=indices, language=language)
            result.content = self.apply(text, edits)
        except EditError as exc:
            logger.warning(
                "[Patch] %s rejected (%s, change %s): %s",
                path, exc.kind.value, exc.request_index, exc.message,
            )
            result.error = exc.to_patch_error()
            return result

        result.success = True
        result.edits_applied = len(edits)
        logger.info("[Patch] %s: %d edit(s) applied", path, len(edits))
        return result


def _terminated(code: str) -> str:
    return code if code.endswith("\n") else code + "\n"
