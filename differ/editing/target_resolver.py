"""
Target resolver — maps a named or textual target onto one span of a
:class:`FileIndex` snapshot.

Exact symbol lookups report ``high`` confidence.  Additive actions are
always resolvable (idempotent-insert semantics): an existing symbol with
the same name is attached as a suggestion instead of failing.  Textual
lookups (blocks, single lines) report ``medium`` confidence.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Optional, Union

from ..grammar.host import SyntaxNode
from ..spans import Span, position_at
from .errors import ErrorKind
from .models import ActionKind, Confidence, FileIndex, ResolutionResult
from .similarity import suggest

logger = logging.getLogger(__name__)

_MAX_LINE_SUGGESTIONS = 3


def normalize_ws(text: str) -> str:
    """Collapse every whitespace run to one space and trim the ends."""
    return " ".join(text.split())


def oversized_limit(target: str) -> int:
    """Largest raw node length a block match of *target* may have."""
    return 2 * len(target) + 200


def _not_found(
    reason: str,
    suggestions: Optional[list[str]] = None,
    error: ErrorKind = ErrorKind.TARGET_NOT_FOUND,
    confidence: Confidence = Confidence.HIGH,
) -> ResolutionResult:
    return ResolutionResult(
        exists=False,
        confidence=confidence,
        suggestions=list(suggestions or []),
        reason=reason,
        error=error,
    )


class TargetResolver:
    """Resolve change targets against a structural index."""

    def __init__(self) -> None:
        self._dispatch: dict[ActionKind, Callable[..., ResolutionResult]] = {
            ActionKind.CREATE_FILE: self._resolve_create_file,
            ActionKind.REPLACE_FUNCTION: self._resolve_function,
            ActionKind.DELETE_FUNCTION: self._resolve_function,
            ActionKind.REPLACE_METHOD: self._resolve_replace_method,
            ActionKind.ADD_METHOD: self._resolve_add_method,
            ActionKind.ADD_IMPORT: self._resolve_add_import,
            ActionKind.ADD_FUNCTION: self._resolve_add_symbol,
            ActionKind.ADD_STRUCT: self._resolve_add_symbol,
            ActionKind.ADD_ENUM: self._resolve_add_symbol,
            ActionKind.REPLACE_BLOCK: self._resolve_block,
            ActionKind.INSERT_AFTER: self._resolve_block,
            ActionKind.INSERT_BEFORE: self._resolve_block,
            ActionKind.MODIFY_LINE: self._resolve_line,
        }
        missing = set(ActionKind) - set(self._dispatch)
        if missing:
            raise RuntimeError(
                "TargetResolver has no handler for: "
                + ", ".join(sorted(a.value for a in missing))
            )

    def resolve(
        self,
        index: FileIndex,
        action: Union[ActionKind, str],
        target: str,
        enclosing_class: Optional[str] = None,
    ) -> ResolutionResult:
        """Resolve *target* for *action* against *index*.

        Never raises for user input; failures come back as
        ``exists=False`` with an :class:`ErrorKind` and suggestions.
        """
        kind = ActionKind.coerce(action)
        if kind is None:
            return _not_found(
                f"Unsupported action: {action!r}",
                error=ErrorKind.UNSUPPORTED_ACTION,
            )
        if kind is ActionKind.CREATE_FILE:
            return self._resolve_create_file(index, kind, target, enclosing_class)
        if not index.parse_ok:
            return _not_found(
                f"File could not be parsed: {index.parse_error or 'unknown error'}",
                error=ErrorKind.STRUCTURAL_PARSE_FAILURE,
            )

        result = self._dispatch[kind](index, kind, target, enclosing_class)
        logger.debug(
            "[Resolve] %s %r (class=%s) -> exists=%s confidence=%s",
            kind.value, target, enclosing_class, result.exists, result.confidence.value,
        )
        return result

    # ------------------------------------------------------------------
    # Named symbols
    # ------------------------------------------------------------------

    @staticmethod
    def _resolve_create_file(index, kind, target, enclosing_class) -> ResolutionResult:
        return ResolutionResult(exists=True, confidence=Confidence.HIGH)

    @staticmethod
    def _resolve_function(index, kind, target, enclosing_class) -> ResolutionResult:
        fn = index.function(target)
        if fn is not None:
            return ResolutionResult(exists=True, span=fn.span, confidence=Confidence.HIGH)
        return _not_found(
            f"Function '{target}' not found",
            suggest(target, index.function_names),
        )

    @staticmethod
    def _resolve_replace_method(index, kind, target, enclosing_class) -> ResolutionResult:
        if not enclosing_class:
            return _not_found(f"Method action '{kind.value}' requires a class name")
        cls = index.classes.get(enclosing_class)
        if cls is None:
            return _not_found(
                f"Class '{enclosing_class}' not found",
                suggest(enclosing_class, index.class_names),
            )
        method = cls.method(target)
        if method is not None:
            return ResolutionResult(exists=True, span=method.span, confidence=Confidence.HIGH)
        return _not_found(
            f"Method '{target}' not found in class '{enclosing_class}'",
            suggest(target, cls.method_names),
        )

    @staticmethod
    def _resolve_add_method(index, kind, target, enclosing_class) -> ResolutionResult:
        if not enclosing_class:
            return _not_found(f"Method action '{kind.value}' requires a class name")
        cls = index.classes.get(enclosing_class)
        if cls is None:
            return _not_found(
                f"Class '{enclosing_class}' not found",
                suggest(enclosing_class, index.class_names),
            )
        end = cls.insert_span.end.offset
        # Brace-delimited bodies take the insertion inside the closing brace.
        if end > 0 and index.source[end - 1:end] == b"}":
            end -= 1
        suggestions = []
        if target and cls.method(target) is not None:
            suggestions.append(
                f"Method '{target}' already exists in class '{enclosing_class}'"
            )
        return ResolutionResult(
            exists=True,
            span=Span.point(position_at(index.source, end)),
            confidence=Confidence.HIGH,
            suggestions=suggestions,
        )

    @staticmethod
    def _resolve_add_import(index, kind, target, enclosing_class) -> ResolutionResult:
        suggestions = []
        if target:
            suggestions = [
                f"Import '{name}' already exists"
                for name in index.import_names
                if target in name or name in target
            ]
        if index.imports:
            last = max(index.imports, key=lambda s: s.span.end.offset)
            eol = index.source.find(b"\n", last.span.end.offset)
            offset = len(index.source) if eol == -1 else eol
        else:
            offset = 0
        return ResolutionResult(
            exists=True,
            span=Span.point(position_at(index.source, offset)),
            confidence=Confidence.MEDIUM,
            suggestions=suggestions,
        )

    @staticmethod
    def _resolve_add_symbol(index, kind, target, enclosing_class) -> ResolutionResult:
        suggestions = []
        if target and index.function(target) is not None:
            suggestions.append(f"'{target}' already exists in this file")
        return ResolutionResult(
            exists=True,
            span=Span.point(position_at(index.source, len(index.source))),
            confidence=Confidence.MEDIUM,
            suggestions=suggestions,
        )

    # ------------------------------------------------------------------
    # Textual targets
    # ------------------------------------------------------------------

    @staticmethod
    def _resolve_block(index, kind, target, enclosing_class) -> ResolutionResult:
        wanted = normalize_ws(target)
        if not wanted:
            return _not_found("Empty block target", confidence=Confidence.MEDIUM)
        root = index.tree.root if index.tree is not None else None
        best = _smallest_containing(root, wanted) if root is not None else None

        if best is None:
            return _not_found(
                "Code block not found",
                _lines_containing_first_line(index.text, target),
                confidence=Confidence.MEDIUM,
            )
        if best.byte_length > oversized_limit(target):
            logger.debug(
                "[Resolve] Block match of %d bytes exceeds limit %d",
                best.byte_length, oversized_limit(target),
            )
            return _not_found(
                "Code block match is too large to be unambiguous",
                _lines_containing_first_line(index.text, target),
                error=ErrorKind.AMBIGUOUS_OR_OVERSIZED_MATCH,
                confidence=Confidence.MEDIUM,
            )
        hits = _occurrences(index.source, best.start_byte, best.end_byte, wanted)
        if len(hits) > 1:
            return _not_found(
                f"Code block occurs {len(hits)} times in the matched region",
                _lines_containing_first_line(index.text, target),
                error=ErrorKind.AMBIGUOUS_OR_OVERSIZED_MATCH,
                confidence=Confidence.MEDIUM,
            )
        if not hits:
            return ResolutionResult(exists=True, span=best.span(), confidence=Confidence.MEDIUM)
        # Narrow to the target's own text within the matched node.
        lo, hi = hits[0]
        return ResolutionResult(
            exists=True,
            span=Span(position_at(index.source, lo), position_at(index.source, hi)),
            confidence=Confidence.MEDIUM,
        )

    @staticmethod
    def _resolve_line(index, kind, target, enclosing_class) -> ResolutionResult:
        wanted = normalize_ws(target)
        if not wanted:
            return _not_found("Empty line target", confidence=Confidence.MEDIUM)

        source = index.source
        matches: list[tuple[int, int, str]] = []
        stripped_lines: list[str] = []
        start = 0
        for raw in source.split(b"\n"):
            end = start + len(raw)
            content_end = end - 1 if raw.endswith(b"\r") else end
            line = raw.decode("utf-8", errors="replace")
            if line.strip():
                stripped_lines.append(line.strip())
            if wanted in normalize_ws(line):
                matches.append((start, content_end, line.strip()))
            start = end + 1

        if len(matches) == 1:
            lo, hi, _ = matches[0]
            return ResolutionResult(
                exists=True,
                span=Span(position_at(source, lo), position_at(source, hi)),
                confidence=Confidence.MEDIUM,
            )
        if matches:
            return _not_found(
                f"Line target matches {len(matches)} lines",
                [text for _, _, text in matches[:_MAX_LINE_SUGGESTIONS]],
                error=ErrorKind.AMBIGUOUS_OR_OVERSIZED_MATCH,
                confidence=Confidence.MEDIUM,
            )
        return _not_found(
            "Line not found",
            suggest(target.strip(), stripped_lines),
            confidence=Confidence.MEDIUM,
        )


def _smallest_containing(root: SyntaxNode, wanted: str) -> Optional[SyntaxNode]:
    """Smallest node whose normalised text contains *wanted*, earliest on ties."""
    if wanted not in normalize_ws(root.text()):
        return None
    best = root
    stack = [root]
    while stack:
        node = stack.pop()
        for child in node.children():
            if wanted not in normalize_ws(child.text()):
                continue
            if (child.byte_length, child.start_byte) < (best.byte_length, best.start_byte):
                best = child
            stack.append(child)
    return best


def _occurrences(source: bytes, lo: int, hi: int, wanted: str) -> list[tuple[int, int]]:
    """Byte ranges in ``source[lo:hi]`` whose text normalises to *wanted*."""
    pattern = re.compile(
        rb"\s+".join(re.escape(tok.encode("utf-8")) for tok in wanted.split(" "))
    )
    return [(lo + m.start(), lo + m.end()) for m in pattern.finditer(source, lo, hi)]


def _lines_containing_first_line(text: str, target: str) -> list[str]:
    first = next((ln.strip() for ln in target.splitlines() if ln.strip()), "")
    if not first:
        return []
    found = []
    for line in text.splitlines():
        if first in line:
            found.append(line.strip())
            if len(found) >= _MAX_LINE_SUGGESTIONS:
                break
    return found
