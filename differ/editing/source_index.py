"""
Source index — builds a :class:`FileIndex` of functions, classes (with
their methods) and imports for one text snapshot.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Iterable, Optional

from ..grammar.host import Capture, GrammarHost, ParsedTree, ParseFailure, SyntaxNode
from ..spans import Span
from .models import ClassInfo, FileIndex, SymbolInfo

logger = logging.getLogger(__name__)


class SourceIndex:
    """Build structural indices through a shared :class:`GrammarHost`."""

    def __init__(self, host: GrammarHost) -> None:
        self._host = host

    @property
    def host(self) -> GrammarHost:
        return self._host

    def detect_language(self, file_path: str) -> Optional[str]:
        return self._host.registry.detect_language(file_path)

    def build(self, text: str, language_id: str) -> FileIndex:
        """Parse *text* and index it. Parse failures yield ``parse_ok=False``."""
        source = text.encode("utf-8")
        outcome = self._host.parse(source, language_id)
        if isinstance(outcome, ParseFailure):
            logger.debug("[Index] %s parse failed: %s", language_id, outcome.reason)
            return FileIndex(
                language=language_id,
                text=text,
                source=source,
                parse_ok=False,
                parse_error=outcome.reason,
            )

        class_caps = _collapse(self._host.query(outcome, "classes"))
        class_spans = [c.span for c in class_caps]

        function_caps = _collapse(self._host.query(outcome, "functions"))
        functions = _last_wins(
            SymbolInfo(c.name, c.span)
            for c in function_caps
            if not any(cs.contains(c.span) for cs in class_spans)
            and not _nested(c, function_caps)
        )
        imports = _last_wins(
            SymbolInfo(c.name, c.span)
            for c in _collapse(self._host.query(outcome, "imports"))
        )

        classes = _merge_impl_blocks(
            (cap, ClassInfo(cap.name, cap.span,
                            methods=self._methods_of(outcome, cap, class_spans)))
            for cap in class_caps
        )

        index = FileIndex(
            language=language_id,
            text=text,
            source=source,
            functions=functions,
            classes=MappingProxyType({c.name: c for c in _last_wins(classes)}),
            imports=imports,
            tree=outcome,
        )
        logger.debug(
            "[Index] %s: %d functions, %d classes, %d imports",
            language_id, len(index.functions), len(index.classes), len(index.imports),
        )
        return index

    def build_file(self, file_path: str, text: Optional[str] = None) -> FileIndex:
        """Index *file_path*, detecting the language from its extension.

        When *text* is omitted the file is read from disk.
        """
        if text is None:
            with open(file_path, "r", encoding="utf-8") as f:
                text = f.read()
        language = self.detect_language(file_path)
        if language is None:
            return FileIndex(
                language="",
                text=text,
                source=text.encode("utf-8"),
                parse_ok=False,
                parse_error=f"Unsupported file type: {file_path}",
            )
        return self.build(text, language)

    def _methods_of(
        self,
        tree: ParsedTree,
        owner: Capture,
        class_spans: list[Span],
    ) -> tuple[SymbolInfo, ...]:
        owner_span = owner.span
        kept = []
        for cap in _collapse(self._host.query(tree, "methods", within=owner.node)):
            span = cap.span
            if not owner_span.contains(span):
                continue
            # Methods of a nested class belong to that class only.
            if _innermost(span, class_spans) != owner_span:
                continue
            kept.append(SymbolInfo(cap.name, span))
        return _last_wins(kept)


def _collapse(captures: list[Capture]) -> list[Capture]:
    """Drop captures nested in a same-named capture (``export function f``)."""
    kept: list[Capture] = []
    for cap in captures:
        span = cap.span
        if any(k.name == cap.name and k.span.contains(span) for k in kept):
            continue
        kept.append(cap)
    return kept


def _last_wins(symbols: Iterable[SymbolInfo]) -> tuple:
    by_name: dict[str, SymbolInfo] = {}
    for sym in symbols:
        by_name.pop(sym.name, None)
        by_name[sym.name] = sym
    return tuple(sorted(by_name.values(), key=lambda s: s.span.start.offset))


def _innermost(span: Span, candidates: list[Span]) -> Optional[Span]:
    best: Optional[Span] = None
    for cand in candidates:
        if cand.contains(span) and (best is None or cand.length < best.length):
            best = cand
    return best


def _nested(cap: Capture, others: list[Capture]) -> bool:
    """True when *cap* sits inside another function's definition."""
    span = cap.span
    return any(o is not cap and o.span != span and o.span.contains(span) for o in others)


def _merge_impl_blocks(entries: Iterable[tuple[Capture, ClassInfo]]) -> list[ClassInfo]:
    """Fold Rust ``impl`` blocks of one type into a single class.

    The merged span runs from the first block to the last so it contains
    every method; new methods go into the inherent impl when there is one.
    Other class kinds pass through unchanged.
    """
    merged: list = []
    groups: dict[str, list[tuple[Capture, ClassInfo]]] = {}
    for cap, info in entries:
        if cap.node.kind != "impl_item":
            merged.append(info)
            continue
        group = groups.get(info.name)
        if group is None:
            group = groups[info.name] = []
            merged.append(group)
        group.append((cap, info))

    result = []
    for item in merged:
        if isinstance(item, ClassInfo):
            result.append(item)
        elif len(item) == 1:
            result.append(item[0][1])
        else:
            result.append(_join_impls(item))
    return result


def _join_impls(group: list[tuple[Capture, ClassInfo]]) -> ClassInfo:
    infos = [info for _, info in group]
    inherent = next(
        (info for cap, info in group if not _is_trait_impl(cap.node)),
        infos[0],
    )
    return ClassInfo(
        infos[0].name,
        Span(
            min((i.span.start for i in infos), key=lambda p: p.offset),
            max((i.span.end for i in infos), key=lambda p: p.offset),
        ),
        methods=_last_wins(m for info in infos for m in info.methods),
        body_span=inherent.span,
    )


def _is_trait_impl(node: SyntaxNode) -> bool:
    # ``impl Trait for Type`` carries a ``for`` token; inherent impls do not.
    return any(child.kind == "for" for child in node.children())
