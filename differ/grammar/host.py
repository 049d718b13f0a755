"""
Grammar host — parses text with tree-sitter and runs the capture queries.

Uses the tree-sitter >= 0.25 API (``Query`` + ``QueryCursor``) with the
individual ``tree-sitter-<lang>`` grammar packages.  Languages and compiled
queries are loaded lazily, once, and cached per host; loading is guarded by
a lock so concurrent validation threads can share one host.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import tree_sitter as ts

from ..spans import Position, Span
from .registry import CAPTURE_KINDS, GrammarRegistry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Opaque node handle
# ---------------------------------------------------------------------------

class SyntaxNode:
    """Language-tagged wrapper around a tree-sitter node."""

    __slots__ = ("_node", "_language")

    def __init__(self, node: Any, language: str) -> None:
        self._node = node
        self._language = language

    @property
    def kind(self) -> str:
        return self._node.type

    @property
    def language(self) -> str:
        return self._language

    @property
    def start_byte(self) -> int:
        return self._node.start_byte

    @property
    def end_byte(self) -> int:
        return self._node.end_byte

    @property
    def byte_length(self) -> int:
        return self._node.end_byte - self._node.start_byte

    @property
    def has_error(self) -> bool:
        return self._node.has_error

    def text(self) -> str:
        raw = self._node.text
        return raw.decode("utf-8", errors="replace") if raw else ""

    def span(self) -> Span:
        n = self._node
        return Span(
            Position(n.start_point[0] + 1, n.start_point[1] + 1, n.start_byte),
            Position(n.end_point[0] + 1, n.end_point[1] + 1, n.end_byte),
        )

    def children(self) -> list["SyntaxNode"]:
        return [SyntaxNode(c, self._language) for c in self._node.children]

    def parent(self) -> Optional["SyntaxNode"]:
        p = self._node.parent
        return SyntaxNode(p, self._language) if p is not None else None

    def _key(self) -> tuple:
        return (self._language, self._node.type, self._node.start_byte, self._node.end_byte)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SyntaxNode):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        return (
            f"SyntaxNode({self._language}:{self.kind} "
            f"[{self.start_byte}, {self.end_byte}))"
        )


@dataclass(frozen=True)
class Capture:
    """A named match; ``node`` is the enclosing definition, not the identifier."""
    name: str
    node: SyntaxNode
    name_node: SyntaxNode

    @property
    def span(self) -> Span:
        return self.node.span()


@dataclass(frozen=True)
class ParsedTree:
    language: str
    source: bytes
    root: SyntaxNode
    raw: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class ParseFailure:
    language: str
    reason: str


ParseOutcome = Union[ParsedTree, ParseFailure]


# ---------------------------------------------------------------------------
# Host
# ---------------------------------------------------------------------------

class GrammarHost:
    """Parse and query source text for every language in a registry."""

    def __init__(
        self,
        registry: GrammarRegistry,
        tolerate_syntax_errors: bool = False,
    ) -> None:
        self._registry = registry
        self._tolerate_syntax_errors = tolerate_syntax_errors
        self._lock = threading.Lock()
        self._languages: dict[str, Optional[ts.Language]] = {}
        self._load_errors: dict[str, str] = {}
        self._queries: dict[tuple[str, str], list[ts.Query]] = {}

    @property
    def registry(self) -> GrammarRegistry:
        return self._registry

    def supports(self, language_id: str) -> bool:
        """True if *language_id* is registered and its grammar loads."""
        return self._language(language_id) is not None

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse(self, text: Union[str, bytes], language_id: str) -> ParseOutcome:
        """Parse *text*; never raises for bad input or unavailable grammars."""
        lang_obj = self._language(language_id)
        if lang_obj is None:
            reason = self._load_errors.get(
                language_id, f"Unsupported language: {language_id!r}",
            )
            return ParseFailure(language_id, reason)

        source = text.encode("utf-8") if isinstance(text, str) else text
        try:
            tree = ts.Parser(lang_obj).parse(source)
        except Exception as exc:
            logger.warning("[Grammar] %s parse raised: %s", language_id, exc)
            return ParseFailure(language_id, f"Parse error: {exc}")

        root = tree.root_node
        if root.has_error and not self._tolerate_syntax_errors:
            line = _first_error_line(root)
            return ParseFailure(
                language_id,
                f"Syntax error near line {line}" if line else "Syntax error",
            )
        return ParsedTree(
            language=language_id,
            source=source,
            root=SyntaxNode(root, language_id),
            raw=tree,
        )

    # ------------------------------------------------------------------
    # Querying
    # ------------------------------------------------------------------

    def query(
        self,
        tree: ParsedTree,
        capture_kind: str,
        within: Optional[SyntaxNode] = None,
    ) -> list[Capture]:
        """Run the *capture_kind* query, optionally restricted to one node.

        Returns captures in document order.  Restricted queries only report
        definitions lying wholly inside ``within``.
        """
        if capture_kind not in CAPTURE_KINDS:
            raise ValueError(f"Unknown capture kind: {capture_kind!r}")

        scope = within._node if within is not None else tree.root._node
        captures: list[Capture] = []
        seen: set[tuple[int, int, str]] = set()
        for query in self._compiled(tree.language, capture_kind):
            for _pattern_idx, caps in ts.QueryCursor(query).matches(scope):
                name_nodes = caps.get("name")
                if not name_nodes:
                    continue
                name_node = name_nodes[0]
                def_nodes = caps.get("definition")
                def_node = def_nodes[0] if def_nodes else (name_node.parent or name_node)
                if within is not None and not (
                    def_node.start_byte >= within.start_byte
                    and def_node.end_byte <= within.end_byte
                ):
                    continue
                name = _node_text(name_node).strip("\"'<> ")
                if not name:
                    continue
                key = (def_node.start_byte, def_node.end_byte, name)
                if key in seen:
                    continue
                seen.add(key)
                captures.append(Capture(
                    name=name,
                    node=SyntaxNode(def_node, tree.language),
                    name_node=SyntaxNode(name_node, tree.language),
                ))

        captures.sort(key=lambda c: (c.node.start_byte, -c.node.end_byte))
        return captures

    # ------------------------------------------------------------------
    # Lazy loading
    # ------------------------------------------------------------------

    def _language(self, language_id: str) -> Optional[ts.Language]:
        if language_id in self._languages:
            return self._languages[language_id]
        with self._lock:
            if language_id in self._languages:
                return self._languages[language_id]
            spec = self._registry.find(language_id)
            lang_obj = None
            if spec is None:
                self._load_errors[language_id] = f"Unsupported language: {language_id!r}"
            else:
                try:
                    lang_obj = ts.Language(spec.loader())
                except ImportError as exc:
                    self._load_errors[language_id] = (
                        f"Grammar package for {language_id!r} is not installed: {exc}"
                    )
                    logger.warning("[Grammar] %s", self._load_errors[language_id])
                except Exception as exc:
                    self._load_errors[language_id] = (
                        f"Cannot load grammar for {language_id!r}: {exc}"
                    )
                    logger.warning("[Grammar] %s", self._load_errors[language_id])
            self._languages[language_id] = lang_obj
            return lang_obj

    def _compiled(self, language_id: str, capture_kind: str) -> list[ts.Query]:
        key = (language_id, capture_kind)
        cached = self._queries.get(key)
        if cached is not None:
            return cached
        lang_obj = self._language(language_id)
        spec = self._registry.find(language_id)
        if lang_obj is None or spec is None:
            return []
        with self._lock:
            if key in self._queries:
                return self._queries[key]
            source = spec.query_for(capture_kind)
            compiled: list[ts.Query] = []
            for pattern in (p.strip() for p in source.strip().split("\n\n")):
                if not pattern:
                    continue
                try:
                    compiled.append(ts.Query(lang_obj, pattern))
                except Exception as exc:
                    # Grammar versions differ; a rejected pattern only disables itself.
                    logger.debug(
                        "[Grammar] Skipping %s/%s pattern: %s",
                        language_id, capture_kind, exc,
                    )
            self._queries[key] = compiled
            return compiled


def _node_text(node: Any) -> str:
    return node.text.decode("utf-8", errors="replace") if node.text else ""


def _first_error_line(root: Any) -> int:
    """1-based line of the first ERROR or MISSING node, or 0."""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node.start_point[0] + 1
        if node.has_error:
            stack.extend(reversed(node.children))
    return 0
