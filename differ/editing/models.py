"""
Data model shared by the index, resolver, patcher and validator.

All positions refer to one immutable text snapshot.  Offsets are UTF-8 byte
offsets into that snapshot, lines and columns are 1-based.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from ..spans import Position, Span, position_at
from .errors import ErrorKind


class ActionKind(str, Enum):
    """The closed set of edit actions a change request may ask for."""
    CREATE_FILE = "create_file"
    ADD_IMPORT = "add_import"
    ADD_FUNCTION = "add_function"
    REPLACE_FUNCTION = "replace_function"
    DELETE_FUNCTION = "delete_function"
    ADD_STRUCT = "add_struct"
    ADD_ENUM = "add_enum"
    REPLACE_BLOCK = "replace_block"
    INSERT_AFTER = "insert_after"
    INSERT_BEFORE = "insert_before"
    MODIFY_LINE = "modify_line"
    ADD_METHOD = "add_method"
    REPLACE_METHOD = "replace_method"

    @classmethod
    def coerce(cls, value: Any) -> Optional["ActionKind"]:
        """Return the matching member, or None for anything unrecognised."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


METHOD_ACTIONS = frozenset({ActionKind.ADD_METHOD, ActionKind.REPLACE_METHOD})
BLOCK_ACTIONS = frozenset({
    ActionKind.REPLACE_BLOCK, ActionKind.INSERT_AFTER, ActionKind.INSERT_BEFORE,
})
ADD_SYMBOL_ACTIONS = frozenset({
    ActionKind.ADD_FUNCTION, ActionKind.ADD_STRUCT, ActionKind.ADD_ENUM,
})
# Actions that may target a file which does not exist yet.
CREATING_ACTIONS = frozenset({
    ActionKind.CREATE_FILE, ActionKind.ADD_IMPORT, ActionKind.ADD_METHOD,
    *ADD_SYMBOL_ACTIONS,
})


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class SymbolInfo:
    """A located function, method, import or block."""
    name: str
    span: Span


@dataclass(frozen=True)
class ClassInfo(SymbolInfo):
    methods: tuple[SymbolInfo, ...] = ()
    # Block new methods go into when the class is split over several blocks
    # (Rust impls); otherwise the class span itself.
    body_span: Optional[Span] = None

    @property
    def insert_span(self) -> Span:
        return self.body_span or self.span

    def method(self, name: str) -> Optional[SymbolInfo]:
        for m in self.methods:
            if m.name == name:
                return m
        return None

    @property
    def method_names(self) -> list[str]:
        return [m.name for m in self.methods]


@dataclass(frozen=True)
class FileIndex:
    """Structural index of one file snapshot. Never reused against changed text."""
    language: str
    text: str
    source: bytes
    functions: tuple[SymbolInfo, ...] = ()
    classes: Mapping[str, ClassInfo] = field(default_factory=lambda: MappingProxyType({}))
    imports: tuple[SymbolInfo, ...] = ()
    parse_ok: bool = True
    parse_error: Optional[str] = None
    tree: Any = field(default=None, repr=False, compare=False)

    def function(self, name: str) -> Optional[SymbolInfo]:
        for fn in self.functions:
            if fn.name == name:
                return fn
        return None

    @property
    def function_names(self) -> list[str]:
        return [fn.name for fn in self.functions]

    @property
    def class_names(self) -> list[str]:
        return list(self.classes)

    @property
    def import_names(self) -> list[str]:
        return [imp.name for imp in self.imports]

    def as_dict(self) -> dict:
        def _sym(s: SymbolInfo) -> dict:
            return {
                "name": s.name,
                "start": [s.span.start.line, s.span.start.column, s.span.start.offset],
                "end": [s.span.end.line, s.span.end.column, s.span.end.offset],
            }

        return {
            "language": self.language,
            "parse_ok": self.parse_ok,
            "parse_error": self.parse_error,
            "functions": [_sym(f) for f in self.functions],
            "classes": {
                name: dict(_sym(c), methods=[_sym(m) for m in c.methods])
                for name, c in self.classes.items()
            },
            "imports": [_sym(i) for i in self.imports],
        }


@dataclass(frozen=True)
class ChangeRequest:
    """One requested edit, addressed by name rather than by line."""
    file: str
    action: str
    target: str = ""
    code: str = ""
    enclosing_class: Optional[str] = None
    description: Optional[str] = None

    @property
    def action_kind(self) -> Optional[ActionKind]:
        return ActionKind.coerce(self.action)


@dataclass(frozen=True)
class ResolvedEdit:
    """A change request pinned to a concrete span of one snapshot."""
    file: str
    span: Span
    replacement: str
    action: ActionKind
    request_index: int = 0


@dataclass
class ResolutionResult:
    """Outcome of resolving one target against a FileIndex."""
    exists: bool
    span: Optional[Span] = None
    confidence: Confidence = Confidence.HIGH
    suggestions: list[str] = field(default_factory=list)
    reason: Optional[str] = None
    error: Optional[ErrorKind] = None
