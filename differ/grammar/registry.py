"""
Grammar registry — the immutable table of supported languages.

A registry is built once at startup (usually with :func:`default_registry`)
and handed by reference to the :class:`~differ.grammar.host.GrammarHost`.
Supporting a new language means adding one :class:`LanguageSpec`: a grammar
loader plus the four query strings.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Iterable, Optional

from .queries import QUERIES

CAPTURE_KINDS: tuple[str, ...] = ("functions", "classes", "imports", "methods")


class UnknownLanguageError(LookupError):
    """Raised when a language id has no registered grammar at all."""


@dataclass(frozen=True)
class LanguageSpec:
    """Everything needed to parse and query one language."""
    language_id: str
    loader: Callable[[], object]   # returns the raw tree-sitter language pointer
    extensions: tuple[str, ...]
    functions_query: str
    classes_query: str
    imports_query: str
    methods_query: str

    def query_for(self, capture_kind: str) -> str:
        if capture_kind not in CAPTURE_KINDS:
            raise ValueError(f"Unknown capture kind: {capture_kind!r}")
        return getattr(self, f"{capture_kind}_query")

    @classmethod
    def from_queries(
        cls,
        language_id: str,
        loader: Callable[[], object],
        extensions: Iterable[str],
        queries: dict[str, str],
    ) -> "LanguageSpec":
        return cls(
            language_id=language_id,
            loader=loader,
            extensions=tuple(ext.lower() for ext in extensions),
            functions_query=queries.get("functions", ""),
            classes_query=queries.get("classes", ""),
            imports_query=queries.get("imports", ""),
            methods_query=queries.get("methods", ""),
        )


class GrammarRegistry:
    """Read-only mapping of language id → :class:`LanguageSpec`."""

    def __init__(self, specs: Iterable[LanguageSpec]) -> None:
        by_id: dict[str, LanguageSpec] = {}
        by_ext: dict[str, str] = {}
        for spec in specs:
            by_id[spec.language_id] = spec
            for ext in spec.extensions:
                by_ext[ext] = spec.language_id
        self._specs = MappingProxyType(by_id)
        self._extensions = MappingProxyType(by_ext)

    def get(self, language_id: str) -> LanguageSpec:
        spec = self._specs.get(language_id)
        if spec is None:
            raise UnknownLanguageError(
                f"No grammar registered for language {language_id!r} "
                f"(known: {', '.join(sorted(self._specs)) or 'none'})"
            )
        return spec

    def find(self, language_id: str) -> Optional[LanguageSpec]:
        return self._specs.get(language_id)

    def detect_language(self, file_path: str) -> Optional[str]:
        """Return the language id for *file_path* by extension, or None."""
        ext = os.path.splitext(file_path)[1].lower()
        return self._extensions.get(ext)

    def with_language(self, spec: LanguageSpec) -> "GrammarRegistry":
        """Return a new registry with *spec* added (or replaced)."""
        specs = dict(self._specs)
        specs[spec.language_id] = spec
        return GrammarRegistry(specs.values())

    @property
    def languages(self) -> list[str]:
        return sorted(self._specs)

    def __contains__(self, language_id: object) -> bool:
        return language_id in self._specs

    def __len__(self) -> int:
        return len(self._specs)


# ---------------------------------------------------------------------------
# Grammar loaders. Imported lazily so a missing grammar package only
# disables its own language.
# ---------------------------------------------------------------------------

def _load_python():
    import tree_sitter_python
    return tree_sitter_python.language()


def _load_javascript():
    import tree_sitter_javascript
    return tree_sitter_javascript.language()


def _load_typescript():
    import tree_sitter_typescript
    return tree_sitter_typescript.language_typescript()


def _load_tsx():
    import tree_sitter_typescript
    return tree_sitter_typescript.language_tsx()


def _load_rust():
    import tree_sitter_rust
    return tree_sitter_rust.language()


def _load_java():
    import tree_sitter_java
    return tree_sitter_java.language()


_BUILTIN: tuple[tuple[str, Callable[[], object], tuple[str, ...]], ...] = (
    ("python", _load_python, (".py", ".pyi")),
    ("javascript", _load_javascript, (".js", ".mjs", ".cjs", ".jsx")),
    ("typescript", _load_typescript, (".ts", ".mts", ".cts")),
    ("tsx", _load_tsx, (".tsx",)),
    ("rust", _load_rust, (".rs",)),
    ("java", _load_java, (".java",)),
)


def default_registry() -> GrammarRegistry:
    """Build the registry of every language shipped with differ."""
    return GrammarRegistry(
        LanguageSpec.from_queries(lang, loader, exts, QUERIES[lang])
        for lang, loader, exts in _BUILTIN
    )
