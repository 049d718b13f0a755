"""Tree-sitter grammars — language registry, query tables and the parse host."""

from .host import Capture, GrammarHost, ParsedTree, ParseFailure, SyntaxNode
from .registry import (
    CAPTURE_KINDS, GrammarRegistry, LanguageSpec, UnknownLanguageError,
    default_registry,
)

__all__ = [
    "Capture", "GrammarHost", "ParsedTree", "ParseFailure", "SyntaxNode",
    "CAPTURE_KINDS", "GrammarRegistry", "LanguageSpec", "UnknownLanguageError",
    "default_registry",
]
