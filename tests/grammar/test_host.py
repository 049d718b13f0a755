"""
Tests for differ.grammar.host

Parses inline sources with the real tree-sitter grammars and checks the
parse/query surface the index is built on.
"""

from __future__ import annotations

import textwrap

import pytest

from differ.grammar.host import GrammarHost, ParsedTree, ParseFailure, SyntaxNode
from differ.grammar.registry import LanguageSpec, default_registry


PY_SOURCE = textwrap.dedent("""\
    import os


    class Greeter:
        def hello(self):
            return "hi"


    def plain():
        return 1


    @decorator
    def wrapped():
        return 2
""")


class TestParse:
    def test_parse_python(self, host):
        tree = host.parse(PY_SOURCE, "python")
        assert isinstance(tree, ParsedTree)
        assert tree.language == "python"
        assert tree.root.kind == "module"
        assert tree.source == PY_SOURCE.encode("utf-8")
        assert not tree.root.has_error

    def test_parse_accepts_bytes(self, host):
        tree = host.parse(b"let x = 1;\n", "javascript")
        assert isinstance(tree, ParsedTree)
        assert tree.root.kind == "program"

    def test_unknown_language_is_failure_not_exception(self, host):
        outcome = host.parse("x", "cobol")
        assert isinstance(outcome, ParseFailure)
        assert "cobol" in outcome.reason

    def test_syntax_error_is_failure(self, host):
        outcome = host.parse("def broken(:\n    pass\n", "python")
        assert isinstance(outcome, ParseFailure)
        assert "Syntax error" in outcome.reason

    def test_syntax_error_tolerated_when_configured(self, registry):
        tolerant = GrammarHost(registry, tolerate_syntax_errors=True)
        outcome = tolerant.parse("def broken(:\n    pass\n", "python")
        assert isinstance(outcome, ParsedTree)
        assert outcome.root.has_error

    def test_missing_grammar_package_is_failure(self):
        def _missing():
            raise ImportError("No module named 'tree_sitter_cobol'")

        spec = LanguageSpec.from_queries("cobol", _missing, [".cob"], {})
        host = GrammarHost(default_registry().with_language(spec))
        outcome = host.parse("IDENTIFICATION DIVISION.", "cobol")
        assert isinstance(outcome, ParseFailure)
        assert "not installed" in outcome.reason
        assert host.supports("cobol") is False

    def test_supports(self, host):
        assert host.supports("python")
        assert host.supports("rust")
        assert not host.supports("cobol")


class TestSyntaxNode:
    def test_span_is_one_based(self, host):
        tree = host.parse("x = 1\ny = 2\n", "python")
        second = tree.root.children()[1]
        span = second.span()
        assert second.text() == "y = 2"
        assert (span.start.line, span.start.column, span.start.offset) == (2, 1, 6)
        assert (span.end.line, span.end.column, span.end.offset) == (2, 6, 11)

    def test_parent_and_children(self, host):
        tree = host.parse("x = 1\n", "python")
        child = tree.root.children()[0]
        assert child.parent() == tree.root
        assert tree.root.parent() is None
        assert child.language == "python"

    def test_equality_by_kind_and_range(self, host):
        tree = host.parse("x = 1\n", "python")
        a = tree.root.children()[0]
        b = tree.root.children()[0]
        assert a == b
        assert hash(a) == hash(b)
        assert isinstance(a, SyntaxNode)


class TestQuery:
    def test_functions_capture_definition_span(self, host):
        tree = host.parse(PY_SOURCE, "python")
        caps = host.query(tree, "functions")
        names = [c.name for c in caps]
        assert "plain" in names
        assert "wrapped" in names
        assert "hello" in names  # methods are filtered later by the index

        plain = next(c for c in caps if c.name == "plain")
        assert plain.node.kind == "function_definition"
        assert plain.node.text().startswith("def plain():")
        assert plain.name_node.text() == "plain"

    def test_decorated_function_has_outer_capture(self, host):
        tree = host.parse(PY_SOURCE, "python")
        wrapped = [c for c in host.query(tree, "functions") if c.name == "wrapped"]
        kinds = {c.node.kind for c in wrapped}
        assert "decorated_definition" in kinds

    def test_captures_in_document_order(self, host):
        tree = host.parse(PY_SOURCE, "python")
        caps = host.query(tree, "functions")
        starts = [c.node.start_byte for c in caps]
        assert starts == sorted(starts)

    def test_methods_within_class(self, host):
        tree = host.parse(PY_SOURCE, "python")
        cls = host.query(tree, "classes")[0]
        assert cls.name == "Greeter"
        methods = host.query(tree, "methods", within=cls.node)
        assert [m.name for m in methods] == ["hello"]
        assert cls.span.contains(methods[0].span)

    def test_imports(self, host):
        tree = host.parse(PY_SOURCE, "python")
        assert [c.name for c in host.query(tree, "imports")] == ["os"]

    def test_unknown_capture_kind(self, host):
        tree = host.parse(PY_SOURCE, "python")
        with pytest.raises(ValueError):
            host.query(tree, "variables")

    def test_javascript_string_import_is_unquoted(self, host):
        tree = host.parse("import { readFile } from 'fs';\n", "javascript")
        names = {c.name for c in host.query(tree, "imports")}
        assert "fs" in names
        assert "readFile" in names

    def test_rust_impl_is_a_class(self, host):
        src = "struct Point;\nimpl Point {\n    fn origin() -> Self { Point }\n}\n"
        tree = host.parse(src, "rust")
        assert [c.name for c in host.query(tree, "classes")] == ["Point"]
        cls = host.query(tree, "classes")[0]
        assert [m.name for m in host.query(tree, "methods", within=cls.node)] == ["origin"]
