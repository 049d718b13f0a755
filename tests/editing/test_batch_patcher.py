"""Tests for the BatchPatcher: planning, folding and file-level failures."""

from __future__ import annotations

import textwrap

import pytest

from differ.editing.batch_patcher import BatchPatcher, PatchResult
from differ.editing.errors import (
    CreateFileConflict,
    ErrorKind,
    OverlappingEditsInFile,
    SnapshotMismatch,
    TargetNotFound,
    UnsupportedAction,
)
from differ.editing.models import ActionKind, ChangeRequest, ResolvedEdit
from differ.spans import Span, position_at


PY_SOURCE = textwrap.dedent("""\
    import os
    import sys


    def compute(a, b):
        total = a + b
        return total * 2


    def helper():
        return 42
""")


def _edit(text: str, start: int, end: int, replacement: str,
          action=ActionKind.REPLACE_BLOCK, index: int = 0) -> ResolvedEdit:
    source = text.encode("utf-8")
    return ResolvedEdit(
        file="f.txt",
        span=Span(position_at(source, start), position_at(source, end)),
        replacement=replacement,
        action=action,
        request_index=index,
    )


def _splice(text: str, start: int, end: int, replacement: str) -> str:
    data = text.encode("utf-8")
    return (data[:start] + replacement.encode("utf-8") + data[end:]).decode("utf-8")


class TestApplyFold:
    def test_order_invariance(self, patcher):
        text = "".join(chr(ord("a") + i % 26) for i in range(200))
        raw = [(10, 20, "ONE"), (50, 50, "+insert+"), (60, 65, ""), (150, 199, "TAIL")]
        edits = [_edit(text, s, e, r, index=i) for i, (s, e, r) in enumerate(raw)]

        folded = patcher.apply(text, list(reversed(edits)))

        # One at a time, lowest first, shifting later offsets by hand.
        expected, shift = text, 0
        for s, e, r in raw:
            expected = _splice(expected, s + shift, e + shift, r)
            shift += len(r) - (e - s)
        assert folded == expected

    def test_scenario_b_replace_and_insertion_point(self, patcher):
        text = "x" * 500
        replace = _edit(text, 100, 160, "REPLACED", index=0)
        insert = _edit(text, 400, 400, "  added() {}\n", action=ActionKind.ADD_METHOD, index=1)

        result = patcher.apply(text, [replace, insert])

        manual = _splice(text, 400, 400, "  added() {}\n")
        manual = _splice(manual, 100, 160, "REPLACED")
        assert result == manual

    def test_same_point_keeps_request_order(self, patcher):
        text = "abc"
        edits = [_edit(text, 1, 1, "1", index=0), _edit(text, 1, 1, "2", index=1)]
        assert patcher.apply(text, edits) == "a12bc"

    def test_overlapping_spans_rejected(self, patcher):
        text = "0123456789"
        edits = [_edit(text, 2, 6, "x", index=0), _edit(text, 5, 8, "y", index=1)]
        with pytest.raises(OverlappingEditsInFile):
            patcher.apply(text, edits)

    def test_point_inside_span_rejected(self, patcher):
        text = "0123456789"
        edits = [_edit(text, 2, 6, "x", index=0), _edit(text, 4, 4, "y", index=1)]
        with pytest.raises(OverlappingEditsInFile):
            patcher.apply(text, edits)

    def test_adjacent_spans_allowed(self, patcher):
        text = "0123456789"
        edits = [_edit(text, 2, 4, "A"), _edit(text, 4, 6, "B", index=1)]
        assert patcher.apply(text, edits) == "01AB6789"

    def test_out_of_bounds_is_snapshot_mismatch(self, patcher):
        source = b"short"
        edit = ResolvedEdit(
            file="f.txt",
            span=Span(position_at(source, 2), position_at(b"much longer text", 12)),
            replacement="x",
            action=ActionKind.REPLACE_BLOCK,
        )
        with pytest.raises(SnapshotMismatch):
            patcher.apply("short", [edit])

    def test_unknown_action_rejected(self, patcher):
        edit = _edit("abc", 0, 1, "x", action="rename_symbol")
        with pytest.raises(UnsupportedAction):
            patcher.apply("abc", [edit])

    def test_create_file_alone_replaces_content(self, patcher):
        edit = _edit("old", 0, 3, "brand new\n", action=ActionKind.CREATE_FILE)
        assert patcher.apply("old", [edit]) == "brand new\n"

    def test_create_file_mixed_rejected(self, patcher):
        edits = [
            _edit("old", 0, 3, "new", action=ActionKind.CREATE_FILE),
            _edit("old", 0, 0, "import x\n", action=ActionKind.ADD_IMPORT, index=1),
        ]
        with pytest.raises(CreateFileConflict):
            patcher.apply("old", edits)

    def test_multibyte_offsets(self, patcher):
        text = "é = 1\nb = 2\n"
        start = len("é = 1\n".encode("utf-8"))
        edit = _edit(text, start, start + 5, "b = 3")
        assert patcher.apply(text, [edit]) == "é = 1\nb = 3\n"


class TestScenarios:
    def test_scenario_a_replace_function_is_byte_exact(self, patcher, source_index):
        src = textwrap.dedent("""\
            // Authentication helpers for the login page.
            const MAX_ATTEMPTS = 5;

            function loginUser(name, password) {
              return check(name, password);
            }

            function logoutUser(name) {
              return clear(name);
            }
        """)
        index = source_index.build(src, "javascript")
        span = index.function("loginUser").span
        new_body = "function loginUser(name, password) {\n  return throttle(check(name, password));\n}"

        result = patcher.patch_file(
            "auth.js", src,
            [ChangeRequest("auth.js", "replace_function", "loginUser", new_body)],
        )

        assert result.success
        before = src.encode("utf-8")
        after = result.content.encode("utf-8")
        lo, hi = span.start.offset, span.end.offset
        assert after[:lo] == before[:lo]
        assert after[lo:lo + len(new_body)] == new_body.encode("utf-8")
        assert after[lo + len(new_body):] == before[hi:]

    def test_scenario_c_create_file_with_add_import(self, patcher):
        requests = [
            ChangeRequest("new.py", "create_file", "", "print('hi')\n"),
            ChangeRequest("new.py", "add_import", "os", "import os"),
        ]
        with pytest.raises(CreateFileConflict):
            patcher.plan("new.py", "existing = True\n", requests)

        result = patcher.patch_file("new.py", "existing = True\n", requests)
        assert result.success is False
        assert result.content is None
        assert result.error.kind is ErrorKind.CREATE_FILE_CONFLICT
        assert result.error.request_index == 0

    def test_empty_class_add_method(self, patcher, source_index):
        prefix = "const before = 1;\n"
        src = prefix + "class Empty {}\n"
        result = patcher.patch_file(
            "e.js", src,
            [ChangeRequest("e.js", "add_method", "hello", "\n  hello() {}\n", enclosing_class="Empty")],
        )
        assert result.success
        assert result.content == prefix + "class Empty {\n  hello() {}\n}\n"
        assert source_index.build(src, "javascript").classes["Empty"].methods == ()


class TestPlanAndPatch:
    def test_replace_function(self, patcher):
        new = "def compute(a, b):\n    return (a + b) * 3"
        result = patcher.patch_file(
            "m.py", PY_SOURCE, [ChangeRequest("m.py", "replace_function", "compute", new)],
        )
        assert result.success
        assert result.edits_applied == 1
        assert new in result.content
        assert "total = a + b" not in result.content
        assert "def helper():" in result.content

    def test_delete_function(self, patcher):
        result = patcher.patch_file(
            "m.py", PY_SOURCE, [ChangeRequest("m.py", "delete_function", "helper", "")],
        )
        assert result.success
        assert "def helper" not in result.content
        assert "def compute" in result.content

    def test_insert_after_and_before(self, patcher):
        requests = [
            ChangeRequest("m.py", "insert_after", "total = a + b", "    total += 1"),
            ChangeRequest("m.py", "insert_before", "total = a + b", "    print(a, b)"),
        ]
        result = patcher.patch_file("m.py", PY_SOURCE, requests)
        assert result.success
        assert (
            "    print(a, b)\n    total = a + b\n    total += 1\n    return total * 2"
            in result.content
        )

    def test_modify_line(self, patcher):
        result = patcher.patch_file(
            "m.py", PY_SOURCE,
            [ChangeRequest("m.py", "modify_line", "return 42", "    return 43\n")],
        )
        assert result.success
        assert "    return 43\n" in result.content
        assert "return 42" not in result.content

    def test_add_import_after_existing(self, patcher):
        result = patcher.patch_file(
            "m.py", PY_SOURCE, [ChangeRequest("m.py", "add_import", "json", "import json")],
        )
        assert result.success
        assert result.content.startswith("import os\nimport sys\nimport json\n\n\ndef compute")

    def test_add_import_to_file_without_imports(self, patcher):
        result = patcher.patch_file(
            "m.py", "def f():\n    pass\n",
            [ChangeRequest("m.py", "add_import", "json", "import json")],
        )
        assert result.content == "import json\ndef f():\n    pass\n"

    def test_add_function_appends(self, patcher):
        result = patcher.patch_file(
            "m.py", PY_SOURCE,
            [ChangeRequest("m.py", "add_function", "extra", "def extra():\n    return 0")],
        )
        assert result.success
        assert result.content == PY_SOURCE + "\ndef extra():\n    return 0\n"

    def test_add_method_python(self, patcher):
        src = "class A:\n    def a(self):\n        pass\n"
        result = patcher.patch_file(
            "a.py", src,
            [ChangeRequest("a.py", "add_method", "b", "\n\n    def b(self):\n        return 1",
                           enclosing_class="A")],
        )
        assert result.success
        assert result.content == (
            "class A:\n    def a(self):\n        pass\n\n    def b(self):\n        return 1\n"
        )

    def test_add_method_python_starts_on_its_own_line(self, patcher, source_index):
        src = "class A:\n    def a(self):\n        return 1\n"
        result = patcher.patch_file(
            "a.py", src,
            [ChangeRequest("a.py", "add_method", "b", "    def b(self):\n        return 2\n",
                           enclosing_class="A")],
        )
        assert result.success
        assert "        return 1\n    def b(self):\n        return 2\n" in result.content
        assert source_index.build(result.content, "python").classes["A"].method_names == ["a", "b"]

    def test_replace_block_inside_function_body(self, patcher):
        src = textwrap.dedent("""\
            function f() {
              const a = 1;
              const b = 2;
              const c = 3;
              return a + b + c;
            }
        """)
        result = patcher.patch_file(
            "f.js", src,
            [ChangeRequest("f.js", "replace_block", "const a = 1;\nconst b = 2;",
                           "const a = 10;\n  const b = 20;")],
        )
        assert result.success
        assert result.content == src.replace("= 1;", "= 10;").replace("= 2;", "= 20;")

    def test_replace_method(self, patcher):
        src = "class A {\n  a() { return 1; }\n  b() { return 2; }\n}\n"
        result = patcher.patch_file(
            "a.js", src,
            [ChangeRequest("a.js", "replace_method", "b", "b() { return 3; }", enclosing_class="A")],
        )
        assert result.content == "class A {\n  a() { return 1; }\n  b() { return 3; }\n}\n"

    def test_multiple_edits_fold_against_one_snapshot(self, patcher):
        requests = [
            ChangeRequest("m.py", "replace_function", "helper", "def helper():\n    return 0"),
            ChangeRequest("m.py", "add_import", "json", "import json"),
            ChangeRequest("m.py", "modify_line", "total = a + b", "    total = a - b"),
        ]
        result = patcher.patch_file("m.py", PY_SOURCE, requests)
        assert result.success
        assert result.edits_applied == 3
        assert "import json" in result.content
        assert "total = a - b" in result.content
        assert "return 0" in result.content

    def test_create_file(self, patcher):
        result = patcher.patch_file(
            "anything.txt", "", [ChangeRequest("anything.txt", "create_file", "", "hello\n")],
        )
        assert result.success
        assert result.content == "hello\n"


class TestFileLevelFailures:
    def test_target_not_found_fails_whole_file(self, patcher):
        requests = [
            ChangeRequest("m.py", "replace_function", "helper", "def helper():\n    return 0"),
            ChangeRequest("m.py", "replace_function", "compte", "def compute():\n    pass"),
        ]
        result = patcher.patch_file("m.py", PY_SOURCE, requests, indices=[4, 7])
        assert isinstance(result, PatchResult)
        assert result.success is False
        assert result.content is None
        assert result.error.kind is ErrorKind.TARGET_NOT_FOUND
        assert result.error.request_index == 7
        assert result.error.suggestions == ("compute",)

    def test_plan_raises_structured_error(self, patcher):
        with pytest.raises(TargetNotFound):
            patcher.plan("m.py", PY_SOURCE, [ChangeRequest("m.py", "delete_function", "nope")])

    def test_overlapping_requests(self, patcher):
        requests = [
            ChangeRequest("m.py", "replace_function", "compute", "def compute():\n    pass"),
            ChangeRequest("m.py", "modify_line", "total = a + b", "    total = 0"),
        ]
        result = patcher.patch_file("m.py", PY_SOURCE, requests)
        assert result.error.kind is ErrorKind.OVERLAPPING_EDITS_IN_FILE

    def test_unsupported_action(self, patcher):
        result = patcher.patch_file(
            "m.py", PY_SOURCE, [ChangeRequest("m.py", "rename_symbol", "compute", "calc")],
        )
        assert result.success is False
        assert result.error.kind is ErrorKind.UNSUPPORTED_ACTION

    def test_syntax_error_is_parse_failure(self, patcher):
        result = patcher.patch_file(
            "m.py", "def broken(:\n", [ChangeRequest("m.py", "add_function", "f", "def f(): pass")],
        )
        assert result.error.kind is ErrorKind.STRUCTURAL_PARSE_FAILURE

    def test_unknown_extension_is_parse_failure(self, patcher):
        result = patcher.patch_file(
            "notes.txt", "hello", [ChangeRequest("notes.txt", "modify_line", "hello", "bye")],
        )
        assert result.error.kind is ErrorKind.STRUCTURAL_PARSE_FAILURE

    def test_oversized_block_fails(self, patcher):
        src = "x = 1\ny = 2\n" + "# padding line\n" * 400
        result = patcher.patch_file(
            "p.py", src, [ChangeRequest("p.py", "replace_block", "1\ny =", "z")],
        )
        assert result.error.kind is ErrorKind.AMBIGUOUS_OR_OVERSIZED_MATCH
        assert result.error.suggestions == ("x = 1",)

    def test_indices_must_match(self, patcher):
        with pytest.raises(ValueError):
            patcher.plan("m.py", PY_SOURCE, [ChangeRequest("m.py", "delete_function", "helper")],
                         indices=[1, 2])

    def test_patcher_accepts_default_resolver(self, source_index):
        assert isinstance(BatchPatcher(source_index), BatchPatcher)
