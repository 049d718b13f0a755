"""Tests for the differ command line."""

import json
import logging
import textwrap

import pytest

from differ.cli import EXIT_FAILED, EXIT_OK, EXIT_USAGE, main, setup_logger


SERVICE_PY = textwrap.dedent("""\
    class UserService:
        def get_user(self, user_id):
            return user_id


    def compute(a, b):
        return a + b
""")


@pytest.fixture
def project(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for key in ("DIFFER_LOG_DIR", "DIFFER_METRICS_DIR", "DIFFER_TIMEOUT_MS"):
        monkeypatch.delenv(key, raising=False)
    (tmp_path / "service.py").write_text(SERVICE_PY, encoding="utf-8")
    return tmp_path


def _write_changes(path, changes):
    path.write_text(json.dumps({"description": "test", "changes": changes}))
    return str(path)


class TestValidate:
    def test_valid_document(self, project, capsys):
        doc = _write_changes(project / "c.json", [
            {"file": "service.py", "action": "replace_function", "target": "compute",
             "code": "def compute(a, b):\n    return a * b"},
        ])
        assert main(["validate", doc]) == EXIT_OK
        assert "Validation OK" in capsys.readouterr().out

    def test_invalid_document(self, project, capsys):
        doc = _write_changes(project / "c.json", [
            {"file": "service.py", "action": "replace_function", "target": "compte",
             "code": "def compute(): pass"},
        ])
        assert main(["validate", doc]) == EXIT_FAILED
        out = capsys.readouterr().out
        assert "Validation FAILED" in out
        assert "compute" in out

    def test_json_output(self, project, capsys):
        doc = _write_changes(project / "c.json", [
            {"file": "service.py", "action": "delete_function", "target": "compute"},
        ])
        assert main(["validate", doc, "--json"]) == EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert data["overall_valid"] is True
        assert data["with_warnings"] == 1
        assert data["structure"]["errors"] == []

    def test_quick_skips_targets(self, project):
        doc = _write_changes(project / "c.json", [
            {"file": "service.py", "action": "replace_function", "target": "nothing",
             "code": "x"},
        ])
        assert main(["validate", doc, "--quick"]) == EXIT_OK

    def test_malformed_document_is_usage_error(self, project, capsys):
        path = project / "c.json"
        path.write_text('{"description": "no changes"}')
        assert main(["validate", str(path)]) == EXIT_USAGE
        assert '"changes" array' in capsys.readouterr().err

    def test_empty_changes_fail(self, project):
        doc = _write_changes(project / "c.json", [])
        assert main(["validate", doc]) == EXIT_FAILED


class TestApply:
    def test_apply_writes_file(self, project, capsys):
        doc = _write_changes(project / "c.json", [
            {"file": "service.py", "action": "add_method", "class": "UserService",
             "target": "delete_user",
             "code": "\n    def delete_user(self, user_id):\n        return None\n"},
        ])
        assert main(["apply", doc]) == EXIT_OK
        text = (project / "service.py").read_text()
        assert "def delete_user(self, user_id):" in text
        assert "patched service.py" in capsys.readouterr().out

    def test_apply_refuses_invalid_batch(self, project):
        doc = _write_changes(project / "c.json", [
            {"file": "service.py", "action": "replace_function", "target": "missing",
             "code": "x"},
        ])
        assert main(["apply", doc]) == EXIT_FAILED
        assert (project / "service.py").read_text() == SERVICE_PY

    def test_dry_run(self, project, capsys):
        doc = _write_changes(project / "c.json", [
            {"file": "service.py", "action": "delete_function", "target": "compute"},
        ])
        assert main(["apply", doc, "--dry-run"]) == EXIT_OK
        assert (project / "service.py").read_text() == SERVICE_PY
        assert "would patch service.py" in capsys.readouterr().out

    def test_json_output_and_metrics(self, project, capsys):
        doc = _write_changes(project / "c.json", [
            {"file": "service.py", "action": "delete_function", "target": "compute"},
        ])
        assert main(["apply", doc, "--json"]) == EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert data["batch"]["files_written"] == ["service.py"]
        assert (project / ".differ" / "apply_metrics.jsonl").is_file()

    def test_root_option(self, project, tmp_path_factory):
        other = tmp_path_factory.mktemp("other")
        (other / "mod.py").write_text("def f():\n    return 1\n")
        doc = _write_changes(project / "c.json", [
            {"file": "mod.py", "action": "replace_function", "target": "f",
             "code": "def f():\n    return 2"},
        ])
        assert main(["apply", doc, "--root", str(other)]) == EXIT_OK
        assert "return 2" in (other / "mod.py").read_text()


class TestIndex:
    def test_index_python_file(self, project, capsys):
        assert main(["index", str(project / "service.py")]) == EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert data["language"] == "python"
        assert data["parse_ok"] is True

    def test_index_unparseable(self, project, capsys):
        (project / "bad.py").write_text("def broken(:\n")
        assert main(["index", str(project / "bad.py")]) == EXIT_FAILED

    def test_index_missing_file(self, project):
        assert main(["index", str(project / "absent.py")]) == EXIT_USAGE


class TestStats:
    def test_no_metrics(self, project, capsys):
        assert main(["stats"]) == EXIT_OK
        assert "No apply metrics found yet." in capsys.readouterr().out

    def test_stats_after_apply(self, project, capsys):
        doc = _write_changes(project / "c.json", [
            {"file": "service.py", "action": "delete_function", "target": "compute"},
        ])
        main(["apply", doc])
        capsys.readouterr()
        assert main(["stats"]) == EXIT_OK
        out = capsys.readouterr().out
        assert "Files patched:   1" in out
        assert "Success rate:    100%" in out


def test_setup_logger_keeps_one_file_handler(tmp_path):
    first, second = tmp_path / "one", tmp_path / "two"
    log = setup_logger(str(first))
    try:
        setup_logger(str(second))
        handlers = [h for h in log.handlers if isinstance(h, logging.FileHandler)]
        assert len(handlers) == 1
        assert handlers[0].baseFilename.startswith(str(second))
    finally:
        for h in [h for h in log.handlers if isinstance(h, logging.FileHandler)]:
            log.removeHandler(h)
            h.close()


def test_invalid_config_is_usage_error(project):
    (project / "bad.yaml").write_text("timeout_ms: 0\n")
    assert main(["--config", str(project / "bad.yaml"), "stats"]) == EXIT_USAGE


def test_missing_command(project):
    with pytest.raises(SystemExit):
        main([])
