"""
Change documents — load, check and group the change requests an external
actor sends as JSON or YAML.

A document looks like::

    {
      "description": "Add login throttling",
      "changes": [
        {"file": "src/auth.ts", "action": "replace_function",
         "target": "loginUser", "code": "function loginUser() { ... }"},
        {"file": "src/auth.ts", "action": "add_method", "class": "Session",
         "target": "touch", "code": "  touch() { ... }\\n"}
      ]
    }

Unknown action strings are kept as-is so they are reported downstream as
unsupported rather than silently dropped.
"""

from __future__ import annotations

import json
import os
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Sequence

import yaml

from .editing.models import ActionKind, ChangeRequest

MAX_CHANGES_PER_FILE = 10

_CLASS_KEYS = ("class", "class_name", "enclosing_class")


class ChangeDocumentError(ValueError):
    """The change document is malformed."""


@dataclass
class ChangeDocument:
    description: str = "Code changes"
    changes: list[ChangeRequest] = field(default_factory=list)

    @property
    def affected_files(self) -> list[str]:
        return list(dict.fromkeys(c.file for c in self.changes))


@dataclass
class StructureReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def parse_changes(data: Any) -> ChangeDocument:
    """Build a :class:`ChangeDocument` from decoded JSON/YAML data.

    A bare list is accepted as the ``changes`` array.
    """
    if isinstance(data, list):
        data = {"changes": data}
    if not isinstance(data, dict):
        raise ChangeDocumentError("Change document must be a mapping or a list")
    raw_changes = data.get("changes")
    if not isinstance(raw_changes, list):
        raise ChangeDocumentError('Input must contain a "changes" array')

    changes = [_parse_change(raw, i) for i, raw in enumerate(raw_changes)]
    return ChangeDocument(
        description=str(data.get("description") or "Code changes"),
        changes=changes,
    )


def _parse_change(raw: Any, position: int) -> ChangeRequest:
    if not isinstance(raw, dict):
        raise ChangeDocumentError(f"Change {position} must be a mapping")

    def _field(name: str) -> str:
        value = raw.get(name)
        return "" if value is None else str(value)

    action = _field("action").strip()
    kind = ActionKind.coerce(action)

    required = ["file", "action"]
    if kind is not ActionKind.CREATE_FILE:
        required.append("target")
    if kind is not ActionKind.DELETE_FUNCTION:
        required.append("code")
    for name in required:
        value = _field(name)
        if not (value.strip() if name != "code" else value):
            raise ChangeDocumentError(f"Change {position}: missing required field: {name}")

    enclosing = next((str(raw[k]).strip() for k in _CLASS_KEYS if raw.get(k)), None)
    description = raw.get("description")
    return ChangeRequest(
        file=_field("file").strip(),
        action=kind.value if kind is not None else action,
        target=_field("target").strip(),
        code=_field("code"),
        enclosing_class=enclosing or None,
        description=str(description) if description is not None else None,
    )


def load_changes(path: str) -> ChangeDocument:
    """Read a change document from a ``.json``, ``.yaml`` or ``.yml`` file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as exc:
        raise ChangeDocumentError(f"Cannot read {path}: {exc}") from exc

    ext = os.path.splitext(path)[1].lower()
    try:
        if ext in (".yaml", ".yml"):
            data = yaml.safe_load(content)
        else:
            data = json.loads(content)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ChangeDocumentError(f"Failed to parse input: {exc}") from exc
    return parse_changes(data)


def check_structure(requests: Sequence[ChangeRequest]) -> StructureReport:
    """Check a batch's shape without touching the filesystem."""
    report = StructureReport()
    if not requests:
        report.errors.append("No changes specified")
        return report

    seen: Counter = Counter()
    for req in requests:
        key = (req.file, req.action, req.enclosing_class or "", req.target)
        seen[key] += 1
        if seen[key] == 2:
            report.warnings.append(
                f"Duplicate change detected: {req.action}:{req.target} in {req.file}"
            )

    per_file = Counter(req.file for req in requests)
    for file, count in per_file.items():
        if count > MAX_CHANGES_PER_FILE:
            report.warnings.append(
                f"Large number of changes ({count}) in {file}. "
                "Consider splitting into multiple operations."
            )
    return report


def group_by_file(
    requests: Sequence[ChangeRequest],
) -> dict[str, list[tuple[int, ChangeRequest]]]:
    """Group requests by file in arrival order, keeping each batch index."""
    groups: dict[str, list[tuple[int, ChangeRequest]]] = {}
    for idx, req in enumerate(requests):
        groups.setdefault(req.file, []).append((idx, req))
    return groups
