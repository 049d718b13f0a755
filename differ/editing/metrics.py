"""
Apply metrics — records the outcome of every patched file in a JSONL log.
"""

from __future__ import annotations

import json
import logging
import os
from collections import Counter
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

_METRICS_DIR = ".differ"
_METRICS_FILE = "apply_metrics.jsonl"


def _metrics_path(project_root: str | None = None, metrics_dir: str | None = None) -> str:
    """Return the absolute path to the metrics file."""
    base = project_root or os.getcwd()
    return os.path.join(base, metrics_dir or _METRICS_DIR, _METRICS_FILE)


def log_apply_metric(
    data: dict,
    project_root: str | None = None,
    metrics_dir: str | None = None,
) -> None:
    """Append a single apply metric entry to the JSONL log.

    Parameters
    ----------
    data:
        Metric fields to log (file, success, edits_applied, error_kind,
        actions, ...).
    project_root:
        Optional project root directory. Defaults to CWD.
    """
    path = _metrics_path(project_root, metrics_dir)
    os.makedirs(os.path.dirname(path), exist_ok=True)

    entry = {"timestamp": datetime.now(timezone.utc).isoformat()}
    entry.update(data)

    try:
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry) + "\n")
    except OSError as exc:
        logger.warning("[Patch] Failed to write metrics: %s", exc)


def read_apply_stats(
    last_n: int = 50,
    project_root: str | None = None,
    metrics_dir: str | None = None,
) -> dict:
    """Compute rolling statistics from the metrics log.

    Returns
    -------
    dict
        ``total_files``, ``success_rate`` (percent), ``total_edits``,
        ``error_kinds`` and ``actions`` histograms.
    """
    path = _metrics_path(project_root, metrics_dir)

    entries: list[dict] = []
    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line:
                        try:
                            entries.append(json.loads(line))
                        except json.JSONDecodeError:
                            continue
        except OSError as exc:
            logger.warning("[Patch] Failed to read metrics: %s", exc)

    entries = entries[-last_n:] if last_n > 0 else entries

    if not entries:
        return {
            "total_files": 0,
            "total_edits": 0,
            "success_rate": 0.0,
            "error_kinds": {},
            "actions": {},
        }

    total = len(entries)
    successes = sum(1 for e in entries if e.get("success", False))
    error_kinds = Counter(
        e["error_kind"] for e in entries if e.get("error_kind")
    )
    actions: Counter = Counter()
    for e in entries:
        actions.update(e.get("actions", []))

    return {
        "total_files": total,
        "total_edits": sum(e.get("edits_applied", 0) for e in entries),
        "success_rate": successes / total * 100,
        "error_kinds": dict(error_kinds.most_common()),
        "actions": dict(actions.most_common()),
    }
