"""
differ — locate and apply named code edits safely.

Public API for library usage::

    from differ import run_changes, validate_changes

    summary = validate_changes("changes.json", root=".")
    result = run_changes("changes.json", root=".")
"""

from .api import ApplyOutcome, Engine, create_engine, run_changes, validate_changes

__all__ = ["ApplyOutcome", "Engine", "create_engine", "run_changes", "validate_changes"]
