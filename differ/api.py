"""
Programmatic API for differ — use as a library from Python code.

Example usage::

    from differ import run_changes

    result = run_changes("changes.json", root="path/to/project")
    print(result.success)
    print(result.files_written)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence, Union

from .changes import ChangeDocument, check_structure, load_changes
from .config import Config
from .editing.batch_patcher import BatchPatcher
from .editing.models import ChangeRequest
from .editing.source_index import SourceIndex
from .editing.target_resolver import TargetResolver
from .editing.validation import (
    ValidationOptions,
    ValidationOrchestrator,
    ValidationSummary,
)
from .grammar.host import GrammarHost
from .grammar.registry import GrammarRegistry, default_registry
from .workspace import BatchResult, Workspace, apply_changes

_logger = logging.getLogger(__name__)

Changes = Union[str, ChangeDocument, Sequence[ChangeRequest]]


@dataclass
class Engine:
    """Every collaborator needed to validate and apply changes in one root."""
    config: Config
    registry: GrammarRegistry
    host: GrammarHost
    source_index: SourceIndex
    resolver: TargetResolver
    patcher: BatchPatcher
    workspace: Workspace

    def validator(self) -> ValidationOrchestrator:
        return ValidationOrchestrator(
            self.workspace,
            self.source_index,
            resolver=self.resolver,
            options=ValidationOptions.from_config(self.config),
        )


def create_engine(
    root: str = ".",
    config: Optional[Config] = None,
    config_path: Optional[str] = None,
    registry: Optional[GrammarRegistry] = None,
) -> Engine:
    """Wire up an :class:`Engine` for the project at *root*."""
    cfg = config or Config.load(config_path)
    registry = registry or default_registry()
    host = GrammarHost(registry, tolerate_syntax_errors=cfg.TOLERATE_SYNTAX_ERRORS)
    source_index = SourceIndex(host)
    resolver = TargetResolver()
    return Engine(
        config=cfg,
        registry=registry,
        host=host,
        source_index=source_index,
        resolver=resolver,
        patcher=BatchPatcher(source_index, resolver),
        workspace=Workspace(root, max_file_size=cfg.MAX_FILE_SIZE),
    )


@dataclass
class ApplyOutcome:
    """Structured result returned by :func:`run_changes`."""
    success: bool
    validation: Optional[ValidationSummary] = None
    batch: Optional[BatchResult] = None
    files_written: list[str] = field(default_factory=list)
    error: str = ""


def _requests(changes: Changes) -> list[ChangeRequest]:
    if isinstance(changes, str):
        return load_changes(changes).changes
    if isinstance(changes, ChangeDocument):
        return changes.changes
    return list(changes)


def validate_changes(
    changes: Changes,
    *,
    root: str = ".",
    quick: bool = False,
    engine: Optional[Engine] = None,
    config_path: Optional[str] = None,
) -> ValidationSummary:
    """Validate *changes* against the project at *root* without writing."""
    engine = engine or create_engine(root, config_path=config_path)
    validator = engine.validator()
    requests = _requests(changes)
    if quick:
        return validator.quick_validate(requests)
    return validator.validate(requests)


def run_changes(
    changes: Changes,
    *,
    root: str = ".",
    force: bool = False,
    dry_run: bool = False,
    record_metrics: bool = True,
    engine: Optional[Engine] = None,
    config_path: Optional[str] = None,
) -> ApplyOutcome:
    """Validate and apply *changes* to the project at *root*.

    Args:
        changes: A change-document path, a loaded document, or requests.
        root: Project root every change path is relative to.
        force: Apply even when validation reports errors.
        dry_run: Compute new contents without writing them.
        record_metrics: Append per-file apply metrics under the root.
        engine: A pre-built engine (overrides *root* and *config_path*).
        config_path: Explicit path to ``.differ.yaml``.

    Returns:
        An :class:`ApplyOutcome`; failed files are reported in
        ``batch.results`` while the other files are still written.
    """
    engine = engine or create_engine(root, config_path=config_path)
    requests = _requests(changes)

    structure = check_structure(requests)
    if not structure.is_valid:
        return ApplyOutcome(success=False, error="; ".join(structure.errors))
    for warning in structure.warnings:
        _logger.warning("[Workspace] %s", warning)

    summary = engine.validator().validate(requests)
    if not summary.overall_valid and not force:
        return ApplyOutcome(
            success=False,
            validation=summary,
            error=f"{summary.invalid_count} change(s) failed validation",
        )

    batch = apply_changes(
        requests,
        engine.workspace,
        engine.patcher,
        dry_run=dry_run,
        metrics_dir=engine.config.METRICS_DIR if record_metrics and not dry_run else None,
    )
    return ApplyOutcome(
        success=batch.success,
        validation=summary,
        batch=batch,
        files_written=list(batch.files_written),
        error="" if batch.success else f"{len(batch.failed)} file(s) failed to apply",
    )
