"""
Validation orchestrator — checks a batch of change requests against the
workspace without modifying anything.

Small batches are validated concurrently, each request racing its own
timeout; larger ones run sequentially.  Every request is isolated: an
exception or timeout becomes a failed result for that request alone.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Optional, Sequence

from .errors import EditError, ErrorKind
from .models import (
    CREATING_ACTIONS,
    METHOD_ACTIONS,
    ActionKind,
    ChangeRequest,
    Confidence,
)
from .source_index import SourceIndex
from .target_resolver import TargetResolver

logger = logging.getLogger(__name__)

_SLOW_VALIDATION_MS = 5000.0


@dataclass
class ValidationOptions:
    validate_target_existence: bool = True
    parallel: bool = True
    parallel_threshold: int = 20
    timeout_ms: int = 30000
    large_code_block: int = 1000

    @classmethod
    def from_config(cls, config) -> "ValidationOptions":
        return cls(
            validate_target_existence=config.VALIDATE_TARGET_EXISTENCE,
            parallel=config.PARALLEL_VALIDATION,
            parallel_threshold=config.PARALLEL_THRESHOLD,
            timeout_ms=config.TIMEOUT_MS,
            large_code_block=config.LARGE_CODE_BLOCK,
        )


@dataclass
class ValidationIssue:
    code: str
    message: str
    field: Optional[str] = None
    suggestion: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "field": self.field,
            "suggestion": self.suggestion,
        }


@dataclass
class ChangeValidation:
    """Validation outcome for a single change request."""
    index: int
    request: ChangeRequest
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    elapsed_ms: float = 0.0

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    def error(self, code: str, message: str, field: Optional[str] = None,
              suggestion: Optional[str] = None) -> None:
        self.errors.append(ValidationIssue(code, message, field, suggestion))

    def warn(self, code: str, message: str, field: Optional[str] = None,
             suggestion: Optional[str] = None) -> None:
        self.warnings.append(ValidationIssue(code, message, field, suggestion))

    def as_dict(self) -> dict:
        return {
            "index": self.index,
            "file": self.request.file,
            "action": self.request.action,
            "target": self.request.target,
            "valid": self.valid,
            "errors": [e.as_dict() for e in self.errors],
            "warnings": [w.as_dict() for w in self.warnings],
            "suggestions": list(self.suggestions),
            "elapsed_ms": round(self.elapsed_ms, 2),
        }


@dataclass
class ValidationSummary:
    results: list[ChangeValidation] = field(default_factory=list)
    elapsed_ms: float = 0.0
    suggestions: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def valid_count(self) -> int:
        return sum(1 for r in self.results if r.valid)

    @property
    def invalid_count(self) -> int:
        return self.total - self.valid_count

    @property
    def warning_count(self) -> int:
        return sum(1 for r in self.results if r.has_warnings)

    @property
    def files(self) -> list[str]:
        return list(dict.fromkeys(r.request.file for r in self.results))

    @property
    def overall_valid(self) -> bool:
        return self.invalid_count == 0

    def as_dict(self) -> dict:
        return {
            "overall_valid": self.overall_valid,
            "total": self.total,
            "valid": self.valid_count,
            "invalid": self.invalid_count,
            "with_warnings": self.warning_count,
            "files": self.files,
            "elapsed_ms": round(self.elapsed_ms, 2),
            "suggestions": list(self.suggestions),
            "results": [r.as_dict() for r in self.results],
        }


class ValidationOrchestrator:
    """Validate change requests against a workspace.

    *workspace* only needs ``exists(path)`` and ``read_text(path)``.
    """

    def __init__(
        self,
        workspace,
        source_index: SourceIndex,
        resolver: Optional[TargetResolver] = None,
        options: Optional[ValidationOptions] = None,
    ) -> None:
        self._workspace = workspace
        self._index = source_index
        self._resolver = resolver or TargetResolver()
        self.options = options or ValidationOptions()

    def validate(self, requests: Sequence[ChangeRequest]) -> ValidationSummary:
        """Validate every request and summarise the batch."""
        return self._run(requests, resolve=self.options.validate_target_existence)

    def quick_validate(self, requests: Sequence[ChangeRequest]) -> ValidationSummary:
        """Validate structure and file existence only, skipping target resolution."""
        return self._run(requests, resolve=False)

    def validate_one(self, request: ChangeRequest, index: int = 0) -> ChangeValidation:
        """Re-validate a single request, e.g. after the caller fixed it."""
        return self._guarded(request, index, self.options.validate_target_existence)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _run(self, requests: Sequence[ChangeRequest], resolve: bool) -> ValidationSummary:
        started = time.monotonic()
        opts = self.options
        if opts.parallel and 0 < len(requests) <= opts.parallel_threshold:
            results = self._run_parallel(requests, resolve)
        else:
            results = [self._guarded(req, i, resolve) for i, req in enumerate(requests)]

        summary = ValidationSummary(
            results=results,
            elapsed_ms=(time.monotonic() - started) * 1000,
        )
        summary.suggestions = _global_suggestions(results)
        logger.info(
            "[Validate] %d change(s): %d valid, %d invalid, %d with warnings (%.0f ms)",
            summary.total, summary.valid_count, summary.invalid_count,
            summary.warning_count, summary.elapsed_ms,
        )
        return summary

    def _run_parallel(
        self,
        requests: Sequence[ChangeRequest],
        resolve: bool,
    ) -> list[ChangeValidation]:
        timeout_s = self.options.timeout_ms / 1000
        pool = ThreadPoolExecutor(max_workers=len(requests))
        try:
            started = time.monotonic()
            futures = [
                pool.submit(self._guarded, req, i, resolve)
                for i, req in enumerate(requests)
            ]
            results: list[ChangeValidation] = []
            for i, (req, fut) in enumerate(zip(requests, futures)):
                remaining = max(0.0, started + timeout_s - time.monotonic())
                try:
                    results.append(fut.result(timeout=remaining))
                except FutureTimeout:
                    logger.warning(
                        "[Validate] Change %d (%s) timed out after %d ms",
                        i, req.file, self.options.timeout_ms,
                    )
                    failed = ChangeValidation(index=i, request=req)
                    failed.error(
                        "timeout",
                        f"Validation timed out after {self.options.timeout_ms} ms",
                    )
                    failed.elapsed_ms = float(self.options.timeout_ms)
                    results.append(failed)
            return results
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    def _guarded(self, request: ChangeRequest, index: int, resolve: bool) -> ChangeValidation:
        started = time.monotonic()
        try:
            result = self._check(request, index, resolve)
        except Exception as exc:
            logger.error("[Validate] Change %d (%s) failed: %s", index, request.file, exc)
            result = ChangeValidation(index=index, request=request)
            result.error("internal_error", f"Validation failed: {exc}")
        result.elapsed_ms = (time.monotonic() - started) * 1000
        return result

    # ------------------------------------------------------------------
    # Per-request checks
    # ------------------------------------------------------------------

    def _check(self, request: ChangeRequest, index: int, resolve: bool) -> ChangeValidation:
        result = ChangeValidation(index=index, request=request)
        kind = request.action_kind
        if kind is None:
            result.error(
                ErrorKind.UNSUPPORTED_ACTION.value,
                f"Unsupported action: {request.action!r}",
                field="action",
                suggestion="Valid actions: " + ", ".join(a.value for a in ActionKind),
            )
            return result
        if not request.file:
            result.error("missing_file", "No target file given", field="file")
            return result

        self._check_action(request, kind, result)

        try:
            exists = self._workspace.exists(request.file)
        except (OSError, ValueError) as exc:
            result.error(ErrorKind.IO_ERROR.value, f"Cannot access file path: {exc}", field="file")
            return result

        if not exists:
            if kind in CREATING_ACTIONS:
                result.warn(
                    "file_missing",
                    f"Target file does not exist: {request.file} (will be created)",
                    field="file",
                )
            else:
                result.error(
                    "file_not_found",
                    f"File {request.file} does not exist",
                    field="file",
                    suggestion="Check the file path or create the file first",
                )
            return result

        if kind is ActionKind.CREATE_FILE:
            result.warn(
                "file_exists",
                f"File {request.file} already exists and will be overwritten",
                field="file",
            )
            return result

        if resolve and result.valid:
            self._check_target(request, kind, result)
        return result

    def _check_action(self, request: ChangeRequest, kind: ActionKind,
                      result: ChangeValidation) -> None:
        if kind in METHOD_ACTIONS and not request.enclosing_class:
            result.error(
                "missing_class",
                f"Action '{kind.value}' requires a class name",
                field="class",
            )
        if kind is not ActionKind.CREATE_FILE and not request.target.strip():
            result.error("missing_target", "No target given", field="target")
        if kind is ActionKind.DELETE_FUNCTION:
            result.warn(
                "destructive",
                f"Function '{request.target}' will be deleted",
                field="action",
            )
        elif not request.code.strip():
            result.warn("empty_code", "The change carries no code", field="code")
        if len(request.code) > self.options.large_code_block:
            result.warn(
                "large_code_block",
                f"Code block is {len(request.code)} characters long",
                field="code",
                suggestion="Consider splitting it into smaller changes",
            )

    def _check_target(self, request: ChangeRequest, kind: ActionKind,
                      result: ChangeValidation) -> None:
        try:
            text = self._workspace.read_text(request.file)
        except (EditError, OSError, ValueError) as exc:
            result.error(ErrorKind.IO_ERROR.value, f"File exists but cannot be read: {exc}",
                         field="file")
            return

        index = self._index.build_file(request.file, text)
        res = self._resolver.resolve(index, kind, request.target, request.enclosing_class)
        result.suggestions.extend(res.suggestions)

        if not res.exists:
            code = (res.error or ErrorKind.TARGET_NOT_FOUND).value
            suggestion = None
            if res.suggestions:
                suggestion = "Did you mean: " + ", ".join(res.suggestions)
            result.error(code, res.reason or f"Target '{request.target}' not found",
                         field="target", suggestion=suggestion)
            return
        if res.confidence is Confidence.LOW:
            result.warn("low_confidence", f"Target '{request.target}' matched with low confidence",
                        field="target")
        if res.suggestions:
            result.warn("already_exists", "; ".join(res.suggestions), field="target")


def _global_suggestions(results: list[ChangeValidation]) -> list[str]:
    suggestions = []
    invalid = [r for r in results if not r.valid]
    missing_files = [r for r in invalid if any(e.code == "file_not_found" for e in r.errors)]
    missing_targets = [
        r for r in invalid
        if any(e.code == ErrorKind.TARGET_NOT_FOUND.value for e in r.errors)
    ]
    if missing_files:
        suggestions.append(
            f"{len(missing_files)} changes target non-existent files. "
            "Create the files first or check file paths."
        )
    if missing_targets:
        suggestions.append(
            f"{len(missing_targets)} changes target non-existent functions/methods. "
            "Check the target names and spelling."
        )
    if any(r.elapsed_ms > _SLOW_VALIDATION_MS for r in results):
        suggestions.append(
            "Some validations took a long time. "
            "Consider breaking large files into smaller pieces."
        )
    return suggestions
