"""
Workspace I/O — confined reads and atomic writes under one project root,
plus the multi-file apply loop.

Each file is planned, folded and written on its own.  A failure on one
file never touches another file, and a file is only written when its
whole batch succeeded.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from .changes import group_by_file
from .editing.batch_patcher import BatchPatcher, PatchResult
from .editing.errors import FileAccessError
from .editing.metrics import log_apply_metric
from .editing.models import CREATING_ACTIONS, ChangeRequest

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 5 * 1024 * 1024


class WorkspacePathError(ValueError):
    """Raised when a path would escape the workspace root."""


class Workspace:
    """Text access to files beneath *root*."""

    def __init__(self, root: str | os.PathLike = ".", max_file_size: int = DEFAULT_MAX_FILE_SIZE):
        self.root = Path(root).resolve()
        self.max_file_size = max_file_size

    def resolve(self, rel_path: str) -> Path:
        """Resolve a workspace-relative path.

        Absolute paths and ``..`` traversal are rejected, as is anything
        that resolves (through symlinks) outside the root.
        """
        p = Path(rel_path)
        if not rel_path or p.is_absolute():
            raise WorkspacePathError(f"Absolute or empty paths are not allowed: {rel_path!r}")
        if any(part == ".." for part in p.parts):
            raise WorkspacePathError(f"Path traversal '..' is not allowed: {rel_path}")
        candidate = (self.root / p).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError:
            raise WorkspacePathError(f"Path escapes the workspace root: {rel_path}") from None
        return candidate

    def exists(self, rel_path: str) -> bool:
        try:
            return self.resolve(rel_path).is_file()
        except WorkspacePathError:
            return False

    def read_text(self, rel_path: str) -> str:
        """Read a UTF-8 file, refusing files above ``max_file_size``."""
        path = self.resolve(rel_path)
        try:
            size = path.stat().st_size
            if size > self.max_file_size:
                raise FileAccessError(
                    f"{rel_path} is {size} bytes, above the {self.max_file_size}-byte limit"
                )
            with open(path, "r", encoding="utf-8", newline="") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as exc:
            raise FileAccessError(f"Cannot read {rel_path}: {exc}") from exc

    def write_text(self, rel_path: str, content: str) -> None:
        """Write *content* atomically via temp file + rename."""
        path = self.resolve(rel_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = str(path) + ".differ_tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8", newline="") as f:
                f.write(content)
            shutil.move(tmp_path, str(path))
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise


@dataclass
class BatchResult:
    """Per-file outcomes of one multi-file apply."""
    results: list[PatchResult] = field(default_factory=list)
    files_written: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def failed(self) -> list[PatchResult]:
        return [r for r in self.results if not r.success]

    def as_dict(self) -> dict:
        return {
            "success": self.success,
            "files_written": list(self.files_written),
            "results": [r.as_dict() for r in self.results],
        }


def apply_changes(
    requests: Sequence[ChangeRequest],
    workspace: Workspace,
    patcher: BatchPatcher,
    dry_run: bool = False,
    metrics_dir: Optional[str] = None,
) -> BatchResult:
    """Patch and write every file named in *requests*.

    Files are processed in the order they first appear.  With
    ``dry_run`` the new contents are computed but nothing is written.
    When *metrics_dir* is set, one metric entry per file is appended
    under the workspace root.
    """
    batch = BatchResult()
    for path, entries in group_by_file(requests).items():
        indices = [idx for idx, _ in entries]
        reqs = [req for _, req in entries]
        result = _patch_one(path, reqs, indices, workspace, patcher)

        if result.success and not dry_run:
            try:
                workspace.write_text(path, result.content or "")
                batch.files_written.append(path)
            except (OSError, WorkspacePathError) as exc:
                logger.error("[Workspace] Write failed for %s: %s", path, exc)
                result.success = False
                result.error = FileAccessError(
                    f"Cannot write {path}: {exc}", indices[0],
                ).to_patch_error()

        batch.results.append(result)
        if metrics_dir is not None:
            log_apply_metric(
                {
                    "file": path,
                    "success": result.success,
                    "edits_applied": result.edits_applied,
                    "error_kind": result.error.kind.value if result.error else None,
                    "actions": [r.action for r in reqs],
                },
                project_root=str(workspace.root),
                metrics_dir=metrics_dir,
            )

    logger.info(
        "[Workspace] Applied changes: %d file(s) written, %d failed",
        len(batch.files_written), len(batch.failed),
    )
    return batch


def _patch_one(
    path: str,
    reqs: list[ChangeRequest],
    indices: list[int],
    workspace: Workspace,
    patcher: BatchPatcher,
) -> PatchResult:
    try:
        if workspace.exists(path):
            text = workspace.read_text(path)
        elif all(r.action_kind in CREATING_ACTIONS for r in reqs):
            # Creating actions may start from an empty file.
            workspace.resolve(path)
            text = ""
        else:
            raise FileAccessError(f"File does not exist: {path}", indices[0])
    except WorkspacePathError as exc:
        return PatchResult(
            file=path,
            error=FileAccessError(str(exc), indices[0]).to_patch_error(),
        )
    except FileAccessError as exc:
        if exc.request_index is None:
            exc.request_index = indices[0]
        logger.warning("[Workspace] %s", exc.message)
        return PatchResult(file=path, error=exc.to_patch_error())

    return patcher.patch_file(path, text, reqs, indices=indices)
