"""All-or-nothing file installation: stage to temp files, promote by rename.

Temporary and backup files live beside their target as
``.<name>.fetchui-<txid>.tmp`` / ``.<name>.fetchui-<txid>.bak`` so that
``os.replace`` stays on one filesystem.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from common.errors import PromotionFailure, StagingFailure
from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants

logger = logging.getLogger(__name__)

_MARKER_RE = re.compile(
    r"^\.(?P<name>.+)" + re.escape(Constants.TEMP_MARKER) + r"[0-9a-f]+"
    r"(?P<suffix>" + re.escape(Constants.TEMP_SUFFIX) + "|" + re.escape(Constants.BACKUP_SUFFIX) + r")$"
)


def _atomic_replace(src: Path, dst: Path) -> None:
    os.replace(src, dst)


def _marker_path(target: Path, txid: str, suffix: str) -> Path:
    return target.parent / f".{target.name}{Constants.TEMP_MARKER}{txid}{suffix}"


def new_transaction_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class StagedFile:
    """One file of a transaction; ``relative_path`` is project-root-relative."""

    relative_path: str
    target_path: Path
    content: str
    temp_path: Optional[Path] = None
    backup_path: Optional[Path] = None
    existed: bool = False
    identical: bool = False
    promoted: bool = False

    @property
    def conflicting(self) -> bool:
        return self.existed and not self.identical


class InstallTransaction:
    """Accumulates staged files and commits them, or rolls every change back."""

    def __init__(self, root: Path, transaction_id: Optional[str] = None):
        self.id = transaction_id or new_transaction_id()
        self.root = Path(root)
        self.staged: List[StagedFile] = []
        self.committed = False
        self.rolled_back = False
        self._promoted: List[StagedFile] = []
        self._created_dirs: List[Path] = []
        self._temp_paths: List[Path] = []
        self._dirs_lock = threading.Lock()

    def _target(self, relative_path: str) -> Path:
        target = (self.root / relative_path).resolve()
        root = self.root.resolve()
        if root not in target.parents:
            raise StagingFailure(relative_path, ValueError("path escapes the project root"))
        return target

    def inspect(self, relative_path: str, content: str) -> StagedFile:
        """Describe what staging ``content`` would do, without touching the disk."""
        target = self._target(relative_path)
        staged = StagedFile(relative_path=relative_path, target_path=target, content=content)
        if target.exists():
            staged.existed = True
            try:
                staged.identical = target.read_bytes() == content.encode("utf-8")
            except OSError as exc:
                raise StagingFailure(relative_path, exc) from exc
        return staged

    def stage(self, relative_path: str, content: str) -> StagedFile:
        """Write ``content`` to a temp file beside its target. Safe to call from threads."""
        staged = self.inspect(relative_path, content)
        if staged.identical:
            return staged
        temp = _marker_path(staged.target_path, self.id, Constants.TEMP_SUFFIX)
        # Tracked before the write; cleanup() must see it even if add() is never called.
        with self._dirs_lock:
            self._temp_paths.append(temp)
        try:
            self._make_parents(temp.parent)
            temp.write_bytes(content.encode("utf-8"))
        except OSError as exc:
            raise StagingFailure(relative_path, exc) from exc
        staged.temp_path = temp
        return staged

    def _make_parents(self, directory: Path) -> None:
        with self._dirs_lock:
            missing = []
            current = directory
            while not current.exists():
                missing.append(current)
                current = current.parent
            directory.mkdir(parents=True, exist_ok=True)
            self._created_dirs.extend(missing)

    def add(self, staged: StagedFile) -> None:
        self.staged.append(staged)

    def conflicts(self) -> List[str]:
        return [s.relative_path for s in self.staged if s.conflicting]

    def _promote_one(self, staged: StagedFile) -> None:
        if staged.existed:
            backup = _marker_path(staged.target_path, self.id, Constants.BACKUP_SUFFIX)
            _atomic_replace(staged.target_path, backup)
            staged.backup_path = backup
        self._promoted.append(staged)
        _atomic_replace(staged.temp_path, staged.target_path)
        staged.promoted = True

    async def promote(self) -> None:
        """Rename every staged file into place, in staging order.

        Any failure, or cancellation, restores the pre-transaction state
        before propagating.
        """
        current: Optional[StagedFile] = None
        try:
            for staged in self.staged:
                if staged.identical:
                    continue
                current = staged
                self._promote_one(staged)
                # Cancellation point between files; rollback below handles it.
                await asyncio.sleep(0)
        except asyncio.CancelledError:
            self.rollback()
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            rollback_errors = self.rollback()
            raise PromotionFailure(
                current.relative_path if current else str(self.root), exc, rollback_errors=rollback_errors
            ) from exc
        self._commit()

    def _commit(self) -> None:
        for staged in self._promoted:
            if staged.backup_path is not None:
                try:
                    staged.backup_path.unlink()
                except FileNotFoundError:
                    pass
        self.committed = True
        logger.info(
            "Committed transaction %s",
            self.id,
            extra=extra_context(
                event="install_commit",
                component="transaction",
                outcome="success",
                transaction_id=self.id,
                files=len(self._promoted),
            ),
        )

    def rollback(self) -> List[str]:
        """Undo promoted files, restore backups, delete temps; returns errors it could not fix."""
        errors: List[str] = []
        for staged in reversed(self._promoted):
            try:
                if staged.promoted and staged.backup_path is None:
                    staged.target_path.unlink()
                elif staged.backup_path is not None:
                    _atomic_replace(staged.backup_path, staged.target_path)
            except OSError as exc:
                errors.append(f"{staged.relative_path}: {exc}")
        self._promoted.clear()
        self.discard()
        self.rolled_back = True
        logger.warning(
            "Rolled back transaction %s",
            self.id,
            extra=extra_context(
                event="install_rollback",
                component="transaction",
                outcome="rolled_back",
                transaction_id=self.id,
                errors=errors or None,
            ),
        )
        return errors

    def discard(self) -> None:
        """Drop an unpromoted transaction: temp files and directories it created."""
        self.cleanup()
        for directory in sorted(self._created_dirs, key=lambda p: len(p.parts), reverse=True):
            try:
                directory.rmdir()
            except OSError:
                # Not empty: something else lives there now.
                continue
        self._created_dirs.clear()

    def cleanup(self) -> None:
        """Delete any temp file this transaction wrote that was not promoted.

        Covers temps whose StagedFile never reached ``add``, e.g. when
        staging was cancelled. Callers must let in-flight ``stage`` calls
        finish first.
        """
        promoted = {s.temp_path for s in self.staged if s.promoted}
        with self._dirs_lock:
            temps = [t for t in self._temp_paths if t not in promoted]
            self._temp_paths = [t for t in self._temp_paths if t in promoted]
        for temp in temps:
            try:
                temp.unlink()
            except FileNotFoundError:
                pass


def sweep_stale_temp_files(root: Path, directories: Iterable[str]) -> List[Path]:
    """Remove temp/backup files left behind by interrupted installs.

    A backup whose target is missing is restored; any other leftover is
    deleted. Returns the paths that were handled.
    """
    handled: List[Path] = []
    for directory in directories:
        base = Path(root) / directory
        if not base.is_dir():
            continue
        for dirpath, _, filenames in os.walk(base):
            for filename in filenames:
                match = _MARKER_RE.match(filename)
                if not match:
                    continue
                leftover = Path(dirpath) / filename
                target = Path(dirpath) / match.group("name")
                if match.group("suffix") == Constants.BACKUP_SUFFIX and not target.exists():
                    os.replace(leftover, target)
                    logger.warning("Restored %s from an interrupted install", target)
                else:
                    leftover.unlink()
                    if is_debug_enabled(logger):
                        logger.debug(
                            "Removed stale file",
                            extra=extra_context(event="sweep", component="transaction", target=str(leftover)),
                        )
                handled.append(leftover)
    return handled
