"""
Single-entry filesystem mutations.

Every method resolves its path arguments through the SecurityManager first,
then performs exactly one mutation (``delete_recursive`` performs one per
entry) and reports an OperationResult.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import BinaryIO, List, Optional, Union

from ..exceptions import (
    AccessDeniedError,
    AlreadyExistsError,
    EntryNotFoundError,
    FileWardError,
    InvalidRequestError,
    NotEmptyError,
    OutOfBoundsError,
    error_from_os,
)
from ..filesystem import staged_output, walk_postorder
from ..utils.formatting import format_mode, parse_mode
from .capabilities import CapabilityProfile
from .config import FileManagerConfig
from .data_models import AffectedEntry, FileSystemEntry, OperationResult
from .security import SecurityManager

logger = logging.getLogger(__name__)

PathArg = Union[str, Path]


class FileOps:
    """Atomic create/delete/rename/chmod operations inside the confined root."""

    def __init__(
        self,
        config: FileManagerConfig,
        security: SecurityManager,
        profile: CapabilityProfile,
    ):
        self.config = config
        self.security = security
        self.profile = profile

    # ========== Queries ==========

    async def list_entries(self, directory: PathArg) -> List[FileSystemEntry]:
        """
        List a directory: subdirectories first, then files, each by name.

        Entries whose resolution leaves the confined root are not reported.

        Raises:
            OutOfBoundsError: If ``directory`` escapes the root
            EntryNotFoundError: If ``directory`` is missing
            InvalidRequestError: If ``directory`` is not a directory
        """
        path = self._require_directory(self.security.resolve(directory))

        directories: List[FileSystemEntry] = []
        files: List[FileSystemEntry] = []
        try:
            names = sorted(os.listdir(path))
        except OSError as e:
            raise error_from_os(e, path) from e

        for name in names:
            child = path / name
            try:
                self.security.resolve(child)
                entry = FileSystemEntry.from_path(child)
            except OutOfBoundsError:
                logger.debug(f"Not listing {child}: resolves outside root")
                continue
            except OSError as e:
                logger.warning(f"Error getting info for {child}: {e}")
                continue
            (directories if entry.is_dir else files).append(entry)

        return directories + files

    async def stat_entry(self, path: PathArg) -> FileSystemEntry:
        """
        Snapshot a single regular file (used for direct downloads).

        Raises:
            OutOfBoundsError, EntryNotFoundError, InvalidRequestError
        """
        target = self.security.resolve(path)
        if not target.exists():
            raise EntryNotFoundError(f"File not found: {path}", path=target)
        if not target.is_file():
            raise InvalidRequestError(f"Not a regular file: {path}", path=target)
        try:
            return FileSystemEntry.from_path(target)
        except OSError as e:
            raise error_from_os(e, target) from e

    # ========== Mutations ==========

    async def create_empty_file(self, directory: PathArg, name: str) -> OperationResult:
        """
        Create an empty file, or truncate an existing regular file.

        Fails if ``name`` is not a direct child of ``directory`` or names an
        existing directory.
        """
        operation = "create_file"
        try:
            parent = self._require_directory(self.security.resolve(directory))
            target = self.security.resolve_child(parent, name)
            if target.is_symlink():
                target = self.security.resolve(target)
            if target.is_dir():
                raise AlreadyExistsError(f"A directory named '{name}' already exists", path=target)

            with open(target, "wb"):
                pass
        except FileWardError as e:
            return self._failed(operation, e, directory, name)
        except OSError as e:
            return self._failed(operation, error_from_os(e), directory, name)

        self.security.log_operation(operation, target, True)
        return OperationResult.success(
            operation,
            affected=[AffectedEntry.ok(name, target)],
            output_path=target,
        )

    async def create_directory(self, parent: PathArg, name: str) -> OperationResult:
        """Create one directory; ``AlreadyExists`` if anything is already there."""
        operation = "create_directory"
        try:
            base = self._require_directory(self.security.resolve(parent))
            target = self.security.resolve_child(base, name)
            if os.path.lexists(target):
                raise AlreadyExistsError(f"'{name}' already exists", path=target)
            os.mkdir(target)
        except FileWardError as e:
            return self._failed(operation, e, parent, name)
        except OSError as e:
            return self._failed(operation, error_from_os(e), parent, name)

        self.security.log_operation(operation, target, True)
        return OperationResult.success(
            operation,
            affected=[AffectedEntry.ok(name, target)],
            output_path=target,
        )

    async def delete(self, path: PathArg) -> OperationResult:
        """
        Delete a file, a link, or an empty directory.

        A non-empty directory fails with ``NotEmpty``; use ``delete_recursive``.
        """
        operation = "delete"
        try:
            target = self._resolve_existing(path)
            self._remove_one(target)
        except FileWardError as e:
            return self._failed(operation, e, path)
        except OSError as e:
            return self._failed(operation, error_from_os(e, path), path)

        self.security.log_operation(operation, target, True)
        return OperationResult.success(operation, affected=[AffectedEntry.ok(target.name, target)])

    async def delete_recursive(self, path: PathArg) -> OperationResult:
        """
        Delete a directory tree bottom-up, one entry at a time.

        Links are removed, never followed. Every entry is reported; a
        directory whose contents could not all be removed fails as
        ``NotEmpty``.
        """
        operation = "delete_recursive"
        try:
            target = self._resolve_existing(path)
        except FileWardError as e:
            return self._failed(operation, e, path)

        if target.is_symlink() or not target.is_dir():
            result = await self.delete(target)
            result.operation = operation
            return result

        affected: List[AffectedEntry] = []
        for node in walk_postorder(target):
            affected.append(self._remove_reported(node.path, node.relative.as_posix()))
            await asyncio.sleep(0)
        affected.append(self._remove_reported(target, target.name))

        result = OperationResult.from_entries(operation, affected, output_path=target)
        self.security.log_operation(operation, target, result.succeeded, {
            'entries': len(affected),
            'failed': len(result.failed_entries),
        })
        return result

    async def rename(self, path: PathArg, new_name: str, directory: PathArg) -> OperationResult:
        """Rename ``path`` to ``directory/new_name``; collisions are ``AlreadyExists``."""
        operation = "rename"
        try:
            source = self._resolve_existing(path)
            base = self._require_directory(self.security.resolve(directory))
            target = self.security.resolve_child(base, new_name)
            if os.path.lexists(target):
                raise AlreadyExistsError(f"'{new_name}' already exists", path=target)
            os.rename(source, target)
        except FileWardError as e:
            return self._failed(operation, e, path)
        except OSError as e:
            return self._failed(operation, error_from_os(e, path), path)

        self.security.log_operation(operation, source, True, {'new_path': target})
        return OperationResult.success(
            operation,
            affected=[AffectedEntry.ok(new_name, target)],
            output_path=target,
        )

    async def set_permissions(self, path: PathArg, mode: Union[int, str]) -> OperationResult:
        """
        Set permission bits to ``mode`` (int or octal string).

        On hosts without POSIX permissions this is a no-op reported as
        SUCCESS with a note.
        """
        operation = "set_permissions"
        try:
            try:
                value = parse_mode(mode)
            except ValueError as e:
                raise InvalidRequestError(str(e), path=str(path)) from e

            target = self.security.resolve(path)
            if not target.exists():
                raise EntryNotFoundError(f"Entry not found: {path}", path=target)

            if not self.profile.is_posix:
                logger.info(f"Skipping chmod on {target}: host has no POSIX permissions")
                return OperationResult.success(
                    operation,
                    affected=[AffectedEntry.ok(target.name, target)],
                    notes=["Permission bits are not supported on this host; nothing was changed"],
                )

            os.chmod(target, value)
        except FileWardError as e:
            return self._failed(operation, e, path)
        except OSError as e:
            return self._failed(operation, error_from_os(e, path), path)

        self.security.log_operation(operation, target, True, {'mode': format_mode(value)})
        return OperationResult.success(
            operation,
            message=f"Permissions set to {format_mode(value)}",
            affected=[AffectedEntry.ok(target.name, target)],
        )

    async def save_upload(
        self,
        directory: PathArg,
        name: str,
        data: Union[bytes, BinaryIO],
    ) -> OperationResult:
        """
        Store uploaded content as ``directory/name``.

        The content is staged in a temporary file and renamed into place, so
        an interrupted upload leaves nothing under ``name``. An existing
        regular file is replaced.
        """
        operation = "upload"
        try:
            parent = self._require_directory(self.security.resolve(directory))
            target = self.security.resolve_child(parent, name)
            if target.is_symlink():
                target = self.security.resolve(target)
            if target.is_dir():
                raise AlreadyExistsError(f"A directory named '{name}' already exists", path=target)

            size = 0
            with staged_output(target, suffix=".upload") as temp_path:
                with open(temp_path, "wb") as out:
                    if isinstance(data, (bytes, bytearray, memoryview)):
                        size = out.write(data)
                    else:
                        while True:
                            chunk = await asyncio.to_thread(data.read, self.config.download_chunk_size)
                            if not chunk:
                                break
                            size += out.write(chunk)
        except FileWardError as e:
            return self._failed(operation, e, directory, name)
        except OSError as e:
            return self._failed(operation, error_from_os(e), directory, name)

        self.security.log_operation(operation, target, True, {'size': size})
        return OperationResult.success(
            operation,
            affected=[AffectedEntry.ok(name, target)],
            output_path=target,
        )

    # ========== Helpers ==========

    def _require_directory(self, path: Path) -> Path:
        if not path.exists():
            raise EntryNotFoundError(f"Directory not found: {path}", path=path)
        if not path.is_dir():
            raise InvalidRequestError(f"Not a directory: {path}", path=path)
        return path

    def _resolve_existing(self, path: PathArg) -> Path:
        """Resolve without following the leaf; the root itself is off limits."""
        target = self.security.resolve(path, follow_leaf=False)
        if target == self.security.root:
            raise AccessDeniedError("The confined root itself cannot be modified", path=target)
        if not os.path.lexists(target):
            raise EntryNotFoundError(f"Entry not found: {path}", path=target)
        return target

    def _remove_one(self, target: Path) -> None:
        if target.is_symlink() or not target.is_dir():
            os.unlink(target)
            return
        with os.scandir(target) as it:
            if any(True for _ in it):
                raise NotEmptyError(f"Directory is not empty: {target.name}", path=target)
        os.rmdir(target)

    def _remove_reported(self, path: Path, name: str) -> AffectedEntry:
        try:
            self._remove_one(path)
        except FileWardError as e:
            logger.warning(f"Could not delete {path}: {e}")
            return AffectedEntry.from_error(name, e, path)
        except OSError as e:
            error = error_from_os(e, path)
            logger.warning(f"Could not delete {path}: {error}")
            return AffectedEntry.from_error(name, error, path)
        return AffectedEntry.ok(name, path)

    def _failed(
        self,
        operation: str,
        error: FileWardError,
        path: PathArg,
        name: Optional[str] = None,
    ) -> OperationResult:
        subject = f"{path}/{name}" if name else str(path)
        logger.warning(f"{operation} failed for {subject}: {error}")
        self.security.log_operation(operation, subject, False, {'error_kind': error.error_kind.value})
        entry = AffectedEntry.from_error(name or Path(str(path)).name or str(path), error)
        return OperationResult.from_error(operation, error, affected=[entry])
