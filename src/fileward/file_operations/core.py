"""
Main FileManagerTools interface.

This module provides the operation API that presentation layers call into.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError

from ..exceptions import FileWardError, InvalidRequestError, OperationTimeoutError
from .archive import ArchiveEngine
from .capabilities import CapabilityProfile, probe
from .config import FileManagerConfig
from .data_models import ArchiveRequest, FetchRequest, FileSystemEntry, OperationResult
from .fetch import Fetcher
from .file_ops import FileOps
from .security import SecurityManager

logger = logging.getLogger(__name__)

PathArg = Union[str, Path]


def _validation_message(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in item['loc']) or 'request'}: {item['msg']}"
        for item in error.errors()
    )


class FileManagerTools:
    """
    Main interface of the confined file manager.

    Provides:
    - Single-entry mutations (create, delete, rename, chmod, upload)
    - Directory listing and single-file stat for direct downloads
    - Archive creation and extraction across zip, tar.gz and plain copies
    - Remote downloads into the confined tree

    Every path argument is resolved inside ``config.root_directory`` before
    anything touches the filesystem.
    """

    def __init__(
        self,
        config: Optional[FileManagerConfig] = None,
        profile: Optional[CapabilityProfile] = None,
    ):
        """
        Initialize file manager tools.

        Args:
            config: Configuration (if None, confines to the current directory)
            profile: Pre-probed host capabilities (if None, probed now)
        """
        self.config = config or FileManagerConfig()
        self.profile = profile or probe(self.config)

        self.security = SecurityManager(self.config)
        self.file_ops = FileOps(self.config, self.security, self.profile)
        self.archive_engine = ArchiveEngine(self.config, self.security, self.profile)
        self.fetcher = Fetcher(self.config, self.security, self.profile)

        logger.info(f"FileManagerTools initialized at {self.security.root} with {self.profile}")

    @property
    def root(self) -> Path:
        return self.security.root

    def get_profile(self) -> CapabilityProfile:
        """Host capabilities this instance negotiates strategies against."""
        return self.profile

    # ========== Queries ==========

    async def list_entries(self, directory: PathArg = ".") -> List[FileSystemEntry]:
        """List a directory, subdirectories first. Raises FileWardError."""
        return await self.file_ops.list_entries(directory)

    async def stat_entry(self, path: PathArg) -> FileSystemEntry:
        """Snapshot one regular file. Raises FileWardError."""
        return await self.file_ops.stat_entry(path)

    # ========== Mutations ==========

    async def create_empty_file(self, directory: PathArg, name: str) -> OperationResult:
        return await self.file_ops.create_empty_file(directory, name)

    async def create_directory(self, parent: PathArg, name: str) -> OperationResult:
        return await self.file_ops.create_directory(parent, name)

    async def delete(self, path: PathArg) -> OperationResult:
        return await self.file_ops.delete(path)

    async def delete_recursive(self, path: PathArg) -> OperationResult:
        return await self.file_ops.delete_recursive(path)

    async def rename(self, path: PathArg, new_name: str, directory: Optional[PathArg] = None) -> OperationResult:
        """Rename ``path``; the new entry lands in ``directory`` (default: same directory)."""
        if directory is None:
            directory = Path(path).parent
        return await self.file_ops.rename(path, new_name, directory)

    async def set_permissions(self, path: PathArg, mode: Union[int, str]) -> OperationResult:
        return await self.file_ops.set_permissions(path, mode)

    async def save_upload(self, directory: PathArg, name: str, data: Union[bytes, BinaryIO]) -> OperationResult:
        return await self.file_ops.save_upload(directory, name, data)

    # ========== Archives ==========

    async def create_archive(
        self,
        sources: Union[PathArg, Sequence[PathArg]],
        archive_name: str,
        base_dir: Optional[PathArg] = None,
        timeout: Optional[float] = None,
    ) -> OperationResult:
        """
        Pack ``sources`` into ``base_dir/archive_name``.

        Args:
            sources: Entries to pack, in order
            archive_name: Leaf name of the archive (may be adjusted by the strategy)
            base_dir: Directory to create the archive in (default: root)
            timeout: Optional deadline in seconds

        Returns:
            OperationResult naming the strategy used and every entry touched
        """
        if isinstance(sources, (str, Path)):
            sources = [sources]
        try:
            request = ArchiveRequest(
                sources=list(sources),
                archive_name=archive_name,
                base_dir=base_dir if base_dir is not None else self.root,
            )
        except ValidationError as e:
            return self._invalid("create_archive", e)

        return await self._with_deadline(
            "create_archive", self.archive_engine.create_archive(request), timeout
        )

    async def extract_archive(
        self,
        archive_path: PathArg,
        dest_dir: Optional[PathArg] = None,
        timeout: Optional[float] = None,
    ) -> OperationResult:
        """Unpack an archive into ``dest_dir`` (default ``<stem>_extracted``)."""
        return await self._with_deadline(
            "extract_archive", self.archive_engine.extract_archive(archive_path, dest_dir), timeout
        )

    # ========== Downloads ==========

    async def fetch(
        self,
        url: str,
        destination_dir: Optional[PathArg] = None,
        suggested_name: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> OperationResult:
        """
        Download ``url`` into ``destination_dir`` (default: root).

        The file name is ``suggested_name`` or the last segment of the URL.
        """
        try:
            request = FetchRequest(
                url=url,
                destination_dir=destination_dir if destination_dir is not None else self.root,
                suggested_name=suggested_name,
            )
        except ValidationError as e:
            return self._invalid("fetch", e)

        return await self._with_deadline("fetch", self.fetcher.fetch(request), timeout)

    # ========== Utility Methods ==========

    async def _with_deadline(self, operation: str, awaitable, timeout: Optional[float]) -> OperationResult:
        """Await ``awaitable``; on expiry it is cancelled and reported as TIMEOUT."""
        if timeout is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError:
            error = OperationTimeoutError(
                f"{operation} did not finish within {timeout} seconds",
                timeout_seconds=timeout,
            )
            logger.warning(str(error))
            self.security.log_operation(operation, self.root, False, {'error_kind': error.error_kind.value})
            return OperationResult.from_error(operation, error)

    def _invalid(self, operation: str, error: ValidationError) -> OperationResult:
        invalid = InvalidRequestError(f"Invalid request: {_validation_message(error)}")
        logger.warning(f"{operation} rejected: {invalid}")
        return OperationResult.from_error(operation, invalid)

    # ========== Tool Interface ==========

    def get_tools(self) -> Dict[str, Callable]:
        """
        Get dictionary of tools for presentation-layer integration.

        These wrapper functions convert result objects to dictionaries so a
        web handler or CLI can render them directly.

        Returns:
            Dict mapping action name to async callable
        """

        async def list_wrapper(directory: PathArg = ".") -> Dict[str, Any]:
            """List a directory and return dict with formatted entries."""
            try:
                entries = await self.list_entries(directory)
            except FileWardError as e:
                return {"success": False, "path": str(directory), "error": e.to_dict()}
            return {
                "success": True,
                "path": str(directory),
                "entries": [entry.to_dict() for entry in entries],
                "file_count": sum(1 for entry in entries if not entry.is_dir),
                "directory_count": sum(1 for entry in entries if entry.is_dir),
                "total_size": sum(entry.size for entry in entries),
            }

        async def download_wrapper(path: PathArg) -> Dict[str, Any]:
            """Describe one file for a direct download response."""
            try:
                entry = await self.stat_entry(path)
            except FileWardError as e:
                return {"success": False, "path": str(path), "error": e.to_dict()}
            return {"success": True, "entry": entry.to_dict()}

        async def create_file_wrapper(directory: PathArg, name: str) -> Dict[str, Any]:
            return (await self.create_empty_file(directory, name)).to_dict()

        async def create_folder_wrapper(parent: PathArg, name: str) -> Dict[str, Any]:
            return (await self.create_directory(parent, name)).to_dict()

        async def delete_wrapper(path: PathArg, recursive: bool = False) -> Dict[str, Any]:
            """Delete an entry; ``recursive`` removes a whole tree."""
            if recursive:
                return (await self.delete_recursive(path)).to_dict()
            return (await self.delete(path)).to_dict()

        async def rename_wrapper(path: PathArg, new_name: str, directory: Optional[PathArg] = None) -> Dict[str, Any]:
            return (await self.rename(path, new_name, directory)).to_dict()

        async def chmod_wrapper(path: PathArg, mode: Union[int, str]) -> Dict[str, Any]:
            return (await self.set_permissions(path, mode)).to_dict()

        async def upload_wrapper(directory: PathArg, name: str, data: Union[bytes, BinaryIO]) -> Dict[str, Any]:
            return (await self.save_upload(directory, name, data)).to_dict()

        async def zip_wrapper(
            sources: Union[PathArg, Sequence[PathArg]],
            archive_name: str,
            base_dir: Optional[PathArg] = None,
            timeout: Optional[float] = None,
        ) -> Dict[str, Any]:
            return (await self.create_archive(sources, archive_name, base_dir, timeout)).to_dict()

        async def unzip_wrapper(
            archive_path: PathArg,
            dest_dir: Optional[PathArg] = None,
            timeout: Optional[float] = None,
        ) -> Dict[str, Any]:
            return (await self.extract_archive(archive_path, dest_dir, timeout)).to_dict()

        async def fetch_wrapper(
            url: str,
            destination_dir: Optional[PathArg] = None,
            suggested_name: Optional[str] = None,
            timeout: Optional[float] = None,
        ) -> Dict[str, Any]:
            return (await self.fetch(url, destination_dir, suggested_name, timeout)).to_dict()

        async def server_info_wrapper() -> Dict[str, Any]:
            """Capability report for the compatibility panel."""
            return {"root": str(self.root), **self.profile.to_dict()}

        return {
            'list': list_wrapper,
            'download': download_wrapper,
            'create_file': create_file_wrapper,
            'create_folder': create_folder_wrapper,
            'delete': delete_wrapper,
            'rename': rename_wrapper,
            'chmod': chmod_wrapper,
            'upload': upload_wrapper,
            'zip': zip_wrapper,
            'unzip': unzip_wrapper,
            'fetch': fetch_wrapper,
            'server_info': server_info_wrapper,
        }


# ========== Helper Functions ==========

def create_file_manager_tools(
    config: Optional[FileManagerConfig] = None
) -> Dict[str, Callable]:
    """
    Create file manager tools for presentation-layer integration.

    This is a convenience function that creates a FileManagerTools instance
    and returns its tool dictionary.

    Args:
        config: Optional configuration (if None, uses defaults)

    Returns:
        Dictionary of action_name -> callable function

    Example:
        >>> tools = create_file_manager_tools(FileManagerConfig(root_directory=Path("/srv/files")))
        >>> listing = await tools['list']('.')
    """
    manager = FileManagerTools(config)
    return manager.get_tools()
