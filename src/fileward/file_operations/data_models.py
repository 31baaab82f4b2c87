"""
Data models for the file manager.

This module defines the structures exchanged with callers: directory entries,
per-entry outcomes, aggregate operation results, and the validated request
models for archive and fetch operations.
"""

import os
import stat
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional
from urllib.parse import unquote, urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..exceptions import ErrorKind, FileWardError
from ..utils.formatting import format_mode, format_size


class EntryKind(str, Enum):
    """Kind of filesystem entry."""
    FILE = "file"
    DIRECTORY = "directory"


class Outcome(str, Enum):
    """Aggregate outcome of an operation."""
    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"
    FAILURE = "failure"


class EntryStatus(str, Enum):
    """What happened to one entry touched by an operation."""
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"  # Deliberately left out (e.g. symlink leaving the tree)


@dataclass(frozen=True)
class FileSystemEntry:
    """Read-only snapshot of one directory entry."""
    name: str  # Leaf component
    path: Path  # Absolute canonical path
    kind: EntryKind
    size: int  # Bytes, 0 for directories
    mode: int  # Permission bits (st_mode & 0o7777)
    modified_at: datetime  # Minute resolution

    @classmethod
    def from_path(cls, path: Path) -> "FileSystemEntry":
        """
        Build an entry from a fresh stat of ``path``.

        Symlinks report their target's metadata; a dangling link falls back
        to the link itself.

        Raises:
            OSError: If the path cannot be stat'ed
        """
        try:
            st = os.stat(path)
        except FileNotFoundError:
            st = os.lstat(path)

        is_dir = stat.S_ISDIR(st.st_mode)
        modified = datetime.fromtimestamp(st.st_mtime).replace(second=0, microsecond=0)
        return cls(
            name=path.name,
            path=path,
            kind=EntryKind.DIRECTORY if is_dir else EntryKind.FILE,
            size=0 if is_dir else st.st_size,
            mode=st.st_mode & 0o7777,
            modified_at=modified,
        )

    @property
    def is_dir(self) -> bool:
        return self.kind == EntryKind.DIRECTORY

    @property
    def permissions(self) -> str:
        """Octal permission string, e.g. ``"0755"``."""
        return format_mode(self.mode)

    @property
    def size_human(self) -> str:
        return format_size(self.size)

    def __str__(self) -> str:
        """String representation."""
        return f"FileSystemEntry({self.kind.value}: {self.path}, {self.size_human})"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation for the presentation layer."""
        return {
            "name": self.name,
            "path": str(self.path),
            "kind": self.kind.value,
            "size": self.size,
            "size_human": self.size_human,
            "permissions": self.permissions,
            "modified": self.modified_at.strftime("%Y-%m-%d %H:%M"),
        }


@dataclass
class AffectedEntry:
    """One entry touched by an operation, with what happened to it."""
    name: str  # Display name (archive member name, source leaf, ...)
    path: Optional[Path] = None  # Filesystem path, when there is one
    status: EntryStatus = EntryStatus.OK
    error_kind: Optional[ErrorKind] = None
    reason: Optional[str] = None

    @classmethod
    def ok(cls, name: str, path: Optional[Path] = None) -> "AffectedEntry":
        return cls(name=name, path=path)

    @classmethod
    def failed(
        cls,
        name: str,
        error_kind: ErrorKind,
        reason: str,
        path: Optional[Path] = None,
    ) -> "AffectedEntry":
        return cls(name=name, path=path, status=EntryStatus.FAILED, error_kind=error_kind, reason=reason)

    @classmethod
    def skipped(cls, name: str, reason: str, path: Optional[Path] = None) -> "AffectedEntry":
        return cls(name=name, path=path, status=EntryStatus.SKIPPED, reason=reason)

    @classmethod
    def from_error(cls, name: str, error: FileWardError, path: Optional[Path] = None) -> "AffectedEntry":
        return cls.failed(name, error.error_kind, error.developer_message, path=path)

    def __str__(self) -> str:
        if self.status == EntryStatus.FAILED:
            return f"{self.name}: {self.error_kind.value} ({self.reason})"
        return f"{self.name}: {self.status.value}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "name": self.name,
            "path": str(self.path) if self.path else None,
            "status": self.status.value,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "reason": self.reason,
        }


@dataclass
class OperationResult:
    """Structured result returned by every mutating operation."""
    outcome: Outcome
    operation: str  # Operation name (create_archive, delete, ...)
    error_kind: Optional[ErrorKind] = None  # Set unless outcome is SUCCESS
    message: Optional[str] = None
    affected: List[AffectedEntry] = field(default_factory=list)  # Ordered
    output_path: Optional[Path] = None  # Archive, extraction dir, download, ...
    strategy_used: Optional[str] = None  # Which strategy ran (archive/fetch)
    notes: List[str] = field(default_factory=list)  # Non-fatal remarks

    @classmethod
    def success(cls, operation: str, **kwargs) -> "OperationResult":
        return cls(outcome=Outcome.SUCCESS, operation=operation, **kwargs)

    @classmethod
    def failure(
        cls,
        operation: str,
        error_kind: ErrorKind,
        message: str,
        **kwargs
    ) -> "OperationResult":
        return cls(
            outcome=Outcome.FAILURE,
            operation=operation,
            error_kind=error_kind,
            message=message,
            **kwargs
        )

    @classmethod
    def from_error(cls, operation: str, error: FileWardError, **kwargs) -> "OperationResult":
        """Fold a raised file manager error into a FAILURE result."""
        affected = kwargs.pop("affected", None)
        if affected is None and error.path:
            affected = [AffectedEntry.from_error(Path(error.path).name or error.path, error, Path(error.path))]
        return cls.failure(
            operation,
            error.error_kind,
            error.developer_message,
            affected=affected or [],
            **kwargs
        )

    @classmethod
    def from_entries(
        cls,
        operation: str,
        affected: List[AffectedEntry],
        groups: Optional[List[bool]] = None,
        **kwargs
    ) -> "OperationResult":
        """
        Aggregate per-entry outcomes into one result.

        Args:
            operation: Operation name
            affected: All touched entries, in processing order
            groups: Optional success flags per unit of work (e.g. per archive
                    source). When omitted, each non-skipped entry counts.
            **kwargs: Extra result fields

        Returns:
            SUCCESS when nothing failed, FAILURE when everything failed,
            PARTIAL_FAILURE otherwise
        """
        if groups is None:
            groups = [entry.status != EntryStatus.FAILED for entry in affected if entry.status != EntryStatus.SKIPPED]

        failures = [entry for entry in affected if entry.status == EntryStatus.FAILED]
        if all(groups):
            return cls.success(operation, affected=affected, **kwargs)

        if not any(groups):
            first = failures[0] if failures else None
            return cls.failure(
                operation,
                first.error_kind if first else ErrorKind.IO_ERROR,
                f"All {len(groups)} item(s) failed",
                affected=affected,
                **kwargs
            )

        return cls(
            outcome=Outcome.PARTIAL_FAILURE,
            operation=operation,
            error_kind=ErrorKind.PARTIAL_FAILURE,
            message=f"{groups.count(False)} of {len(groups)} item(s) failed",
            affected=affected,
            **kwargs
        )

    @property
    def succeeded(self) -> bool:
        return self.outcome == Outcome.SUCCESS

    @property
    def failed_entries(self) -> List[AffectedEntry]:
        return [entry for entry in self.affected if entry.status == EntryStatus.FAILED]

    def __bool__(self) -> bool:
        """Boolean conversion."""
        return self.succeeded

    def __str__(self) -> str:
        """String representation."""
        if self.succeeded:
            return f"OperationResult({self.operation}: success, {len(self.affected)} entries)"
        return (
            f"OperationResult({self.operation}: {self.outcome.value}, "
            f"{self.error_kind.value if self.error_kind else 'unknown'}, '{self.message}')"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation for the presentation layer."""
        return {
            "outcome": self.outcome.value,
            "success": self.succeeded,
            "operation": self.operation,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "message": self.message,
            "affected": [entry.to_dict() for entry in self.affected],
            "failed": [str(entry) for entry in self.failed_entries],
            "output_path": str(self.output_path) if self.output_path else None,
            "strategy_used": self.strategy_used,
            "notes": self.notes,
        }


def _check_leaf_name(value: str) -> str:
    if not value or value in (".", ".."):
        raise ValueError(f"Name must not be empty, '.' or '..': {value!r}")
    if "/" in value or "\\" in value or "\x00" in value:
        raise ValueError(f"Name must be a single path component: {value!r}")
    return value


class ArchiveRequest(BaseModel):
    """Request to pack a set of entries into one archive."""

    model_config = ConfigDict(frozen=True)

    sources: List[Path] = Field(..., min_length=1, description="Entries to pack, in order")
    archive_name: str = Field(..., description="Leaf filename of the archive")
    base_dir: Path = Field(..., description="Directory the archive is created in")

    @field_validator("archive_name")
    @classmethod
    def validate_archive_name(cls, value: str) -> str:
        return _check_leaf_name(value)


class FetchRequest(BaseModel):
    """Request to download a remote resource into the confined tree."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(..., description="Absolute http(s) URL")
    destination_dir: Path = Field(..., description="Directory to save into")
    suggested_name: Optional[str] = Field(
        None, description="Final filename (derived from the URL if omitted)"
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        value = value.strip()
        parsed = urlparse(value)
        if parsed.scheme.lower() not in ("http", "https"):
            raise ValueError(f"URL scheme must be http or https: {value!r}")
        if not parsed.netloc or not parsed.hostname:
            raise ValueError(f"URL must be absolute: {value!r}")
        return value

    @field_validator("suggested_name")
    @classmethod
    def validate_suggested_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return _check_leaf_name(value)

    @model_validator(mode="before")
    @classmethod
    def derive_suggested_name(cls, data: Any) -> Any:
        """Fill ``suggested_name`` from the URL's last path segment."""
        if isinstance(data, dict) and not data.get("suggested_name") and isinstance(data.get("url"), str):
            segment = unquote(PurePosixPath(urlparse(data["url"].strip()).path).name)
            try:
                name = _check_leaf_name(segment)
            except ValueError:
                name = f"download_{int(time.time())}.file"
            data = {**data, "suggested_name": name}
        return data
