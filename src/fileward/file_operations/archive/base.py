"""
Base classes for archive strategies.

A strategy knows how to write one archive form from an ArchivePlan and how to
read one or more forms back into a destination directory. The engine decides
which strategy runs; strategies never consult configuration switches or the
host on their own.
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import List, Optional, Tuple

from ...exceptions import InvalidRequestError, OutOfBoundsError
from ...filesystem import PathGuard
from ..capabilities import CapabilityProfile
from ..config import FileManagerConfig
from ..data_models import AffectedEntry

logger = logging.getLogger(__name__)

ZIP_MAGIC = b"PK"
GZIP_MAGIC = b"\x1f\x8b"


class ArchiveForm(str, Enum):
    """Physical representation of an archive."""
    ZIP = "zip"
    TAR_GZ = "tar.gz"
    DIRECTORY = "directory"  # Plain mirrored directory tree


@dataclass(frozen=True)
class PlannedEntry:
    """One member of an archive being created."""
    source_index: int  # Index of the caller's source this entry came from
    path: Path  # Filesystem path read when writing (links already vetted)
    arcname: str  # POSIX member name inside the archive
    is_dir: bool
    problem: Optional[AffectedEntry] = None  # Set when planning failed or skipped the entry

    @property
    def writable(self) -> bool:
        return self.problem is None


@dataclass
class ArchivePlan:
    """Ordered entries of an archive, fixed before any strategy runs."""
    sources: List[Path]
    entries: List[PlannedEntry] = field(default_factory=list)

    @property
    def writable_entries(self) -> List[PlannedEntry]:
        return [entry for entry in self.entries if entry.writable]


class ArchiveStrategy(ABC):
    """Abstract base class for archive strategies."""

    name: str = "base"
    form: ArchiveForm
    stages_directory: bool = False  # Output is a directory rather than a file

    def __init__(self, config: FileManagerConfig):
        self.config = config

    @abstractmethod
    def is_available(self, profile: CapabilityProfile) -> bool:
        """Whether this strategy can create archives on the probed host."""
        pass

    def output_name(self, archive_name: str) -> str:
        """Final leaf name of the archive this strategy produces."""
        return archive_name

    @abstractmethod
    async def write(self, entries: List[PlannedEntry], output: Path) -> List[AffectedEntry]:
        """
        Write ``entries`` into the (temporary) ``output``.

        Returns:
            One AffectedEntry per input entry, in the same order

        Raises:
            FileWardError: If the archive as a whole could not be produced
        """
        pass

    def can_extract(self, form: ArchiveForm, profile: CapabilityProfile) -> bool:
        """Whether this strategy can read ``form`` on the probed host."""
        return False

    @abstractmethod
    async def extract(self, archive: Path, form: ArchiveForm, guard: PathGuard) -> List[AffectedEntry]:
        """
        Extract ``archive`` below ``guard.root``.

        Only called for a ``form`` this strategy reported through
        ``can_extract``. Every member destination must pass ``guard``;
        members that do not are reported as failures and skipped.
        """
        pass


def detect_archive_form(path: Path) -> ArchiveForm:
    """
    Detect the archive form from content, not from the name.

    Raises:
        InvalidRequestError: If the file is neither zip nor gzip data
    """
    if path.is_dir():
        return ArchiveForm.DIRECTORY

    with open(path, "rb") as f:
        magic = f.read(4)

    if magic.startswith(ZIP_MAGIC):
        return ArchiveForm.ZIP
    if magic.startswith(GZIP_MAGIC):
        return ArchiveForm.TAR_GZ
    raise InvalidRequestError(f"Unrecognized archive format: {path.name}", path=path)


def member_parts(name: str) -> Tuple[str, ...]:
    """
    Split an archive member name into safe relative components.

    Raises:
        OutOfBoundsError: For absolute names and names containing '..'
    """
    normalized = name.replace("\\", "/")
    if normalized.startswith("/") or (len(normalized) > 1 and normalized[1] == ":"):
        raise OutOfBoundsError(f"Archive member has an absolute path: {name!r}")

    parts = tuple(part for part in PurePosixPath(normalized).parts if part not in ("", "."))
    if ".." in parts:
        raise OutOfBoundsError(f"Archive member escapes the destination: {name!r}")
    if any("\x00" in part for part in parts):
        raise OutOfBoundsError(f"Archive member name contains a NUL byte: {name!r}")
    return parts


def member_destination(guard: PathGuard, name: str, create_parents: bool = True) -> Path:
    """
    Resolve where archive member ``name`` lands below ``guard.root``.

    Intermediate directories that already exist are resolved through the
    guard, so a directory link planted by an earlier member cannot redirect
    later ones. Missing intermediates are created when ``create_parents`` is
    set and otherwise treated lexically.

    Raises:
        OutOfBoundsError: If the member would land outside the guard's root
        InvalidRequestError: If an intermediate component is not a directory
    """
    parts = member_parts(name)
    if not parts:
        return guard.root

    current = guard.root
    for part in parts[:-1]:
        candidate = current / part
        if os.path.lexists(candidate):
            candidate = guard.resolve(candidate)
            if not candidate.is_dir():
                raise InvalidRequestError(f"Member parent is not a directory: {name!r}", path=candidate)
        elif create_parents:
            os.mkdir(candidate)
            logger.debug(f"Created directory {candidate}")
        current = candidate

    if current.exists():
        return guard.resolve_child(current, parts[-1])
    return current / parts[-1]
