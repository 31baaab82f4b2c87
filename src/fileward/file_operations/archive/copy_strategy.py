"""
Plain-copy archive strategy.

The always-available fallback: the "archive" is a directory named
``<stem>_archive`` holding copies of the planned entries, and extracting one
copies its contents back out.
"""

import asyncio
import logging
import os
import shutil
from pathlib import Path, PurePosixPath
from typing import List

from ...exceptions import AlreadyExistsError, FileWardError, error_from_os
from ...filesystem import PathGuard, staged_output, walk_preorder
from ..capabilities import CapabilityProfile
from ..data_models import AffectedEntry
from .base import ArchiveForm, ArchiveStrategy, PlannedEntry, member_destination

logger = logging.getLogger(__name__)


def _copy_file(source: Path, target: Path) -> None:
    with staged_output(target) as temp_path:
        shutil.copy2(source, temp_path)


class PlainCopyStrategy(ArchiveStrategy):
    """Mirror entries into a plain directory."""

    name = "plain_copy"
    form = ArchiveForm.DIRECTORY
    stages_directory = True

    def is_available(self, profile: CapabilityProfile) -> bool:
        return True

    def can_extract(self, form: ArchiveForm, profile: CapabilityProfile) -> bool:
        return form == ArchiveForm.DIRECTORY

    def output_name(self, archive_name: str) -> str:
        return f"{PurePosixPath(archive_name).stem}{self.config.archive_dir_suffix}"

    async def write(self, entries: List[PlannedEntry], output: Path) -> List[AffectedEntry]:
        results: List[AffectedEntry] = []
        for entry in entries:
            target = output.joinpath(*PurePosixPath(entry.arcname).parts)
            try:
                if entry.is_dir:
                    os.makedirs(target, exist_ok=True)
                else:
                    target.parent.mkdir(parents=True, exist_ok=True)
                    await asyncio.to_thread(shutil.copy2, entry.path, target)
            except OSError as e:
                error = error_from_os(e, entry.path)
                logger.warning(f"Could not copy {entry.path}: {error}")
                results.append(AffectedEntry.from_error(entry.arcname, error, entry.path))
                continue
            results.append(AffectedEntry.ok(entry.arcname, entry.path))
        return results

    async def extract(self, archive: Path, form: ArchiveForm, guard: PathGuard) -> List[AffectedEntry]:
        results: List[AffectedEntry] = []
        for node in walk_preorder(archive):
            name = node.relative.as_posix()
            if node.error is not None:
                error = error_from_os(node.error, node.path)
                logger.warning(f"Could not read {node.path}: {error}")
                results.append(AffectedEntry.from_error(name, error, node.path))
                continue
            if node.is_symlink:
                results.append(AffectedEntry.skipped(name, "Links are not copied", node.path))
                continue

            try:
                target = member_destination(guard, name)
                if node.is_dir:
                    if not target.is_dir():
                        os.mkdir(target)
                else:
                    if target.is_dir():
                        raise AlreadyExistsError(f"A directory is in the way of {name!r}", path=target)
                    await asyncio.to_thread(_copy_file, node.path, target)
            except FileWardError as e:
                logger.warning(f"Could not extract {name!r}: {e}")
                results.append(AffectedEntry.from_error(name, e))
                continue
            except OSError as e:
                error = error_from_os(e)
                logger.warning(f"Could not extract {name!r}: {error}")
                results.append(AffectedEntry.from_error(name, error))
                continue
            results.append(AffectedEntry.ok(name, target))
        return results
