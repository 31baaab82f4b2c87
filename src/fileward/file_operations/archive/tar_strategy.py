"""
Shell archive strategy.

Runs the host's ``tar`` executable to create and unpack gzip-compressed tar
archives. Used when in-process compression is unavailable but external
commands may be executed on a POSIX host.
"""

import asyncio
import logging
import os
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional, Tuple

from ...exceptions import (
    AccessDeniedError,
    EntryNotFoundError,
    FileIOError,
    FileWardError,
    OperationTimeoutError,
    OutOfBoundsError,
)
from ...filesystem import PathGuard, walk_preorder
from ..capabilities import CapabilityProfile
from ..data_models import AffectedEntry, EntryStatus
from .base import ArchiveForm, ArchiveStrategy, PlannedEntry, member_destination, member_parts

logger = logging.getLogger(__name__)

LINK_TYPES = ("l", "h")  # Leading character of a verbose listing line


def _base_directory(entry: PlannedEntry) -> Path:
    """Directory the entry's arcname is relative to."""
    base = entry.path
    for _ in PurePosixPath(entry.arcname).parts:
        base = base.parent
    return base


def _command_name(arcname: str) -> str:
    return f"./{arcname}" if arcname.startswith("-") else arcname


def _listed_name(line: str) -> str:
    """Arcname as it appears in a ``tar -t`` listing."""
    name = line.rstrip("/")
    return name[2:] if name.startswith("./") else name


class ShellTarStrategy(ArchiveStrategy):
    """tar.gz archives through the external tar command."""

    name = "shell_tar"
    form = ArchiveForm.TAR_GZ

    def is_available(self, profile: CapabilityProfile) -> bool:
        return profile.can_shell_tar

    def can_extract(self, form: ArchiveForm, profile: CapabilityProfile) -> bool:
        return form == ArchiveForm.TAR_GZ and profile.can_shell_tar

    def output_name(self, archive_name: str) -> str:
        suffix = self.config.tar_suffix
        if archive_name.endswith(suffix):
            return archive_name
        if archive_name.lower().endswith(".zip"):
            return archive_name[:-4] + suffix
        return archive_name + suffix

    async def _run_tar(self, args: List[str]) -> str:
        """
        Run tar with ``args`` and return its standard output.

        The process is killed if the shell timeout expires or the calling task
        is cancelled.

        Raises:
            OperationTimeoutError: If tar exceeds ``shell_timeout_seconds``
            FileIOError: If tar cannot be started or exits non-zero
        """
        timeout = self.config.shell_timeout_seconds
        logger.debug(f"Running {self.config.tar_executable} {' '.join(args)}")
        try:
            process = await asyncio.create_subprocess_exec(
                self.config.tar_executable,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise FileIOError(f"Could not start {self.config.tar_executable}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise OperationTimeoutError(
                f"tar timed out after {timeout} seconds",
                timeout_seconds=timeout,
            )
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            raise

        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()
            raise FileIOError(
                f"tar exited with status {process.returncode}: {detail}",
                context={"return_code": process.returncode, "args": args},
            )
        return stdout.decode("utf-8", errors="surrogateescape")

    # ========== Creation ==========

    async def write(self, entries: List[PlannedEntry], output: Path) -> List[AffectedEntry]:
        # -h stores vetted file links as the files they point to
        args = ["-czhf", str(output), "--no-recursion"]
        current_base = None
        for entry in entries:
            base = _base_directory(entry)
            if base != current_base:
                args.extend(["-C", str(base)])
                current_base = base
            args.append(_command_name(entry.arcname))

        try:
            await self._run_tar(args)
        except FileIOError as error:
            results = await self._reconcile(entries, output, error)
            if results is None:
                raise
            return results
        logger.debug(f"tar wrote {len(entries)} entries to {output}")
        return [AffectedEntry.ok(entry.arcname, entry.path) for entry in entries]

    async def _reconcile(
        self,
        entries: List[PlannedEntry],
        output: Path,
        error: FileIOError,
    ) -> Optional[List[AffectedEntry]]:
        """
        Match a non-zero tar run against what actually landed in the archive.

        Entries that vanished or became unreadable after planning make tar
        exit non-zero while the rest is still written. Returns None when the
        archive cannot be listed, so the whole write fails.
        """
        try:
            listing = await self._run_tar(["-tzf", str(output)])
        except FileWardError as e:
            logger.debug(f"Could not list partial archive {output}: {e}")
            return None

        stored = {_listed_name(line) for line in listing.splitlines() if line}
        if not stored:
            return None

        logger.warning(f"tar reported problems writing {output.name}: {error}")
        results: List[AffectedEntry] = []
        for entry in entries:
            if entry.arcname in stored:
                results.append(AffectedEntry.ok(entry.arcname, entry.path))
                continue
            if not os.path.lexists(entry.path):
                missing = EntryNotFoundError(f"Source disappeared: {entry.arcname}", path=entry.path)
            elif not os.access(entry.path, os.R_OK):
                missing = AccessDeniedError(f"File is not readable: {entry.arcname}", path=entry.path)
            else:
                missing = FileIOError(f"tar did not store {entry.arcname}", path=entry.path)
            results.append(AffectedEntry.from_error(entry.arcname, missing, entry.path))
        return results

    # ========== Extraction ==========

    async def _list_members(self, archive: Path) -> List[Tuple[str, bool]]:
        """Member names in archive order, each with whether it is a link."""
        names = [line for line in (await self._run_tar(["-tzf", str(archive)])).splitlines() if line]
        verbose = [line for line in (await self._run_tar(["-tvzf", str(archive)])).splitlines() if line]
        if len(names) != len(verbose):
            raise FileIOError(f"Could not list members of {archive.name}", path=archive)
        return [(name, line[:1] in LINK_TYPES) for name, line in zip(names, verbose)]

    async def extract(self, archive: Path, form: ArchiveForm, guard: PathGuard) -> List[AffectedEntry]:
        results: List[AffectedEntry] = []
        selected: Dict[str, int] = {}

        for name, is_link in await self._list_members(archive):
            if is_link:
                logger.warning(f"Skipping link member {name!r}")
                results.append(AffectedEntry.skipped(name, "Link members are not extracted"))
                continue
            try:
                parts = member_parts(name)
                member_destination(guard, name, create_parents=False)
            except FileWardError as e:
                logger.warning(f"Rejecting member {name!r}: {e}")
                results.append(AffectedEntry.from_error(name, e))
                continue
            selected[name] = len(results)
            results.append(AffectedEntry.ok(name, guard.root.joinpath(*parts)))

        if not selected:
            return results

        await self._run_tar([
            "-xzf", str(archive),
            "-C", str(guard.root),
            "--no-same-owner",
            "--no-recursion",
            "--",
            *selected,
        ])

        self._remove_escaping_links(guard, selected, results)
        return results

    def _remove_escaping_links(
        self,
        guard: PathGuard,
        selected: Dict[str, int],
        results: List[AffectedEntry],
    ) -> None:
        """Unlink extracted symlinks that point outside the destination."""
        by_relative = {"/".join(member_parts(name)): index for name, index in selected.items()}
        for node in walk_preorder(guard.root):
            if not node.is_symlink:
                continue
            index = by_relative.get(node.relative.as_posix())
            if index is None:
                continue
            try:
                guard.resolve(node.path)
            except OutOfBoundsError as e:
                link_target = os.readlink(node.path)
                os.unlink(node.path)
                logger.warning(f"Removed escaping link {node.relative} -> {link_target}")
                entry = results[index]
                entry.status = EntryStatus.FAILED
                entry.error_kind = e.error_kind
                entry.reason = f"Link target escapes the destination: {link_target}"
