"""
In-process archive strategy.

Writes ZIP archives with ``zipfile`` and reads both ZIP and gzip-compressed
tar archives. Every member is written through a staged temporary so an
interrupted extraction never leaves a truncated file behind.
"""

import asyncio
import gzip
import logging
import os
import shutil
import stat
import tarfile
import zipfile
import zlib
from pathlib import Path
from typing import BinaryIO, Callable, List

from ...exceptions import (
    AlreadyExistsError,
    CapabilityUnavailableError,
    FileWardError,
    InvalidRequestError,
    OutOfBoundsError,
    error_from_os,
)
from ...filesystem import PathGuard, staged_output
from ..capabilities import CapabilityProfile
from ..data_models import AffectedEntry
from .base import ArchiveForm, ArchiveStrategy, PlannedEntry, member_destination

logger = logging.getLogger(__name__)


def _write_member(open_source: Callable[[], BinaryIO], target: Path, mode: int) -> None:
    with staged_output(target) as temp_path:
        with open_source() as source, open(temp_path, "wb") as out:
            shutil.copyfileobj(source, out)
        if mode:
            os.chmod(temp_path, mode)


class NativeZipStrategy(ArchiveStrategy):
    """ZIP writer and ZIP/tar.gz reader backed by the standard library."""

    name = "native_zip"
    form = ArchiveForm.ZIP

    def is_available(self, profile: CapabilityProfile) -> bool:
        return profile.has_native_archive

    def can_extract(self, form: ArchiveForm, profile: CapabilityProfile) -> bool:
        return profile.has_native_archive and form in (ArchiveForm.ZIP, ArchiveForm.TAR_GZ)

    # ========== Creation ==========

    async def write(self, entries: List[PlannedEntry], output: Path) -> List[AffectedEntry]:
        results: List[AffectedEntry] = []
        try:
            with zipfile.ZipFile(output, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                for entry in entries:
                    try:
                        await asyncio.to_thread(zf.write, entry.path, entry.arcname)
                    except OSError as e:
                        error = error_from_os(e, entry.path)
                        logger.warning(f"Could not add {entry.path} to archive: {error}")
                        results.append(AffectedEntry.from_error(entry.arcname, error, entry.path))
                        continue
                    logger.debug(f"Added {entry.arcname}")
                    results.append(AffectedEntry.ok(entry.arcname, entry.path))
        except OSError as e:
            raise error_from_os(e, output) from e
        return results

    # ========== Extraction ==========

    async def extract(self, archive: Path, form: ArchiveForm, guard: PathGuard) -> List[AffectedEntry]:
        if form == ArchiveForm.ZIP:
            return await self._extract_zip(archive, guard)
        return await self._extract_tar(archive, guard)

    async def _extract_zip(self, archive: Path, guard: PathGuard) -> List[AffectedEntry]:
        results: List[AffectedEntry] = []
        try:
            with zipfile.ZipFile(archive) as zf:
                for info in zf.infolist():
                    results.append(await self._extract_zip_member(zf, info, guard))
        except zipfile.BadZipFile as e:
            raise InvalidRequestError(f"Corrupt zip archive: {e}", path=archive) from e
        return results

    async def _extract_zip_member(
        self,
        zf: zipfile.ZipFile,
        info: zipfile.ZipInfo,
        guard: PathGuard,
    ) -> AffectedEntry:
        name = info.filename
        unix_mode = info.external_attr >> 16
        if stat.S_ISLNK(unix_mode):
            logger.warning(f"Skipping link member {name!r}")
            return AffectedEntry.skipped(name, "Link members are not extracted")

        try:
            target = member_destination(guard, name)
            if info.is_dir():
                if not target.is_dir():
                    os.mkdir(target)
            else:
                if target.is_dir():
                    raise AlreadyExistsError(f"A directory is in the way of {name!r}", path=target)
                await asyncio.to_thread(_write_member, lambda: zf.open(info), target, unix_mode & 0o777)
        except FileWardError as e:
            logger.warning(f"Could not extract {name!r}: {e}")
            return AffectedEntry.from_error(name, e)
        except (zipfile.BadZipFile, zlib.error) as e:
            logger.warning(f"Corrupt member {name!r}: {e}")
            return AffectedEntry.from_error(name, InvalidRequestError(f"Corrupt member: {e}"))
        except RuntimeError as e:
            # zipfile refuses encrypted members without a password
            logger.warning(f"Cannot extract {name!r}: {e}")
            return AffectedEntry.from_error(name, InvalidRequestError(f"Encrypted member: {name}"))
        except NotImplementedError as e:
            logger.warning(f"Cannot extract {name!r}: {e}")
            return AffectedEntry.from_error(name, CapabilityUnavailableError(
                f"Unsupported compression for member {name}: {e}",
                capability=f"zip_compression:{info.compress_type}",
            ))
        except OSError as e:
            error = error_from_os(e)
            logger.warning(f"Could not extract {name!r}: {error}")
            return AffectedEntry.from_error(name, error)

        logger.debug(f"Extracted {name!r} -> {target}")
        return AffectedEntry.ok(name, target)

    async def _extract_tar(self, archive: Path, guard: PathGuard) -> List[AffectedEntry]:
        results: List[AffectedEntry] = []
        try:
            with tarfile.open(archive, "r:gz") as tf:
                while True:
                    member = await asyncio.to_thread(tf.next)
                    if member is None:
                        break
                    results.append(await self._extract_tar_member(tf, member, guard))
        except (tarfile.TarError, gzip.BadGzipFile, zlib.error, EOFError) as e:
            raise InvalidRequestError(f"Corrupt tar archive: {e}", path=archive) from e
        return results

    async def _extract_tar_member(
        self,
        tf: tarfile.TarFile,
        member: tarfile.TarInfo,
        guard: PathGuard,
    ) -> AffectedEntry:
        name = member.name
        if member.issym() or member.islnk():
            logger.warning(f"Skipping link member {name!r}")
            return AffectedEntry.skipped(name, "Link members are not extracted")
        if not (member.isdir() or member.isfile()):
            logger.warning(f"Skipping special member {name!r}")
            return AffectedEntry.skipped(name, "Special files are not extracted")

        try:
            try:
                member = tarfile.data_filter(member, str(guard.root))
            except tarfile.FilterError as e:
                raise OutOfBoundsError(f"Archive member rejected: {e}", root=guard.root) from e

            target = member_destination(guard, name)
            if member.isdir():
                if not target.is_dir():
                    os.mkdir(target)
            else:
                if target.is_dir():
                    raise AlreadyExistsError(f"A directory is in the way of {name!r}", path=target)
                await asyncio.to_thread(
                    _write_member, lambda: tf.extractfile(member), target, (member.mode or 0) & 0o777
                )
        except FileWardError as e:
            logger.warning(f"Could not extract {name!r}: {e}")
            return AffectedEntry.from_error(name, e)
        except (tarfile.TarError, zlib.error, EOFError) as e:
            logger.warning(f"Corrupt member {name!r}: {e}")
            return AffectedEntry.from_error(name, InvalidRequestError(f"Corrupt member: {e}"))
        except OSError as e:
            error = error_from_os(e)
            logger.warning(f"Could not extract {name!r}: {error}")
            return AffectedEntry.from_error(name, error)

        logger.debug(f"Extracted {name!r} -> {target}")
        return AffectedEntry.ok(name, target)
