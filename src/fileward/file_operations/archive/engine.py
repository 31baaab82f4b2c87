"""
Archive engine: planning, strategy selection and result aggregation.

The plan (which entries go into the archive, in which order, under which
names) is computed once and handed unchanged to whichever strategy the host
supports, so every strategy produces the same member layout.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional, Tuple, Union

from ...exceptions import (
    AccessDeniedError,
    AlreadyExistsError,
    CapabilityUnavailableError,
    EntryNotFoundError,
    FileWardError,
    InvalidRequestError,
    OutOfBoundsError,
    error_from_os,
)
from ...filesystem import PathGuard, staged_output, walk_preorder
from ..capabilities import CapabilityProfile
from ..config import FileManagerConfig
from ..data_models import AffectedEntry, ArchiveRequest, EntryStatus, OperationResult
from ..security import SecurityManager
from .base import ArchiveForm, ArchivePlan, ArchiveStrategy, PlannedEntry, detect_archive_form
from .copy_strategy import PlainCopyStrategy
from .tar_strategy import ShellTarStrategy
from .zip_strategy import NativeZipStrategy

logger = logging.getLogger(__name__)


class _NothingArchived(Exception):
    """Aborts staging when every source failed, so no archive is committed."""

    def __init__(self, affected: List[AffectedEntry], groups: List[bool]):
        super().__init__("No source could be archived")
        self.affected = affected
        self.groups = groups


class ArchiveEngine:
    """
    Creates and extracts archives with the best strategy the host supports.

    Strategies are ranked: in-process zip, then shell tar, then plain copy.
    The first available one is used; a failure is reported, not retried with
    the next strategy.
    """

    def __init__(
        self,
        config: FileManagerConfig,
        security: SecurityManager,
        profile: CapabilityProfile,
    ):
        self.config = config
        self.security = security
        self.profile = profile
        self.strategies: List[ArchiveStrategy] = [
            NativeZipStrategy(config),
            ShellTarStrategy(config),
            PlainCopyStrategy(config),
        ]

    def select_writer(self) -> ArchiveStrategy:
        for strategy in self.strategies:
            if strategy.is_available(self.profile):
                return strategy
        raise CapabilityUnavailableError("No archive strategy is available", capability="archive")

    def select_reader(self, form: ArchiveForm) -> Optional[ArchiveStrategy]:
        for strategy in self.strategies:
            if strategy.can_extract(form, self.profile):
                return strategy
        return None

    # ========== Creation ==========

    async def create_archive(self, request: ArchiveRequest) -> OperationResult:
        """
        Pack ``request.sources`` into one archive inside ``request.base_dir``.

        Every path is validated before anything is written; one out-of-bounds
        source fails the whole call. Per-source failures are collected and
        the remaining sources are still archived.
        """
        operation = "create_archive"
        try:
            strategy = self.select_writer()
            base_dir = self.security.resolve(request.base_dir)
            if not base_dir.is_dir():
                raise EntryNotFoundError(f"Directory not found: {request.base_dir}", path=base_dir)
            sources = [self.security.resolve(source) for source in request.sources]
            output = self._prepare_output(strategy, base_dir, request.archive_name)
        except FileWardError as e:
            logger.warning(f"Archive creation rejected: {e}")
            self.security.log_operation(operation, request.base_dir, False, {'error_kind': e.error_kind.value})
            return OperationResult.from_error(operation, e)

        notes = []
        if strategy.form != ArchiveForm.ZIP:
            notes.append(f"Zip support unavailable; produced {strategy.form.value} with {strategy.name}")
        if output.name != request.archive_name:
            notes.append(f"Archive saved as {output.name}")

        plan = self.build_plan(sources, exclude=output)
        writable = plan.writable_entries
        try:
            if not writable:
                affected, groups = self._merge(plan, [])
                raise _NothingArchived(affected, groups)
            with staged_output(output, directory=strategy.stages_directory, suffix=".tmp") as temp_path:
                written = await strategy.write(writable, temp_path)
                affected, groups = self._merge(plan, written)
                if not any(groups):
                    raise _NothingArchived(affected, groups)
        except _NothingArchived as e:
            result = OperationResult.from_entries(
                operation, e.affected, groups=e.groups, strategy_used=strategy.name, notes=notes
            )
            self.security.log_operation(operation, output, False, {'strategy': strategy.name})
            return result
        except FileWardError as e:
            logger.error(f"{strategy.name} failed to write {output}: {e}")
            self.security.log_operation(operation, output, False, {'strategy': strategy.name})
            return OperationResult.from_error(operation, e, strategy_used=strategy.name, notes=notes)
        except OSError as e:
            error = error_from_os(e, output)
            logger.error(f"{strategy.name} failed to write {output}: {error}")
            self.security.log_operation(operation, output, False, {'strategy': strategy.name})
            return OperationResult.from_error(operation, error, strategy_used=strategy.name, notes=notes)

        result = OperationResult.from_entries(
            operation,
            affected,
            groups=groups,
            output_path=output,
            strategy_used=strategy.name,
            notes=notes,
        )
        if result.succeeded:
            result.message = f"Archive created: {output.name}"
        logger.info(f"Created {output} with {strategy.name} ({result.outcome.value})")
        self.security.log_operation(operation, output, True, {
            'strategy': strategy.name,
            'sources': len(sources),
            'outcome': result.outcome.value,
        })
        return result

    def _prepare_output(self, strategy: ArchiveStrategy, base_dir: Path, archive_name: str) -> Path:
        output = self.security.resolve_child(base_dir, strategy.output_name(archive_name))
        if strategy.stages_directory:
            if os.path.lexists(output):
                raise AlreadyExistsError(f"'{output.name}' already exists", path=output)
            return output
        if output.is_symlink():
            output = self.security.resolve(output)
        if output.is_dir():
            raise AlreadyExistsError(f"A directory named '{output.name}' already exists", path=output)
        return output

    def build_plan(self, sources: List[Path], exclude: Optional[Path] = None) -> ArchivePlan:
        """
        Expand sources into ordered archive entries.

        A file source is stored under its leaf name. A directory source is
        stored under its leaf name followed by every descendant, depth-first,
        children in name order. Links to files inside both the source tree
        and the root are stored as files; other links are skipped.
        """
        plan = ArchivePlan(sources=list(sources))
        for index, source in enumerate(sources):
            name = source.name
            if not os.path.lexists(source):
                error = EntryNotFoundError(f"Source not found: {name}", path=source)
                plan.entries.append(self._problem(index, source, name, AffectedEntry.from_error(name, error, source)))
                continue
            if not self._readable(source):
                error = AccessDeniedError(f"Source is not readable: {name}", path=source)
                plan.entries.append(self._problem(index, source, name, AffectedEntry.from_error(name, error, source)))
                continue

            if source.is_dir():
                plan.entries.append(PlannedEntry(index, source, name, True))
                self._plan_tree(plan, index, source, exclude)
            elif source.is_file():
                plan.entries.append(PlannedEntry(index, source, name, False))
            else:
                # A requested source that cannot be stored fails; only descendants are skipped
                error = InvalidRequestError(f"Not a regular file or directory: {name}", path=source)
                plan.entries.append(self._problem(index, source, name, AffectedEntry.from_error(name, error, source)))

        logger.debug(f"Planned {len(plan.writable_entries)} of {len(plan.entries)} entries")
        return plan

    def _plan_tree(self, plan: ArchivePlan, index: int, source: Path, exclude: Optional[Path]) -> None:
        for node in walk_preorder(source):
            arcname = f"{source.name}/{node.relative.as_posix()}"
            if node.error is not None:
                error = error_from_os(node.error, node.path)
                problem = AffectedEntry.from_error(arcname, error, node.path)
                plan.entries.append(self._problem(index, node.path, arcname, problem))
                continue
            if exclude is not None and node.path == exclude:
                continue

            if node.is_symlink:
                reason = self._link_skip_reason(node.path, source)
                if reason:
                    logger.debug(f"Skipping link {node.path}: {reason}")
                    problem = AffectedEntry.skipped(arcname, reason, node.path)
                    plan.entries.append(self._problem(index, node.path, arcname, problem))
                    continue
            elif node.is_dir:
                plan.entries.append(PlannedEntry(index, node.path, arcname, True))
                continue
            elif not node.path.is_file():
                problem = AffectedEntry.skipped(arcname, "Not a regular file or directory", node.path)
                plan.entries.append(self._problem(index, node.path, arcname, problem))
                continue

            if not os.access(node.path, os.R_OK):
                error = AccessDeniedError(f"File is not readable: {arcname}", path=node.path)
                plan.entries.append(self._problem(index, node.path, arcname, AffectedEntry.from_error(arcname, error, node.path)))
                continue
            plan.entries.append(PlannedEntry(index, node.path, arcname, False))

    def _link_skip_reason(self, link: Path, source: Path) -> Optional[str]:
        try:
            target = self.security.resolve(link)
        except OutOfBoundsError:
            return "Link target is outside the root or missing"
        if not target.is_file():
            return "Link does not point to a regular file"
        if not target.is_relative_to(source):
            return "Link target is outside the archived tree"
        return None

    @staticmethod
    def _readable(path: Path) -> bool:
        if path.is_dir():
            return os.access(path, os.R_OK | os.X_OK)
        return os.access(path, os.R_OK)

    @staticmethod
    def _problem(index: int, path: Path, arcname: str, problem: AffectedEntry) -> PlannedEntry:
        return PlannedEntry(index, path, arcname, False, problem=problem)

    @staticmethod
    def _merge(plan: ArchivePlan, written: List[AffectedEntry]) -> Tuple[List[AffectedEntry], List[bool]]:
        """Interleave write results with planning problems; one success flag per source."""
        results = iter(written)
        affected: List[AffectedEntry] = []
        groups = [True] * len(plan.sources)
        for entry in plan.entries:
            outcome = entry.problem if entry.problem is not None else next(results)
            if outcome.status == EntryStatus.FAILED:
                groups[entry.source_index] = False
            affected.append(outcome)
        return affected, groups

    # ========== Extraction ==========

    async def extract_archive(
        self,
        archive_path: Union[str, Path],
        dest_dir: Optional[Union[str, Path]] = None,
    ) -> OperationResult:
        """
        Unpack an archive into ``dest_dir`` (default ``<stem>_extracted``).

        The form is detected from content. Every member is confined to the
        destination; members that would escape it are reported and skipped.
        """
        operation = "extract_archive"
        try:
            archive = self.security.resolve(archive_path)
            if not archive.exists():
                raise EntryNotFoundError(f"Archive not found: {archive_path}", path=archive)
            try:
                form = detect_archive_form(archive)
            except OSError as e:
                raise error_from_os(e, archive) from e

            strategy = self.select_reader(form)
            if strategy is None:
                raise CapabilityUnavailableError(
                    f"No available strategy can extract {form.value} archives",
                    capability=f"extract:{form.value}",
                    path=archive,
                )

            destination = self._prepare_destination(archive, dest_dir)
            guard = PathGuard(destination)
            affected = await strategy.extract(archive, form, guard)
        except FileWardError as e:
            logger.warning(f"Extraction of {archive_path} failed: {e}")
            self.security.log_operation(operation, archive_path, False, {'error_kind': e.error_kind.value})
            return OperationResult.from_error(operation, e)
        except OSError as e:
            error = error_from_os(e)
            logger.error(f"Extraction of {archive_path} failed: {error}")
            self.security.log_operation(operation, archive_path, False, {'error_kind': error.error_kind.value})
            return OperationResult.from_error(operation, error)

        result = OperationResult.from_entries(
            operation,
            affected,
            output_path=destination,
            strategy_used=strategy.name,
        )
        if result.succeeded:
            result.message = f"Extracted to {destination.name}"
        logger.info(f"Extracted {archive} with {strategy.name} ({result.outcome.value})")
        self.security.log_operation(operation, archive, True, {
            'destination': destination,
            'strategy': strategy.name,
            'outcome': result.outcome.value,
        })
        return result

    def _default_destination_name(self, archive: Path) -> str:
        name = archive.name
        if archive.is_file():
            if name.endswith(self.config.tar_suffix):
                name = name[:-len(self.config.tar_suffix)]
            else:
                name = archive.stem
        return f"{name}{self.config.extract_dir_suffix}"

    def _prepare_destination(self, archive: Path, dest_dir: Optional[Union[str, Path]]) -> Path:
        if dest_dir is None:
            destination = self.security.resolve_child(archive.parent, self._default_destination_name(archive))
            if destination.is_symlink():
                destination = self.security.resolve(destination)
        else:
            destination = self.security.resolve(dest_dir)

        if destination == archive or destination.is_relative_to(archive):
            raise InvalidRequestError("Cannot extract an archive into itself", path=destination)
        if os.path.lexists(destination) and not destination.is_dir():
            raise AlreadyExistsError(f"'{destination.name}' exists and is not a directory", path=destination)
        if not destination.exists():
            os.mkdir(destination)
            logger.debug(f"Created extraction directory {destination}")
        return destination
