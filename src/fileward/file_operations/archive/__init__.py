"""
Archive creation and extraction with capability-negotiated strategies.

Example:
    >>> engine = ArchiveEngine(config, security, profile)
    >>> result = await engine.create_archive(
    ...     ArchiveRequest(sources=[Path("docs")], archive_name="docs.zip", base_dir=Path("."))
    ... )
    >>> result.strategy_used
    'native_zip'
"""

from .base import ArchiveForm, ArchivePlan, ArchiveStrategy, PlannedEntry, detect_archive_form
from .copy_strategy import PlainCopyStrategy
from .engine import ArchiveEngine
from .tar_strategy import ShellTarStrategy
from .zip_strategy import NativeZipStrategy

__all__ = [
    "ArchiveEngine",
    "ArchiveForm",
    "ArchivePlan",
    "ArchiveStrategy",
    "PlannedEntry",
    "NativeZipStrategy",
    "ShellTarStrategy",
    "PlainCopyStrategy",
    "detect_archive_form",
]
