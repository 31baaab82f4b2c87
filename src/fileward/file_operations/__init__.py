"""
Confined File Manager Operations

Provides filesystem management inside one confined root directory with:
- Path confinement enforced for every operation
- Single-entry mutations (create, delete, rename, chmod, upload)
- Archive creation and extraction negotiated against host capabilities
  (in-process zip, shell tar, plain directory copy)
- Remote downloads with staged, all-or-nothing writes
- Structured results and an audit trail
"""

from .capabilities import CapabilityProfile, probe
from .config import FileManagerConfig
from .core import FileManagerTools, create_file_manager_tools
from .data_models import (
    AffectedEntry,
    ArchiveRequest,
    EntryKind,
    EntryStatus,
    FetchRequest,
    FileSystemEntry,
    OperationResult,
    Outcome,
)
from .security import AuditLogger, SecurityManager

__all__ = [
    # Main interface
    "FileManagerTools",
    "create_file_manager_tools",
    # Configuration
    "FileManagerConfig",
    "CapabilityProfile",
    "probe",
    # Security
    "SecurityManager",
    "AuditLogger",
    # Data models
    "FileSystemEntry",
    "AffectedEntry",
    "OperationResult",
    "ArchiveRequest",
    "FetchRequest",
    # Enums
    "EntryKind",
    "EntryStatus",
    "Outcome",
]

__version__ = "0.1.0"
