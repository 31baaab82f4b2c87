"""
fileward - Confined File Manager Core

Filesystem management, archive packaging and remote downloads inside one
confined root directory, negotiating strategies against what the host
actually supports.
"""

__version__ = "0.1.0"

from .exceptions import (
    ErrorKind,
    FileWardError,
    OutOfBoundsError,
)
from .file_operations import (
    CapabilityProfile,
    FileManagerConfig,
    FileManagerTools,
    FileSystemEntry,
    OperationResult,
    Outcome,
    create_file_manager_tools,
    probe,
)
from .filesystem import PathGuard

__all__ = [
    # Version
    "__version__",
    # Main interface
    "FileManagerTools",
    "create_file_manager_tools",
    "FileManagerConfig",
    "CapabilityProfile",
    "probe",
    "PathGuard",
    # Results
    "FileSystemEntry",
    "OperationResult",
    "Outcome",
    # Errors
    "ErrorKind",
    "FileWardError",
    "OutOfBoundsError",
]
