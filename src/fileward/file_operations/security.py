"""
Security framework for file operations.

This module couples path confinement with audit logging so every component
validates and records operations the same way.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..filesystem import PathGuard
from .config import FileManagerConfig

logger = logging.getLogger(__name__)

AUDIT_LOGGER_NAME = 'fileward.file_operations.audit'


class AuditLogger:
    """Logs file operations for audit purposes."""

    def __init__(self, config: FileManagerConfig):
        """
        Initialize audit logger.

        Args:
            config: File manager configuration
        """
        self.config = config
        self.log_file = config.log_file_path

        # Set up file logging if configured
        if self.log_file:
            self._setup_file_logging()

    def _setup_file_logging(self):
        """Set up file-based audit logging."""
        self.log_file.parent.mkdir(parents=True, exist_ok=True)

        audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
        target = str(self.log_file.resolve())
        for handler in audit_logger.handlers:
            if isinstance(handler, logging.FileHandler) and handler.baseFilename == target:
                return

        file_handler = logging.FileHandler(self.log_file)
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        audit_logger.addHandler(file_handler)
        audit_logger.setLevel(logging.INFO)

    def log_operation(
        self,
        operation: str,
        path: Union[str, Path],
        success: bool,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Log a file operation.

        Args:
            operation: Type of operation
            path: File path
            success: Whether operation succeeded
            details: Optional additional details
        """
        if not self.config.enable_audit_logging:
            return

        audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)

        status = "SUCCESS" if success else "FAILURE"
        message = f"{status} - {operation} - {path}"

        if details:
            detail_str = ", ".join(f"{k}={v}" for k, v in details.items())
            message += f" - {detail_str}"

        audit_logger.info(message)


class SecurityManager:
    """
    Coordinates path confinement and the audit trail.

    Engines receive one SecurityManager and call ``resolve`` on every path
    before touching it; there is no way to skip the check.
    """

    def __init__(self, config: FileManagerConfig, guard: Optional[PathGuard] = None):
        """
        Initialize security manager.

        Args:
            config: File manager configuration
            guard: Pre-built guard (defaults to one rooted at config.root_directory)
        """
        self.config = config
        self.guard = guard or PathGuard(config.root_directory)
        self.audit_logger = AuditLogger(config)

    @property
    def root(self) -> Path:
        return self.guard.root

    def resolve(self, path: Union[str, Path], follow_leaf: bool = True) -> Path:
        """Resolve a path through the guard (raises OutOfBoundsError)."""
        return self.guard.resolve(path, follow_leaf=follow_leaf)

    def resolve_child(self, directory: Union[str, Path], name: str) -> Path:
        """Resolve a direct child of a confined directory."""
        return self.guard.resolve_child(directory, name)

    def log_operation(
        self,
        operation: str,
        path: Union[str, Path],
        success: bool,
        details: Optional[Dict[str, Any]] = None
    ):
        """Log a file operation to audit trail."""
        self.audit_logger.log_operation(operation, path, success, details)
