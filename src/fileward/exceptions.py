"""
Fileward Exception Hierarchy

This module defines the exception hierarchy used by every component of the
confined file manager. Each exception carries an ``ErrorKind`` so engines can
fold raised errors into structured ``OperationResult`` values without losing
what went wrong.

The hierarchy is designed to:
1. Map one-to-one onto the error taxonomy reported to callers
2. Include rich context information (path, error code, timestamps)
3. Translate raw ``OSError`` values into taxonomy members in one place
"""

import errno
import time
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union


class ErrorKind(str, Enum):
    """Taxonomy of failures reported by file manager operations."""
    OUT_OF_BOUNDS = "out_of_bounds"  # Path escapes the confined root
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    NOT_EMPTY = "not_empty"
    PERMISSION_DENIED = "permission_denied"
    CAPABILITY_UNAVAILABLE = "capability_unavailable"  # No strategy for this host
    PARTIAL_FAILURE = "partial_failure"  # Aggregate with some failed sub-items
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    INVALID_REQUEST = "invalid_request"  # Malformed name, mode, URL or archive
    IO_ERROR = "io_error"  # Any other OS-level failure


class FileWardError(Exception):
    """
    Base exception class for all file manager errors.

    Attributes:
        error_kind: Taxonomy member used when folding into an OperationResult
        error_code: Unique error code for programmatic handling
        path: Path involved in the failure (if applicable)
        timestamp: When the error occurred
        context: Additional context information
        user_message: User-friendly error message
        developer_message: Detailed technical error message
        suggestion: Suggested fix or next steps (if applicable)
    """

    default_kind = ErrorKind.IO_ERROR

    def __init__(
        self,
        message: str,
        error_kind: Optional[ErrorKind] = None,
        error_code: str = "FILEWARD_ERROR",
        path: Optional[Union[str, Path]] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        suggestion: Optional[str] = None,
    ):
        """
        Initialize file manager error with rich context.

        Args:
            message: Technical error message for developers
            error_kind: Taxonomy member (defaults to the class default)
            error_code: Unique error code for programmatic handling
            path: Path involved in the failure
            context: Additional context information
            user_message: User-friendly error message
            suggestion: Suggested fix or next steps
        """
        super().__init__(message)
        self.error_kind = error_kind or self.default_kind
        self.error_code = error_code
        self.path = str(path) if path is not None else None
        self.timestamp = time.time()
        self.context = context or {}
        self.user_message = user_message or message
        self.developer_message = message
        self.suggestion = suggestion

    @property
    def message(self) -> str:
        """Developer message."""
        return self.developer_message

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_kind": self.error_kind.value,
            "error_code": self.error_code,
            "message": self.developer_message,
            "user_message": self.user_message,
            "path": self.path,
            "timestamp": self.timestamp,
            "context": self.context,
            "suggestion": self.suggestion,
        }

    def __str__(self) -> str:
        """String representation with context."""
        parts = [f"[{self.error_code}]", self.developer_message]
        if self.path and self.path not in self.developer_message:
            parts.append(f"(path: {self.path})")
        return " ".join(parts)


class OutOfBoundsError(FileWardError):
    """
    Raised when a path resolves outside the confined root.

    Always fatal for the operation and never retried.
    """

    default_kind = ErrorKind.OUT_OF_BOUNDS

    def __init__(self, message: str, root: Optional[Union[str, Path]] = None, **kwargs):
        self.root = str(root) if root is not None else None
        context = kwargs.pop("context", {})
        if root is not None:
            context["root"] = self.root
        super().__init__(
            message,
            error_code=kwargs.pop("error_code", "OUT_OF_BOUNDS"),
            context=context,
            user_message=kwargs.pop("user_message", "Path is outside the allowed directory."),
            **kwargs
        )


class EntryNotFoundError(FileWardError):
    """Raised when a required filesystem entry does not exist."""

    default_kind = ErrorKind.NOT_FOUND

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code=kwargs.pop("error_code", "NOT_FOUND"), **kwargs)


class AlreadyExistsError(FileWardError):
    """Raised when the target of a create or rename is already taken."""

    default_kind = ErrorKind.ALREADY_EXISTS

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code=kwargs.pop("error_code", "ALREADY_EXISTS"), **kwargs)


class NotEmptyError(FileWardError):
    """Raised when a plain delete targets a non-empty directory."""

    default_kind = ErrorKind.NOT_EMPTY

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            error_code=kwargs.pop("error_code", "NOT_EMPTY"),
            suggestion=kwargs.pop("suggestion", "Use delete_recursive to remove a directory tree."),
            **kwargs
        )


class AccessDeniedError(FileWardError):
    """Raised when the OS or the file manager refuses access to an entry."""

    default_kind = ErrorKind.PERMISSION_DENIED

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code=kwargs.pop("error_code", "PERMISSION_DENIED"), **kwargs)


class CapabilityUnavailableError(FileWardError):
    """
    Raised when no strategy can perform the requested operation on this host.

    Examples:
    - Fetching with networking disabled
    - Extracting a zip archive without native archive support
    """

    default_kind = ErrorKind.CAPABILITY_UNAVAILABLE

    def __init__(self, message: str, capability: Optional[str] = None, **kwargs):
        self.capability = capability
        context = kwargs.pop("context", {})
        if capability:
            context["capability"] = capability
        super().__init__(
            message,
            error_code=kwargs.pop("error_code", "CAPABILITY_UNAVAILABLE"),
            context=context,
            user_message=kwargs.pop("user_message", "This action is not supported on this server."),
            **kwargs
        )


class NetworkError(FileWardError):
    """Raised when a remote transfer fails (transport, status code, timeout)."""

    default_kind = ErrorKind.NETWORK_ERROR

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs
    ):
        self.url = url
        self.status_code = status_code
        context = kwargs.pop("context", {})
        if url:
            context["url"] = url
        if status_code is not None:
            context["status_code"] = status_code
        super().__init__(
            message,
            error_code=kwargs.pop("error_code", "NETWORK_ERROR"),
            context=context,
            **kwargs
        )


class OperationTimeoutError(FileWardError):
    """Raised when a caller-imposed deadline expires."""

    default_kind = ErrorKind.TIMEOUT

    def __init__(self, message: str, timeout_seconds: Optional[float] = None, **kwargs):
        self.timeout_seconds = timeout_seconds
        context = kwargs.pop("context", {})
        if timeout_seconds is not None:
            context["timeout_seconds"] = timeout_seconds
        super().__init__(
            message,
            error_code=kwargs.pop("error_code", "TIMEOUT"),
            context=context,
            **kwargs
        )


class InvalidRequestError(FileWardError):
    """Raised for malformed names, modes, URLs or unrecognized archives."""

    default_kind = ErrorKind.INVALID_REQUEST

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code=kwargs.pop("error_code", "INVALID_REQUEST"), **kwargs)


class FileIOError(FileWardError):
    """Raised for OS failures that have no more specific taxonomy member."""

    default_kind = ErrorKind.IO_ERROR

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code=kwargs.pop("error_code", "IO_ERROR"), **kwargs)


_ERRNO_TO_ERROR = {
    errno.ENOENT: EntryNotFoundError,
    errno.EEXIST: AlreadyExistsError,
    errno.ENOTEMPTY: NotEmptyError,
    errno.EACCES: AccessDeniedError,
    errno.EPERM: AccessDeniedError,
}


def error_from_os(exc: OSError, path: Optional[Union[str, Path]] = None) -> FileWardError:
    """
    Translate an ``OSError`` into the matching file manager error.

    Args:
        exc: The raised OS error
        path: Path involved (defaults to the error's own filename)

    Returns:
        FileWardError subclass instance chained to ``exc`` by the caller
    """
    if path is None:
        path = exc.filename
    message = exc.strerror or str(exc)
    if path is not None:
        message = f"{message}: {path}"

    if isinstance(exc, FileNotFoundError):
        return EntryNotFoundError(message, path=path)
    if isinstance(exc, FileExistsError):
        return AlreadyExistsError(message, path=path)
    if isinstance(exc, PermissionError):
        return AccessDeniedError(message, path=path)

    error_cls = _ERRNO_TO_ERROR.get(exc.errno, FileIOError)
    return error_cls(message, path=path)
