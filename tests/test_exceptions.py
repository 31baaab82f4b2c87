"""
Tests for the fileward.exceptions module.

This module tests:
- FileWardError base class
- Specialized exception classes and their error kinds
- OSError translation
"""

import errno

import pytest

from fileward.exceptions import (
    AccessDeniedError,
    AlreadyExistsError,
    CapabilityUnavailableError,
    EntryNotFoundError,
    ErrorKind,
    FileIOError,
    FileWardError,
    InvalidRequestError,
    NetworkError,
    NotEmptyError,
    OperationTimeoutError,
    OutOfBoundsError,
    error_from_os,
)


# =============================================================================
# FileWardError Tests
# =============================================================================

class TestFileWardError:
    """Tests for the base FileWardError class."""

    def test_basic_creation(self):
        """Test creating basic exception."""
        error = FileWardError("Something went wrong")

        assert "Something went wrong" in str(error)
        assert error.error_kind == ErrorKind.IO_ERROR
        assert error.error_code == "FILEWARD_ERROR"

    def test_str_includes_code_and_path(self):
        """Test string form carries the error code and the path."""
        error = FileWardError("Broken", error_code="ERR001", path="/srv/files/a.txt")

        assert str(error) == "[ERR001] Broken (path: /srv/files/a.txt)"

    def test_path_not_repeated_when_in_message(self):
        error = FileWardError("Cannot read /tmp/x", path="/tmp/x")

        assert str(error).count("/tmp/x") == 1

    def test_with_all_attributes(self):
        """Test exception with all optional attributes."""
        error = FileWardError(
            "Test error",
            error_kind=ErrorKind.NOT_FOUND,
            error_code="ERR001",
            path="a.txt",
            context={"key": "value"},
            user_message="User-friendly message",
            suggestion="Try this fix",
        )

        assert error.error_kind == ErrorKind.NOT_FOUND
        assert error.context == {"key": "value"}
        assert error.user_message == "User-friendly message"
        assert error.developer_message == "Test error"
        assert error.message == "Test error"
        assert error.suggestion == "Try this fix"

    def test_to_dict(self):
        """Test serialization to dictionary."""
        error = FileWardError("Test error", error_code="ERR001", path="a.txt")

        result = error.to_dict()

        assert result["error_type"] == "FileWardError"
        assert result["error_kind"] == "io_error"
        assert result["error_code"] == "ERR001"
        assert result["path"] == "a.txt"
        assert result["timestamp"] > 0


# =============================================================================
# Specialized Exception Tests
# =============================================================================

class TestSpecializedErrors:
    """Tests for the taxonomy-specific subclasses."""

    @pytest.mark.parametrize("error_cls,kind", [
        (OutOfBoundsError, ErrorKind.OUT_OF_BOUNDS),
        (EntryNotFoundError, ErrorKind.NOT_FOUND),
        (AlreadyExistsError, ErrorKind.ALREADY_EXISTS),
        (NotEmptyError, ErrorKind.NOT_EMPTY),
        (AccessDeniedError, ErrorKind.PERMISSION_DENIED),
        (CapabilityUnavailableError, ErrorKind.CAPABILITY_UNAVAILABLE),
        (NetworkError, ErrorKind.NETWORK_ERROR),
        (OperationTimeoutError, ErrorKind.TIMEOUT),
        (InvalidRequestError, ErrorKind.INVALID_REQUEST),
        (FileIOError, ErrorKind.IO_ERROR),
    ])
    def test_default_kind(self, error_cls, kind):
        error = error_cls("failure")

        assert isinstance(error, FileWardError)
        assert error.error_kind == kind

    def test_out_of_bounds_records_root(self):
        error = OutOfBoundsError("Escapes", root="/srv/files", path="../etc")

        assert error.root == "/srv/files"
        assert error.context["root"] == "/srv/files"
        assert error.error_code == "OUT_OF_BOUNDS"
        assert error.user_message == "Path is outside the allowed directory."

    def test_not_empty_suggests_recursive_delete(self):
        error = NotEmptyError("Directory is not empty")

        assert "delete_recursive" in error.suggestion

    def test_network_error_context(self):
        error = NetworkError("Bad status", url="http://example.com/a", status_code=404)

        assert error.status_code == 404
        assert error.context == {"url": "http://example.com/a", "status_code": 404}

    def test_capability_context(self):
        error = CapabilityUnavailableError("No zip", capability="archive")

        assert error.capability == "archive"
        assert error.context["capability"] == "archive"

    def test_timeout_context(self):
        error = OperationTimeoutError("Too slow", timeout_seconds=2.5)

        assert error.timeout_seconds == 2.5
        assert error.context["timeout_seconds"] == 2.5

    def test_custom_error_code_is_kept(self):
        error = EntryNotFoundError("Missing", error_code="CUSTOM")

        assert error.error_code == "CUSTOM"


# =============================================================================
# OSError Translation Tests
# =============================================================================

class TestErrorFromOs:
    """Tests for error_from_os."""

    def test_file_not_found(self):
        error = error_from_os(FileNotFoundError(errno.ENOENT, "No such file", "/x/a"))

        assert isinstance(error, EntryNotFoundError)
        assert error.path == "/x/a"

    def test_file_exists(self):
        error = error_from_os(FileExistsError(errno.EEXIST, "File exists"), path="/x/a")

        assert isinstance(error, AlreadyExistsError)
        assert error.path == "/x/a"

    def test_permission_error(self):
        error = error_from_os(PermissionError(errno.EACCES, "Permission denied"))

        assert isinstance(error, AccessDeniedError)

    def test_errno_not_empty(self):
        error = error_from_os(OSError(errno.ENOTEMPTY, "Directory not empty"))

        assert isinstance(error, NotEmptyError)

    def test_unknown_errno_is_io_error(self):
        error = error_from_os(OSError(errno.EIO, "I/O error"))

        assert isinstance(error, FileIOError)
        assert error.error_kind == ErrorKind.IO_ERROR
        assert "I/O error" in error.message
