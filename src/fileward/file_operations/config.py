"""
Configuration for the confined file manager.

This module defines the configuration class controlling the confinement root,
capability switches, network policy, archive naming and audit logging.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_USER_AGENT = "fileward/0.1.0"


@dataclass
class FileManagerConfig:
    """
    Configuration for the file manager.

    Capability switches can only turn features off: a feature the host cannot
    provide stays unavailable even if its switch is on.
    """

    # === Confinement ===

    root_directory: Optional[Path] = None
    """Confined root (defaults to cwd). Every path handed to an operation must resolve inside it."""

    # === Capability Switches ===

    allow_shell_exec: bool = True
    """Whether external commands (tar) may be executed."""

    allow_network: bool = True
    """Whether outbound HTTP is allowed at all."""

    # === Fetch Policy ===

    fetch_timeout_seconds: float = 300.0
    """Total time allowed for one download, connection included."""

    max_redirects: int = 10
    """Maximum redirects followed during a download. 0 disables redirects."""

    verify_tls: bool = True
    """Whether TLS certificates are verified for https URLs."""

    user_agent: str = DEFAULT_USER_AGENT
    """User-Agent header sent with downloads."""

    download_chunk_size: int = 64 * 1024
    """Bytes read per chunk while streaming a download or upload to disk."""

    # === Archive Settings ===

    shell_timeout_seconds: float = 300.0
    """Maximum runtime of a single tar invocation."""

    tar_executable: str = "tar"
    """Name or path of the tar executable used by the shell strategy."""

    tar_suffix: str = ".tar.gz"
    """Suffix of archives produced by the shell strategy."""

    archive_dir_suffix: str = "_archive"
    """Suffix of directory 'archives' produced by the plain-copy fallback."""

    extract_dir_suffix: str = "_extracted"
    """Suffix of the default extraction directory next to an archive."""

    # === Logging ===

    enable_audit_logging: bool = True
    """Whether to log all mutating operations for audit purposes."""

    log_file_path: Optional[Path] = None
    """Path to audit log file. If None, logs to standard logging only."""

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.root_directory is None:
            self.root_directory = Path.cwd()
        if not isinstance(self.root_directory, Path):
            self.root_directory = Path(self.root_directory)

        self.root_directory = self.root_directory.expanduser().resolve()
        self.root_directory.mkdir(parents=True, exist_ok=True)

        if self.log_file_path is not None and not isinstance(self.log_file_path, Path):
            self.log_file_path = Path(self.log_file_path)

        if self.fetch_timeout_seconds <= 0:
            raise ValueError("fetch_timeout_seconds must be positive")

        if self.shell_timeout_seconds <= 0:
            raise ValueError("shell_timeout_seconds must be positive")

        if self.max_redirects < 0:
            raise ValueError("max_redirects must not be negative")

        if self.download_chunk_size <= 0:
            raise ValueError("download_chunk_size must be positive")

        for name in ("tar_suffix", "archive_dir_suffix", "extract_dir_suffix"):
            value = getattr(self, name)
            if not value or "/" in value:
                raise ValueError(f"{name} must be a non-empty name fragment")

    @classmethod
    def create_offline(cls, root_directory: Path) -> 'FileManagerConfig':
        """
        Create a configuration with networking and shell execution disabled.

        Useful for isolated hosts and for tests that must not reach out.

        Args:
            root_directory: Confined root

        Returns:
            Offline FileManagerConfig
        """
        return cls(
            root_directory=root_directory,
            allow_shell_exec=False,
            allow_network=False,
        )

    @classmethod
    def create_restrictive(cls, root_directory: Path) -> 'FileManagerConfig':
        """
        Create a restrictive configuration for untrusted environments.

        Shell execution is disabled, downloads get a short timeout and no
        redirects.

        Args:
            root_directory: Required confined root

        Returns:
            Restrictive FileManagerConfig
        """
        return cls(
            root_directory=root_directory,
            allow_shell_exec=False,
            fetch_timeout_seconds=60.0,
            max_redirects=0,
            verify_tls=True,
        )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"FileManagerConfig(root={self.root_directory}, "
            f"shell={self.allow_shell_exec}, "
            f"network={self.allow_network}, "
            f"timeout={self.fetch_timeout_seconds}s)"
        )
