"""
Host capability detection.

The profile is probed once when the file manager is built and injected into
the archive and fetch engines, so strategy selection never consults ambient
state mid-request.
"""

import importlib.util
import logging
import os
import platform
import shutil
from dataclasses import asdict, dataclass
from typing import Any, Dict

from .config import FileManagerConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapabilityProfile:
    """Immutable description of what this host can do."""
    has_native_archive: bool  # zlib available: zip deflate and gzip in-process
    has_shell_exec: bool  # External tar may be executed
    has_outbound_http: bool  # Plain streaming HTTP (requests)
    has_http_client: bool  # Full-featured async HTTP client (aiohttp)
    is_posix: bool  # POSIX permission semantics

    @property
    def can_fetch(self) -> bool:
        return self.has_http_client or self.has_outbound_http

    @property
    def can_shell_tar(self) -> bool:
        return self.has_shell_exec and self.is_posix

    def to_dict(self) -> Dict[str, Any]:
        """Server information report for the presentation layer."""
        report = asdict(self)
        report.update({
            "can_fetch": self.can_fetch,
            "python_version": platform.python_version(),
            "platform": platform.system(),
        })
        return report

    def __str__(self) -> str:
        flags = [name for name, value in asdict(self).items() if value]
        return f"CapabilityProfile({', '.join(flags) or 'none'})"


def _module_available(name: str) -> bool:
    try:
        return importlib.util.find_spec(name) is not None
    except (ImportError, ValueError):
        return False


def probe(config: FileManagerConfig) -> CapabilityProfile:
    """
    Detect host capabilities, honoring the configuration switches.

    Args:
        config: File manager configuration

    Returns:
        CapabilityProfile for the lifetime of the process
    """
    is_posix = os.name == "posix"
    has_native_archive = _module_available("zlib")

    has_shell_exec = False
    if config.allow_shell_exec:
        has_shell_exec = shutil.which(config.tar_executable) is not None
        if not has_shell_exec:
            logger.info(f"Shell archiving unavailable: '{config.tar_executable}' not found on PATH")

    has_outbound_http = config.allow_network and _module_available("requests")
    has_http_client = config.allow_network and _module_available("aiohttp")

    profile = CapabilityProfile(
        has_native_archive=has_native_archive,
        has_shell_exec=has_shell_exec,
        has_outbound_http=has_outbound_http,
        has_http_client=has_http_client,
        is_posix=is_posix,
    )
    logger.info(f"Probed host capabilities: {profile}")
    return profile
