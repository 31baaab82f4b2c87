"""Base class for download strategies."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import BinaryIO, Dict, Optional

from ..capabilities import CapabilityProfile
from ..config import FileManagerConfig


@dataclass
class FetchResponse:
    """What a completed transfer reported."""
    status_code: int
    final_url: str  # After redirects
    bytes_written: int
    expected_length: Optional[int] = None  # Content-Length, when the server sent one
    content_type: Optional[str] = None


class FetchStrategy(ABC):
    """Streams one URL into an open binary file."""

    name: str = "base"

    def __init__(self, config: FileManagerConfig):
        self.config = config

    @abstractmethod
    def is_available(self, profile: CapabilityProfile) -> bool:
        pass

    @abstractmethod
    async def download(self, url: str, out: BinaryIO) -> FetchResponse:
        """
        Download ``url`` into ``out``.

        Only a 2xx response body is written.

        Raises:
            NetworkError: On transport failure, a non-2xx status, too many
                          redirects or a transport-level timeout
        """
        pass

    def request_headers(self) -> Dict[str, str]:
        # identity keeps the byte count comparable with Content-Length
        return {
            "User-Agent": self.config.user_agent,
            "Accept-Encoding": "identity",
        }


def parse_content_length(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        length = int(value)
    except ValueError:
        return None
    return length if length >= 0 else None
