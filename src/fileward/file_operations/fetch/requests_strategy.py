"""
Download strategy backed by requests.

requests is synchronous, so the request and every chunk read run in a worker
thread; cancellation takes effect between chunks.
"""

import asyncio
import logging
from typing import BinaryIO

import requests

from ...exceptions import NetworkError
from ..capabilities import CapabilityProfile
from .base import FetchResponse, FetchStrategy, parse_content_length

logger = logging.getLogger(__name__)

_DONE = object()


class RequestsFetchStrategy(FetchStrategy):
    """Fallback strategy: plain streaming HTTP."""

    name = "requests"

    def is_available(self, profile: CapabilityProfile) -> bool:
        return profile.has_outbound_http

    async def download(self, url: str, out: BinaryIO) -> FetchResponse:
        session = requests.Session()
        session.max_redirects = self.config.max_redirects
        session.headers.update(self.request_headers())
        try:
            response = await asyncio.to_thread(
                session.get,
                url,
                stream=True,
                timeout=self.config.fetch_timeout_seconds,
                verify=self.config.verify_tls,
                allow_redirects=self.config.max_redirects > 0,
            )
        except requests.exceptions.TooManyRedirects as e:
            session.close()
            raise NetworkError(f"More than {self.config.max_redirects} redirects", url=url) from e
        except requests.exceptions.RequestException as e:
            session.close()
            logger.debug(f"requests transfer of {url} failed: {e!r}")
            raise NetworkError(f"Download failed: {e}", url=url) from e

        try:
            if not 200 <= response.status_code < 300:
                raise NetworkError(
                    f"Server responded with HTTP {response.status_code}",
                    url=url,
                    status_code=response.status_code,
                )

            chunks = response.iter_content(chunk_size=self.config.download_chunk_size)
            written = 0
            while True:
                chunk = await asyncio.to_thread(next, chunks, _DONE)
                if chunk is _DONE:
                    break
                out.write(chunk)
                written += len(chunk)

            return FetchResponse(
                status_code=response.status_code,
                final_url=response.url,
                bytes_written=written,
                expected_length=parse_content_length(response.headers.get("Content-Length")),
                content_type=response.headers.get("Content-Type"),
            )
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Download interrupted: {e}", url=url) from e
        finally:
            response.close()
            session.close()
