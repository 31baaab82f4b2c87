"""Download strategy backed by aiohttp."""

import asyncio
import logging
from typing import BinaryIO

import aiohttp

from ...exceptions import NetworkError
from ..capabilities import CapabilityProfile
from .base import FetchResponse, FetchStrategy, parse_content_length

logger = logging.getLogger(__name__)


class AiohttpFetchStrategy(FetchStrategy):
    """Preferred strategy: native async streaming."""

    name = "aiohttp"

    def is_available(self, profile: CapabilityProfile) -> bool:
        return profile.has_http_client

    async def download(self, url: str, out: BinaryIO) -> FetchResponse:
        timeout = aiohttp.ClientTimeout(total=self.config.fetch_timeout_seconds)
        allow_redirects = self.config.max_redirects > 0

        try:
            async with aiohttp.ClientSession(
                timeout=timeout,
                headers=self.request_headers(),
                auto_decompress=False,
            ) as session:
                async with session.get(
                    url,
                    allow_redirects=allow_redirects,
                    # aiohttp raises once the redirect count reaches the bound
                    max_redirects=self.config.max_redirects + 1,
                    ssl=None if self.config.verify_tls else False,
                ) as response:
                    if not 200 <= response.status < 300:
                        raise NetworkError(
                            f"Server responded with HTTP {response.status}",
                            url=url,
                            status_code=response.status,
                        )

                    written = 0
                    async for chunk in response.content.iter_chunked(self.config.download_chunk_size):
                        out.write(chunk)
                        written += len(chunk)

                    return FetchResponse(
                        status_code=response.status,
                        final_url=str(response.url),
                        bytes_written=written,
                        expected_length=parse_content_length(response.headers.get("Content-Length")),
                        content_type=response.headers.get("Content-Type"),
                    )
        except aiohttp.TooManyRedirects as e:
            raise NetworkError(
                f"More than {self.config.max_redirects} redirects",
                url=url,
            ) from e
        except aiohttp.ClientError as e:
            logger.debug(f"aiohttp transfer of {url} failed: {e!r}")
            raise NetworkError(f"Download failed: {e}", url=url) from e
        except asyncio.TimeoutError as e:
            raise NetworkError(
                f"Download timed out after {self.config.fetch_timeout_seconds} seconds",
                url=url,
            ) from e
