"""
Remote resource retrieval into the confined tree.

The body is streamed into a hidden temporary file next to the final name and
renamed into place only after a complete, successful transfer.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import List, Optional

from ...exceptions import (
    AlreadyExistsError,
    CapabilityUnavailableError,
    EntryNotFoundError,
    FileWardError,
    InvalidRequestError,
    NetworkError,
    error_from_os,
)
from ...filesystem import staged_output
from ..capabilities import CapabilityProfile
from ..config import FileManagerConfig
from ..data_models import AffectedEntry, FetchRequest, OperationResult
from ..security import SecurityManager
from .aiohttp_strategy import AiohttpFetchStrategy
from .base import FetchStrategy
from .requests_strategy import RequestsFetchStrategy

logger = logging.getLogger(__name__)


class Fetcher:
    """Downloads URLs with the best HTTP strategy the host supports."""

    def __init__(
        self,
        config: FileManagerConfig,
        security: SecurityManager,
        profile: CapabilityProfile,
    ):
        self.config = config
        self.security = security
        self.profile = profile
        self.strategies: List[FetchStrategy] = [
            AiohttpFetchStrategy(config),
            RequestsFetchStrategy(config),
        ]

    def select_strategy(self) -> Optional[FetchStrategy]:
        for strategy in self.strategies:
            if strategy.is_available(self.profile):
                return strategy
        return None

    async def fetch(self, request: FetchRequest) -> OperationResult:
        """
        Download ``request.url`` as ``destination_dir/suggested_name``.

        Non-2xx responses, transport errors, timeouts and bodies shorter than
        the announced Content-Length all fail with NETWORK_ERROR and leave
        nothing at the final name. There are no retries.
        """
        operation = "fetch"
        strategy = self.select_strategy()
        name = request.suggested_name

        try:
            if strategy is None:
                raise CapabilityUnavailableError(
                    "Outbound HTTP is not available on this host",
                    capability="outbound_http",
                )
            target = self._prepare_target(request)

            with staged_output(target, suffix=".download") as temp_path:
                with open(temp_path, "wb") as out:
                    try:
                        response = await asyncio.wait_for(
                            strategy.download(request.url, out),
                            timeout=self.config.fetch_timeout_seconds,
                        )
                    except asyncio.TimeoutError as e:
                        raise NetworkError(
                            f"Download timed out after {self.config.fetch_timeout_seconds} seconds",
                            url=request.url,
                        ) from e

                if response.expected_length is not None and response.bytes_written != response.expected_length:
                    raise NetworkError(
                        f"Incomplete download: received {response.bytes_written} of "
                        f"{response.expected_length} bytes",
                        url=request.url,
                        status_code=response.status_code,
                    )
        except FileWardError as e:
            logger.warning(f"Fetch of {request.url} failed: {e}")
            self.security.log_operation(operation, request.url, False, {'error_kind': e.error_kind.value})
            return OperationResult.from_error(
                operation,
                e,
                affected=[AffectedEntry.from_error(name, e)],
                strategy_used=strategy.name if strategy else None,
            )
        except OSError as e:
            error = error_from_os(e)
            logger.error(f"Could not save {request.url}: {error}")
            self.security.log_operation(operation, request.url, False, {'error_kind': error.error_kind.value})
            return OperationResult.from_error(
                operation,
                error,
                affected=[AffectedEntry.from_error(name, error)],
                strategy_used=strategy.name,
            )

        logger.info(f"Downloaded {request.url} -> {target} ({response.bytes_written} bytes via {strategy.name})")
        self.security.log_operation(operation, target, True, {
            'url': request.url,
            'bytes': response.bytes_written,
            'strategy': strategy.name,
        })
        result = OperationResult.success(
            operation,
            message=f"File downloaded: {target.name}",
            affected=[AffectedEntry.ok(target.name, target)],
            output_path=target,
            strategy_used=strategy.name,
        )
        if response.final_url != request.url:
            result.notes.append(f"Redirected to {response.final_url}")
        return result

    def _prepare_target(self, request: FetchRequest) -> Path:
        directory = self.security.resolve(request.destination_dir)
        if not directory.exists():
            raise EntryNotFoundError(f"Directory not found: {request.destination_dir}", path=directory)
        if not directory.is_dir():
            raise InvalidRequestError(f"Not a directory: {request.destination_dir}", path=directory)

        target = self.security.resolve_child(directory, request.suggested_name)
        if target.is_symlink():
            target = self.security.resolve(target)
        if target.is_dir():
            raise AlreadyExistsError(f"A directory named '{target.name}' already exists", path=target)
        if os.path.lexists(target):
            logger.info(f"Replacing existing file {target}")
        return target
