"""Remote resource retrieval with capability-negotiated HTTP strategies."""

from .aiohttp_strategy import AiohttpFetchStrategy
from .base import FetchResponse, FetchStrategy
from .fetcher import Fetcher
from .requests_strategy import RequestsFetchStrategy

__all__ = [
    "Fetcher",
    "FetchResponse",
    "FetchStrategy",
    "AiohttpFetchStrategy",
    "RequestsFetchStrategy",
]
