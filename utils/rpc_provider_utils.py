from urllib.parse import urlparse

import aiohttp
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.providers.async_base import AsyncBaseProvider

from utils.logger_utils import get_logger

logger = get_logger("RPC Provider Utils")

DEFAULT_TIMEOUT = 60


def get_async_provider_from_uri(uri_string: str, timeout: int = DEFAULT_TIMEOUT) -> AsyncBaseProvider:
    """
    Creates an asynchronous Web3 provider based on the URI scheme.
    Only HTTP/HTTPS endpoints are supported.
    """
    uri = urlparse(uri_string)

    if uri.scheme == "http" or uri.scheme == "https":
        request_kwargs = {"timeout": aiohttp.ClientTimeout(total=timeout)}
        return AsyncHTTPProvider(uri_string, request_kwargs=request_kwargs)
    else:
        raise ValueError(f"Unknown uri scheme {uri_string}. Supported: http, https")


def get_async_web3(uri_string: str, timeout: int = DEFAULT_TIMEOUT) -> AsyncWeb3:
    logger.info(f"Connecting AsyncWeb3 to {uri_string}")
    return AsyncWeb3(get_async_provider_from_uri(uri_string, timeout=timeout))
