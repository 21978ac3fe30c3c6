import asyncio
import random
import time
from typing import Any, Dict, Iterable, List, Optional, Union

import aiohttp

from utils.exceptions import RetriableValueError, RpcRequestError
from utils.formatter_utils import hex_to_dec, validate_block_range
from utils.logger_utils import get_logger
from utils.rpc_utils import generate_json_rpc, rpc_response_batch_to_results, rpc_response_to_result

logger = get_logger("Rpc Client")


class RpcClient(object):
    """
    JSON-RPC client for the reads the Governor indexer performs in bulk:
    head block number, contract logs and block timestamps.

    Uses a persistent ClientSession, fails over across the given URLs,
    spaces requests by a minimum interval and slows down adaptively on HTTP 429.
    """

    def __init__(
        self,
        rpc_url: Union[str, List[str]],
        max_retries: int = 5,
        timeout: int = 60,
        rpc_min_interval: float = 0.15,
    ):
        if isinstance(rpc_url, str):
            self.rpc_urls = [rpc_url]
        else:
            self.rpc_urls = list(rpc_url)

        if not self.rpc_urls:
            raise ValueError("At least one RPC URL must be provided.")

        self.id_counter = 0
        self.max_retries = max_retries
        self.timeout = aiohttp.ClientTimeout(total=timeout)

        self._session: Optional[aiohttp.ClientSession] = None

        self._last_request_time = 0.0
        self._min_interval = rpc_min_interval

    async def _get_session(self) -> aiohttp.ClientSession:
        """Lazy loads or returns the existing session."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(limit=100, force_close=False)
            self._session = aiohttp.ClientSession(connector=connector, timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    def _generate_id(self) -> int:
        self.id_counter += 1
        return self.id_counter

    async def _enforce_rate_limit(self) -> None:
        """Ensures a minimum interval between requests to avoid bursting."""
        elapsed = time.monotonic() - self._last_request_time
        if elapsed < self._min_interval:
            await asyncio.sleep(self._min_interval - elapsed)
        self._last_request_time = time.monotonic()

    async def _handle_429_backoff(self, url: str, attempt: int, method_name: str) -> None:
        # Slow every later request down by 50%, capped at 2s per request
        previous_interval = self._min_interval
        self._min_interval = min(max(self._min_interval, 0.05) * 1.5, 2.0)

        if self._min_interval > previous_interval:
            logger.warning(
                f"RPC 429 Rate Limit at {url}. Increasing per-request delay "
                f"from {previous_interval:.2f}s to {self._min_interval:.2f}s"
            )

        backoff_time = (2 ** (attempt - 1)) + random.uniform(0, 1)
        logger.warning(f"RPC 429 at {url} for {method_name}. Backing off for {backoff_time:.2f}s...")
        await asyncio.sleep(backoff_time)

    async def get_latest_block_number(self) -> int:
        payload = generate_json_rpc("eth_blockNumber", [], self._generate_id())
        return hex_to_dec(await self._make_request("eth_blockNumber", payload))

    async def get_logs(
        self,
        addresses: List[str],
        from_block: int,
        to_block: int,
        topics: Optional[List[Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Returns raw log objects emitted by `addresses` in the inclusive block range."""
        validate_block_range(from_block, to_block)
        log_filter: Dict[str, Any] = {
            "address": addresses,
            "fromBlock": hex(from_block),
            "toBlock": hex(to_block),
        }
        if topics:
            log_filter["topics"] = topics

        payload = generate_json_rpc("eth_getLogs", [log_filter], self._generate_id())
        return await self._make_request(f"eth_getLogs {from_block}-{to_block}", payload)

    async def get_block_timestamps(self, block_numbers: Iterable[int]) -> Dict[int, int]:
        """Fetches header timestamps for the given blocks with one batch request."""
        numbers = sorted(set(block_numbers))
        if not numbers:
            return {}

        payloads = [
            generate_json_rpc("eth_getBlockByNumber", [hex(number), False], self._generate_id())
            for number in numbers
        ]
        blocks = await self._make_batch_request("batch_eth_getBlockByNumber", payloads)
        return {hex_to_dec(block["number"]): hex_to_dec(block["timestamp"]) for block in blocks}

    async def _make_request(self, method_name: str, payload: Dict[str, Any]) -> Any:
        return await self._post_with_retries(method_name, payload, rpc_response_to_result)

    async def _make_batch_request(self, method_name: str, payloads: List[Dict[str, Any]]) -> List[Any]:
        return await self._post_with_retries(method_name, payloads, rpc_response_batch_to_results)

    async def _post_with_retries(self, method_name: str, payload: Any, unwrap) -> Any:
        session = await self._get_session()

        for attempt in range(1, self.max_retries + 1):
            for url in self.rpc_urls:
                try:
                    await self._enforce_rate_limit()
                    async with session.post(url, json=payload) as response:
                        if response.status == 200:
                            return unwrap(await response.json())
                        elif response.status == 429:
                            await self._handle_429_backoff(url, attempt, method_name)
                        else:
                            logger.error(f"RPC HTTP Error {response.status} in {method_name} at {url}. Trying next provider...")
                except RetriableValueError as e:
                    logger.warning(f"Retriable RPC error in {method_name} at {url}: {e}")
                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                    logger.warning(f"Network error in {method_name} at {url}: {e}")

            if attempt < self.max_retries:
                wait_time = (2 ** attempt) + random.uniform(0, 1)
                logger.warning(
                    f"All providers failed for {method_name} (Attempt {attempt}/{self.max_retries}). "
                    f"Retrying in {wait_time:.2f}s..."
                )
                await asyncio.sleep(wait_time)

        logger.critical(f"FAILED {method_name} on all providers after {self.max_retries} attempts.")
        raise RpcRequestError(method_name, self.max_retries)
