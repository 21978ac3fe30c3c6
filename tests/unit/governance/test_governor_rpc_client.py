from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from ingestion.governance.rpc_client import RpcClient
from utils.exceptions import RetriableValueError, RpcRequestError
from utils.rpc_utils import rpc_response_batch_to_results, rpc_response_to_result


class FakeResponse(object):
    def __init__(self, status=200, body=None):
        self.status = status
        self._body = body

    async def json(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


def make_client(responses, urls="http://node-1"):
    client = RpcClient(urls, max_retries=3, timeout=5, rpc_min_interval=0)
    session = MagicMock()
    session.closed = False
    session.close = AsyncMock()
    session.post = MagicMock(side_effect=responses)
    client._session = session
    return client, session


@pytest.fixture
def no_sleep():
    with patch("ingestion.governance.rpc_client.asyncio.sleep", new=AsyncMock()) as sleep:
        yield sleep


@pytest.mark.asyncio
async def test_get_latest_block_number(no_sleep):
    client, session = make_client([FakeResponse(body={"jsonrpc": "2.0", "id": 1, "result": "0x1b4"})])

    assert await client.get_latest_block_number() == 436
    payload = session.post.call_args.kwargs["json"]
    assert payload["method"] == "eth_blockNumber"


@pytest.mark.asyncio
async def test_get_logs_sends_address_range_and_topics(no_sleep):
    logs = [{"logIndex": "0x0"}]
    client, session = make_client([FakeResponse(body={"id": 1, "result": logs})])

    result = await client.get_logs(["0xabc"], 16, 31, topics=[["0x01", "0x02"]])

    assert result == logs
    log_filter = session.post.call_args.kwargs["json"]["params"][0]
    assert log_filter == {
        "address": ["0xabc"],
        "fromBlock": "0x10",
        "toBlock": "0x1f",
        "topics": [["0x01", "0x02"]],
    }


@pytest.mark.asyncio
async def test_get_logs_rejects_reversed_range():
    client, _ = make_client([])

    with pytest.raises(ValueError):
        await client.get_logs(["0xabc"], 10, 5)


@pytest.mark.asyncio
async def test_get_block_timestamps_batches_unique_blocks(no_sleep):
    body = [
        {"id": 2, "result": {"number": "0x65", "timestamp": "0x20"}},
        {"id": 1, "result": {"number": "0x64", "timestamp": "0x10"}},
    ]
    client, session = make_client([FakeResponse(body=body)])

    timestamps = await client.get_block_timestamps([101, 100, 101])

    assert timestamps == {100: 16, 101: 32}
    payloads = session.post.call_args.kwargs["json"]
    assert [p["params"][0] for p in payloads] == ["0x64", "0x65"]


@pytest.mark.asyncio
async def test_get_block_timestamps_without_blocks_skips_the_request():
    client, session = make_client([])

    assert await client.get_block_timestamps([]) == {}
    session.post.assert_not_called()


@pytest.mark.asyncio
async def test_fails_over_to_next_url_on_http_error(no_sleep):
    client, session = make_client(
        [FakeResponse(status=503), FakeResponse(body={"id": 1, "result": "0x1"})],
        urls=["http://node-1", "http://node-2"],
    )

    assert await client.get_latest_block_number() == 1
    assert [c.args[0] for c in session.post.call_args_list] == ["http://node-1", "http://node-2"]


@pytest.mark.asyncio
async def test_retries_network_errors_then_raises(no_sleep):
    client, session = make_client([aiohttp.ClientError("reset")] * 3)

    with pytest.raises(RpcRequestError):
        await client.get_latest_block_number()

    assert session.post.call_count == 3
    assert no_sleep.await_count == 2


@pytest.mark.asyncio
async def test_rate_limited_response_slows_requests_down(no_sleep):
    client, _ = make_client([FakeResponse(status=429), FakeResponse(body={"id": 1, "result": "0x2"})])

    assert await client.get_latest_block_number() == 2
    assert client._min_interval > 0


@pytest.mark.asyncio
async def test_close_closes_the_session():
    client, session = make_client([])

    await client.close()

    session.close.assert_awaited_once()


def test_rpc_response_to_result():
    assert rpc_response_to_result({"result": "0x1"}) == "0x1"

    with pytest.raises(RetriableValueError):
        rpc_response_to_result({"result": None})
    with pytest.raises(RetriableValueError):
        rpc_response_to_result({"error": {"code": -32000, "message": "header not found"}})
    with pytest.raises(ValueError) as error:
        rpc_response_to_result({"error": {"code": -32602, "message": "invalid params"}})
    assert not isinstance(error.value, RetriableValueError)


def test_batch_results_are_ordered_by_id():
    assert rpc_response_batch_to_results([{"id": 3, "result": "c"}, {"id": 1, "result": "a"}]) == ["a", "c"]
