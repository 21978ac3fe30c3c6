from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ingestion.blockchainetl.streaming.streamer import Streamer


@pytest.fixture
def adapter():
    mock_adapter = MagicMock()
    mock_adapter.open = AsyncMock()
    mock_adapter.close = AsyncMock()
    mock_adapter.export_all = AsyncMock()
    mock_adapter.get_current_block_number = AsyncMock(return_value=1000)
    return mock_adapter


@pytest.fixture
def last_synced_block_file(tmp_path):
    return str(tmp_path / "last_synced_block.txt")


@pytest.mark.asyncio
async def test_streams_bounded_range_in_batches(adapter, last_synced_block_file):
    streamer = Streamer(
        adapter,
        last_synced_block_file=last_synced_block_file,
        start_block=100,
        end_block=250,
        block_batch_size=100,
        period_seconds=1,
    )

    await streamer.stream()

    assert [c.args for c in adapter.export_all.await_args_list] == [(100, 199), (200, 250)]
    adapter.open.assert_awaited_once()
    adapter.close.assert_awaited_once()
    with open(last_synced_block_file) as f:
        assert f.read().strip() == "250"


@pytest.mark.asyncio
async def test_resumes_from_last_synced_block_file(adapter, last_synced_block_file):
    with open(last_synced_block_file, "w") as f:
        f.write("199\n")

    streamer = Streamer(adapter, last_synced_block_file=last_synced_block_file, end_block=250, block_batch_size=100)
    await streamer.stream()

    adapter.export_all.assert_awaited_once_with(200, 250)


def test_start_block_with_existing_progress_file_is_rejected(adapter, last_synced_block_file):
    with open(last_synced_block_file, "w") as f:
        f.write("10\n")

    with pytest.raises(ValueError):
        Streamer(adapter, last_synced_block_file=last_synced_block_file, start_block=5)


@pytest.mark.asyncio
async def test_lag_keeps_target_behind_head(adapter, last_synced_block_file):
    adapter.get_current_block_number.return_value = 120
    streamer = Streamer(adapter, last_synced_block_file=last_synced_block_file, start_block=100, lag=10)

    assert await streamer._sync_cycle() == 11
    adapter.export_all.assert_awaited_once_with(100, 110)
    assert streamer.last_synced_block == 110


@pytest.mark.asyncio
async def test_failed_cycle_does_not_advance_progress(adapter, last_synced_block_file):
    adapter.export_all.side_effect = RuntimeError("node down")
    streamer = Streamer(
        adapter, last_synced_block_file=last_synced_block_file, start_block=100, end_block=150, retry_errors=False
    )

    with pytest.raises(RuntimeError):
        await streamer.stream()

    adapter.close.assert_awaited_once()
    with open(last_synced_block_file) as f:
        assert f.read().strip() == "99"


@pytest.mark.asyncio
async def test_retries_failed_cycle_after_sleeping(adapter, last_synced_block_file):
    adapter.export_all.side_effect = [RuntimeError("node down"), None]
    streamer = Streamer(
        adapter, last_synced_block_file=last_synced_block_file, start_block=100, end_block=150, period_seconds=3
    )

    with patch("ingestion.blockchainetl.streaming.streamer.asyncio.sleep", new=AsyncMock()) as sleep:
        await streamer.stream()

    sleep.assert_awaited_once_with(3)
    assert adapter.export_all.await_count == 2
    assert streamer.last_synced_block == 150


@pytest.mark.asyncio
async def test_pid_file_exists_only_while_streaming(adapter, last_synced_block_file, tmp_path):
    pid_file = tmp_path / "indexer.pid"
    seen = []
    adapter.export_all.side_effect = lambda start, end: seen.append(pid_file.exists())

    streamer = Streamer(
        adapter, last_synced_block_file=last_synced_block_file, start_block=0, end_block=5, pid_file=str(pid_file)
    )
    await streamer.stream()

    assert seen == [True]
    assert not pid_file.exists()
