# MIT License
#
# Copyright (c) 2018 Evgeny Medvedev, evge.medvedev@gmail.com
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.



import asyncio
from typing import List, Optional

import click

from config.settings import settings
from ingestion.blockchainetl.streaming.streamer import Streamer
from ingestion.governance.effects.quorum_effect import create_quorum_effect_from_settings
from ingestion.governance.effects.quorum_reader import QuorumReader
from ingestion.governance.rpc_client import RpcClient
from ingestion.governance.streaming.governor_streamer_adapter import GovernorStreamerAdapter
from storage.entity_store import InMemoryEntityStore
from utils.logger_utils import configure_logging, get_logger
from utils.rpc_provider_utils import get_async_web3
from utils.signal_utils import configure_signals

logger = get_logger("Index Governor CLI")


@click.command(context_settings=dict(help_option_names=["-h", "--help"]))
@click.option(
    "-a",
    "--governor-address",
    "governor_addresses",
    required=True,
    multiple=True,
    type=str,
    help="Address of a Governor contract to index. Repeat the option to index several governors.",
)
@click.option(
    "-p",
    "--provider-uri",
    default=settings.rpc.provider_uri,
    show_default=True,
    type=str,
    help="JSON-RPC endpoint(s) of the chain node. Multiple URIs can be separated by commas for failover.",
)
@click.option("-s", "--start-block", default=None, type=int, help="First block to index. Overrides the last synced block file.")
@click.option("-e", "--end-block", default=None, type=int, help="Last block to index. Streams indefinitely if not set.")
@click.option("--lag", default=0, show_default=True, type=int, help="Number of blocks to stay behind the chain head.")
@click.option(
    "-l",
    "--last-synced-block-file",
    default=settings.streamer.last_synced_block_file,
    show_default=True,
    type=str,
    help="File that stores the last fully processed block.",
)
@click.option(
    "--snapshot-file",
    default=settings.streamer.snapshot_file,
    show_default=True,
    type=str,
    help="JSON snapshot of proposals and votes, loaded at start and rewritten after each block range.",
)
@click.option(
    "--quorum-cache-file",
    default=settings.quorum.cache_file,
    type=str,
    help="JSON file that keeps quorum lookups across restarts.",
)
@click.option(
    "--period-seconds",
    default=settings.streamer.period_seconds,
    show_default=True,
    type=int,
    help="How many seconds to sleep between sync cycles if there are no new blocks.",
)
@click.option(
    "-B",
    "--block-batch-size",
    default=settings.streamer.block_batch_size,
    show_default=True,
    type=int,
    help="Number of blocks requested with a single eth_getLogs call.",
)
@click.option("--log-file", default=settings.app.log_file, type=str, help="Path to the log file.")
@click.option("--pid-file", default=None, type=str, help="PID file created while the indexer runs.")
def index_governor(
    governor_addresses: List[str],
    provider_uri: str,
    start_block: Optional[int],
    end_block: Optional[int],
    lag: int,
    last_synced_block_file: str,
    snapshot_file: str,
    quorum_cache_file: Optional[str],
    period_seconds: int,
    block_batch_size: int,
    log_file: Optional[str],
    pid_file: Optional[str],
):
    """Indexes Governor proposals and votes into a JSON snapshot."""
    configure_logging(log_file, settings.app.log_level)
    configure_signals()

    provider_uris = [uri.strip() for uri in provider_uri.split(",") if uri.strip()]

    streamer = build_streamer(
        governor_addresses=list(governor_addresses),
        provider_uris=provider_uris,
        start_block=start_block,
        end_block=end_block,
        lag=lag,
        last_synced_block_file=last_synced_block_file,
        snapshot_file=snapshot_file,
        quorum_cache_file=quorum_cache_file,
        period_seconds=period_seconds,
        block_batch_size=block_batch_size,
        pid_file=pid_file,
    )

    try:
        asyncio.run(streamer.stream())
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")


def build_streamer(
    governor_addresses: List[str],
    provider_uris: List[str],
    start_block: Optional[int] = None,
    end_block: Optional[int] = None,
    lag: int = 0,
    last_synced_block_file: str = settings.streamer.last_synced_block_file,
    snapshot_file: str = settings.streamer.snapshot_file,
    quorum_cache_file: Optional[str] = settings.quorum.cache_file,
    period_seconds: int = settings.streamer.period_seconds,
    block_batch_size: int = settings.streamer.block_batch_size,
    pid_file: Optional[str] = None,
) -> Streamer:
    """Wires RPC clients, the quorum effect, the store and the adapter into a Streamer."""
    rpc_client = RpcClient(
        provider_uris,
        max_retries=settings.rpc.max_retries,
        timeout=settings.rpc.rpc_timeout,
        rpc_min_interval=settings.rpc.min_interval,
    )
    reader = QuorumReader(get_async_web3(provider_uris[0], timeout=settings.rpc.rpc_timeout))
    quorum_effect = create_quorum_effect_from_settings(reader, settings.quorum, cache_file=quorum_cache_file)

    # The snapshot only matches the last synced block file when resuming from it
    if start_block is None:
        store = InMemoryEntityStore.load(snapshot_file)
    else:
        store = InMemoryEntityStore()

    adapter = GovernorStreamerAdapter(
        rpc_client=rpc_client,
        store=store,
        quorum_effect=quorum_effect,
        governor_addresses=governor_addresses,
        snapshot_file=snapshot_file,
        max_concurrent_quorum_lookups=settings.quorum.max_concurrent_lookups,
        quorum_reader=reader,
    )

    return Streamer(
        blockchain_streamer_adapter=adapter,
        last_synced_block_file=last_synced_block_file,
        lag=lag,
        start_block=start_block,
        end_block=end_block,
        period_seconds=period_seconds,
        block_batch_size=block_batch_size,
        retry_errors=settings.streamer.retry_errors,
        pid_file=pid_file,
    )
