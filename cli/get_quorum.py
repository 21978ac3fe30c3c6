import asyncio
from typing import Optional

import click

from config.settings import settings
from ingestion.governance.effects.quorum_effect import QuorumInput, create_quorum_effect_from_settings
from ingestion.governance.effects.quorum_reader import QuorumReader
from utils.logger_utils import configure_logging, get_logger
from utils.rpc_provider_utils import get_async_web3

logger = get_logger("Get Quorum CLI")


@click.command(context_settings=dict(help_option_names=["-h", "--help"]))
@click.option("-a", "--governor-address", required=True, type=str, help="Address of the Governor contract.")
@click.option("-b", "--block-number", required=True, type=int, help="Snapshot block (the proposal's voteStart).")
@click.option(
    "-p",
    "--provider-uri",
    default=settings.rpc.provider_uri,
    show_default=True,
    type=str,
    help="JSON-RPC endpoint of the chain node.",
)
@click.option(
    "--quorum-cache-file",
    default=settings.quorum.cache_file,
    type=str,
    help="JSON file that keeps quorum lookups across restarts.",
)
@click.option("--log-file", default=settings.app.log_file, type=str, help="Path to the log file.")
def get_quorum(
    governor_address: str,
    block_number: int,
    provider_uri: str,
    quorum_cache_file: Optional[str],
    log_file: Optional[str],
):
    """Prints the quorum a Governor reports for a snapshot block (0 if the lookup fails)."""
    configure_logging(log_file, settings.app.log_level)
    quorum = asyncio.run(_fetch_quorum(governor_address, block_number, provider_uri, quorum_cache_file))
    click.echo(quorum)


async def _fetch_quorum(
    governor_address: str, block_number: int, provider_uri: str, quorum_cache_file: Optional[str]
) -> int:
    reader = QuorumReader(get_async_web3(provider_uri, timeout=settings.rpc.rpc_timeout))
    quorum_effect = create_quorum_effect_from_settings(reader, settings.quorum, cache_file=quorum_cache_file)

    try:
        quorum = await quorum_effect.fetch(QuorumInput(vote_start=block_number, governor_address=governor_address))
    finally:
        await reader.close()

    if quorum_effect.cache is not None:
        quorum_effect.cache.flush()

    logger.info(f"quorum({block_number}) of {governor_address} = {quorum}")
    return quorum
