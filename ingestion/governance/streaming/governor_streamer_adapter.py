from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ingestion.governance.effects.quorum_effect import QuorumEffect, QuorumInput
from ingestion.governance.effects.quorum_reader import QuorumReader
from ingestion.governance.handlers.governor_handlers import HandlerContext, process_event
from ingestion.governance.mappers.governor_event_mapper import GovernorEventMapper
from ingestion.governance.models.events import AnyGovernorEvent, ProposalCreatedEvent
from ingestion.governance.rpc_client import RpcClient
from storage.entity_store import InMemoryEntityStore
from utils.async_utils import gather_with_concurrency
from utils.exceptions import GovernorLogDecodeError
from utils.formatter_utils import hex_to_dec, to_normalized_address
from utils.logger_utils import get_logger

logger = get_logger("Governor Streamer Adapter")


class GovernorStreamerAdapter(object):
    """
    Feeds the Governor handlers from a node, one block range at a time.

    For each range: fetch the governors' logs, decode them, order them by
    (block_number, log_index), warm the quorum cache for every creation event
    concurrently, then dispatch the events one by one. That sequential dispatch
    is what gives each proposal the in-order, non-overlapping processing the
    handlers require. Removed (reorged) logs are ignored.
    """

    def __init__(
        self,
        rpc_client: RpcClient,
        store: InMemoryEntityStore,
        quorum_effect: QuorumEffect,
        governor_addresses: List[str],
        event_mapper: Optional[GovernorEventMapper] = None,
        snapshot_file: Optional[str] = None,
        max_concurrent_quorum_lookups: int = 10,
        quorum_reader: Optional[QuorumReader] = None,
    ):
        if not governor_addresses:
            raise ValueError("At least one governor address must be provided.")

        self._rpc_client = rpc_client
        self.store = store
        self.quorum_effect = quorum_effect
        self._quorum_reader = quorum_reader
        self._governor_addresses = [to_normalized_address(address) for address in governor_addresses]
        self._event_mapper = event_mapper or GovernorEventMapper()
        self._snapshot_file = snapshot_file
        self._max_concurrent_quorum_lookups = max_concurrent_quorum_lookups

    async def open(self) -> None:
        logger.info(f"Indexing Governor events of {', '.join(self._governor_addresses)}")

    async def get_current_block_number(self) -> int:
        return await self._rpc_client.get_latest_block_number()

    async def export_all(self, start_block: int, end_block: int) -> None:
        raw_logs = await self._rpc_client.get_logs(
            self._governor_addresses, start_block, end_block, topics=[self._event_mapper.topics]
        )
        raw_logs = [log for log in raw_logs if not log.get("removed", False)]

        timestamps = await self._rpc_client.get_block_timestamps(
            hex_to_dec(log.get("blockNumber")) for log in raw_logs
        )
        events = self._decode_events(raw_logs, timestamps)

        await self._prefetch_quorums(events)

        working_store = self.store.copy()
        context = HandlerContext(store=working_store, quorum_effect=self.quorum_effect)
        for event in events:
            await process_event(event, context)

        logger.info(f"Processed {len(events)} Governor events in blocks {start_block}-{end_block}")
        self.checkpoint(working_store)
        self.store.commit(working_store)

    def checkpoint(self, store: Optional[InMemoryEntityStore] = None) -> None:
        """Persists the store snapshot and the quorum cache before the streamer records progress."""
        if self._snapshot_file:
            (store or self.store).save(self._snapshot_file)
        cache = self.quorum_effect.cache
        if cache is not None:
            cache.flush()

    async def close(self) -> None:
        try:
            await self._rpc_client.close()
        finally:
            if self._quorum_reader is not None:
                await self._quorum_reader.close()

    def _decode_events(self, raw_logs: List[Dict[str, Any]], timestamps: Dict[int, int]) -> List[AnyGovernorEvent]:
        events: List[AnyGovernorEvent] = []
        for raw_log in raw_logs:
            block_number = hex_to_dec(raw_log.get("blockNumber"))
            try:
                events.append(self._event_mapper.json_dict_to_event(raw_log, timestamps.get(block_number, 0)))
            except (GovernorLogDecodeError, ValidationError) as e:
                logger.warning(
                    f"Skipping undecodable log {raw_log.get('transactionHash')}:{raw_log.get('logIndex')} "
                    f"in block {block_number}: {e}"
                )
        return sorted(events, key=lambda event: (event.block_number, event.log_index))

    async def _prefetch_quorums(self, events: List[AnyGovernorEvent]) -> None:
        inputs = {
            QuorumInput(vote_start=event.vote_start, governor_address=event.governor_address)
            for event in events
            if isinstance(event, ProposalCreatedEvent)
        }
        if not inputs:
            return

        logger.info(f"Prefetching {len(inputs)} quorum values")
        await gather_with_concurrency(
            self._max_concurrent_quorum_lookups,
            *(self.quorum_effect.fetch(effect_input) for effect_input in inputs),
        )
