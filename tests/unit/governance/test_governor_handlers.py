import logging

import pytest

from ingestion.governance.handlers.governor_handlers import (
    GOVERNOR_EVENT_HANDLERS,
    HandlerContext,
    handle_proposal_canceled,
    handle_proposal_created,
    handle_proposal_executed,
    handle_proposal_queued,
    handle_vote_cast,
    process_event,
)
from ingestion.governance.models.events import (
    GovernorEventType,
    ProposalCanceledEvent,
    ProposalCreatedEvent,
    ProposalExecutedEvent,
    ProposalQueuedEvent,
    VoteCastEvent,
    VoteCastWithParamsEvent,
)
from tests.unit.governance.governor_logs import GOVERNOR_ADDRESS, PROPOSER, VOTER_1, VOTER_2


def _meta(proposal_id=42, block_number=100, log_index=0):
    return dict(
        governor_address=GOVERNOR_ADDRESS,
        block_number=block_number,
        block_timestamp=1_600_000_000 + block_number,
        log_index=log_index,
        transaction_hash="0x" + "ab" * 32,
        proposal_id=proposal_id,
    )


def created(proposal_id=42, vote_start=100, **kwargs):
    return ProposalCreatedEvent(
        **_meta(proposal_id, **kwargs),
        proposer=PROPOSER,
        targets=[GOVERNOR_ADDRESS],
        values=[0],
        signatures=["setQuorum(uint256)"],
        calldatas=["0x1234"],
        vote_start=vote_start,
        vote_end=vote_start + 100,
        description="Raise the quorum",
    )


def vote(proposal_id=42, voter=VOTER_1, support=1, weight=300, **kwargs):
    return VoteCastEvent(**_meta(proposal_id, **kwargs), voter=voter, support=support, weight=weight, reason="")


@pytest.mark.asyncio
async def test_proposal_created_initializes_tallies_and_flags(context, store, quorum_reader):
    await handle_proposal_created(created(block_number=90), context)

    proposal = store.proposals.get("42")
    assert proposal is not None
    assert proposal.proposal_id == 42
    assert proposal.proposer == PROPOSER
    assert proposal.description == "Raise the quorum"
    assert proposal.calldatas == ["0x1234"]
    assert proposal.vote_start == 100
    assert proposal.vote_end == 200
    assert proposal.created_at_block == 90
    assert proposal.created_at == 1_600_000_090
    assert (proposal.votes_for, proposal.votes_against, proposal.votes_abstains) == (0, 0, 0)
    assert proposal.quorum == 5000
    assert not proposal.is_canceled
    assert not proposal.is_executed
    assert not proposal.is_queued
    assert proposal.eta_seconds is None
    quorum_reader.read_quorum.assert_awaited_once_with(GOVERNOR_ADDRESS, 100)


@pytest.mark.asyncio
async def test_proposal_created_stores_zero_quorum_when_lookup_fails(context, store, quorum_reader, caplog):
    quorum_reader.read_quorum.side_effect = ConnectionError("rpc unavailable")

    with caplog.at_level(logging.WARNING):
        await handle_proposal_created(created(), context)

    assert store.proposals.get("42").quorum == 0
    assert any("getQuorum" in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
async def test_duplicate_proposal_created_resets_the_proposal(context, store):
    await handle_proposal_created(created(), context)
    await handle_vote_cast(vote(), context)
    assert store.proposals.get("42").votes_for == 300

    await handle_proposal_created(created(), context)

    assert store.proposals.get("42").votes_for == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "support, field",
    [(0, "votes_against"), (1, "votes_for"), (2, "votes_abstains")],
)
async def test_vote_cast_adds_weight_to_the_matching_tally(context, store, support, field):
    await handle_proposal_created(created(), context)

    await handle_vote_cast(vote(support=support, weight=77, log_index=3), context)

    proposal = store.proposals.get("42")
    tallies = {name: getattr(proposal, name) for name in ("votes_for", "votes_against", "votes_abstains")}
    assert tallies.pop(field) == 77
    assert set(tallies.values()) == {0}

    recorded = store.votes.get(f"42-{VOTER_1}-3")
    assert recorded.support == support
    assert recorded.weight == 77
    assert recorded.proposal_id == 42
    assert recorded.block_number == 100
    assert recorded.timestamp == 1_600_000_100


@pytest.mark.asyncio
async def test_vote_cast_with_params_behaves_like_vote_cast(context, store):
    await handle_proposal_created(created(), context)
    event = VoteCastWithParamsEvent(
        **_meta(log_index=5), voter=VOTER_2, support=2, weight=10, reason="why", params="0x01"
    )

    await process_event(event, context)

    assert store.proposals.get("42").votes_abstains == 10
    assert store.votes.get(f"42-{VOTER_2}-5").reason == "why"


@pytest.mark.asyncio
async def test_vote_for_unknown_proposal_is_skipped_with_one_warning(context, store, caplog):
    with caplog.at_level(logging.WARNING):
        await handle_vote_cast(vote(proposal_id=7), context)

    assert len(store.proposals) == 0
    assert len(store.votes) == 0
    warnings = [record for record in caplog.records if record.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "Proposal 7 not found" in warnings[0].getMessage()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "handler, event_type, extra",
    [
        (handle_proposal_canceled, ProposalCanceledEvent, {}),
        (handle_proposal_executed, ProposalExecutedEvent, {}),
        (handle_proposal_queued, ProposalQueuedEvent, {"eta_seconds": 1700000000}),
    ],
)
async def test_state_change_for_unknown_proposal_is_skipped(context, store, caplog, handler, event_type, extra):
    await handle_proposal_created(created(), context)
    before = store.proposals.get("42")

    with caplog.at_level(logging.WARNING):
        await handler(event_type(**_meta(proposal_id=9), **extra), context)

    assert store.proposals.get("9") is None
    assert store.proposals.get("42") == before
    assert len(store.proposals) == 1
    assert len([r for r in caplog.records if r.levelno == logging.WARNING]) == 1


@pytest.mark.asyncio
async def test_unknown_support_value_records_vote_without_tallying(context, store, caplog):
    await handle_proposal_created(created(), context)

    with caplog.at_level(logging.WARNING):
        await handle_vote_cast(vote(support=5, weight=1000, log_index=1), context)

    proposal = store.proposals.get("42")
    assert (proposal.votes_for, proposal.votes_against, proposal.votes_abstains) == (0, 0, 0)
    assert store.votes.get(f"42-{VOTER_1}-1").support == 5
    assert any("unknown support value 5" in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
async def test_redelivered_vote_is_counted_again(context, store):
    await handle_proposal_created(created(), context)
    event = vote(weight=300, log_index=4)

    await handle_vote_cast(event, context)
    await handle_vote_cast(event, context)

    assert store.proposals.get("42").votes_for == 600
    assert len(store.votes) == 1


@pytest.mark.asyncio
async def test_state_flags_are_idempotent(context, store):
    await handle_proposal_created(created(), context)

    for _ in range(2):
        await handle_proposal_canceled(ProposalCanceledEvent(**_meta(block_number=150)), context)
        await handle_proposal_executed(ProposalExecutedEvent(**_meta(block_number=151)), context)

    proposal = store.proposals.get("42")
    assert proposal.is_canceled
    assert proposal.is_executed
    assert not proposal.is_queued


@pytest.mark.asyncio
async def test_queue_overwrites_eta_and_keeps_cancel_flag(context, store):
    await handle_proposal_created(created(), context)
    await handle_proposal_canceled(ProposalCanceledEvent(**_meta(block_number=150)), context)

    await handle_proposal_queued(ProposalQueuedEvent(**_meta(block_number=160), eta_seconds=1), context)
    await handle_proposal_queued(ProposalQueuedEvent(**_meta(block_number=161), eta_seconds=2), context)

    proposal = store.proposals.get("42")
    assert proposal.is_queued
    assert proposal.is_canceled
    assert proposal.eta_seconds == 2


@pytest.mark.asyncio
async def test_proposal_lifecycle_end_to_end(context, store, quorum_reader):
    events = [
        created(vote_start=100, block_number=90, log_index=0),
        vote(support=1, weight=300, voter=VOTER_1, block_number=110, log_index=1),
        vote(support=0, weight=120, voter=VOTER_2, block_number=111, log_index=2),
        ProposalQueuedEvent(**_meta(block_number=210, log_index=0), eta_seconds=1700000000),
    ]

    for event in events:
        await process_event(event, context)

    proposal = store.proposals.get("42")
    assert proposal.quorum == 5000
    assert proposal.votes_for == 300
    assert proposal.votes_against == 120
    assert proposal.votes_abstains == 0
    assert proposal.is_queued
    assert proposal.eta_seconds == 1700000000
    assert not proposal.is_canceled
    assert not proposal.is_executed

    assert sorted(v.id for v in store.votes) == sorted([f"42-{VOTER_1}-1", f"42-{VOTER_2}-2"])
    quorum_reader.read_quorum.assert_awaited_once()


@pytest.mark.asyncio
async def test_proposals_are_keyed_by_decimal_id_of_large_ids(context, store):
    proposal_id = 2 ** 255 + 17
    await process_event(created(proposal_id=proposal_id), context)
    await process_event(vote(proposal_id=proposal_id, log_index=1), context)

    proposal = store.proposals.get(str(proposal_id))
    assert proposal.proposal_id == proposal_id
    assert proposal.votes_for == 300
    assert store.votes.get(f"{proposal_id}-{VOTER_1}-1") is not None


def test_every_event_type_has_a_handler():
    assert set(GOVERNOR_EVENT_HANDLERS) == set(GovernorEventType)


class DictRepository(object):
    def __init__(self):
        self.entities = {}

    def get(self, entity_id):
        return self.entities.get(entity_id)

    def set(self, entity):
        self.entities[entity.id] = entity


class DictStore(object):
    def __init__(self):
        self.proposals = DictRepository()
        self.votes = DictRepository()


@pytest.mark.asyncio
async def test_handlers_only_need_get_and_set_repositories(quorum_effect):
    dict_store = DictStore()
    context = HandlerContext(store=dict_store, quorum_effect=quorum_effect)

    await process_event(created(), context)
    await process_event(vote(weight=5, log_index=1), context)

    assert dict_store.proposals.entities["42"].votes_for == 5
    assert f"42-{VOTER_1}-1" in dict_store.votes.entities
