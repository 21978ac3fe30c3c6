"""
Projection of Governor events onto Proposal and Vote entities.

Every handler is a function of (current store state, event): it reads the
aggregate it needs from `context.store`, patches fields and writes it back.
Handlers keep no state between invocations.

Delivery precondition: the caller dispatches events in canonical chain order
(block number, then log index) and never runs two events of one proposal
concurrently. Duplicated deliveries are applied again; vote tallies are not
deduplicated here.
"""

import logging
from typing import Awaitable, Callable, Dict, Optional

from ingestion.governance.effects.quorum_effect import QuorumEffect, QuorumInput
from ingestion.governance.models.entities import Proposal, Vote, VoteSupport
from ingestion.governance.models.events import (
    AnyGovernorEvent,
    GovernorEvent,
    GovernorEventType,
    ProposalCanceledEvent,
    ProposalCreatedEvent,
    ProposalExecutedEvent,
    ProposalQueuedEvent,
    VoteCastEvent,
)
from storage.entity_store import EntityStore
from utils.logger_utils import get_logger

logger = get_logger("Governor Handlers")

TALLY_FIELDS = {
    VoteSupport.AGAINST: "votes_against",
    VoteSupport.FOR: "votes_for",
    VoteSupport.ABSTAIN: "votes_abstains",
}


class HandlerContext(object):
    """Collaborators handed to every handler invocation."""

    def __init__(
        self,
        store: EntityStore,
        quorum_effect: QuorumEffect,
        log: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.quorum_effect = quorum_effect
        self.log = log or logger


Handler = Callable[[AnyGovernorEvent, HandlerContext], Awaitable[None]]


def _get_existing_proposal(event: GovernorEvent, context: HandlerContext) -> Optional[Proposal]:
    proposal = context.store.proposals.get(event.proposal_key)
    if proposal is None:
        context.log.warning(
            f"{event.event_type.value}: Proposal {event.proposal_key} not found "
            f"(block {event.block_number}, log {event.log_index}). Skipping event."
        )
    return proposal


async def handle_proposal_created(event: ProposalCreatedEvent, context: HandlerContext) -> None:
    quorum = await context.quorum_effect.fetch(
        QuorumInput(vote_start=event.vote_start, governor_address=event.governor_address)
    )

    proposal = Proposal(
        id=event.proposal_key,
        proposal_id=event.proposal_id,
        proposer=event.proposer,
        description=event.description,
        targets=list(event.targets),
        calldatas=list(event.calldatas),
        signatures=list(event.signatures),
        values=list(event.values),
        vote_start=event.vote_start,
        vote_end=event.vote_end,
        created_at_block=event.block_number,
        created_at=event.block_timestamp,
        votes_for=0,
        votes_against=0,
        votes_abstains=0,
        quorum=quorum,
        is_canceled=False,
        is_executed=False,
        is_queued=False,
        eta_seconds=None,
    )
    context.store.proposals.set(proposal)


async def handle_vote_cast(event: VoteCastEvent, context: HandlerContext) -> None:
    """Handles VoteCast and VoteCastWithParams; `params` of the latter is not used."""
    proposal = _get_existing_proposal(event, context)
    if proposal is None:
        return

    try:
        tally_field = TALLY_FIELDS[VoteSupport(event.support)]
    except ValueError:
        context.log.warning(
            f"{event.event_type.value}: unknown support value {event.support} for proposal "
            f"{event.proposal_key} from {event.voter}. Recording the vote without tallying it."
        )
    else:
        updated = proposal.model_copy(
            update={tally_field: getattr(proposal, tally_field) + event.weight}
        )
        context.store.proposals.set(updated)

    vote = Vote(
        id=Vote.build_id(event.proposal_id, event.voter, event.log_index),
        proposal_id=event.proposal_id,
        voter=event.voter,
        support=event.support,
        weight=event.weight,
        reason=event.reason,
        block_number=event.block_number,
        timestamp=event.block_timestamp,
    )
    context.store.votes.set(vote)


async def handle_proposal_canceled(event: ProposalCanceledEvent, context: HandlerContext) -> None:
    proposal = _get_existing_proposal(event, context)
    if proposal is None:
        return
    context.store.proposals.set(proposal.model_copy(update={"is_canceled": True}))


async def handle_proposal_executed(event: ProposalExecutedEvent, context: HandlerContext) -> None:
    proposal = _get_existing_proposal(event, context)
    if proposal is None:
        return
    context.store.proposals.set(proposal.model_copy(update={"is_executed": True}))


async def handle_proposal_queued(event: ProposalQueuedEvent, context: HandlerContext) -> None:
    proposal = _get_existing_proposal(event, context)
    if proposal is None:
        return
    context.store.proposals.set(
        proposal.model_copy(update={"is_queued": True, "eta_seconds": event.eta_seconds})
    )


GOVERNOR_EVENT_HANDLERS: Dict[GovernorEventType, Handler] = {
    GovernorEventType.PROPOSAL_CREATED: handle_proposal_created,
    GovernorEventType.VOTE_CAST: handle_vote_cast,
    GovernorEventType.VOTE_CAST_WITH_PARAMS: handle_vote_cast,
    GovernorEventType.PROPOSAL_CANCELED: handle_proposal_canceled,
    GovernorEventType.PROPOSAL_EXECUTED: handle_proposal_executed,
    GovernorEventType.PROPOSAL_QUEUED: handle_proposal_queued,
}


async def process_event(event: AnyGovernorEvent, context: HandlerContext) -> None:
    handler = GOVERNOR_EVENT_HANDLERS.get(event.event_type)
    if handler is None:
        context.log.warning(f"No handler registered for event type {event.event_type}")
        return
    await handler(event, context)
