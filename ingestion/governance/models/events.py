from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.formatter_utils import to_normalized_address

UINT256_MAX = 2 ** 256 - 1


class GovernorEventType(str, Enum):
    PROPOSAL_CREATED = "ProposalCreated"
    VOTE_CAST = "VoteCast"
    VOTE_CAST_WITH_PARAMS = "VoteCastWithParams"
    PROPOSAL_CANCELED = "ProposalCanceled"
    PROPOSAL_EXECUTED = "ProposalExecuted"
    PROPOSAL_QUEUED = "ProposalQueued"


class GovernorEvent(BaseModel):
    """
    Decoded Governor log plus the block/transaction metadata every handler receives.

    `governor_address` is the contract that emitted the log, so several
    governors can be indexed by one process.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    governor_address: str
    block_number: int = Field(ge=0)
    block_timestamp: int = Field(ge=0)
    log_index: int = Field(ge=0)
    transaction_hash: Optional[str] = None
    proposal_id: int = Field(ge=0, le=UINT256_MAX)

    @field_validator("governor_address")
    @classmethod
    def normalize_governor_address(cls, v: str) -> str:
        return to_normalized_address(v)

    @property
    def proposal_key(self) -> str:
        """Store key of the proposal this event refers to."""
        return str(self.proposal_id)


class ProposalCreatedEvent(GovernorEvent):
    event_type: Literal[GovernorEventType.PROPOSAL_CREATED] = GovernorEventType.PROPOSAL_CREATED
    proposer: str
    targets: List[str] = Field(default_factory=list)
    values: List[int] = Field(default_factory=list)
    signatures: List[str] = Field(default_factory=list)
    calldatas: List[str] = Field(default_factory=list)
    vote_start: int = Field(ge=0)
    vote_end: int = Field(ge=0)
    description: str = ""


class VoteCastEvent(GovernorEvent):
    event_type: Literal[GovernorEventType.VOTE_CAST] = GovernorEventType.VOTE_CAST
    voter: str
    # uint8 on chain; values beyond 0..2 are recorded but never tallied
    support: int = Field(ge=0, le=255)
    weight: int = Field(ge=0, le=UINT256_MAX)
    reason: str = ""


class VoteCastWithParamsEvent(VoteCastEvent):
    event_type: Literal[GovernorEventType.VOTE_CAST_WITH_PARAMS] = GovernorEventType.VOTE_CAST_WITH_PARAMS
    params: str = "0x"


class ProposalCanceledEvent(GovernorEvent):
    event_type: Literal[GovernorEventType.PROPOSAL_CANCELED] = GovernorEventType.PROPOSAL_CANCELED


class ProposalExecutedEvent(GovernorEvent):
    event_type: Literal[GovernorEventType.PROPOSAL_EXECUTED] = GovernorEventType.PROPOSAL_EXECUTED


class ProposalQueuedEvent(GovernorEvent):
    event_type: Literal[GovernorEventType.PROPOSAL_QUEUED] = GovernorEventType.PROPOSAL_QUEUED
    eta_seconds: int = Field(ge=0)


AnyGovernorEvent = Union[
    ProposalCreatedEvent,
    VoteCastEvent,
    VoteCastWithParamsEvent,
    ProposalCanceledEvent,
    ProposalExecutedEvent,
    ProposalQueuedEvent,
]
