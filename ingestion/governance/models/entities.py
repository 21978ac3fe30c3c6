from enum import IntEnum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class VoteSupport(IntEnum):
    AGAINST = 0
    FOR = 1
    ABSTAIN = 2


class Proposal(BaseModel):
    """Aggregate of one governance proposal, keyed by the decimal proposal id."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    proposal_id: int = Field(ge=0)
    proposer: str
    description: str = ""
    targets: List[str] = Field(default_factory=list)
    calldatas: List[str] = Field(default_factory=list)
    signatures: List[str] = Field(default_factory=list)
    values: List[int] = Field(default_factory=list)

    vote_start: int = Field(ge=0)
    vote_end: int = Field(ge=0)
    created_at_block: int = Field(ge=0)
    created_at: int = Field(ge=0)

    votes_for: int = Field(default=0, ge=0)
    votes_against: int = Field(default=0, ge=0)
    votes_abstains: int = Field(default=0, ge=0)

    # Read once at creation; nothing updates it afterwards
    quorum: int = Field(default=0, ge=0)

    is_canceled: bool = False
    is_executed: bool = False
    is_queued: bool = False
    eta_seconds: Optional[int] = None


class Vote(BaseModel):
    """A single ballot. Written once, never updated."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    proposal_id: int = Field(ge=0)
    voter: str
    support: int = Field(ge=0)
    weight: int = Field(ge=0)
    reason: str = ""
    block_number: int = Field(ge=0)
    timestamp: int = Field(ge=0)

    @staticmethod
    def build_id(proposal_id: int, voter: str, log_index: int) -> str:
        return f"{proposal_id}-{voter}-{log_index}"
