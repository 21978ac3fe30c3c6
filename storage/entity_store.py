import os
from typing import Dict, Generic, Iterator, List, Optional, Protocol, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from ingestion.governance.models.entities import Proposal, Vote
from utils.file_utils import atomic_write, smart_open
from utils.logger_utils import get_logger

logger = get_logger("Entity Store")

E = TypeVar("E", bound=BaseModel)


class EntityRepository(Protocol[E]):
    """The get/upsert contract handlers rely on for one entity kind."""

    def get(self, entity_id: str) -> Optional[E]:
        ...

    def set(self, entity: E) -> None:
        ...


class EntityStore(Protocol):
    """Repositories the Governor handlers read and write."""

    @property
    def proposals(self) -> EntityRepository[Proposal]:
        ...

    @property
    def votes(self) -> EntityRepository[Vote]:
        ...


class InMemoryEntityRepository(Generic[E]):
    def __init__(self, entity_type: Type[E]):
        self.entity_type = entity_type
        self._entities: Dict[str, E] = {}

    def get(self, entity_id: str) -> Optional[E]:
        return self._entities.get(entity_id)

    def set(self, entity: E) -> None:
        self._entities[entity.id] = entity

    def all(self) -> List[E]:
        return list(self._entities.values())

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[E]:
        return iter(self._entities.values())

    def copy(self) -> "InMemoryEntityRepository[E]":
        repository = InMemoryEntityRepository(self.entity_type)
        repository._entities = dict(self._entities)
        return repository


class EntitySnapshot(BaseModel):
    """On-disk layout of the store: every entity of each kind, camelCase fields."""

    model_config = ConfigDict(populate_by_name=True)

    proposals: List[Proposal] = Field(default_factory=list)
    votes: List[Vote] = Field(default_factory=list)


class InMemoryEntityStore(object):
    """
    Holds the Proposal and Vote repositories handed to every handler.

    The store is owned by the indexing process; `save`/`load` move it to and
    from a JSON snapshot so a restarted indexer resumes with the same state
    as its last-synced-block checkpoint.
    """

    def __init__(self):
        self.proposals: InMemoryEntityRepository[Proposal] = InMemoryEntityRepository(Proposal)
        self.votes: InMemoryEntityRepository[Vote] = InMemoryEntityRepository(Vote)

    def copy(self) -> "InMemoryEntityStore":
        """Working copy for one block range. Shallow: handlers replace entities, they never mutate them."""
        store = InMemoryEntityStore()
        store.proposals = self.proposals.copy()
        store.votes = self.votes.copy()
        return store

    def commit(self, working_copy: "InMemoryEntityStore") -> None:
        """Adopts the contents of a working copy once its range has been checkpointed."""
        self.proposals = working_copy.proposals
        self.votes = working_copy.votes

    def to_snapshot(self) -> EntitySnapshot:
        return EntitySnapshot(
            proposals=sorted(self.proposals.all(), key=lambda p: p.proposal_id),
            votes=sorted(self.votes.all(), key=lambda v: (v.block_number, v.id)),
        )

    def save(self, snapshot_file: str) -> None:
        snapshot = self.to_snapshot()
        atomic_write(snapshot_file, snapshot.model_dump_json(by_alias=True, indent=2))
        logger.info(
            f"Saved snapshot with {len(snapshot.proposals)} proposals and "
            f"{len(snapshot.votes)} votes to {snapshot_file}"
        )

    @classmethod
    def load(cls, snapshot_file: str) -> "InMemoryEntityStore":
        store = cls()
        if not os.path.isfile(snapshot_file):
            logger.info(f"No snapshot at {snapshot_file}. Starting with an empty store.")
            return store

        with smart_open(snapshot_file, "r") as file_handle:
            snapshot = EntitySnapshot.model_validate_json(file_handle.read())

        for proposal in snapshot.proposals:
            store.proposals.set(proposal)
        for vote in snapshot.votes:
            store.votes.set(vote)

        logger.info(
            f"Loaded snapshot with {len(snapshot.proposals)} proposals and "
            f"{len(snapshot.votes)} votes from {snapshot_file}"
        )
        return store
