from unittest.mock import AsyncMock, MagicMock

import pytest

from ingestion.governance.effects.quorum_effect import create_quorum_effect
from ingestion.governance.handlers.governor_handlers import HandlerContext
from storage.entity_store import InMemoryEntityStore
from utils.caching_utils import EffectCache


@pytest.fixture
def quorum_reader():
    reader = MagicMock()
    reader.read_quorum = AsyncMock(return_value=5000)
    return reader


@pytest.fixture
def quorum_effect(quorum_reader):
    return create_quorum_effect(
        quorum_reader, rate_limit_calls=100, rate_limit_period_seconds=1.0, cache=EffectCache("getQuorum")
    )


@pytest.fixture
def store():
    return InMemoryEntityStore()


@pytest.fixture
def context(store, quorum_effect):
    return HandlerContext(store=store, quorum_effect=quorum_effect)
