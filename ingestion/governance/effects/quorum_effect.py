from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config.settings import QuorumEffectSettings
from ingestion.governance.effects.effect import Effect
from ingestion.governance.effects.quorum_reader import QuorumReader
from utils.async_utils import AsyncRateLimiter
from utils.caching_utils import EffectCache
from utils.formatter_utils import to_normalized_address

QUORUM_EFFECT_NAME = "getQuorum"
QUORUM_FALLBACK_VALUE = 0


class QuorumInput(BaseModel):
    """Cache key of a quorum lookup: the proposal's snapshot block and the governor."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    vote_start: int = Field(ge=0)
    governor_address: str

    @field_validator("governor_address")
    @classmethod
    def normalize_governor_address(cls, v: str) -> str:
        return to_normalized_address(v)


QuorumEffect = Effect[QuorumInput, int]


def create_quorum_effect(
    reader: QuorumReader,
    rate_limit_calls: int = 10,
    rate_limit_period_seconds: float = 1.0,
    cache: Optional[EffectCache] = None,
) -> QuorumEffect:
    async def call(effect_input: QuorumInput) -> int:
        return await reader.read_quorum(effect_input.governor_address, effect_input.vote_start)

    return Effect(
        name=QUORUM_EFFECT_NAME,
        input_model=QuorumInput,
        output_type=int,
        call=call,
        cache=cache,
        rate_limiter=AsyncRateLimiter(calls=rate_limit_calls, period=rate_limit_period_seconds),
        fallback_value=QUORUM_FALLBACK_VALUE,
    )


def create_quorum_effect_from_settings(
    reader: QuorumReader,
    quorum_settings: QuorumEffectSettings,
    cache_file: Optional[str] = None,
) -> QuorumEffect:
    """Builds the effect from QUORUM_* settings, loading the cache file if there is one."""
    cache = None
    if quorum_settings.cache_enabled:
        cache = EffectCache(QUORUM_EFFECT_NAME, cache_file=cache_file or quorum_settings.cache_file)
        cache.load()

    return create_quorum_effect(
        reader,
        rate_limit_calls=quorum_settings.rate_limit_calls,
        rate_limit_period_seconds=quorum_settings.rate_limit_period_seconds,
        cache=cache,
    )
