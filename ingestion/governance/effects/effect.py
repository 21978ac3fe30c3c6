from typing import Any, Awaitable, Callable, Generic, Optional, Type, TypeVar

from pydantic import BaseModel, TypeAdapter

from utils.async_utils import AsyncRateLimiter, rate_limited
from utils.caching_utils import EffectCache
from utils.logger_utils import get_logger

logger = get_logger("Effect")

I = TypeVar("I", bound=BaseModel)
O = TypeVar("O")


class Effect(Generic[I, O]):
    """
    An asynchronous external read, composed from independent layers:

        fetch = fallback(cache(rate_limit(call)))

    - call:       the raw remote read, `async (input) -> output`, may raise.
    - rate_limit: every call that actually leaves the process acquires from the limiter.
                  Cache hits never wait on it.
    - cache:      outputs keyed by the canonical JSON of the validated input model,
                  so structurally equal inputs share one entry and one in-flight call.
    - fallback:   any exception from the layers below is logged at WARNING with the
                  offending input and replaced by `fallback_value`. Fallbacks are not
                  cached, so a later fetch of the same input tries the remote again.
    """

    def __init__(
        self,
        name: str,
        input_model: Type[I],
        output_type: Type[O],
        call: Callable[[I], Awaitable[O]],
        cache: Optional[EffectCache] = None,
        rate_limiter: Optional[AsyncRateLimiter] = None,
        fallback_value: Optional[O] = None,
    ):
        self.name = name
        self.input_model = input_model
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.fallback_value = fallback_value
        self._output_adapter = TypeAdapter(output_type)
        self._call = rate_limited(rate_limiter, call) if rate_limiter is not None else call

    @staticmethod
    def cache_key(effect_input: BaseModel) -> str:
        return effect_input.model_dump_json()

    async def fetch(self, effect_input: Any) -> O:
        effect_input = self.input_model.model_validate(effect_input)
        try:
            return await self._fetch_cached(effect_input)
        except Exception as e:
            if self.fallback_value is None:
                raise
            logger.warning(
                f"Effect '{self.name}' failed for input {effect_input.model_dump()}: {e!r}. "
                f"Using fallback value {self.fallback_value}."
            )
            return self.fallback_value

    async def _fetch_cached(self, effect_input: I) -> O:
        if self.cache is None:
            return await self._call(effect_input)

        async def compute() -> str:
            output = await self._call(effect_input)
            return self._output_adapter.dump_json(output).decode()

        serialized = await self.cache.get_or_compute(self.cache_key(effect_input), compute)
        return self._output_adapter.validate_json(serialized)
