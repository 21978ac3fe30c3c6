import asyncio
import os
from typing import Awaitable, Callable, Dict, Optional

import orjson

from utils.file_utils import atomic_write, smart_open
from utils.logger_utils import get_logger

logger = get_logger("Caching Utils")


class EffectCache(object):
    """
    Memoizes serialized effect outputs by a structural string key.

    - Entries live for the lifetime of the process and, when `cache_file` is
      set, are reloaded from / flushed to a JSON object on disk.
    - Concurrent requests for a key that is still being computed await the
      same in-flight future, so the underlying call runs once.
    - A compute that raises is not stored; the exception reaches every waiter.
    """

    def __init__(self, name: str, cache_file: Optional[str] = None):
        self.name = name
        self.cache_file = cache_file
        self._entries: Dict[str, str] = {}
        self._in_flight: Dict[str, "asyncio.Future[str]"] = {}
        self._dirty = False

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[str]:
        return self._entries.get(key)

    def set(self, key: str, value: str) -> None:
        self._entries[key] = value
        self._dirty = True

    async def get_or_compute(self, key: str, compute: Callable[[], Awaitable[str]]) -> str:
        cached = self._entries.get(key)
        if cached is not None:
            return cached

        pending = self._in_flight.get(key)
        if pending is not None:
            try:
                # A waiter being cancelled must not cancel the shared future
                return await asyncio.shield(pending)
            except asyncio.CancelledError:
                if not pending.cancelled():
                    raise
            # The computing task was cancelled; take the computation over
            return await self.get_or_compute(key, compute)

        future: "asyncio.Future[str]" = asyncio.get_running_loop().create_future()
        self._in_flight[key] = future
        try:
            value = await compute()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so an unawaited future does not log "exception was never retrieved"
            future.exception()
            raise
        else:
            self.set(key, value)
            future.set_result(value)
            return value
        finally:
            self._in_flight.pop(key, None)

    def load(self) -> int:
        """Loads entries from `cache_file` if it exists. Returns the number of entries loaded."""
        if not self.cache_file or not os.path.isfile(self.cache_file):
            return 0

        with smart_open(self.cache_file, "r", binary=True) as file_handle:
            content = file_handle.read()

        loaded = orjson.loads(content) if content else {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Cache file {self.cache_file} must contain a JSON object")

        self._entries.update({str(k): str(v) for k, v in loaded.items()})
        logger.info(f"Loaded {len(loaded)} '{self.name}' cache entries from {self.cache_file}")
        return len(loaded)

    def flush(self) -> None:
        """Writes entries to `cache_file` atomically when something changed."""
        if not self.cache_file or not self._dirty:
            return

        atomic_write(self.cache_file, orjson.dumps(self._entries, option=orjson.OPT_SORT_KEYS))
        self._dirty = False
        logger.debug(f"Flushed {len(self._entries)} '{self.name}' cache entries to {self.cache_file}")

    def clear(self) -> None:
        self._entries.clear()
        self._dirty = True
