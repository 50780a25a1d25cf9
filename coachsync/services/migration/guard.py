"""
Single-flight guard.

At most one migration per key (direction, or hydration account) runs at a
time. Concurrent callers for the same key join the in-flight run and receive
the very same result object, or the same exception.
"""
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight:
    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Future] = {}

    def is_running(self, key: str) -> bool:
        return key in self._pending

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``factory()`` for ``key`` unless a run is already in flight.

        Only the initiating caller's factory is ever invoked, so only its
        progress sink receives events.
        """
        pending = self._pending.get(key)
        if pending is not None:
            logger.info(f"Joining in-flight operation '{key}'")
            # shield: a cancelled joiner must not cancel the shared run
            return await asyncio.shield(pending)

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        try:
            result = await factory()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # joiners re-raise it; mark retrieved so an unjoined failure is not logged as lost
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._pending.pop(key, None)
