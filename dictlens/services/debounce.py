from typing import Any, Awaitable, Callable, Optional

import anyio


class Debouncer:
    """
    Collapses a burst of triggers into one call.

    Every `run` waits out the window; only the most recent one goes on to
    call `fn`. A call that was superseded while `fn` was still running has
    its result dropped. Nothing is cancelled, stale work simply finishes.
    """

    def __init__(
        self,
        delay: float,
        sleep: Callable[[float], Awaitable[Any]] = anyio.sleep,
    ):
        self.delay = delay
        self._sleep = sleep
        self._generation = 0
        self._pending = 0

    @property
    def idle(self) -> bool:
        """True when no `run` is waiting or executing."""
        return self._pending == 0

    async def run(self, fn: Callable[..., Awaitable[Any]], *args: Any) -> Optional[Any]:
        self._generation += 1
        generation = self._generation
        self._pending += 1
        try:
            await self._sleep(self.delay)
            if generation != self._generation:
                return None

            result = await fn(*args)
            if generation != self._generation:
                return None
            return result
        finally:
            self._pending -= 1
