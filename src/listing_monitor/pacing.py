"""
Randomized pacing between page interactions.

Every wait in a poll cycle goes through a ``Pacer`` so the delays can be
drawn from configured ranges in production and recorded without sleeping
in tests.
"""

import asyncio
from collections import deque
import random
from typing import Awaitable, Callable, Optional

from .config import DelayRange

HISTORY_LIMIT = 1000

SleepFunc = Callable[[float], Awaitable[None]]


class Pacer:
    """
    Draws uniformly random delays from ``DelayRange`` values and waits them out.

    The sleep function and random source are injectable so tests can run
    the whole pipeline instantly and assert on the requested delays.
    """

    def __init__(
        self,
        sleep: Optional[SleepFunc] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()
        self._history: deque[int] = deque(maxlen=HISTORY_LIMIT)

    @property
    def history(self) -> list[int]:
        """Most recent requested delays, in milliseconds."""
        return list(self._history)

    def draw_ms(self, delay: DelayRange) -> int:
        """Pick a delay within ``delay``, inclusive on both ends."""
        return self._rng.randint(delay.min_ms, delay.max_ms)

    async def pause(self, delay: DelayRange) -> int:
        """
        Wait for a random duration within ``delay``.

        Returns:
            The chosen delay in milliseconds
        """
        ms = self.draw_ms(delay)
        self._history.append(ms)
        await self._sleep(ms / 1000)
        return ms

    def choice_index(self, low: int, high: int) -> int:
        """Random integer in ``[low, high]``, drawn from the same source as delays."""
        return self._rng.randint(low, high)


async def _no_sleep(_seconds: float) -> None:
    return None


def instant_pacer(seed: Optional[int] = None) -> Pacer:
    """A pacer that records delays without waiting. Used by dry runs and tests."""
    return Pacer(sleep=_no_sleep, rng=random.Random(seed))
