"""
Cooperative timers driven by the host's frame callback.

There is no background thread: the host calls tick(elapsed) once per frame
and due callbacks run synchronously inside that call.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)


@dataclass
class Timer:
    id: int
    interval: float
    remaining: float
    callback: Callable[[], None]
    recurring: bool = True


class TimerScheduler:
    """Registry of countdown timers with integer cancellation ids."""

    def __init__(self):
        self._timers: Dict[int, Timer] = {}
        self._next_id = 1

    def register(self, interval: float, callback: Callable[[], None], recurring: bool = True) -> int:
        """
        Register a timer firing every `interval` seconds.

        Returns:
            Timer id usable with cancel()
        """
        if interval <= 0:
            raise ValueError(f"Timer interval must be > 0, got {interval}")

        timer_id = self._next_id
        self._next_id += 1
        self._timers[timer_id] = Timer(timer_id, interval, interval, callback, recurring)
        return timer_id

    def cancel(self, timer_id: int) -> bool:
        return self._timers.pop(timer_id, None) is not None

    def clear(self) -> None:
        self._timers.clear()

    def __contains__(self, timer_id: int) -> bool:
        return timer_id in self._timers

    def __len__(self) -> int:
        return len(self._timers)

    def tick(self, elapsed: float) -> List[int]:
        """
        Advance all timers by `elapsed` seconds.

        A timer reaching zero fires once, then resets to its full interval
        (recurring) or is removed (one-shot). Timers cancelled by an earlier
        callback in the same tick do not fire.

        Returns:
            Ids of the timers that fired
        """
        fired = []
        for timer_id in list(self._timers):
            timer = self._timers.get(timer_id)
            if timer is None:
                continue

            timer.remaining -= elapsed
            if timer.remaining > 0:
                continue

            fired.append(timer_id)
            if timer.recurring:
                timer.remaining = timer.interval
            else:
                del self._timers[timer_id]

            try:
                timer.callback()
            except Exception as e:
                logger.error(f"Timer {timer_id} callback failed: {e}")
        return fired
