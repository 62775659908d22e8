import time
from typing import Callable, Dict, Hashable, Tuple


class Debouncer:
    """Delay calls per key so that rapid successive calls coalesce.

    Scheduling a call for a key replaces any call still pending for that key
    and restarts its delay. Pending calls run when ``poll()`` observes that
    their delay has elapsed, or immediately on ``flush()``. The clock is
    injectable so tests can advance time deterministically.
    """

    def __init__(self, delay: float, clock: Callable[[], float] = time.monotonic):
        self.delay = delay
        self.clock = clock
        self._pending: Dict[Hashable, Tuple[float, Callable[[], None]]] = {}

    def schedule(self, key: Hashable, fn: Callable[[], None]):
        self._pending[key] = (self.clock() + self.delay, fn)

    @property
    def pending(self) -> bool:
        return bool(self._pending)

    def poll(self) -> int:
        """Run every pending call whose delay has elapsed; return how many ran."""
        now = self.clock()
        due = [key for key, (deadline, _) in self._pending.items() if deadline <= now]
        for key in due:
            _, fn = self._pending.pop(key)
            fn()
        return len(due)

    def flush(self) -> int:
        """Run every pending call now, regardless of its deadline."""
        calls = [fn for _, fn in self._pending.values()]
        self._pending.clear()
        for fn in calls:
            fn()
        return len(calls)

    def cancel(self):
        self._pending.clear()
