from typing import Callable, Optional

from .scheduler import EpochScheduler, ScheduledCall

TICK_MS = 50


def format_time(ms: int) -> str:
    """Format a duration in milliseconds as ``MM:SS.CC``."""
    ms = max(0, int(ms))
    centis = (ms % 1000) // 10
    seconds = (ms // 1000) % 60
    minutes = ms // 60000
    return f"{minutes:02d}:{seconds:02d}.{centis:02d}"


class GameTimer:
    """Elapsed-time tracker that ticks through the session scheduler.

    Started once per session by the engine's first accepted flip, stopped on
    completion. The last elapsed value is kept after ``stop``.
    """

    def __init__(
        self,
        scheduler: EpochScheduler,
        clock: Callable[[], int],
        on_tick: Optional[Callable[[int], None]] = None,
        tick_ms: int = TICK_MS,
    ):
        self.scheduler = scheduler
        self.clock = clock
        self.on_tick = on_tick
        self.tick_ms = tick_ms
        self._started_at: Optional[int] = None
        self._elapsed = 0
        self._running = False
        self._ticker: Optional[ScheduledCall] = None

    @property
    def running(self) -> bool:
        return self._running

    def start(self, started_at: Optional[int] = None) -> None:
        if self._started_at is not None:
            return
        self._started_at = self.clock() if started_at is None else started_at
        self._elapsed = 0
        self._running = True
        self._ticker = self.scheduler.call_every(self.tick_ms, self._tick, name='timer-tick')

    def stop(self, elapsed_ms: Optional[int] = None) -> None:
        if self._running:
            self._elapsed = self.clock() - self._started_at
        self._running = False
        if self._ticker is not None:
            self.scheduler.cancel(self._ticker)
            self._ticker = None
        if elapsed_ms is not None:
            self._elapsed = elapsed_ms
        if self.on_tick:
            self.on_tick(self._elapsed)

    def reset(self) -> None:
        self._running = False
        if self._ticker is not None:
            self.scheduler.cancel(self._ticker)
            self._ticker = None
        self._started_at = None
        self._elapsed = 0

    def elapsed(self) -> int:
        if self._running:
            return self.clock() - self._started_at
        return self._elapsed

    def handle_engine_event(self, event: str, payload: dict) -> None:
        if event == 'started':
            self.start(payload.get('started_at'))
        elif event == 'completed':
            self.stop(payload.get('elapsed_ms'))

    def _tick(self) -> None:
        if not self._running:
            return
        self._elapsed = self.clock() - self._started_at
        if self.on_tick:
            self.on_tick(self._elapsed)
