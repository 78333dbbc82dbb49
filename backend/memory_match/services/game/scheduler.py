import logging
import threading
from typing import Callable, Optional, Set

logger = logging.getLogger(__name__)


class ScheduledCall:
    """A delayed callback bound to the epoch it was scheduled in.

    With ``interval_ms`` set the call repeats until it is cancelled or its
    epoch goes stale.
    """

    def __init__(
        self,
        epoch: int,
        delay_ms: int,
        callback: Callable[[], None],
        name: str = '',
        interval_ms: Optional[int] = None,
    ):
        self.epoch = epoch
        self.delay_ms = delay_ms
        self.callback = callback
        self.name = name or getattr(callback, '__name__', 'callback')
        self.interval_ms = interval_ms
        self.cancelled = False

    @property
    def repeating(self) -> bool:
        return self.interval_ms is not None

    def cancel(self) -> None:
        self.cancelled = True


class EpochScheduler:
    """Cancellable delayed callbacks keyed to a session epoch.

    - ``next_epoch`` cancels everything pending and starts a new generation
    - callbacks from an older epoch are dropped when they fire
    - ``lock`` serializes callbacks with input events

    Subclasses decide how a call is actually waited on by implementing
    ``_start``; they must hand the call back to ``_fire`` once it is due,
    and again every ``interval_ms`` for as long as ``_fire`` returns True.
    """

    def __init__(self):
        self.epoch = 0
        self.lock = threading.RLock()
        self._pending: Set[ScheduledCall] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def next_epoch(self) -> int:
        with self.lock:
            self.cancel_all()
            self.epoch += 1
            logger.info(f"[epoch] now={self.epoch}")
            return self.epoch

    def cancel(self, call: ScheduledCall) -> None:
        with self.lock:
            call.cancel()
            self._pending.discard(call)

    def cancel_all(self) -> None:
        with self.lock:
            for call in self._pending:
                call.cancel()
            self._pending.clear()

    def call_later(self, delay_ms: int, callback: Callable[[], None], name: str = '') -> ScheduledCall:
        return self._schedule(ScheduledCall(self.epoch, max(0, int(delay_ms)), callback, name))

    def call_every(self, interval_ms: int, callback: Callable[[], None], name: str = '') -> ScheduledCall:
        interval_ms = max(1, int(interval_ms))
        return self._schedule(ScheduledCall(self.epoch, interval_ms, callback, name, interval_ms=interval_ms))

    def _schedule(self, call: ScheduledCall) -> ScheduledCall:
        with self.lock:
            call.epoch = self.epoch
            self._pending.add(call)
            self._start(call)
            return call

    def _start(self, call: ScheduledCall) -> None:
        raise NotImplementedError

    def _fire(self, call: ScheduledCall) -> bool:
        """Run a due call. Returns True when a repeating call should fire again."""
        with self.lock:
            if call.cancelled:
                self._pending.discard(call)
                logger.debug(f"[timer-skip] {call.name} cancelled")
                return False
            if call.epoch != self.epoch:
                self._pending.discard(call)
                logger.info(f"[timer-abort] {call.name} epoch={call.epoch} current={self.epoch}")
                return False
            if not call.repeating:
                self._pending.discard(call)
            call.callback()
            return call.repeating and not call.cancelled


class SocketIOScheduler(EpochScheduler):
    """Runs each call as a Socket.IO background task inside an app context.

    A repeating call keeps one task that sleeps and fires in a loop.
    """

    def __init__(self, app, socketio):
        super().__init__()
        self.app = app
        self.socketio = socketio

    def _start(self, call: ScheduledCall) -> None:
        self.socketio.start_background_task(self._worker, call)

    def _worker(self, call: ScheduledCall) -> None:
        delay_ms = call.delay_ms
        while True:
            self.socketio.sleep(delay_ms / 1000.0)
            with self.app.app_context():
                try:
                    again = self._fire(call)
                except Exception:
                    self.app.logger.exception(f"[timer-error] {call.name} epoch={call.epoch}")
                    self.cancel(call)
                    again = False
            if not again:
                return
            delay_ms = call.interval_ms
