"""Coalesces bursts of change notifications into single update calls.

``signal()`` may be called from any thread. ``run()`` occupies its own thread
and invokes the update function once a full quiescence window has passed
without a new signal (trailing-edge debounce). Continuous signalling faster
than the window keeps postponing the update; there is no maximum latency.

The update function always runs on the ``run()`` thread, so it never overlaps
with itself. A signal that arrives while it runs marks the state pending again
and produces one more call after the next quiet window.
"""

from __future__ import annotations

import enum
import queue
import threading
from typing import Callable, Optional

from lbsync.logger import get_logger
from lbsync.metrics import record_fire, record_signal

_logger = get_logger("updater")

UpdateFunc = Callable[[], None]


class UpdaterState(str, enum.Enum):
    IDLE = "idle"
    PENDING = "pending"
    FIRING = "firing"


class PendingState:
    """Idle/Pending/Firing state with compare-and-set transitions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = UpdaterState.IDLE

    @property
    def state(self) -> UpdaterState:
        with self._lock:
            return self._state

    @property
    def pending(self) -> bool:
        return self.state is UpdaterState.PENDING

    def _compare_and_set(self, expected: UpdaterState, new: UpdaterState) -> bool:
        with self._lock:
            if self._state is not expected:
                return False
            self._state = new
            return True

    def mark(self) -> None:
        with self._lock:
            self._state = UpdaterState.PENDING

    def take(self) -> bool:
        """Claim a pending change for the update about to start."""
        return self._compare_and_set(UpdaterState.PENDING, UpdaterState.FIRING)

    def finish(self) -> bool:
        """Return to idle unless a signal arrived while the update was running."""
        return self._compare_and_set(UpdaterState.FIRING, UpdaterState.IDLE)


class AntiBurstUpdater:
    def __init__(
        self,
        update: UpdateFunc,
        *,
        quiescence_seconds: float = 1.0,
        name: str = "updater",
    ) -> None:
        if quiescence_seconds <= 0:
            raise ValueError("quiescence_seconds must be greater than zero")
        self._update = update
        self._quiescence = quiescence_seconds
        self._name = name
        self._state = PendingState()
        # Capacity one plus join() makes signal() a rendezvous with the timer loop.
        self._burst: queue.Queue[None] = queue.Queue(maxsize=1)
        self._fire: queue.Queue[None] = queue.Queue(maxsize=1)
        self._stop = threading.Event()
        self._timer_thread: Optional[threading.Thread] = None
        self._invocations = 0

    @property
    def state(self) -> UpdaterState:
        return self._state.state

    @property
    def invocations(self) -> int:
        return self._invocations

    def signal(self) -> None:
        self._state.mark()
        record_signal()
        if self._stop.is_set():
            return
        self._burst.put(None)
        self._burst.join()

    def stop(self) -> None:
        self._stop.set()

    def run(self) -> None:
        self._timer_thread = threading.Thread(
            target=self._anti_burst,
            name=f"{self._name}-timer",
            daemon=True,
        )
        self._timer_thread.start()
        _logger.info(
            "updater.start",
            "Started update coordinator",
            quiescence_seconds=self._quiescence,
        )
        while not self._stop.is_set():
            try:
                self._fire.get(timeout=self._quiescence)
            except queue.Empty:
                continue
            self._fire.task_done()
            if not self._state.take():
                continue
            self._invoke()
            self._state.finish()
        _logger.info("updater.stop", "Stopped update coordinator", invocations=self._invocations)

    def _anti_burst(self) -> None:
        while not self._stop.is_set():
            try:
                self._burst.get(timeout=self._quiescence)
            except queue.Empty:
                if self._state.pending and not self._fire.full():
                    self._fire.put_nowait(None)
                continue
            self._burst.task_done()

    def _invoke(self) -> None:
        self._invocations += 1
        try:
            self._update()
        except Exception as exc:  # noqa: BLE001
            record_fire(ok=False)
            _logger.exception(
                "updater.update_error",
                "Update function failed; waiting for the next signal",
                error_type=type(exc).__name__,
            )
            return
        record_fire(ok=True)
