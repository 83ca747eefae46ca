"""Phase timers.

A session owns at most one live timer handle. Handles are cancelled on every
phase change; a callback whose handle was cancelled before it fired is
dropped by the worker.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, List

logger = logging.getLogger(__name__)


def monotonic_ns() -> int:
    return time.perf_counter_ns()


class TimerHandle:
    def __init__(self, delay: float, callback: Callable[[], None], label: str = ''):
        self.delay = delay
        self.callback = callback
        self.label = label
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)

    def fire(self) -> None:
        if not self.active:
            logger.info(f"[timer-abort] {self.label} cancelled before firing")
            return
        self.fired = True
        logger.info(f"[timer-fire] {self.label}")
        self.callback()


class SocketIOScheduler:
    """Runs each timer as a Socket.IO background task."""

    def __init__(self, socketio, heartbeat_sec: int = 0):
        self.socketio = socketio
        self.heartbeat_sec = heartbeat_sec

    def schedule(self, delay: float, callback: Callable[[], None], label: str = '') -> TimerHandle:
        handle = TimerHandle(delay, callback, label)
        logger.info(f"[timer-set] {label} duration={delay}s")
        self.socketio.start_background_task(self._worker, handle)
        return handle

    def _worker(self, handle: TimerHandle) -> None:
        if self.heartbeat_sec and self.heartbeat_sec > 0:
            slept = 0.0
            while slept < handle.delay and not handle.cancelled:
                step = min(self.heartbeat_sec, handle.delay - slept)
                self.socketio.sleep(step)
                slept += step
                logger.info(f"[timer-heartbeat] {handle.label} remaining={max(0.0, handle.delay - slept)}s")
        else:
            self.socketio.sleep(handle.delay)
        try:
            handle.fire()
        except Exception:
            logger.exception(f"[timer-error] {handle.label}")


class ManualScheduler:
    """Collects timers without running them; tests fire them explicitly."""

    def __init__(self):
        self.handles: List[TimerHandle] = []

    def schedule(self, delay: float, callback: Callable[[], None], label: str = '') -> TimerHandle:
        handle = TimerHandle(delay, callback, label)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> List[TimerHandle]:
        return [h for h in self.handles if h.active]

    def run_next(self) -> TimerHandle:
        """Fire the oldest pending timer and return it."""
        handle = self.pending[0]
        handle.fire()
        return handle
