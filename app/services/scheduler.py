"""Recurring background tasks with overlap suppression and cancellation.

A task is driven by a timer (anything with ``start(interval_ms, callback)`` and
``stop()``) and runs its job through a dispatcher (anything with
``submit(job, done)`` where ``done(result, error)`` is called on the owner
thread). Both are injectable so cadence and overlap can be tested without
waiting on a wall clock.
"""
from __future__ import annotations

import logging
from typing import Callable

from PyQt6.QtCore import QTimer

LOG = logging.getLogger(__name__)


class QtTimer:
    """Timer backend on the Qt event loop of the owning thread."""

    def __init__(self):
        self._timer = QTimer()
        self._callback: Callable[[], object] | None = None
        self._timer.timeout.connect(self._on_timeout)

    def _on_timeout(self):
        if self._callback:
            self._callback()

    def start(self, interval_ms: int, callback: Callable[[], object]) -> None:
        self._callback = callback
        self._timer.start(interval_ms)

    def stop(self) -> None:
        self._timer.stop()
        self._callback = None

    def is_active(self) -> bool:
        return self._timer.isActive()


class InlineDispatcher:
    """Run the job synchronously on the caller's thread."""

    def submit(self, job, done) -> None:
        try:
            result = job()
        except Exception as exc:
            done(None, exc)
            return
        done(result, None)


class RecurringTask:
    def __init__(
        self,
        name: str,
        job: Callable[[], object],
        on_result: Callable[[object], None],
        on_error: Callable[[Exception], None] | None = None,
        *,
        interval_ms: int,
        timer=None,
        dispatcher=None,
    ):
        self.name = name
        self.interval_ms = int(interval_ms)
        self._job = job
        self._on_result = on_result
        self._on_error = on_error
        self._timer = timer if timer is not None else QtTimer()
        self._dispatcher = dispatcher if dispatcher is not None else InlineDispatcher()
        self._active = False
        self._in_flight = False
        self._generation = 0
        self.skipped = 0

    @property
    def active(self) -> bool:
        return self._active

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def start(self, immediate: bool = True) -> None:
        if self._active:
            return
        self._active = True
        self._generation += 1
        self._timer.start(self.interval_ms, self.trigger)
        LOG.debug("[%s] scheduled every %d ms", self.name, self.interval_ms)
        if immediate:
            self.trigger()

    def cancel(self) -> None:
        """Stop rescheduling; a result still in flight is discarded when it lands."""
        if not self._active:
            return
        self._active = False
        self._generation += 1
        self._timer.stop()
        LOG.debug("[%s] cancelled", self.name)

    def trigger(self) -> bool:
        if self._in_flight:
            self.skipped += 1
            LOG.debug("[%s] previous run still in flight, skipping", self.name)
            return False
        self._in_flight = True
        generation = self._generation
        self._dispatcher.submit(self._job, lambda result, error: self._finish(generation, result, error))
        return True

    def _finish(self, generation: int, result, error) -> None:
        self._in_flight = False
        if generation != self._generation:
            LOG.debug("[%s] discarding result of a cancelled run", self.name)
            return
        if error is not None:
            if self._on_error:
                self._on_error(error)
            else:
                LOG.warning("[%s] run failed: %s", self.name, error)
            return
        self._on_result(result)
