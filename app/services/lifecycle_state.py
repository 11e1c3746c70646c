"""Engine lifecycle state machine: settled states plus transient command intents."""
from __future__ import annotations

import threading
from enum import Enum


class ServiceStatus(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class LifecycleState(str, Enum):
    STOPPED = "STOPPED"
    STARTING = "STARTING"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"

    @property
    def in_flight(self) -> bool:
        return self in (LifecycleState.STARTING, LifecycleState.STOPPING)


_SETTLED = {
    ServiceStatus.STOPPED: LifecycleState.STOPPED,
    ServiceStatus.RUNNING: LifecycleState.RUNNING,
}


class InvalidTransition(RuntimeError):
    pass


class LifecycleStateMachine:
    def __init__(self):
        self._state = LifecycleState.STOPPED
        self._lock = threading.Lock()

    @property
    def state(self) -> LifecycleState:
        with self._lock:
            return self._state

    def _transition(self, expected: set[LifecycleState], new_state: LifecycleState) -> LifecycleState:
        with self._lock:
            if self._state not in expected:
                raise InvalidTransition(f"Cannot transition {self._state.value} -> {new_state.value}")
            self._state = new_state
            return self._state

    def request_start(self) -> LifecycleState:
        return self._transition({LifecycleState.STOPPED, LifecycleState.RUNNING}, LifecycleState.STARTING)

    def request_stop(self) -> LifecycleState:
        return self._transition({LifecycleState.STOPPED, LifecycleState.RUNNING}, LifecycleState.STOPPING)

    def settle(self, status: ServiceStatus) -> LifecycleState:
        """Collapse a transient intent once its command has completed."""
        return self._transition({LifecycleState.STARTING, LifecycleState.STOPPING}, _SETTLED[status])

    def reconcile(self, status: ServiceStatus) -> bool:
        """Apply polled truth; ignored while a command is in flight."""
        with self._lock:
            if self._state.in_flight:
                return False
            self._state = _SETTLED[status]
            return True
