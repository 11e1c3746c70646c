"""Engine lifecycle: start/stop/restart commands and status reconciliation.

Status set by a command is provisional; the next reconciliation poll
overwrites it with what the bridge reports.
"""
from __future__ import annotations

import logging

from app.app_state import AppState
from app.services.lifecycle_state import (
    InvalidTransition,
    LifecycleState,
    LifecycleStateMachine,
    ServiceStatus,
)
from app.services.scheduler import RecurringTask
from app.services.settings import RuntimeSettings
from core.bridge import BridgeError
from core.errors import PreconditionError, RestartError, TransportError

LOG = logging.getLogger(__name__)


class ServiceController:
    def __init__(self, bridge, state: AppState, settings: RuntimeSettings | None = None, *, timer=None, dispatcher=None):
        self.bridge = bridge
        self.state = state
        self.settings = settings or RuntimeSettings.from_env()
        self._machine = LifecycleStateMachine()
        self._timer = timer
        self._dispatcher = dispatcher
        self._poller: RecurringTask | None = None

    def current_state(self) -> LifecycleState:
        return self._machine.state

    def is_running(self) -> bool:
        return self._machine.state == LifecycleState.RUNNING

    def _begin(self, transition) -> None:
        try:
            transition()
        except InvalidTransition as exc:
            raise PreconditionError(f"another lifecycle command is in flight ({exc})") from exc
        self.state.set_lifecycle(self._machine.state)

    def _settle(self, status: ServiceStatus) -> None:
        self._machine.settle(status)
        self.state.set_lifecycle(self._machine.state, status, provisional=True)

    def start(self, profile) -> None:
        if profile is None:
            raise PreconditionError("No active config: activate a config before starting")
        self._begin(self._machine.request_start)
        try:
            self.bridge.start_service(profile.path)
        except BridgeError as exc:
            self._settle(ServiceStatus.STOPPED)
            raise TransportError(f"Could not start engine: {exc}") from exc
        self._settle(ServiceStatus.RUNNING)
        LOG.info("Engine started with config %s (%s)", profile.id, profile.name)

    def stop(self) -> None:
        previous = self.state.snapshot().status
        self._begin(self._machine.request_stop)
        try:
            self.bridge.stop_service()
        except BridgeError as exc:
            # the process may still be running; keep whatever we believed
            self._settle(previous)
            raise TransportError(f"Could not stop engine: {exc}") from exc
        self._settle(ServiceStatus.STOPPED)
        LOG.info("Engine stopped")

    def restart(self, profile) -> None:
        if profile is None:
            raise PreconditionError("No active config: activate a config before restarting")
        try:
            self.stop()
        except TransportError as exc:
            raise RestartError("stopping", exc.cause) from exc
        try:
            self.start(profile)
        except TransportError as exc:
            raise RestartError("starting", exc.cause) from exc

    def poll_status(self) -> ServiceStatus:
        try:
            running = self.bridge.get_service_status()
        except BridgeError as exc:
            raise TransportError(f"Could not read engine status: {exc}") from exc
        return self.apply_polled_status(running)

    def apply_polled_status(self, running) -> ServiceStatus:
        status = ServiceStatus.RUNNING if running else ServiceStatus.STOPPED
        before = self.state.snapshot()
        if not self._machine.reconcile(status):
            LOG.debug("Status poll landed during a lifecycle command; ignored")
            return status
        if before.status != status and not before.provisional:
            LOG.warning("Engine status drifted: believed %s, observed %s", before.status.value, status.value)
        self.state.set_lifecycle(self._machine.state, status, provisional=False)
        return status

    def _on_poll_error(self, error) -> None:
        LOG.warning("Status poll failed: %s", error)

    def start_polling(self) -> RecurringTask:
        if self._poller is None:
            self._poller = RecurringTask(
                "status-poll",
                self.bridge.get_service_status,
                self.apply_polled_status,
                self._on_poll_error,
                interval_ms=self.settings.status_poll_interval_ms,
                timer=self._timer,
                dispatcher=self._dispatcher,
            )
        self._poller.start()
        return self._poller

    def stop_polling(self) -> None:
        if self._poller:
            self._poller.cancel()

    def version(self) -> str:
        try:
            return self.bridge.get_version()
        except BridgeError as exc:
            raise TransportError(f"Could not read engine version: {exc}") from exc
