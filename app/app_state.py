"""Single-owner state container shared by the registry, lifecycle and topology layers.

Each field has exactly one writer:
 - active profile: ProfileController
 - status / lifecycle: ServiceController
 - topology: TopologyController
Readers take immutable snapshots or subscribe to the change signals.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping

from PyQt6.QtCore import QObject, pyqtSignal

from app.services.lifecycle_state import LifecycleState, ServiceStatus
from core.storage import ConfigProfile


@dataclass(frozen=True)
class AppSnapshot:
    status: ServiceStatus = ServiceStatus.STOPPED
    lifecycle: LifecycleState = LifecycleState.STOPPED
    # True while status was set by a command and no poll has confirmed it yet
    provisional: bool = False
    active_profile: ConfigProfile | None = None
    topology: Mapping[str, object] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def is_running(self) -> bool:
        """Only a settled RUNNING state counts; STARTING never does."""
        return self.lifecycle == LifecycleState.RUNNING

    @property
    def busy(self) -> bool:
        return self.lifecycle.in_flight


class AppState(QObject):
    status_changed = pyqtSignal(object)
    active_profile_changed = pyqtSignal(object)
    topology_changed = pyqtSignal(object)

    def __init__(self):
        super().__init__()
        self._snapshot = AppSnapshot()

    def snapshot(self) -> AppSnapshot:
        return self._snapshot

    def set_lifecycle(self, lifecycle: LifecycleState, status: ServiceStatus | None = None, provisional: bool | None = None) -> None:
        current = self._snapshot
        updated = replace(
            current,
            lifecycle=lifecycle,
            status=current.status if status is None else status,
            provisional=current.provisional if provisional is None else provisional,
        )
        if updated == current:
            return
        self._snapshot = updated
        self.status_changed.emit(updated)

    def set_active_profile(self, profile: ConfigProfile | None) -> None:
        if profile == self._snapshot.active_profile:
            return
        self._snapshot = replace(self._snapshot, active_profile=profile)
        self.active_profile_changed.emit(profile)

    def set_topology(self, groups: Mapping[str, object]) -> None:
        frozen = MappingProxyType(dict(groups))
        self._snapshot = replace(self._snapshot, topology=frozen)
        self.topology_changed.emit(frozen)
