import logging

from app.app_state import AppState
from app.services.lifecycle_state import LifecycleState
from app.services.scheduler import RecurringTask
from app.services.settings import RuntimeSettings
from core.bridge import BridgeError
from core.errors import ConflictError, TransportError, ValidationError
from core.profiles import (
    new_profile_id,
    profile_file_name,
    validate_profile_content,
    validate_profile_name,
)
from core.storage import ConfigProfile

LOG = logging.getLogger(__name__)


class ProfileController:
    """Config registry: profile CRUD and the single active pointer."""

    def __init__(self, bridge, state: AppState, settings: RuntimeSettings | None = None, *, timer=None, dispatcher=None):
        self.bridge = bridge
        self.state = state
        self.settings = settings or RuntimeSettings.from_env()
        self._timer = timer
        self._dispatcher = dispatcher
        self._poller: RecurringTask | None = None

    def _call(self, what, func, *args):
        try:
            return func(*args)
        except BridgeError as exc:
            raise TransportError(f"{what}: {exc}") from exc

    def list_profiles(self) -> list[ConfigProfile]:
        """Mutates: none. Returns: profiles, always re-read from the bridge."""
        return self._call("Could not list configs", self.bridge.list_configs)

    def _read_registry(self):
        profiles = self.list_profiles()
        active = self._call("Could not read active config", self.bridge.get_active_config)
        if active is not None and all(p.id != active.id for p in profiles):
            LOG.warning("Active pointer %s names a missing config; ignoring it", active.id)
            active = None
        return profiles, active

    def _apply_registry(self, result) -> None:
        self.state.set_active_profile(result[1])

    def refresh(self):
        """
        Mutates: active_profile.
        Returns: (list[ConfigProfile], ConfigProfile | None)
        A pointer to a profile missing from the list is treated as no active profile.
        """
        profiles, active = self._read_registry()
        self.state.set_active_profile(active)
        return profiles, active

    def active_profile(self) -> ConfigProfile | None:
        """Mutates: active_profile. Returns: the freshly read active profile."""
        return self.refresh()[1]

    def create_profile(self, name, content) -> ConfigProfile:
        """Mutates: none (the active pointer is untouched). Returns: the saved profile."""
        valid, message = validate_profile_name(name)
        if not valid:
            raise ValidationError(message)
        valid, message = validate_profile_content(content)
        if not valid:
            raise ValidationError(message)

        existing = self.list_profiles()
        profile_id = new_profile_id(p.id for p in existing)
        path = profile_file_name(profile_id)
        profile = ConfigProfile(id=profile_id, name=name.strip(), path=path)

        self._call("Could not save config", self.bridge.save_config, profile)
        try:
            self.bridge.write_config_file(path, content)
        except BridgeError as exc:
            try:
                self.bridge.remove_config(profile_id)
            except BridgeError:
                LOG.warning("Could not roll back metadata for config %s", profile_id, exc_info=True)
            raise TransportError(f"Could not write config content: {exc}") from exc

        LOG.info("Created config %s (%s)", profile.id, profile.name)
        saved = {p.id: p for p in self.list_profiles()}
        return saved.get(profile_id, profile)

    def activate_profile(self, profile_id):
        """Mutates: active_profile. Refused while the engine runs or a command is in flight."""
        snapshot = self.state.snapshot()
        if snapshot.lifecycle != LifecycleState.STOPPED:
            raise ConflictError("service running: stop the engine before switching configs")

        profiles = self.list_profiles()
        target = next((p for p in profiles if p.id == profile_id), None)
        if target is None:
            raise ValidationError(f"Unknown config id {profile_id!r}")
        current = self._call("Could not read active config", self.bridge.get_active_config)
        if current is not None and current.id == profile_id:
            LOG.debug("Config %s already active", profile_id)
            self.state.set_active_profile(target)
            return target

        self._call("Could not activate config", self.bridge.set_active_config, profile_id)
        self.state.set_active_profile(target)
        return target

    def remove_profile(self, profile_id):
        """
        Mutates: active_profile when the removed profile was active.
        The bridge's pointer is re-read after removal and cleared here if it is stale.
        """
        self._call("Could not remove config", self.bridge.remove_config, profile_id)
        active = self._call("Could not read active config", self.bridge.get_active_config)
        if active is not None and active.id == profile_id:
            LOG.warning("Bridge kept removed config %s active; clearing pointer", profile_id)
            self._call("Could not clear active config", self.bridge.set_active_config, None)
        return self.refresh()[0]

    def open_externally(self, path):
        """Mutates: none. Opens the content file with the system editor; never retried."""
        self._call("Could not open config file", self.bridge.open_path, path)

    # ---------------- polling ----------------
    def _on_poll_error(self, error) -> None:
        LOG.warning("Config registry poll failed: %s", error)

    def start_polling(self) -> RecurringTask:
        """Re-read the active pointer on the status cadence so outside changes show up."""
        if self._poller is None:
            self._poller = RecurringTask(
                "registry-poll",
                self._read_registry,
                self._apply_registry,
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
