"""Test doubles shared by the controller tests."""
import subprocess
import sys

from core.bridge import AppConfig, BridgeError
from core.notifier import Notification

CONTROLLER_CONTENT = '{"experimental": {"clash_api": {"external_controller": "127.0.0.1:9090"}}}'


def _module_importable(module: str) -> bool:
    """Return True when module can be imported in a subprocess."""
    result = subprocess.run(
        [sys.executable, "-c", f"import {module}"],
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        check=False,
    )
    return result.returncode == 0


QT_AVAILABLE = _module_importable("PyQt6.QtCore")


class FakeBridge:
    """In-memory bridge; set ``fail[name]`` to make a command raise BridgeError."""

    def __init__(self):
        self.profiles = {}
        self.files = {}
        self.active = None
        self.running = False
        self.fail = {}
        self.calls = []
        self.clear_active_on_remove = True
        self.version = "1.8.0"
        self.app_config = AppConfig(config_dir="/configs", engine_path="sing-box")
        self.opened = []

    def _check(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.fail:
            raise BridgeError(self.fail[name])

    def get_app_config(self):
        self._check("get_app_config")
        return self.app_config

    def update_app_config(self, config_dir=None, engine_path=None):
        self._check("update_app_config", config_dir, engine_path)
        self.app_config = AppConfig(
            config_dir=config_dir or self.app_config.config_dir,
            engine_path=engine_path or self.app_config.engine_path,
        )

    def list_configs(self):
        self._check("list_configs")
        return list(self.profiles.values())

    def save_config(self, profile):
        self._check("save_config", profile.id)
        if profile.id in self.profiles:
            raise BridgeError(f"Config id {profile.id} already exists")
        self.profiles[profile.id] = profile

    def write_config_file(self, path, content):
        self._check("write_config_file", path)
        self.files[path] = content

    def set_active_config(self, profile_id):
        self._check("set_active_config", profile_id)
        self.active = self.profiles.get(profile_id) if profile_id else None

    def remove_config(self, profile_id):
        self._check("remove_config", profile_id)
        profile = self.profiles.pop(profile_id, None)
        if profile is not None:
            self.files.pop(profile.path, None)
        if self.clear_active_on_remove and self.active and self.active.id == profile_id:
            self.active = None

    def get_active_config(self):
        self._check("get_active_config")
        return self.active

    def get_active_config_content(self):
        self._check("get_active_config_content")
        if self.active is None:
            raise BridgeError("No active config")
        return self.files[self.active.path]

    def start_service(self, config_path):
        self._check("start_service", config_path)
        if self.running:
            raise BridgeError("Service is already running")
        self.running = True

    def stop_service(self):
        self._check("stop_service")
        if not self.running:
            raise BridgeError("Service is not running")
        self.running = False

    def get_service_status(self):
        self._check("get_service_status")
        return self.running

    def get_version(self):
        self._check("get_version")
        return self.version

    def open_path(self, path):
        self._check("open_path", path)
        self.opened.append(path)

    def shutdown(self):
        self.running = False


class ManualTimer:
    """Timer stand-in: the test fires ticks explicitly."""

    def __init__(self):
        self.callback = None
        self.interval_ms = None
        self.active = False

    def start(self, interval_ms, callback):
        self.interval_ms = interval_ms
        self.callback = callback
        self.active = True

    def stop(self):
        self.active = False
        self.callback = None

    def fire(self):
        if self.active and self.callback:
            self.callback()


class DeferredDispatcher:
    """Hold submitted jobs until the test completes them, like a slow worker."""

    def __init__(self):
        self.pending = []

    def submit(self, job, done):
        self.pending.append((job, done))

    def complete_next(self):
        job, done = self.pending.pop(0)
        try:
            result = job()
        except Exception as exc:
            done(None, exc)
            return
        done(result, None)


class RecordingNotifier:
    def __init__(self):
        self.items = []

    def notify(self, title, message, error=False):
        item = Notification(title=title, message=message, error=error)
        self.items.append(item)
        return item

    def success(self, title, message):
        return self.notify(title, message)

    def failure(self, title, message):
        return self.notify(title, message, error=True)

    @property
    def failures(self):
        return [item for item in self.items if item.error]

    @property
    def successes(self):
        return [item for item in self.items if not item.error]
