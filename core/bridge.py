"""Local host bridge: profile persistence, engine process control and app settings.

Every public method is one command of the bridge surface. Failures of any kind
(filesystem, SQLite, process) are raised as ``BridgeError`` so callers only
need to handle a single exception type.
"""
from __future__ import annotations

import functools
import logging
import os
import platform
import sqlite3
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path

from core import storage
from core.engine import EngineNotFoundError, EngineSupervisor, query_engine_version
from core.paths import default_config_dir
from core.storage import ConfigProfile

LOG = logging.getLogger(__name__)

DEFAULT_ENGINE_PATH = "sing-box"


class BridgeError(RuntimeError):
    """Raised when a bridge command fails."""


@dataclass(frozen=True)
class AppConfig:
    config_dir: str
    engine_path: str


def _command(func):
    """Translate low-level failures into BridgeError and log the command."""

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        LOG.debug("[%s] args=%s", func.__name__, args)
        try:
            return func(self, *args, **kwargs)
        except BridgeError:
            raise
        except (OSError, sqlite3.Error, EngineNotFoundError, subprocess.SubprocessError) as exc:
            raise BridgeError(f"{func.__name__} failed: {exc}") from exc

    return wrapper


class HostBridge:
    def __init__(self):
        self._process_lock = threading.Lock()
        self._supervisor: EngineSupervisor | None = None

    # ---------------- app settings ----------------
    @_command
    def get_app_config(self) -> AppConfig:
        config_dir = storage.get_app_state(storage.CONFIG_DIR_KEY) or str(default_config_dir())
        engine_path = storage.get_app_state(storage.ENGINE_PATH_KEY) or DEFAULT_ENGINE_PATH
        return AppConfig(config_dir=config_dir, engine_path=engine_path)

    @_command
    def update_app_config(self, config_dir: str | None = None, engine_path: str | None = None) -> None:
        """Persist non-empty fields; empty values keep the stored setting."""
        if config_dir:
            storage.set_app_state(storage.CONFIG_DIR_KEY, config_dir)
        if engine_path:
            storage.set_app_state(storage.ENGINE_PATH_KEY, engine_path)
        LOG.info("App config updated: config_dir=%s engine_path=%s", config_dir, engine_path)

    def _config_dir(self) -> Path:
        return Path(self.get_app_config().config_dir)

    def _resolve_in_config_dir(self, path: str) -> Path:
        config_dir = self._config_dir()
        candidate = Path(path)
        if not candidate.is_absolute():
            return config_dir / candidate
        if _is_within(candidate, config_dir):
            return candidate
        return config_dir / candidate.name

    # ---------------- profiles ----------------
    @_command
    def list_configs(self) -> list[ConfigProfile]:
        return storage.list_profiles()

    @_command
    def save_config(self, profile: ConfigProfile) -> None:
        if storage.get_profile(profile.id) is not None:
            raise BridgeError(f"Config id {profile.id} already exists")
        stored = ConfigProfile(
            id=profile.id,
            name=profile.name,
            path=str(self._resolve_in_config_dir(profile.path)),
        )
        storage.insert_profile(stored)
        LOG.info("Saved config %s (%s) at %s", stored.id, stored.name, stored.path)

    @_command
    def write_config_file(self, path: str, content: str) -> None:
        full_path = self._resolve_in_config_dir(path)
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_text(content, encoding="utf-8")
        LOG.info("Wrote config file %s", full_path)

    @_command
    def set_active_config(self, profile_id: str | None) -> None:
        storage.set_app_state(storage.ACTIVE_CONFIG_KEY, profile_id)
        LOG.info("Active config set to %s", profile_id)

    @_command
    def remove_config(self, profile_id: str) -> None:
        profile = storage.get_profile(profile_id)
        storage.delete_profile(profile_id)
        if profile is None:
            return
        content_path = Path(profile.path)
        if _is_within(content_path, self._config_dir()) and content_path.exists():
            try:
                content_path.unlink()
            except OSError:
                LOG.warning("Could not delete config file %s", content_path, exc_info=True)
        LOG.info("Removed config %s", profile_id)

    @_command
    def get_active_config(self) -> ConfigProfile | None:
        return storage.get_active_profile()

    @_command
    def get_active_config_content(self) -> str:
        profile = storage.get_active_profile()
        if profile is None:
            raise BridgeError("No active config")
        return Path(profile.path).read_text(encoding="utf-8")

    # ---------------- engine process ----------------
    @_command
    def start_service(self, config_path: str) -> None:
        with self._process_lock:
            if self._supervisor and self._supervisor.is_alive():
                raise BridgeError("Service is already running")
            if not Path(config_path).exists():
                raise BridgeError(f"Config '{config_path}' file not found")
            supervisor = EngineSupervisor(self.get_app_config().engine_path, config_path)
            supervisor.start()
            self._supervisor = supervisor

    @_command
    def stop_service(self) -> None:
        with self._process_lock:
            supervisor = self._supervisor
            if supervisor is None or not supervisor.is_alive():
                self._supervisor = None
                raise BridgeError("Service is not running")
            # a failed stop keeps the handle so status still sees a live child
            supervisor.stop()
            self._supervisor = None
        LOG.info("Engine stopped (exit code %s)", supervisor.exit_code)

    @_command
    def get_service_status(self) -> bool:
        with self._process_lock:
            return bool(self._supervisor and self._supervisor.is_alive())

    @_command
    def get_version(self) -> str:
        try:
            return query_engine_version(self.get_app_config().engine_path)
        except RuntimeError as exc:
            raise BridgeError(str(exc)) from exc

    def shutdown(self) -> None:
        """Stop a still-running engine when the host exits."""
        with self._process_lock:
            supervisor = self._supervisor
            self._supervisor = None
        if supervisor and supervisor.is_alive():
            supervisor.stop()

    # ---------------- file opener ----------------
    @_command
    def open_path(self, path: str) -> None:
        if not Path(path).exists():
            raise BridgeError(f"File not found: {path}")
        system = platform.system()
        if system == "Windows":
            os.startfile(path)  # type: ignore[attr-defined]
        elif system == "Darwin":
            subprocess.Popen(["open", path])
        else:
            subprocess.Popen(["xdg-open", path])


def _is_within(path: Path, base: Path) -> bool:
    try:
        path.resolve().relative_to(base.resolve())
    except ValueError:
        return False
    return True
