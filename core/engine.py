"""Supervise the proxy engine process (sing-box compatible CLI)."""
from __future__ import annotations

import logging
import os
import re
import subprocess
import threading
from enum import Enum

LOG = logging.getLogger(__name__)

ENGINE_STOP_TIMEOUT_SECONDS = float(os.getenv("ENGINE_STOP_TIMEOUT_SECONDS", "5"))
_VERSION_RE = re.compile(r"version\s+(\d+\.\d+\.\d+)")


class EngineNotFoundError(RuntimeError):
    """Raised when the engine executable cannot be located."""


class LogLevel(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


def build_engine_run_command(engine_path: str, config_path: str) -> list[str]:
    return [engine_path, "run", "-c", config_path]


def parse_engine_version(output: str) -> str | None:
    """Extract ``X.Y.Z`` from ``<engine> version`` output."""
    match = _VERSION_RE.search(output or "")
    return match.group(1) if match else None


def query_engine_version(engine_path: str, timeout: float = 10) -> str:
    try:
        result = subprocess.run(
            [engine_path, "version"],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=timeout,
            check=False,
            text=True,
        )
    except FileNotFoundError as exc:
        raise EngineNotFoundError(f"engine executable not found: {engine_path}") from exc
    version = parse_engine_version(result.stdout)
    if version is None:
        raise RuntimeError(f"could not read version from {engine_path!r}")
    return version


class EngineSupervisor:
    """Own a single engine child process and forward its stderr to logging."""

    def __init__(self, engine_path: str, config_path: str):
        self.engine_path = engine_path
        self.config_path = config_path
        self.process: subprocess.Popen | None = None
        self._stderr_thread: threading.Thread | None = None
        self.last_error: str | None = None

    def start(self) -> None:
        cmd = build_engine_run_command(self.engine_path, self.config_path)
        LOG.info("Starting engine: %s", " ".join(cmd))
        try:
            self.process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                creationflags=getattr(subprocess, "CREATE_NO_WINDOW", 0),
            )
        except FileNotFoundError as exc:
            raise EngineNotFoundError(str(exc)) from exc

        self._stderr_thread = threading.Thread(target=self._stderr_loop, daemon=True)
        self._stderr_thread.start()

    def _stderr_loop(self) -> None:
        if not self.process or not self.process.stderr:
            return
        for raw in iter(self.process.stderr.readline, b""):
            text = raw.decode(errors="ignore").strip()
            if not text:
                continue
            level = self._classify_log(text)
            getattr(LOG, level.value.lower())("engine: %s", text)
            if level == LogLevel.ERROR:
                self.last_error = text

    @staticmethod
    def _classify_log(text: str) -> LogLevel:
        lowered = text.lower()
        if any(token in lowered for token in ("error", "fatal", "panic")):
            return LogLevel.ERROR
        if any(token in lowered for token in ("warn", "deprecated")):
            return LogLevel.WARNING
        return LogLevel.INFO

    def stop(self, timeout: float = ENGINE_STOP_TIMEOUT_SECONDS) -> None:
        if self.process and self.process.poll() is None:
            self.process.terminate()
            try:
                self.process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                LOG.warning("Engine did not exit within %.1fs, killing", timeout)
                self.process.kill()
                self.process.wait(timeout=timeout)
        if self._stderr_thread:
            self._stderr_thread.join(timeout=timeout)

    def is_alive(self) -> bool:
        return bool(self.process and self.process.poll() is None)

    @property
    def exit_code(self) -> int | None:
        return self.process.poll() if self.process else None
