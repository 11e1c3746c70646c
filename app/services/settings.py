"""Runtime tuning read from the environment (poll cadence, probe parameters)."""
from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_DELAY_TEST_URL = "https://www.gstatic.com/generate_204"


@dataclass(frozen=True)
class RuntimeSettings:
    status_poll_interval_ms: int = 5000
    topology_poll_interval_ms: int = 5000
    delay_test_url: str = DEFAULT_DELAY_TEST_URL
    delay_test_timeout_ms: int = 5000
    control_api_timeout_seconds: float = 5.0

    @classmethod
    def from_env(cls) -> "RuntimeSettings":
        return cls(
            status_poll_interval_ms=int(os.getenv("STATUS_POLL_INTERVAL_MS", "5000")),
            topology_poll_interval_ms=int(os.getenv("TOPOLOGY_POLL_INTERVAL_MS", "5000")),
            delay_test_url=os.getenv("DELAY_TEST_URL", DEFAULT_DELAY_TEST_URL),
            delay_test_timeout_ms=int(os.getenv("DELAY_TEST_TIMEOUT_MS", "5000")),
            control_api_timeout_seconds=float(os.getenv("CONTROL_API_TIMEOUT_SECONDS", "5")),
        )

    @property
    def delay_request_timeout_seconds(self) -> float:
        """HTTP timeout for a probe: the engine's own timeout plus headroom."""
        return self.delay_test_timeout_ms / 1000 + self.control_api_timeout_seconds
