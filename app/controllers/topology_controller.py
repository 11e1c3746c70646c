"""Live proxy topology through the engine's control API.

Background refreshes degrade silently to the previous snapshot; user actions
(node switching) always end in a success or failure notification.
"""
from __future__ import annotations

import logging

from app.app_state import AppState
from app.services.control_api import ControlApiClient
from app.services.profile_schema import ControllerEndpoint, parse_controller_endpoint
from app.services.scheduler import RecurringTask
from app.services.settings import RuntimeSettings
from app.services.topology import (
    MalformedSnapshot,
    ProxyGroup,
    parse_latency_payload,
    parse_proxies_payload,
    selectable_groups,
)
from core.bridge import BridgeError
from core.errors import UpstreamError

LOG = logging.getLogger(__name__)


class TopologyController:
    def __init__(
        self,
        bridge,
        state: AppState,
        notifier,
        settings: RuntimeSettings | None = None,
        *,
        client_factory=ControlApiClient,
        timer=None,
        dispatcher=None,
    ):
        self.bridge = bridge
        self.state = state
        self.notifier = notifier
        self.settings = settings or RuntimeSettings.from_env()
        self._client_factory = client_factory
        self._timer = timer
        self._dispatcher = dispatcher
        self._endpoint: ControllerEndpoint | None = None
        self._client: ControlApiClient | None = None
        self._snapshot: dict[str, ProxyGroup] = {}
        self._poller: RecurringTask | None = None
        self.latency_results: dict[str, dict[str, int]] = {}

        state.active_profile_changed.connect(self._on_active_profile_changed)
        state.status_changed.connect(self._on_status_changed)

    # ---------------- endpoint ----------------
    @property
    def endpoint(self) -> ControllerEndpoint | None:
        return self._endpoint

    def resolve_endpoint(self) -> ControllerEndpoint:
        try:
            content = self.bridge.get_active_config_content()
        except BridgeError as exc:
            endpoint = ControllerEndpoint.unavailable(str(exc))
        else:
            endpoint = parse_controller_endpoint(content)

        if endpoint != self._endpoint:
            self._close_client()
            if endpoint.configured:
                self._client = self._client_factory(endpoint, timeout=self.settings.control_api_timeout_seconds)
            LOG.info("Control API endpoint: %s", endpoint.describe())
        self._endpoint = endpoint
        return endpoint

    def invalidate_endpoint(self) -> None:
        self._close_client()
        self._endpoint = None

    def _close_client(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _require_client(self) -> ControlApiClient:
        if self._endpoint is None:
            self.resolve_endpoint()
        if self._client is None:
            raise UpstreamError(self._endpoint.describe())
        return self._client

    def _on_active_profile_changed(self, _profile) -> None:
        self.invalidate_endpoint()
        self._snapshot = {}
        self.latency_results.clear()
        self.state.set_topology({})
        if self.state.snapshot().is_running:
            self.resolve_endpoint()

    def _on_status_changed(self, snapshot) -> None:
        # a fresh start may use content edited externally since the last read
        if snapshot.is_running and (snapshot.provisional or self._endpoint is None):
            self.resolve_endpoint()

    # ---------------- topology ----------------
    def snapshot(self) -> dict[str, ProxyGroup]:
        return dict(self._snapshot)

    def selectable_groups(self) -> dict[str, ProxyGroup]:
        return selectable_groups(self._snapshot)

    def request_snapshot(self, client: ControlApiClient | None = None) -> dict[str, ProxyGroup]:
        """Read the full proxy graph; raises UpstreamError on any failure."""
        if not self.state.snapshot().is_running:
            raise UpstreamError("engine is not running")
        client = client or self._require_client()
        try:
            return parse_proxies_payload(client.get_proxies())
        except MalformedSnapshot as exc:
            raise UpstreamError(f"malformed /proxies response: {exc}") from exc

    def apply_snapshot(self, groups: dict[str, ProxyGroup]) -> None:
        self._snapshot = dict(groups)
        self.state.set_topology(selectable_groups(self._snapshot))

    def fetch_topology(self) -> dict[str, ProxyGroup]:
        try:
            groups = self.request_snapshot()
        except UpstreamError as exc:
            LOG.debug("Topology refresh skipped: %s", exc)
            return self.snapshot()
        self.apply_snapshot(groups)
        return self.snapshot()

    def select_node(self, group: str, node: str) -> bool:
        try:
            client = self._require_client()
            client.select_proxy(group, node)
        except UpstreamError as exc:
            self.notifier.failure("Switch failed", f"Could not switch {group} to {node}: {exc.cause}")
            return False
        self.fetch_topology()
        self.notifier.success("Switched", f"{group} now uses {node}")
        return True

    def measure_latency(self, group: str) -> dict[str, int]:
        try:
            client = self._require_client()
            body = client.group_delay(
                group,
                self.settings.delay_test_url,
                self.settings.delay_test_timeout_ms,
                request_timeout=self.settings.delay_request_timeout_seconds,
            )
        except UpstreamError as exc:
            LOG.debug("Latency probe for %s failed: %s", group, exc)
            results = {}
        else:
            results = parse_latency_payload(body)
        self.latency_results[group] = results
        return dict(results)

    # ---------------- polling ----------------
    def _poll_job(self):
        client = self._client
        if client is None:
            raise UpstreamError("no endpoint configured")
        return self.request_snapshot(client)

    def _on_poll_error(self, error) -> None:
        LOG.debug("Topology poll failed: %s", error)

    def start_polling(self) -> RecurringTask:
        if self._endpoint is None:
            self.resolve_endpoint()
        if self._poller is None:
            self._poller = RecurringTask(
                "topology-poll",
                self._poll_job,
                self.apply_snapshot,
                self._on_poll_error,
                interval_ms=self.settings.topology_poll_interval_ms,
                timer=self._timer,
                dispatcher=self._dispatcher,
            )
        self._poller.start()
        return self._poller

    def stop_polling(self) -> None:
        if self._poller:
            self._poller.cancel()
