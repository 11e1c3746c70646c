"""HTTP client for the engine's Clash-compatible control API."""
from __future__ import annotations

import logging
from urllib.parse import quote

import requests

from app.services.profile_schema import ControllerEndpoint
from core.errors import UpstreamError

LOG = logging.getLogger(__name__)


class ControlApiClient:
    def __init__(self, endpoint: ControllerEndpoint, timeout: float = 5.0, session: requests.Session | None = None):
        if not endpoint.configured:
            raise UpstreamError(endpoint.describe())
        self.endpoint = endpoint
        self.base_url = endpoint.base_url
        self.timeout = timeout
        self.session = session or requests.Session()
        if endpoint.secret:
            self.session.headers["Authorization"] = f"Bearer {endpoint.secret}"

    def _url(self, *segments: str) -> str:
        return self.base_url + "".join("/" + quote(segment, safe="") for segment in segments)

    def _request(self, method: str, url: str, timeout: float | None = None, **kwargs) -> requests.Response:
        try:
            response = self.session.request(method, url, timeout=timeout or self.timeout, **kwargs)
            response.raise_for_status()
        except requests.exceptions.HTTPError as exc:
            raise UpstreamError(f"{method} {url} returned {exc.response.status_code}") from exc
        except requests.exceptions.RequestException as exc:
            raise UpstreamError(f"{method} {url} failed: {exc}") from exc
        return response

    def _json(self, response: requests.Response):
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(f"{response.url} returned a non-JSON body") from exc

    def get_proxies(self) -> dict:
        return self._json(self._request("GET", self._url("proxies")))

    def select_proxy(self, group: str, node: str) -> None:
        self._request("PUT", self._url("proxies", group), json={"name": node})

    def group_delay(self, group: str, test_url: str, timeout_ms: int, request_timeout: float | None = None) -> dict:
        response = self._request(
            "GET",
            self._url("group", group, "delay"),
            params={"url": test_url, "timeout": timeout_ms},
            timeout=request_timeout,
        )
        return self._json(response)

    def close(self) -> None:
        self.session.close()
