"""Partial schema of engine profile content: only the control API settings.

Reads ``experimental.clash_api.external_controller`` (``host:port``) and the
optional ``experimental.clash_api.secret``. A missing field is a normal
outcome (ABSENT), distinct from a present-but-unusable one (MALFORMED).
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum

_WILDCARD_HOSTS = {"": "127.0.0.1", "0.0.0.0": "127.0.0.1", "[::]": "[::1]"}


class EndpointStatus(str, Enum):
    CONFIGURED = "configured"
    ABSENT = "absent"
    MALFORMED = "malformed"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class ControllerEndpoint:
    status: EndpointStatus
    address: str | None = None
    secret: str | None = None
    detail: str = ""

    @property
    def configured(self) -> bool:
        return self.status == EndpointStatus.CONFIGURED

    @property
    def base_url(self) -> str | None:
        return f"http://{self.address}" if self.configured else None

    @classmethod
    def unavailable(cls, detail: str) -> "ControllerEndpoint":
        return cls(EndpointStatus.UNAVAILABLE, detail=detail)

    def describe(self) -> str:
        if self.configured:
            return self.address
        return f"no endpoint configured ({self.status.value}: {self.detail})"


def normalize_address(value: str) -> str | None:
    """Return a dialable ``host:port`` or None when value is not one."""
    host, sep, port = value.strip().rpartition(":")
    if not sep or not port.isdigit():
        return None
    if not 0 < int(port) < 65536:
        return None
    if host.startswith("[") != host.endswith("]"):
        return None
    if ":" in host and not host.startswith("["):
        return None
    host = _WILDCARD_HOSTS.get(host, host)
    return f"{host}:{int(port)}"


def _section(parent: dict, key: str):
    """Return (value, error) where error names a non-object section."""
    value = parent.get(key)
    if value is None:
        return None, None
    if not isinstance(value, dict):
        return None, f"'{key}' is not an object"
    return value, None


def parse_controller_endpoint(content: str) -> ControllerEndpoint:
    try:
        document = json.loads(content)
    except (TypeError, ValueError) as exc:
        return ControllerEndpoint(EndpointStatus.MALFORMED, detail=f"content is not JSON: {exc}")
    if not isinstance(document, dict):
        return ControllerEndpoint(EndpointStatus.MALFORMED, detail="content is not a JSON object")

    experimental, error = _section(document, "experimental")
    if error:
        return ControllerEndpoint(EndpointStatus.MALFORMED, detail=error)
    if experimental is None:
        return ControllerEndpoint(EndpointStatus.ABSENT, detail="'experimental' not set")

    clash_api, error = _section(experimental, "clash_api")
    if error:
        return ControllerEndpoint(EndpointStatus.MALFORMED, detail=error)
    if clash_api is None:
        return ControllerEndpoint(EndpointStatus.ABSENT, detail="'experimental.clash_api' not set")

    raw = clash_api.get("external_controller")
    if raw is None or raw == "":
        return ControllerEndpoint(EndpointStatus.ABSENT, detail="'external_controller' not set")
    if not isinstance(raw, str):
        return ControllerEndpoint(EndpointStatus.MALFORMED, detail="'external_controller' is not a string")
    address = normalize_address(raw)
    if address is None:
        return ControllerEndpoint(EndpointStatus.MALFORMED, detail=f"'{raw}' is not host:port")

    secret = clash_api.get("secret")
    if not isinstance(secret, str) or not secret:
        secret = None
    return ControllerEndpoint(EndpointStatus.CONFIGURED, address=address, secret=secret)
