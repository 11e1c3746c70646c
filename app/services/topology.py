"""Proxy-group snapshot types, display filtering and latency tiers."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping

SELECTABLE_GROUP_TYPES = frozenset({"Selector", "URLTest"})

TYPE_LABELS = {
    "vmess": "VMess",
    "shadowsocks": "SS",
    "selector": "Selector",
    "urltest": "URL Test",
    "direct": "Direct",
    "reject": "Reject",
    "dns": "DNS",
}


class MalformedSnapshot(ValueError):
    pass


class LatencyTier(str, Enum):
    BEST = "best"
    GOOD = "good"
    MARGINAL = "marginal"
    POOR = "poor"


def classify_latency(millis: int) -> LatencyTier:
    if millis < 200:
        return LatencyTier.BEST
    if millis < 500:
        return LatencyTier.GOOD
    if millis < 700:
        return LatencyTier.MARGINAL
    return LatencyTier.POOR


def display_type(group_type: str) -> str:
    return TYPE_LABELS.get(group_type.lower(), group_type)


@dataclass(frozen=True)
class LatencySample:
    timestamp: str
    millis: int


@dataclass(frozen=True)
class ProxyGroup:
    name: str
    type: str
    current_selection: str | None
    members: tuple[str, ...]
    latency_history: tuple[LatencySample, ...] = ()

    @property
    def selectable(self) -> bool:
        return self.type in SELECTABLE_GROUP_TYPES

    @property
    def last_latency(self) -> int | None:
        return self.latency_history[-1].millis if self.latency_history else None

    @classmethod
    def from_api(cls, key: str, payload: dict) -> "ProxyGroup":
        if not isinstance(payload, dict):
            raise MalformedSnapshot(f"proxy {key!r} is not an object")
        group_type = payload.get("type")
        if not isinstance(group_type, str):
            raise MalformedSnapshot(f"proxy {key!r} has no type")
        members = payload.get("all") or []
        if not isinstance(members, list):
            raise MalformedSnapshot(f"proxy {key!r} has a non-list 'all'")
        history = []
        for entry in payload.get("history") or []:
            if isinstance(entry, dict) and isinstance(entry.get("delay"), int):
                history.append(LatencySample(timestamp=str(entry.get("time", "")), millis=entry["delay"]))
        now = payload.get("now")
        return cls(
            name=key,
            type=group_type,
            current_selection=now if isinstance(now, str) and now else None,
            members=tuple(str(m) for m in members),
            latency_history=tuple(history),
        )


def parse_proxies_payload(body: object) -> dict[str, ProxyGroup]:
    """Parse ``GET /proxies``; raises MalformedSnapshot on unexpected shapes."""
    if not isinstance(body, dict) or not isinstance(body.get("proxies"), dict):
        raise MalformedSnapshot("response has no 'proxies' object")
    return {name: ProxyGroup.from_api(name, payload) for name, payload in body["proxies"].items()}


def selectable_groups(snapshot: Mapping[str, ProxyGroup]) -> dict[str, ProxyGroup]:
    """Groups a user can switch (Selector / URLTest), in snapshot order."""
    return {name: group for name, group in snapshot.items() if group.selectable}


def parse_latency_payload(body: object) -> dict[str, int]:
    """Keep integer measurements only; anything else means no data for that member."""
    if not isinstance(body, dict):
        return {}
    return {
        str(name): value
        for name, value in body.items()
        if isinstance(value, int) and not isinstance(value, bool)
    }
