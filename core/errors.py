"""Error taxonomy shared by the registry, lifecycle and topology layers."""
from __future__ import annotations


class BoxPilotError(Exception):
    """Base error carrying a human-readable cause."""

    def __init__(self, cause: str):
        super().__init__(cause)
        self.cause = cause


class ValidationError(BoxPilotError):
    """Input rejected before any side effect happened."""


class PreconditionError(BoxPilotError):
    """Operation attempted in a state that does not allow it."""


class ConflictError(PreconditionError):
    """Profile activation attempted while the engine is running."""


class TransportError(BoxPilotError):
    """A host bridge call failed."""


class RestartError(TransportError):
    """Restart failed; ``phase`` is ``"stopping"`` or ``"starting"``."""

    def __init__(self, phase: str, cause: str):
        super().__init__(f"restart failed while {phase}: {cause}")
        self.phase = phase


class UpstreamError(BoxPilotError):
    """The engine's control API rejected or did not answer a request."""
