"""Error taxonomy for a roundtable session.

Per-role failures are demoted to abstentions by the orchestrator; only
QuorumError (and asyncio cancellation) ever reach the caller.
"""

from __future__ import annotations

from roundtable.models import RoleTiming


class RoundtableError(Exception):
    """Base for all roundtable failures."""


class MalformedResponseError(RoundtableError):
    """No extractable, decodable JSON object in the model output."""


class ResponseValidationError(RoundtableError):
    """JSON parsed but failed schema checks."""


class RoleTimeoutError(RoundtableError, TimeoutError):
    """A role or chairman call exceeded its bound."""

    def __init__(self, label: str, timeout_sec: float) -> None:
        self.label = label
        self.timeout_sec = timeout_sec
        super().__init__(f"{label} timed out after {timeout_sec}s")


class TransportError(RoundtableError):
    """Every provider failed for a single chat request."""


class QuorumError(RoundtableError):
    """Round 1 produced fewer opinions than the configured quorum."""

    def __init__(self, required: int, actual: int, timings: list[RoleTiming] | None = None) -> None:
        self.required = required
        self.actual = actual
        self.timings = list(timings or [])
        super().__init__(f"Roundtable quorum not met: need {required}, got {actual}")
