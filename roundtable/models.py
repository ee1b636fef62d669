"""Pure dataclasses for the roundtable pipeline records. No logic, no deps."""

from dataclasses import dataclass, field
from typing import Any, Literal

RoundLabel = Literal["R1", "R2", "chairman"]
TimingStatus = Literal["ok", "failed", "timeout"]
Depth = Literal["quick", "standard", "deep"]


@dataclass
class ChatMessage:
    role: str              # "system", "user" or "assistant"
    content: str


@dataclass
class ChatResponse:
    provider: str          # "deepseek", "qwen", "openai", "claude", "gemini"
    model: str             # actual model string used
    content: str
    latency_sec: float
    token_count: int | None = None


@dataclass
class RoleTiming:
    role: str
    round: RoundLabel
    duration_ms: int
    status: TimingStatus


@dataclass
class PhaseEvent:
    phase: str             # "start", "round1_start", "round1_done", ..., "done"
    symbol: str
    session_id: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class SessionResult:
    session_id: str
    symbol: str
    depth: Depth
    round1: list           # list[schemas.Opinion]
    round2: list | None    # list[schemas.DebateResponse] or None when skipped
    decision: Any          # schemas.Decision
    consensus_level: str
    total_duration_ms: int
    decision_source: Literal["chairman", "fallback"] = "chairman"
    timings: list[RoleTiming] = field(default_factory=list)


@dataclass
class DiscussionRecord:
    session_id: str
    symbol: str
    depth: str
    round1_json: str
    round2_json: str | None
    decision_json: str
    consensus_level: str
    duration_ms: int
    action_taken: str
    timings_json: str | None = None
    created_at: str | None = None
