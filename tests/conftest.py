"""Shared pytest fixtures."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import AppConfig, ModelConfig, RoundtableConfig, RouterConfig
from roundtable.inputs import SessionInput
from roundtable.models import ChatMessage, ChatResponse, RoleTiming, SessionResult
from roundtable.providers.base import ChatProvider
from roundtable.roles.base import RoleAgent
from roundtable.schemas import (
    Challenge,
    ConsensusLevel,
    DebateResponse,
    Decision,
    Opinion,
    Severity,
    Stance,
    SuggestedParams,
)

SYMBOL = "BTC/USDT:USDT"

ROLE_IDS = (
    "chief-strategist",
    "technical-analyst",
    "risk-manager",
    "execution-trader",
    "sentiment-analyst",
    "portfolio-manager",
)


def make_opinion(
    role: str,
    stance: Stance = Stance.LONG,
    confidence: float = 0.8,
    key_points: list[str] | None = None,
    suggested_params: SuggestedParams | None = None,
) -> Opinion:
    return Opinion(
        role=role,
        stance=stance,
        confidence=confidence,
        reasoning=f"{role} sees {stance.value}",
        key_points=key_points if key_points is not None else [f"{role} point"],
        suggested_params=suggested_params,
    )


def make_debate(
    role: str,
    stance: Stance = Stance.LONG,
    confidence: float = 0.7,
    changed: bool = False,
    challenges: list[Challenge] | None = None,
) -> DebateResponse:
    return DebateResponse(
        role=role,
        revised_stance=stance,
        final_confidence=confidence,
        stance_changed=changed,
        agreements=[],
        challenges=challenges or [],
        final_reasoning=f"{role} after debate: {stance.value}",
    )


def make_decision(action: Stance = Stance.LONG, confidence: float = 0.75) -> Decision:
    return Decision(
        action=action,
        symbol=SYMBOL,
        confidence=confidence,
        reasoning="Chairman weighed the table",
        consensus_level=ConsensusLevel.MAJORITY,
        key_debate_points=["trend aligned"],
        risk_manager_verdict="acceptable",
    )


def critical_challenge(to_role: str = "chief-strategist") -> Challenge:
    return Challenge(to_role=to_role, challenge="stop far too wide", severity=Severity.CRITICAL)


def chat_response(content: str, provider: str = "mock") -> ChatResponse:
    return ChatResponse(provider=provider, model="mock-model", content=content, latency_sec=0.1, token_count=10)


class MockProvider(ChatProvider):
    """Test double ChatProvider."""

    def __init__(self, provider_name: str = "mock", response_content: str = "OK", available: bool = True) -> None:
        self._name = provider_name
        self._available = available
        # Shadow the class method with an AsyncMock at the instance level.
        self.chat = AsyncMock(return_value=chat_response(response_content, provider_name))  # type: ignore[assignment]

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    def is_available(self) -> bool:
        return self._available

    async def chat(self, messages: list[ChatMessage]) -> ChatResponse:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return chat_response("OK", self._name)


class FakeRole(RoleAgent):
    """Role double with scripted Round-1 and Round-2 behaviour; never touches a chat client."""

    def __init__(
        self,
        role_id: str,
        stance: Stance = Stance.LONG,
        confidence: float = 0.8,
        revised_stance: Stance | None = None,
        analyze_error: Exception | None = None,
        analyze_delay: float = 0.0,
        debate_error: Exception | None = None,
        debate_delay: float = 0.0,
    ) -> None:
        super().__init__(chat=AsyncMock())
        self.role_id = role_id
        self.role_name = role_id.replace("-", " ").title()
        self.stance = stance
        self.confidence = confidence
        self.revised_stance = revised_stance or stance
        self.analyze_error = analyze_error
        self.analyze_delay = analyze_delay
        self.debate_error = debate_error
        self.debate_delay = debate_delay
        self.analyze_calls = 0
        self.debate_calls: list[dict] = []

    def build_system_prompt(self) -> str:
        return f"You are {self.role_name}."

    def build_analysis_prompt(self, session_input: SessionInput) -> str:
        return f"Analyse {session_input.market.symbol}"

    async def analyze(self, session_input: SessionInput) -> Opinion:
        self.analyze_calls += 1
        if self.analyze_delay:
            await asyncio.sleep(self.analyze_delay)
        if self.analyze_error is not None:
            raise self.analyze_error
        return make_opinion(self.role_id, self.stance, self.confidence)

    async def debate(self, session_input, round1, full_context=False) -> DebateResponse:
        self.debate_calls.append({"round1": list(round1), "full_context": full_context})
        if self.debate_delay:
            await asyncio.sleep(self.debate_delay)
        if self.debate_error is not None:
            raise self.debate_error
        return make_debate(self.role_id, self.revised_stance, self.confidence)


def make_roles(*stances: Stance) -> list[FakeRole]:
    """One FakeRole per stance, seated in the standard role order."""
    return [FakeRole(role_id, stance) for role_id, stance in zip(ROLE_IDS, stances)]


@pytest.fixture
def roundtable_config(tmp_path: Path) -> RoundtableConfig:
    return RoundtableConfig(
        enabled=True,
        default_depth="standard",
        allow_deep_mode=False,
        quorum=3,
        role_timeout_sec=1.0,
        chairman_timeout_sec=1.0,
        database_path=tmp_path / "roundtable.db",
    )


@pytest.fixture
def sample_app_config(roundtable_config: RoundtableConfig) -> AppConfig:
    model_cfg = ModelConfig(
        name="deepseek",
        sdk="openai",
        model="deepseek-chat",
        api_key_env="DEEPSEEK_API_KEY",
        timeout_sec=60,
        max_tokens=4096,
        base_url="https://api.deepseek.com",
    )
    return AppConfig(
        roundtable=roundtable_config,
        router=RouterConfig(default_provider="deepseek"),
        models={"deepseek": model_cfg},
        available_providers={"deepseek"},
    )


@pytest.fixture
def snapshot_payload() -> dict:
    """Camel-case SessionInput as a collaborator would hand it over."""
    return {
        "market": {
            "symbol": SYMBOL,
            "currentPrice": 64250.5,
            "indicators": {
                "15m": {"rsi": 58.2, "adx": 24.1, "ema9": 64100.0, "atrPercent": 0.42},
                "1h": {"rsi": 61.0, "adx": 27.5, "macdHistogram": 12.3},
                "4h": {"rsi": 55.4},
            },
            "orderbook": {"bidAskRatio": 1.18, "spread": 0.5},
            "sentiment": {"fearGreed": 62, "label": "greed"},
            "narrative": "Price reclaimed the 1h EMA cluster after a liquidity sweep.",
            "fundingRate": 0.0001,
            "ticker": {"last": 64250.5, "percentage": 1.8, "volume": 12000.0, "quoteVolume": 770000000.0},
        },
        "account": {
            "balance": {"totalBalance": 1200.0, "availableBalance": 950.0, "usedMargin": 250.0},
            "positions": [],
            "circuitBreakerState": {"tripped": False},
            "streakInfo": {"winStreak": 2, "lossStreak": 0},
        },
        "strategy": {
            "strategicContext": {"marketRegime": "trending_up", "bias": "long"},
            "memoryContext": "Breakouts after funding resets have worked this week.",
        },
    }


@pytest.fixture
def session_input(snapshot_payload: dict) -> SessionInput:
    return SessionInput.model_validate(snapshot_payload)


@pytest.fixture
def session_input_with_position(snapshot_payload: dict) -> SessionInput:
    snapshot_payload["account"]["positions"] = [
        {
            "symbol": SYMBOL,
            "side": "long",
            "contracts": 0.01,
            "entryPrice": 63000.0,
            "unrealizedPnl": 12.5,
            "leverage": 10,
            "notional": 642.5,
        }
    ]
    return SessionInput.model_validate(snapshot_payload)


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def sample_result() -> SessionResult:
    decision = make_decision(Stance.LONG, 0.72)
    decision.dissent = "Risk manager prefers half size"
    return SessionResult(
        session_id="rt-18f2a3b4c5d-a1b2c3",
        symbol=SYMBOL,
        depth="standard",
        round1=[
            make_opinion("chief-strategist", Stance.LONG, 0.8),
            make_opinion("risk-manager", Stance.HOLD, 0.6, key_points=["leverage near tier limit"]),
        ],
        round2=[
            make_debate("chief-strategist", Stance.LONG, 0.8),
            make_debate("risk-manager", Stance.LONG, 0.55, changed=True, challenges=[critical_challenge()]),
        ],
        decision=decision,
        consensus_level=decision.consensus_level.value,
        total_duration_ms=8420,
        timings=[
            RoleTiming("chief-strategist", "R1", 2100, "ok"),
            RoleTiming("risk-manager", "R1", 2500, "ok"),
            RoleTiming("sentiment-analyst", "R1", 30000, "timeout"),
            RoleTiming("chief-strategist", "R2", 1900, "ok"),
            RoleTiming("risk-manager", "R2", 2000, "ok"),
            RoleTiming("chairman", "chairman", 1500, "ok"),
        ],
    )
