"""Unit tests for roundtable/roles: prompt building and response handling."""

import json
from unittest.mock import AsyncMock

import pytest

from roundtable.errors import MalformedResponseError, ResponseValidationError, TransportError
from roundtable.roles.execution_trader import ExecutionTrader
from roundtable.roles.portfolio_manager import PortfolioManager
from roundtable.roles.registry import ROLE_CLASSES, create_roles
from roundtable.roles.risk_manager import VETO_MARKER, RiskManager
from roundtable.roles.sentiment_analyst import SentimentAnalyst
from roundtable.roles.strategist import ChiefStrategist
from roundtable.roles.technical_analyst import TechnicalAnalyst
from roundtable.schemas import Severity, Stance

from tests.conftest import chat_response, make_opinion


def _chat(payload) -> AsyncMock:
    content = payload if isinstance(payload, str) else json.dumps(payload)
    return AsyncMock(chat=AsyncMock(return_value=chat_response(content)))


# --- analyze ---


async def test_analyze_stamps_role_and_normalizes(session_input):
    chat = _chat(
        "Sure, here is my view:\n"
        + json.dumps(
            {
                "role": "someone-else",
                "stance": "strong buy",
                "confidence": 0.72,
                "reasoning": "EMA stack aligned",
                "keyPoints": ["1h ADX rising"],
                "suggestedParams": {"entryPrice": 64200, "stopLoss": None, "takeProfit": 66000},
            }
        )
    )
    role = ChiefStrategist(chat)

    opinion = await role.analyze(session_input)

    assert opinion.role == "chief-strategist"
    assert opinion.stance == Stance.LONG
    assert opinion.suggested_params.entry_price == 64200
    assert opinion.suggested_params.stop_loss is None


async def test_analyze_drops_all_null_params(session_input):
    chat = _chat(
        {
            "stance": "HOLD",
            "confidence": 0.5,
            "reasoning": "nothing to do",
            "keyPoints": [],
            "suggestedParams": {"entryPrice": None, "leverage": None},
        }
    )
    opinion = await TechnicalAnalyst(chat).analyze(session_input)
    assert opinion.suggested_params is None


async def test_analyze_uses_preferred_provider(session_input):
    chat = _chat({"stance": "SHORT", "confidence": 0.6, "reasoning": "r", "keyPoints": ["k"]})
    role = RiskManager(chat, preferred_provider="qwen")

    await role.analyze(session_input)

    messages = chat.chat.await_args.args[0]
    assert [m.role for m in messages] == ["system", "user"]
    assert chat.chat.await_args.kwargs["preferred"] == "qwen"


async def test_analyze_rejects_non_json(session_input):
    chat = _chat("I would go long here, strongly.")
    with pytest.raises(MalformedResponseError):
        await ExecutionTrader(chat).analyze(session_input)


async def test_analyze_rejects_schema_violation(session_input):
    chat = _chat({"stance": "LONG", "confidence": 3, "reasoning": "r", "keyPoints": []})
    with pytest.raises(ResponseValidationError):
        await SentimentAnalyst(chat).analyze(session_input)


async def test_analyze_propagates_transport_error(session_input):
    chat = AsyncMock(chat=AsyncMock(side_effect=TransportError("All chat providers failed")))
    with pytest.raises(TransportError):
        await PortfolioManager(chat).analyze(session_input)


# --- debate ---


async def test_debate_normalizes_payload(session_input):
    chat = _chat(
        {
            "revisedStance": "sell",
            "finalConfidence": 0.55,
            "stanceChanged": True,
            "changeReason": None,
            "agreements": None,
            "challenges": [{"toRole": "chief-strategist", "challenge": "late entry", "severity": "MAJOR"}],
            "finalReasoning": "Momentum fading",
        }
    )
    role = TechnicalAnalyst(chat)
    round1 = [make_opinion("chief-strategist", Stance.LONG), make_opinion("technical-analyst", Stance.SHORT)]

    response = await role.debate(session_input, round1)

    assert response.role == "technical-analyst"
    assert response.revised_stance == Stance.SHORT
    assert response.agreements == []
    assert response.challenges[0].severity == Severity.MAJOR
    assert response.change_reason is None


async def test_debate_accepts_missing_challenges(session_input):
    chat = _chat(
        {
            "revisedStance": "LONG",
            "finalConfidence": 0.7,
            "stanceChanged": False,
            "agreements": [],
            "challenges": [],
            "finalReasoning": "Holding my view",
        }
    )
    round1 = [make_opinion("chief-strategist", Stance.LONG), make_opinion("risk-manager", Stance.HOLD)]
    response = await ChiefStrategist(chat).debate(session_input, round1)
    assert response.challenges == []


def test_debate_prompt_lists_disagreeing_roles(session_input):
    role = ChiefStrategist(AsyncMock())
    round1 = [
        make_opinion("chief-strategist", Stance.LONG),
        make_opinion("technical-analyst", Stance.LONG),
        make_opinion("risk-manager", Stance.HOLD, key_points=["leverage too high"]),
    ]

    prompt = role.build_debate_prompt(session_input, round1)

    assert "Your Round 1 stance was: LONG" in prompt
    assert "Roles agreeing with you: technical-analyst" in prompt
    assert "- risk-manager argues HOLD" in prompt
    assert "leverage too high" in prompt
    assert '"role": "chief-strategist"' in prompt


def test_deep_debate_prompt_includes_full_context(session_input):
    role = ChiefStrategist(AsyncMock())
    round1 = [make_opinion("chief-strategist", Stance.LONG), make_opinion("risk-manager", Stance.HOLD)]

    standard = role.build_debate_prompt(session_input, round1)
    deep = role.build_debate_prompt(session_input, round1, full_context=True)

    assert "Breakouts after funding resets" not in standard
    assert "Breakouts after funding resets" in deep


# --- prompt content ---


def test_risk_manager_prompt_carries_account_state(session_input):
    role = RiskManager(AsyncMock())
    prompt = role.build_analysis_prompt(session_input)

    assert "Total balance: 1200.00 USDT" in prompt
    assert "Streak: 2 wins, 0 losses" in prompt
    assert VETO_MARKER in role.build_system_prompt()


def test_technical_analyst_prompt_shows_position(session_input_with_position):
    prompt = TechnicalAnalyst(AsyncMock()).build_analysis_prompt(session_input_with_position)
    assert "Open position: BTC/USDT:USDT LONG" in prompt
    assert "[15m]" in prompt and "[1h]" in prompt


def test_execution_trader_prompt_shows_microstructure(session_input):
    prompt = ExecutionTrader(AsyncMock()).build_analysis_prompt(session_input)
    assert "bid/ask ratio=1.18" in prompt
    assert "Funding rate: 0.0100%" in prompt


def test_every_role_builds_prompts(session_input):
    for cls in ROLE_CLASSES:
        role = cls(AsyncMock())
        assert role.role_id in role.build_system_prompt()
        assert "BTC/USDT:USDT" in role.build_analysis_prompt(session_input)


# --- registry ---


def test_create_roles_applies_provider_overrides():
    roles = create_roles(AsyncMock(), {"technical-analyst": "qwen", "not-a-role": "claude"})

    assert len(roles) == 6
    assert len({r.role_id for r in roles}) == 6
    by_id = {r.role_id: r for r in roles}
    assert by_id["technical-analyst"].preferred_provider == "qwen"
    assert by_id["chief-strategist"].preferred_provider is None
