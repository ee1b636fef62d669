"""Unit tests for roundtable/schemas.py and roundtable/inputs.py."""

import pytest
from pydantic import ValidationError

from roundtable.inputs import SessionInput
from roundtable.schemas import (
    ConsensusLevel,
    Decision,
    KeyLevelHint,
    KeyLevelType,
    Opinion,
    Stance,
    SuggestedParams,
    TradeParams,
)

from tests.conftest import SYMBOL, make_decision


def test_opinion_accepts_snake_and_camel_names():
    by_name = Opinion(role="a", stance=Stance.LONG, confidence=0.5, reasoning="r", key_points=["k"])
    by_alias = Opinion.model_validate(
        {"role": "a", "stance": "LONG", "confidence": 0.5, "reasoning": "r", "keyPoints": ["k"]}
    )
    assert by_name == by_alias


def test_confidence_bounds_enforced():
    with pytest.raises(ValidationError):
        Opinion(role="a", stance=Stance.LONG, confidence=-0.1, reasoning="r", key_points=[])


def test_unknown_stance_rejected():
    with pytest.raises(ValidationError):
        Opinion.model_validate({"role": "a", "stance": "MOON", "confidence": 0.5, "reasoning": "r", "keyPoints": []})


def test_decision_to_wire_is_camel_case_without_nulls():
    decision = make_decision()
    decision.params = TradeParams(leverage=5, stop_loss_price=60000.0)

    wire = decision.to_wire()

    assert wire["action"] == "LONG"
    assert wire["consensusLevel"] == "majority"
    assert wire["riskManagerVerdict"] == "acceptable"
    assert wire["params"] == {"leverage": 5.0, "stopLossPrice": 60000.0}
    assert "dissent" not in wire
    assert "keyPriceLevels" not in wire


def test_decision_round_trips_from_wire():
    decision = make_decision(Stance.SHORT, 0.9)
    assert Decision.model_validate(decision.to_wire()) == decision


def test_key_level_hint_defaults_and_bounds():
    hint = KeyLevelHint(price=63000.0, type=KeyLevelType.SUPPORT)
    assert hint.confidence == 0.5
    assert hint.direction is None
    with pytest.raises(ValidationError):
        KeyLevelHint(price=0, type=KeyLevelType.SUPPORT)


def test_decision_with_key_levels():
    decision = Decision.model_validate(
        {
            "action": "HOLD",
            "symbol": SYMBOL,
            "confidence": 0.4,
            "reasoning": "wait",
            "consensusLevel": "split",
            "keyDebatePoints": [],
            "riskManagerVerdict": "fine",
            "keyPriceLevels": [{"price": 65000, "type": "resistance", "direction": "SHORT"}],
        }
    )
    assert decision.consensus_level == ConsensusLevel.SPLIT
    assert decision.key_price_levels[0].direction == Stance.SHORT


def test_suggested_params_all_optional():
    assert SuggestedParams().to_wire() == {}


def test_session_input_from_camel_case(snapshot_payload):
    session_input = SessionInput.model_validate(snapshot_payload)

    assert session_input.market.current_price == 64250.5
    assert session_input.market.indicators["1h"]["adx"] == 27.5
    assert session_input.account.balance.total_balance == 1200.0
    assert session_input.account.streak_info.win_streak == 2
    assert session_input.strategy.triggered_key_level is None
    assert session_input.has_open_position is False


def test_session_input_position_lookup(session_input_with_position):
    position = session_input_with_position.position_for(SYMBOL)
    assert position is not None
    assert position.entry_price == 63000.0
    assert session_input_with_position.has_open_position is True
    assert session_input_with_position.position_for("ETH/USDT:USDT") is None


def test_session_input_minimal():
    session_input = SessionInput.model_validate({"market": {"symbol": "ETH/USDT:USDT", "currentPrice": 3100}})
    assert session_input.account.positions == []
    assert session_input.strategy.memory_context == ""
