"""Pydantic schemas for everything a model produces during a roundtable session.

Field names are snake_case in Python and camelCase on the wire, matching the
JSON the role prompts ask for.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Stance(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"
    HOLD = "HOLD"
    CLOSE = "CLOSE"
    ADJUST = "ADJUST"
    ADD = "ADD"
    REDUCE = "REDUCE"


class ConsensusLevel(str, Enum):
    UNANIMOUS = "unanimous"
    STRONG_MAJORITY = "strong_majority"
    MAJORITY = "majority"
    SPLIT = "split"
    OVERRULED = "overruled"


class Severity(str, Enum):
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


class MarketRegime(str, Enum):
    TRENDING_UP = "trending_up"
    TRENDING_DOWN = "trending_down"
    RANGING = "ranging"
    VOLATILE = "volatile"
    QUIET = "quiet"


class KeyLevelType(str, Enum):
    RESISTANCE = "resistance"
    SUPPORT = "support"
    REVERSAL = "reversal"
    BREAKOUT = "breakout"
    BREAKDOWN = "breakdown"


class OrderType(str, Enum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"


class WireModel(BaseModel):
    """Base for camelCase-on-the-wire schemas."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=False)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# ROUND 1: independent analysis
# =============================================================================


class SuggestedParams(WireModel):
    entry_price: Optional[float] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    position_size_percent: Optional[float] = None
    leverage: Optional[float] = None


class Opinion(WireModel):
    role: str
    stance: Stance
    confidence: float = Field(ge=0, le=1)
    reasoning: str
    key_points: list[str]
    suggested_params: Optional[SuggestedParams] = None


# =============================================================================
# ROUND 2: debate and challenge
# =============================================================================


class Agreement(WireModel):
    with_role: str
    point: str


class Challenge(WireModel):
    to_role: str
    challenge: str
    severity: Severity


class DebateResponse(WireModel):
    role: str
    revised_stance: Stance
    final_confidence: float = Field(ge=0, le=1)
    stance_changed: bool
    change_reason: Optional[str] = None
    agreements: list[Agreement]
    challenges: list[Challenge]
    final_reasoning: str


# =============================================================================
# DECISION: chairman or fallback output
# =============================================================================


class TradeParams(WireModel):
    entry_price: Optional[float] = None
    position_size_percent: Optional[float] = None
    leverage: Optional[float] = None
    stop_loss_price: Optional[float] = None
    take_profit_price: Optional[float] = None
    order_type: Optional[OrderType] = None


class KeyLevelHint(WireModel):
    """A price worth watching so the caller can re-evaluate cheaply later."""

    price: float = Field(gt=0)
    type: KeyLevelType
    direction: Optional[Stance] = None
    reasoning: str = ""
    confidence: float = Field(default=0.5, ge=0, le=1)
    trigger_radius: Optional[float] = Field(default=None, gt=0)
    invalidation_price: Optional[float] = Field(default=None, gt=0)


class Decision(WireModel):
    action: Stance
    symbol: str
    confidence: float = Field(ge=0, le=1)
    reasoning: str
    consensus_level: ConsensusLevel
    key_debate_points: list[str]
    dissent: Optional[str] = None
    risk_manager_verdict: str
    params: Optional[TradeParams] = None
    market_regime: Optional[MarketRegime] = None
    key_price_levels: Optional[list[KeyLevelHint]] = None
