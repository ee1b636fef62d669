"""Inbound snapshots handed to a session by its collaborators.

These are read-only to the roundtable. Indicator, order book and sentiment
bundles stay loosely typed dicts because their shape belongs to the
indicator pipeline, not to us.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import ConfigDict, Field

from roundtable.schemas import KeyLevelType, Stance, WireModel


class Ticker(WireModel):
    last: float = 0.0
    percentage: float = 0.0
    volume: float = 0.0
    quote_volume: float = 0.0


class MarketSnapshot(WireModel):
    symbol: str
    current_price: float
    indicators: dict[str, dict[str, Any]] = Field(default_factory=dict)
    orderbook: Optional[dict[str, Any]] = None
    sentiment: Optional[dict[str, Any]] = None
    narrative: Optional[str] = None
    funding_rate: Optional[float] = None
    ticker: Ticker = Field(default_factory=Ticker)


class Balance(WireModel):
    total_balance: float = 0.0
    available_balance: float = 0.0
    used_margin: float = 0.0


class Position(WireModel):
    model_config = ConfigDict(extra="allow")

    symbol: str
    side: str                          # "long" or "short"
    contracts: float = 0.0
    entry_price: Optional[float] = None
    unrealized_pnl: float = 0.0
    leverage: float = 1.0
    notional: float = 0.0


class StreakInfo(WireModel):
    win_streak: int = 0
    loss_streak: int = 0


class AccountSnapshot(WireModel):
    balance: Balance = Field(default_factory=Balance)
    positions: list[Position] = Field(default_factory=list)
    circuit_breaker_state: dict[str, Any] = Field(default_factory=dict)
    streak_info: StreakInfo = Field(default_factory=StreakInfo)
    dynamic_limits: Optional[dict[str, Any]] = None


class TriggeredKeyLevel(WireModel):
    price: float
    type: KeyLevelType
    direction: Optional[Stance] = None
    reasoning: str = ""
    confidence: float = 0.5


class PositionOp(WireModel):
    model_config = ConfigDict(extra="allow")

    operation: str
    side: str
    amount: float
    price: float
    pnl_realized: Optional[float] = None


class StrategyContext(WireModel):
    strategic_context: dict[str, Any] = Field(default_factory=dict)   # cached higher-timeframe bias
    memory_context: str = ""
    active_plan: Optional[dict[str, Any]] = None
    position_ops: list[PositionOp] = Field(default_factory=list)
    position_thesis: Optional[str] = None
    triggered_key_level: Optional[TriggeredKeyLevel] = None


class SessionInput(WireModel):
    market: MarketSnapshot
    account: AccountSnapshot = Field(default_factory=AccountSnapshot)
    strategy: StrategyContext = Field(default_factory=StrategyContext)

    def position_for(self, symbol: str) -> Optional[Position]:
        return next((p for p in self.account.positions if p.symbol == symbol), None)

    @property
    def has_open_position(self) -> bool:
        return self.position_for(self.market.symbol) is not None
