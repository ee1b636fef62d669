"""Plain-text renderers for the snapshot pieces that go into role prompts."""

import json
from typing import Any

from roundtable.inputs import Position, PositionOp, SessionInput, TriggeredKeyLevel
from roundtable.schemas import Opinion


def _fmt_value(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.4g}"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def format_indicators(timeframe: str, bundle: dict[str, Any] | None) -> str:
    if not bundle:
        return ""
    parts = [f"{k}={_fmt_value(v)}" for k, v in bundle.items() if v is not None]
    return f"[{timeframe}] " + " ".join(parts)


def format_timeframes(session_input: SessionInput, timeframes: tuple[str, ...]) -> list[str]:
    indicators = session_input.market.indicators
    return [format_indicators(tf, indicators[tf]) for tf in timeframes if indicators.get(tf)]


def format_orderbook(orderbook: dict[str, Any] | None) -> str:
    if not orderbook:
        return "Order book: n/a"
    ratio = orderbook.get("bidAskRatio", orderbook.get("bid_ask_ratio"))
    spread = orderbook.get("spread")
    imbalance = orderbook.get("imbalance")
    parts = ["Order book:"]
    if ratio is not None:
        parts.append(f"bid/ask ratio={_fmt_value(ratio)}")
    if spread is not None:
        parts.append(f"spread={_fmt_value(spread)}")
    if imbalance is not None:
        parts.append(f"imbalance={imbalance}")
    if len(parts) == 1:
        parts.append(_fmt_value(orderbook))
    return " ".join(parts)


def format_sentiment(sentiment: dict[str, Any] | None) -> str:
    if not sentiment:
        return "Sentiment: n/a"
    return "Sentiment: " + " ".join(f"{k}={_fmt_value(v)}" for k, v in sentiment.items())


def format_funding(funding_rate: float | None) -> str:
    if funding_rate is None:
        return "Funding rate: n/a"
    return f"Funding rate: {funding_rate * 100:.4f}%"


def position_pnl_percent(position: Position) -> float:
    if position.notional <= 0 or position.leverage <= 0:
        return 0.0
    margin = position.notional / position.leverage
    return position.unrealized_pnl / margin * 100


def format_position(position: Position) -> str:
    entry = f" @{position.entry_price}" if position.entry_price is not None else ""
    return (
        f"{position.symbol} {position.side.upper()} {position.contracts:g} contracts{entry}, "
        f"PnL {position.unrealized_pnl:.2f} USDT ({position_pnl_percent(position):.2f}%), "
        f"leverage {position.leverage:g}x"
    )


def format_position_op(op: PositionOp) -> str:
    return f"{op.operation} {op.side} {op.amount:g} @ {op.price}, realized PnL {op.pnl_realized or 0}"


def format_key_level(level: TriggeredKeyLevel) -> str:
    direction = level.direction.value if level.direction else "NEUTRAL"
    return (
        f"Triggered key level: {level.type.value} {level.price} [{direction}] "
        f"confidence {level.confidence * 100:.0f}% {level.reasoning}"
    ).rstrip()


def format_plan(plan: dict[str, Any] | None) -> str:
    if not plan:
        return "Active plan: none"
    return "Active plan: " + json.dumps(plan, default=str)


def market_summary(session_input: SessionInput) -> str:
    """One-line market context used in the debate round."""
    market = session_input.market
    strategic = session_input.strategy.strategic_context
    return (
        f"Symbol: {market.symbol} | Price: {market.current_price} | "
        f"Regime: {strategic.get('marketRegime', strategic.get('market_regime', 'unknown'))} | "
        f"Bias: {strategic.get('bias', 'unknown')}"
    )


def format_opinion(opinion: Opinion) -> str:
    return (
        f"[{opinion.role}] stance: {opinion.stance.value}, confidence: {opinion.confidence}\n"
        f"  reasoning: {opinion.reasoning}\n"
        f"  key points: {'; '.join(opinion.key_points)}"
    )
