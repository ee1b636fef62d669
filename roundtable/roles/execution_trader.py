"""Execution trader: timing, order type, slippage and microstructure."""

from roundtable.inputs import SessionInput
from roundtable.roles.base import RoleAgent
from roundtable.roles.formatting import (
    format_funding,
    format_orderbook,
    format_position,
    format_sentiment,
    format_timeframes,
)


class ExecutionTrader(RoleAgent):
    role_id = "execution-trader"
    role_name = "Execution Trader"

    def build_system_prompt(self) -> str:
        return """You are the Execution Trader at a trading roundtable. Expertise: execution timing, slippage control, market microstructure.

## Responsibilities
Judge timing, read order book depth, pick the order type, estimate slippage.

## Principles (intraday)
- Deep liquidity -> market order; thin liquidity -> limit order
- Order book imbalance is a short-term directional signal; call it
- Extreme funding may hint at reversal but does not override the trend
- Volume expansion with a price breakout is a good entry; support it

Return JSON:
{"role":"execution-trader","stance":"LONG|SHORT|HOLD|CLOSE|ADJUST|ADD|REDUCE","confidence":0.0-1.0,"reasoning":"...","keyPoints":["..."],"suggestedParams":{"entryPrice":0,"leverage":0,"positionSizePercent":0}}"""

    def build_analysis_prompt(self, session_input: SessionInput) -> str:
        market = session_input.market
        lines = [f"Symbol: {market.symbol} | Price: {market.current_price}", ""]

        position = session_input.position_for(market.symbol)
        if position:
            lines.append(f"Open position: {format_position(position)}")
            if session_input.strategy.position_thesis:
                lines.append(f"  Thesis: {session_input.strategy.position_thesis}")
            lines.append("")

        lines += [format_orderbook(market.orderbook), ""]
        lines += format_timeframes(session_input, ("1m", "5m"))
        lines += [
            "",
            format_funding(market.funding_rate),
            f"24h change: {market.ticker.percentage:.2f}% | Quote volume: {market.ticker.quote_volume:.0f} USDT",
            "",
            format_sentiment(market.sentiment),
            "",
            "Judge whether now is a good moment to enter or exit, and recommend order type and execution parameters.",
        ]
        return "\n".join(lines)
