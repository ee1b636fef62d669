"""Sentiment analyst: crowding, funding extremes and crowd behaviour."""

from roundtable.inputs import SessionInput
from roundtable.roles.base import RoleAgent
from roundtable.roles.formatting import format_funding, format_position, format_sentiment


class SentimentAnalyst(RoleAgent):
    role_id = "sentiment-analyst"
    role_name = "Sentiment Analyst"

    def build_system_prompt(self) -> str:
        return """You are the Sentiment Analyst at a trading roundtable. Expertise: market mood, funding rates, crowd behaviour.

## Responsibilities
Assess sentiment, spot crowded trades and extremes, warn about reversal risk.

## Crowding warnings
Funding above 0.05% or below -0.05%, extreme sentiment (>80 / <20), abnormal volume, lopsided long/short ratio.

## Principles
Extreme sentiment foreshadows reversal; sentiment diverging from price is an important signal.

Return JSON:
{"role":"sentiment-analyst","stance":"LONG|SHORT|HOLD|CLOSE|ADJUST|ADD|REDUCE","confidence":0.0-1.0,"reasoning":"...","keyPoints":["..."]}"""

    def build_analysis_prompt(self, session_input: SessionInput) -> str:
        market = session_input.market
        lines = [f"Symbol: {market.symbol} | Price: {market.current_price}", ""]

        position = session_input.position_for(market.symbol)
        if position:
            lines.append(f"Open position: {format_position(position)}")
            if session_input.strategy.position_thesis:
                lines.append(f"  Thesis: {session_input.strategy.position_thesis}")
            lines += ["  Judge whether sentiment still supports this direction.", ""]

        ind15 = market.indicators.get("15m", {})
        orderbook = market.orderbook or {}
        lines += [
            format_sentiment(market.sentiment),
            "",
            format_funding(market.funding_rate),
            f"24h change: {market.ticker.percentage:.2f}% | Quote volume: {market.ticker.quote_volume:.0f} USDT "
            f"| Volume: {market.ticker.volume:.0f}",
            "",
            f"Volume indicators: OBV={ind15.get('obv', '?')} MFI={ind15.get('mfi', '?')} "
            f"volume ratio={ind15.get('volumeRatio', '?')}",
            f"Order book: bid/ask ratio={orderbook.get('bidAskRatio', '?')} {orderbook.get('imbalance', '')}".rstrip(),
            "",
            "Is there a crowded trade or extreme sentiment? Give a directional call.",
        ]
        return "\n".join(lines)
