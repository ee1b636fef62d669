"""Technical analyst: multi-timeframe confluence and precise price levels."""

from roundtable.inputs import SessionInput
from roundtable.roles.base import RoleAgent
from roundtable.roles.formatting import format_orderbook, format_position, format_timeframes


class TechnicalAnalyst(RoleAgent):
    role_id = "technical-analyst"
    role_name = "Technical Analyst"

    def build_system_prompt(self) -> str:
        return """You are the Technical Analyst at a trading roundtable. Expertise: chart patterns, indicator confluence, precise price action.

## Responsibilities
Analyse multi-timeframe confluence and divergence, identify key levels and patterns, give precise entry / stop / target prices.

## Principles
- Confluence across timeframes -> high confidence; a single timeframe -> low confidence
- Reward:risk of at least 1.5:1; watch for indicator divergence

Return JSON:
{"role":"technical-analyst","stance":"LONG|SHORT|HOLD|CLOSE|ADJUST|ADD|REDUCE","confidence":0.0-1.0,"reasoning":"...","keyPoints":["..."],"suggestedParams":{"entryPrice":0,"stopLoss":0,"takeProfit":0,"leverage":0}}"""

    def build_analysis_prompt(self, session_input: SessionInput) -> str:
        market = session_input.market
        lines = [f"Symbol: {market.symbol} | Price: {market.current_price}", ""]

        position = session_input.position_for(market.symbol)
        if position:
            lines.append(f"Open position: {format_position(position)}")
            if session_input.strategy.position_thesis:
                lines.append(f"  Thesis: {session_input.strategy.position_thesis}")
            lines.append("")

        lines += format_timeframes(session_input, ("1m", "5m", "15m", "1h"))
        lines += [
            "",
            market.narrative or "No narrative available",
            "",
            format_orderbook(market.orderbook),
            "",
            "Analyse the technical picture and give precise entry/exit levels and key points.",
        ]
        return "\n".join(lines)
