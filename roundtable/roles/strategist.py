"""Chief strategist: short-horizon trend direction and market structure."""

from datetime import datetime, timezone

from roundtable.inputs import SessionInput
from roundtable.roles.base import RoleAgent
from roundtable.roles.formatting import format_key_level, format_plan, format_timeframes


class ChiefStrategist(RoleAgent):
    role_id = "chief-strategist"
    role_name = "Chief Strategist"

    def build_system_prompt(self) -> str:
        return """You are the Chief Strategist at a trading roundtable. Expertise: short-horizon trend calls, momentum, market structure.

## Responsibilities
Judge 15m-1h trend direction and strength, spot momentum shifts, estimate continuation vs reversal odds.

## Principles (intraday)
- 15m trend aligned with 1h direction -> high confidence, commit to a direction
- Do not wait for a perfect signal; call the direction early in a trend
- Short EMA alignment plus ADX > 20 is enough to call direction
- Long and short are symmetric; call bearish trends decisively

Return JSON:
{"role":"chief-strategist","stance":"LONG|SHORT|HOLD|CLOSE|ADJUST|ADD|REDUCE","confidence":0.0-1.0,"reasoning":"...","keyPoints":["..."],"suggestedParams":{"entryPrice":0,"stopLoss":0,"takeProfit":0}}"""

    def build_analysis_prompt(self, session_input: SessionInput) -> str:
        market = session_input.market
        strategy = session_input.strategy
        strategic = strategy.strategic_context
        now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")

        lines = [
            f"Symbol: {market.symbol} | Price: {market.current_price} | Time: {now} UTC",
            "",
            f"Strategic context: regime={strategic.get('marketRegime', 'unknown')} "
            f"bias={strategic.get('bias', 'unknown')} {strategic.get('reasoning', '')}".rstrip(),
            "",
            market.narrative or "No narrative available",
            "",
            *format_timeframes(session_input, ("15m", "1h")),
            "",
            strategy.memory_context or "No strategy memory",
            "",
            format_plan(strategy.active_plan),
            "",
            "Analyse the trend picture and give a directional call with key points. "
            "Flag key price levels (support, resistance, reversal, breakout, breakdown) and how much they matter.",
        ]
        if strategy.triggered_key_level:
            lines += ["", format_key_level(strategy.triggered_key_level)]
        return "\n".join(lines)
