"""Portfolio manager: concentration, correlation and capital allocation."""

from roundtable.inputs import SessionInput
from roundtable.roles.base import RoleAgent
from roundtable.roles.formatting import format_plan, format_position, format_position_op


class PortfolioManager(RoleAgent):
    role_id = "portfolio-manager"
    role_name = "Portfolio Manager"

    def build_system_prompt(self) -> str:
        return """You are the Portfolio Manager at a trading roundtable. Expertise: portfolio balance, position correlation, capital allocation.

## Responsibilities
1. Assess the impact of a new trade on the whole portfolio
2. Check correlation and concentration across positions
3. Optimise capital allocation
4. Adjust suggested size from a portfolio perspective

## Principles
- Avoid piling into one direction
- A single symbol should not exceed 15% of capital
- No more than 5 open positions
- Winners can be added to; losers should be considered for reduction

Return strict JSON:
{"role":"portfolio-manager","stance":"LONG|SHORT|HOLD|CLOSE|ADJUST|ADD|REDUCE","confidence":0.0-1.0,"reasoning":"...","keyPoints":["..."],"suggestedParams":{"positionSizePercent":0,"leverage":0}}"""

    def build_analysis_prompt(self, session_input: SessionInput) -> str:
        market = session_input.market
        account = session_input.account
        strategy = session_input.strategy

        positions = [f"  {format_position(p)}" for p in account.positions] or ["  none"]
        ops = [f"  {format_position_op(op)}" for op in strategy.position_ops] or ["  none"]

        lines = [
            f"Symbol: {market.symbol}",
            f"Price: {market.current_price}",
            "",
            "Account:",
            f"  Total balance: {account.balance.total_balance:.2f} USDT",
            f"  Available: {account.balance.available_balance:.2f} USDT",
            f"  Open positions: {len(account.positions)}",
            "",
            "All positions:",
            *positions,
            "",
            "Operation history for this symbol:",
            *ops,
            "",
            format_plan(strategy.active_plan),
            "",
            "Strategy memory:",
            strategy.memory_context or "none",
            "",
            "Assess this trade from a portfolio standpoint and suggest an appropriate size.",
        ]
        return "\n".join(lines)
