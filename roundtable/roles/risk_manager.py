"""Risk manager: exposure, sizing, stops, and the rarely used veto."""

import json

from roundtable.inputs import SessionInput
from roundtable.roles.base import RoleAgent
from roundtable.roles.formatting import format_position

VETO_MARKER = "VETO"


class RiskManager(RoleAgent):
    role_id = "risk-manager"
    role_name = "Risk Manager"

    def build_system_prompt(self) -> str:
        return f"""You are the Risk Manager at a trading roundtable. Expertise: position sizing, drawdown control, risk assessment.

## Responsibilities
1. Assess current account exposure
2. Recommend position size and leverage
3. Check that the stop loss is adequate
4. Use your veto only in extreme cases

## Veto (extreme cases only)
- Circuit breaker already tripped
- 5+ consecutive losses and a new position is proposed
- Total exposure above 50% of available balance
- Leverage above 10x

## Principles
- Your job is to size risk, not to block trades
- Small balance is not a reason to veto
- Small account (<500 USDT): size 15%-25%, leverage 8x-15x
- Medium account (500-2000 USDT): size 10%-18%, leverage 5x-10x
- Large account (>2000 USDT): size 5%-12%, leverage 3x-8x
- When the trend is clear, your stance should follow it (LONG/SHORT), not default to HOLD
- Outside the veto conditions, manage risk through parameters

To veto: set stance to HOLD and include a key point containing "{VETO_MARKER}".

Return strict JSON:
{{"role":"risk-manager","stance":"LONG|SHORT|HOLD|CLOSE|ADJUST|ADD|REDUCE","confidence":0.0-1.0,"reasoning":"...","keyPoints":["..."],"suggestedParams":{{"positionSizePercent":0,"leverage":0,"stopLoss":0}}}}"""

    def build_analysis_prompt(self, session_input: SessionInput) -> str:
        market = session_input.market
        account = session_input.account
        balance = account.balance
        margin_usage = balance.used_margin / balance.total_balance * 100 if balance.total_balance > 0 else 0.0
        position = session_input.position_for(market.symbol)
        ind15 = market.indicators.get("15m", {})
        atr = ind15.get("atrPercent")
        adx = ind15.get("adx")

        lines = [
            f"Symbol: {market.symbol}",
            f"Price: {market.current_price}",
            "",
            "Account:",
            f"  Total balance: {balance.total_balance:.2f} USDT",
            f"  Available: {balance.available_balance:.2f} USDT",
            f"  Used margin: {balance.used_margin:.2f} USDT ({margin_usage:.1f}%)",
            "",
            "Positions:",
            f"  Open positions: {len(account.positions)}",
            f"  This symbol: {format_position(position) if position else 'none'}",
            "",
            f"Circuit breaker: {json.dumps(account.circuit_breaker_state, default=str)}",
            f"Streak: {account.streak_info.win_streak} wins, {account.streak_info.loss_streak} losses",
        ]
        if account.dynamic_limits:
            lines.append(f"Tier risk limits: {json.dumps(account.dynamic_limits, default=str)}")
        lines += [
            "",
            f"Volatility: ATR% {atr if atr is not None else 'unknown'} | ADX {adx if adx is not None else 'unknown'}",
        ]
        if session_input.strategy.position_thesis:
            lines += ["", f"Entry thesis: {session_input.strategy.position_thesis}"]
        lines += [
            "",
            "Assess the trade from a risk standpoint. If risk is extreme, use your veto "
            f'(stance HOLD and a key point containing "{VETO_MARKER}").',
        ]
        return "\n".join(lines)
