"""Chairman synthesis: one extra call that turns the transcript into a Decision."""

import logging
from typing import Any

from pydantic import ValidationError

from roundtable.models import ChatMessage
from roundtable.normalize import (
    load_json_object,
    normalize_optional_object,
    normalize_regime,
    normalize_stance,
    strip_nulls,
    validate,
)
from roundtable.roles.risk_manager import VETO_MARKER
from roundtable.router import ChatClient
from roundtable.schemas import DebateResponse, Decision, KeyLevelHint, Opinion, Severity, Stance

logger = logging.getLogger(__name__)

RISK_MANAGER_ROLE = "risk-manager"

SMALL_ACCOUNT_LIMIT = 500
MEDIUM_ACCOUNT_LIMIT = 2000


def account_tier(total_balance: float) -> str:
    if total_balance < SMALL_ACCOUNT_LIMIT:
        return "small"
    if total_balance < MEDIUM_ACCOUNT_LIMIT:
        return "medium"
    return "large"


def format_round1(opinions: list[Opinion]) -> str:
    lines = []
    for o in opinions:
        params = ""
        if o.suggested_params:
            p = o.suggested_params
            params = (
                f" | params: SL={p.stop_loss or '-'} TP={p.take_profit or '-'} "
                f"size={p.position_size_percent or '-'}% lev={p.leverage or '-'}x"
            )
        lines.append(f"[{o.role}] {o.stance.value}({o.confidence}) {'; '.join(o.key_points)}{params}")
    return "\n".join(lines)


def format_round2(responses: list[DebateResponse]) -> str:
    lines = []
    for r in responses:
        changed = " (changed)" if r.stance_changed else ""
        challenges = ""
        if r.challenges:
            challenges = " challenges: " + "; ".join(
                f"[{c.severity.value}]{c.to_role}:{c.challenge}" for c in r.challenges
            )
        lines.append(f"[{r.role}] {r.revised_stance.value}({r.final_confidence}){changed} {r.final_reasoning}{challenges}")
    return "\n".join(lines)


def detect_risk_veto(round1: list[Opinion], round2: list[DebateResponse] | None) -> bool:
    """Whether the risk manager signalled a veto.

    The Round-2 answer wins when there is one: HOLD plus a critical challenge.
    Otherwise Round 1: HOLD plus a key point carrying the veto marker.
    """
    if round2:
        risk_r2 = next((r for r in round2 if r.role == RISK_MANAGER_ROLE), None)
        if risk_r2 is not None:
            return risk_r2.revised_stance == Stance.HOLD and any(
                c.severity == Severity.CRITICAL for c in risk_r2.challenges
            )
    risk_r1 = next((o for o in round1 if o.role == RISK_MANAGER_ROLE), None)
    if risk_r1 is not None:
        return risk_r1.stance == Stance.HOLD and any(VETO_MARKER in p.upper() for p in risk_r1.key_points)
    return False


def build_system_prompt(role_weights: dict[str, float], risk_veto: bool) -> str:
    weights = ", ".join(f"{role} {weight:.2f}" for role, weight in role_weights.items())
    veto_line = "\nWARNING: the risk manager has exercised a veto (extreme risk).\n" if risk_veto else ""
    return f"""You chair a trading roundtable and make the final decision from all role analyses.

Role weights: {weights}

Consensus levels: unanimous=all agree, strong_majority=4-5 of 6 with high confidence, majority=4 of 6, split=close to even, overruled=risk manager veto

Decision principles:
- When most roles agree on a direction, decide; do not HOLD because of a cautious minority
- The risk manager's veto is for extreme cases only (circuit breaker, 5+ losses in a row, leverage over limit)
- Small account (<500 USDT): size 15%-25%, leverage 8x-15x
- Medium account (500-2000 USDT): size 10%-18%, leverage 5x-10x
- Large account (>2000 USDT): size 5%-12%, leverage 3x-8x
- If your reasoning says go long/short, action must be LONG/SHORT; never reason long and answer HOLD
- HOLD is for genuinely directionless or extreme-risk situations, not a cautious default
- Only when action is HOLD, list up to 4 keyPriceLevels worth monitoring so the desk can re-evaluate cheaply when price reaches them
{veto_line}
Return strict JSON:
{{"action":"LONG|SHORT|CLOSE|HOLD|ADJUST|ADD|REDUCE","confidence":0-1,"reasoning":"...","consensusLevel":"unanimous|strong_majority|majority|split|overruled","keyDebatePoints":["..."],"dissent":"minority view","riskManagerVerdict":"...","params":{{"entryPrice":num,"positionSizePercent":num,"leverage":num,"stopLossPrice":num,"takeProfitPrice":num,"orderType":"MARKET|LIMIT"}},"marketRegime":"trending_up|trending_down|ranging|volatile|quiet","keyPriceLevels":[{{"price":num,"type":"resistance|support|reversal|breakout|breakdown","direction":"LONG|SHORT|null","reasoning":"...","confidence":0-1,"invalidationPrice":num}}]}}"""


def build_user_prompt(
    symbol: str,
    round1: list[Opinion],
    round2: list[DebateResponse] | None,
    total_balance: float,
) -> str:
    parts = [
        f"Symbol: {symbol} | Account: {total_balance:.0f} USDT ({account_tier(total_balance)} account)",
        f"=== Round 1: independent analysis ===\n{format_round1(round1)}",
    ]
    if round2:
        parts.append(f"=== Round 2: debate ===\n{format_round2(round2)}")
    parts.append("Synthesize the discussion above into one final trading decision.")
    return "\n\n".join(parts)


def _clean_key_levels(raw: Any) -> list[dict[str, Any]] | None:
    if not isinstance(raw, list):
        return None
    levels = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        level = strip_nulls(item)
        if not level or level.get("price") is None:
            continue
        if isinstance(level.get("type"), str):
            level["type"] = level["type"].strip().lower()
        if "direction" in level:
            direction = str(level["direction"]).strip().upper()
            if direction in ("LONG", "SHORT"):
                level["direction"] = direction
            else:
                level.pop("direction")
        try:
            KeyLevelHint.model_validate(level)
        except ValidationError as exc:
            logger.debug("Dropping key price level %s: %d error(s)", level, exc.error_count())
            continue
        levels.append(level)
    return levels or None


def normalize_decision_payload(payload: dict[str, Any], symbol: str) -> dict[str, Any]:
    """Bring a raw chairman payload into Decision shape (in place)."""
    payload["symbol"] = symbol
    if payload.get("action") is not None:
        payload["action"] = normalize_stance(payload["action"]).value
    normalize_optional_object(payload, "params")
    params = payload.get("params")
    if isinstance(params, dict) and isinstance(params.get("orderType"), str):
        params["orderType"] = params["orderType"].strip().upper()
    if payload.get("marketRegime"):
        payload["marketRegime"] = normalize_regime(payload["marketRegime"]).value
    else:
        payload.pop("marketRegime", None)
    if payload.get("dissent") is None:
        payload.pop("dissent", None)

    levels = _clean_key_levels(payload.pop("keyPriceLevels", None))
    if levels and payload.get("action") == Stance.HOLD.value:
        payload["keyPriceLevels"] = levels
    return payload


async def synthesize(
    chat: ChatClient,
    symbol: str,
    round1: list[Opinion],
    round2: list[DebateResponse] | None,
    total_balance: float,
    role_weights: dict[str, float],
    preferred_provider: str | None = None,
) -> Decision:
    """Ask the chairman for the final decision.

    Raises:
        MalformedResponseError, ResponseValidationError, TransportError.
    """
    risk_veto = detect_risk_veto(round1, round2)
    if risk_veto:
        logger.info("Risk manager veto detected for %s", symbol)

    messages = [
        ChatMessage(role="system", content=build_system_prompt(role_weights, risk_veto)),
        ChatMessage(role="user", content=build_user_prompt(symbol, round1, round2, total_balance)),
    ]
    response = await chat.chat(messages, preferred=preferred_provider)
    logger.info("Chairman answered by %s/%s", response.provider, response.model)

    payload = normalize_decision_payload(load_json_object(response.content), symbol)
    return validate(Decision, payload)
