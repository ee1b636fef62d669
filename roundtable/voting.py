"""Deterministic aggregation over Round-1 opinions. No model calls."""

from roundtable.schemas import ConsensusLevel, Decision, OrderType, Opinion, Stance, TradeParams

DEFAULT_ROLE_WEIGHT = 0.10
UNANIMITY_MIN_OPINIONS = 3
STRONG_MAJORITY_MIN = 4

# Opinion.suggested_params field -> Decision.params field
_PARAM_FIELDS = {
    "entry_price": "entry_price",
    "position_size_percent": "position_size_percent",
    "leverage": "leverage",
    "stop_loss": "stop_loss_price",
    "take_profit": "take_profit_price",
}


def check_unanimous(opinions: list[Opinion]) -> Stance | None:
    """The shared stance when at least three opinions all agree, else None."""
    if len(opinions) < UNANIMITY_MIN_OPINIONS:
        return None
    first = opinions[0].stance
    return first if all(o.stance == first for o in opinions) else None


def consensus_level(opinions: list[Opinion], winning_count: int) -> ConsensusLevel:
    if check_unanimous(opinions) is not None:
        return ConsensusLevel.UNANIMOUS
    if winning_count >= STRONG_MAJORITY_MIN:
        return ConsensusLevel.STRONG_MAJORITY
    return ConsensusLevel.MAJORITY


def _mean(values: list[float]) -> float | None:
    return sum(values) / len(values) if values else None


def average_params(opinions: list[Opinion]) -> TradeParams | None:
    """Per-field mean over opinions that supplied that field; None if nobody supplied any."""
    averaged: dict[str, float] = {}
    for source, target in _PARAM_FIELDS.items():
        values = [
            getattr(o.suggested_params, source)
            for o in opinions
            if o.suggested_params is not None and getattr(o.suggested_params, source) is not None
        ]
        mean = _mean(values)
        if mean is not None:
            averaged[target] = mean
    if not averaged:
        return None
    return TradeParams(order_type=OrderType.MARKET, **averaged)


def fallback_weighted_vote(
    symbol: str,
    round1: list[Opinion],
    role_weights: dict[str, float],
) -> Decision:
    """Weighted majority over Round 1, used when the chairman is unavailable.

    Each opinion adds weight x confidence to its stance. The winner needs a
    strictly greater score, so ties keep the stance that reached the maximum
    first, and an all-zero tally stays HOLD.
    """
    scores: dict[Stance, float] = {}
    for opinion in round1:
        weight = role_weights.get(opinion.role, DEFAULT_ROLE_WEIGHT)
        scores[opinion.stance] = scores.get(opinion.stance, 0.0) + weight * opinion.confidence

    best_stance = Stance.HOLD
    best_score = 0.0
    for stance, score in scores.items():
        if score > best_score:
            best_stance = stance
            best_score = score

    winners = [o for o in round1 if o.stance == best_stance]
    confidence = _mean([o.confidence for o in winners]) or 0.0
    risk = next((o for o in round1 if o.role == "risk-manager"), None)

    return Decision(
        action=best_stance,
        symbol=symbol,
        confidence=confidence,
        reasoning=(
            f"Weighted vote fallback: {', '.join(o.role for o in winners) or 'no role'} "
            f"support {best_stance.value} (score {best_score:.2f})"
        ),
        consensus_level=consensus_level(round1, len(winners)),
        key_debate_points=[f"{o.role}: {o.stance.value} ({o.confidence})" for o in round1],
        risk_manager_verdict=risk.reasoning if risk else "Risk manager did not respond",
        params=average_params(winners),
    )
