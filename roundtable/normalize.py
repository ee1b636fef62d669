"""Response normalizer: free-form model text -> validated schema objects.

Nothing a model writes reaches the rest of the pipeline without passing
through here.
"""

import json
import logging
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from roundtable.errors import MalformedResponseError, ResponseValidationError
from roundtable.schemas import MarketRegime, Stance

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Substring heuristics, checked in order. Anything unmatched becomes HOLD.
_STANCE_SYNONYMS: list[tuple[tuple[str, ...], Stance]] = [
    (("LONG", "BUY"), Stance.LONG),
    (("SHORT", "SELL"), Stance.SHORT),
    (("CLOSE", "EXIT"), Stance.CLOSE),
    (("ADD", "INCREASE"), Stance.ADD),
    (("REDUCE", "DECREASE", "TRIM"), Stance.REDUCE),
    (("ADJUST",), Stance.ADJUST),
]

_REGIME_SYNONYMS: list[tuple[tuple[str, ...], MarketRegime]] = [
    (("trending_up", "bullish"), MarketRegime.TRENDING_UP),
    (("trending_down", "bearish"), MarketRegime.TRENDING_DOWN),
    (("volatile",), MarketRegime.VOLATILE),
    (("quiet",), MarketRegime.QUIET),
]


def extract_json(text: str) -> str:
    """Return the first balanced {...} span in text.

    Braces inside string literals do not count toward depth.

    Raises:
        MalformedResponseError: no '{' at all, or the object never closes.
    """
    start = text.find("{")
    if start == -1:
        raise MalformedResponseError("No JSON object found in model response")

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if escaped:
            escaped = False
            continue
        if ch == "\\" and in_string:
            escaped = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    raise MalformedResponseError("Incomplete JSON object in model response")


def normalize_stance(raw: Any) -> Stance:
    """Map a loose stance string onto the closed Stance enum (default HOLD)."""
    upper = str(raw).strip().upper()
    try:
        return Stance(upper)
    except ValueError:
        pass
    for needles, stance in _STANCE_SYNONYMS:
        if any(n in upper for n in needles):
            return stance
    return Stance.HOLD


def normalize_regime(raw: Any) -> MarketRegime:
    """Map a loose regime description onto MarketRegime (default ranging)."""
    lower = str(raw).strip().lower()
    try:
        return MarketRegime(lower)
    except ValueError:
        pass
    for needles, regime in _REGIME_SYNONYMS:
        if any(n in lower for n in needles):
            return regime
    return MarketRegime.RANGING


def strip_nulls(obj: dict[str, Any]) -> dict[str, Any] | None:
    """Shallow copy of obj without None values; None if nothing is left."""
    result = {k: v for k, v in obj.items() if v is not None}
    return result or None


def load_json_object(text: str) -> dict[str, Any]:
    """Extract and decode the first JSON object in text."""
    span = extract_json(text)
    try:
        parsed = json.loads(span)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Undecodable JSON in model response: {exc}") from exc
    if not isinstance(parsed, dict):
        raise MalformedResponseError("Model response JSON is not an object")
    return parsed


def normalize_optional_object(payload: dict[str, Any], key: str) -> None:
    """Null-strip payload[key] in place when it is an object; drop it when empty or null."""
    value = payload.get(key)
    if isinstance(value, dict):
        cleaned = strip_nulls(value)
        if cleaned is None:
            payload.pop(key, None)
        else:
            payload[key] = cleaned
    elif value is None:
        payload.pop(key, None)


def validate(model_cls: type[ModelT], payload: dict[str, Any]) -> ModelT:
    """Validate payload against model_cls, raising ResponseValidationError on failure."""
    try:
        return model_cls.model_validate(payload)
    except PydanticValidationError as exc:
        logger.debug("Schema validation failed for %s: %s", model_cls.__name__, exc)
        raise ResponseValidationError(
            f"{model_cls.__name__} failed validation: {exc.error_count()} error(s)"
        ) from exc
