"""Shared contract for roundtable roles: independent analysis, then debate."""

import logging
from abc import ABC, abstractmethod
from typing import Any

from roundtable.inputs import SessionInput
from roundtable.models import ChatMessage
from roundtable.normalize import load_json_object, normalize_optional_object, normalize_stance, validate
from roundtable.roles.formatting import format_opinion, market_summary
from roundtable.router import ChatClient
from roundtable.schemas import DebateResponse, Opinion

logger = logging.getLogger(__name__)

_DEBATE_JSON_TEMPLATE = """Return strict JSON:
{{
  "role": "{role_id}",
  "revisedStance": "LONG|SHORT|HOLD|CLOSE|ADJUST|ADD|REDUCE",
  "finalConfidence": 0.0-1.0,
  "stanceChanged": true/false,
  "changeReason": "why you changed, or why their arguments do not hold",
  "agreements": [{{"withRole": "role id", "point": "the point you agree with"}}],
  "challenges": [{{"toRole": "role id", "challenge": "specific rebuttal", "severity": "minor|major|critical"}}],
  "finalReasoning": "your final analysis after the debate"
}}"""


class RoleAgent(ABC):
    """One analytical persona at the table.

    Concrete roles only build prompts; calling the model, stamping the role id
    and validating the reply all happen here.
    """

    role_id: str = ""
    role_name: str = ""

    def __init__(self, chat: ChatClient, preferred_provider: str | None = None) -> None:
        self._chat = chat
        self.preferred_provider = preferred_provider

    def set_provider(self, provider: str | None) -> None:
        self.preferred_provider = provider

    @abstractmethod
    def build_system_prompt(self) -> str:
        """Persona, responsibilities and the Round-1 JSON shape."""
        ...

    @abstractmethod
    def build_analysis_prompt(self, session_input: SessionInput) -> str:
        """Round-1 user prompt built from the slice of the snapshot this role cares about."""
        ...

    async def _ask(self, user_prompt: str, round_label: str) -> dict[str, Any]:
        messages = [
            ChatMessage(role="system", content=self.build_system_prompt()),
            ChatMessage(role="user", content=user_prompt),
        ]
        response = await self._chat.chat(messages, preferred=self.preferred_provider)
        logger.info("%s %s answered by %s/%s", self.role_id, round_label, response.provider, response.model)
        return load_json_object(response.content)

    async def analyze(self, session_input: SessionInput) -> Opinion:
        """Round 1: independent opinion.

        Raises:
            MalformedResponseError, ResponseValidationError, TransportError.
        """
        payload = await self._ask(self.build_analysis_prompt(session_input), "R1")
        payload["role"] = self.role_id
        if payload.get("stance") is not None:
            payload["stance"] = normalize_stance(payload["stance"]).value
        normalize_optional_object(payload, "suggestedParams")
        normalize_optional_object(payload, "suggested_params")
        return validate(Opinion, payload)

    def build_debate_prompt(
        self,
        session_input: SessionInput,
        round1: list[Opinion],
        full_context: bool = False,
    ) -> str:
        mine = next((o for o in round1 if o.role == self.role_id), None)
        my_stance = mine.stance if mine else None
        others = [o for o in round1 if o.role != self.role_id]
        agreeing = [o for o in others if o.stance == my_stance]
        disagreeing = [o for o in others if o.stance != my_stance]

        sections = [market_summary(session_input)]
        if full_context:
            sections.append(self.build_analysis_prompt(session_input))
        sections.append("=== Round 1 opinions ===\n" + "\n\n".join(format_opinion(o) for o in round1))
        sections.append(
            f"You are {self.role_name} ({self.role_id}). "
            f"Your Round 1 stance was: {my_stance.value if my_stance else 'unknown'}"
        )
        if agreeing:
            sections.append("Roles agreeing with you: " + ", ".join(o.role for o in agreeing))
        if disagreeing:
            lines = [
                f"- {o.role} argues {o.stance.value} (confidence {o.confidence}): {'; '.join(o.key_points)}"
                for o in disagreeing
            ]
            sections.append(
                "These roles disagree with you. Address each of them in `challenges`:\n" + "\n".join(lines)
            )
        sections.append(
            "## Debate rules\n"
            "1. Respond to every role whose stance differs from yours.\n"
            "2. If their argument is convincing, revise your stance honestly (stanceChanged=true).\n"
            "3. If you keep your stance, give a concrete rebuttal.\n"
            "4. severity: minor=detail, major=directional disagreement, critical=fatal flaw.\n\n"
            + _DEBATE_JSON_TEMPLATE.format(role_id=self.role_id)
        )
        return "\n\n".join(sections)

    async def debate(
        self,
        session_input: SessionInput,
        round1: list[Opinion],
        full_context: bool = False,
    ) -> DebateResponse:
        """Round 2: respond to the other roles' Round-1 opinions.

        Challenges are requested for every disagreeing peer but not enforced;
        an empty list is a valid answer.
        """
        payload = await self._ask(self.build_debate_prompt(session_input, round1, full_context), "R2")
        payload["role"] = self.role_id
        if payload.get("revisedStance") is not None:
            payload["revisedStance"] = normalize_stance(payload["revisedStance"]).value
        for key in ("agreements", "challenges"):
            if payload.get(key) is None:
                payload[key] = []
        for challenge in payload["challenges"]:
            if isinstance(challenge, dict) and isinstance(challenge.get("severity"), str):
                challenge["severity"] = challenge["severity"].strip().lower()
        if payload.get("changeReason") is None:
            payload.pop("changeReason", None)
        return validate(DebateResponse, payload)
