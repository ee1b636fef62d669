"""Session orchestration: Round 1 fan-out, optional debate, chairman or fallback vote."""

import asyncio
import inspect
import logging
import secrets
import time
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from config.config_loader import RoundtableConfig
from roundtable.chairman import synthesize
from roundtable.discussion_log import DiscussionLog
from roundtable.errors import QuorumError, RoleTimeoutError
from roundtable.inputs import SessionInput
from roundtable.models import Depth, PhaseEvent, RoleTiming, RoundLabel, SessionResult
from roundtable.roles.base import RoleAgent
from roundtable.roles.registry import create_roles
from roundtable.router import ChatClient
from roundtable.schemas import DebateResponse, Decision, Opinion
from roundtable.voting import check_unanimous, fallback_weighted_vote

logger = logging.getLogger(__name__)

EventCallback = Callable[[PhaseEvent], Awaitable[None] | None]
Synthesizer = Callable[..., Coroutine[Any, Any, Decision]]


def generate_session_id() -> str:
    return f"rt-{int(time.time() * 1000):x}-{secrets.token_hex(3)}"


def determine_depth(has_position: bool, config_depth: str, allow_deep: bool) -> Depth:
    """Pick the discussion depth for one session.

    An open position on the symbol always gets a quick session. Deep needs both
    the configured default and the explicit allowance; otherwise it drops to
    standard.
    """
    if has_position:
        return "quick"
    if config_depth == "deep":
        return "deep" if allow_deep else "standard"
    if config_depth == "quick":
        return "quick"
    return "standard"


async def _timed_call(
    coro: Coroutine[Any, Any, Any],
    timeout_sec: float,
    role_id: str,
    round_label: RoundLabel,
) -> tuple[Any | None, RoleTiming, Exception | None]:
    """Await coro under its own timeout and time it.

    Never raises except on cancellation; returns (value, timing, error).
    """
    start = time.monotonic()
    try:
        value = await asyncio.wait_for(coro, timeout=timeout_sec)
    except TimeoutError:
        elapsed = int((time.monotonic() - start) * 1000)
        return None, RoleTiming(role_id, round_label, elapsed, "timeout"), RoleTimeoutError(
            f"{role_id} {round_label}", timeout_sec
        )
    except Exception as exc:
        elapsed = int((time.monotonic() - start) * 1000)
        return None, RoleTiming(role_id, round_label, elapsed, "failed"), exc
    elapsed = int((time.monotonic() - start) * 1000)
    return value, RoleTiming(role_id, round_label, elapsed, "ok"), None


class RoundtableSession:
    """Drives one deliberation per call to run().

    Rounds are strict barriers: every task of a round settles before the next
    phase starts, and results are only combined after the barrier.

    on_event may be a plain function or a coroutine function. Coroutine observers
    are scheduled as tasks; plain observers run inline and must return quickly.
    """

    def __init__(
        self,
        config: RoundtableConfig,
        roles: list[RoleAgent],
        chat: ChatClient,
        discussion_log: DiscussionLog | None = None,
        on_event: EventCallback | None = None,
        synthesizer: Synthesizer | None = None,
    ) -> None:
        self._config = config
        self._roles = roles
        self._chat = chat
        self._log = discussion_log
        self._on_event = on_event
        self._synthesize = synthesizer or synthesize
        self._pending_events: set[asyncio.Future] = set()

    @classmethod
    def from_config(
        cls,
        config: RoundtableConfig,
        chat: ChatClient,
        discussion_log: DiscussionLog | None = None,
        on_event: EventCallback | None = None,
    ) -> "RoundtableSession":
        roles = create_roles(chat, config.role_providers)
        return cls(config, roles, chat, discussion_log=discussion_log, on_event=on_event)

    # ------------------------------------------------------------------ events

    def _emit(self, phase: str, symbol: str, session_id: str, **data: Any) -> None:
        """Fire-and-forget notification; observer failures are only logged."""
        if self._on_event is None:
            return
        event = PhaseEvent(phase=phase, symbol=symbol, session_id=session_id, data=data)
        try:
            result = self._on_event(event)
        except Exception as exc:
            logger.warning("Roundtable observer failed on %s: %s", phase, exc)
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._pending_events.add(task)
            task.add_done_callback(self._event_done)

    def _event_done(self, task: asyncio.Future) -> None:
        self._pending_events.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Roundtable observer failed: %s", task.exception())

    # ------------------------------------------------------------------ rounds

    async def _run_round(
        self,
        calls: list[tuple[RoleAgent, Coroutine[Any, Any, Any]]],
        round_label: RoundLabel,
    ) -> tuple[list[Any], list[RoleTiming]]:
        """Run every call concurrently, each under its own timeout; keep the survivors."""
        outcomes = await asyncio.gather(
            *(
                _timed_call(coro, self._config.role_timeout_sec, role.role_id, round_label)
                for role, coro in calls
            )
        )
        values: list[Any] = []
        timings: list[RoleTiming] = []
        for (role, _), (value, timing, error) in zip(calls, outcomes):
            timings.append(timing)
            if error is None:
                values.append(value)
            else:
                logger.warning(
                    "%s %s %s (%dms): %s", role.role_name, round_label, timing.status, timing.duration_ms, error
                )
        return values, timings

    async def _decide(
        self,
        session_input: SessionInput,
        round1: list[Opinion],
        round2: list[DebateResponse] | None,
    ) -> tuple[Decision, str, RoleTiming]:
        symbol = session_input.market.symbol
        decision, timing, error = await _timed_call(
            self._synthesize(
                self._chat,
                symbol,
                round1,
                round2,
                session_input.account.balance.total_balance,
                self._config.role_weights,
                preferred_provider=self._config.chairman_provider,
            ),
            self._config.chairman_timeout_sec,
            "chairman",
            "chairman",
        )
        if error is None:
            return decision, "chairman", timing
        logger.warning("Chairman %s, falling back to weighted vote: %s", timing.status, error)
        return fallback_weighted_vote(symbol, round1, self._config.role_weights), "fallback", timing

    # ------------------------------------------------------------------ session

    async def run(self, session_input: SessionInput) -> SessionResult:
        """Run one full session for session_input.market.symbol.

        Raises:
            QuorumError: Round 1 produced fewer opinions than the quorum.
            asyncio.CancelledError: the session task was cancelled; nothing is logged.
        """
        cfg = self._config
        session_id = generate_session_id()
        symbol = session_input.market.symbol
        started = time.monotonic()
        depth = determine_depth(session_input.has_open_position, cfg.default_depth, cfg.allow_deep_mode)
        timings: list[RoleTiming] = []

        logger.info("Roundtable started: %s, depth %s, session %s", symbol, depth, session_id)
        self._emit("start", symbol, session_id, depth=depth)

        # Round 1: independent analysis
        self._emit("round1_start", symbol, session_id)
        round1, r1_timings = await self._run_round(
            [(role, role.analyze(session_input)) for role in self._roles], "R1"
        )
        timings.extend(r1_timings)

        if len(round1) < cfg.quorum:
            logger.warning("Roundtable quorum not met for %s: %d/%d", symbol, len(round1), cfg.quorum)
            raise QuorumError(cfg.quorum, len(round1), timings)

        logger.info("Round 1 complete: %d/%d roles responded", len(round1), len(self._roles))
        self._emit(
            "round1_done",
            symbol,
            session_id,
            opinions=[{"role": o.role, "stance": o.stance.value, "confidence": o.confidence} for o in round1],
        )

        # Round 2: debate, unless quick or already unanimous
        round2: list[DebateResponse] | None = None
        unanimous = check_unanimous(round1)
        if unanimous is not None:
            logger.info("Round 1 unanimous (%s), skipping debate", unanimous.value)
        elif depth in ("standard", "deep"):
            self._emit("round2_start", symbol, session_id)
            speakers = {o.role for o in round1}
            debaters = [role for role in self._roles if role.role_id in speakers]
            round2, r2_timings = await self._run_round(
                [(role, role.debate(session_input, round1, full_context=depth == "deep")) for role in debaters],
                "R2",
            )
            timings.extend(r2_timings)
            logger.info("Round 2 complete: %d/%d roles responded", len(round2), len(debaters))
            self._emit(
                "round2_done",
                symbol,
                session_id,
                responses=[
                    {
                        "role": r.role,
                        "revisedStance": r.revised_stance.value,
                        "finalConfidence": r.final_confidence,
                        "stanceChanged": r.stance_changed,
                    }
                    for r in round2
                ],
            )

        # Chairman, or the weighted vote when the chairman is unavailable
        self._emit("chairman_start", symbol, session_id)
        decision, source, chairman_timing = await self._decide(session_input, round1, round2)
        timings.append(chairman_timing)

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Roundtable decision for %s: %s (confidence %.2f, %s, via %s) in %dms",
            symbol,
            decision.action.value,
            decision.confidence,
            decision.consensus_level.value,
            source,
            duration_ms,
        )
        logger.info(
            "Role timings: %s",
            ", ".join(f"{t.role}/{t.round}={t.duration_ms}ms({t.status})" for t in timings),
        )
        self._emit(
            "done",
            symbol,
            session_id,
            action=decision.action.value,
            confidence=decision.confidence,
            consensusLevel=decision.consensus_level.value,
            durationMs=duration_ms,
        )

        result = SessionResult(
            session_id=session_id,
            symbol=symbol,
            depth=depth,
            round1=round1,
            round2=round2,
            decision=decision,
            consensus_level=decision.consensus_level.value,
            total_duration_ms=duration_ms,
            decision_source=source,
            timings=timings,
        )

        if self._log is not None:
            try:
                await asyncio.to_thread(self._log.append_result, result)
            except Exception as exc:
                logger.warning("Failed to persist discussion %s: %s", session_id, exc)

        return result
