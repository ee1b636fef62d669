"""Rich console output and markdown file save for roundtable sessions."""

import json
import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from roundtable.models import DiscussionRecord, RoleTiming, SessionResult
from roundtable.schemas import DebateResponse, Decision, Opinion, Stance

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_STANCE_STYLES = {
    Stance.LONG: "green",
    Stance.ADD: "green",
    Stance.SHORT: "red",
    Stance.CLOSE: "red",
    Stance.REDUCE: "yellow",
    Stance.ADJUST: "yellow",
    Stance.HOLD: "dim",
}


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _preview(text: str, words: int = 50) -> str:
    """Return first N words of text."""
    all_words = text.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def _timing_for(timings: list[RoleTiming], role: str, round_label: str) -> RoleTiming | None:
    return next((t for t in timings if t.role == role and t.round == round_label), None)


def _stance_text(stance: Stance, confidence: float) -> str:
    style = _STANCE_STYLES.get(stance, "white")
    return f"[{style}]{stance.value}[/{style}] ({confidence:.2f})"


def print_round1_summary(opinions: list[Opinion], timings: list[RoleTiming]) -> None:
    """Print one panel per Round-1 opinion."""
    console.print(Rule("[bold cyan]Round 1: Independent Analysis[/bold cyan]"))
    for opinion in opinions:
        timing = _timing_for(timings, opinion.role, "R1")
        console.print(
            Panel(
                _preview(opinion.reasoning),
                title=f"[bold]{opinion.role}[/bold] {_stance_text(opinion.stance, opinion.confidence)}",
                subtitle=f"{timing.duration_ms}ms" if timing else None,
                border_style="dim",
            )
        )
    _print_abstentions(timings, "R1")


def print_round2_summary(responses: list[DebateResponse], timings: list[RoleTiming]) -> None:
    """Print one panel per debate response, flagging changed stances."""
    console.print(Rule("[bold cyan]Round 2: Debate[/bold cyan]"))
    for response in responses:
        timing = _timing_for(timings, response.role, "R2")
        changed = " [bold yellow]changed[/bold yellow]" if response.stance_changed else ""
        body = _preview(response.final_reasoning)
        if response.challenges:
            body += "\n" + "\n".join(
                f"- [{c.severity.value}] -> {c.to_role}: {c.challenge}" for c in response.challenges
            )
        console.print(
            Panel(
                body,
                title=(
                    f"[bold]{response.role}[/bold] "
                    f"{_stance_text(response.revised_stance, response.final_confidence)}{changed}"
                ),
                subtitle=f"{timing.duration_ms}ms" if timing else None,
                border_style="dim",
            )
        )
    _print_abstentions(timings, "R2")


def _print_abstentions(timings: list[RoleTiming], round_label: str) -> None:
    missing = [t for t in timings if t.round == round_label and t.status != "ok"]
    for t in missing:
        console.print(f"  [red]{t.status.upper()}[/red] {t.role} ({t.duration_ms}ms)")


def print_decision(result: SessionResult) -> None:
    """Print the final decision with its parameters."""
    decision: Decision = result.decision
    console.print(Rule("[bold green]Roundtable Decision[/bold green]"))
    console.print(
        Text(
            f"Session: {result.session_id} | Depth: {result.depth} | "
            f"Source: {result.decision_source} | Duration: {result.total_duration_ms}ms",
            style="dim",
        )
    )

    table = Table(show_header=False, box=None)
    table.add_column(style="bold")
    table.add_column()
    table.add_row("Action", _stance_text(decision.action, decision.confidence))
    table.add_row("Consensus", decision.consensus_level.value)
    if decision.market_regime:
        table.add_row("Regime", decision.market_regime.value)
    if decision.params:
        for key, value in decision.params.to_wire().items():
            table.add_row(key, str(value))
    table.add_row("Risk manager", decision.risk_manager_verdict)
    if decision.dissent:
        table.add_row("Dissent", decision.dissent)
    console.print(table)
    console.print(Panel(decision.reasoning, title="Reasoning", border_style="green"))

    if decision.key_price_levels:
        levels = Table(title="Key price levels")
        levels.add_column("Price", justify="right")
        levels.add_column("Type")
        levels.add_column("Direction")
        levels.add_column("Confidence", justify="right")
        for level in decision.key_price_levels:
            levels.add_row(
                f"{level.price:g}",
                level.type.value,
                level.direction.value if level.direction else "-",
                f"{level.confidence:.2f}",
            )
        console.print(levels)


def print_history(records: list[DiscussionRecord]) -> None:
    """Print recent sessions for one symbol as a table."""
    table = Table(title="Roundtable history")
    table.add_column("Created")
    table.add_column("Session")
    table.add_column("Depth")
    table.add_column("Action")
    table.add_column("Confidence", justify="right")
    table.add_column("Consensus")
    table.add_column("Duration", justify="right")
    for record in records:
        decision = json.loads(record.decision_json)
        table.add_row(
            record.created_at or "-",
            record.session_id,
            record.depth,
            record.action_taken,
            f"{decision.get('confidence', 0):.2f}",
            record.consensus_level,
            f"{record.duration_ms}ms",
        )
    console.print(table)


def save_to_file(result: SessionResult, output_dir: Path) -> Path:
    """Save the full session transcript as a markdown file.

    Args:
        result: The completed SessionResult.
        output_dir: Directory to save the file in.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = output_dir / f"{timestamp}_{_slug(result.symbol)}_{result.session_id}.md"
    decision: Decision = result.decision

    lines: list[str] = [
        f"# Roundtable: {result.symbol}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Session:** {result.session_id}",
        f"**Depth:** {result.depth}",
        f"**Duration:** {result.total_duration_ms}ms",
        f"**Decision source:** {result.decision_source}",
        "",
        "---",
        "",
        "## Round 1: Independent Analysis",
        "",
    ]

    for opinion in result.round1:
        lines.append(f"### {opinion.role}: {opinion.stance.value} ({opinion.confidence:.2f})")
        lines.append("")
        lines.append(opinion.reasoning)
        lines.append("")
        lines.extend(f"- {point}" for point in opinion.key_points)
        lines.append("")

    if result.round2 is not None:
        lines += ["## Round 2: Debate", ""]
        for response in result.round2:
            changed = " (changed)" if response.stance_changed else ""
            lines.append(
                f"### {response.role}: {response.revised_stance.value} "
                f"({response.final_confidence:.2f}){changed}"
            )
            lines.append("")
            lines.append(response.final_reasoning)
            lines.append("")
            for challenge in response.challenges:
                lines.append(f"- **{challenge.severity.value}** to {challenge.to_role}: {challenge.challenge}")
            for agreement in response.agreements:
                lines.append(f"- agrees with {agreement.with_role}: {agreement.point}")
            lines.append("")

    lines += [
        f"## Decision: {decision.action.value} ({decision.confidence:.2f}, {decision.consensus_level.value})",
        "",
        decision.reasoning,
        "",
        f"**Risk manager:** {decision.risk_manager_verdict}",
        "",
    ]
    if decision.dissent:
        lines += [f"**Dissent:** {decision.dissent}", ""]
    lines += ["```json", json.dumps(decision.to_wire(), indent=2, ensure_ascii=False), "```", ""]

    lines += ["## Timings", ""]
    lines.extend(f"- {t.role} {t.round}: {t.duration_ms}ms ({t.status})" for t in result.timings)
    lines.append("")

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Session saved to: %s", filepath)
    return filepath
