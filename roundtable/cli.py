"""Click CLI: loads config and a snapshot, runs a session, prints and saves the outcome."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, load_config
from roundtable.discussion_log import DiscussionLog
from roundtable.errors import QuorumError
from roundtable.healthcheck import run_health_checks
from roundtable.inputs import SessionInput
from roundtable.models import PhaseEvent, SessionResult
from roundtable.output import (
    print_decision,
    print_history,
    print_round1_summary,
    print_round2_summary,
    save_to_file,
)
from roundtable.providers.base import ChatProvider
from roundtable.router import build_providers, build_router
from roundtable.session import RoundtableSession

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_PHASE_LABELS = {
    "round1_start": "Round 1: independent analysis...",
    "round2_start": "Round 2: debate...",
    "chairman_start": "Chairman synthesis...",
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _load_config_or_exit() -> AppConfig:
    try:
        return load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)


def _load_snapshot(path: Path) -> SessionInput:
    try:
        return SessionInput.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as exc:
        console.print(f"[bold red]Invalid snapshot:[/bold red] {path}\n{escape(str(exc))}")
        sys.exit(1)


def _check_and_filter_providers(all_providers: dict[str, ChatProvider]) -> dict[str, ChatProvider]:
    """Run health checks, print results, and ask user what to do on failures.

    Returns the filtered dict of working providers. Exits if the user
    declines to continue or no providers pass.
    """
    console.print("\n[bold]Checking providers...[/bold]")
    results: dict[str, tuple[bool, str]] = asyncio.run(run_health_checks(all_providers))

    failed_names: list[str] = []
    for name in sorted(results):
        ok, err = results[name]
        if ok:
            console.print(f"  [green]OK  [/green] {name}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}: {escape(short_err)}")
            failed_names.append(name)

    if not failed_names:
        console.print()
        return all_providers

    working = {n: p for n, p in all_providers.items() if n not in failed_names}

    if not working:
        console.print("\n[bold red]Error:[/bold red] No providers passed the health check.")
        sys.exit(1)

    console.print(
        f"\n[yellow]{len(failed_names)} provider(s) failed:[/yellow] {', '.join(failed_names)}"
    )
    console.print(f"Working providers: {', '.join(sorted(working))}")

    if not click.confirm("Continue with working providers only?", default=True):
        sys.exit(0)

    console.print()
    return working


async def _run_session(
    config: AppConfig,
    providers: dict[str, ChatProvider],
    session_input: SessionInput,
    discussion_log: DiscussionLog | None,
) -> SessionResult:
    router = build_router(config, providers)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Starting roundtable...", total=None)

        def on_event(event: PhaseEvent) -> None:
            if event.phase in _PHASE_LABELS:
                progress.update(task, description=_PHASE_LABELS[event.phase])
            elif event.phase == "round1_done":
                progress.print(f"[green]OK[/green] Round 1 complete ({len(event.data['opinions'])} opinions)")
            elif event.phase == "round2_done":
                progress.print(f"[green]OK[/green] Round 2 complete ({len(event.data['responses'])} responses)")

        session = RoundtableSession.from_config(
            config.roundtable, router, discussion_log=discussion_log, on_event=on_event
        )
        return await session.run(session_input)


@click.group()
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(verbose: bool) -> None:
    """Roundtable -- six-role deliberation for one trading symbol.

    \b
    Examples:
      roundtable run snapshot.json
      roundtable run snapshot.json --depth quick --save ./output
      roundtable history BTC/USDT:USDT --limit 10
      roundtable check
    """
    load_dotenv()
    _setup_logging(verbose)


@main.command()
@click.argument("snapshot", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--depth", type=click.Choice(["quick", "standard", "deep"]), default=None,
              help="Override the configured default depth")
@click.option("--save", "save_dir", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Write a markdown transcript into this directory")
@click.option("--no-log", is_flag=True, default=False, help="Do not append the session to the discussion log")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
def run(
    snapshot: Path,
    depth: str | None,
    save_dir: Path | None,
    no_log: bool,
    skip_health_check: bool,
) -> None:
    """Run one roundtable session on a SNAPSHOT json file."""
    config = _load_config_or_exit()
    if not config.roundtable.enabled:
        console.print("[yellow]Roundtable is disabled (roundtable.enabled / ROUNDTABLE_ENABLED).[/yellow]")
        sys.exit(1)
    if depth:
        config.roundtable.default_depth = depth
        if depth == "deep":
            config.roundtable.allow_deep_mode = True

    session_input = _load_snapshot(snapshot)

    providers = build_providers(config)
    if not providers:
        console.print("[bold red]Error:[/bold red] No providers available. Check API keys in .env.")
        sys.exit(1)
    if not skip_health_check:
        providers = _check_and_filter_providers(providers)

    discussion_log = None if no_log else DiscussionLog(config.roundtable.database_path)
    console.print(
        f"\n[bold cyan]Roundtable[/bold cyan] {session_input.market.symbol} "
        f"@ {session_input.market.current_price:g}"
    )
    console.print(f"Providers: {', '.join(sorted(providers))}\n")

    try:
        result = asyncio.run(_run_session(config, providers, session_input, discussion_log))
    except QuorumError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        for t in exc.timings:
            console.print(f"  {t.role} {t.round}: {t.status} ({t.duration_ms}ms)")
        sys.exit(1)
    finally:
        if discussion_log is not None:
            discussion_log.close()

    print_round1_summary(result.round1, result.timings)
    if result.round2 is not None:
        print_round2_summary(result.round2, result.timings)
    print_decision(result)

    if save_dir is not None:
        saved_path = save_to_file(result, save_dir)
        console.print(f"\n[dim]Saved to: {saved_path}[/dim]")


@main.command()
@click.argument("symbol")
@click.option("--limit", default=5, show_default=True, type=click.IntRange(min=1),
              help="Number of sessions to show")
def history(symbol: str, limit: int) -> None:
    """Show the most recent logged sessions for SYMBOL."""
    config = _load_config_or_exit()
    discussion_log = DiscussionLog(config.roundtable.database_path)
    try:
        records = discussion_log.recent(symbol, limit)
    finally:
        discussion_log.close()

    if not records:
        click.echo(f"No roundtable sessions logged for {symbol}.")
        return
    print_history(records)


@main.command()
def check() -> None:
    """Ping every configured provider that has an API key."""
    config = _load_config_or_exit()
    providers = build_providers(config)
    if not providers:
        console.print("[bold red]Error:[/bold red] No providers available. Check API keys in .env.")
        sys.exit(1)

    results = asyncio.run(run_health_checks(providers))
    failed = 0
    for name in sorted(results):
        ok, err = results[name]
        if ok:
            console.print(f"  [green]OK  [/green] {name}")
        else:
            failed += 1
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}: {escape(short_err)}")
    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
