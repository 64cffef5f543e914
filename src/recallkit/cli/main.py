"""Main CLI entry point for recallkit."""

import typer
from dotenv import load_dotenv
from rich import print as rprint
from rich.panel import Panel
from rich.table import Table

from recallkit.cli.helpers import console, format_due, format_time, get_settings, get_store
from recallkit.core.config import configure_logging
from recallkit.core.errors import (
    ConcurrentModification,
    ConfigurationError,
    NotFound,
    RecallKitError,
)
from recallkit.core.models import Card, utcnow
from recallkit.core.session import ReviewSession, SessionStatus

load_dotenv()

app = typer.Typer(
    name="recallkit",
    help="Spaced repetition review scheduling from the terminal.",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug logging",
    ),
) -> None:
    """Spaced repetition review scheduling from the terminal."""
    try:
        settings = get_settings()
    except ConfigurationError as e:
        rprint(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(1)
    configure_logging("DEBUG" if verbose else settings.log_level)


# ============================================================================
# CARD commands
# ============================================================================


@app.command()
def add(
    front: str = typer.Argument(..., help="Prompt shown first"),
    back: str = typer.Argument(..., help="Answer shown on reveal"),
    path: str | None = typer.Option(
        None,
        "--path",
        "-p",
        help="Learning path the card belongs to",
    ),
) -> None:
    """Add a new card. It is due immediately."""
    store = get_store()
    card = Card(owner=get_settings().owner, front=front, back=back, path_id=path)
    try:
        store.create(card)
    except RecallKitError as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(1)

    rprint("[green]Card saved![/green]")
    rprint(f"  ID: {card.id}")


@app.command()
def due(
    limit: int | None = typer.Option(
        None,
        "--limit",
        "-l",
        help="Maximum cards to list (defaults to the session limit)",
    ),
    path: str | None = typer.Option(None, "--path", "-p", help="Only cards in this path"),
) -> None:
    """List cards due now, in review order."""
    settings = get_settings()
    cards = get_store().query_due(settings.owner, utcnow(), limit or settings.session_limit, path)

    if not cards:
        rprint("[green]No cards due for review![/green]")
        return

    table = Table(title=f"Due cards ({len(cards)})")
    table.add_column("ID", style="dim")
    table.add_column("Front")
    table.add_column("Difficulty", justify="right")
    table.add_column("Due since")
    for card in cards:
        table.add_row(card.id[:8], _truncate(card.front), str(card.difficulty), format_due(card))
    console.print(table)


@app.command("list")
def list_cards(
    path: str | None = typer.Option(None, "--path", "-p", help="Only cards in this path"),
) -> None:
    """List all cards with their scheduling state."""
    cards = get_store().list_cards(get_settings().owner, path)

    if not cards:
        rprint("[yellow]No cards found.[/yellow]")
        return

    table = Table(title=f"Cards ({len(cards)})")
    table.add_column("ID", style="dim")
    table.add_column("Front")
    table.add_column("Path")
    table.add_column("Difficulty", justify="right")
    table.add_column("Reviews", justify="right")
    table.add_column("Next due")
    for card in cards:
        table.add_row(
            card.id[:8],
            _truncate(card.front),
            card.path_id or "-",
            str(card.difficulty),
            f"{card.success_count}/{card.review_count}",
            format_due(card),
        )
    console.print(table)


@app.command()
def show(card_id: str = typer.Argument(..., help="Card ID (or unique prefix)")) -> None:
    """Show a card and its scheduling info."""
    card = _require_card(card_id)

    console.print(Panel(card.front, title="Front", border_style="blue"))
    console.print(Panel(card.back, title="Back", border_style="green"))

    rate = card.success_rate
    rprint(f"  ID: {card.id}")
    if card.path_id:
        rprint(f"  Path: {card.path_id}")
    rprint(f"  Difficulty: {card.difficulty} ({card.interval_days}-day interval)")
    rprint(
        f"  Reviews: {card.review_count} "
        f"({card.success_count} recalled"
        + (f", {rate:.0%}" if rate is not None else "")
        + ")"
    )
    if card.last_reviewed:
        rprint(f"  Last reviewed: {format_time(card.last_reviewed)}")
    rprint(f"  Next due: {format_due(card)}")


def _require_card(card_id: str) -> Card:
    """Find a card by full or partial ID, or exit."""
    store = get_store()
    owner = get_settings().owner
    try:
        return store.get(owner, card_id)
    except NotFound:
        pass

    matches = [c for c in store.list_cards(owner) if c.id.startswith(card_id)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        rprint(f"[yellow]Multiple cards match '{card_id}':[/yellow]")
        for c in matches:
            rprint(f"  {c.id[:8]}: {_truncate(c.front)}")
    else:
        rprint(f"[red]Card not found: {card_id}[/red]")
    raise typer.Exit(1)


def _truncate(text: str, width: int = 50) -> str:
    return text if len(text) <= width else text[: width - 3] + "..."


# ============================================================================
# REVIEW command
# ============================================================================


@app.command()
def review(
    limit: int | None = typer.Option(
        None,
        "--limit",
        "-l",
        help="Maximum cards to review (defaults to the session limit)",
    ),
    path: str | None = typer.Option(None, "--path", "-p", help="Only cards in this path"),
) -> None:
    """Start an interactive review session."""
    settings = get_settings()
    session = ReviewSession(
        get_store(),
        settings.owner,
        limit=limit or settings.session_limit,
        path_id=path,
    )

    session.start()
    if session.current is None:
        rprint("[green]No cards due for review![/green]")
        return

    total = session.remaining
    rprint(f"\n[bold]Review Session[/bold]: {total} card(s)\n")

    while session.current is not None:
        card = session.current
        position = total - session.remaining + 1
        console.print(Panel(card.front, title=f"Card {position}/{total}", border_style="blue"))

        choice = typer.prompt(
            "\n[Press Enter to reveal answer, q to quit]", default="", show_default=False
        )
        if choice.strip().lower() == "q":
            session.abandon()
            break

        console.print(Panel(session.reveal(), title="Answer", border_style="green"))

        grade = _prompt_grade()
        if grade is None:
            session.abandon()
            break
        if grade == "skip":
            session.skip_current()
            rprint("[dim]Skipped.[/dim]\n")
            continue

        _commit_grade(session, grade)
        rprint("")

    summary = session.summary()
    if summary.status == SessionStatus.ABANDONED:
        rprint("\n[yellow]Session ended early.[/yellow]")
    else:
        rprint("\n[bold green]Session complete![/bold green]")
    rprint(f"Reviewed {summary.graded} card(s), recalled {summary.succeeded}.")
    if summary.skipped:
        rprint(f"[dim]Skipped {summary.skipped} card(s).[/dim]")


def _prompt_grade() -> bool | str | None:
    """Prompt for a grade. Returns True/False, "skip", or None to quit."""
    rprint(
        "\n[bold]Did you recall it?[/bold]  "
        "[green]y[/green] Yes  [red]n[/red] No  [dim]s[/dim] Skip  [dim]q[/dim] Quit"
    )

    while True:
        choice = typer.prompt("Grade", default="y").strip().lower()
        if choice == "q":
            return None
        if choice == "s":
            return "skip"
        if choice in ("y", "yes"):
            return True
        if choice in ("n", "no"):
            return False
        rprint("[red]Invalid choice. Enter y, n, s or q.[/red]")


def _commit_grade(session: ReviewSession, success: bool) -> None:
    """Grade the revealed card, letting the user resolve version conflicts."""
    while True:
        try:
            stored = session.grade_current(success)
        except ConcurrentModification:
            rprint("[yellow]This card was reviewed elsewhere since the session started.[/yellow]")
            choice = typer.prompt("r to refresh and grade again, s to skip", default="r")
            if choice.strip().lower() != "r":
                session.skip_current()
                return
            try:
                session.refresh_current()
            except NotFound:
                rprint("[yellow]The card no longer exists, skipping.[/yellow]")
                session.skip_current()
                return
            continue

        rprint(f"[dim]Next review: {format_time(stored.next_due)}[/dim]")
        return


# ============================================================================
# SERVE command
# ============================================================================


@app.command()
def serve(
    port: int = typer.Option(
        8000,
        "--port",
        "-p",
        help="Port to run the server on",
    ),
    host: str = typer.Option(
        "127.0.0.1",
        "--host",
        "-h",
        help="Host to bind to",
    ),
    reload: bool = typer.Option(
        False,
        "--reload",
        "-r",
        help="Enable auto-reload for development",
    ),
) -> None:
    """Start the web API for review sessions."""
    try:
        import uvicorn
    except ImportError:
        rprint("[red]Web dependencies not installed.[/red]")
        rprint("Install with: pip install recallkit[web]")
        raise typer.Exit(1)

    rprint("\n[bold]Starting recallkit web server[/bold]")
    rprint(f"  URL: http://{host}:{port}")
    rprint(f"  Docs: http://{host}:{port}/docs")
    rprint("\n[dim]Press Ctrl+C to stop[/dim]\n")

    uvicorn.run(
        "recallkit.web.app:app",
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    app()
