"""
Typer CLI for the puzzle dependency graph engine.

Commands:
    puzzlegraph db init                          - Create database tables
    puzzlegraph puzzle create CODE TITLE         - Add a puzzle to the catalog
    puzzlegraph puzzle list [--all]              - List puzzles
    puzzlegraph puzzle deactivate PUZZLE         - Retire a puzzle
    puzzlegraph dep add PUZZLE PREREQ...         - Add prerequisite edge(s)
    puzzlegraph dep remove PUZZLE PREREQ         - Remove an edge
    puzzlegraph dep list PUZZLE                  - Show a puzzle's prerequisites
    puzzlegraph access USER PUZZLE               - Check whether a puzzle is unlocked
    puzzlegraph complete USER PUZZLE             - Record a solved puzzle
    puzzlegraph progress USER                    - Show a user's progress
    puzzlegraph graph show [--user]              - Dump nodes and edges
    puzzlegraph graph validate                   - Check the stored graph for cycles
    puzzlegraph graph order                      - Prerequisites-first ordering

PUZZLE arguments accept a numeric id or a puzzle code.

Usage:
    puzzlegraph --help
    puzzlegraph puzzle create intro "Introduction" --difficulty 1 --points 10
    puzzlegraph dep add loops intro
    puzzlegraph complete 42 intro --score 90
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from typing import List, Optional

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from config import get_settings
from puzzlegraph.graph import (
    AccessDeniedError,
    PuzzleGraphEngine,
    PuzzleGraphError,
    StorageUnavailableError,
)
from puzzlegraph.logging_setup import configure_logging

app = typer.Typer(
    help="puzzlegraph: prerequisite graph, unlock checks and progress for a puzzle catalog",
    no_args_is_help=True,
)

console = Console()

_engine: PuzzleGraphEngine | None = None


def get_engine() -> PuzzleGraphEngine:
    """Build the engine on first use so `--help` never touches the database."""
    global _engine
    if _engine is None:
        _engine = PuzzleGraphEngine()
    return _engine


@contextmanager
def handle_errors() -> Generator[None, None, None]:
    """Print domain and storage errors in red and exit non-zero."""
    try:
        yield
    except AccessDeniedError as e:
        console.print(f"[red]{escape(e.access.message)}[/]")
        raise typer.Exit(1)
    except PuzzleGraphError as e:
        console.print(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(1)
    except StorageUnavailableError as e:
        console.print(f"[red]Database unavailable: {escape(str(e))}[/]")
        raise typer.Exit(2)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
) -> None:
    """Configure logging before any command runs."""
    settings = get_settings()
    configure_logging("DEBUG" if verbose else settings.log_level, settings.log_file)


# ========================================
# Database
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Create the puzzle, dependency and completion tables.

    Safe to run multiple times (idempotent).
    """
    from puzzlegraph.db.database import init_db

    logger.info("Initializing database tables...")
    with handle_errors():
        init_db()
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# Puzzles
# ========================================

puzzle_app = typer.Typer(help="Puzzle catalog")
app.add_typer(puzzle_app, name="puzzle")


@puzzle_app.command("create")
def puzzle_create(
    code: str = typer.Argument(..., help="Unique puzzle code"),
    title: str = typer.Argument(..., help="Display title"),
    difficulty: int = typer.Option(1, "--difficulty", "-d", help="Difficulty level"),
    points: int = typer.Option(0, "--points", "-p", help="Points awarded on completion"),
    description: Optional[str] = typer.Option(None, "--description", help="Free-form description"),
) -> None:
    """Add a new active puzzle."""
    with handle_errors():
        puzzle = get_engine().catalog.create_puzzle(
            code, title, description=description, difficulty=difficulty, points=points
        )
    rprint(f"[green]✓[/green] Created puzzle [cyan]{puzzle.code}[/cyan] (id={puzzle.id})")


@puzzle_app.command("list")
def puzzle_list(
    include_inactive: bool = typer.Option(False, "--all", "-a", help="Include retired puzzles"),
) -> None:
    """List puzzles by difficulty."""
    with handle_errors():
        puzzles = get_engine().catalog.list_puzzles(include_inactive=include_inactive)

    table = Table(title=f"Puzzles ({len(puzzles)})", show_header=True)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Code", style="cyan")
    table.add_column("Title")
    table.add_column("Difficulty", justify="right")
    table.add_column("Points", justify="right", style="green")
    table.add_column("Active", justify="center")
    for p in puzzles:
        table.add_row(
            str(p.id),
            p.code,
            p.title,
            str(p.difficulty),
            str(p.points),
            "[green]yes[/green]" if p.is_active else "[dim]no[/dim]",
        )
    console.print(table)


@puzzle_app.command("deactivate")
def puzzle_deactivate(puzzle: str = typer.Argument(..., help="Puzzle id or code")) -> None:
    """Retire a puzzle; its edges and completions are kept."""
    with handle_errors():
        engine = get_engine()
        retired = engine.catalog.deactivate_puzzle(engine.resolve_puzzle_id(puzzle))
    rprint(f"[yellow]Deactivated[/yellow] {retired.code}")


# ========================================
# Dependencies
# ========================================

dep_app = typer.Typer(help="Prerequisite edges")
app.add_typer(dep_app, name="dep")


@dep_app.command("add")
def dep_add(
    puzzle: str = typer.Argument(..., help="Puzzle id or code"),
    prerequisites: List[str] = typer.Argument(..., help="Prerequisite ids or codes"),
    advisory: bool = typer.Option(False, "--advisory", help="Recommend without gating"),
) -> None:
    """
    Make PREREQUISITES prerequisites of PUZZLE.

    Several prerequisites are added all-or-nothing.
    """
    with handle_errors():
        engine = get_engine()
        puzzle_id = engine.resolve_puzzle_id(puzzle)
        prerequisite_ids = [engine.resolve_puzzle_id(ref) for ref in prerequisites]
        if len(prerequisite_ids) == 1:
            edges = [
                engine.store.add_dependency(puzzle_id, prerequisite_ids[0], is_required=not advisory)
            ]
        else:
            edges = engine.store.add_multiple_dependencies(
                puzzle_id, prerequisite_ids, is_required=not advisory
            )
    rprint(f"[green]✓[/green] Added {len(edges)} dependency edge(s) to {puzzle}")


@dep_app.command("remove")
def dep_remove(
    puzzle: str = typer.Argument(..., help="Puzzle id or code"),
    prerequisite: str = typer.Argument(..., help="Prerequisite id or code"),
) -> None:
    """Delete a prerequisite edge."""
    with handle_errors():
        engine = get_engine()
        engine.store.remove_dependency(
            engine.resolve_puzzle_id(puzzle), engine.resolve_puzzle_id(prerequisite)
        )
    rprint(f"[green]✓[/green] Removed {puzzle} -> {prerequisite}")


@dep_app.command("list")
def dep_list(
    puzzle: str = typer.Argument(..., help="Puzzle id or code"),
    transitive: bool = typer.Option(False, "--all", "-a", help="Include indirect prerequisites"),
) -> None:
    """Show a puzzle's prerequisites."""
    with handle_errors():
        engine = get_engine()
        puzzle_id = engine.resolve_puzzle_id(puzzle)
        if transitive:
            prerequisites = engine.store.get_all_prerequisites(puzzle_id)
        else:
            prerequisites = engine.store.get_direct_prerequisites(puzzle_id, required_only=False)

    if not prerequisites:
        rprint(f"[dim]{puzzle} has no prerequisites[/dim]")
        return
    for p in prerequisites:
        rprint(f"  [cyan]{p.code}[/cyan] {p.title}")


# ========================================
# Users
# ========================================

@app.command("access")
def access(
    user_id: int = typer.Argument(..., help="User id"),
    puzzle: str = typer.Argument(..., help="Puzzle id or code"),
) -> None:
    """Check whether a puzzle is unlocked for a user."""
    with handle_errors():
        engine = get_engine()
        check = engine.access.check_access(user_id, engine.resolve_puzzle_id(puzzle))

    color = "green" if check.has_access else "red"
    rprint(f"[{color}]{check.message}[/{color}]")
    if check.advisory_prerequisites:
        rprint(f"[dim]Recommended first: {', '.join(check.advisory_prerequisites)}[/dim]")


@app.command("complete")
def complete(
    user_id: int = typer.Argument(..., help="User id"),
    puzzle: str = typer.Argument(..., help="Puzzle id or code"),
    score: Optional[int] = typer.Option(None, "--score", "-s", help="Score awarded"),
    time_spent: Optional[int] = typer.Option(None, "--time", "-t", help="Seconds spent"),
    solution: Optional[str] = typer.Option(None, "--solution", help="Submitted solution"),
) -> None:
    """Record that a user solved a puzzle."""
    with handle_errors():
        engine = get_engine()
        unlocked: list[int] = []
        collect = engine.events.subscribe(
            lambda event: unlocked.extend(event.newly_available_puzzle_ids)
        )
        try:
            engine.ledger.complete_puzzle(
                user_id,
                engine.resolve_puzzle_id(puzzle),
                score=score,
                time_spent_seconds=time_spent,
                solution=solution,
            )
        finally:
            engine.events.unsubscribe(collect)
        codes = [engine.catalog.get_puzzle(pid).code for pid in unlocked]

    rprint(f"[green]✓[/green] User {user_id} completed {puzzle}")
    if codes:
        rprint(f"[cyan]Unlocked:[/cyan] {', '.join(codes)}")


@app.command("progress")
def progress(user_id: int = typer.Argument(..., help="User id")) -> None:
    """Show a user's progress through the active catalog."""
    with handle_errors():
        summary = get_engine().progress.get_user_progress(user_id)

    rprint(
        f"[bold]User {user_id}[/bold]: {summary.completed}/{summary.total} completed "
        f"([cyan]{summary.percentage}%[/cyan]), {summary.available} available"
    )
    for p in summary.next_available:
        rprint(f"  [green]→[/green] {p.code} {p.title}")


# ========================================
# Graph
# ========================================

graph_app = typer.Typer(help="Whole-graph views and checks")
app.add_typer(graph_app, name="graph")


@graph_app.command("show")
def graph_show(
    user_id: Optional[int] = typer.Option(None, "--user", "-u", help="Mark this user's completions"),
) -> None:
    """Print the active dependency graph."""
    with handle_errors():
        graph = get_engine().inspector.get_dependency_graph(user_id)

    codes = {node.id: node.code for node in graph.nodes}
    table = Table(title=f"Dependency Graph ({len(graph.nodes)} puzzles)", show_header=True)
    table.add_column("Puzzle", style="cyan")
    table.add_column("Requires")
    table.add_column("Recommended", style="dim")
    table.add_column("Done", justify="center")
    for node in graph.nodes:
        required = [codes[e.prerequisite_id] for e in graph.edges if e.puzzle_id == node.id and e.is_required]
        advisory = [codes[e.prerequisite_id] for e in graph.edges if e.puzzle_id == node.id and not e.is_required]
        table.add_row(
            node.code,
            ", ".join(required),
            ", ".join(advisory),
            "[green]✓[/green]" if node.completed else "",
        )
    console.print(table)


@graph_app.command("validate")
def graph_validate() -> None:
    """Scan the stored edges for cycles, self-loops and dangling references."""
    with handle_errors():
        result = get_engine().store.validate_graph()

    if result.is_valid:
        rprint("[green]✓[/green] Dependency graph is valid")
        return
    for error in result.errors:
        console.print(f"  [red]✗[/] {escape(error)}")
    raise typer.Exit(1)


@graph_app.command("order")
def graph_order(
    include_inactive: bool = typer.Option(False, "--all", "-a", help="Include retired puzzles"),
) -> None:
    """List puzzles with every prerequisite before its dependents."""
    with handle_errors():
        puzzles = get_engine().store.topological_order(include_inactive=include_inactive)
    for position, p in enumerate(puzzles, start=1):
        rprint(f"{position:>3}. [cyan]{p.code}[/cyan] {p.title}")


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
