"""Console summary of a test run using rich."""

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..models import Outcome, ProbeResult, TestRun, TestSuite
from .aggregator import rank, score_run

OUTCOME_STYLES = {
    Outcome.SUCCESS: "green",
    Outcome.FAILURE: "red",
    Outcome.LIKELY_BLOCKED: "yellow",
    Outcome.UNSUPPORTED: "dim",
}


def format_result_line(result: ProbeResult) -> str:
    outcome = result.outcome
    style = OUTCOME_STYLES[outcome]
    return f"[{style}]{outcome.value}[/{style}] {result.kind.value} {result.target_name}: {result.message}"


def render_probe(console: Console, result: ProbeResult) -> None:
    """One-line progress output for a finished probe."""
    console.print(f"  {format_result_line(result)}", highlight=False)


def render_summary(run: TestRun, console: Console, show_details: bool = False) -> None:
    console.print(
        Panel(
            f"[bold]{run.suite.value} test[/bold]: {len(run.profiles)} profile(s), "
            f"{len(run.results)} probe(s), {run.duration:.1f}s",
            expand=False,
        )
    )

    if run.suite is TestSuite.STANDARD and run.domain_reachable_without_engine is not None:
        state = "reachable" if run.domain_reachable_without_engine else "NOT reachable"
        console.print(f"{run.domain} is {state} without bypass\n")

    table = Table(title="Profile Results")
    table.add_column("Profile", style="cyan")
    table.add_column("Success", justify="right", style="green")
    table.add_column("Likely blocked", justify="right", style="yellow")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Status", style="bold")
    for score in score_run(run):
        status = "[red]engine failed to start[/red]" if score.init_failed else ""
        table.add_row(
            score.profile_name,
            str(score.successes),
            str(score.likely_blocked),
            str(score.failures),
            status,
        )
    console.print(table)

    ranked = rank(run)
    if not ranked:
        console.print("\n[bold red]No working profiles found[/bold red]")
    else:
        title = "Working profiles" if run.suite is TestSuite.STANDARD else "Profiles by DPI score"
        console.print(f"\n[bold green]{title}:[/bold green]")
        for position, score in enumerate(ranked, 1):
            value = score.successes if run.suite is TestSuite.STANDARD else score.dpi_score
            console.print(f"  {position}. {score.profile_name} ({value})", highlight=False)

    if run.init_failures():
        console.print("\n[bold red]Failed to start:[/bold red]")
        for name in run.init_failures():
            console.print(f"  [red]✗[/red] {name}", highlight=False)

    if show_details:
        for name, results in run.group_by_profile().items():
            console.print(f"\n[bold cyan]{name}[/bold cyan]")
            for result in results:
                render_probe(console, result)


def render_best(run: TestRun, console: Console) -> Optional[str]:
    """Print and return the best profile name, if any."""
    ranked = rank(run)
    if not ranked:
        return None
    best = ranked[0].profile_name
    console.print(f"\n[bold]Recommended profile:[/bold] [green]{best}[/green]", highlight=False)
    return best
