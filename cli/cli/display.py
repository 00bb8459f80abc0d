"""Rich output formatting for the influx-importer CLI.

All functions write to a :class:`rich.console.Console` instance (typically
bound to *stderr*) so that machine-readable output on *stdout*, such as a
configuration template or a token, is never polluted.
"""

from __future__ import annotations

from collections.abc import Sequence

from rich.console import Console
from rich.table import Table

from importer_engine.models.metrics import MetricPermutation
from importer_engine.models.run import RunSummary

# ---------------------------------------------------------------------------
# Status colour mapping
# ---------------------------------------------------------------------------

_STATUS_COLOURS: dict[str, str] = {
    "SUCCESS": "green",
    "FAIL": "red",
}


def _coloured_status(status: str) -> str:
    """Return a Rich markup string with the status colour-coded."""
    colour = _STATUS_COLOURS.get(status, "white")
    return f"[{colour}]{status}[/{colour}]"


# ---------------------------------------------------------------------------
# Run summary
# ---------------------------------------------------------------------------


def display_run_summary(console: Console, summary: RunSummary, show_all: bool = False) -> None:
    """Render the outcome of an extraction run.

    Parameters
    ----------
    console:
        Rich console to write to (typically stderr).
    summary:
        The summary returned by the engine.
    show_all:
        List every item.  By default only failed items are tabulated.
    """
    rows = summary.outcomes if show_all else [o for o in summary.outcomes if not o.succeeded]

    if rows:
        table = Table(
            title="Extraction Results" if show_all else "Failed Items",
            show_lines=False,
            pad_edge=True,
            expand=False,
        )
        table.add_column("Router", style="bold")
        table.add_column("Series")
        table.add_column("Tags")
        table.add_column("Status")
        table.add_column("Window", justify="right")
        table.add_column("Points", justify="right")
        table.add_column("Error")

        for outcome in rows:
            table.add_row(
                outcome.router,
                outcome.series,
                outcome.tags or "-",
                _coloured_status(outcome.status.value),
                f"{outcome.window_seconds}s",
                str(outcome.points),
                outcome.error or "",
            )
        console.print(table)

    parts: list[str] = [
        f"[bold]{summary.routers}[/bold] router(s)",
        f"[bold]{len(summary.outcomes)}[/bold] item(s)",
    ]
    if summary.succeeded:
        parts.append(f"[green]{summary.succeeded} succeeded[/green]")
    if summary.failed:
        parts.append(f"[red]{summary.failed} failed[/red]")
    parts.append(f"[dim]{summary.duration_ms / 1000:.2f}s[/dim]")

    console.print(" | ".join(parts))


# ---------------------------------------------------------------------------
# Permutations
# ---------------------------------------------------------------------------


def display_permutations(
    console: Console,
    metric_id: str,
    router: str,
    permutations: Sequence[MetricPermutation],
) -> None:
    """Render the parameter combinations available for *metric_id* on *router*."""
    if not permutations:
        console.print(f"[dim]No permutations of {metric_id} available on {router}.[/dim]")
        return

    columns: list[str] = []
    for permutation in permutations:
        for name in permutation.parameters:
            if name not in columns:
                columns.append(name)

    if not columns:
        console.print(f"[dim]{metric_id} on {router} takes no parameters.[/dim]")
        return

    table = Table(title=f"{metric_id} on {router}", show_lines=False)
    for name in columns:
        table.add_column(name)
    for permutation in permutations:
        table.add_row(*(permutation.parameters.get(name, "-") for name in columns))

    console.print(table)
    console.print(f"[bold]{len(permutations)}[/bold] permutation(s)")
