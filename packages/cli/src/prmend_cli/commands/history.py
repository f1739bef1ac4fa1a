"""history command: display ledger entries."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

console = Console()

_OUTCOME_STYLE = {
    "fixed": "green",
    "skipped:file_not_found": "yellow",
    "skipped:no_changes": "yellow",
    "error:agent_failure": "red",
    "error:workspace_failure": "red",
}


@click.command("history")
@click.option("--repo", default=None, help="Filter by repository (owner/name).")
@click.option("--pr", "pr_number", type=int, default=None, help="Filter by PR number.")
@click.option("--limit", default=20, show_default=True, help="Maximum number of entries to show.")
@click.pass_context
def history_cmd(ctx, repo: str | None, pr_number: int | None, limit: int):
    """Show review comments prmend has already handled, newest first."""
    ledger = ctx.obj["ledger"]

    entries = ledger.list_entries(repo=repo, pr_number=pr_number)
    if not entries:
        console.print("[yellow]No ledger entries found.[/yellow]")
        return

    entries = list(reversed(entries))[:limit]

    title = f"Ledger: {repo}" if repo else "Ledger"
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Comment", style="bold")
    table.add_column("Repo")
    table.add_column("PR", width=6)
    table.add_column("File", max_width=40)
    table.add_column("Outcome")
    table.add_column("Resolved", justify="center")
    table.add_column("Processed At", width=20)

    for e in entries:
        style = _OUTCOME_STYLE.get(e.outcome, "white")
        table.add_row(
            str(e.comment_id),
            e.repo,
            f"#{e.pr_number}",
            e.path,
            f"[{style}]{e.outcome}[/{style}]",
            "yes" if e.resolved else "no",
            e.processed_at[:19].replace("T", " "),
        )

    console.print(table)
