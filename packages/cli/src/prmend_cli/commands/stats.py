"""stats command: aggregate outcomes across the ledger."""

from __future__ import annotations

from collections import Counter

import click
from rich.console import Console
from rich.table import Table

from prmend_store.models import OUTCOMES

console = Console()


@click.command("stats")
@click.option("--repo", default=None, help="Restrict to one repository (owner/name).")
@click.option("--top", default=10, show_default=True, help="Number of most-flagged files to show.")
@click.pass_context
def stats_cmd(ctx, repo: str | None, top: int):
    """Show how often comments were fixed, skipped or failed.

    Also lists the files the reviewer bot flags most, which tends to point
    at the parts of a codebase that keep attracting the same feedback.
    """
    ledger = ctx.obj["ledger"]

    entries = ledger.list_entries(repo=repo)
    if not entries:
        console.print("[yellow]No ledger entries found.[/yellow]")
        return

    total = len(entries)
    outcome_counter: Counter[str] = Counter(e.outcome for e in entries)
    file_counter: Counter[str] = Counter(f"{e.repo}:{e.path}" for e in entries if e.path)
    resolved = sum(1 for e in entries if e.resolved)

    scope = f"[cyan]{repo}[/cyan]" if repo else "all repositories"
    console.print(f"\n[bold]Ledger stats for {scope}[/bold]")
    console.print(f"  Comments handled: {total}")
    console.print(f"  Threads resolved: {resolved}")
    console.print(f"  Pull requests:    {len({(e.repo, e.pr_number) for e in entries})}")

    outcome_table = Table(title="Outcomes", show_header=True)
    outcome_table.add_column("Outcome", style="bold")
    outcome_table.add_column("Count", justify="right")
    outcome_table.add_column("% of total", justify="right")
    known = [o for o in OUTCOMES if o in outcome_counter]
    unknown = sorted(o for o in outcome_counter if o not in OUTCOMES)
    for outcome in known + unknown:
        count = outcome_counter[outcome]
        outcome_table.add_row(outcome, str(count), f"{count / total * 100:.1f}%")
    console.print(outcome_table)

    if file_counter:
        file_table = Table(title=f"Top {top} Most Flagged Files", show_header=True)
        file_table.add_column("File")
        file_table.add_column("Comments", justify="right")
        for file_path, count in file_counter.most_common(top):
            file_table.add_row(file_path, str(count))
        console.print(file_table)
