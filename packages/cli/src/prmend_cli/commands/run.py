"""run command: poll once or continuously and fix bot review comments."""

from __future__ import annotations

import logging
import signal

import click
from rich.console import Console

from prmend_cli.preflight import PreflightError, resolve_github_token, run_preflight
from prmend_core.agents import get_agent
from prmend_core.config import parse_repos
from prmend_core.executor import FixExecutor
from prmend_core.gh.pull_request import get_client
from prmend_core.gh.threads import ThreadResolver
from prmend_core.notify import build_notifier, format_summary
from prmend_core.orchestrator import CancellationToken, Poller
from prmend_core.workspace import WorkspaceManager

console = Console()
logger = logging.getLogger(__name__)


def _install_signal_handlers(token: CancellationToken) -> None:
    def _stop(signum, frame):
        logger.info("Received %s, stopping after the current step", signal.Signals(signum).name)
        token.cancel()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)


def build_poller(config: dict, ledger, token: CancellationToken, skip_preflight: bool = False) -> Poller:
    """Wire the pipeline components from config. Raises PreflightError."""
    github_token = resolve_github_token()
    if not github_token:
        raise PreflightError("No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.")
    config["github_token"] = github_token

    gh = get_client(github_token)
    agent = get_agent(config)
    if not skip_preflight:
        run_preflight(gh, agent)

    return Poller(
        config=config,
        github=gh,
        ledger=ledger,
        workspaces=WorkspaceManager(config["clone_base"], protocol=config.get("clone_protocol", "ssh")),
        executor=FixExecutor(agent),
        resolver=ThreadResolver(gh.requester),
        token=token,
    )


@click.command("run")
@click.option("--once", is_flag=True, help="Run a single poll cycle and exit.")
@click.option("--repo", "repo_filter", default=None, help="Only poll this repository (owner/name).")
@click.option("--skip-preflight", is_flag=True, hidden=True)
@click.pass_context
def run_cmd(ctx, once: bool, repo_filter: str | None, skip_preflight: bool):
    """Poll watched repositories for automated review comments and fix them.

    \b
    Environment variables:
      GITHUB_TOKEN            GitHub token (or use gh CLI)
      PRMEND_TELEGRAM_TOKEN   Telegram bot token for --once summaries
    """
    config = ctx.obj["config"]
    ledger = ctx.obj["ledger"]

    try:
        repos = parse_repos(config)
    except ValueError as e:
        raise click.UsageError(str(e))
    if not repos:
        raise click.UsageError("No repositories configured. Add a `repos:` list to .prmend.yml.")
    if repo_filter and repo_filter not in {f"{o}/{r}" for o, r in repos}:
        raise click.UsageError(f"{repo_filter} is not in the configured repositories.")

    token = CancellationToken()
    try:
        poller = build_poller(config, ledger, token, skip_preflight=skip_preflight)
    except (PreflightError, ValueError) as e:
        logger.error("Preflight failed: %s", e)
        raise click.ClickException(str(e))

    logger.info(
        "prmend starting",
        extra={
            "repos": [f"{o}/{r}" for o, r in repos],
            "poll_interval": config.get("poll_interval"),
            "once": once,
            "repo_filter": repo_filter,
            "ledger_path": config.get("ledger_path"),
            "processed_count": len(ledger.list_entries()),
        },
    )
    _install_signal_handlers(token)

    if once:
        results = poller.poll_once(repo_filter)
        logger.info("Single poll complete", extra=results.as_dict())
        console.print(
            f"[bold]Processed {results.processed}[/bold]: "
            f"[green]{results.fixed} fixed[/green], "
            f"[yellow]{results.skipped} skipped[/yellow], "
            f"[red]{results.errors} error(s)[/red]"
        )
        notifier = build_notifier(config)
        if notifier is not None and results.processed > 0:
            notifier.send(format_summary(results))
        return

    logger.info("Starting poll loop")
    poller.run_forever(repo_filter)
    logger.info("Shutting down")
