"""CLI entry point for prmend.

Commands:
  run      poll watched repositories and fix automated review comments
  history  display ledger entries (what was handled, and how)
  stats    aggregate outcomes across the ledger
"""

from __future__ import annotations

import importlib.metadata

import click

from prmend_cli.commands.history import history_cmd
from prmend_cli.commands.run import run_cmd
from prmend_cli.commands.stats import stats_cmd
from prmend_cli.logs import configure_logging


def _build_ledger(config: dict):
    """Instantiate the configured ledger from .prmend.yml settings.

    Ledger selection:
      ledger: json   → JSONFileLedger (default)
      ledger: sqlite → SQLiteLedger

    This factory lives in cli.py so neither prmend_core nor prmend_store
    know about the config file format.
    """
    ledger_type = config.get("ledger", "json")
    path = config.get("ledger_path")

    if ledger_type == "sqlite":
        from prmend_store.sqlite import SQLiteLedger

        return SQLiteLedger(db_path=path or "~/.prmend/ledger.db")

    if ledger_type == "json":
        from prmend_store.json_file import JSONFileLedger

        return JSONFileLedger(path=path or "~/.prmend/ledger.json")

    raise click.UsageError(f"Unknown ledger type: {ledger_type!r}. Choose 'json' or 'sqlite'.")


@click.group()
@click.version_option(
    version=importlib.metadata.version("prmend"),
    prog_name="prmend",
)
@click.option(
    "--config",
    "config_path",
    default=".prmend.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRMEND_CONFIG",
)
@click.option(
    "--log-format",
    type=click.Choice(["rich", "json"]),
    default="rich",
    show_default=True,
    help="Console log style. Use json when running as a service.",
    envvar="PRMEND_LOG_FORMAT",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, log_format: str, verbose: bool):
    """Fix automated code-review comments on open pull requests."""
    from prmend_core.config import load_config

    configure_logging(log_format, verbose)
    ctx.ensure_object(dict)

    try:
        config = load_config(config_path)
    except (OSError, ValueError) as e:
        raise click.UsageError(f"Could not load {config_path}: {e}")

    ledger = _build_ledger(config)
    ctx.obj["config"] = config
    ctx.obj["ledger"] = ledger
    ctx.call_on_close(ledger.close)


main.add_command(run_cmd)
main.add_command(history_cmd)
main.add_command(stats_cmd)
