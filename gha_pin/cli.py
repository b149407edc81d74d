"""
CLI entry point: ties together config → pinner → reporter.

Usage:
  # Pin every action in .github/workflows/ to a commit SHA:
  python3 -m gha_pin pin

  # See what would change without touching any file:
  python3 -m gha_pin pin --dry-run

  # Pin another directory, JSON summary:
  python3 -m gha_pin pin path/to/workflows --format json

  # List unpinned actions (no network access):
  python3 -m gha_pin check

Exit codes:
  0: success (or nothing to do / everything pinned)
  1: some files or references failed (pin), unpinned actions found (check)
  2: error (not a directory, unreadable files, failed write)
"""

import logging
import os
import sys
from typing import Optional

import click

from gha_pin.config import load_config
from gha_pin.errors import DirectoryNotFound, MalformedWorkflow
from gha_pin.github.client import GitHubClient
from gha_pin.parser import discover_workflow_files, load_workflow
from gha_pin.pinner import ActionPinner, PinnerConfig
from gha_pin.pinner.pipeline import DEFAULT_WORKFLOWS_DIR
from gha_pin.reporter import report_run, report_run_json, report_unpinned, report_unpinned_json

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_ERROR = 2


def _setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool):
    """GitHub Actions Pinner: pin action references to full commit SHAs."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _setup_logging(verbose)


@cli.command()
@click.argument("workflows_dir", required=False)
@click.option("-n", "--dry-run", is_flag=True, help="Show what would change without modifying files.")
@click.option("--token", envvar="GITHUB_TOKEN", default=None, help="GitHub token (defaults to $GITHUB_TOKEN).")
@click.option("--config", "config_path", default=None, help="Path to .gha-pin.yml config file.")
@click.option("--format", "output_format", type=click.Choice(["console", "json"]), default="console", help="Output format.")
@click.option("--timeout", type=float, default=None, help="Seconds to wait for each GitHub API request.")
@click.option("--allow-unresolved", is_flag=True, help="Exit 0 even if some references can't be resolved.")
@click.option("--annotate", is_flag=True, help="Append '# <original ref>' to rewritten lines.")
@click.pass_context
def pin(
    ctx: click.Context,
    workflows_dir: Optional[str],
    dry_run: bool,
    token: Optional[str],
    config_path: Optional[str],
    output_format: str,
    timeout: Optional[float],
    allow_unresolved: bool,
    annotate: bool,
):
    """Pin GitHub Actions in workflow files to full-length commit SHAs.

    Exits with code 0 on success, 1 if any file or reference failed, 2 on error.
    """
    config = load_config(config_path=config_path, scan_path=workflows_dir or DEFAULT_WORKFLOWS_DIR)

    # CLI flags override config values
    pinner_config = PinnerConfig(
        preview_only=dry_run,
        verbose_logging=ctx.obj.get("verbose", False),
        credential=token,
        workflows_dir=workflows_dir or config.workflows_dir or DEFAULT_WORKFLOWS_DIR,
        exclude=config.exclude,
        fail_on_unresolved=config.fail_on_unresolved and not allow_unresolved,
        timeout=timeout if timeout is not None else config.timeout,
        api_url=config.api_url,
        annotate=annotate or config.annotate,
    )

    if not token:
        click.echo("Warning: no GITHUB_TOKEN provided, GitHub rate limits may apply.", err=True)

    try:
        with GitHubClient(
            token=pinner_config.credential,
            api_url=pinner_config.api_url,
            timeout=pinner_config.timeout,
        ) as client:
            outcome = ActionPinner(pinner_config, client).run()
    except NotADirectoryError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_ERROR)
    except OSError as e:
        logger.error("Filesystem error: %s", e)
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_ERROR)

    if output_format == "json":
        click.echo(report_run_json(outcome))
    else:
        report_run(outcome)

    sys.exit(EXIT_OK if outcome.success else EXIT_FAILURES)


@cli.command()
@click.argument("workflows_dir", required=False)
@click.option("--config", "config_path", default=None, help="Path to .gha-pin.yml config file.")
@click.option("--format", "output_format", type=click.Choice(["console", "json"]), default="console", help="Output format.")
def check(workflows_dir: Optional[str], config_path: Optional[str], output_format: str):
    """List action references that are not pinned to a commit SHA.

    Exits with code 0 if everything is pinned, 1 if not, 2 on error.
    """
    config = load_config(config_path=config_path, scan_path=workflows_dir or DEFAULT_WORKFLOWS_DIR)
    path = workflows_dir or config.workflows_dir or DEFAULT_WORKFLOWS_DIR

    try:
        paths = discover_workflow_files(path, config.exclude)
    except DirectoryNotFound:
        paths = []
    except OSError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_ERROR)

    if not paths:
        click.echo("No workflow files found.")
        sys.exit(EXIT_OK)

    workflows = []
    errors = {}
    for file_path in paths:
        try:
            workflows.append(load_workflow(file_path))
        except MalformedWorkflow as e:
            errors[file_path] = e.message
        except OSError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(EXIT_ERROR)

    if output_format == "json":
        click.echo(report_unpinned_json(workflows, errors))
    else:
        report_unpinned(workflows, errors, path=os.path.abspath(path))

    unpinned = sum(len(wf.references) for wf in workflows)
    sys.exit(EXIT_FAILURES if unpinned or errors else EXIT_OK)


if __name__ == "__main__":
    cli()
