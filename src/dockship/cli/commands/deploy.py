"""CLI command for deploying to a remote host.

Implements 'dockship deploy': load configuration, fetch the working tree and
run the deployment pipeline, or tear the deployment down with --cleanup.
"""

from __future__ import annotations

import sys
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import click

from dockship.config.defaults import DEFAULT_LOG_DIR
from dockship.config.env_loader import load_env_file
from dockship.config.loader import ConfigLoader
from dockship.deploy.orchestrator import Orchestrator
from dockship.deploy.source import SourceFetcher
from dockship.lib.errors import ConfigError, DeploymentError
from dockship.lib.logging_config import (
    get_logger,
    prune_logs,
    setup_logging,
    tail_log,
)
from dockship.models.deployment import DeploymentConfig
from dockship.models.outcome import DeploymentOutcome, ExitCode, Phase

logger = get_logger(__name__)

LOG_TAIL_LINES = 20


@contextmanager
def handle_deployment_errors(log_path: Path | None) -> Generator[None, None, None]:
    """Context manager for consistent error handling in the deploy command.

    Catches ConfigError, DeploymentError and unexpected exceptions, logs
    them, shows the tail of the run log and exits with the phase's code.
    """
    try:
        yield
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        click.secho("Error: Configuration error", fg="red", err=True)
        click.echo(f"  {e.message}", err=True)
        _display_log_tail(log_path)
        sys.exit(int(ExitCode.CONFIG))
    except DeploymentError as e:
        logger.error(f"Deployment error: {e}")
        click.secho(f"Error: {e.operation} failed", fg="red", err=True)
        click.echo(f"  {e.message}", err=True)
        _display_log_tail(log_path)
        code = ExitCode.for_phase(e.phase) if e.phase else ExitCode.UNEXPECTED
        sys.exit(int(code) or int(ExitCode.UNEXPECTED))
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        click.secho(f"Error: {e}", fg="red", err=True)
        _display_log_tail(log_path)
        sys.exit(int(ExitCode.UNEXPECTED))


@click.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Deployment configuration file (default: ./deploy.yaml if present)",
)
@click.option(
    "--source-dir",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Deploy this local tree instead of fetching the repository",
)
@click.option(
    "--workdir",
    type=click.Path(file_okay=False),
    default=".dockship/src",
    show_default=True,
    help="Where the repository is cloned",
)
@click.option(
    "--proxy-template",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Custom Jinja2 template for the nginx site",
)
@click.option(
    "--repository", "repository_url", default=None, help="Git repository URL"
)
@click.option("--branch", default=None, help="Branch to deploy")
@click.option("--host", default=None, help="Remote host")
@click.option("--user", default=None, help="Remote SSH user")
@click.option("--ssh-key", "ssh_key_path", default=None, help="SSH private key path")
@click.option("--port", "app_port", type=int, default=None, help="Internal app port")
@click.option("--site-name", default=None, help="nginx site / compose project name")
@click.option("--app-base", default=None, help="Remote application base directory")
@click.option(
    "--cleanup",
    is_flag=True,
    help="Remove containers, nginx site and project directory instead of deploying",
)
@click.option(
    "--non-interactive",
    is_flag=True,
    help="Fail instead of prompting for missing parameters or confirmations",
)
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Load DOCKSHIP_* variables from this file (default: ./.env)",
)
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False),
    default=DEFAULT_LOG_DIR,
    show_default=True,
    help="Directory for run logs",
)
@click.option(
    "--keep-logs",
    type=click.IntRange(min=1),
    default=None,
    help="Number of run logs to keep (default: 30)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose debug logging")
@click.option("--quiet", "-q", is_flag=True, help="Suppress progress output")
def deploy(
    config_path: str | None,
    source_dir: str | None,
    workdir: str,
    proxy_template: str | None,
    cleanup: bool,
    non_interactive: bool,
    env_file: str | None,
    log_dir: str,
    verbose: bool,
    quiet: bool,
    **overrides: Any,
) -> None:
    """Deploy the configured repository to a remote host.

    Provisions Docker, compose and nginx on the host, publishes a new
    release, activates it atomically, starts the workload, configures nginx
    and validates the result.

    Example:

        dockship deploy --host 203.0.113.10 --user deploy --port 8000

        dockship deploy --non-interactive --source-dir ./build

        dockship deploy --cleanup
    """
    load_env_file(env_file)
    log_path = setup_logging(
        verbose=verbose, quiet=quiet, log_dir=Path(log_dir), keep_logs=None
    )

    with handle_deployment_errors(log_path):
        loader = ConfigLoader(interactive=not non_interactive)
        config = loader.load(config_path, overrides=overrides)
        removed = prune_logs(Path(log_dir), config.keep_logs)
        if removed:
            logger.debug(f"Pruned {len(removed)} old run log(s)")
        _display_configuration(config, cleanup, quiet)

        template = None
        if proxy_template:
            template = Path(proxy_template).read_text(encoding="utf-8")
        orchestrator = Orchestrator(config, proxy_template=template)

        if cleanup:
            if not non_interactive and not click.confirm(
                f"Remove the deployment of '{config.site_name}' from {config.host}?",
                default=False,
            ):
                click.secho("Cleanup aborted.", fg="yellow")
                sys.exit(0)
            outcome = orchestrator.teardown()
        else:
            if source_dir:
                tree = Path(source_dir).resolve()
            else:
                tree = SourceFetcher(config, workdir).fetch()
            outcome = orchestrator.run(tree)

        _display_outcome(outcome, quiet)
        if outcome.exit_code != ExitCode.SUCCESS:
            _display_log_tail(log_path)
            sys.exit(int(outcome.exit_code))


def _display_configuration(
    config: DeploymentConfig, cleanup: bool, quiet: bool
) -> None:
    """Show the masked configuration before starting."""
    if quiet:
        return
    click.echo()
    title = "Cleanup Configuration:" if cleanup else "Deploy Configuration:"
    click.secho(title, bold=True)
    for key, value in config.summary().items():
        click.echo(f"  {key + ':':<12}{value}")
    click.echo()


def _display_outcome(outcome: DeploymentOutcome, quiet: bool) -> None:
    """Display the final outcome of a run."""
    if quiet:
        click.echo(outcome.verdict.value if outcome.success else outcome.phase.value)
        return

    click.echo()
    if outcome.success:
        click.secho("=" * 60, fg="green")
        if outcome.phase == Phase.CLEANUP:
            title = "Cleanup Complete"
        else:
            title = "Deployment Successful!"
        click.secho(f"  {title}", fg="green", bold=True)
        click.secho("=" * 60, fg="green")
    elif outcome.phase == Phase.VALIDATE:
        click.secho(
            "Deployment finished with validation warnings", fg="yellow", bold=True
        )
    else:
        click.secho(
            f"Deployment failed during {outcome.phase.value}", fg="red", bold=True
        )

    if outcome.release:
        click.echo(f"  Release:  {outcome.release}")
    if outcome.phase == Phase.VALIDATE:
        click.echo(f"  Verdict:  {outcome.verdict.value}")
    if outcome.detail:
        click.echo(f"  Detail:   {outcome.detail}")
    for check in outcome.checks:
        if check.ok:
            mark = click.style("ok", fg="green")
        else:
            mark = click.style("!!", fg="yellow")
        click.echo(f"    [{mark}] {check.name}: {check.detail}")
    click.echo()


def _display_log_tail(log_path: Path | None, lines: int = LOG_TAIL_LINES) -> None:
    """Print the last lines of the run log to stderr."""
    if log_path is None:
        return
    tail = tail_log(log_path, lines)
    if not tail:
        return
    click.secho(f"Last {len(tail)} log lines ({log_path}):", bold=True, err=True)
    for line in tail:
        click.echo(f"  {line}", err=True)
