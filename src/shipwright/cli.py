"""Command-line interface for shipwright."""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, Optional

import click

from shipwright import __version__
from shipwright.config import DEFAULT_ENV
from shipwright.context import DeployContext
from shipwright.exceptions import ShipwrightError
from shipwright.hooks import AFTER, BEFORE
from shipwright.logging import configure_logging, get_level_from_name, get_level_from_verbosity
from shipwright.output import create_reporter
from shipwright.script import load_environment, load_script

logger = logging.getLogger("shipwright.cli")


def deployment_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command that loads a deployment."""
    func = click.option("--env", "-e", default=None,
                        help=f"Deployment environment (default: {DEFAULT_ENV})")(func)
    func = click.option("--file", "-f", "deploy_file", type=click.Path(), default=None,
                        help="Deployment script (default: config/deploy.py + config/deploy/<env>.py)")(func)
    return func


def load_deployment(
    deploy_file: Optional[str],
    env: Optional[str],
    quiet: bool = True,
) -> DeployContext:
    """Create a context and load the deployment scripts into it.

    Args:
        deploy_file: Explicit script to load, or None for the project layout
            under the current directory
        env: Environment name
        quiet: Disable console output of commands and transfers

    Returns:
        Loaded DeployContext
    """
    ctx = DeployContext(reporter=create_reporter(not quiet))
    if deploy_file:
        ctx.config("env", env or DEFAULT_ENV)
        load_script(ctx, deploy_file)
    else:
        load_environment(ctx, env, Path.cwd())
    return ctx


async def run_tasks(ctx: DeployContext, tasks: tuple[str, ...]) -> None:
    """Invoke tasks in order, closing connections afterwards."""
    async with ctx:
        for task in tasks:
            await ctx.invoke(task)


# Main CLI group
@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version and exit")
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """Shipwright - role-based deployment orchestration."""
    if version:
        click.echo(f"shipwright {__version__}")
        ctx.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.argument("tasks", nargs=-1, required=True)
@deployment_options
@click.option("--quiet", "-q", is_flag=True, help="Do not echo commands and host output")
@click.option("--log-file", type=click.Path(), default=None,
              help="Write logs to file (in addition to console)")
@click.option("--log-level", type=click.Choice(["trace", "debug", "info", "warning", "error"]),
              default=None, help="Set log level explicitly (overrides -v)")
@click.option("-v", "--verbose", count=True,
              help="Increase verbosity: -v=info, -vv=debug, -vvv=trace")
def invoke(
    tasks: tuple[str, ...],
    deploy_file: Optional[str],
    env: Optional[str],
    quiet: bool,
    log_file: Optional[str],
    log_level: Optional[str],
    verbose: int,
) -> None:
    """Invoke one or more tasks, with their hooks, in order.

    Examples:
        shipwright invoke deploy

        shipwright invoke build deploy -e staging

        shipwright invoke deploy -f deploy.py -vv --log-file /tmp/deploy.log
    """
    if log_level:
        level = get_level_from_name(log_level)
    else:
        level = get_level_from_verbosity(verbose)

    configure_logging(
        level=level,
        log_file=log_file,
        file_level=level if log_file else None,
        debug=(level <= logging.DEBUG),
    )

    try:
        ctx = load_deployment(deploy_file, env, quiet=quiet)
        asyncio.run(run_tasks(ctx, tasks))
    except ShipwrightError as e:
        logger.debug("Invocation failed", exc_info=True)
        raise click.ClickException(str(e))


@cli.command()
@deployment_options
def roles(deploy_file: Optional[str], env: Optional[str]) -> None:
    """List the roles of a deployment and their hosts."""
    try:
        ctx = load_deployment(deploy_file, env)
    except ShipwrightError as e:
        raise click.ClickException(str(e))

    if not len(ctx.roles):
        click.echo("No roles defined")
        return

    for role in ctx.roles:
        host_count = len(role.hosts)
        click.echo(f"{role.name} ({host_count} host{'s' if host_count != 1 else ''}):")
        for host in role.list_hosts():
            attributes = ", ".join(f"{k}={v!r}" for k, v in host.attributes.items())
            click.echo(f"  - {host.name}" + (f" ({attributes})" if attributes else ""))


@cli.command()
@deployment_options
def tasks(deploy_file: Optional[str], env: Optional[str]) -> None:
    """List the tasks of a deployment with their hooks."""
    try:
        ctx = load_deployment(deploy_file, env)
    except ShipwrightError as e:
        raise click.ClickException(str(e))

    names = ctx.tasks.names()
    names += [name for name in ctx.hooks.tasks_with_hooks() if name not in names]
    if not names:
        click.echo("No tasks defined")
        return

    for name in sorted(names):
        definition = ctx.tasks.lookup(name)
        location = definition.location if definition else "no body"
        click.echo(f"{name} ({location})")
        for position in (BEFORE, AFTER):
            for hook in ctx.hooks.hooks_for(name, position):
                click.echo(f"  {position}: {hook.describe()}")


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
