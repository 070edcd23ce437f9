"""Remote command dispatch for shipwright.

Runs shell commands across the hosts of one or more roles:

- Roles are processed one after another; a role finishes completely
  before the next one starts
- Within a role, each command is sent to every matching host at once and
  the dispatcher waits for all of them before sending the next command
- The first non-zero exit status stops the call: no further commands or
  roles run, and an ExecutionError carrying the results so far is raised
"""

import asyncio
import logging
import posixpath
from collections.abc import Mapping, Sequence
from typing import Any

from .exceptions import ConfigurationError, ExecutionError, ShipwrightError, TransportError
from .host_filter import normalize_filter
from .logging import TRACE, log_performance
from .output import NullReporter, OutputReporter
from .roles import RoleRegistry, RoleSpec, split_role_and_filter
from .transport import Transport
from .types import CommandResult, Host, RemoteResults

logger = logging.getLogger(__name__)


def resolve_remote_path(path: str, workspace: str | None) -> str:
    """Resolve a remote path against a role's workspace.

    Absolute paths (and home-relative ``~`` paths) are used as-is. Relative
    paths are joined to the workspace, or left relative to the remote
    login directory when no workspace is configured.

    Example:
        >>> resolve_remote_path("tmp/", "/srv/build")
        '/srv/build/tmp'
        >>> resolve_remote_path("/var/log", "/srv/build")
        '/var/log'
    """
    if posixpath.isabs(path) or path.startswith("~") or not workspace:
        resolved = path
    else:
        resolved = posixpath.join(workspace, path)
    return posixpath.normpath(resolved)


def resolve_working_directory(cd: str | None, workspace: str | None) -> str | None:
    """Work out where a role's commands run.

    Args:
        cd: Requested directory (absolute, or relative to the workspace)
        workspace: The role's workspace, if configured

    Returns:
        Directory to run commands in, or None for the login directory
    """
    if cd is None:
        return workspace
    return resolve_remote_path(cd, workspace)


def normalize_commands(commands: str | Sequence[str]) -> list[str]:
    """Turn a single command or a list of commands into a list.

    Raises:
        ConfigurationError: If any command is not a string
    """
    command_list = [commands] if isinstance(commands, str) else list(commands)
    for command in command_list:
        if not isinstance(command, str):
            raise ConfigurationError(f"Remote commands must be strings: {command!r}")
    return command_list


class RemoteDispatcher:
    """Dispatches commands to role hosts in lock-step.

    Attributes:
        roles: Registry the role specs are resolved against
        transport: Transport used to open host sessions
        reporter: Receives per-command and per-host output events

    Example:
        >>> dispatcher = RemoteDispatcher(roles, HostTransport())
        >>> results = await dispatcher.run("build", ["uname -a", "date"])
        >>> results["build"]["build1"][1].command
        'date'
    """

    def __init__(
        self,
        roles: RoleRegistry,
        transport: Transport,
        reporter: OutputReporter | None = None,
    ) -> None:
        self.roles = roles
        self.transport = transport
        self.reporter = reporter or NullReporter()

    async def run(
        self,
        role_spec: RoleSpec,
        commands: str | Sequence[str],
        filter: Mapping[str, Any] | None = None,
        cd: str | None = None,
    ) -> RemoteResults:
        """Run commands on every host of the given roles.

        Args:
            role_spec: A role, a list of roles, or "all"; may include
                inline filter mappings
            commands: A command or a list of commands, run in order
            filter: Host attribute filter (merged over inline filters)
            cd: Directory to run in, absolute or relative to the workspace

        Returns:
            RemoteResults grouped by role, then host, then command

        Raises:
            ExecutionError: If any host exits with a non-zero status
            TransportError: If a host cannot be reached or the command
                cannot be started
            ConfigurationError: For unknown roles or malformed arguments
        """
        roles, inline_filter = split_role_and_filter(role_spec)
        filter_options = {**inline_filter, **normalize_filter(filter)}
        role_names = self.roles.resolve(roles)
        command_list = normalize_commands(commands)

        results = RemoteResults()
        for role_name in role_names:
            await self._run_role(role_name, command_list, filter_options, cd, results)
        return results

    async def _run_role(
        self,
        role_name: str,
        commands: list[str],
        filter_options: dict[str, Any],
        cd: str | None,
        results: RemoteResults,
    ) -> None:
        """Run every command on one role's hosts, stopping at the first failure."""
        role = self.roles.get(role_name)
        hosts = self.roles.hosts_for(role_name, filter_options)
        role_results = results.for_role(role_name)

        if not hosts:
            logger.info(f"No hosts in role {role_name} matched; skipping")
            return

        cwd = resolve_working_directory(cd, role.workspace if role else None)
        host_names = [host.name for host in hosts]

        with log_performance(logger, f"Role {role_name}", level=logging.DEBUG, hosts=len(hosts)):
            for command in commands:
                logger.log(TRACE, f"[{role_name}] {command} on {', '.join(host_names)}")
                self.reporter.on_command(role_name, host_names, command)

                outcomes = await self._run_batch(hosts, command, cwd)

                errors: list[BaseException] = []
                for outcome in outcomes:
                    if isinstance(outcome, BaseException):
                        errors.append(outcome)
                        continue
                    role_results.add(outcome)
                    self.reporter.on_command_result(outcome)

                if errors:
                    for error in errors[1:]:
                        logger.error(f"Also failed in role {role_name}: {error}")
                    raise errors[0]

                failed = next((r for r in outcomes if not r.success), None)
                if failed is not None:
                    logger.error(
                        f"{failed.host} exited with status {failed.exit_status}: {failed.command}"
                    )
                    raise ExecutionError(
                        host=failed.host,
                        command=failed.command,
                        exit_status=failed.exit_status,
                        stdout=failed.stdout,
                        stderr=failed.stderr,
                        results=results,
                    )

    async def _run_batch(
        self,
        hosts: list[Host],
        command: str,
        cwd: str | None,
    ) -> list[CommandResult | BaseException]:
        """Run one command on every host concurrently and wait for all of them.

        Returns:
            One CommandResult or exception per host, in host order
        """
        tasks = [asyncio.create_task(self._run_one(host, command, cwd)) for host in hosts]
        return await asyncio.gather(*tasks, return_exceptions=True)

    async def _run_one(self, host: Host, command: str, cwd: str | None) -> CommandResult:
        """Run one command on one host."""
        try:
            session = await self.transport.open(host)
            exit_status, stdout, stderr = await session.run(command, cwd)
        except ShipwrightError:
            raise
        except Exception as e:
            logger.error(f"Transport failure on {host.name}: {e}")
            raise TransportError(
                f"Failed to run '{command}' on {host.name}: {e}",
                host=host.name,
                command=command,
            ) from e

        logger.log(TRACE, f"[{host.name}] rc={exit_status} stdout={stdout!r} stderr={stderr!r}")
        return CommandResult(
            host=host.name,
            command=command,
            exit_status=exit_status,
            stdout=stdout,
            stderr=stderr,
        )
