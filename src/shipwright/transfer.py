"""File transfer dispatch for shipwright.

Uploads and downloads files for the hosts of one or more roles. Roles are
processed one after another; the hosts of a role transfer concurrently and
independently of each other. A failure on one host does not stop the
transfers already running on the others, but the call fails once they
have all settled.
"""

import asyncio
import logging
import os
import posixpath
from collections.abc import Awaitable, Callable
from pathlib import Path

from .exceptions import ShipwrightError, TransferError
from .logging import log_performance
from .output import NullReporter, OutputReporter
from .remote import resolve_remote_path
from .roles import RoleRegistry, RoleSpec, split_role_and_filter
from .transport import Session, Transport
from .types import Host

logger = logging.getLogger(__name__)

# Runs one transfer on an open session
TransferOperation = Callable[[Session, Host], Awaitable[None]]


def upload_destination(source: Path, remote_path: str, workspace: str | None) -> str:
    """Work out where an upload lands on the remote side.

    - A directory source always targets ``remote_path`` as a directory
    - A file source targets ``remote_path/<file name>`` when ``remote_path``
      is "." or ends with "/", and exactly ``remote_path`` otherwise
    - Relative destinations are resolved against the workspace

    Example:
        >>> upload_destination(Path("my_file"), "a_dir/", None)
        'a_dir/my_file'
        >>> upload_destination(Path("my_file"), "new_name", None)
        'new_name'
        >>> upload_destination(Path("my_file"), ".", "/srv/app")
        '/srv/app/my_file'
    """
    if not source.is_dir() and (remote_path == "." or remote_path.endswith("/")):
        remote_path = posixpath.join(remote_path, source.name)
    return resolve_remote_path(remote_path, workspace)


def prepare_download_destination(local_path: str) -> Path:
    """Resolve a local download destination, creating one directory level if needed.

    A missing path ending in a separator is created as a directory (its
    parent must exist). Any other missing path names the destination file
    or directory itself, so only its parent has to exist.

    Args:
        local_path: Destination given by the caller; relative paths are
            resolved against the current working directory

    Returns:
        Absolute destination path

    Raises:
        TransferError: If the destination cannot be created or its parent
            directory does not exist
    """
    destination = Path(local_path).absolute()
    if destination.exists():
        return destination

    if local_path.endswith(("/", os.sep)):
        try:
            destination.mkdir()
        except OSError as e:
            raise TransferError(
                f"Cannot create local directory {destination}: {e}",
                destination=str(destination),
            ) from e
        logger.debug(f"Created local directory {destination}")
    elif not destination.parent.is_dir():
        raise TransferError(
            f"Local directory {destination.parent} does not exist",
            destination=str(destination),
        )
    return destination


class TransferDispatcher:
    """Uploads and downloads files for role hosts.

    Attributes:
        roles: Registry the role specs are resolved against
        transport: Transport used to open host sessions
        reporter: Receives per-host transfer events
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

    async def upload(
        self,
        role_spec: RoleSpec,
        local_path: str,
        remote_path: str,
        local_root: str | Path | None = None,
    ) -> None:
        """Upload a local file or directory to every matching host.

        Args:
            role_spec: A role, a list of roles, or "all"; may include
                inline filter mappings
            local_path: File or directory to upload; directories are
                copied recursively
            remote_path: Destination (see upload_destination)
            local_root: Base for relative local paths (default: current directory)

        Raises:
            TransferError: If the local path is missing or any host fails
            ConfigurationError: For unknown roles or malformed arguments

        Example:
            # copies ./my_file to ./a_dir/my_file in each host's workspace
            await dispatcher.upload("app", "my_file", "a_dir/")
        """
        roles, filter_options = split_role_and_filter(role_spec)
        role_names = self.roles.resolve(roles)

        source = Path(local_path)
        if not source.is_absolute():
            source = Path(local_root or Path.cwd()) / source
        if not source.exists():
            raise TransferError(f"Local path not found: {source}", source=str(source))
        recursive = source.is_dir()

        for role_name in role_names:
            role = self.roles.get(role_name)
            hosts = self.roles.hosts_for(role_name, filter_options)
            destination = upload_destination(source, remote_path, role.workspace if role else None)

            async def put(session: Session, host: Host) -> None:
                self.reporter.on_upload(host.name, str(source), destination)
                await session.put(str(source), destination, recursive=recursive)

            with log_performance(logger, f"Upload to role {role_name}", level=logging.DEBUG, hosts=len(hosts)):
                await self._run_batch(role_name, hosts, put, str(source), destination)

    async def download(
        self,
        role_spec: RoleSpec,
        remote_path: str,
        local_path: str,
    ) -> None:
        """Download a remote file or directory from every matching host.

        When several hosts match, each download writes to the same local
        destination and the last host to finish wins.

        Args:
            role_spec: A role, a list of roles, or "all"; may include
                inline filter mappings
            remote_path: File or directory to copy (recursively); relative
                paths are resolved against the workspace
            local_path: Local destination (see prepare_download_destination)

        Raises:
            TransferError: If the destination is unusable or any host fails
            ConfigurationError: For unknown roles or malformed arguments
        """
        roles, filter_options = split_role_and_filter(role_spec)
        role_names = self.roles.resolve(roles)
        destination = prepare_download_destination(local_path)

        for role_name in role_names:
            role = self.roles.get(role_name)
            hosts = self.roles.hosts_for(role_name, filter_options)
            source = resolve_remote_path(remote_path, role.workspace if role else None)

            async def get(session: Session, host: Host) -> None:
                self.reporter.on_download(host.name, source, str(destination))
                await session.get(source, str(destination), recursive=True)

            with log_performance(logger, f"Download from role {role_name}", level=logging.DEBUG, hosts=len(hosts)):
                await self._run_batch(role_name, hosts, get, source, str(destination))

    async def _run_batch(
        self,
        role_name: str,
        hosts: list[Host],
        operation: TransferOperation,
        source: str,
        destination: str,
    ) -> None:
        """Run a transfer on every host concurrently, failing after all settle."""
        if not hosts:
            logger.info(f"No hosts in role {role_name} matched; skipping transfer")
            return

        async def run_one(host: Host) -> None:
            try:
                session = await self.transport.open(host)
                await operation(session, host)
            except ShipwrightError:
                raise
            except Exception as e:
                raise TransferError(
                    f"Transfer of {source} to {destination} failed on {host.name}: {e}",
                    host=host.name,
                    source=source,
                    destination=destination,
                ) from e

        outcomes = await asyncio.gather(*(run_one(host) for host in hosts), return_exceptions=True)

        errors = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
        for error in errors:
            logger.error(f"Transfer failed in role {role_name}: {error}")
        if errors:
            raise errors[0]
