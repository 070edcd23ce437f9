"""Transport interfaces and implementations for shipwright.

The dispatchers never talk to hosts directly: they open a Session for each
host through a Transport and ask it to run commands or copy files. This
module defines that interface, a local implementation for hosts marked
``connection: local``, and HostTransport, which picks the right
implementation for each host.
"""

import asyncio
import logging
import os
import shlex
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from .types import Host

logger = logging.getLogger(__name__)


def with_working_directory(command: str, cwd: str | None) -> str:
    """Prefix a shell command with a change of directory.

    Args:
        command: Shell command
        cwd: Directory to run the command in (None = leave unchanged)

    Returns:
        Command string to hand to the shell

    Example:
        >>> with_working_directory("ls -la", "/srv/my app")
        "cd '/srv/my app' && ls -la"
    """
    if not cwd:
        return command
    return f"cd {shlex.quote(cwd)} && {command}"


class Session(ABC):
    """An open channel to one host.

    Implementations run shell commands and copy files. Copy destinations
    follow scp semantics: copying onto an existing directory places the
    source inside it under its own name.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Host name for identification."""

    @abstractmethod
    async def run(self, command: str, cwd: str | None = None) -> tuple[int, str, str]:
        """Run a shell command.

        Args:
            command: Command to execute
            cwd: Directory to run it in (None = the session default)

        Returns:
            Tuple of (exit_status, stdout, stderr)
        """

    @abstractmethod
    async def put(self, local_path: str, remote_path: str, recursive: bool = False) -> None:
        """Copy a local file or directory to the host."""

    @abstractmethod
    async def get(self, remote_path: str, local_path: str, recursive: bool = False) -> None:
        """Copy a file or directory from the host to the local machine."""


class Transport(ABC):
    """Opens sessions to hosts and releases them when done."""

    @abstractmethod
    async def open(self, host: Host) -> Session:
        """Open (or reuse) a session for a host."""

    @abstractmethod
    async def close(self) -> None:
        """Close every session this transport opened."""

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


def _copy_path(source: Path, destination: Path, recursive: bool) -> None:
    """Copy a file or directory with scp destination semantics."""
    if destination.is_dir():
        destination = destination / source.name

    if source.is_dir():
        if not recursive:
            raise IsADirectoryError(f"{source} is a directory (recursive copy not requested)")
        shutil.copytree(source, destination, dirs_exist_ok=True)
    else:
        shutil.copy2(source, destination)


class LocalSession(Session):
    """Session that executes on the local machine without SSH.

    Commands run through the local shell; file copies use shutil.
    """

    def __init__(self, host: Host) -> None:
        self.host = host

    @property
    def name(self) -> str:
        return self.host.name

    async def run(self, command: str, cwd: str | None = None) -> tuple[int, str, str]:
        full_command = with_working_directory(command, cwd)
        logger.debug(f"Running locally for {self.name}: {full_command[:100]}")

        process = await asyncio.create_subprocess_shell(
            full_command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
        return_code = process.returncode or 0

        logger.debug(
            f"Command completed: rc={return_code}, "
            f"stdout={len(stdout)} bytes, stderr={len(stderr)} bytes"
        )
        return (
            return_code,
            stdout.decode(errors="replace"),
            stderr.decode(errors="replace"),
        )

    async def put(self, local_path: str, remote_path: str, recursive: bool = False) -> None:
        await asyncio.to_thread(
            _copy_path, Path(local_path), Path(os.path.expanduser(remote_path)), recursive
        )

    async def get(self, remote_path: str, local_path: str, recursive: bool = False) -> None:
        await asyncio.to_thread(
            _copy_path, Path(os.path.expanduser(remote_path)), Path(local_path), recursive
        )


class LocalTransport(Transport):
    """Transport for hosts with ``connection: local``."""

    def __init__(self) -> None:
        self._sessions: dict[str, LocalSession] = {}

    async def open(self, host: Host) -> Session:
        if host.name not in self._sessions:
            self._sessions[host.name] = LocalSession(host)
        return self._sessions[host.name]

    async def close(self) -> None:
        self._sessions.clear()


class HostTransport(Transport):
    """Transport that selects local or SSH execution per host.

    Hosts whose ``connection`` attribute is "local" run on this machine;
    every other host is reached over SSH. The underlying transports are
    created on first use.

    Example:
        >>> transport = HostTransport()
        >>> session = await transport.open(Host("localhost", {"connection": "local"}))
        >>> # LocalSession
    """

    def __init__(
        self,
        ssh: Transport | None = None,
        local: Transport | None = None,
    ) -> None:
        self._ssh = ssh
        self._local = local

    def _transport_for(self, host: Host) -> Transport:
        if host.is_local:
            if self._local is None:
                self._local = LocalTransport()
            return self._local

        if self._ssh is None:
            from .ssh import SSHTransport

            self._ssh = SSHTransport()
        return self._ssh

    async def open(self, host: Host) -> Session:
        return await self._transport_for(host).open(host)

    async def close(self) -> None:
        if self._local is not None:
            await self._local.close()
        if self._ssh is not None:
            await self._ssh.close()
