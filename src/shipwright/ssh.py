"""Async SSH Transport for shipwright.

Provides async SSH sessions using asyncssh for remote host execution.
Implements the Session/Transport interfaces used by the dispatchers.

Features:
- Async SSH connections with asyncssh
- Connection reuse per (hostname, port, user)
- Host attributes mapped to connection options (user, identity, ...)
- SFTP support for file transfers
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import asyncssh

from .transport import Session, Transport, with_working_directory
from .types import Host

logger = logging.getLogger(__name__)


@dataclass
class SSHConfig:
    """SSH connection configuration.

    Attributes:
        hostname: Remote hostname or IP
        port: SSH port (default 22)
        username: SSH username (default current user)
        password: Password for authentication (optional)
        client_keys: List of private key paths (optional)
        known_hosts: Path to known_hosts file (None to disable checking)
        connect_timeout: Connection timeout in seconds
        keepalive_interval: Keepalive interval (0 to disable)
    """

    hostname: str
    port: int = 22
    username: str | None = None
    password: str | None = None
    client_keys: list[str] | None = None
    known_hosts: str | None = ()  # Empty tuple = use default known_hosts
    connect_timeout: float = 30.0
    keepalive_interval: float = 30.0

    @classmethod
    def from_host(cls, host: Host) -> "SSHConfig":
        """Build a configuration from a role host's attributes.

        Recognized attributes: ``address`` (connect to this instead of the
        host name), ``user``, ``port``, ``password``, ``identity`` (a key
        path or list of paths), ``known_hosts``, ``silently_accept_hosts``,
        ``connect_timeout`` and ``keepalive_interval``. Everything else is
        ignored here.

        Example:
            >>> config = SSHConfig.from_host(
            ...     Host("build1", {"user": "deploy", "identity": "~/.ssh/id_rsa"})
            ... )
            >>> config.client_keys
            ['~/.ssh/id_rsa']
        """
        identity = host.get("identity")
        if isinstance(identity, str):
            identity = [identity]

        known_hosts = host.get("known_hosts", ())
        if host.get("silently_accept_hosts"):
            known_hosts = None

        return cls(
            hostname=host.get("address", host.name),
            port=host.port,
            username=host.user,
            password=host.get("password"),
            client_keys=list(identity) if identity else None,
            known_hosts=known_hosts,
            connect_timeout=float(host.get("connect_timeout", 30.0)),
            keepalive_interval=float(host.get("keepalive_interval", 30.0)),
        )

    def to_asyncssh_options(self) -> dict[str, Any]:
        """Convert to asyncssh.connect() kwargs."""
        options: dict[str, Any] = {
            "host": self.hostname,
            "port": self.port,
            "connect_timeout": self.connect_timeout,
            "keepalive_interval": self.keepalive_interval,
        }

        if self.username:
            options["username"] = self.username
        if self.password:
            options["password"] = self.password
        if self.client_keys:
            options["client_keys"] = self.client_keys
        if self.known_hosts is None:
            options["known_hosts"] = None  # Disable host key checking
        elif self.known_hosts != ():
            options["known_hosts"] = self.known_hosts

        return options


class SSHSession(Session):
    """Async SSH session to one host.

    Provides async methods for remote command execution and file transfers
    using asyncssh. The connection is created on first use and cached.

    Example:
        session = SSHSession(Host("server.example.com", {"user": "deploy"}))
        async with session:
            rc, stdout, stderr = await session.run("uptime")
            print(stdout)
    """

    def __init__(self, host: Host) -> None:
        """Initialize SSH session.

        Args:
            host: Role host whose attributes describe the connection
        """
        self.host = host
        self.config = SSHConfig.from_host(host)
        self._conn: asyncssh.SSHClientConnection | None = None
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self.host.name

    async def connect(self) -> asyncssh.SSHClientConnection:
        """Establish SSH connection.

        Returns cached connection if available.
        """
        async with self._lock:
            if self._conn is None or self._conn.is_closed():
                logger.debug(f"Connecting to {self.config.hostname}:{self.config.port}")
                self._conn = await asyncssh.connect(**self.config.to_asyncssh_options())
                logger.info(f"Connected to {self.config.hostname}")
            return self._conn

    async def disconnect(self) -> None:
        """Close SSH connection."""
        async with self._lock:
            if self._conn is not None and not self._conn.is_closed():
                self._conn.close()
                await self._conn.wait_closed()
                logger.debug(f"Disconnected from {self.config.hostname}")
            self._conn = None

    async def __aenter__(self) -> "SSHSession":
        """Context manager entry - connect."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit - disconnect."""
        await self.disconnect()

    async def run(self, command: str, cwd: str | None = None) -> tuple[int, str, str]:
        """Run a command on the remote host.

        Args:
            command: Command to execute
            cwd: Remote directory to run it in (None = login directory)

        Returns:
            Tuple of (exit_status, stdout, stderr)
        """
        conn = await self.connect()
        full_command = with_working_directory(command, cwd)

        logger.debug(f"Running on {self.config.hostname}: {full_command[:100]}")

        result = await conn.run(full_command, check=False)

        stdout = result.stdout or ""
        stderr = result.stderr or ""
        # returncode is None when the channel closed without an exit status
        return_code = result.returncode if result.returncode is not None else -1
        if isinstance(stdout, bytes):
            stdout = stdout.decode(errors="replace")
        if isinstance(stderr, bytes):
            stderr = stderr.decode(errors="replace")

        logger.debug(
            f"Command completed: rc={return_code}, "
            f"stdout={len(stdout)} bytes, stderr={len(stderr)} bytes"
        )

        return return_code, stdout, stderr

    async def put(self, local_path: str, remote_path: str, recursive: bool = False) -> None:
        """Upload a file or directory over SFTP.

        Args:
            local_path: Local file or directory
            remote_path: Remote destination; an existing directory receives
                the source under its own name
            recursive: Copy directories recursively
        """
        conn = await self.connect()

        logger.debug(f"Uploading {local_path} to {self.config.hostname}:{remote_path}")

        async with conn.start_sftp_client() as sftp:
            await sftp.put(local_path, remote_path, recurse=recursive)

        logger.debug(f"Uploaded {local_path}")

    async def get(self, remote_path: str, local_path: str, recursive: bool = False) -> None:
        """Download a file or directory over SFTP.

        Args:
            remote_path: Remote file or directory
            local_path: Local destination; an existing directory receives
                the source under its own name
            recursive: Copy directories recursively
        """
        conn = await self.connect()

        logger.debug(f"Downloading {self.config.hostname}:{remote_path} to {local_path}")

        async with conn.start_sftp_client() as sftp:
            await sftp.get(remote_path, local_path, recurse=recursive)

        logger.debug(f"Downloaded {remote_path}")


class SSHTransport(Transport):
    """Pool of SSH sessions for host reuse.

    Maintains a cache of SSHSession instances keyed by (hostname, port,
    username). Sessions are reused when the same host is reached from
    several roles or several dispatcher calls.

    Example:
        transport = SSHTransport()

        # These will reuse the same connection
        session1 = await transport.open(Host("server.example.com", {"user": "deploy"}))
        session2 = await transport.open(Host("server.example.com", {"user": "deploy"}))
        assert session1 is session2

        # Cleanup
        await transport.close()
    """

    def __init__(self) -> None:
        self._sessions: dict[tuple[str, int, str | None], SSHSession] = {}
        self._lock = asyncio.Lock()

    async def open(self, host: Host) -> Session:
        """Get or create an SSHSession for the host.

        Args:
            host: Role host to connect to

        Returns:
            SSHSession instance (may be reused)
        """
        key = (host.get("address", host.name), host.port, host.user)

        async with self._lock:
            if key not in self._sessions:
                self._sessions[key] = SSHSession(host)
                logger.debug(f"Created new SSH session: {key[0]}:{key[1]}")

            return self._sessions[key]

    async def close(self) -> None:
        """Close all connections in the pool."""
        async with self._lock:
            for session in self._sessions.values():
                await session.disconnect()
            self._sessions.clear()
            logger.debug("Closed all pooled connections")
