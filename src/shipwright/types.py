"""Type definitions for shipwright.

This module defines the core data types used throughout shipwright: hosts
and the roles that group them, and the results collected when commands are
dispatched to those hosts. Results keep the order in which roles, hosts and
commands were processed.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

# Reserved role name referring to every defined role
ALL_ROLES = "all"


@dataclass
class Host:
    """A single host entry inside a role.

    Attributes:
        name: Hostname or address used to connect to the host
        attributes: Per-host options (SSH settings, workspace, user-defined
            tags used for filtering)

    Example:
        >>> host = Host(name="build1.example.com", attributes={"user": "deploy"})
        >>> host.user
        'deploy'
        >>> host.is_local
        False
    """

    name: str
    attributes: dict[str, Any] = field(default_factory=dict)

    @property
    def connection(self) -> str:
        """Connection type, "ssh" unless the host says otherwise."""
        return str(self.attributes.get("connection", "ssh"))

    @property
    def is_local(self) -> bool:
        """Check if this host uses local execution (no SSH)."""
        return self.connection == "local"

    @property
    def user(self) -> str | None:
        """Login user, if one was configured."""
        return self.attributes.get("user")

    @property
    def port(self) -> int:
        """SSH port (default: 22)."""
        return int(self.attributes.get("port", 22))

    def get(self, key: str, default: Any = None) -> Any:
        """Get a host attribute by key with optional default."""
        return self.attributes.get(key, default)

    def merge(self, attributes: dict[str, Any]) -> None:
        """Merge new attributes into this host, new values winning."""
        self.attributes.update(attributes)


@dataclass
class Role:
    """A named set of hosts responsible for the same function.

    Hosts keep the order in which they were first defined. Defining a host
    that is already present merges its attributes instead of adding it
    again.

    Attributes:
        name: Role name (e.g., "build", "app")
        hosts: Mapping of hostname to Host, in definition order
        options: Role-level options merged from every definition call

    Example:
        >>> role = Role(name="app")
        >>> role.add_host("app1", {"primary": True})
        >>> role.add_host("app1", {"workspace": "/srv/app"})
        >>> role.get_host("app1").attributes
        {'primary': True, 'workspace': '/srv/app'}
    """

    name: str
    hosts: dict[str, Host] = field(default_factory=dict)
    options: dict[str, Any] = field(default_factory=dict)

    def add_host(self, name: str, attributes: dict[str, Any] | None = None) -> Host:
        """Add a host, or merge attributes into an existing one."""
        attributes = dict(attributes or {})
        host = self.hosts.get(name)
        if host is None:
            host = Host(name=name, attributes=attributes)
            self.hosts[name] = host
        else:
            host.merge(attributes)
        return host

    def get_host(self, name: str) -> Host | None:
        """Get a host by name."""
        return self.hosts.get(name)

    def list_hosts(self) -> list[Host]:
        """Get all hosts in this role, in definition order."""
        return list(self.hosts.values())

    @property
    def workspace(self) -> str | None:
        """Base directory used to resolve relative remote paths."""
        return self.options.get("workspace")


@dataclass
class CommandResult:
    """Result of running one command on one host.

    Attributes:
        host: Host the command ran on
        command: Command text as dispatched
        exit_status: Process exit status
        stdout: Captured standard output
        stderr: Captured standard error
    """

    host: str
    command: str
    exit_status: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        """Check if the command exited with status 0."""
        return self.exit_status == 0


@dataclass
class RoleResults:
    """Results of a remote call for a single role.

    Maps each host to its command results in command order. Hosts appear in
    the role's host order.

    Example:
        >>> results = RoleResults(role="build")
        >>> results.add(CommandResult("b1", "hostname", 0, "b1\\n"))
        >>> results["b1"][0].stdout
        'b1\\n'
    """

    role: str
    hosts: dict[str, list[CommandResult]] = field(default_factory=dict)

    def add(self, result: CommandResult) -> None:
        """Append a result for its host."""
        self.hosts.setdefault(result.host, []).append(result)

    def __getitem__(self, host: str) -> list[CommandResult]:
        return self.hosts[host]

    def __iter__(self) -> Iterator[str]:
        return iter(self.hosts)

    def __len__(self) -> int:
        return len(self.hosts)

    def __contains__(self, host: object) -> bool:
        return host in self.hosts

    def commands(self) -> list[str]:
        """Commands run for this role, in dispatch order."""
        seen: list[str] = []
        for results in self.hosts.values():
            for index, result in enumerate(results):
                if index >= len(seen):
                    seen.append(result.command)
        return seen

    def all_results(self) -> list[CommandResult]:
        """Flatten results host by host."""
        return [r for results in self.hosts.values() for r in results]


@dataclass
class RemoteResults:
    """Aggregated results of a remote call, grouped by role.

    Roles appear in processing order; each role maps host to command
    results. Indexable as ``results[role][host][command_index]``. When a
    single role was processed its hosts can also be indexed directly,
    as ``results[host][command_index]``; role names take precedence.

    Example:
        >>> results = await dispatcher.run(["build", "app"], "hostname")
        >>> results.roles
        ['build', 'app']
        >>> results["app"]["app1"][0].stdout
        'app1\\n'
        >>> (await dispatcher.run("app", "hostname"))["app1"][0].stdout
        'app1\\n'
    """

    results: dict[str, RoleResults] = field(default_factory=dict)

    def for_role(self, role: str) -> RoleResults:
        """Get (creating if needed) the results for a role."""
        if role not in self.results:
            self.results[role] = RoleResults(role=role)
        return self.results[role]

    @property
    def roles(self) -> list[str]:
        """Role names in processing order."""
        return list(self.results)

    def __getitem__(self, key: str) -> Any:
        if key in self.results:
            return self.results[key]
        if len(self.results) == 1:
            (only,) = self.results.values()
            return only[key]
        raise KeyError(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    def __contains__(self, role: object) -> bool:
        return role in self.results

    def all_results(self) -> list[CommandResult]:
        """Flatten every result, role by role."""
        return [r for role in self.results.values() for r in role.all_results()]

    def is_success(self) -> bool:
        """Check if every collected command exited with status 0."""
        return all(r.success for r in self.all_results())


# Source location (file, line) a task or hook was defined at
Origin = tuple[str, int]

UNKNOWN_ORIGIN: Origin = ("<unknown>", 0)


def origin_of(body: Any) -> Origin:
    """Find where a callable was defined.

    Args:
        body: Function, bound method, or other callable

    Returns:
        (filename, first line number), or UNKNOWN_ORIGIN for callables
        without code objects (builtins, partials)
    """
    code = getattr(body, "__code__", None)
    if code is None:
        code = getattr(getattr(body, "__func__", None), "__code__", None)
    if code is None:
        return UNKNOWN_ORIGIN
    return code.co_filename, code.co_firstlineno
