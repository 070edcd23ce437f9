"""Role management for shipwright.

A role is a named collection of hosts that share a function, for example
building a release or running the application. Roles are built up by
repeated ``define`` calls while a deployment script loads and are read
many times once tasks start running.
"""

import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Union

from .exceptions import ConfigurationError
from .host_filter import filter_hosts, format_filter_summary, normalize_filter
from .types import ALL_ROLES, Host, Role

logger = logging.getLogger(__name__)

# A role name, a list of role names, or a list mixing role names and
# mappings of inline filter options
RoleSpec = Union[str, Sequence[Union[str, Mapping[str, Any]]]]


def split_role_and_filter(role_spec: RoleSpec) -> tuple[list[str], dict[str, Any]]:
    """Separate role names from inline filter options.

    Args:
        role_spec: A role name, or a list of role names and filter mappings

    Returns:
        Tuple of (role names, filter options)

    Raises:
        ConfigurationError: If the spec names no roles or contains
            something that is neither a role name nor a filter mapping

    Example:
        >>> split_role_and_filter(["app", "db", {"primary": True}])
        (['app', 'db'], {'primary': True})
        >>> split_role_and_filter("app")
        (['app'], {})
    """
    if isinstance(role_spec, str):
        items: list[Any] = [role_spec]
    elif isinstance(role_spec, Sequence):
        items = list(role_spec)
    else:
        raise ConfigurationError(f"Invalid role specification: {role_spec!r}")

    roles: list[str] = []
    filters: dict[str, Any] = {}
    for item in items:
        if isinstance(item, str):
            roles.append(item)
        elif isinstance(item, Mapping):
            filters.update(normalize_filter(item))
        else:
            raise ConfigurationError(f"Invalid role specification entry: {item!r}")

    if not roles:
        raise ConfigurationError(f"Role specification names no roles: {role_spec!r}")

    return roles, filters


@dataclass
class RoleRegistry:
    """Registry of every role defined for a deployment.

    Roles keep their definition order, which is also the order ``all``
    expands to.

    Attributes:
        roles: Dictionary mapping role names to Role objects

    Example:
        >>> registry = RoleRegistry()
        >>> registry.define("build", "build1.example.com", user="deploy")
        >>> registry.define("app", ["app1", "app2"], workspace="/srv/app")
        >>> registry.resolve("all")
        ['build', 'app']
    """

    roles: dict[str, Role] = field(default_factory=dict)

    def define(
        self,
        name: str,
        hosts: str | Sequence[str],
        options: Mapping[str, Any] | None = None,
        **extra_options: Any,
    ) -> Role:
        """Define a role, or merge hosts into an existing one.

        Calling ``define`` several times with the same name merges the host
        lists. A host that shows up again has its attributes merged, newer
        values replacing older ones; host order never changes.

        Args:
            name: Role name; "all" is reserved
            hosts: A hostname or a list of hostnames
            options: Per-host attributes applied to every host in ``hosts``
            **extra_options: Additional attributes, merged over ``options``

        Returns:
            The (possibly merged) Role

        Raises:
            ConfigurationError: For the reserved name or malformed arguments
        """
        if name == ALL_ROLES:
            raise ConfigurationError(
                f"'{ALL_ROLES}' is reserved and refers to all defined roles"
            )
        if not isinstance(name, str) or not name:
            raise ConfigurationError(f"Role name must be a non-empty string: {name!r}")

        host_names = [hosts] if isinstance(hosts, str) else list(hosts)
        for host_name in host_names:
            if not isinstance(host_name, str) or not host_name:
                raise ConfigurationError(
                    f"Hosts for role '{name}' must be non-empty strings: {host_name!r}"
                )

        if options is not None and not isinstance(options, Mapping):
            raise ConfigurationError(f"Options for role '{name}' must be a mapping")
        attributes = {**(options or {}), **extra_options}

        role = self.roles.get(name)
        if role is None:
            role = Role(name=name)
            self.roles[name] = role
            logger.debug(f"Defined role {name}")

        role.options.update(attributes)
        for host_name in host_names:
            role.add_host(host_name, attributes)

        logger.debug(f"Role {name} now has {len(role.hosts)} host(s)")
        return role

    def get(self, name: str) -> Role | None:
        """Get a role by name."""
        return self.roles.get(name)

    def names(self) -> list[str]:
        """Get all role names in definition order."""
        return list(self.roles)

    def list_roles(self) -> list[Role]:
        """Get all roles in definition order."""
        return list(self.roles.values())

    def __contains__(self, name: object) -> bool:
        return name in self.roles

    def __iter__(self) -> Iterator[Role]:
        return iter(self.roles.values())

    def __len__(self) -> int:
        return len(self.roles)

    def resolve(self, role_or_roles: str | Sequence[str]) -> list[str]:
        """Normalize a role reference into an ordered list of role names.

        Args:
            role_or_roles: A role name, a list of role names, or "all"

        Returns:
            Distinct role names in the order given ("all" expands to every
            defined role in definition order)

        Raises:
            ConfigurationError: If a named role has not been defined
        """
        names = [role_or_roles] if isinstance(role_or_roles, str) else list(role_or_roles)

        resolved: list[str] = []
        for name in names:
            expanded = self.names() if name == ALL_ROLES else [name]
            for role_name in expanded:
                if role_name not in self.roles:
                    raise ConfigurationError(f"Role '{role_name}' is not defined")
                if role_name not in resolved:
                    resolved.append(role_name)
        return resolved

    @staticmethod
    def filter(hosts: Sequence[Host], filter_options: Mapping[str, Any] | None) -> list[Host]:
        """Filter hosts by attribute equality. See host_filter.filter_hosts."""
        return filter_hosts(hosts, filter_options)

    def hosts_for(self, name: str, filter_options: Mapping[str, Any] | None = None) -> list[Host]:
        """Get the hosts of a role that match a filter.

        Args:
            name: Role name
            filter_options: Attribute filter (None or empty = every host)

        Returns:
            Matching hosts in definition order

        Raises:
            ConfigurationError: If the role has not been defined
        """
        role = self.get(name)
        if role is None:
            raise ConfigurationError(f"Role '{name}' is not defined")

        hosts = role.list_hosts()
        matched = self.filter(hosts, filter_options)
        if filter_options:
            logger.debug(
                f"Role {name}: {format_filter_summary(len(hosts), len(matched), filter_options)}"
            )
        return matched
