"""Host filtering for shipwright.

Narrows a role's hosts to those whose attributes match a filter. A filter
is a set of key/value pairs:

- Every key must be present in the host's attributes
- Every value must compare equal (==) to the host's value
- An empty filter matches every host
"""

from collections.abc import Iterable, Mapping
from typing import Any

from .exceptions import ConfigurationError
from .types import Host


def normalize_filter(filter_options: Any) -> dict[str, Any]:
    """Normalize filter options into a plain dictionary.

    Args:
        filter_options: None, a mapping, or an iterable of (key, value) pairs

    Returns:
        Dictionary of attribute name -> expected value

    Raises:
        ConfigurationError: If the filter cannot be interpreted as key/value pairs

    Examples:
        normalize_filter(None)                     # {}
        normalize_filter({"primary": True})        # {"primary": True}
        normalize_filter([("primary", True)])      # {"primary": True}
    """
    if filter_options is None:
        return {}

    if isinstance(filter_options, Mapping):
        pairs = list(filter_options.items())
    elif isinstance(filter_options, (str, bytes)):
        raise ConfigurationError(f"Invalid host filter: {filter_options!r}")
    else:
        try:
            pairs = [tuple(pair) for pair in filter_options]
        except TypeError:
            raise ConfigurationError(f"Invalid host filter: {filter_options!r}") from None

    result: dict[str, Any] = {}
    for pair in pairs:
        if len(pair) != 2 or not isinstance(pair[0], str):
            raise ConfigurationError(f"Invalid host filter entry: {pair!r}")
        result[pair[0]] = pair[1]
    return result


def match_host(attributes: Mapping[str, Any], filter_options: Mapping[str, Any]) -> bool:
    """Check if a host's attributes satisfy the filter.

    Args:
        attributes: The host's attributes
        filter_options: Attribute name -> expected value

    Returns:
        True if the host should be included, False otherwise
    """
    for key, value in filter_options.items():
        # Hosts without the key never match
        if key not in attributes:
            return False
        if attributes[key] != value:
            return False
    return True


def filter_hosts(hosts: Iterable[Host], filter_options: Mapping[str, Any] | None) -> list[Host]:
    """Filter hosts by attribute equality, keeping their order.

    Args:
        hosts: Hosts to filter
        filter_options: Attribute name -> expected value (None or empty = all)

    Returns:
        List of matching hosts

    Examples:
        # Only primary hosts
        filter_hosts(role.list_hosts(), {"primary": True})

        # Every host
        filter_hosts(role.list_hosts(), {})
    """
    hosts = list(hosts)
    if not filter_options:
        return hosts

    return [host for host in hosts if match_host(host.attributes, filter_options)]


def format_filter_summary(
    original_count: int,
    filtered_count: int,
    filter_options: Mapping[str, Any],
) -> str:
    """Format a summary of host filtering.

    Args:
        original_count: Original number of hosts
        filtered_count: Number of hosts after filtering
        filter_options: The filter that was applied

    Returns:
        Human-readable summary string
    """
    filter_str = ", ".join(f"{k}={v!r}" for k, v in filter_options.items())
    if filtered_count == original_count:
        return f"All {original_count} host(s) matched filter: {filter_str}"

    excluded = original_count - filtered_count
    return (
        f"Filter '{filter_str}': {filtered_count}/{original_count} hosts "
        f"({excluded} excluded)"
    )
