"""Configuration store for shipwright.

Key/value settings shared by a deployment's roles and tasks (application
name, version, target environment, ...). Values can be set from a
deployment script or loaded from YAML files.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_ENV = "production"


def _default_values() -> dict[str, Any]:
    return {"env": DEFAULT_ENV}


@dataclass
class ConfigStore:
    """Key/value configuration for a single deployment context.

    Attributes:
        values: Current settings

    Example:
        >>> config = ConfigStore()
        >>> config.set("app", "my_cool_app")
        >>> config.get("app")
        'my_cool_app'
        >>> config.get("version", "0.0.1")
        '0.0.1'
    """

    values: dict[str, Any] = field(default_factory=_default_values)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value, or ``default`` when the key has never been set.

        A key explicitly set to None returns None, not the default.
        """
        return self.values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value."""
        if not isinstance(key, str) or not key:
            raise ConfigurationError(f"Configuration key must be a non-empty string: {key!r}")
        self.values[key] = value
        logger.debug(f"Config {key} set")

    def get_all(self) -> dict[str, Any]:
        """Get a copy of every key/value pair."""
        return dict(self.values)

    def update(self, values: Mapping[str, Any]) -> None:
        """Set several values at once."""
        for key, value in values.items():
            self.set(key, value)

    def __contains__(self, key: object) -> bool:
        return key in self.values

    def load(self, path: str | Path) -> dict[str, Any]:
        """Merge settings from a YAML file into the store.

        Args:
            path: YAML file containing a mapping of keys to values

        Returns:
            The mapping that was loaded

        Raises:
            ConfigurationError: If the file is missing, unparsable, or not a mapping

        Example:
            # deploy.yml
            #   app: my_cool_app
            #   version: 1.0.0
            >>> config.load("deploy.yml")
            {'app': 'my_cool_app', 'version': '1.0.0'}
        """
        path = Path(path)
        try:
            content = path.read_text()
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {path}") from None

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid configuration file {path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a mapping")

        self.update(data)
        logger.info(f"Loaded {len(data)} setting(s) from {path}")
        return data
