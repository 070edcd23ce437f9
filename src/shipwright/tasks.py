"""Task registry for shipwright.

Each task name maps to exactly one body. Registering a body under a name
that already has one replaces it (the most recent definition wins) and
emits a RedefinitionWarning unless the definition asks to override.
"""

import logging
import warnings
from dataclasses import dataclass, field

from .exceptions import ConfigurationError, RedefinitionWarning
from .hooks import Body
from .types import UNKNOWN_ORIGIN, Origin

logger = logging.getLogger(__name__)


@dataclass
class TaskDefinition:
    """A registered task.

    Attributes:
        name: Task name
        body: Callable run with the deploy context
        origin: (file, line) the task was defined at
    """

    name: str
    body: Body
    origin: Origin = UNKNOWN_ORIGIN

    @property
    def location(self) -> str:
        """Origin formatted as file:line."""
        return f"{self.origin[0]}:{self.origin[1]}"


@dataclass
class TaskRegistry:
    """Registry of task bodies keyed by name."""

    _tasks: dict[str, TaskDefinition] = field(default_factory=dict, repr=False)

    def define(
        self,
        task: str,
        body: Body,
        override: bool = False,
        origin: Origin = UNKNOWN_ORIGIN,
    ) -> TaskDefinition:
        """Register (or replace) the body of a task.

        Args:
            task: Task name
            body: Callable run with the deploy context
            override: Set when replacing an existing task on purpose
            origin: (file, line) of the definition

        Returns:
            The new TaskDefinition

        Raises:
            ConfigurationError: If the name is empty or the body not callable
        """
        if not isinstance(task, str) or not task:
            raise ConfigurationError(f"Task name must be a non-empty string: {task!r}")
        if not callable(body):
            raise ConfigurationError(f"Body of task '{task}' is not callable: {body!r}")

        previous = self._tasks.get(task)
        if previous is not None and not override:
            warnings.warn(
                f"Warning: task '{task}' is being redefined. "
                "The most recent definition will be used. "
                "To prevent this warning, set `override=True` in the task options. "
                f"The previous definition was at: {previous.location}",
                RedefinitionWarning,
                stacklevel=3,
            )
        elif previous is None and override:
            warnings.warn(
                f"Warning: task '{task}' is not already defined and has a needless override.",
                RedefinitionWarning,
                stacklevel=3,
            )

        definition = TaskDefinition(name=task, body=body, origin=origin)
        self._tasks[task] = definition
        logger.debug(f"Defined task {task} at {definition.location}")
        return definition

    def lookup(self, task: str) -> TaskDefinition | None:
        """Get the current definition of a task, or None if undefined."""
        return self._tasks.get(task)

    def names(self) -> list[str]:
        """Defined task names in first-definition order."""
        return list(self._tasks)

    def __contains__(self, task: object) -> bool:
        return task in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)
