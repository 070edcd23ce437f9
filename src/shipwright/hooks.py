"""Before/after hooks for shipwright tasks.

A hook is a unit of work attached to a task name that runs before or after
the task body, unconditionally. Hooks attached to the same task and
position run in the order they were registered. Neither the task nor any
task a hook refers to needs to exist when the hook is registered.
"""

import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from .exceptions import ConfigurationError
from .types import UNKNOWN_ORIGIN, Origin

logger = logging.getLogger(__name__)

BEFORE = "before"
AFTER = "after"
POSITIONS = (BEFORE, AFTER)

# Hook and task bodies receive the deploy context as their only argument
Body = Callable[[Any], Any]


@dataclass
class Hook:
    """A registered hook.

    Attributes:
        task_name: Task the hook is attached to
        position: "before" or "after"
        body: Callable run with the deploy context
        sequence: Registration number, increasing across the registry
        origin: (file, line) the hook was defined at
        invokes: Name of the task this hook invokes, for hooks registered
            as a reference to another task
    """

    task_name: str
    position: str
    body: Body
    sequence: int
    origin: Origin = UNKNOWN_ORIGIN
    invokes: str | None = None

    def describe(self) -> str:
        """Short description for listings."""
        if self.invokes is not None:
            return f"invoke {self.invokes}"
        name = getattr(self.body, "__qualname__", repr(self.body))
        return f"{name} ({self.origin[0]}:{self.origin[1]})"


@dataclass
class HookRegistry:
    """Registry of hooks keyed by (position, task name).

    Example:
        >>> registry = HookRegistry()
        >>> registry.add_hook("deploy", "before", notify_team)
        >>> [h.body for h in registry.hooks_for("deploy", "before")]
        [<function notify_team ...>]
    """

    _hooks: dict[tuple[str, str], list[Hook]] = field(default_factory=dict, repr=False)
    _sequence: Any = field(default_factory=lambda: itertools.count(1), repr=False)

    def add_hook(
        self,
        task: str,
        position: str,
        body: Body,
        origin: Origin = UNKNOWN_ORIGIN,
        invokes: str | None = None,
    ) -> Hook:
        """Append a hook for a task.

        Args:
            task: Task name to attach to (need not be defined)
            position: "before" or "after"
            body: Callable run with the deploy context
            origin: (file, line) of the definition
            invokes: Referenced task name, when the hook invokes another task

        Returns:
            The registered Hook

        Raises:
            ConfigurationError: If the position or arguments are invalid
        """
        if position not in POSITIONS:
            raise ConfigurationError(
                f"Hook position must be one of {', '.join(POSITIONS)}: {position!r}"
            )
        if not isinstance(task, str) or not task:
            raise ConfigurationError(f"Task name must be a non-empty string: {task!r}")
        if not callable(body):
            raise ConfigurationError(f"Hook for task '{task}' is not callable: {body!r}")

        hook = Hook(
            task_name=task,
            position=position,
            body=body,
            sequence=next(self._sequence),
            origin=origin,
            invokes=invokes,
        )
        self._hooks.setdefault((position, task), []).append(hook)
        logger.debug(f"Registered {position} hook #{hook.sequence} for task {task}")
        return hook

    def hooks_for(self, task: str, position: str) -> list[Hook]:
        """Get the hooks for a task and position in registration order."""
        return list(self._hooks.get((position, task), []))

    def tasks_with_hooks(self) -> list[str]:
        """Task names that have at least one hook, in first-registration order."""
        names: list[str] = []
        for _, task in self._hooks:
            if task not in names:
                names.append(task)
        return names
