"""Deploy context for shipwright.

DeployContext holds everything one deployment needs: its roles, tasks,
hooks, configuration and transport. Deployment scripts register roles,
tasks and hooks on a context, then invoke a task by name; task bodies use
the same context to run remote commands and transfer files.

Several contexts can exist side by side; none of them is global.
"""

import functools
import inspect
import logging
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

from .config import ConfigStore
from .exceptions import ConfigurationError
from .hooks import AFTER, BEFORE, Body, HookRegistry
from .logging import log_scope
from .output import NullReporter, OutputReporter
from .remote import RemoteDispatcher
from .roles import RoleRegistry, RoleSpec
from .tasks import TaskRegistry
from .transfer import TransferDispatcher
from .transport import HostTransport, Transport
from .types import ALL_ROLES, UNKNOWN_ORIGIN, Origin, RemoteResults, Role, origin_of

logger = logging.getLogger(__name__)

_UNSET = object()


def _caller_origin() -> Origin:
    """Location of the first caller outside this module."""
    frame = inspect.currentframe()
    try:
        while frame is not None and frame.f_code.co_filename == __file__:
            frame = frame.f_back
        if frame is None:
            return UNKNOWN_ORIGIN
        return frame.f_code.co_filename, frame.f_lineno
    finally:
        del frame


def _definition_origin(body: Body) -> Origin:
    origin = origin_of(body)
    return _caller_origin() if origin == UNKNOWN_ORIGIN else origin


async def _call(body: Body, ctx: "DeployContext", label: str) -> Any:
    """Run a task or hook body, awaiting it if it is a coroutine.

    A plain function body that calls remote, upload, download or invoke
    without awaiting the result would silently skip that work, so it is
    rejected with a ConfigurationError instead.
    """
    mark = len(ctx._dispatched)
    try:
        result = body(ctx)
        if inspect.isawaitable(result):
            return await result
        leaked = [
            (name, coro)
            for name, coro in ctx._dispatched[mark:]
            if inspect.getcoroutinestate(coro) == inspect.CORO_CREATED
        ]
        if leaked:
            for _, coro in leaked:
                coro.close()
            names = ", ".join(sorted({name for name, _ in leaked}))
            raise ConfigurationError(
                f"{label} called {names} without awaiting it; "
                f"define the body with 'async def' and await the call"
            )
        return result
    finally:
        del ctx._dispatched[mark:]


def _tracked(method: Callable[..., Any]) -> Callable[..., Any]:
    """Record each coroutine a context method returns so _call can check it ran."""

    @functools.wraps(method)
    def wrapper(self: "DeployContext", *args: Any, **kwargs: Any) -> Any:
        coro = method(self, *args, **kwargs)
        self._dispatched.append((method.__name__, coro))
        return coro

    return wrapper


class DeployContext:
    """Roles, tasks, hooks and configuration for one deployment.

    Attributes:
        roles: Role registry
        hooks: Hook registry
        tasks: Task registry
        config_store: Key/value configuration
        transport: Transport used to reach hosts
        reporter: Console output for dispatched commands and transfers

    Example:
        ctx = DeployContext()
        ctx.role("build", ["build1.example.com"], user="deploy")

        @ctx.task("build")
        async def build(ctx):
            await ctx.remote("build", ["make release"])

        ctx.before_task("build", "checkout")
        await ctx.invoke("build")
    """

    def __init__(
        self,
        transport: Transport | None = None,
        reporter: OutputReporter | None = None,
        config_store: ConfigStore | None = None,
    ) -> None:
        self.roles = RoleRegistry()
        self.hooks = HookRegistry()
        self.tasks = TaskRegistry()
        self.config_store = config_store or ConfigStore()
        self.transport = transport or HostTransport()
        self.reporter = reporter or NullReporter()
        self._remote = RemoteDispatcher(self.roles, self.transport, self.reporter)
        self._transfer = TransferDispatcher(self.roles, self.transport, self.reporter)
        self._dispatched: list[tuple[str, Any]] = []

    async def __aenter__(self) -> "DeployContext":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close every connection opened by this context."""
        await self.transport.close()

    # Roles and configuration ------------------------------------------

    def role(
        self,
        name: str,
        hosts: str | Sequence[str],
        options: Mapping[str, Any] | None = None,
        **extra_options: Any,
    ) -> Role:
        """Define a role, or merge hosts into an existing one.

        Example:
            ctx.role("build", ["build1.example.com", "build2.example.com"],
                     user="foo", identity="~/.ssh/id_rsa")
        """
        return self.roles.define(name, hosts, options, **extra_options)

    def config(self, key: Any = _UNSET, value: Any = _UNSET) -> Any:
        """Read or write configuration.

        - ``config()`` returns every key/value pair
        - ``config(key)`` returns the value of ``key`` (None if unset)
        - ``config((key, default))`` returns the value, or ``default`` if the
          key has never been set (without storing it)
        - ``config(key, value)`` sets ``key``

        Example:
            ctx.config("app", "my_cool_app")
            ctx.config("app")                  # 'my_cool_app'
            ctx.config(("hello", "world"))     # 'world'
        """
        if key is _UNSET:
            return self.config_store.get_all()
        if value is not _UNSET:
            self.config_store.set(key, value)
            return value
        if isinstance(key, tuple):
            if len(key) != 2:
                raise ConfigurationError(f"Expected (key, default), got {key!r}")
            return self.config_store.get(key[0], key[1])
        return self.config_store.get(key)

    def load(self, path: str | Path) -> None:
        """Load a deployment script (.py) or a configuration file (.yml/.yaml)."""
        path = Path(path)
        if path.suffix in (".yml", ".yaml"):
            self.config_store.load(path)
        else:
            from .script import load_script

            load_script(self, path)

    # Tasks and hooks ----------------------------------------------------

    def task(
        self,
        name: str,
        body: Body | None = None,
        *,
        override: bool = False,
    ) -> Any:
        """Define a task, directly or as a decorator.

        Redefining a task replaces it and warns, unless ``override=True``.
        Bodies take the context and may be plain functions, but a body that
        calls remote, upload, download or invoke must be ``async def`` and
        await them; a plain function that leaves one un-awaited fails with
        ConfigurationError.

        Example:
            @ctx.task("hello")
            async def hello(ctx):
                print("Hello World!")

            @ctx.task("update", override=True)
            def update(ctx):
                logger.info("No longer using stock update task")
        """
        if body is not None:
            self.tasks.define(name, body, override=override, origin=_definition_origin(body))
            return body

        def decorator(func: Body) -> Body:
            self.tasks.define(name, func, override=override, origin=_definition_origin(func))
            return func

        return decorator

    def before_task(self, task: str, hook: str | Body | None = None) -> Any:
        """Register a hook that runs before ``task``.

        ``hook`` may be a callable, the name of another task (which is then
        invoked, hooks included), or omitted to use this as a decorator.
        Hooks for the same task run in registration order. Neither task
        needs to be defined yet.
        Callable hooks follow the same rules as task bodies.

        Example:
            ctx.before_task("build", "checksum_code")

            @ctx.before_task("deploy")
            def notify(ctx):
                notify_team("Here we go!")
        """
        return self._add_hook(task, BEFORE, hook)

    def after_task(self, task: str, hook: str | Body | None = None) -> Any:
        """Register a hook that runs after ``task``. See before_task."""
        return self._add_hook(task, AFTER, hook)

    def _add_hook(self, task: str, position: str, hook: str | Body | None) -> Any:
        if hook is None:
            def decorator(func: Body) -> Body:
                self.hooks.add_hook(task, position, func, origin=_definition_origin(func))
                return func

            return decorator

        if isinstance(hook, str):
            other = hook

            async def invoke_other(ctx: "DeployContext") -> None:
                await ctx.invoke(other)

            self.hooks.add_hook(task, position, invoke_other, origin=_caller_origin(), invokes=other)
            return None

        self.hooks.add_hook(task, position, hook, origin=_definition_origin(hook))
        return hook

    @_tracked
    async def invoke(self, task: str) -> None:
        """Invoke a task: its before hooks, its body, then its after hooks.

        A task without a body is not an error: its hooks still run, which
        lets hooks be attached to event names. Any exception stops the
        invocation immediately and propagates.
        """
        before = self.hooks.hooks_for(task, BEFORE)
        after = self.hooks.hooks_for(task, AFTER)

        with log_scope(logger, f"Invoking task {task}", level=logging.DEBUG,
                       before=len(before), after=len(after)):
            for hook in before:
                await _call(hook.body, self, f"before hook of task '{task}'")

            definition = self.tasks.lookup(task)
            if definition is not None:
                self.reporter.on_task(task)
                await _call(definition.body, self, f"task '{task}'")

            for hook in after:
                await _call(hook.body, self, f"after hook of task '{task}'")

    # Remote execution and transfers -----------------------------------

    @_tracked
    async def remote(
        self,
        role: RoleSpec | str | Sequence[str],
        commands: str | Sequence[str] | None = None,
        filter: Mapping[str, Any] | None = None,
        cd: str | None = None,
    ) -> RemoteResults:
        """Run shell commands on the hosts of one or more roles.

        Called with a single argument, the argument is the command(s) and
        every role is targeted. See RemoteDispatcher.run for the ordering
        and failure rules.

        Example:
            await ctx.remote("build", ["uname -a", "date"])
            await ctx.remote("hostname")                      # all roles
            await ctx.remote(["build", "app"], "hostname")
            await ctx.remote("build", "hostname", filter={"primary": True}, cd="tmp/")
        """
        if commands is None:
            role, commands = ALL_ROLES, role
        return await self._remote.run(role, commands, filter=filter, cd=cd)

    @_tracked
    async def upload(self, role: RoleSpec, local_path: str, remote_path: str) -> None:
        """Upload a local file or directory to the hosts of one or more roles.

        Relative local paths are resolved against the ``project_root``
        setting (default: the current directory).

        Example:
            await ctx.upload("app", "my_file", "new_name")
            await ctx.upload("app", "my_file", "a_dir/")
            await ctx.upload(["app", {"primary": True}], "some_dir", "new_dir")
        """
        await self._transfer.upload(
            role, local_path, remote_path, local_root=self.config_store.get("project_root")
        )

    @_tracked
    async def download(self, role: RoleSpec, remote_path: str, local_path: str) -> None:
        """Download a file or directory from the hosts of one or more roles.

        Example:
            await ctx.download("app", "my_file", "new_name")
            await ctx.download("app", "/foo/my_file", "/tmp/foo")
        """
        await self._transfer.download(role, remote_path, local_path)

    def dsl(self) -> dict[str, Callable[..., Any]]:
        """Names exposed to deployment scripts, bound to this context."""
        return {
            "ctx": self,
            "role": self.role,
            "config": self.config,
            "task": self.task,
            "before_task": self.before_task,
            "after_task": self.after_task,
            "invoke": self.invoke,
            "remote": self.remote,
            "upload": self.upload,
            "download": self.download,
            "load": self.load,
        }
