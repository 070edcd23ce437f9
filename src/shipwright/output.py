"""Console output for shipwright.

Provides callback-based reporting of what the dispatchers do: which
command is sent to which hosts, what each host printed back, and which
files are being transferred. Output is rendered with Rich.
"""

import sys
from abc import ABC, abstractmethod
from typing import Any

from rich.console import Console
from rich.markup import escape

from .types import CommandResult


class OutputReporter(ABC):
    """Base class for output reporters."""

    @abstractmethod
    def on_task(self, task: str) -> None:
        """Called when a task is invoked."""
        pass

    @abstractmethod
    def on_command(self, role: str, hosts: list[str], command: str) -> None:
        """Called before a command is dispatched to the hosts of a role."""
        pass

    @abstractmethod
    def on_command_result(self, result: CommandResult) -> None:
        """Called when a host finished a command."""
        pass

    @abstractmethod
    def on_upload(self, host: str, local_path: str, remote_path: str) -> None:
        """Called before a file is uploaded to a host."""
        pass

    @abstractmethod
    def on_download(self, host: str, remote_path: str, local_path: str) -> None:
        """Called before a file is downloaded from a host."""
        pass


class ConsoleReporter(OutputReporter):
    """Reports activity as human-readable text, one line per host.

    Example output:
        ==> deploy
        [build1] $ uname -a
        [build1] Linux build1 6.1.0 x86_64
        [app1] ↑ release.tar.gz -> /srv/app/release.tar.gz
    """

    def __init__(self, console: Console | None = None, output: Any = None) -> None:
        """Initialize console reporter.

        Args:
            console: Rich Console to use (creates new one if None)
            output: Output stream for a new console (defaults to sys.stdout)
        """
        self.console = console or Console(file=output or sys.stdout, highlight=False)

    def _emit(self, host: str, message: str, style: str = "") -> None:
        prefix = f"[bold cyan]{escape(f'[{host}]')}[/bold cyan]"
        body = escape(message)
        if style:
            body = f"[{style}]{body}[/{style}]"
        self.console.print(f"{prefix} {body}")

    def on_task(self, task: str) -> None:
        self.console.print(f"[bold]==> {escape(task)}[/bold]")

    def on_command(self, role: str, hosts: list[str], command: str) -> None:
        for host in hosts:
            self._emit(host, f"$ {command}", style="green")

    def on_command_result(self, result: CommandResult) -> None:
        for line in result.stdout.splitlines():
            self._emit(result.host, line)
        for line in result.stderr.splitlines():
            self._emit(result.host, line, style="yellow")
        if not result.success:
            self._emit(result.host, f"exited with status {result.exit_status}", style="bold red")

    def on_upload(self, host: str, local_path: str, remote_path: str) -> None:
        self._emit(host, f"↑ {local_path} -> {remote_path}", style="blue")

    def on_download(self, host: str, remote_path: str, local_path: str) -> None:
        self._emit(host, f"↓ {remote_path} -> {local_path}", style="blue")


class NullReporter(OutputReporter):
    """No-op reporter that discards all events."""

    def on_task(self, task: str) -> None:
        pass

    def on_command(self, role: str, hosts: list[str], command: str) -> None:
        pass

    def on_command_result(self, result: CommandResult) -> None:
        pass

    def on_upload(self, host: str, local_path: str, remote_path: str) -> None:
        pass

    def on_download(self, host: str, remote_path: str, local_path: str) -> None:
        pass


def create_reporter(enabled: bool, output: Any = None) -> OutputReporter:
    """Create an output reporter.

    Args:
        enabled: Whether console output is enabled
        output: Output stream (defaults to sys.stdout)

    Returns:
        OutputReporter instance
    """
    if not enabled:
        return NullReporter()
    return ConsoleReporter(output=output)
