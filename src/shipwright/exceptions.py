"""Shipwright exceptions.

Every failure raised by the engine derives from ShipwrightError so that
callers (and the CLI) can catch the whole family in one place. Nothing in
the engine recovers from these locally; they propagate out of ``invoke``,
``remote``, ``upload`` and ``download`` unchanged.
"""

from typing import Any


class ShipwrightError(Exception):
    """Base class for all shipwright errors.

    Attributes:
        msg: Human-readable error message
        details: Additional structured fields describing the failure

    Example:
        raise ShipwrightError("Deployment failed", role="app")
        # details: {"role": "app"}
    """

    def __init__(self, msg: str, **details: Any) -> None:
        super().__init__(msg)
        self.msg = msg
        self.details: dict[str, Any] = dict(details)

    def __str__(self) -> str:
        return self.msg


class ConfigurationError(ShipwrightError):
    """Raised for invalid role, filter, hook or task definitions.

    Always fatal to the defining call.
    """


class RedefinitionWarning(UserWarning):
    """Emitted when a task is redefined or needlessly overridden."""


class TransportError(ShipwrightError):
    """Raised when the transport fails to reach a host or run a command."""

    def __init__(self, msg: str, host: str, command: str | None = None) -> None:
        super().__init__(msg, host=host, command=command)
        self.host = host
        self.command = command


class ExecutionError(ShipwrightError):
    """Raised when a remote command exits with a non-zero status.

    Attributes:
        host: Host that reported the failure
        command: Command that failed
        exit_status: Non-zero exit status
        stdout: Captured standard output of the failing command
        stderr: Captured standard error of the failing command
        results: Everything collected by the remote call up to and including
            the failing command batch (a RemoteResults instance)
    """

    def __init__(
        self,
        host: str,
        command: str,
        exit_status: int,
        stdout: str = "",
        stderr: str = "",
        results: Any = None,
    ) -> None:
        msg = f"Command '{command}' exited with status {exit_status} on {host}"
        super().__init__(
            msg,
            host=host,
            command=command,
            exit_status=exit_status,
        )
        self.host = host
        self.command = command
        self.exit_status = exit_status
        self.stdout = stdout
        self.stderr = stderr
        self.results = results


class TransferError(ShipwrightError):
    """Raised when an upload or download cannot be completed.

    Covers missing local paths, unusable destinations and transport
    failures during the copy itself.
    """

    def __init__(
        self,
        msg: str,
        host: str | None = None,
        source: str | None = None,
        destination: str | None = None,
    ) -> None:
        super().__init__(msg, host=host, source=source, destination=destination)
        self.host = host
        self.source = source
        self.destination = destination
