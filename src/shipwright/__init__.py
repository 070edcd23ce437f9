"""Shipwright - role-based deployment orchestration.

Hosts are grouped into roles, work is organised into named tasks with
before/after hooks, and shell commands run on every host of a role in
lock-step over SSH.

Quick Start:
    from shipwright import DeployContext

    async with DeployContext() as ctx:
        ctx.role("app", ["app1.example.com", "app2.example.com"], user="deploy")

        @ctx.task("restart")
        async def restart(ctx):
            await ctx.remote("app", ["systemctl restart my_app"])

        await ctx.invoke("restart")
"""

__version__ = "0.1.0"

from shipwright.context import DeployContext
from shipwright.exceptions import (
    ConfigurationError,
    ExecutionError,
    RedefinitionWarning,
    ShipwrightError,
    TransferError,
    TransportError,
)
from shipwright.types import CommandResult, Host, RemoteResults, Role

__all__ = [
    "__version__",
    "DeployContext",
    "ShipwrightError",
    "ConfigurationError",
    "ExecutionError",
    "TransportError",
    "TransferError",
    "RedefinitionWarning",
    "CommandResult",
    "Host",
    "RemoteResults",
    "Role",
]
