"""Shared fixtures for shipwright tests."""

import asyncio
import logging
from dataclasses import dataclass

import pytest

from shipwright.context import DeployContext
from shipwright.transport import Session, Transport
from shipwright.types import Host


@dataclass
class RunCall:
    """A command run recorded by the fake transport."""

    host: str
    command: str
    cwd: str | None


class FakeSession(Session):
    """Session that records what it is asked to do instead of doing it."""

    def __init__(self, transport: "FakeTransport", host: Host) -> None:
        self.transport = transport
        self.host = host

    @property
    def name(self) -> str:
        return self.host.name

    async def run(self, command: str, cwd: str | None = None) -> tuple[int, str, str]:
        key = (self.host.name, command)
        self.transport.events.append(("start", self.host.name, command))
        await asyncio.sleep(self.transport.delays.get(self.host.name, 0))
        self.transport.events.append(("end", self.host.name, command))
        self.transport.runs.append(RunCall(self.host.name, command, cwd))

        if key in self.transport.errors:
            raise self.transport.errors[key]
        status = self.transport.statuses.get(key, 0)
        return status, f"{self.host.name}: {command}\n", "oops\n" if status else ""

    async def put(self, local_path: str, remote_path: str, recursive: bool = False) -> None:
        self.transport.puts.append((self.host.name, local_path, remote_path, recursive))
        if self.host.name in self.transport.transfer_errors:
            raise self.transport.transfer_errors[self.host.name]

    async def get(self, remote_path: str, local_path: str, recursive: bool = False) -> None:
        self.transport.gets.append((self.host.name, remote_path, local_path, recursive))
        if self.host.name in self.transport.transfer_errors:
            raise self.transport.transfer_errors[self.host.name]


class FakeTransport(Transport):
    """Transport that hands out recording sessions.

    Commands succeed with exit status 0 unless configured otherwise with
    ``fail``; ``error`` makes a command raise instead of returning.
    """

    def __init__(self) -> None:
        self.events: list[tuple[str, str, str]] = []
        self.runs: list[RunCall] = []
        self.puts: list[tuple[str, str, str, bool]] = []
        self.gets: list[tuple[str, str, str, bool]] = []
        self.statuses: dict[tuple[str, str], int] = {}
        self.errors: dict[tuple[str, str], Exception] = {}
        self.transfer_errors: dict[str, Exception] = {}
        self.delays: dict[str, float] = {}
        self.opened: list[str] = []
        self.closed = False

    def fail(self, host: str, command: str, status: int = 1) -> None:
        self.statuses[(host, command)] = status

    def error(self, host: str, command: str, exc: Exception) -> None:
        self.errors[(host, command)] = exc

    def commands_for(self, host: str) -> list[str]:
        return [call.command for call in self.runs if call.host == host]

    async def open(self, host: Host) -> Session:
        self.opened.append(host.name)
        return FakeSession(self, host)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def restore_logging():
    """configure_logging replaces root handlers; put pytest's back afterwards."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.captureWarnings(False)


@pytest.fixture
def transport():
    """A fresh recording transport."""
    return FakeTransport()


@pytest.fixture
def ctx(transport):
    """A deploy context wired to the recording transport."""
    return DeployContext(transport=transport)
