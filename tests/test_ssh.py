"""Tests for SSH configuration and session pooling."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from shipwright.ssh import SSHConfig, SSHSession, SSHTransport
from shipwright.types import Host


class TestSSHConfig:
    """Tests for SSHConfig."""

    def test_defaults_from_bare_host(self):
        config = SSHConfig.from_host(Host("build1.example.com"))

        assert config.hostname == "build1.example.com"
        assert config.port == 22
        assert config.username is None
        assert config.client_keys is None

    def test_attributes_map_to_options(self):
        host = Host("build1", {
            "address": "10.0.0.5",
            "user": "deploy",
            "port": 2222,
            "identity": "~/.ssh/id_rsa",
        })

        options = SSHConfig.from_host(host).to_asyncssh_options()

        assert options["host"] == "10.0.0.5"
        assert options["port"] == 2222
        assert options["username"] == "deploy"
        assert options["client_keys"] == ["~/.ssh/id_rsa"]
        assert "known_hosts" not in options

    def test_identity_list(self):
        config = SSHConfig.from_host(Host("b1", {"identity": ["k1", "k2"]}))
        assert config.client_keys == ["k1", "k2"]

    def test_silently_accept_hosts_disables_checking(self):
        options = SSHConfig.from_host(
            Host("b1", {"silently_accept_hosts": True})
        ).to_asyncssh_options()
        assert options["known_hosts"] is None

    def test_custom_known_hosts(self):
        options = SSHConfig.from_host(
            Host("b1", {"known_hosts": "/etc/ssh/known"})
        ).to_asyncssh_options()
        assert options["known_hosts"] == "/etc/ssh/known"

    def test_password_only_when_set(self):
        assert "password" not in SSHConfig("b1").to_asyncssh_options()
        assert SSHConfig("b1", password="pw").to_asyncssh_options()["password"] == "pw"


class TestSSHSession:
    """Tests for SSHSession with a mocked connection."""

    @pytest.mark.asyncio
    async def test_run_prefixes_working_directory(self):
        session = SSHSession(Host("b1"))
        conn = MagicMock()
        conn.is_closed.return_value = False
        conn.run = AsyncMock(return_value=MagicMock(stdout="out", stderr="", returncode=0))
        session._conn = conn

        result = await session.run("ls -la", cwd="/srv/app")

        conn.run.assert_awaited_once_with("cd /srv/app && ls -la", check=False)
        assert result == (0, "out", "")

    @pytest.mark.asyncio
    async def test_missing_exit_status(self):
        session = SSHSession(Host("b1"))
        conn = MagicMock()
        conn.is_closed.return_value = False
        conn.run = AsyncMock(return_value=MagicMock(stdout=b"out", stderr=None, returncode=None))
        session._conn = conn

        assert await session.run("true") == (-1, "out", "")


class TestSSHTransport:
    """Tests for session pooling."""

    @pytest.mark.asyncio
    async def test_same_host_reuses_session(self):
        transport = SSHTransport()
        one = await transport.open(Host("b1", {"user": "deploy"}))
        two = await transport.open(Host("b1", {"user": "deploy", "primary": True}))
        assert one is two

    @pytest.mark.asyncio
    async def test_different_user_gets_new_session(self):
        transport = SSHTransport()
        one = await transport.open(Host("b1", {"user": "deploy"}))
        two = await transport.open(Host("b1", {"user": "root"}))
        assert one is not two

    @pytest.mark.asyncio
    async def test_close_clears_pool(self):
        transport = SSHTransport()
        session = await transport.open(Host("b1"))
        await transport.close()
        assert await transport.open(Host("b1")) is not session
