"""Tests for the lock-step remote dispatcher."""

import pytest

from shipwright.exceptions import ConfigurationError, ExecutionError, TransportError
from shipwright.remote import (
    normalize_commands,
    resolve_remote_path,
    resolve_working_directory,
)


class TestPaths:
    """Tests for remote path resolution."""

    def test_relative_joined_to_workspace(self):
        assert resolve_remote_path("tmp/", "/srv/build") == "/srv/build/tmp"

    def test_absolute_kept(self):
        assert resolve_remote_path("/var/log", "/srv/build") == "/var/log"

    def test_home_relative_kept(self):
        assert resolve_remote_path("~/app", "/srv/build") == "~/app"

    def test_no_workspace(self):
        assert resolve_remote_path("tmp", None) == "tmp"

    def test_working_directory_defaults_to_workspace(self):
        assert resolve_working_directory(None, "/srv/build") == "/srv/build"
        assert resolve_working_directory(None, None) is None

    def test_working_directory_relative_to_workspace(self):
        assert resolve_working_directory("releases", "/srv/build") == "/srv/build/releases"


class TestNormalizeCommands:
    def test_single_command(self):
        assert normalize_commands("hostname") == ["hostname"]

    def test_command_list(self):
        assert normalize_commands(["a", "b"]) == ["a", "b"]

    def test_non_string(self):
        with pytest.raises(ConfigurationError):
            normalize_commands(["a", 1])


class TestLockStep:
    """Tests for command ordering across hosts."""

    @pytest.mark.asyncio
    async def test_each_command_finishes_everywhere_before_next(self, ctx, transport):
        """No host starts command N+1 before every host finished command N."""
        ctx.role("app", ["fast", "slow"])
        transport.delays["slow"] = 0.05

        await ctx.remote("app", ["one", "two"])

        events = transport.events
        last_end_of_one = max(i for i, e in enumerate(events) if e[0] == "end" and e[2] == "one")
        first_start_of_two = min(i for i, e in enumerate(events) if e[0] == "start" and e[2] == "two")
        assert last_end_of_one < first_start_of_two

    @pytest.mark.asyncio
    async def test_hosts_run_concurrently(self, ctx, transport):
        """Every host starts a command before any of them finishes it."""
        ctx.role("app", ["a1", "a2", "a3"])
        transport.delays.update({"a1": 0.02, "a2": 0.02, "a3": 0.02})

        await ctx.remote("app", "uptime")

        kinds = [e[0] for e in transport.events]
        assert kinds == ["start"] * 3 + ["end"] * 3

    @pytest.mark.asyncio
    async def test_roles_run_sequentially(self, ctx, transport):
        ctx.role("build", ["b1"])
        ctx.role("app", ["a1"])
        transport.delays["b1"] = 0.02

        await ctx.remote(["build", "app"], ["one", "two"])

        assert [(e[1], e[2]) for e in transport.events if e[0] == "start"] == [
            ("b1", "one"),
            ("b1", "two"),
            ("a1", "one"),
            ("a1", "two"),
        ]

    @pytest.mark.asyncio
    async def test_shared_host_runs_once_per_role(self, ctx, transport):
        ctx.role("app", ["shared"])
        ctx.role("db", ["shared"])

        results = await ctx.remote(["app", "db"], "hostname")

        assert transport.commands_for("shared") == ["hostname", "hostname"]
        assert results.roles == ["app", "db"]


class TestResults:
    """Tests for result collection."""

    @pytest.mark.asyncio
    async def test_results_keyed_by_role_host_command(self, ctx):
        ctx.role("app", ["a1", "a2"])

        results = await ctx.remote("app", ["uname -a", "date"])

        assert list(results["app"]) == ["a1", "a2"]
        assert [r.command for r in results["app"]["a2"]] == ["uname -a", "date"]
        assert results["app"]["a1"][1].stdout == "a1: date\n"
        assert results.is_success()

    @pytest.mark.asyncio
    async def test_single_role_indexable_by_host(self, ctx):
        ctx.role("app", ["a1", "a2"])

        results = await ctx.remote("app", ["uname -a", "date"])

        assert results["a2"][1].command == "date"
        assert results["a2"] is results["app"]["a2"]

    @pytest.mark.asyncio
    async def test_multiple_roles_require_role_key(self, ctx):
        ctx.role("build", ["b1"])
        ctx.role("app", ["a1"])

        results = await ctx.remote(["build", "app"], "hostname")

        with pytest.raises(KeyError):
            results["a1"]

    @pytest.mark.asyncio
    async def test_single_argument_targets_all_roles(self, ctx, transport):
        ctx.role("build", ["b1"])
        ctx.role("app", ["a1"])

        results = await ctx.remote("hostname")

        assert results.roles == ["build", "app"]
        assert transport.commands_for("b1") == ["hostname"]
        assert transport.commands_for("a1") == ["hostname"]


class TestFailures:
    """Tests for abort semantics."""

    @pytest.mark.asyncio
    async def test_nonzero_exit_aborts_remaining_commands_and_roles(self, ctx, transport):
        ctx.role("app", ["a1", "a2"])
        ctx.role("db", ["d1"])
        transport.fail("a2", "two", status=3)

        with pytest.raises(ExecutionError) as exc_info:
            await ctx.remote(["app", "db"], ["one", "two", "three"])

        error = exc_info.value
        assert error.host == "a2"
        assert error.command == "two"
        assert error.exit_status == 3
        assert error.stderr == "oops\n"
        # The failing batch ran to completion on every host
        assert transport.commands_for("a1") == ["one", "two"]
        assert transport.commands_for("d1") == []
        assert [r.command for r in error.results["app"]["a1"]] == ["one", "two"]

    @pytest.mark.asyncio
    async def test_transport_error_is_wrapped(self, ctx, transport):
        ctx.role("app", ["a1", "a2"])
        transport.error("a1", "uptime", OSError("connection refused"))

        with pytest.raises(TransportError) as exc_info:
            await ctx.remote("app", ["uptime", "date"])

        assert exc_info.value.host == "a1"
        assert transport.commands_for("a2") == ["uptime"]

    @pytest.mark.asyncio
    async def test_unknown_role(self, ctx):
        with pytest.raises(ConfigurationError):
            await ctx.remote("missing", "hostname")


class TestFiltersAndDirectories:
    """Tests for host filters and working directories."""

    @pytest.mark.asyncio
    async def test_filter_keyword(self, ctx, transport):
        ctx.role("app", ["a1", "a2"])
        ctx.role("app", ["a1"], primary=True)

        results = await ctx.remote("app", "migrate", filter={"primary": True})

        assert list(results["app"]) == ["a1"]
        assert transport.commands_for("a2") == []

    @pytest.mark.asyncio
    async def test_inline_filter(self, ctx, transport):
        ctx.role("app", ["a1", "a2"])
        ctx.role("app", ["a2"], primary=True)

        await ctx.remote(["app", {"primary": True}], "migrate")

        assert transport.commands_for("a1") == []
        assert transport.commands_for("a2") == ["migrate"]

    @pytest.mark.asyncio
    async def test_filter_keyword_wins_over_inline(self, ctx, transport):
        ctx.role("app", ["a1"], zone="east")
        ctx.role("app", ["a2"], zone="west")

        await ctx.remote(["app", {"zone": "east"}], "uptime", filter={"zone": "west"})

        assert transport.commands_for("a1") == []
        assert transport.commands_for("a2") == ["uptime"]

    @pytest.mark.asyncio
    async def test_zero_matching_hosts_skips_role(self, ctx, transport):
        ctx.role("app", ["a1"])
        ctx.role("db", ["d1"], primary=True)

        results = await ctx.remote(["app", "db"], "uptime", filter={"primary": True})

        assert transport.commands_for("a1") == []
        assert transport.commands_for("d1") == ["uptime"]
        assert len(results["app"]) == 0

    @pytest.mark.asyncio
    async def test_workspace_is_default_directory(self, ctx, transport):
        ctx.role("app", ["a1"], workspace="/srv/app")

        await ctx.remote("app", "ls")

        assert transport.runs[0].cwd == "/srv/app"

    @pytest.mark.asyncio
    async def test_cd_relative_to_workspace(self, ctx, transport):
        ctx.role("app", ["a1"], workspace="/srv/app")

        await ctx.remote("app", "ls", cd="tmp/")

        assert transport.runs[0].cwd == "/srv/app/tmp"

    @pytest.mark.asyncio
    async def test_no_workspace_no_directory(self, ctx, transport):
        ctx.role("app", ["a1"])

        await ctx.remote("app", "ls")

        assert transport.runs[0].cwd is None
