"""Test CLI functionality."""

import textwrap

import pytest
from click.testing import CliRunner

from shipwright import __version__
from shipwright.cli import cli


@pytest.fixture
def deploy_file(tmp_path):
    """A deployment script whose role runs on the local machine."""
    marker = tmp_path / "markers"
    marker.mkdir()
    path = tmp_path / "deploy.py"
    path.write_text(textwrap.dedent(f"""
        role("local", ["localhost"], connection="local", workspace={str(marker)!r})
        role("local", ["localhost"], primary=True)

        @task("build")
        async def build(ctx):
            await remote("local", ["touch built", "echo building"])

        @task("fail")
        async def fail(ctx):
            await remote("local", ["exit 3", "touch never"])

        @task("notify")
        def notify(ctx):
            pass

        before_task("build", "notify")
        after_task("build", lambda ctx: None)
    """))
    return path


def test_cli_version():
    """Test CLI version output."""
    runner = CliRunner()
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_cli_help():
    """Test CLI help output."""
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "Shipwright" in result.output
    assert "invoke" in result.output
    assert "roles" in result.output
    assert "tasks" in result.output


def test_cli_invoke_requires_task():
    runner = CliRunner()
    result = runner.invoke(cli, ["invoke"])
    assert result.exit_code != 0


class TestInvoke:
    """Tests for shipwright invoke."""

    def test_invoke_runs_commands(self, deploy_file, tmp_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["invoke", "build", "-f", str(deploy_file)])

        assert result.exit_code == 0, result.output
        assert (tmp_path / "markers" / "built").exists()
        assert "[localhost] $ echo building" in result.output
        assert "[localhost] building" in result.output

    def test_quiet(self, deploy_file):
        runner = CliRunner()
        result = runner.invoke(cli, ["invoke", "build", "-f", str(deploy_file), "--quiet"])

        assert result.exit_code == 0
        assert "echo building" not in result.output

    def test_failure_exits_nonzero(self, deploy_file, tmp_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["invoke", "fail", "-f", str(deploy_file), "-q"])

        assert result.exit_code == 1
        assert "exited with status 3 on localhost" in result.output
        assert not (tmp_path / "markers" / "never").exists()

    def test_unknown_task_is_a_no_op(self, deploy_file, tmp_path):
        """A name with no body and no hooks runs nothing and still succeeds."""
        runner = CliRunner()
        result = runner.invoke(cli, ["invoke", "missing", "-f", str(deploy_file), "-q"])

        assert result.exit_code == 0
        assert "Error" not in result.output
        assert list((tmp_path / "markers").iterdir()) == []

    def test_missing_deploy_file(self, tmp_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["invoke", "build", "-f", str(tmp_path / "nope.py")])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_project_layout(self, tmp_path, monkeypatch):
        """Without -f, config/deploy.py and the environment file are loaded."""
        (tmp_path / "config" / "deploy").mkdir(parents=True)
        (tmp_path / "config" / "deploy.py").write_text(textwrap.dedent(f"""
            role("local", ["localhost"], connection="local", workspace={str(tmp_path)!r})
        """))
        (tmp_path / "config" / "deploy" / "staging.py").write_text(textwrap.dedent("""
            @task("hello")
            async def hello(ctx):
                await remote("local", "touch " + config("env"))
        """))
        monkeypatch.chdir(tmp_path)

        runner = CliRunner()
        result = runner.invoke(cli, ["invoke", "hello", "-e", "staging", "-q"])

        assert result.exit_code == 0, result.output
        assert (tmp_path / "staging").exists()


class TestListings:
    """Tests for shipwright roles and shipwright tasks."""

    def test_roles(self, deploy_file):
        runner = CliRunner()
        result = runner.invoke(cli, ["roles", "-f", str(deploy_file)])

        assert result.exit_code == 0
        assert "local (1 host):" in result.output
        assert "- localhost (connection='local'" in result.output
        assert "primary=True" in result.output

    def test_tasks(self, deploy_file):
        runner = CliRunner()
        result = runner.invoke(cli, ["tasks", "-f", str(deploy_file)])

        assert result.exit_code == 0
        assert f"build ({deploy_file}:5)" in result.output
        assert "before: invoke notify" in result.output
        assert "after: <lambda>" in result.output
        assert "fail (" in result.output
