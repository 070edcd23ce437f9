"""Deployment script loading for shipwright.

A deployment script is a Python file that defines roles, tasks and hooks.
It runs with the DSL names (``role``, ``task``, ``before_task``, ...)
already bound to a DeployContext, so a script needs no imports:

    role("build", ["build1.example.com"], user="deploy")

    @task("build")
    async def build(ctx):
        await remote("build", ["make release"])

Project layout used by load_environment:

    config/deploy.py            shared definitions
    config/deploy/<env>.py      environment-specific definitions
"""

import logging
import runpy
from pathlib import Path
from typing import Any

from .config import DEFAULT_ENV
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEPLOY_FILE = Path("config") / "deploy.py"
ENV_DIR = Path("config") / "deploy"


def load_script(ctx: Any, path: str | Path) -> dict[str, Any]:
    """Run a deployment script against a context.

    Args:
        ctx: DeployContext the script registers into
        path: Script file

    Returns:
        The script's resulting globals

    Raises:
        ConfigurationError: If the file does not exist
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Deployment script not found: {path}")

    logger.info(f"Loading deployment script {path}")
    return runpy.run_path(str(path), init_globals=ctx.dsl(), run_name="__shipwright__")


def load_environment(ctx: Any, env: str | None = None, root: str | Path = ".") -> list[Path]:
    """Load a project's deployment scripts for an environment.

    Sets ``env`` in the context configuration, then loads
    ``config/deploy.py`` followed by ``config/deploy/<env>.py`` if the
    environment file exists.

    Args:
        ctx: DeployContext to load into
        env: Environment name (default: production)
        root: Project root directory

    Returns:
        Scripts that were loaded, in order

    Raises:
        ConfigurationError: If ``config/deploy.py`` is missing
    """
    root = Path(root)
    env = env or DEFAULT_ENV
    ctx.config("env", env)

    loaded = [root / DEPLOY_FILE]
    load_script(ctx, loaded[0])

    env_file = root / ENV_DIR / f"{env}.py"
    if env_file.is_file():
        load_script(ctx, env_file)
        loaded.append(env_file)
    else:
        logger.debug(f"No environment file for {env} at {env_file}")

    return loaded
