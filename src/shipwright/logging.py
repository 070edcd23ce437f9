"""Logging setup for shipwright.

Console verbosity follows the number of -v flags (or an explicit level
name). A TRACE level sits below DEBUG for command text and host output.
The two context managers at the bottom wrap task invocations and
dispatcher calls.
"""

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator

BRIEF_FORMAT = "%(levelname)s [%(name)s] %(message)s"
DETAILED_FORMAT = "%(asctime)s %(levelname)s [%(name)s:%(funcName)s:%(lineno)d] %(message)s"

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# -v, -vv and -vvv; anything beyond stays at TRACE
_VERBOSITY = [logging.WARNING, logging.INFO, logging.DEBUG, TRACE]

_NAMED_LEVELS = {
    name.lower(): level
    for name, level in (
        ("TRACE", TRACE),
        ("DEBUG", logging.DEBUG),
        ("INFO", logging.INFO),
        ("WARNING", logging.WARNING),
        ("ERROR", logging.ERROR),
        ("CRITICAL", logging.CRITICAL),
    )
}


def get_level_from_verbosity(verbosity: int) -> int:
    """Map a count of -v flags to a logging level."""
    return _VERBOSITY[max(0, min(verbosity, len(_VERBOSITY) - 1))]


def get_level_from_name(level_name: str) -> int:
    """Map a level name such as "debug" or "TRACE" to a logging level.

    Raises:
        ValueError: If the name is not a known level
    """
    try:
        return _NAMED_LEVELS[level_name.lower()]
    except KeyError:
        raise ValueError(
            f"Invalid log level: {level_name}. Valid levels: {', '.join(_NAMED_LEVELS)}"
        ) from None


def configure_logging(
    level: int = logging.WARNING,
    debug: bool = False,
    log_file: str | Path | None = None,
    file_level: int | None = None,
) -> None:
    """Replace the root handlers with a console handler and an optional file.

    The console uses the detailed format once ``debug`` is set or the level
    drops to DEBUG; the file always does. Warnings raised through the
    warnings module, task redefinitions among them, are logged too.

    Args:
        level: Console level
        debug: Force the detailed console format
        log_file: Path of a log file; missing parent directories are created
        file_level: Level for the log file (defaults to ``level``)
    """
    file_level = file_level or level
    root = logging.getLogger()
    root.setLevel(min(level, file_level))
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    detailed = debug or level <= logging.DEBUG
    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(DETAILED_FORMAT if detailed else BRIEF_FORMAT))
    root.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path)
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter(DETAILED_FORMAT))
        root.addHandler(file_handler)

    logging.captureWarnings(True)


def _describe(message: str, context: dict[str, Any]) -> str:
    if not context:
        return message
    return f"{message} ({', '.join(f'{k}={v}' for k, v in context.items())})"


@contextmanager
def log_scope(
    logger: logging.Logger,
    message: str,
    level: int = logging.INFO,
    **context: Any,
) -> Generator[None, None, None]:
    """Log "Entering:" and "Exiting:" lines around a block, even if it raises."""
    described = _describe(message, context)
    logger.log(level, f"Entering: {described}")
    try:
        yield
    finally:
        logger.log(level, f"Exiting: {described}")


@contextmanager
def log_performance(
    logger: logging.Logger,
    operation: str,
    level: int = logging.INFO,
    **context: Any,
) -> Generator[None, None, None]:
    """Log how long a block took, as "<operation> completed in N.NNNs"."""
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - started
        logger.log(level, _describe(f"{operation} completed in {elapsed:.3f}s", context))
