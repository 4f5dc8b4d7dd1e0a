"""
Logging setup for CLI commands.

Each command logs to its own file under the configured log directory, and to
the console when --verbose is given.
"""
import logging
from pathlib import Path

from imageguard.core.config import settings


def setup_cli_logging(name: str, verbose: bool = False) -> logging.Logger:
    """
    Configure and return the logger of one CLI command.

    Args:
        name: Command name, used for the logger and the log file name
        verbose: Also log DEBUG and above to the console
    """
    logger = logging.getLogger(f"imageguard.cli.{name}")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    try:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / f"cli_{name}.log", encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.setLevel(logging.DEBUG)
        logger.addHandler(file_handler)
    except OSError as e:
        logging.getLogger(__name__).warning(f"File logging disabled for CLI command {name}: {e}")

    if verbose:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        console_handler.setLevel(logging.DEBUG)
        logger.addHandler(console_handler)

    return logger
