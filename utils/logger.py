import sys
from pathlib import Path

import loguru

LOG_DIR = Path.home() / ".noidea"


def setup_logger(log_level="WARNING", log_file=LOG_DIR / "noidea.log"):
    """
    Set up a logger with console and file handlers.

    Console output stays quiet by default so that git hooks do not get
    cluttered; everything is still written to the log file.

    Args:
        log_level (str): The minimum level of logs to display on stderr.
        log_file (Path): The file to which logs should be written.
    """
    loguru.logger.remove()  # Remove default handler

    # Console logger
    loguru.logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        colorize=True,
    )

    # File logger
    try:
        loguru.logger.add(
            str(log_file),
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            rotation="5 MB",
            retention="7 days",
            backtrace=True,
            diagnose=False,
        )
    except OSError as e:
        loguru.logger.warning(f"File logging disabled, cannot write to {log_file}: {e}")

    return loguru.logger

# Initialize a default logger instance
logger = setup_logger()
