"""Loguru logging configuration for the taxonomy classification pipeline.

Call configure_logging() once at process startup (scripts, workers).
Library modules never configure logging themselves.
"""
import logging
import os
import sys

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

VALID_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")

# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ("httpx", "asyncpg", "LiteLLM", "litellm", "google_adk", "google_genai")


class InterceptHandler(logging.Handler):
    """
    Redirect standard library logging records to Loguru.

    Service modules in this project use logging.getLogger(__name__), as do
    asyncpg, httpx and LiteLLM. This handler makes all of them share the
    Loguru sinks configured below.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk back to the frame that issued the logging call
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def configure_logging(
    log_level: str | None = None,
    enable_json: bool | None = None,
    enable_file_logging: bool = False,
    log_file_path: str = "logs/classification.log",
) -> None:
    """
    Configure Loguru logging for the application.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ...). Defaults to the
                   LOG_LEVEL env var, then INFO.
        enable_json: Serialize records as JSON. Defaults to the LOG_JSON env var.
        enable_file_logging: Also write to a rotating log file
        log_file_path: Path for the log file

    Example:
        from config.log_config import configure_logging

        configure_logging()
        configure_logging(log_level="DEBUG", enable_file_logging=True)
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO")
    log_level = log_level.upper()
    if log_level not in VALID_LEVELS:
        log_level = "INFO"

    if enable_json is None:
        enable_json = os.getenv("LOG_JSON", "false").lower() in ("1", "true", "yes")

    logger.remove()

    if enable_json:
        logger.add(sys.stderr, level=log_level, serialize=True)
    else:
        logger.add(sys.stderr, format=CONSOLE_FORMAT, level=log_level, colorize=True)

    if enable_file_logging:
        logger.add(
            log_file_path,
            rotation="100 MB",
            retention="30 days",
            compression="zip",
            level=log_level,
            serialize=enable_json,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info(
        f"Logging configured: level={log_level}, json={enable_json}, "
        f"file={enable_file_logging}"
    )


__all__ = ["logger", "configure_logging", "InterceptHandler"]
