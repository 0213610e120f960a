import logging
import sys

LOGGER_NAME = "pollstate"

_TEXT_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s] %(message)s"
_JSON_FORMAT = (
    '{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
    '"name": "%(name)s", "message": "%(message)s"}'
)


def configure_logging(level: int | str = logging.INFO, json_format: bool = False) -> logging.Logger:
    """
    Configure the pollstate logger.

    Installs a single stdout handler; calling it again replaces that handler
    instead of stacking another.

    Args:
        level: Logging level (e.g., logging.INFO, "DEBUG")
        json_format: Emit one JSON object per line instead of text

    Returns:
        The configured package logger.
    """
    if isinstance(level, str):
        level = level.upper()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            _JSON_FORMAT if json_format else _TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"
        )
    )
    logger.addHandler(handler)

    # Keep records out of the host application's root handlers
    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Get ``pollstate.<name>``, or the package logger itself."""
    return logging.getLogger(f"{LOGGER_NAME}.{name}" if name else LOGGER_NAME)
