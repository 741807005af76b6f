import logging
import sys
from copy import copy
from typing import Optional

LOG_FORMAT = "%(levelname)s%(asctime)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty third-party loggers and the level they are capped at
QUIET_LOGGERS = {
    "azure": logging.WARNING,
    "azure.servicebus": logging.WARNING,
    "azure.identity": logging.WARNING,
    "uamqp": logging.ERROR,
    "uvicorn.error": logging.WARNING,
    "applicationinsights": logging.WARNING,
}


class CustomFormatter(logging.Formatter):
    """
    Formatter with fixed-width, optionally colored level names.
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[41m",  # Red background
    }
    RESET = "\033[0m"

    def __init__(self, *args, use_colors=True, **kwargs):
        super().__init__(*args, **kwargs)
        self.use_colors = use_colors

    def format(self, record):
        record_copy = copy(record)
        levelname = record_copy.levelname

        # uvicorn passes its own padded prefix
        if hasattr(record_copy, "levelprefix"):
            levelname = record_copy.levelprefix.strip()

        levelname = f"{levelname:<8}"

        if self.use_colors and levelname.strip() in self.COLORS:
            levelname = f"{self.COLORS[levelname.strip()]}{levelname}{self.RESET}"

        record_copy.levelname = levelname
        return super().format(record_copy)


def setup_logging(log_path: Optional[str] = None, debug: bool = False) -> None:
    """
    Configure logging for the worker.

    Args:
        log_path: Optional path to log file
        debug: Whether to enable debug logging
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)
    root_logger.handlers.clear()

    if log_path:
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(
            CustomFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT, use_colors=False)
        )
        root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(
        CustomFormatter(
            fmt=LOG_FORMAT,
            datefmt=DATE_FORMAT,
            use_colors=sys.stdout.isatty(),
        )
    )
    root_logger.addHandler(console_handler)

    logging.getLogger("busworq").setLevel(logging.DEBUG if debug else logging.INFO)
    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def get_uvicorn_log_config() -> dict:
    """
    Get Uvicorn logging config that matches our standard format.

    Returns:
        dict: Uvicorn logging configuration
    """
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "()": CustomFormatter,
                "fmt": LOG_FORMAT,
                "datefmt": DATE_FORMAT,
                "use_colors": True,
            },
        },
        "handlers": {
            "default": {
                "formatter": "default",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
            "uvicorn.error": {"level": "WARNING", "propagate": True},
            "uvicorn.access": {
                "handlers": ["default"],
                "level": "WARNING",
                "propagate": False,
            },
        },
    }
