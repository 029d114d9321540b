import logging
import logging.config
import os
import sys

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("TXLANE_LOG_FILE")  # unset: console only

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")


def _config() -> dict:
    handlers = {
        "console": {"class": "logging.StreamHandler", "formatter": "default", "stream": sys.stdout},
        "activity": {"class": "logging.StreamHandler", "formatter": "activity", "stream": sys.stdout},
    }
    if LOG_FILE:
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "default",
            "filename": LOG_FILE,
            "delay": True,
        }
    sinks = ["console", "file"] if LOG_FILE else ["console"]

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)-7s %(name)s:%(lineno)d %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            # Activity lines are operator-facing; the source location is noise there
            "activity": {"format": "%(asctime)s %(levelname)-7s %(message)s", "datefmt": "%H:%M:%S"},
        },
        "handlers": handlers,
        "loggers": {
            "txlane": {"level": LOG_LEVEL, "handlers": sinks, "propagate": False},
            "txlane.activity": {
                "level": "DEBUG" if LOG_LEVEL == "DEBUG" else "INFO",
                "handlers": ["activity", "file"] if LOG_FILE else ["activity"],
                "propagate": False,
            },
            "uvicorn.access": {"level": "WARNING", "handlers": sinks, "propagate": False},
            "xrpl": {"level": "WARNING", "handlers": sinks, "propagate": False},
        },
        "root": {"level": "WARNING", "handlers": ["console"]},
    }


def setup_logging():
    """Apply the logging configuration."""
    logging.config.dictConfig(_config())
