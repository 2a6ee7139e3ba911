import logging
import logging.config
import os
import sys

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE", "/tmp/blockbench.log")

# third-party loggers and the level they are held at
QUIET = {
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "uvicorn.access": "WARNING",
}


def build_logging_config(level: str = LOG_LEVEL, log_file: str | None = LOG_FILE) -> dict:
    """dictConfig for the benchmark: short lines on stdout, full detail in the file."""
    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "brief",
            "stream": sys.stdout,
        },
    }
    if log_file:
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "detailed",
            "filename": log_file,
            "mode": "a",
        }
    names = list(handlers)
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "brief": {
                "format": "%(asctime)s %(levelname)-6s %(message)s",
                "datefmt": "%H:%M:%S",
            },
            "detailed": {
                "format": "%(asctime)s %(levelname)-6s %(name)s:%(lineno)d %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": handlers,
        "loggers": {
            "blockbench": {"level": level, "handlers": names, "propagate": False},
            **{name: {"level": lvl, "handlers": names, "propagate": False} for name, lvl in QUIET.items()},
        },
        "root": {"level": "WARNING", "handlers": names},
    }


def setup_logging(level: str = LOG_LEVEL, log_file: str | None = LOG_FILE):
    logging.config.dictConfig(build_logging_config(level, log_file))
    os.environ.setdefault("PYTHONUNBUFFERED", "1")
