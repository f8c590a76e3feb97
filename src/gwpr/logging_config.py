import logging
from logging.config import dictConfig
from pathlib import Path

from .config import settings

# chatty third-party loggers kept at WARNING
QUIET_LOGGERS = ("matplotlib", "fiona", "pyogrio", "PIL", "numexpr")


def setup_logging(level: str | None = None, log_file: str | Path | None = None) -> None:
    """Console logging for the workflow, optionally mirrored to a run log file."""
    level_name = (level or settings.log_level).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)

    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
            "level": numeric_level,
        }
    }
    if log_file is not None:
        handlers["run_file"] = {
            "class": "logging.FileHandler",
            "formatter": "standard",
            "level": numeric_level,
            "filename": str(log_file),
            "mode": "w",
            "encoding": "utf-8",
        }

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {"format": "[%(asctime)s] [%(levelname)s] %(name)s - %(message)s"}
            },
            "handlers": handlers,
            "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
            "root": {"handlers": list(handlers), "level": numeric_level},
        }
    )


__all__ = ["setup_logging"]
