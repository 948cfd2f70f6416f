import logging
import logging.config
from typing import Dict


LOGGING_CONFIG: Dict = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
            "level": "NOTSET",
        }
    },
    "loggers": {
        # httpx logs full request URLs, which carry the provider key on media fetches.
        "httpx": {"level": "WARNING"},
    },
    "root": {
        "handlers": ["console"],
        "level": "INFO",
    },
}


def configure_logging(level: str = "INFO") -> None:
    config = dict(LOGGING_CONFIG)
    config["root"] = dict(LOGGING_CONFIG["root"], level=level.upper())
    logging.config.dictConfig(config)
