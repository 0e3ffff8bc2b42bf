"""
Custom logging configuration to suppress per-poll request logs
"""

import logging
import logging.config
from typing import Dict, Any


class PollRequestFilter(logging.Filter):
    """Filter to suppress operation polling requests from httpx logs."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Filter out command result polls from httpx request logs."""
        if record.name == "httpx":
            message = record.getMessage()
            if "commandResults" in message and "GET" in message:
                return False  # The dispatcher logs its own progress
        return True


def get_logging_config(level: str = "INFO") -> Dict[str, Any]:
    """Get logging configuration with poll request suppression."""
    level = level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "poll_request_filter": {
                "()": PollRequestFilter
            }
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            }
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout"
            },
            "http": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
                "filters": ["poll_request_filter"]
            }
        },
        "loggers": {
            "httpx": {
                "handlers": ["http"],
                "level": "INFO" if level == "DEBUG" else "WARNING",
                "propagate": False
            },
            "kubeconverge": {
                "handlers": ["default"],
                "level": level,
                "propagate": False
            }
        },
        "root": {
            "level": level,
            "handlers": ["default"]
        }
    }


def configure_logging(level: str = "INFO") -> None:
    """Apply the logging configuration."""
    logging.config.dictConfig(get_logging_config(level))
