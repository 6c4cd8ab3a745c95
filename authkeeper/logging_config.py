"""
Logging configuration for Authkeeper.

Suppresses probe noise (health and metrics endpoints) from the uvicorn
access log while keeping application loggers on stdout.
"""

import logging
import logging.config
from typing import Dict, Any

PROBE_PATHS = ("/health", "/metrics", "/actuator/")


class HealthCheckFilter(logging.Filter):
    """Filter to suppress health check endpoint logs."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Filter out probe requests from uvicorn access logs."""
        if record.name == "uvicorn.access":
            message = record.getMessage()
            if "GET" in message and any(path in message for path in PROBE_PATHS):
                return False
        return True


def get_logging_config(level: str = "INFO") -> Dict[str, Any]:
    """Get logging configuration with health check suppression."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "health_check_filter": {
                "()": HealthCheckFilter
            }
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            },
            "access": {
                "format": "%(message)s"
            }
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout"
            },
            "access": {
                "class": "logging.StreamHandler",
                "formatter": "access",
                "stream": "ext://sys.stdout",
                "filters": ["health_check_filter"]
            }
        },
        "loggers": {
            "uvicorn": {
                "handlers": ["default"],
                "level": "INFO",
                "propagate": False
            },
            "uvicorn.error": {
                "handlers": ["default"],
                "level": "INFO",
                "propagate": False
            },
            "uvicorn.access": {
                "handlers": ["access"],
                "level": "INFO",
                "propagate": False
            },
            "authkeeper": {
                "handlers": ["default"],
                "level": level,
                "propagate": False
            }
        },
        "root": {
            "level": "INFO",
            "handlers": ["default"]
        }
    }
