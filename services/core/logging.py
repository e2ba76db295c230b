"""
Structured logging configuration for Tier Bot.

This module provides logging setup for development and production
environments, with handlers, formatters, and loggers for the reconciliation
engine, the Django apps, and the HTTP clients talking to Sui and Discord.
"""

import copy
import logging
import re
from pathlib import Path

# Get the base directory for log files (project root, not services/)
BASE_DIR = Path(__file__).resolve().parent.parent.parent
LOGS_DIR = BASE_DIR / "logs"

LOGS_DIR.mkdir(exist_ok=True)


class SensitiveDataFilter(logging.Filter):
    """
    Logging filter that redacts credentials from log messages.

    Discord bot tokens travel in ``Authorization: Bot <token>`` headers and
    show up in httpx debug output and exception reprs, so they are scrubbed
    together with bearer tokens, API keys and secrets.
    """

    def __init__(self):
        super().__init__()
        self.patterns = [
            # Discord bot authorization header
            (re.compile(r"(\bbot\s+)[a-zA-Z0-9\-._~+/]{20,}=*", re.IGNORECASE), r"\1[REDACTED_TOKEN]"),
            (
                re.compile(r"(bot[_-]?token[\"']?\s*[:=]\s*[\"']?)([^\"'\s,}]+)", re.IGNORECASE),
                r"\1[REDACTED_TOKEN]",
            ),
            # OAuth tokens (Bearer tokens, access tokens)
            (re.compile(r"(bearer\s+)[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE), r"\1[REDACTED_TOKEN]"),
            (
                re.compile(r"(access[_-]?token[\"']?\s*[:=]\s*[\"']?)([^\"'\s,}]+)", re.IGNORECASE),
                r"\1[REDACTED_TOKEN]",
            ),
            (
                re.compile(r"(password[\"']?\s*[:=]\s*[\"']?)([^\"'\s,}]+)", re.IGNORECASE),
                r"\1[REDACTED_PASSWORD]",
            ),
            (
                re.compile(r"(api[_-]?key[\"']?\s*[:=]\s*[\"']?)([^\"'\s,}]+)", re.IGNORECASE),
                r"\1[REDACTED_API_KEY]",
            ),
            (
                re.compile(
                    r"(client[_-]?secret[\"']?\s*[:=]\s*[\"']?)([^\"'\s,}]+)", re.IGNORECASE
                ),
                r"\1[REDACTED_SECRET]",
            ),
        ]

    def _redact(self, value: str) -> str:
        for pattern, replacement in self.patterns:
            value = pattern.sub(replacement, value)
        return value

    def filter(self, record):
        """
        Redact sensitive values from the record message and its string args.

        Always returns True: records are rewritten, never dropped.
        """
        if hasattr(record, "msg"):
            record.msg = self._redact(str(record.msg))

        if hasattr(record, "args") and record.args:
            if isinstance(record.args, dict):
                record.args = {
                    key: self._redact(value) if isinstance(value, str) else value
                    for key, value in record.args.items()
                }
            elif isinstance(record.args, (list, tuple)):
                filtered_args = [
                    self._redact(arg) if isinstance(arg, str) else arg for arg in record.args
                ]
                record.args = (
                    tuple(filtered_args) if isinstance(record.args, tuple) else filtered_args
                )

        return True


# Base logging configuration
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "sensitive_data": {
            "()": "services.core.logging.SensitiveDataFilter",
        }
    },
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {process:d} {thread:d} {message}",
            "style": "{",
        },
        "console_dev": {
            "format": "{asctime} {levelname:8} {name:20} {message}",
            "style": "{",
            "datefmt": "%H:%M:%S",
        },
        "console_journald": {
            "format": "[{levelname:8}] {name:30} {message}",
            "style": "{",
        },
        "structured": {
            "format": (
                "{asctime} [{levelname:8}] {name:30} PID:{process:5} TID:{thread:8} {message}"
            ),
            "style": "{",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": "DEBUG",
            "formatter": "console_dev",
            "filters": ["sensitive_data"],
        },
        "file_structured": {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "DEBUG",
            "formatter": "structured",
            "filename": LOGS_DIR / "application.log",
            "maxBytes": 10 * 1024 * 1024,  # 10MB
            "backupCount": 5,
            "filters": ["sensitive_data"],
        },
        "error_file": {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "ERROR",
            "formatter": "verbose",
            "filename": LOGS_DIR / "errors.log",
            "maxBytes": 10 * 1024 * 1024,  # 10MB
            "backupCount": 5,
            "filters": ["sensitive_data"],
        },
        "reconciliation_file": {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "DEBUG",
            "formatter": "structured",
            "filename": LOGS_DIR / "reconciliation.log",
            "maxBytes": 50 * 1024 * 1024,  # 50MB
            "backupCount": 10,
            "filters": ["sensitive_data"],
        },
    },
    "root": {
        "level": "INFO",
        "handlers": ["console", "file_structured"],
    },
    "loggers": {
        "django": {
            "handlers": ["console", "file_structured"],
            "level": "INFO",
            "propagate": False,
        },
        "django.db.backends": {
            "handlers": ["console", "file_structured"],
            "level": "WARNING",  # Set to DEBUG to see SQL queries
            "propagate": False,
        },
        # Application-specific loggers
        "services": {
            "handlers": ["console", "file_structured", "reconciliation_file"],
            "level": "DEBUG",
            "propagate": False,
        },
        "membership": {
            "handlers": ["console", "file_structured", "reconciliation_file"],
            "level": "DEBUG",
            "propagate": False,
        },
        "accounts": {
            "handlers": ["console", "file_structured"],
            "level": "DEBUG",
            "propagate": False,
        },
        "celery": {
            "handlers": ["console", "file_structured"],
            "level": "INFO",
            "propagate": False,
        },
        # HTTP client library logging
        "httpcore": {
            "handlers": ["console", "file_structured"],
            "level": "WARNING",  # Suppress verbose HTTP connection logs
            "propagate": False,
        },
        "httpx": {
            "handlers": ["console", "file_structured"],
            "level": "INFO",  # Show HTTP requests but not connection details
            "propagate": False,
        },
        "django.security": {
            "handlers": ["console", "error_file"],
            "level": "WARNING",
            "propagate": False,
        },
    },
}


def get_development_logging():
    """Get logging configuration optimized for development."""
    config = copy.deepcopy(LOGGING)

    config["handlers"]["console"]["level"] = "DEBUG"
    config["root"]["level"] = "DEBUG"

    return config


def get_production_logging():
    """Get logging configuration optimized for production."""
    config = copy.deepcopy(LOGGING)

    config["handlers"]["console"]["level"] = "WARNING"
    config["root"]["level"] = "WARNING"
    config["root"]["handlers"] = ["file_structured", "error_file"]

    return config


def get_logger(name: str):
    """
    Factory function for consistent logger creation.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)
