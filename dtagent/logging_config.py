"""
Logging setup for the agent process.

Agent diagnostics go to stdout and, when configured, to an agent log file.
This is separate from the instance log sink, which only receives the
managed process output and the executor's audit lines.
"""

import logging
import logging.config
from pathlib import Path
from typing import Any, Dict, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Paths polled for liveness; their access lines are dropped
QUIET_PATHS = frozenset({"/health"})


class HealthCheckFilter(logging.Filter):
    """Drop uvicorn access lines for liveness polls."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name != "uvicorn.access":
            return True
        # uvicorn passes (client, method, path, http_version, status)
        args = record.args
        if isinstance(args, tuple) and len(args) >= 3:
            method, path = args[1], str(args[2]).split("?", 1)[0]
            return not (method == "GET" and path in QUIET_PATHS)
        message = record.getMessage()
        return not ("GET" in message and any(p in message for p in QUIET_PATHS))


def get_logging_config(level: str = "INFO", log_file: Optional[Path] = None) -> Dict[str, Any]:
    """
    Build the dictConfig for the agent.

    Args:
        level: Level of the dtagent loggers and the root logger
        log_file: Optional file also receiving agent and uvicorn error logs
    """
    level = level.upper()
    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "stream": "ext://sys.stdout",
        },
        "access": {
            "class": "logging.StreamHandler",
            "formatter": "access",
            "stream": "ext://sys.stdout",
            "filters": ["health_check_filter"],
        },
    }
    agent_handlers = ["console"]
    if log_file:
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "default",
            "filename": str(log_file),
            "encoding": "utf-8",
        }
        agent_handlers.append("file")

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"health_check_filter": {"()": HealthCheckFilter}},
        "formatters": {
            "default": {"format": LOG_FORMAT},
            "access": {"format": "%(asctime)s - access - %(message)s"},
        },
        "handlers": handlers,
        "loggers": {
            "dtagent": {"handlers": agent_handlers, "level": level, "propagate": False},
            "uvicorn.error": {"handlers": agent_handlers, "level": "INFO", "propagate": False},
            "uvicorn.access": {"handlers": ["access"], "level": "INFO", "propagate": False},
        },
        "root": {"level": level, "handlers": ["console"]},
    }


def configure_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """Apply the agent logging configuration. Call once at process startup."""
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(get_logging_config(level, log_file))
