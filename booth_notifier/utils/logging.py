"""
Structured logging utilities for the BOOTH notifier.

This module configures the ``booth_notifier`` logger tree (console, rotating
main log, rotating error log and per-component logs) and provides the
structured ``ComponentLogger`` used by the orchestrator and error tracker.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

ROOT_LOGGER_NAME = "booth_notifier"

MB = 1024 * 1024


class ComponentLogger:
    """
    Structured logger for system components.

    Every message is emitted as a JSON document carrying the component name,
    a timestamp and any extra context.
    """

    def __init__(
        self, component_name: str, extra_context: Optional[Dict[str, Any]] = None
    ):
        self.component_name = component_name
        self.extra_context = extra_context or {}
        self.logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{component_name}")

    def _format_message(
        self, message: str, extra: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Build the structured record for one message."""
        return {
            "timestamp": datetime.now().isoformat(),
            "component": self.component_name,
            "message": message,
            **self.extra_context,
            **(extra or {}),
        }

    def _log(
        self,
        level: int,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        exc_info: bool = False,
    ):
        log_data = self._format_message(message, extra)
        if exc_info:
            log_data["exception"] = True
        self.logger.log(
            level,
            json.dumps(log_data, default=str, ensure_ascii=False),
            exc_info=exc_info,
        )

    def debug(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self._log(logging.DEBUG, message, extra)

    def info(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self._log(logging.INFO, message, extra)

    def warning(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self._log(logging.WARNING, message, extra)

    def error(
        self,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        exc_info: bool = False,
    ):
        self._log(logging.ERROR, message, extra, exc_info)

    def critical(
        self,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        exc_info: bool = False,
    ):
        self._log(logging.CRITICAL, message, extra, exc_info)


class LoggingManager:
    """
    Configures the logger tree and its rotating log files.
    """

    # Loggers that also write to a file of their own
    COMPONENTS = [
        "components.change_detector",
        "components.filter_engine",
        "components.destination_router",
        "components.message_dispatcher",
        "orchestrator",
    ]

    def __init__(self, log_dir: str = "logs", log_level: str = "INFO"):
        """
        Initialize logging manager.

        Args:
            log_dir: Directory for log files
            log_level: Level for the console, main and component logs
        """
        self.log_dir = Path(log_dir)
        self.log_level = getattr(logging, log_level.upper())

        self.log_dir.mkdir(parents=True, exist_ok=True)

        self._setup_logging()

    def _rotating_handler(
        self, filename: str, max_bytes: int, backups: int, level: int, fmt: str
    ) -> logging.Handler:
        handler = logging.handlers.RotatingFileHandler(
            self.log_dir / filename,
            maxBytes=max_bytes,
            backupCount=backups,
            encoding="utf-8",
        )
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(fmt))
        return handler

    def _setup_logging(self):
        fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        root_logger.setLevel(self.log_level)
        root_logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self.log_level)
        console_handler.setFormatter(logging.Formatter(fmt))
        root_logger.addHandler(console_handler)

        root_logger.addHandler(
            self._rotating_handler(
                "booth_notifier.log", 10 * MB, 5, self.log_level, fmt
            )
        )
        root_logger.addHandler(
            self._rotating_handler("errors.log", 5 * MB, 3, logging.ERROR, fmt)
        )

        for component in self.COMPONENTS:
            component_logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}")
            component_logger.handlers.clear()
            component_logger.addHandler(
                self._rotating_handler(
                    f"{component.split('.')[-1]}.log",
                    5 * MB,
                    2,
                    self.log_level,
                    "%(asctime)s - %(levelname)s - %(message)s",
                )
            )

    def set_log_level(self, level: str):
        """Change the level of every log except the error log."""
        log_level = getattr(logging, level.upper())

        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        root_logger.setLevel(log_level)

        for handler in root_logger.handlers:
            if str(getattr(handler, "baseFilename", "")).endswith("errors.log"):
                continue
            handler.setLevel(log_level)

        self.log_level = log_level


def setup_logging(log_dir: str = "logs", log_level: str = "INFO") -> LoggingManager:
    """
    Configure the booth_notifier logger tree.

    Args:
        log_dir: Directory for log files
        log_level: Default log level

    Returns:
        LoggingManager instance
    """
    return LoggingManager(log_dir, log_level)


def get_logger(
    component_name: str, extra_context: Optional[Dict[str, Any]] = None
) -> ComponentLogger:
    """
    Get a component logger.

    Works before ``setup_logging`` has been called; messages then go through
    whatever handlers the host application configured.
    """
    return ComponentLogger(component_name, extra_context)
