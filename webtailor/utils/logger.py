"""
Logging utility for webtailor.
"""

import logging
import sys
from typing import Optional
from pathlib import Path

from ..config import settings


class Logger:
    """Centralized logging configuration."""

    _root: Optional[logging.Logger] = None

    @staticmethod
    def get_logger(name: str = "webtailor") -> logging.Logger:
        """
        Get or create a logger instance.

        The first call configures the shared ``webtailor`` parent logger with
        a console handler and a file handler; later calls only
        return child loggers that propagate to it.

        Args:
            name: Logger name

        Returns:
            Configured logger instance
        """
        if Logger._root is None:
            Logger._root = Logger._configure()

        if name == "webtailor" or name.startswith("webtailor."):
            return logging.getLogger(name)
        return logging.getLogger(f"webtailor.{name}")

    @staticmethod
    def _configure() -> logging.Logger:
        root = logging.getLogger("webtailor")
        level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
        root.setLevel(logging.DEBUG)

        # Console handler
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))
        root.addHandler(console_handler)

        # File handler
        try:
            log_dir = Path(settings.LOG_DIR)
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_dir / "webtailor.log", encoding="utf-8")
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
            ))
            root.addHandler(file_handler)
        except OSError as e:
            root.warning(f"[Logger] File logging disabled: {e}")

        return root


def get_logger(name: str = "webtailor") -> logging.Logger:
    """Convenience function to get a logger."""
    return Logger.get_logger(name)
