"""
Logging utilities for the RF Sweep Measurement System.
"""

import sys
from datetime import datetime
from typing import Optional, Callable


LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40}


class Logger:
    """
    Console logger with level filtering, a bounded message buffer and
    callback support for front-end integration.
    """

    def __init__(
        self,
        callback: Optional[Callable[[str], None]] = None,
        level: str = "INFO",
        max_messages: int = 1000,
        stream=None
    ):
        """
        Initialize logger.

        Args:
            callback: Optional callback for log messages (e.g., a progress display)
            level: Minimum level that is emitted (DEBUG, INFO, WARNING, ERROR)
            max_messages: Number of formatted messages kept in memory
            stream: Output stream (stdout if None)
        """
        self._callback = callback
        self._messages = []
        self._max_messages = max_messages
        self._stream = stream
        self.set_level(level)

    def set_level(self, level: str):
        """Set minimum emitted level."""
        level = level.upper()
        if level not in LEVELS:
            raise ValueError(f"Unknown log level: {level}")
        self._level = level

    @property
    def level(self) -> str:
        return self._level

    def log(self, message: str, level: str = "INFO"):
        """
        Log a message.

        Args:
            message: Log message
            level: Log level (DEBUG, INFO, WARNING, ERROR)
        """
        if LEVELS.get(level, 20) < LEVELS[self._level]:
            return

        timestamp = datetime.now().strftime("%H:%M:%S")
        formatted = f"[{timestamp}] [{level}] {message}"

        self._messages.append(formatted)
        if len(self._messages) > self._max_messages:
            del self._messages[:-self._max_messages]

        print(formatted, file=self._stream or sys.stdout)

        if self._callback:
            self._callback(formatted)

    def debug(self, message: str):
        """Log debug message."""
        self.log(message, "DEBUG")

    def info(self, message: str):
        """Log info message."""
        self.log(message, "INFO")

    def warning(self, message: str):
        """Log warning message."""
        self.log(message, "WARNING")

    def error(self, message: str):
        """Log error message."""
        self.log(message, "ERROR")

    def get_messages(self, count: int = 100) -> list:
        """Get recent log messages."""
        return self._messages[-count:]

    def clear(self):
        """Clear log messages."""
        self._messages = []


_default_logger: Optional[Logger] = None


def get_logger() -> Logger:
    """Return the process-wide logger, creating it on first use."""
    global _default_logger
    if _default_logger is None:
        _default_logger = Logger()
    return _default_logger
