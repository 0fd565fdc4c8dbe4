"""
Logging Utility for the Relay Server

Provides readable, structured logging with:
- Color-coded log levels
- Icons per component
- Pretty printing for event payloads
- Connection-scoped inbound/outbound event lines
"""

import logging
import sys
from datetime import datetime
from typing import Any, Dict, Optional

# ANSI color codes for terminal output
class Colors:
    """ANSI color codes for terminal output."""
    RESET = '\033[0m'
    BOLD = '\033[1m'

    # Log levels
    DEBUG = '\033[36m'      # Cyan
    INFO = '\033[32m'       # Green
    WARNING = '\033[33m'    # Yellow
    ERROR = '\033[31m'      # Red
    CRITICAL = '\033[35m'   # Magenta

    SECTION = '\033[94m'    # Bright Blue

    # Data
    KEY = '\033[93m'        # Bright Yellow
    VALUE = '\033[92m'      # Bright Green
    TIMESTAMP = '\033[90m'  # Dark Gray


class ColoredFormatter(logging.Formatter):
    """Formatter with colors and component icons."""

    ICONS = {
        'DEBUG': '🔍',
        'INFO': 'ℹ️',
        'WARNING': '⚠️',
        'ERROR': '❌',
        'CRITICAL': '🚨',
    }

    # Keyed by the last component of the logger name
    COMPONENT_ICONS = {
        'main': '🔌',
        'conversation_tutor': '💬',
        'streaming_relay': '📡',
        'user_profile_manager': '📚',
        'dialogue_provider': '🤖',
        'quota_engine': '📈',
    }

    LEVEL_COLORS = {
        'DEBUG': Colors.DEBUG,
        'INFO': Colors.INFO,
        'WARNING': Colors.WARNING,
        'ERROR': Colors.ERROR,
        'CRITICAL': Colors.CRITICAL,
    }

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        icon = self.COMPONENT_ICONS.get(record.name.split('.')[-1], self.ICONS.get(record.levelname, '•'))
        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]

        if self.use_colors:
            level_color = self.LEVEL_COLORS.get(record.levelname, Colors.RESET)
            reset = Colors.RESET
            timestamp_color = Colors.TIMESTAMP
            bold = Colors.BOLD
        else:
            level_color = reset = timestamp_color = bold = ''

        formatted = (
            f"{timestamp_color}[{timestamp}]{reset} "
            f"{icon} {level_color}{record.levelname:8s}{reset} "
            f"{bold}{record.name}{reset} "
            f"| {record.getMessage()}"
        )

        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"

        return formatted


class StructuredLogger:
    """Logger that pretty prints payload dictionaries."""

    def __init__(self, name: str, logger: Optional[logging.Logger] = None):
        self.name = name
        self.logger = logger or logging.getLogger(name)

    def _format_data(self, data: Any, indent: int = 2) -> str:
        """Format data structure for pretty printing."""
        if isinstance(data, dict):
            items = []
            for key, value in data.items():
                if isinstance(value, (dict, list)):
                    items.append(f"{' ' * indent}{key}: {self._format_data(value, indent + 2)}")
                else:
                    items.append(f"{' ' * indent}{key}: {value}")
            return "{\n" + "\n".join(items) + f"\n{' ' * (indent - 2)}}}"
        if isinstance(data, list):
            shown = data[:3] if len(data) > 5 else data
            items = ", ".join(str(item) for item in shown)
            if len(shown) < len(data):
                items += f", ... ({len(data)} items total)"
            return f"[{items}]"
        return str(data)

    def _with_data(self, message: str, data: Optional[Dict[str, Any]]) -> str:
        return f"{message}\n{self._format_data(data)}" if data else message

    def section(self, title: str, data: Optional[Dict[str, Any]] = None):
        """Log a banner line, used for startup and shutdown."""
        separator = "=" * 60
        self.logger.info(self._with_data(f"{separator}\n📋 {title.upper()}\n{separator}", data))

    def debug(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.debug(self._with_data(message, data))

    def info(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.info(self._with_data(message, data))

    def warning(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.warning(self._with_data(message, data))

    def error(self, message: str, error: Optional[Exception] = None, data: Optional[Dict[str, Any]] = None):
        """Log error message with exception and optional data."""
        error_info = f" Error: {type(error).__name__}: {error}" if error else ""
        self.logger.error(self._with_data(f"{message}{error_info}", data), exc_info=error)

    def success(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.info(self._with_data(f"✅ {message}", data))

    def event_in(self, event: str, connection_id: str, data: Optional[Dict[str, Any]] = None):
        """Log an inbound connection event."""
        self.logger.info(self._with_data(f"📥 {event} [{connection_id[:8]}]", data))

    def event_out(self, event: str, connection_id: str, data: Optional[Dict[str, Any]] = None):
        """Log an outbound connection event (debug level, chunks are chatty)."""
        self.logger.debug(self._with_data(f"📤 {event} [{connection_id[:8]}]", data))


def setup_logging(level: int = logging.INFO, use_colors: bool = True):
    """Setup logging configuration."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(use_colors=use_colors))

    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)

    # Suppress noisy loggers
    for noisy in ('asyncio', 'httpx', 'httpcore', 'openai', 'hpack', 'websockets', 'urllib3'):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(name, logging.getLogger(name))
