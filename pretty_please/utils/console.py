"""Colorful console logging."""

import logging
import os
import re
import sys
from datetime import datetime

# ANSI color codes
COLORS = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "magenta": "\033[35m",
    "cyan": "\033[36m",
    "white": "\033[37m",
    "bright_black": "\033[90m",
    "bright_red": "\033[91m",
    "bright_green": "\033[92m",
    "bright_yellow": "\033[93m",
    "bright_blue": "\033[94m",
    "bright_magenta": "\033[95m",
    "bright_cyan": "\033[96m",
    "bg_red": "\033[41m",
}

LEVEL_COLORS = {
    "DEBUG": COLORS["bright_black"],
    "INFO": COLORS["bright_green"],
    "WARNING": COLORS["bright_yellow"],
    "ERROR": COLORS["bright_red"],
    "CRITICAL": COLORS["bg_red"] + COLORS["white"] + COLORS["bold"],
}

# Component colors for logger names
COMPONENT_COLORS = {
    "pretty_please.services.multiplexer": COLORS["bright_magenta"],
    "pretty_please.services.orchestrator": COLORS["bright_cyan"],
    "pretty_please.services.batch": COLORS["bright_blue"],
    "pretty_please.services": COLORS["cyan"],
    "pretty_please.hooks": COLORS["yellow"],
    "pretty_please.config": COLORS["green"],
    "default": COLORS["white"],
}

PACKAGE_PREFIX = "pretty_please."

_SSH_PATTERN = re.compile(r"(\w[\w.\-]*@[\w.\-:]+:\d+)")
_DURATION_PATTERN = re.compile(r"(\d+\.?\d*m?s)\b")
_EXIT_PATTERN = re.compile(r"(exit(?:_code)?[= ]\d+)")


class ColorfulFormatter(logging.Formatter):
    """Log formatter with aligned columns and component highlighting."""

    def __init__(self, use_colors: bool = True) -> None:
        """Initialize the formatter.

        Args:
            use_colors: Whether to use ANSI colors.
        """
        super().__init__()
        self.use_colors = use_colors

    def _colorize(self, text: str, color: str) -> str:
        """Apply color to text if colors are enabled."""
        if not self.use_colors:
            return text
        return f"{color}{text}{COLORS['reset']}"

    def _get_component_color(self, name: str) -> str:
        """Get color for a logger name/component. Longest prefix wins."""
        for prefix, color in COMPONENT_COLORS.items():
            if prefix != "default" and name.startswith(prefix):
                return color
        return COMPONENT_COLORS["default"]

    def _format_timestamp(self, record: logging.LogRecord) -> str:
        dt = datetime.fromtimestamp(record.created)
        return f"{dt.strftime('%H:%M:%S')}.{int(record.msecs):03d}"

    def _format_level(self, record: logging.LogRecord) -> str:
        """Format log level with color and fixed width."""
        level = record.levelname
        color = LEVEL_COLORS.get(level, COLORS["white"])
        return self._colorize(f"{level:<8}", color)

    def _format_component(self, record: logging.LogRecord) -> str:
        name = record.name
        if name.startswith(PACKAGE_PREFIX):
            name = name[len(PACKAGE_PREFIX) :]
        color = self._get_component_color(record.name)
        return self._colorize(f"{name:<22}", color)

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with colors."""
        timestamp = self._colorize(self._format_timestamp(record), COLORS["dim"])
        level = self._format_level(record)
        component = self._format_component(record)
        sep = self._colorize("|", COLORS["dim"])
        message = self._highlight_message(record.getMessage())

        line = f"{timestamp} {sep} {level} {sep} {component} {sep} {message}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line

    def _highlight_message(self, message: str) -> str:
        """Highlight SSH addresses, durations and exit codes."""
        if not self.use_colors:
            return message

        message = _SSH_PATTERN.sub(
            f"{COLORS['bright_magenta']}\\1{COLORS['reset']}", message
        )
        message = _DURATION_PATTERN.sub(
            f"{COLORS['bright_yellow']}\\1{COLORS['reset']}", message
        )
        message = _EXIT_PATTERN.sub(f"{COLORS['cyan']}\\1{COLORS['reset']}", message)
        return message


def configure_logging(level: str | None = None, use_colors: bool | None = None) -> None:
    """Attach a colorful stderr handler to the pretty_please logger.

    Args:
        level: Log level name, defaults to ``PLS_LOG_LEVEL`` or WARNING
        use_colors: Force colors on/off, defaults to ``PLS_LOG_COLORS``;
            colors are always off when stderr is not a TTY
    """
    if level is None:
        level = os.getenv("PLS_LOG_LEVEL", "WARNING")
    if use_colors is None:
        use_colors = os.getenv("PLS_LOG_COLORS", "true").lower() != "false"
    if not sys.stderr.isatty():
        use_colors = False

    package_logger = logging.getLogger("pretty_please")
    package_logger.setLevel(getattr(logging, level.upper(), logging.WARNING))

    # Only add handler if not already configured
    if not package_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ColorfulFormatter(use_colors=use_colors))
        package_logger.addHandler(handler)
        package_logger.propagate = False

    # asyncssh logs every channel open at INFO
    logging.getLogger("asyncssh").setLevel(logging.WARNING)
