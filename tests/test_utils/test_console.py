"""Tests for colorful console logging."""

import logging

from pretty_please.utils.console import COLORS, ColorfulFormatter, configure_logging


def make_record(name: str, message: str, level: int = logging.INFO) -> logging.LogRecord:
    """Log record fixture."""
    return logging.LogRecord(name, level, __file__, 1, message, None, None)


def test_plain_format() -> None:
    """Without colors, columns are separated by pipes and the prefix dropped."""
    formatter = ColorfulFormatter(use_colors=False)

    line = formatter.format(make_record("pretty_please.services.batch", "Batch done"))

    parts = [p.strip() for p in line.split("|")]
    assert parts[1] == "INFO"
    assert parts[2] == "services.batch"
    assert parts[3] == "Batch done"
    assert "\033[" not in line


def test_highlights_addresses() -> None:
    """SSH addresses are highlighted when colors are on."""
    formatter = ColorfulFormatter(use_colors=True)

    line = formatter.format(
        make_record("pretty_please.services.multiplexer", "Opening ops@web1:22")
    )

    assert f"{COLORS['bright_magenta']}ops@web1:22{COLORS['reset']}" in line


def test_component_colors_prefer_specific_prefix() -> None:
    """The multiplexer color wins over the generic services color."""
    formatter = ColorfulFormatter()

    assert formatter._get_component_color("pretty_please.services.multiplexer") == (
        COLORS["bright_magenta"]
    )
    assert formatter._get_component_color("pretty_please.services.facts") == COLORS["cyan"]
    assert formatter._get_component_color("other") == COLORS["white"]


def test_configure_logging_sets_level() -> None:
    """configure_logging sets the package level and quiets asyncssh."""
    logger = logging.getLogger("pretty_please")
    saved = (logger.level, list(logger.handlers), logger.propagate)
    try:
        logger.handlers.clear()
        configure_logging("debug", use_colors=False)

        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert logging.getLogger("asyncssh").level == logging.WARNING
    finally:
        logger.setLevel(saved[0])
        logger.handlers[:] = saved[1]
        logger.propagate = saved[2]
