"""Application settings from environment variables.

Centralized environment variable parsing and validation.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Application settings from environment.

    Handles parsing, validation, and defaults for all env vars.
    """

    config_dir: Path = field(default_factory=lambda: Path.home() / ".please")

    # Execution
    command_timeout: int = field(default=0)  # 0 = no timeout
    max_steps: int = field(default=20)

    # SSH transport
    connect_timeout: int = field(default=10)
    idle_timeout: int = field(default=600)
    known_hosts: str | None = field(
        default_factory=lambda: str(Path.home() / ".ssh" / "known_hosts")
    )

    # Facts cache
    facts_ttl_days: int = field(default=7)

    # Logging
    log_level: str = field(default="WARNING")
    log_colors: bool = field(default=True)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables.

        Returns:
            Settings instance with values from environment
        """
        config_dir = os.getenv("PLS_CONFIG_DIR")
        return cls(
            config_dir=Path(config_dir).expanduser() if config_dir else Path.home() / ".please",
            command_timeout=cls._get_int("PLS_COMMAND_TIMEOUT", 0, minimum=0),
            max_steps=cls._get_int("PLS_MAX_STEPS", 20, minimum=1),
            connect_timeout=cls._get_int("PLS_CONNECT_TIMEOUT", 10, minimum=1),
            idle_timeout=cls._get_int("PLS_IDLE_TIMEOUT", 600, minimum=2),
            known_hosts=cls._get_known_hosts(),
            facts_ttl_days=cls._get_int("PLS_FACTS_TTL_DAYS", 7, minimum=0),
            log_level=os.getenv("PLS_LOG_LEVEL", "WARNING").upper(),
            log_colors=cls._get_bool("PLS_LOG_COLORS", True),
        )

    @property
    def history_file(self) -> Path:
        """Local hook log."""
        return self.config_dir / "shell_history.jsonl"

    @property
    def config_file(self) -> Path:
        return self.config_dir / "config.json"

    @property
    def remotes_dir(self) -> Path:
        """Per-target data directories live here."""
        return self.config_dir / "remotes"

    @staticmethod
    def _get_int(key: str, default: int, minimum: int | None = None) -> int:
        """Get integer from environment.

        Args:
            key: Environment variable key
            default: Default value if not set or invalid
            minimum: Smallest accepted value, if any

        Returns:
            Integer value from environment or default
        """
        value = os.getenv(key)
        if value is None:
            return default

        try:
            parsed = int(value)
        except ValueError:
            logger.warning("Invalid int for %s: %s, using default %d", key, value, default)
            return default

        if minimum is not None and parsed < minimum:
            logger.warning(
                "%s=%d below minimum %d, using default %d", key, parsed, minimum, default
            )
            return default
        return parsed

    @staticmethod
    def _get_bool(key: str, default: bool) -> bool:
        """Get boolean from environment.

        Args:
            key: Environment variable key
            default: Default value if not set

        Returns:
            Boolean value from environment or default
        """
        value = os.getenv(key)
        if value is None:
            return default
        return value.lower() in ("1", "true", "yes", "on")

    @staticmethod
    def _get_known_hosts() -> str | None:
        """Get known_hosts path from environment.

        Returns:
            Path to known_hosts, or None when verification is disabled
            with ``PLS_KNOWN_HOSTS=none``.
        """
        value = os.getenv("PLS_KNOWN_HOSTS", "").strip()
        if value.lower() == "none":
            return None
        if value:
            return str(Path(value).expanduser())
        return str(Path.home() / ".ssh" / "known_hosts")
