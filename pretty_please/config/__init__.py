"""Configuration for pretty-please."""

from pretty_please.config.registry import RemoteRegistry, parse_host_string
from pretty_please.config.settings import Settings
from pretty_please.config.store import (
    DEFAULT_SHELL_HISTORY_LIMIT,
    LOCAL_SCOPE,
    InMemoryConfigStore,
    JsonConfigStore,
)

__all__ = [
    "DEFAULT_SHELL_HISTORY_LIMIT",
    "LOCAL_SCOPE",
    "InMemoryConfigStore",
    "JsonConfigStore",
    "RemoteRegistry",
    "Settings",
    "parse_host_string",
]
