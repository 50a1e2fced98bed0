"""Persisted user configuration.

``config.json`` under the config directory holds the hook flags, the
history limit, registered remotes, the default remote and remote groups.
The in-memory store has identical behavior without touching disk.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

LOCAL_SCOPE = "local"
DEFAULT_SHELL_HISTORY_LIMIT = 15

DEFAULTS: dict[str, Any] = {
    "shellHook": False,
    "shellHistoryLimit": DEFAULT_SHELL_HISTORY_LIMIT,
    "remoteHooks": {},
    "remotes": {},
    "defaultRemote": "",
    "groups": {},
}


class InMemoryConfigStore:
    """Config store backed by a dict."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data = copy.deepcopy(DEFAULTS)
        if data:
            self._data.update(copy.deepcopy(data))

    def _persist(self) -> None:
        """Write changes through. No-op for the in-memory store."""

    def snapshot(self) -> dict[str, Any]:
        """Return a deep copy of the stored data."""
        return copy.deepcopy(self._data)

    # Shell hook flags

    def get_shell_hook(self, scope: str = LOCAL_SCOPE) -> bool:
        """Whether the history hook is enabled for ``scope``.

        Args:
            scope: ``"local"`` or a remote target name
        """
        if scope == LOCAL_SCOPE:
            return bool(self._data.get("shellHook", False))
        return bool(self._data.get("remoteHooks", {}).get(scope, False))

    def set_shell_hook(self, scope: str, enabled: bool) -> None:
        if scope == LOCAL_SCOPE:
            self._data["shellHook"] = enabled
        else:
            self._data.setdefault("remoteHooks", {})[scope] = enabled
        self._persist()

    @property
    def shell_history_limit(self) -> int:
        value = self._data.get("shellHistoryLimit")
        if isinstance(value, int) and value >= 1:
            return value
        return DEFAULT_SHELL_HISTORY_LIMIT

    @shell_history_limit.setter
    def shell_history_limit(self, value: int) -> None:
        if value < 1:
            raise ValueError(f"shell_history_limit must be >= 1, got {value}")
        self._data["shellHistoryLimit"] = value
        self._persist()

    # Remotes

    def get_remotes(self) -> dict[str, dict[str, Any]]:
        return copy.deepcopy(self._data.get("remotes", {}))

    def save_remote(self, name: str, data: dict[str, Any]) -> None:
        self._data.setdefault("remotes", {})[name] = copy.deepcopy(data)
        self._persist()

    def delete_remote(self, name: str) -> bool:
        """Remove a remote and everything that references it.

        Returns:
            True if the remote existed
        """
        existed = self._data.get("remotes", {}).pop(name, None) is not None
        self._data.get("remoteHooks", {}).pop(name, None)
        if self._data.get("defaultRemote") == name:
            self._data["defaultRemote"] = ""
        for members in self._data.get("groups", {}).values():
            if name in members:
                members.remove(name)
        self._persist()
        return existed

    @property
    def default_remote(self) -> str | None:
        return self._data.get("defaultRemote") or None

    @default_remote.setter
    def default_remote(self, name: str | None) -> None:
        self._data["defaultRemote"] = name or ""
        self._persist()

    # Groups

    def get_groups(self) -> dict[str, list[str]]:
        return copy.deepcopy(self._data.get("groups", {}))

    def set_group(self, name: str, members: list[str]) -> None:
        self._data.setdefault("groups", {})[name] = list(members)
        self._persist()

    def delete_group(self, name: str) -> bool:
        existed = self._data.get("groups", {}).pop(name, None) is not None
        self._persist()
        return existed


class JsonConfigStore(InMemoryConfigStore):
    """Config store persisted to a JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(self._load(path))

    @staticmethod
    def _load(path: Path) -> dict[str, Any]:
        """Read the config file; missing or corrupted files yield defaults."""
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning("Cannot read config %s: %s", path, e)
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Config %s is corrupted, using defaults: %s", path, e)
            return {}

        if not isinstance(data, dict):
            logger.warning("Config %s is not an object, using defaults", path)
            return {}
        return data

    def _persist(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(self._data, indent=2) + "\n", encoding="utf-8")
        os.replace(tmp, self.path)
        logger.debug("Saved config to %s", self.path)
