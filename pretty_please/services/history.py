"""Shell history from the hook log, locally and on remote targets."""

import json
import logging
import os
from collections.abc import Callable, Iterable
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING

from pretty_please.errors import CommandTimeoutError, ConnectionError, ExecutionFailure
from pretty_please.models import RemoteTarget, ShellHistoryItem

if TYPE_CHECKING:
    from pretty_please.protocols import HistoryStore
    from pretty_please.services.runner import RemoteCommandRunner

logger = logging.getLogger(__name__)

HISTORY_FILE = "shell_history.jsonl"
REMOTE_HISTORY_PATH = "~/.please/shell_history.jsonl"


def parse_history_lines(lines: Iterable[str]) -> list[ShellHistoryItem]:
    """Decode hook log lines, skipping blank and malformed ones."""
    items: list[ShellHistoryItem] = []
    for line in lines:
        line = line.strip()
        if not line:
            continue
        try:
            items.append(ShellHistoryItem.from_dict(json.loads(line)))
        except (ValueError, KeyError, TypeError, AttributeError):
            logger.debug("Skipping malformed history line: %r", line)
    return items


def read_history_file(path: Path, limit: int | None = None) -> list[ShellHistoryItem]:
    """Read the last ``limit`` entries of a hook log. Missing files are empty."""
    try:
        lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
    except FileNotFoundError:
        return []
    items = parse_history_lines(lines)
    return items[-limit:] if limit else items


def format_shell_history(items: Iterable[ShellHistoryItem]) -> str:
    """Render history entries as numbered lines for a proposal call."""
    lines = []
    for index, item in enumerate(items, start=1):
        status = "ok" if item.exit == 0 else f"exit {item.exit}"
        lines.append(f"{index}. {item.cmd} ({status})")
    return "\n".join(lines)


class InMemoryHistoryStore:
    """Remote history cache kept in a dict."""

    def __init__(self) -> None:
        self._items: dict[str, list[ShellHistoryItem]] = {}

    def load(self, name: str) -> list[ShellHistoryItem]:
        return list(self._items.get(name, []))

    def save(self, name: str, items: list[ShellHistoryItem]) -> None:
        self._items[name] = list(items)

    def delete(self, name: str) -> None:
        self._items.pop(name, None)


class JsonlHistoryStore:
    """Remote history cache at ``<root>/<name>/shell_history.jsonl``."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def _path(self, name: str) -> Path:
        return self.root / name / HISTORY_FILE

    def load(self, name: str) -> list[ShellHistoryItem]:
        return read_history_file(self._path(name))

    def save(self, name: str, items: list[ShellHistoryItem]) -> None:
        path = self._path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(
            "".join(json.dumps(item.to_dict()) + "\n" for item in items),
            encoding="utf-8",
        )
        os.replace(tmp, path)

    def delete(self, name: str) -> None:
        self._path(name).unlink(missing_ok=True)


class ShellHistoryService:
    """Reads the local hook log and fetches remote ones with a cache fallback."""

    def __init__(
        self,
        runner: "RemoteCommandRunner",
        store: "HistoryStore",
        local_log: Path,
        limit: Callable[[], int],
    ) -> None:
        """Initialize service.

        Args:
            runner: Used to tail remote hook logs
            store: Cache for the last fetched remote history per target
            local_log: Local hook log path
            limit: Returns the configured number of entries to read
        """
        self.runner = runner
        self.store = store
        self.local_log = local_log
        self._limit = limit

    def local(self) -> list[ShellHistoryItem]:
        return read_history_file(self.local_log, self._limit())

    async def remote(self, target: RemoteTarget) -> list[ShellHistoryItem]:
        """Fetch a target's recent commands.

        Falls back to the cached copy when the target cannot be reached or
        the log cannot be read.
        """
        limit = self._limit()
        # A missing log means no history yet; any other failure falls back
        command = (
            f"if [ -f {REMOTE_HISTORY_PATH} ]; "
            f"then tail -n {limit} {REMOTE_HISTORY_PATH}; fi"
        )
        try:
            # Read from the login directory
            result = await self.runner.run(
                replace(target, working_directory=None), command
            )
            result.raise_for_status(command)
        except (ConnectionError, CommandTimeoutError, ExecutionFailure) as e:
            logger.warning(
                "Cannot fetch shell history from %s, using cache: %s",
                target.name,
                e.message,
            )
            return self.store.load(target.name)[-limit:]

        items = parse_history_lines(result.stdout.splitlines())
        self.store.save(target.name, items)
        return items
