"""Time-bounded cache of per-target system facts."""

import asyncio
import getpass
import json
import logging
import os
import platform
import shutil
import socket
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from pretty_please.config.store import LOCAL_SCOPE
from pretty_please.errors import CacheCorruption, ExecutionFailure
from pretty_please.models import RemoteTarget, SystemFacts
from pretty_please.utils.shell import default_shell

if TYPE_CHECKING:
    from pretty_please.services.runner import RemoteCommandRunner

logger = logging.getLogger(__name__)

FACTS_FILE = "sysinfo.json"

# (reported name, executable), first match wins
UNIX_PACKAGE_MANAGERS = (
    ("brew", "brew"),
    ("apt", "apt-get"),
    ("dnf", "dnf"),
    ("yum", "yum"),
    ("pacman", "pacman"),
    ("zypper", "zypper"),
    ("apk", "apk"),
)
WINDOWS_PACKAGE_MANAGERS = (("winget", "winget"), ("scoop", "scoop"), ("choco", "choco"))

TOOLS_TO_CHECK = (
    # Modern replacements for ls, find, grep, cat, diff, du, top
    "eza", "lsd", "exa", "fd", "fdfind", "rg", "ag", "ack", "bat", "batcat",
    "fzf", "skim", "jq", "yq", "fx", "delta", "diff-so-fancy", "zoxide", "z",
    "autojump", "tldr", "tealdeer", "dust", "duf", "ncdu", "procs", "bottom",
    "htop", "sd", "hyperfine",
    # Language package managers
    "pnpm", "yarn", "bun", "npm", "uv", "rye", "poetry", "pipenv", "pip",
    "cargo", "go", "gem", "bundle", "composer",
    # Containers and clusters
    "docker", "podman", "nerdctl", "kubectl", "k9s", "helm",
    # Version control and builds
    "git", "gh", "glab", "hg", "make", "cmake", "ninja", "just", "task",
    "curl", "wget", "aria2c", "rsync", "ssh", "tmux", "screen",
)

_PKG_COMMANDS = " ".join(command for _, command in UNIX_PACKAGE_MANAGERS)

PROBE_SCRIPT = (
    'echo "OS:$(uname -s)"; '
    'echo "OS_VERSION:$(uname -r)"; '
    'echo "ARCH:$(uname -m)"; '
    'echo "SHELL:$(basename "$SHELL")"; '
    'echo "HOSTNAME:$(hostname)"; '
    'echo "USER:$(id -un)"; '
    f'echo "PKG:$(for c in {_PKG_COMMANDS}; do '
    'command -v "$c" >/dev/null 2>&1 && { echo "$c"; break; }; done)"; '
    f'echo "COMMANDS:$(for c in {" ".join(TOOLS_TO_CHECK)}; do '
    "command -v \"$c\" >/dev/null 2>&1 && printf '%s ' \"$c\"; done)\""
)

PROBE_DEFAULTS = {
    "OS": "unknown",
    "OS_VERSION": "unknown",
    "ARCH": "unknown",
    "SHELL": "bash",
    "HOSTNAME": "unknown",
    "USER": "unknown",
    "PKG": "unknown",
    "COMMANDS": "",
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def package_manager_name(executable: str) -> str:
    """Report name for a package manager executable (``apt-get`` is ``apt``)."""
    for name, command in UNIX_PACKAGE_MANAGERS + WINDOWS_PACKAGE_MANAGERS:
        if command == executable:
            return name
    return executable or "unknown"


def detect_package_manager() -> str:
    """First system package manager found on this machine's PATH."""
    if platform.system() == "Windows":
        managers = WINDOWS_PACKAGE_MANAGERS
    else:
        managers = UNIX_PACKAGE_MANAGERS
    for name, command in managers:
        if shutil.which(command):
            return name
    return "unknown"


def detect_available_commands() -> tuple[str, ...]:
    return tuple(tool for tool in TOOLS_TO_CHECK if shutil.which(tool))


def current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


def parse_probe_output(output: str, cached_at: datetime) -> SystemFacts:
    """Parse ``KEY:value`` lines printed by the probe script.

    Lines are split on the first colon; missing or empty values fall back
    to defaults.
    """
    values = dict(PROBE_DEFAULTS)
    for line in output.splitlines():
        key, sep, value = line.partition(":")
        key = key.strip()
        if sep and key in values and value.strip():
            values[key] = value.strip()
    return SystemFacts(
        os=values["OS"],
        os_version=values["OS_VERSION"],
        shell=values["SHELL"],
        hostname=values["HOSTNAME"],
        cached_at=cached_at,
        arch=values["ARCH"],
        user=values["USER"],
        package_manager=package_manager_name(values["PKG"]),
        available_commands=tuple(values["COMMANDS"].split()),
    )


class SystemFactsCache:
    """Serves cached facts until they expire, probing the target on a miss.

    Entries live at ``<config_dir>/remotes/<name>/sysinfo.json`` for remote
    targets and ``<config_dir>/sysinfo.json`` for the local machine. Without
    a config dir, entries are kept in memory only.
    """

    def __init__(
        self,
        runner: "RemoteCommandRunner",
        config_dir: Path | None = None,
        ttl: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.runner = runner
        self.config_dir = config_dir
        self.ttl = ttl
        self._clock = clock
        self._memory: dict[str, SystemFacts] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _path(self, name: str) -> Path | None:
        if self.config_dir is None:
            return None
        if name == LOCAL_SCOPE:
            return self.config_dir / FACTS_FILE
        return self.config_dir / "remotes" / name / FACTS_FILE

    def _load(self, name: str) -> SystemFacts | None:
        """Read an entry.

        Raises:
            CacheCorruption: If the entry exists but cannot be decoded
        """
        path = self._path(name)
        if path is None:
            return self._memory.get(name)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheCorruption(f"Cannot read {path}", context=str(e)) from e
        try:
            return SystemFacts.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise CacheCorruption(f"Invalid facts cache {path}", context=str(e)) from e

    def _store(self, name: str, facts: SystemFacts) -> None:
        path = self._path(name)
        if path is None:
            self._memory[name] = facts
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(json.dumps(facts.to_dict(), indent=2), encoding="utf-8")
        os.replace(tmp, path)

    def peek(self, name: str = LOCAL_SCOPE) -> SystemFacts | None:
        """Return the stored entry regardless of age; corrupt entries are None."""
        try:
            return self._load(name)
        except CacheCorruption as e:
            logger.warning("Ignoring facts cache for %s: %s", name, e.message)
            return None

    def is_fresh(self, facts: SystemFacts) -> bool:
        return facts.cached_at + self.ttl >= self._clock()

    def invalidate(self, name: str = LOCAL_SCOPE) -> None:
        """Drop the entry for a target."""
        self._memory.pop(name, None)
        path = self._path(name)
        if path is not None:
            path.unlink(missing_ok=True)

    async def get(
        self, target: RemoteTarget | None = None, *, force: bool = False
    ) -> SystemFacts:
        """Return facts for a target, probing it when the entry is missing or stale.

        Args:
            target: Remote target, or None for the local machine
            force: Probe even if a fresh entry exists

        Raises:
            ExecutionFailure: If the probe command fails
            ConnectionError: If the target is unreachable
        """
        name = target.name if target is not None else LOCAL_SCOPE
        lock = self._locks.setdefault(name, asyncio.Lock())

        async with lock:
            if not force:
                cached = self.peek(name)
                if cached is not None and self.is_fresh(cached):
                    logger.debug("Facts cache hit for %s", name)
                    return cached

            logger.info("Probing system facts for %s", name)
            facts = await self._probe(target)
            self._store(name, facts)
            return facts

    async def _probe(self, target: RemoteTarget | None) -> SystemFacts:
        now = self._clock()
        if target is None:
            return SystemFacts(
                os=platform.system() or "unknown",
                os_version=platform.release() or "unknown",
                shell=Path(default_shell()).name,
                hostname=socket.gethostname() or "unknown",
                cached_at=now,
                arch=platform.machine() or "unknown",
                user=current_user(),
                package_manager=detect_package_manager(),
                available_commands=detect_available_commands(),
            )

        # Probe from the login directory
        result = await self.runner.run(
            replace(target, working_directory=None), PROBE_SCRIPT
        )
        if result.exit_code != 0:
            raise ExecutionFailure(PROBE_SCRIPT, result.exit_code, result.output)
        return parse_probe_output(result.stdout, now)
