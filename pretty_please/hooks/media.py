"""Where hook operations happen: the local filesystem or a remote target.

Both media expose the same small async file API so the hook manager runs
one algorithm for local and remote installs.
"""

import logging
import os
import platform
import shutil
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING

from pretty_please.config.store import LOCAL_SCOPE
from pretty_please.errors import ExecutionFailure
from pretty_please.hooks.scripts import posix_double_quote, powershell_single_quote
from pretty_please.models import RemoteTarget, ShellKind
from pretty_please.utils.shell import detect_shell

if TYPE_CHECKING:
    from pretty_please.services.runner import RemoteCommandRunner

logger = logging.getLogger(__name__)

# Exit status the remote read uses to report a missing file
MISSING_FILE_EXIT = 44

REMOTE_LOG_DIR = "$HOME/.please"
REMOTE_LOG_FILE = "$HOME/.please/shell_history.jsonl"

REMOTE_STARTUP_FILES = {
    ShellKind.ZSH: "$HOME/.zshrc",
    ShellKind.BASH: "$HOME/.bashrc",
}


def _atomic_write(path: Path, content: str) -> None:
    """Replace a file's content, writing through symlinks and keeping its mode."""
    path = path.resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".pls-tmp")
    tmp.write_text(content, encoding="utf-8", newline="")
    if path.exists():
        shutil.copymode(path, tmp)
    os.replace(tmp, path)


class LocalHookMedium:
    """Hook operations on this machine."""

    scope = LOCAL_SCOPE

    def __init__(
        self,
        log_file: Path,
        home: Path | None = None,
        shell: ShellKind | None = None,
    ) -> None:
        """Initialize medium.

        Args:
            log_file: Local hook log path
            home: Home directory holding the startup files
            shell: Shell kind to manage, detected from $SHELL if None
        """
        self.log_file = log_file
        self.home = home or Path.home()
        self._shell = shell

    async def detect_shell(self) -> ShellKind:
        return self._shell or detect_shell()

    def startup_file(self, kind: ShellKind) -> str | None:
        if kind is ShellKind.ZSH:
            return str(self.home / ".zshrc")
        if kind is ShellKind.BASH:
            if platform.system() == "Darwin":
                return str(self.home / ".bash_profile")
            return str(self.home / ".bashrc")
        if kind is ShellKind.POWERSHELL:
            if os.name == "nt":
                profile = Path("Documents", "PowerShell")
            else:
                profile = Path(".config", "powershell")
            return str(self.home / profile / "Microsoft.PowerShell_profile.ps1")
        return None

    def log_expressions(self, kind: ShellKind) -> tuple[str, str]:
        """Log file and directory as quoted expressions for the hook script."""
        if kind is ShellKind.POWERSHELL:
            return (
                powershell_single_quote(str(self.log_file)),
                powershell_single_quote(str(self.log_file.parent)),
            )
        return (
            posix_double_quote(str(self.log_file)),
            posix_double_quote(str(self.log_file.parent)),
        )

    @property
    def log_path(self) -> str:
        return str(self.log_file)

    @property
    def log_dir(self) -> str:
        return str(self.log_file.parent)

    async def read(self, path: str) -> str | None:
        """Read a text file, None if it does not exist."""
        try:
            with open(path, encoding="utf-8", newline="") as f:
                return f.read()
        except FileNotFoundError:
            return None

    async def write(self, path: str, content: str) -> None:
        """Replace a file's content atomically."""
        _atomic_write(Path(path), content)

    async def copy(self, source: str, destination: str) -> None:
        shutil.copy2(source, destination)

    async def make_dirs(self, path: str) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    async def remove(self, path: str) -> None:
        Path(path).unlink(missing_ok=True)


class RemoteHookMedium:
    """Hook operations on a remote target, run through the command runner.

    Paths are shell expressions relative to ``$HOME`` and are always
    double-quoted so they expand on the target.
    """

    log_path = REMOTE_LOG_FILE
    log_dir = REMOTE_LOG_DIR

    def __init__(self, runner: "RemoteCommandRunner", target: RemoteTarget) -> None:
        self.runner = runner
        # Startup files live under $HOME regardless of the working directory
        self.target = replace(target, working_directory=None)

    @property
    def scope(self) -> str:
        return self.target.name

    async def _run(self, command: str, stdin: str | None = None) -> str:
        result = await self.runner.run(self.target, command, stdin=stdin)
        if result.exit_code != 0:
            raise ExecutionFailure(command, result.exit_code, result.output)
        return result.stdout

    async def detect_shell(self) -> ShellKind:
        """Detect the login shell of the target; anything but zsh is bash."""
        try:
            name = (await self._run('basename "$SHELL"')).strip()
        except ExecutionFailure:
            return ShellKind.BASH
        kind = ShellKind.from_name(name)
        return kind if kind in REMOTE_STARTUP_FILES else ShellKind.BASH

    def startup_file(self, kind: ShellKind) -> str | None:
        return REMOTE_STARTUP_FILES.get(kind)

    def log_expressions(self, kind: ShellKind) -> tuple[str, str]:
        return (
            posix_double_quote(REMOTE_LOG_FILE, expand=True),
            posix_double_quote(REMOTE_LOG_DIR, expand=True),
        )

    async def read(self, path: str) -> str | None:
        quoted = posix_double_quote(path, expand=True)
        command = f"if [ -f {quoted} ]; then cat {quoted}; else exit {MISSING_FILE_EXIT}; fi"
        result = await self.runner.run(self.target, command)
        if result.exit_code == MISSING_FILE_EXIT:
            return None
        if result.exit_code != 0:
            raise ExecutionFailure(command, result.exit_code, result.output)
        return result.stdout

    async def write(self, path: str, content: str) -> None:
        """Replace a remote file atomically by streaming content over stdin."""
        quoted = posix_double_quote(path, expand=True)
        tmp = posix_double_quote(path + ".pls-tmp", expand=True)
        await self._run(f"cat > {tmp} && mv {tmp} {quoted}", stdin=content)

    async def copy(self, source: str, destination: str) -> None:
        await self._run(
            f"cp {posix_double_quote(source, expand=True)} "
            f"{posix_double_quote(destination, expand=True)}"
        )

    async def make_dirs(self, path: str) -> None:
        await self._run(f"mkdir -p {posix_double_quote(path, expand=True)}")

    async def remove(self, path: str) -> None:
        await self._run(f"rm -f {posix_double_quote(path, expand=True)}")
