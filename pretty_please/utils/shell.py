"""Shell command utilities."""

import os
import re
import shlex
import shutil

from pretty_please.models import ShellKind

SHELL_BUILTINS = frozenset(
    [
        "cd", "pushd", "popd", "dirs",
        "history",
        "alias", "unalias",
        "export", "set", "unset", "declare", "local", "readonly",
        "source", ".",
        "jobs", "fg", "bg", "disown",
        "ulimit", "umask", "builtin", "command", "type", "enable", "hash",
        "help", "let", "read", "wait", "eval", "exec", "trap", "times", "shopt",
    ]
)  # fmt: skip

# Wrappers that run the following word as the real command
COMMAND_PREFIXES = ("sudo", "env", "nohup", "nice")

_SEPARATORS = re.compile(r"[;&|]+|\n+")


def quote_path(path: str) -> str:
    """Safely quote a path for shell commands.

    Args:
        path: File system path to quote

    Returns:
        Shell-safe quoted path
    """
    return shlex.quote(path)


def default_shell() -> str:
    """Return the user's login shell path."""
    return os.environ.get("SHELL") or "/bin/bash"


def detect_shell() -> ShellKind:
    """Detect the kind of the current user's shell."""
    if os.name == "nt" and not os.environ.get("SHELL"):
        return ShellKind.POWERSHELL
    return ShellKind.from_name(default_shell())


def local_shell_argv(command: str, shell: str | None = None) -> list[str]:
    """Build argv running ``command`` under the local shell with pipefail.

    Shells without a pipefail switch (fish, tcsh) run the command as is. A
    shell that cannot be found falls back to /bin/sh.

    Args:
        command: Shell command line
        shell: Shell path, defaults to the login shell

    Returns:
        Argument vector for ``create_subprocess_exec``
    """
    shell = shell or default_shell()
    kind = ShellKind.from_name(shell)
    if kind is ShellKind.BASH:
        return [shell, "-c", f"set -o pipefail; {command}"]
    if kind is ShellKind.ZSH:
        return [shell, "-c", f"setopt pipefail; {command}"]
    if kind is ShellKind.POWERSHELL:
        return [shell, "-NoProfile", "-Command", command]
    # fish and other login shells have no pipefail switch
    if shutil.which(shell):
        return [shell, "-c", command]
    return ["/bin/sh", "-c", command]


def extract_command_names(command: str) -> list[str]:
    """Return the command word of every segment of a command line.

    Segments are split on ``;``, ``&``, ``|`` and newlines; leading
    ``sudo``/``env``/``nohup``/``nice`` wrappers are skipped.
    """
    names: list[str] = []
    for part in _SEPARATORS.split(command):
        words = part.split()
        i = 0
        while i < len(words) and words[i] in COMMAND_PREFIXES:
            i += 1
        if i < len(words):
            names.append(words[i])
    return names


def detect_builtins(command: str) -> list[str]:
    """Find shell built-ins in a command, deduplicated in order of appearance.

    Built-ins run in a child shell have no effect on the user's session.
    """
    found: list[str] = []
    for name in extract_command_names(command):
        if name in SHELL_BUILTINS and name not in found:
            found.append(name)
    return found
