"""Shell hook models."""

from dataclasses import dataclass
from enum import Enum

from pretty_please.errors import HookInstallError, HookUninstallError


class ShellKind(str, Enum):
    """Shells the history hook knows about."""

    ZSH = "zsh"
    BASH = "bash"
    POWERSHELL = "powershell"
    UNSUPPORTED = "unsupported"

    @classmethod
    def from_name(cls, name: str | None) -> "ShellKind":
        """Map a shell name or path (``/bin/zsh``, ``pwsh``) to a kind."""
        if not name:
            return cls.UNSUPPORTED
        base = name.strip().replace("\\", "/").rsplit("/", 1)[-1].lower()
        if base.endswith(".exe"):
            base = base[:-4]
        if base == "zsh":
            return cls.ZSH
        if base == "bash":
            return cls.BASH
        if base in ("pwsh", "powershell"):
            return cls.POWERSHELL
        return cls.UNSUPPORTED


@dataclass
class HookResult:
    """Outcome of a hook install/uninstall/reinstall."""

    success: bool
    message: str
    installing: bool = True

    def raise_for_status(self) -> None:
        """Raise the matching hook error when the operation failed."""
        if self.success:
            return
        if self.installing:
            raise HookInstallError(self.message)
        raise HookUninstallError(self.message)


@dataclass
class HookStatus:
    """Derived installation state of the hook for one scope."""

    shell_kind: ShellKind
    startup_file: str | None
    installed: bool
    enabled: bool
    log_file: str
