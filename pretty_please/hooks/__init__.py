"""Shell history hook generation and installation."""

from pretty_please.hooks.manager import ShellHookManager, strip_hook_blocks
from pretty_please.hooks.media import LocalHookMedium, RemoteHookMedium
from pretty_please.hooks.scripts import BEGIN_MARKER, END_MARKER, generate_script

__all__ = [
    "BEGIN_MARKER",
    "END_MARKER",
    "LocalHookMedium",
    "RemoteHookMedium",
    "ShellHookManager",
    "generate_script",
    "strip_hook_blocks",
]
