"""Install, verify and remove the shell history hook.

The hook is appended to the shell's startup file as::

    \\n<begin marker>\\n<body>\\n<end marker>\\n

and uninstall removes exactly that byte range, so install followed by
uninstall restores the startup file byte for byte.
"""

import logging

from pretty_please.config.store import InMemoryConfigStore
from pretty_please.errors import PleaseError
from pretty_please.hooks.scripts import BEGIN_MARKER, END_MARKER, generate_script
from pretty_please.models import HookResult, HookStatus, ShellKind
from pretty_please.protocols import HookMedium

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".pls-backup"


class UnpairedMarkersError(ValueError):
    """A begin marker has no matching end marker."""


def strip_hook_blocks(content: str) -> str:
    """Remove every marker-delimited hook block from startup file content.

    Each block takes its preceding separator newline and its trailing
    newline with it.

    Raises:
        UnpairedMarkersError: If a begin marker has no end marker after it
    """
    while True:
        begin = content.find(BEGIN_MARKER)
        if begin < 0:
            return content
        end = content.find(END_MARKER, begin)
        if end < 0:
            raise UnpairedMarkersError(f"{BEGIN_MARKER!r} without {END_MARKER!r}")

        start = begin
        if start > 0 and content[start - 1] == "\n":
            start -= 1
        stop = end + len(END_MARKER)
        if content[stop : stop + 1] == "\n":
            stop += 1
        content = content[:start] + content[stop:]


class ShellHookManager:
    """Manages the history hook for one scope (local machine or one target)."""

    def __init__(
        self,
        medium: HookMedium,
        store: InMemoryConfigStore,
    ) -> None:
        self.medium = medium
        self.store = store
        self._kind: ShellKind | None = None

    @property
    def scope(self) -> str:
        return self.medium.scope

    async def shell_kind(self) -> ShellKind:
        if self._kind is None:
            self._kind = await self.medium.detect_shell()
        return self._kind

    def generate_script(self, kind: ShellKind) -> str | None:
        """Hook snippet for a shell kind with the configured history limit."""
        if self.medium.startup_file(kind) is None:
            return None
        log_file, log_dir = self.medium.log_expressions(kind)
        return generate_script(kind, log_file, log_dir, self.store.shell_history_limit)

    async def is_installed(self, kind: ShellKind | None = None) -> bool:
        """Whether the startup file contains the begin marker."""
        kind = kind or await self.shell_kind()
        startup = self.medium.startup_file(kind)
        if startup is None:
            return False
        content = await self.medium.read(startup)
        return content is not None and BEGIN_MARKER in content

    async def install(self) -> HookResult:
        """Append the hook to the startup file.

        A no-op when the hook is already present. Backup failures are logged
        and do not abort the install.
        """
        kind = await self.shell_kind()
        startup = self.medium.startup_file(kind)
        script = self.generate_script(kind)
        if startup is None or script is None:
            return HookResult(False, f"Unsupported shell: {kind.value}")

        try:
            content = await self.medium.read(startup)
            if content is not None and BEGIN_MARKER in content:
                return HookResult(True, f"Shell hook already installed in {startup}")

            if content is not None:
                try:
                    await self.medium.copy(startup, startup + BACKUP_SUFFIX)
                except (OSError, PleaseError) as e:
                    logger.warning("Could not back up %s: %s", startup, e)

            await self.medium.write(startup, (content or "") + f"\n{script}\n")
            await self.medium.make_dirs(self.medium.log_dir)
        except (OSError, PleaseError) as e:
            logger.error("Installing shell hook into %s failed: %s", startup, e)
            return HookResult(False, f"Install failed: {e}")

        self.store.set_shell_hook(self.scope, True)
        logger.info("Installed %s hook into %s (%s)", kind.value, startup, self.scope)
        return HookResult(True, f"Shell hook installed in {startup}")

    async def uninstall(self) -> HookResult:
        """Remove the hook from the startup file and delete the hook log.

        A no-op when the hook is absent. Unpaired markers leave the file
        untouched and report failure.
        """
        kind = await self.shell_kind()
        startup = self.medium.startup_file(kind)
        if startup is None:
            return HookResult(False, f"Unsupported shell: {kind.value}", installing=False)

        try:
            content = await self.medium.read(startup)
            if content is None or BEGIN_MARKER not in content:
                return HookResult(True, "Shell hook not installed", installing=False)

            try:
                restored = strip_hook_blocks(content)
            except UnpairedMarkersError as e:
                return HookResult(
                    False, f"Cannot uninstall from {startup}: {e}", installing=False
                )

            await self.medium.write(startup, restored)
            await self.medium.remove(self.medium.log_path)
        except (OSError, PleaseError) as e:
            logger.error("Removing shell hook from %s failed: %s", startup, e)
            return HookResult(False, f"Uninstall failed: {e}", installing=False)

        self.store.set_shell_hook(self.scope, False)
        logger.info("Removed %s hook from %s (%s)", kind.value, startup, self.scope)
        return HookResult(True, f"Shell hook removed from {startup}", installing=False)

    async def reinstall(self, reason: str = "") -> HookResult:
        """Uninstall then install, picking up the current configuration."""
        if reason:
            logger.info("Reinstalling shell hook (%s): %s", self.scope, reason)
        removed = await self.uninstall()
        if not removed.success:
            return removed
        return await self.install()

    async def reinstall_for_limit_change(
        self, old_limit: int, new_limit: int
    ) -> HookResult | None:
        """Reinstall after the history limit changed, if the hook is enabled.

        Returns:
            The reinstall result, or None when nothing had to be done
        """
        if old_limit == new_limit or not self.store.get_shell_hook(self.scope):
            return None
        return await self.reinstall(f"history limit {old_limit} -> {new_limit}")

    async def status(self) -> HookStatus:
        kind = await self.shell_kind()
        return HookStatus(
            shell_kind=kind,
            startup_file=self.medium.startup_file(kind),
            installed=await self.is_installed(kind),
            enabled=self.store.get_shell_hook(self.scope),
            log_file=self.medium.log_path,
        )
