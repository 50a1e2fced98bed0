"""Dependency injection container for pretty-please.

Builds every component from Settings so callers (a CLI, tests) wire the
system in one place instead of reaching for module-level state.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

from pretty_please.config import (
    LOCAL_SCOPE,
    InMemoryConfigStore,
    JsonConfigStore,
    RemoteRegistry,
    Settings,
)
from pretty_please.hooks import LocalHookMedium, RemoteHookMedium, ShellHookManager
from pretty_please.models import HookResult, RemoteTarget
from pretty_please.protocols import HistoryStore, ProposalFunction
from pretty_please.services.batch import BatchExecutor
from pretty_please.services.facts import SystemFactsCache
from pretty_please.services.history import JsonlHistoryStore, ShellHistoryService
from pretty_please.services.multiplexer import ConnectionMultiplexer, PasswordPrompt
from pretty_please.services.orchestrator import Confirmer, StepOrchestrator
from pretty_please.services.runner import RemoteCommandRunner
from pretty_please.utils.console import configure_logging

logger = logging.getLogger(__name__)


@dataclass
class Dependencies:
    """Container for pretty-please dependencies.

    Example:
        deps = Dependencies.create()
        try:
            session = deps.orchestrator(propose=my_model, confirm=ask_user)
            result = await session.run("free disk space", deps.registry.get("web1"))
        finally:
            await deps.cleanup()
    """

    settings: Settings
    store: InMemoryConfigStore
    registry: RemoteRegistry
    multiplexer: ConnectionMultiplexer
    runner: RemoteCommandRunner
    facts: SystemFactsCache
    history: ShellHistoryService

    @classmethod
    def create(cls) -> "Dependencies":
        """Create dependencies from environment settings.

        Returns:
            Initialized Dependencies instance backed by config.json
        """
        settings = Settings.from_env()
        configure_logging(settings.log_level, settings.log_colors)
        return cls.from_settings(settings, JsonConfigStore(settings.config_file))

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: InMemoryConfigStore | None = None,
        history_store: HistoryStore | None = None,
        password_prompt: PasswordPrompt | None = None,
    ) -> "Dependencies":
        """Create dependencies with custom settings.

        Args:
            settings: Settings to build from
            store: Config store, in-memory if None
            history_store: Remote history cache, files under the config dir if None
            password_prompt: Override for the SSH password prompt
        """
        store = store if store is not None else InMemoryConfigStore()
        multiplexer = ConnectionMultiplexer(
            idle_timeout=settings.idle_timeout,
            connect_timeout=settings.connect_timeout,
            known_hosts=settings.known_hosts,
            password_prompt=password_prompt,
        )
        runner = RemoteCommandRunner(
            multiplexer, default_timeout=settings.command_timeout or None
        )
        facts = SystemFactsCache(
            runner,
            config_dir=settings.config_dir,
            ttl=timedelta(days=settings.facts_ttl_days),
        )
        history = ShellHistoryService(
            runner,
            history_store or JsonlHistoryStore(settings.remotes_dir),
            settings.history_file,
            limit=lambda: store.shell_history_limit,
        )
        return cls(
            settings=settings,
            store=store,
            registry=RemoteRegistry(store, settings.remotes_dir),
            multiplexer=multiplexer,
            runner=runner,
            facts=facts,
            history=history,
        )

    def hook_manager(self, target: RemoteTarget | None = None) -> ShellHookManager:
        """Hook manager for the local machine or one remote target."""
        if target is None:
            medium = LocalHookMedium(self.settings.history_file)
        else:
            medium = RemoteHookMedium(self.runner, target)
        return ShellHookManager(medium, self.store)

    def orchestrator(
        self, propose: ProposalFunction, confirm: Confirmer, **kwargs
    ) -> StepOrchestrator:
        """Session orchestrator wired to this container's runner and caches."""
        kwargs.setdefault("max_steps", self.settings.max_steps)
        return StepOrchestrator(
            self.runner,
            propose,
            confirm,
            facts=self.facts,
            history=self.history,
            **kwargs,
        )

    def batch(self, propose: ProposalFunction) -> BatchExecutor:
        return BatchExecutor(
            self.runner,
            self.registry,
            self.facts,
            self.history,
            propose,
            timeout=self.settings.command_timeout or None,
        )

    async def remove_target(self, name: str) -> bool:
        """Unregister a target, dropping its connection and cached data.

        Returns:
            False if the target was not registered
        """
        target = self.registry.find(name)
        if target is None:
            return False
        await self.multiplexer.close_connection(target)
        self.facts.invalidate(name)
        self.history.store.delete(name)
        return self.registry.remove(name)

    async def set_shell_history_limit(self, limit: int) -> list[HookResult]:
        """Change the history limit and reinstall every enabled hook.

        Returns:
            Results of the reinstalls that were needed
        """
        old = self.store.shell_history_limit
        self.store.shell_history_limit = limit

        results: list[HookResult] = []
        scopes: list[RemoteTarget | None] = [None, *self.registry.list_targets()]
        for target in scopes:
            scope = target.name if target else LOCAL_SCOPE
            if not self.store.get_shell_hook(scope):
                continue
            result = await self.hook_manager(target).reinstall_for_limit_change(old, limit)
            if result is not None:
                results.append(result)
        return results

    async def cleanup(self) -> None:
        """Clean up resources (close all connections)."""
        await self.multiplexer.close_all()
