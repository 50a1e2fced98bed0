"""Tests for the dependency container."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from pretty_please.config import InMemoryConfigStore, Settings
from pretty_please.dependencies import Dependencies
from pretty_please.hooks import BEGIN_MARKER, LocalHookMedium, RemoteHookMedium
from pretty_please.models import ShellHistoryItem
from pretty_please.services.history import InMemoryHistoryStore


@pytest.fixture
def deps(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Dependencies:
    """Container rooted at tmp_path with a fake home directory."""
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("SHELL", "/bin/zsh")
    (tmp_path / "home").mkdir()
    settings = Settings(config_dir=tmp_path / ".please", known_hosts=None, max_steps=7)
    return Dependencies.from_settings(
        settings, InMemoryConfigStore(), InMemoryHistoryStore()
    )


def test_from_settings_wires_components(deps: Dependencies) -> None:
    """Components share the same runner and multiplexer."""
    assert deps.runner.multiplexer is deps.multiplexer
    assert deps.facts.runner is deps.runner
    assert deps.history.runner is deps.runner
    assert deps.registry.store is deps.store


def test_orchestrator_uses_settings(deps: Dependencies) -> None:
    """max_steps defaults to the configured value."""
    orchestrator = deps.orchestrator(AsyncMock(), AsyncMock())
    assert orchestrator.max_steps == 7
    assert deps.orchestrator(AsyncMock(), AsyncMock(), max_steps=2).max_steps == 2


def test_hook_manager_media(deps: Dependencies) -> None:
    """Local and remote scopes get the matching medium."""
    target = deps.registry.add("web1", "ops@web1")

    assert isinstance(deps.hook_manager().medium, LocalHookMedium)
    assert isinstance(deps.hook_manager(target).medium, RemoteHookMedium)
    assert deps.hook_manager(target).scope == "web1"


@pytest.mark.asyncio
async def test_remove_target_drops_everything(deps: Dependencies) -> None:
    """Removing a target closes its transport and deletes cached data."""
    target = deps.registry.add("web1", "ops@web1")
    deps.history.store.save("web1", [ShellHistoryItem("ls", 0, "")])
    deps.multiplexer.close_connection = AsyncMock()
    deps.facts.invalidate = MagicMock()

    assert await deps.remove_target("web1") is True

    deps.multiplexer.close_connection.assert_awaited_once_with(target)
    deps.facts.invalidate.assert_called_once_with("web1")
    assert deps.history.store.load("web1") == []
    assert deps.registry.find("web1") is None
    assert await deps.remove_target("web1") is False


@pytest.mark.asyncio
async def test_set_limit_reinstalls_enabled_hooks(deps: Dependencies, tmp_path: Path) -> None:
    """Changing the limit rewrites the installed local hook."""
    manager = deps.hook_manager()
    await manager.install()

    results = await deps.set_shell_history_limit(40)

    content = (tmp_path / "home" / ".zshrc").read_text()
    assert [r.success for r in results] == [True]
    assert content.count(BEGIN_MARKER) == 1
    assert "tail -n 40" in content
    assert deps.store.shell_history_limit == 40


@pytest.mark.asyncio
async def test_set_limit_without_hooks(deps: Dependencies) -> None:
    """No hooks enabled means nothing to reinstall."""
    assert await deps.set_shell_history_limit(30) == []


@pytest.mark.asyncio
async def test_cleanup_closes_connections(deps: Dependencies) -> None:
    """Cleanup closes every transport."""
    deps.multiplexer.close_all = AsyncMock()
    await deps.cleanup()
    deps.multiplexer.close_all.assert_awaited_once()
