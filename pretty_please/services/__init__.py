"""Services for pretty-please."""

from pretty_please.services.batch import BatchExecutor, classify
from pretty_please.services.context import build_context_prompt
from pretty_please.services.facts import SystemFactsCache
from pretty_please.services.history import (
    InMemoryHistoryStore,
    JsonlHistoryStore,
    ShellHistoryService,
)
from pretty_please.services.multiplexer import ConnectionMultiplexer
from pretty_please.services.orchestrator import (
    ConfirmAction,
    Confirmation,
    SessionResult,
    SessionState,
    StepOrchestrator,
)
from pretty_please.services.runner import RemoteCommandRunner

__all__ = [
    "BatchExecutor",
    "ConfirmAction",
    "Confirmation",
    "ConnectionMultiplexer",
    "InMemoryHistoryStore",
    "JsonlHistoryStore",
    "RemoteCommandRunner",
    "SessionResult",
    "SessionState",
    "ShellHistoryService",
    "StepOrchestrator",
    "SystemFactsCache",
    "build_context_prompt",
    "classify",
]
