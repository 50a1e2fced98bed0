"""Data models for pretty-please."""

from pretty_please.models.batch import BatchOutcome, BatchProposal, BatchResult
from pretty_please.models.command import CommandResult, is_successful_exit
from pretty_please.models.facts import SystemFacts
from pretty_please.models.history import ShellHistoryItem
from pretty_please.models.hook import HookResult, HookStatus, ShellKind
from pretty_please.models.step import ExecutionStep, ProposalRequest, ProposedStep
from pretty_please.models.target import AuthMethod, PooledConnection, RemoteTarget

__all__ = [
    "AuthMethod",
    "BatchOutcome",
    "BatchProposal",
    "BatchResult",
    "CommandResult",
    "ExecutionStep",
    "HookResult",
    "HookStatus",
    "PooledConnection",
    "ProposalRequest",
    "ProposedStep",
    "RemoteTarget",
    "ShellHistoryItem",
    "ShellKind",
    "SystemFacts",
    "is_successful_exit",
]
