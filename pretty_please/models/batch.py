"""Batch fan-out results."""

from dataclasses import dataclass
from enum import Enum

from pretty_please.models.facts import SystemFacts


class BatchOutcome(Enum):
    """Aggregate result of a batch run, valued by its process exit code."""

    ALL_SUCCEEDED = 0
    PARTIAL = 1
    TOTAL_FAILURE = 2

    @property
    def exit_code(self) -> int:
        return self.value


@dataclass
class BatchProposal:
    """The command proposed for a single target."""

    target: str
    command: str
    facts: SystemFacts | None = None
    error: str | None = None


@dataclass
class BatchResult:
    """Result from a single target in a batch run."""

    target: str
    command: str
    exit_code: int
    output: str
    success: bool
    error: str | None = None
