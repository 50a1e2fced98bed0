"""Proposal and execution step models."""

from dataclasses import dataclass, field
from typing import Any

from pretty_please.models.facts import SystemFacts
from pretty_please.models.history import ShellHistoryItem


@dataclass(frozen=True)
class ProposedStep:
    """A command proposed by the AI for the next step."""

    command: str
    continue_requested: bool = False
    reasoning: str = ""
    next_hint: str = ""

    @property
    def gave_up(self) -> bool:
        """The AI produced no command and does not want to continue."""
        return not self.command.strip() and not self.continue_requested

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProposedStep":
        """Parse the ``{command, continue, reasoning, nextStepHint}`` object."""
        if not isinstance(data, dict):
            raise ValueError(f"Proposal must be an object, got {type(data).__name__}")
        command = data.get("command", "")
        if not isinstance(command, str):
            raise ValueError("Proposal 'command' must be a string")
        return cls(
            command=command,
            continue_requested=bool(data.get("continue", False)),
            reasoning=str(data.get("reasoning") or ""),
            next_hint=str(data.get("nextStepHint") or ""),
        )


@dataclass(frozen=True)
class ExecutionStep:
    """One executed step of a session, replayed into later proposals."""

    command: str
    continue_requested: bool
    reasoning: str
    next_hint: str
    exit_code: int
    output: str

    @classmethod
    def from_proposal(
        cls, proposal: ProposedStep, command: str, exit_code: int, output: str
    ) -> "ExecutionStep":
        return cls(
            command=command,
            continue_requested=proposal.continue_requested,
            reasoning=proposal.reasoning,
            next_hint=proposal.next_hint,
            exit_code=exit_code,
            output=output,
        )


@dataclass(frozen=True)
class ProposalRequest:
    """Everything a proposal function receives for one call."""

    prompt: str
    previous_steps: tuple[ExecutionStep, ...] = ()
    facts: SystemFacts | None = None
    shell_history: tuple[ShellHistoryItem, ...] = field(default_factory=tuple)
    target_name: str | None = None
    working_directory: str | None = None
