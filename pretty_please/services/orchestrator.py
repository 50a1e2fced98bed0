"""The propose, confirm, execute, continue loop for one session.

States::

    PROPOSING -> CONFIRMING -> EXECUTING -> CONTINUING -> PROPOSING
                                        \\-> DONE

with terminal CANCELLED (only from CONFIRMING), FAILED and HALTED (a
local command contains a shell built-in). Whether to continue is decided
solely by the proposed step's ``continue_requested`` flag, never by the
exit status of the step that just ran.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from pretty_please.errors import CommandTimeoutError, ConnectionError, PleaseError
from pretty_please.models import (
    ExecutionStep,
    ProposalRequest,
    ProposedStep,
    RemoteTarget,
    ShellHistoryItem,
    SystemFacts,
)
from pretty_please.utils.shell import detect_builtins

if TYPE_CHECKING:
    from pretty_please.protocols import CommandRunner, ProposalFunction
    from pretty_please.services.facts import SystemFactsCache
    from pretty_please.services.history import ShellHistoryService

logger = logging.getLogger(__name__)

CONNECTION_FAILED_EXIT = 255
TIMEOUT_EXIT = 124
LAUNCH_FAILED_EXIT = 127


class SessionState(Enum):
    PROPOSING = "proposing"
    CONFIRMING = "confirming"
    EXECUTING = "executing"
    CONTINUING = "continuing"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"
    HALTED = "halted"

    @property
    def is_terminal(self) -> bool:
        return self in (
            SessionState.DONE,
            SessionState.CANCELLED,
            SessionState.FAILED,
            SessionState.HALTED,
        )


class ConfirmAction(Enum):
    ACCEPT = "accept"
    EDIT = "edit"
    CANCEL = "cancel"


@dataclass(frozen=True)
class Confirmation:
    """The user's answer to a proposed command."""

    action: ConfirmAction
    command: str | None = None

    @classmethod
    def accept(cls) -> "Confirmation":
        return cls(ConfirmAction.ACCEPT)

    @classmethod
    def edit(cls, command: str) -> "Confirmation":
        return cls(ConfirmAction.EDIT, command)

    @classmethod
    def cancel(cls) -> "Confirmation":
        return cls(ConfirmAction.CANCEL)


Confirmer = Callable[[ProposedStep, int], Awaitable[Confirmation]]
StateListener = Callable[[SessionState, int], None]


@dataclass
class SessionResult:
    """How a session ended."""

    state: SessionState
    steps: tuple[ExecutionStep, ...] = ()
    exit_code: int = 0
    reason: str = ""
    builtins: list[str] = field(default_factory=list)


class StepOrchestrator:
    """Drives one session, locally or against one remote target."""

    def __init__(
        self,
        runner: "CommandRunner",
        propose: "ProposalFunction",
        confirm: Confirmer,
        facts: "SystemFactsCache | None" = None,
        history: "ShellHistoryService | None" = None,
        max_steps: int = 20,
        timeout: float | None = None,
        on_state: StateListener | None = None,
        on_stdout: Callable[[str], None] | None = None,
        on_stderr: Callable[[str], None] | None = None,
    ) -> None:
        """Initialize orchestrator.

        Args:
            runner: Executes accepted commands
            propose: The AI call producing each step
            confirm: Asks the user to accept, edit or cancel a step
            facts: Source of system facts for the proposal context
            history: Source of recent shell history for the proposal context
            max_steps: Upper bound on executed steps per session
            timeout: Per-command timeout in seconds
            on_state: Notified on every state transition with the step number
            on_stdout: Receives stdout chunks of running commands
            on_stderr: Receives stderr chunks of running commands
        """
        if max_steps < 1:
            raise ValueError(f"max_steps must be >= 1, got {max_steps}")
        self.runner = runner
        self.propose = propose
        self.confirm = confirm
        self.facts = facts
        self.history = history
        self.max_steps = max_steps
        self.timeout = timeout
        self._on_state = on_state
        self._on_stdout = on_stdout
        self._on_stderr = on_stderr

    def _enter(self, state: SessionState, step_number: int) -> None:
        logger.debug("Session state %s (step %d)", state.value, step_number)
        if self._on_state:
            self._on_state(state, step_number)

    def _finish(
        self,
        state: SessionState,
        steps: list[ExecutionStep],
        step_number: int,
        exit_code: int = 0,
        reason: str = "",
        builtins: list[str] | None = None,
    ) -> SessionResult:
        self._enter(state, step_number)
        logger.info("Session %s after %d step(s)", state.value, len(steps))
        return SessionResult(
            state=state,
            steps=tuple(steps),
            exit_code=exit_code,
            reason=reason,
            builtins=builtins or [],
        )

    async def _context(
        self, target: RemoteTarget | None
    ) -> tuple[SystemFacts | None, tuple[ShellHistoryItem, ...]]:
        facts = await self.facts.get(target) if self.facts else None
        history: list[ShellHistoryItem] = []
        if self.history is not None:
            if target is None:
                history = self.history.local()
            else:
                history = await self.history.remote(target)
        return facts, tuple(history)

    async def _execute(
        self, target: RemoteTarget | None, command: str
    ) -> tuple[int, str, bool]:
        """Run a command. Any failure to complete it becomes a failed step."""
        try:
            result = await self.runner.run(
                target,
                command,
                timeout=self.timeout,
                on_stdout=self._on_stdout,
                on_stderr=self._on_stderr,
            )
        except ConnectionError as e:
            logger.warning("Step failed to reach %s: %s", e.target_name, e.message)
            return CONNECTION_FAILED_EXIT, e.message, False
        except CommandTimeoutError as e:
            return TIMEOUT_EXIT, e.message, False
        except OSError as e:
            logger.warning("Cannot start command: %s", e)
            return LAUNCH_FAILED_EXIT, str(e), False
        return result.exit_code, result.output, result.succeeded

    async def run(
        self, prompt: str, target: RemoteTarget | None = None
    ) -> SessionResult:
        """Run a session until it is done, cancelled, halted or fails.

        Args:
            prompt: The user's natural-language request
            target: Remote target, or None to run locally

        Returns:
            SessionResult with the terminal state and every executed step
        """
        steps: list[ExecutionStep] = []

        try:
            facts, history = await self._context(target)
        except PleaseError as e:
            logger.error("Cannot prepare session context: %s", e.message)
            return self._finish(SessionState.FAILED, steps, 0, 1, e.message)

        while True:
            step_number = len(steps) + 1
            if len(steps) >= self.max_steps:
                return self._finish(
                    SessionState.FAILED,
                    steps,
                    step_number,
                    1,
                    f"Stopped after {self.max_steps} steps",
                )

            self._enter(SessionState.PROPOSING, step_number)
            request = ProposalRequest(
                prompt=prompt,
                previous_steps=tuple(steps),
                facts=facts,
                shell_history=history,
                target_name=target.name if target else None,
                working_directory=target.working_directory if target else None,
            )
            try:
                proposal = await self.propose(request)
            except Exception as e:
                logger.error("Proposal failed: %s", e)
                return self._finish(SessionState.FAILED, steps, step_number, 1, str(e))

            if proposal.gave_up:
                return self._finish(
                    SessionState.FAILED,
                    steps,
                    step_number,
                    1,
                    proposal.reasoning or "No command could be proposed",
                )

            if not proposal.command.strip():
                # Nothing to run but the model wants another turn
                steps.append(
                    ExecutionStep.from_proposal(
                        proposal, "", 1, "No command was proposed for this step"
                    )
                )
                continue

            if target is None:
                builtins = detect_builtins(proposal.command)
                if builtins:
                    return self._finish(
                        SessionState.HALTED,
                        steps,
                        step_number,
                        reason=proposal.command,
                        builtins=builtins,
                    )

            self._enter(SessionState.CONFIRMING, step_number)
            decision = await self.confirm(proposal, step_number)
            if decision.action is ConfirmAction.CANCEL:
                return self._finish(SessionState.CANCELLED, steps, step_number)

            command = proposal.command
            if decision.action is ConfirmAction.EDIT and decision.command:
                command = decision.command
                if target is None:
                    builtins = detect_builtins(command)
                    if builtins:
                        return self._finish(
                            SessionState.HALTED,
                            steps,
                            step_number,
                            reason=command,
                            builtins=builtins,
                        )

            self._enter(SessionState.EXECUTING, step_number)
            exit_code, output, succeeded = await self._execute(target, command)
            steps.append(ExecutionStep.from_proposal(proposal, command, exit_code, output))

            if proposal.continue_requested:
                self._enter(SessionState.CONTINUING, step_number)
                continue

            return self._finish(
                SessionState.DONE, steps, step_number, 0 if succeeded else exit_code
            )
