"""Protocol interfaces for dependency inversion.

Defines the seams the orchestrator, batch executor and hook manager
depend on, so tests and callers can substitute their own implementations.

Usage Example:

    from pretty_please.protocols import ProposalFunction

    async def propose(request: ProposalRequest) -> ProposedStep:
        reply = await my_model.complete(build_context_prompt(request))
        return ProposedStep.from_dict(json.loads(reply))

    orchestrator = deps.orchestrator(propose=propose, confirm=ask_user)
"""

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from pretty_please.models import (
    CommandResult,
    ProposalRequest,
    ProposedStep,
    RemoteTarget,
    ShellHistoryItem,
    ShellKind,
)


@runtime_checkable
class ProposalFunction(Protocol):
    """The AI call: turns a request into the next proposed step.

    Implementations may raise any exception; the orchestrator reports it as
    a failed session and the batch executor as a failed target.
    """

    async def __call__(self, request: ProposalRequest) -> ProposedStep:
        ...


@runtime_checkable
class CommandRunner(Protocol):
    """Runs one command locally (target None) or on a remote target."""

    async def run(
        self,
        target: RemoteTarget | None,
        command: str,
        *,
        timeout: float | None = None,
        stdin: str | None = None,
        on_stdout: Callable[[str], None] | None = None,
        on_stderr: Callable[[str], None] | None = None,
    ) -> CommandResult:
        """Run a command.

        Raises:
            ConnectionError: If the remote transport fails
            CommandTimeoutError: If the command outlives its timeout
        """
        ...


@runtime_checkable
class HistoryStore(Protocol):
    """Cache of the last fetched remote shell history per target."""

    def load(self, name: str) -> list[ShellHistoryItem]:
        ...

    def save(self, name: str, items: list[ShellHistoryItem]) -> None:
        ...

    def delete(self, name: str) -> None:
        ...


@runtime_checkable
class HookMedium(Protocol):
    """File operations the hook manager performs, locally or remotely.

    Paths are whatever the medium understands: absolute local paths or
    ``$HOME``-relative shell expressions.
    """

    scope: str
    log_path: str
    log_dir: str

    async def detect_shell(self) -> ShellKind:
        ...

    def startup_file(self, kind: ShellKind) -> str | None:
        ...

    def log_expressions(self, kind: ShellKind) -> tuple[str, str]:
        ...

    async def read(self, path: str) -> str | None:
        """Return file content, or None if the file does not exist."""
        ...

    async def write(self, path: str, content: str) -> None:
        """Replace file content atomically."""
        ...

    async def copy(self, source: str, destination: str) -> None:
        ...

    async def make_dirs(self, path: str) -> None:
        ...

    async def remove(self, path: str) -> None:
        """Delete a file. Missing files are not an error."""
        ...
