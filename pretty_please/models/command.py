"""Command execution data models."""

from dataclasses import dataclass

from pretty_please.errors import ExecutionFailure

SIGPIPE_EXIT = 141


def is_successful_exit(exit_code: int, stdout: str) -> bool:
    """Classify an exit status.

    Exit 141 means a downstream reader closed the pipe early (``| head``).
    It counts as success only when the command produced output.
    """
    if exit_code == 0:
        return True
    return exit_code == SIGPIPE_EXIT and bool(stdout)


@dataclass
class CommandResult:
    """Result of a local or remote command execution."""

    stdout: str
    stderr: str
    exit_code: int

    @property
    def output(self) -> str:
        """Combined stdout and stderr."""
        return self.stdout + self.stderr

    @property
    def succeeded(self) -> bool:
        return is_successful_exit(self.exit_code, self.stdout)

    def raise_for_status(self, command: str = "") -> None:
        """Raise ExecutionFailure if the command failed."""
        if not self.succeeded:
            raise ExecutionFailure(command, self.exit_code, self.output)
