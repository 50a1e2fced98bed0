"""Tests for command, step and shell kind models."""

import pytest

from pretty_please.errors import ExecutionFailure, HookInstallError, HookUninstallError
from pretty_please.models import (
    BatchOutcome,
    CommandResult,
    HookResult,
    ProposedStep,
    ShellKind,
    is_successful_exit,
)


class TestExitClassification:
    """Exit status classification."""

    def test_zero_is_success(self) -> None:
        """Exit 0 succeeds with or without output."""
        assert is_successful_exit(0, "")
        assert is_successful_exit(0, "out")

    def test_sigpipe_with_output_is_success(self) -> None:
        """Exit 141 counts as success when stdout is non-empty."""
        assert is_successful_exit(141, "line 1\nline 2\n")

    def test_sigpipe_without_output_is_failure(self) -> None:
        """Exit 141 with empty stdout is a failure."""
        assert not is_successful_exit(141, "")

    def test_sigpipe_with_blank_line_is_success(self) -> None:
        """Any stdout at all, even a blank line, satisfies the 141 rule."""
        assert is_successful_exit(141, "\n")

    def test_other_codes_fail(self) -> None:
        """Any other nonzero exit is a failure, even with output."""
        assert not is_successful_exit(1, "partial output")
        assert not is_successful_exit(2, "")

    def test_result_succeeded_uses_stdout_only(self) -> None:
        """Only stdout counts for the 141 rule."""
        assert CommandResult(stdout="a\n", stderr="", exit_code=141).succeeded
        assert not CommandResult(stdout="", stderr="broken pipe", exit_code=141).succeeded

    def test_output_combines_streams(self) -> None:
        """Output is stdout followed by stderr."""
        result = CommandResult(stdout="out\n", stderr="err\n", exit_code=0)
        assert result.output == "out\nerr\n"

    def test_raise_for_status(self) -> None:
        """Failed results raise ExecutionFailure carrying the exit code."""
        CommandResult(stdout="", stderr="", exit_code=0).raise_for_status("true")

        with pytest.raises(ExecutionFailure) as exc_info:
            CommandResult(stdout="", stderr="nope", exit_code=3).raise_for_status("false")
        assert exc_info.value.exit_code == 3
        assert exc_info.value.command == "false"


class TestProposedStep:
    """Parsing of the proposal object."""

    def test_from_dict_full(self) -> None:
        """All four fields are mapped."""
        step = ProposedStep.from_dict(
            {
                "command": "find . -name '*.log'",
                "continue": True,
                "reasoning": "locate logs",
                "nextStepHint": "compress them",
            }
        )
        assert step.command == "find . -name '*.log'"
        assert step.continue_requested is True
        assert step.reasoning == "locate logs"
        assert step.next_hint == "compress them"

    def test_from_dict_defaults(self) -> None:
        """Optional fields default to false and empty strings."""
        step = ProposedStep.from_dict({"command": "ls"})
        assert step.continue_requested is False
        assert step.reasoning == ""
        assert step.next_hint == ""

    def test_from_dict_rejects_non_string_command(self) -> None:
        """A non-string command is rejected."""
        with pytest.raises(ValueError):
            ProposedStep.from_dict({"command": ["ls"]})

    def test_gave_up(self) -> None:
        """Empty command without continue means the model gave up."""
        assert ProposedStep(command="", continue_requested=False).gave_up
        assert not ProposedStep(command="", continue_requested=True).gave_up
        assert not ProposedStep(command="ls").gave_up


class TestShellKind:
    """Shell name mapping."""

    @pytest.mark.parametrize(
        ("name", "kind"),
        [
            ("/bin/zsh", ShellKind.ZSH),
            ("/usr/local/bin/bash", ShellKind.BASH),
            ("pwsh", ShellKind.POWERSHELL),
            ("powershell.exe", ShellKind.POWERSHELL),
            ("/usr/bin/fish", ShellKind.UNSUPPORTED),
            ("", ShellKind.UNSUPPORTED),
            (None, ShellKind.UNSUPPORTED),
        ],
    )
    def test_from_name(self, name: str | None, kind: ShellKind) -> None:
        """Shell paths and names map to their kind."""
        assert ShellKind.from_name(name) is kind


def test_batch_outcome_exit_codes() -> None:
    """Batch outcomes map to process exit codes 0, 1 and 2."""
    assert BatchOutcome.ALL_SUCCEEDED.exit_code == 0
    assert BatchOutcome.PARTIAL.exit_code == 1
    assert BatchOutcome.TOTAL_FAILURE.exit_code == 2


def test_hook_result_raise_for_status() -> None:
    """Failed hook results raise the error matching their direction."""
    HookResult(True, "ok").raise_for_status()

    with pytest.raises(HookInstallError):
        HookResult(False, "no write access").raise_for_status()
    with pytest.raises(HookUninstallError):
        HookResult(False, "unpaired markers", installing=False).raise_for_status()
