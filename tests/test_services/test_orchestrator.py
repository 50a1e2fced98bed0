"""Tests for the step-by-step session loop."""

from collections.abc import Sequence
from unittest.mock import AsyncMock, MagicMock

import pytest

from pretty_please.errors import CommandTimeoutError, ConnectionError
from pretty_please.models import CommandResult, ProposalRequest, ProposedStep, RemoteTarget
from pretty_please.services.orchestrator import (
    Confirmation,
    SessionState,
    StepOrchestrator,
)


class ScriptedModel:
    """Proposal function replaying fixed steps and recording requests."""

    def __init__(self, steps: Sequence[ProposedStep]) -> None:
        self.steps = list(steps)
        self.requests: list[ProposalRequest] = []

    async def __call__(self, request: ProposalRequest) -> ProposedStep:
        self.requests.append(request)
        return self.steps.pop(0)


def make_runner(*results: CommandResult | Exception) -> MagicMock:
    runner = MagicMock()
    runner.run = AsyncMock(side_effect=list(results))
    return runner


def accept_all() -> AsyncMock:
    return AsyncMock(return_value=Confirmation.accept())


@pytest.fixture
def target() -> RemoteTarget:
    """Remote target."""
    return RemoteTarget(name="web1", host="10.0.0.5", user="ops")


@pytest.mark.asyncio
async def test_two_step_session() -> None:
    """Continue is driven by the proposal; earlier steps feed later proposals."""
    model = ScriptedModel(
        [
            ProposedStep("find . -name '*.log'", continue_requested=True),
            ProposedStep("tar czf logs.tgz ./a.log"),
        ]
    )
    runner = make_runner(CommandResult("./a.log\n", "", 0), CommandResult("", "", 0))
    states: list[SessionState] = []

    result = await StepOrchestrator(
        runner, model, accept_all(), on_state=lambda s, n: states.append(s)
    ).run("archive the logs")

    assert result.state is SessionState.DONE
    assert result.exit_code == 0
    assert [s.command for s in result.steps] == [
        "find . -name '*.log'",
        "tar czf logs.tgz ./a.log",
    ]
    assert model.requests[0].previous_steps == ()
    assert model.requests[1].previous_steps[0].output == "./a.log\n"
    assert SessionState.CONTINUING in states
    assert states[-1] is SessionState.DONE


@pytest.mark.asyncio
async def test_continue_after_failed_step() -> None:
    """A failing step does not stop a session that asked to continue."""
    model = ScriptedModel(
        [
            ProposedStep("make", continue_requested=True),
            ProposedStep("make clean && make"),
        ]
    )
    runner = make_runner(CommandResult("", "error\n", 2), CommandResult("ok\n", "", 0))

    result = await StepOrchestrator(runner, model, accept_all()).run("build it")

    assert result.state is SessionState.DONE
    assert [s.exit_code for s in result.steps] == [2, 0]


@pytest.mark.asyncio
async def test_final_step_failure_sets_exit_code() -> None:
    """The last step's failing exit code becomes the session's."""
    model = ScriptedModel([ProposedStep("grep needle haystack")])
    runner = make_runner(CommandResult("", "", 1))

    result = await StepOrchestrator(runner, model, accept_all()).run("find needle")

    assert result.state is SessionState.DONE
    assert result.exit_code == 1


@pytest.mark.asyncio
async def test_gave_up_fails_without_confirmation() -> None:
    """An empty command without continue fails the session."""
    model = ScriptedModel([ProposedStep("", reasoning="cannot do that")])
    confirm = accept_all()

    result = await StepOrchestrator(make_runner(), model, confirm).run("impossible")

    assert result.state is SessionState.FAILED
    assert result.reason == "cannot do that"
    confirm.assert_not_called()


@pytest.mark.asyncio
async def test_cancel() -> None:
    """Cancelling at confirmation runs nothing."""
    model = ScriptedModel([ProposedStep("rm -rf build")])
    runner = make_runner()

    result = await StepOrchestrator(
        runner, model, AsyncMock(return_value=Confirmation.cancel())
    ).run("clean")

    assert result.state is SessionState.CANCELLED
    assert result.steps == ()
    runner.run.assert_not_called()


@pytest.mark.asyncio
async def test_edited_command_is_run() -> None:
    """An edited command replaces the proposal."""
    model = ScriptedModel([ProposedStep("ls")])
    runner = make_runner(CommandResult("", "", 0))

    result = await StepOrchestrator(
        runner, model, AsyncMock(return_value=Confirmation.edit("ls -la"))
    ).run("list")

    assert runner.run.call_args[0][1] == "ls -la"
    assert result.steps[0].command == "ls -la"


@pytest.mark.asyncio
async def test_local_builtin_halts() -> None:
    """Local commands containing built-ins halt before confirmation."""
    model = ScriptedModel([ProposedStep("cd /tmp && export FOO=1")])
    confirm = accept_all()

    result = await StepOrchestrator(make_runner(), model, confirm).run("go to tmp")

    assert result.state is SessionState.HALTED
    assert result.builtins == ["cd", "export"]
    confirm.assert_not_called()


@pytest.mark.asyncio
async def test_remote_builtin_runs(target: RemoteTarget) -> None:
    """Built-ins are fine on remote targets."""
    model = ScriptedModel([ProposedStep("cd /var/log && ls")])
    runner = make_runner(CommandResult("syslog\n", "", 0))

    result = await StepOrchestrator(runner, model, accept_all()).run("logs", target)

    assert result.state is SessionState.DONE
    assert model.requests[0].target_name == "web1"


@pytest.mark.asyncio
async def test_max_steps() -> None:
    """Sessions stop after max_steps executed steps."""
    model = ScriptedModel([ProposedStep("true", continue_requested=True)] * 5)
    runner = make_runner(*[CommandResult("", "", 0)] * 5)

    result = await StepOrchestrator(runner, model, accept_all(), max_steps=3).run("loop")

    assert result.state is SessionState.FAILED
    assert len(result.steps) == 3
    assert "3 steps" in result.reason


def test_max_steps_must_be_positive() -> None:
    """A max_steps below one is rejected."""
    with pytest.raises(ValueError):
        StepOrchestrator(make_runner(), ScriptedModel([]), accept_all(), max_steps=0)


@pytest.mark.asyncio
async def test_connection_error_becomes_failed_step(target: RemoteTarget) -> None:
    """Transport failures are recorded as failed steps, not raised."""
    model = ScriptedModel(
        [ProposedStep("uptime", continue_requested=True), ProposedStep("uptime")]
    )
    runner = make_runner(
        ConnectionError("web1", "Connection refused"), CommandResult("up\n", "", 0)
    )

    result = await StepOrchestrator(runner, model, accept_all()).run("uptime", target)

    assert result.steps[0].exit_code == 255
    assert "Connection refused" in result.steps[0].output
    assert result.state is SessionState.DONE


@pytest.mark.asyncio
async def test_timeout_becomes_failed_step() -> None:
    """Timed out commands are recorded with exit 124."""
    model = ScriptedModel([ProposedStep("sleep 100")])
    runner = make_runner(CommandTimeoutError("sleep 100", 1))

    result = await StepOrchestrator(runner, model, accept_all(), timeout=1).run("wait")

    assert result.steps[0].exit_code == 124
    assert result.exit_code == 124


@pytest.mark.asyncio
async def test_proposal_error_fails_session() -> None:
    """An exception from the proposal function fails the session."""

    async def broken(request: ProposalRequest) -> ProposedStep:
        raise RuntimeError("invalid JSON from model")

    result = await StepOrchestrator(make_runner(), broken, accept_all()).run("x")

    assert result.state is SessionState.FAILED
    assert "invalid JSON" in result.reason


@pytest.mark.asyncio
async def test_empty_command_with_continue_retries() -> None:
    """An empty command that asks to continue is recorded and the loop goes on."""
    model = ScriptedModel(
        [ProposedStep("", continue_requested=True), ProposedStep("echo done")]
    )
    runner = make_runner(CommandResult("done\n", "", 0))

    result = await StepOrchestrator(runner, model, accept_all()).run("x")

    assert result.state is SessionState.DONE
    assert result.steps[0].exit_code == 1
    assert runner.run.await_count == 1


@pytest.mark.asyncio
async def test_context_is_gathered(target: RemoteTarget) -> None:
    """Facts and remote history are passed to every proposal."""
    facts = MagicMock()
    facts.get = AsyncMock(return_value="FACTS")
    history = MagicMock()
    history.remote = AsyncMock(return_value=["HISTORY"])
    model = ScriptedModel([ProposedStep("uptime")])

    await StepOrchestrator(
        make_runner(CommandResult("", "", 0)),
        model,
        accept_all(),
        facts=facts,
        history=history,
    ).run("uptime", target)

    facts.get.assert_awaited_once_with(target)
    assert model.requests[0].facts == "FACTS"
    assert model.requests[0].shell_history == ("HISTORY",)


@pytest.mark.asyncio
async def test_missing_shell_becomes_failed_step() -> None:
    """A shell that cannot be started is recorded as a failed step."""
    model = ScriptedModel([ProposedStep("ls")])
    runner = make_runner(FileNotFoundError(2, "No such file or directory", "/bin/nosh"))

    result = await StepOrchestrator(runner, model, accept_all()).run("list")

    assert result.state is SessionState.DONE
    assert result.steps[0].exit_code == 127
    assert "/bin/nosh" in result.steps[0].output
    assert result.exit_code == 127
