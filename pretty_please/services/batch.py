"""Propose and run one command per target across many targets at once."""

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from pretty_please.errors import PleaseError
from pretty_please.models import (
    BatchOutcome,
    BatchProposal,
    BatchResult,
    ProposalRequest,
    RemoteTarget,
)

if TYPE_CHECKING:
    from pretty_please.config.registry import RemoteRegistry
    from pretty_please.protocols import CommandRunner, ProposalFunction
    from pretty_please.services.facts import SystemFactsCache
    from pretty_please.services.history import ShellHistoryService

logger = logging.getLogger(__name__)


def classify(results: Sequence[BatchResult]) -> BatchOutcome:
    """Aggregate per-target results. An empty batch counts as all succeeded."""
    succeeded = sum(1 for r in results if r.success)
    if succeeded == len(results):
        return BatchOutcome.ALL_SUCCEEDED
    if succeeded == 0:
        return BatchOutcome.TOTAL_FAILURE
    return BatchOutcome.PARTIAL


class BatchExecutor:
    """Fans a prompt out to many targets.

    Every target is proposed for and executed concurrently. Results come
    back in submission order, and one target's failure never affects the
    others.
    """

    def __init__(
        self,
        runner: "CommandRunner",
        registry: "RemoteRegistry",
        facts: "SystemFactsCache",
        history: "ShellHistoryService",
        propose: "ProposalFunction",
        timeout: float | None = None,
    ) -> None:
        self.runner = runner
        self.registry = registry
        self.facts = facts
        self.history = history
        self.propose = propose
        self.timeout = timeout

    def resolve(self, targets: str | list[str]) -> list[RemoteTarget]:
        """Expand a group name or validate a list of target names.

        Raises:
            TargetNotFoundError: Listing every unknown name
        """
        return self.registry.resolve(targets)

    async def propose_all(
        self, targets: Sequence[RemoteTarget], prompt: str
    ) -> list[BatchProposal]:
        """Ask for one command per target, each with its own facts and history."""

        async def propose_single(target: RemoteTarget) -> BatchProposal:
            try:
                facts = await self.facts.get(target)
                history = await self.history.remote(target)
                step = await self.propose(
                    ProposalRequest(
                        prompt=prompt,
                        facts=facts,
                        shell_history=tuple(history),
                        target_name=target.name,
                        working_directory=target.working_directory,
                    )
                )
            except PleaseError as e:
                logger.warning("Proposal for %s failed: %s", target.name, e.message)
                return BatchProposal(target=target.name, command="", error=e.message)
            except Exception as e:
                logger.warning("Proposal for %s failed: %s", target.name, e)
                return BatchProposal(target=target.name, command="", error=str(e))

            if not step.command.strip():
                return BatchProposal(
                    target=target.name,
                    command="",
                    facts=facts,
                    error=step.reasoning or "No command proposed",
                )
            return BatchProposal(target=target.name, command=step.command, facts=facts)

        results = await asyncio.gather(*(propose_single(t) for t in targets))
        return list(results)

    async def execute_all(self, proposals: Sequence[BatchProposal]) -> list[BatchResult]:
        """Run every proposed command concurrently.

        Proposals that carry an error or no command are reported as failed
        without running anything.
        """

        async def execute_single(proposal: BatchProposal) -> BatchResult:
            if proposal.error is not None or not proposal.command.strip():
                return BatchResult(
                    target=proposal.target,
                    command=proposal.command,
                    exit_code=-1,
                    output="",
                    success=False,
                    error=proposal.error or "No command proposed",
                )

            try:
                target = self.registry.get(proposal.target)
                result = await self.runner.run(
                    target, proposal.command, timeout=self.timeout
                )
            except PleaseError as e:
                logger.warning("Batch command on %s failed: %s", proposal.target, e.message)
                return BatchResult(
                    target=proposal.target,
                    command=proposal.command,
                    exit_code=-1,
                    output="",
                    success=False,
                    error=e.message,
                )
            except Exception as e:
                logger.warning("Batch command on %s failed: %s", proposal.target, e)
                return BatchResult(
                    target=proposal.target,
                    command=proposal.command,
                    exit_code=-1,
                    output="",
                    success=False,
                    error=str(e),
                )

            success = result.succeeded
            return BatchResult(
                target=proposal.target,
                command=proposal.command,
                exit_code=result.exit_code,
                output=result.output,
                success=success,
                error=None if success else f"Command exited with code {result.exit_code}",
            )

        results = await asyncio.gather(*(execute_single(p) for p in proposals))
        return list(results)

    async def run(
        self, targets: str | list[str], prompt: str
    ) -> tuple[list[BatchResult], BatchOutcome]:
        """Resolve, propose, execute and classify.

        Unknown names are rejected before any proposal is made.
        """
        resolved = self.resolve(targets)
        logger.info("Batch run across %d target(s)", len(resolved))
        proposals = await self.propose_all(resolved, prompt)
        results = await self.execute_all(proposals)
        outcome = classify(results)
        logger.info(
            "Batch finished: %d/%d succeeded (%s)",
            sum(1 for r in results if r.success),
            len(results),
            outcome.name,
        )
        return results, outcome
