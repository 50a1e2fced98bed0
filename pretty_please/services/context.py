"""Render a proposal request as the user message sent to the model."""

from pretty_please.models import ExecutionStep, ProposalRequest
from pretty_please.services.history import format_shell_history

MAX_STEP_OUTPUT = 4000


def _truncate(output: str, limit: int = MAX_STEP_OUTPUT) -> str:
    """Keep the tail of long output."""
    if len(output) <= limit:
        return output
    return f"... ({len(output) - limit} characters omitted)\n{output[-limit:]}"


def format_step(number: int, step: ExecutionStep) -> str:
    parts = [f'<step number="{number}">', f"Command: {step.command}"]
    if step.reasoning:
        parts.append(f"Reasoning: {step.reasoning}")
    parts.append(f"Exit code: {step.exit_code}")
    parts.append("Output:")
    parts.append(_truncate(step.output.rstrip()) or "(no output)")
    parts.append("</step>")
    return "\n".join(parts)


def build_context_prompt(request: ProposalRequest) -> str:
    """Build the context block for one proposal call.

    Sections are emitted only when there is something to say, in a fixed
    order: system facts, recent shell history, previous steps, then the
    user's request.
    """
    sections: list[str] = []

    if request.facts is not None:
        facts = request.facts
        lines = [
            f"OS: {facts.os} {facts.os_version}",
            f"Shell: {facts.shell}",
            f"Hostname: {facts.hostname}",
        ]
        if facts.arch != "unknown":
            lines.append(f"Architecture: {facts.arch}")
        if facts.user != "unknown":
            lines.append(f"User: {facts.user}")
        if facts.package_manager != "unknown":
            lines.append(f"Package manager: {facts.package_manager}")
        if facts.available_commands:
            lines.append(f"Available tools: {', '.join(facts.available_commands)}")
        if request.target_name:
            lines.insert(0, f"Remote target: {request.target_name}")
        if request.working_directory:
            lines.append(f"Working directory: {request.working_directory}")
        sections.append("<system_info>\n" + "\n".join(lines) + "\n</system_info>")

    if request.shell_history:
        sections.append(
            "<shell_history>\n"
            + format_shell_history(request.shell_history)
            + "\n</shell_history>"
        )

    if request.previous_steps:
        steps = "\n".join(
            format_step(i, step) for i, step in enumerate(request.previous_steps, start=1)
        )
        sections.append(f"<previous_steps>\n{steps}\n</previous_steps>")

    sections.append(f"<user_request>\n{request.prompt}\n</user_request>")
    return "\n\n".join(sections)
