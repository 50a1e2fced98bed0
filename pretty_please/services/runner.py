"""Run a single command locally or on a remote target."""

import asyncio
import codecs
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

import asyncssh

from pretty_please.errors import CommandTimeoutError, ConnectionError
from pretty_please.models import CommandResult, RemoteTarget
from pretty_please.utils.shell import local_shell_argv, quote_path

if TYPE_CHECKING:
    from pretty_please.services.multiplexer import ConnectionMultiplexer

logger = logging.getLogger(__name__)

OutputCallback = Callable[[str], None]

CHUNK_SIZE = 4096


def remote_command_line(target: RemoteTarget, command: str) -> str:
    """Prefix a command with a cd into the target's working directory."""
    if target.working_directory:
        return f"cd {quote_path(target.working_directory)} && {command}"
    return command


async def _pump_bytes(
    stream: asyncio.StreamReader | None,
    sink: list[str],
    callback: OutputCallback | None,
) -> None:
    """Decode a subprocess pipe chunk by chunk into sink."""
    if stream is None:
        return
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        chunk = await stream.read(CHUNK_SIZE)
        text = decoder.decode(chunk, final=not chunk)
        if text:
            sink.append(text)
            if callback:
                callback(text)
        if not chunk:
            break


async def _pump_text(
    stream: Any, sink: list[str], callback: OutputCallback | None
) -> None:
    """Read an SSH process stream (already decoded) into sink."""
    while True:
        text = await stream.read(CHUNK_SIZE)
        if not text:
            break
        sink.append(text)
        if callback:
            callback(text)


class RemoteCommandRunner:
    """Executes one command and reports its exit status and output."""

    def __init__(
        self,
        multiplexer: "ConnectionMultiplexer",
        default_timeout: float | None = None,
        shell: str | None = None,
    ) -> None:
        """Initialize runner.

        Args:
            multiplexer: Source of shared SSH transports
            default_timeout: Seconds before a command is killed, None for no limit
            shell: Local shell path, defaults to $SHELL
        """
        self.multiplexer = multiplexer
        self.default_timeout = default_timeout or None
        self.shell = shell

    async def run(
        self,
        target: RemoteTarget | None,
        command: str,
        *,
        timeout: float | None = None,
        stdin: str | None = None,
        on_stdout: OutputCallback | None = None,
        on_stderr: OutputCallback | None = None,
    ) -> CommandResult:
        """Run a command and wait for it to finish.

        Args:
            target: Remote target, or None to run locally
            command: Shell command line
            timeout: Overrides the default timeout for this call
            stdin: Text written to the command's standard input
            on_stdout: Called with each decoded stdout chunk as it arrives
            on_stderr: Called with each decoded stderr chunk as it arrives

        Returns:
            CommandResult with stdout, stderr and exit code

        Raises:
            ConnectionError: If the remote transport fails
            CommandTimeoutError: If the command outlives its timeout
        """
        timeout = timeout if timeout is not None else self.default_timeout
        if target is None:
            return await self._run_local(command, timeout, stdin, on_stdout, on_stderr)
        return await self._run_remote(
            target, command, timeout, stdin, on_stdout, on_stderr
        )

    async def _run_local(
        self,
        command: str,
        timeout: float | None,
        stdin: str | None,
        on_stdout: OutputCallback | None,
        on_stderr: OutputCallback | None,
    ) -> CommandResult:
        argv = local_shell_argv(command, self.shell)
        logger.debug("Running locally: %s", command)
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE
            if stdin is not None
            else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        stdout: list[str] = []
        stderr: list[str] = []

        async def communicate() -> int:
            if stdin is not None and proc.stdin is not None:
                proc.stdin.write(stdin.encode("utf-8"))
                await proc.stdin.drain()
                proc.stdin.close()
            await asyncio.gather(
                _pump_bytes(proc.stdout, stdout, on_stdout),
                _pump_bytes(proc.stderr, stderr, on_stderr),
            )
            return await proc.wait()

        returncode = await self._with_timeout(
            communicate(), command, timeout, kill=proc.kill, reap=proc.wait
        )
        return CommandResult(
            stdout="".join(stdout), stderr="".join(stderr), exit_code=returncode
        )

    async def _run_remote(
        self,
        target: RemoteTarget,
        command: str,
        timeout: float | None,
        stdin: str | None,
        on_stdout: OutputCallback | None,
        on_stderr: OutputCallback | None,
    ) -> CommandResult:
        full_command = remote_command_line(target, command)
        logger.debug("Running on %s: %s", target.name, full_command)

        stdout: list[str] = []
        stderr: list[str] = []

        async with self.multiplexer.connection(target) as conn:
            try:
                process = await conn.create_process(
                    full_command, encoding="utf-8", errors="replace"
                )
            except asyncssh.Error as e:
                raise ConnectionError(target.name, f"cannot open channel: {e}") from e

            async def communicate() -> int:
                if stdin is not None:
                    process.stdin.write(stdin)
                process.stdin.write_eof()
                await asyncio.gather(
                    _pump_text(process.stdout, stdout, on_stdout),
                    _pump_text(process.stderr, stderr, on_stderr),
                )
                await process.wait_closed()
                returncode = process.returncode
                return returncode if returncode is not None else 0

            try:
                returncode = await self._with_timeout(
                    communicate(),
                    command,
                    timeout,
                    kill=process.close,
                    reap=process.wait_closed,
                )
            except asyncssh.Error as e:
                raise ConnectionError(target.name, str(e)) from e

        return CommandResult(
            stdout="".join(stdout), stderr="".join(stderr), exit_code=returncode
        )

    @staticmethod
    async def _with_timeout(
        work: Awaitable[int],
        command: str,
        timeout: float | None,
        kill: Callable[[], Any],
        reap: Callable[[], Awaitable[Any]],
    ) -> int:
        """Await work, killing only this call's process on timeout."""
        if timeout is None:
            return await work
        try:
            return await asyncio.wait_for(work, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Command timed out after %gs: %s", timeout, command)
            try:
                kill()
            except ProcessLookupError:
                pass
            await reap()
            raise CommandTimeoutError(command, timeout) from None
