"""Exception hierarchy for pretty-please."""


class PleaseError(Exception):
    """Base exception for all pretty-please errors."""

    def __init__(self, message: str, context: str | None = None):
        self.message = message
        self.context = context
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with optional context."""
        if self.context:
            return f"{self.message}\nContext: {self.context}"
        return self.message


class ConnectionError(PleaseError):
    """Failed to establish or reuse the SSH transport for a target.

    Raised for refused connections, timeouts, authentication failures and
    host key rejections. Never retried automatically.
    """

    def __init__(self, target_name: str, message: str):
        """Initialize connection error.

        Args:
            target_name: Name of the remote target
            message: Underlying failure description
        """
        self.target_name = target_name
        super().__init__(f"Cannot connect to {target_name}: {message}")


class CommandTimeoutError(PleaseError):
    """A command exceeded its per-call timeout and was killed."""

    def __init__(self, command: str, timeout: float):
        self.command = command
        self.timeout = timeout
        super().__init__(f"Command timed out after {timeout:g}s", context=command)


class ExecutionFailure(PleaseError):
    """A command completed with a failing exit status."""

    def __init__(self, command: str, exit_code: int, output: str = ""):
        self.command = command
        self.exit_code = exit_code
        self.output = output
        super().__init__(
            f"Command exited with code {exit_code}",
            context=output.strip() or command,
        )


class HookInstallError(PleaseError):
    """Installing the shell history hook failed."""

    pass


class HookUninstallError(PleaseError):
    """Removing the shell history hook failed."""

    pass


class CacheCorruption(PleaseError):
    """A cache entry could not be decoded.

    Only raised internally; callers treat it as a cache miss.
    """

    pass


class RegistryError(PleaseError):
    """A remote target registry operation was rejected."""

    pass


class TargetNotFoundError(RegistryError):
    """One or more remote target names are not registered."""

    def __init__(self, names: list[str]):
        self.names = names
        super().__init__(f"Unknown target(s): {', '.join(names)}")
