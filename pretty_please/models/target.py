"""Remote target and pooled connection models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import asyncssh


class AuthMethod(str, Enum):
    """How a remote target authenticates."""

    KEY = "key"
    PASSWORD = "password"
    AGENT = "agent"


@dataclass
class RemoteTarget:
    """A registered remote host."""

    name: str
    host: str
    user: str
    port: int = 22
    auth_method: AuthMethod = AuthMethod.AGENT
    key_path: str | None = None
    working_directory: str | None = None

    @property
    def connection_key(self) -> tuple[str, str, int]:
        """Identity of the shared transport for this target."""
        return (self.user, self.host, self.port)

    @property
    def address(self) -> str:
        """Return user@host:port."""
        return f"{self.user}@{self.host}:{self.port}"

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the config store."""
        data: dict[str, Any] = {
            "host": self.host,
            "user": self.user,
            "port": self.port,
            "authMethod": self.auth_method.value,
        }
        if self.key_path:
            data["key"] = self.key_path
        if self.working_directory:
            data["workDir"] = self.working_directory
        return data

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> "RemoteTarget":
        """Build a target from its stored form."""
        key_path = data.get("key") or None
        if "authMethod" in data:
            auth_method = AuthMethod(data["authMethod"])
        elif data.get("password"):
            auth_method = AuthMethod.PASSWORD
        elif key_path:
            auth_method = AuthMethod.KEY
        else:
            auth_method = AuthMethod.AGENT
        return cls(
            name=name,
            host=data["host"],
            user=data["user"],
            port=int(data.get("port", 22)),
            auth_method=auth_method,
            key_path=key_path,
            working_directory=data.get("workDir") or None,
        )


@dataclass
class PooledConnection:
    """A shared SSH transport with last-used timestamp and lease count."""

    connection: "asyncssh.SSHClientConnection"
    last_used: datetime = field(default_factory=datetime.now)
    leases: int = 0

    def touch(self) -> None:
        """Update last-used timestamp."""
        self.last_used = datetime.now()

    @property
    def is_stale(self) -> bool:
        """Check if connection was closed."""
        is_closed: bool = self.connection.is_closed  # type: ignore[assignment]
        return is_closed
