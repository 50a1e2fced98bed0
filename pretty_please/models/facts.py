"""Cached machine facts."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class SystemFacts:
    """What a target looked like when it was probed.

    The tool fields (``package_manager``, ``available_commands``) let a
    proposal pick ``apt`` over ``brew`` or ``rg`` over ``grep``.
    """

    os: str
    os_version: str
    shell: str
    hostname: str
    cached_at: datetime
    arch: str = "unknown"
    user: str = "unknown"
    package_manager: str = "unknown"
    available_commands: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the on-disk cache format."""
        return {
            "os": self.os,
            "osVersion": self.os_version,
            "shell": self.shell,
            "hostname": self.hostname,
            "arch": self.arch,
            "user": self.user,
            "systemPackageManager": self.package_manager,
            "availableCommands": list(self.available_commands),
            "cachedAt": self.cached_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SystemFacts":
        """Parse the on-disk cache format.

        Entries written before the tool fields existed load with defaults.

        Raises:
            KeyError: If a required field is missing
            ValueError: If cachedAt is not an ISO-8601 timestamp
        """
        cached_at = datetime.fromisoformat(data["cachedAt"].replace("Z", "+00:00"))
        if cached_at.tzinfo is None:
            cached_at = cached_at.replace(tzinfo=timezone.utc)
        commands = data.get("availableCommands") or []
        if not isinstance(commands, list):
            raise ValueError("availableCommands must be a list")
        return cls(
            os=str(data["os"]),
            os_version=str(data["osVersion"]),
            shell=str(data["shell"]),
            hostname=str(data["hostname"]),
            cached_at=cached_at,
            arch=str(data.get("arch") or "unknown"),
            user=str(data.get("user") or "unknown"),
            package_manager=str(data.get("systemPackageManager") or "unknown"),
            available_commands=tuple(str(c) for c in commands),
        )
