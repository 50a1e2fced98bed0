"""Shell history log entries."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ShellHistoryItem:
    """One line of the hook log: ``{"cmd", "exit", "time"}``."""

    cmd: str
    exit: int
    time: str

    def to_dict(self) -> dict[str, Any]:
        return {"cmd": self.cmd, "exit": self.exit, "time": self.time}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ShellHistoryItem":
        """Parse a decoded log line.

        Raises:
            KeyError: If cmd is missing
            ValueError: If exit is not an integer
        """
        return cls(
            cmd=str(data["cmd"]),
            exit=int(data.get("exit", 0)),
            time=str(data.get("time", "")),
        )
