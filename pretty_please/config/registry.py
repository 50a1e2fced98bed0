"""Registry of remote targets and target groups."""

import logging
import re
import shutil
from pathlib import Path

from pretty_please.config.store import InMemoryConfigStore
from pretty_please.errors import RegistryError, TargetNotFoundError
from pretty_please.models import AuthMethod, RemoteTarget

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
CLEAR_WORKDIR_VALUES = ("", "-")


def parse_host_string(host_str: str) -> tuple[str, str, int]:
    """Parse ``user@host[:port]``.

    The port is taken after the last colon, so ``root@::1:22`` yields host
    ``::1``. A trailing part that is not a number stays in the host.

    Returns:
        Tuple of (user, host, port). User is empty when no ``@`` is given.

    Raises:
        RegistryError: If the port is out of range
    """
    user = ""
    rest = host_str.strip()
    if "@" in rest:
        user, rest = rest.split("@", 1)

    host = rest
    port = 22
    if ":" in rest:
        head, tail = rest.rsplit(":", 1)
        if tail.isdigit():
            host, port = head, int(tail)

    if not 0 < port < 65536:
        raise RegistryError(f"Invalid port: {port}", context=host_str)
    return user.strip(), host.strip(), port


def validate_name(name: str) -> None:
    """Reject empty names and names outside ``[A-Za-z0-9_-]``."""
    if not name or not name.strip():
        raise RegistryError("Target name cannot be empty")
    if not NAME_PATTERN.match(name):
        raise RegistryError(
            f"Invalid target name {name!r}: use letters, digits, '_' and '-' only"
        )


class RemoteRegistry:
    """Add, look up and remove remote targets on top of a config store."""

    def __init__(
        self, store: InMemoryConfigStore, data_root: Path | None = None
    ) -> None:
        """Initialize registry.

        Args:
            store: Config store holding the remotes
            data_root: Directory holding one data directory per target
        """
        self.store = store
        self.data_root = data_root

    def data_dir(self, name: str) -> Path | None:
        """Per-target directory for cached facts and history."""
        if self.data_root is None:
            return None
        return self.data_root / name

    def add(
        self,
        name: str,
        host_str: str,
        key_path: str | None = None,
        password: bool = False,
        working_directory: str | None = None,
    ) -> RemoteTarget:
        """Register a new target.

        Raises:
            RegistryError: For invalid names, host strings, missing key files
                or duplicate names
        """
        validate_name(name)
        user, host, port = parse_host_string(host_str)
        if not host:
            raise RegistryError("Host cannot be empty", context=host_str)
        if not user:
            raise RegistryError("User cannot be empty, use user@host", context=host_str)

        if key_path:
            resolved = Path(key_path).expanduser()
            if not resolved.exists():
                raise RegistryError(f"Key file not found: {key_path}")
            key_path = str(resolved)

        if name in self.store.get_remotes():
            raise RegistryError(f"Target {name!r} already exists")

        if key_path:
            auth_method = AuthMethod.KEY
        elif password:
            auth_method = AuthMethod.PASSWORD
        else:
            auth_method = AuthMethod.AGENT

        target = RemoteTarget(
            name=name,
            host=host,
            user=user,
            port=port,
            auth_method=auth_method,
            key_path=key_path,
            working_directory=working_directory or None,
        )
        self.store.save_remote(name, target.to_dict())

        data_dir = self.data_dir(name)
        if data_dir is not None:
            data_dir.mkdir(parents=True, exist_ok=True)

        logger.info("Registered target %s (%s)", name, target.address)
        return target

    def find(self, name: str) -> RemoteTarget | None:
        data = self.store.get_remotes().get(name)
        if data is None:
            return None
        return RemoteTarget.from_dict(name, data)

    def get(self, name: str) -> RemoteTarget:
        """Look up a target.

        Raises:
            TargetNotFoundError: If the name is not registered
        """
        target = self.find(name)
        if target is None:
            raise TargetNotFoundError([name])
        return target

    def list_targets(self) -> list[RemoteTarget]:
        return [
            RemoteTarget.from_dict(name, data)
            for name, data in self.store.get_remotes().items()
        ]

    def remove(self, name: str) -> bool:
        """Unregister a target and delete its data directory.

        Returns:
            False if the target did not exist
        """
        if not self.store.delete_remote(name):
            return False

        data_dir = self.data_dir(name)
        if data_dir is not None and data_dir.exists():
            shutil.rmtree(data_dir)
        logger.info("Removed target %s", name)
        return True

    def set_working_directory(self, name: str, path: str | None) -> RemoteTarget:
        """Set the directory commands run in. ``""`` or ``"-"`` clears it."""
        target = self.get(name)
        if path is None or path.strip() in CLEAR_WORKDIR_VALUES:
            target.working_directory = None
        else:
            target.working_directory = path.strip()
        self.store.save_remote(name, target.to_dict())
        return target

    def set_default(self, name: str | None) -> None:
        if name is not None:
            self.get(name)
        self.store.default_remote = name

    @property
    def default(self) -> RemoteTarget | None:
        name = self.store.default_remote
        return self.find(name) if name else None

    # Groups

    def set_group(self, group: str, members: list[str]) -> None:
        """Create or replace a named group of targets.

        Raises:
            TargetNotFoundError: If any member is not registered
        """
        validate_name(group)
        self.resolve(members)
        self.store.set_group(group, members)

    def delete_group(self, group: str) -> bool:
        return self.store.delete_group(group)

    def groups(self) -> dict[str, list[str]]:
        return self.store.get_groups()

    def resolve(self, names: list[str] | str) -> list[RemoteTarget]:
        """Expand a group name or a list of target names.

        All names are validated before anything is returned, so a single
        error lists every unknown name.

        Raises:
            TargetNotFoundError: Listing all unknown names
        """
        if isinstance(names, str):
            groups = self.store.get_groups()
            names = groups[names] if names in groups else [names]

        remotes = self.store.get_remotes()
        unknown = [n for n in names if n not in remotes]
        if unknown:
            raise TargetNotFoundError(unknown)
        return [RemoteTarget.from_dict(n, remotes[n]) for n in names]
