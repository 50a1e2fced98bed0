"""Shared SSH transports, one per (user, host, port).

Locking Strategy:
- `_meta_lock`: Protects the _connections and _key_locks dict structure
- Per-key locks: Serialize transport creation/removal for one key, so
  concurrent first calls to the same target open a single transport
- Lock acquisition order: Always per-key lock first, then meta-lock if needed

Idle transports that are not leased by a running command are closed by a
background cleanup task after `idle_timeout` seconds.
"""

import asyncio
import getpass
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import asyncssh

from pretty_please.errors import ConnectionError
from pretty_please.models import AuthMethod, PooledConnection, RemoteTarget

logger = logging.getLogger(__name__)

ConnectionKey = tuple[str, str, int]
PasswordPrompt = Callable[[RemoteTarget], str]


def prompt_password(target: RemoteTarget) -> str:
    """Ask for a target's password on the controlling terminal."""
    return getpass.getpass(f"Password for {target.address}: ")


class ConnectionMultiplexer:
    """Keeps at most one authenticated SSH transport per remote target."""

    def __init__(
        self,
        idle_timeout: int = 600,
        connect_timeout: float = 10,
        known_hosts: str | None = None,
        password_prompt: PasswordPrompt | None = None,
    ) -> None:
        """Initialize multiplexer.

        Args:
            idle_timeout: Seconds an unused transport stays open
            connect_timeout: Seconds to wait for connect and authentication
            known_hosts: Path to known_hosts file, or None to disable verification
            password_prompt: Called once per new transport for password targets
        """
        self.idle_timeout = idle_timeout
        self.connect_timeout = connect_timeout
        self._connections: dict[ConnectionKey, PooledConnection] = {}
        self._key_locks: dict[ConnectionKey, asyncio.Lock] = {}
        self._meta_lock = asyncio.Lock()
        self._cleanup_task: asyncio.Task[Any] | None = None
        self._known_hosts = known_hosts
        self._password_prompt = password_prompt or prompt_password

        if self._known_hosts is None:
            logger.warning(
                "SSH host key verification DISABLED. "
                "Set PLS_KNOWN_HOSTS to a known_hosts file path."
            )

    async def _get_key_lock(self, key: ConnectionKey) -> asyncio.Lock:
        """Get or create lock for a connection key."""
        async with self._meta_lock:
            if key not in self._key_locks:
                self._key_locks[key] = asyncio.Lock()
            return self._key_locks[key]

    def _known_hosts_arg(self) -> Any:
        """known_hosts argument for asyncssh.connect.

        A configured path that does not exist falls back to asyncssh's own
        default lookup, which rejects unknown hosts.
        """
        if self._known_hosts is None:
            return None
        if Path(self._known_hosts).exists():
            return self._known_hosts
        return ()

    async def _connect_options(self, target: RemoteTarget) -> dict[str, Any]:
        """Authentication options: key path, then password, then agent."""
        options: dict[str, Any] = {
            "port": target.port,
            "username": target.user,
            "known_hosts": self._known_hosts_arg(),
        }
        if target.key_path:
            options["client_keys"] = [target.key_path]
        elif target.auth_method is AuthMethod.PASSWORD:
            options["password"] = await asyncio.to_thread(self._password_prompt, target)
            options["client_keys"] = None
        return options

    async def _open(self, target: RemoteTarget) -> asyncssh.SSHClientConnection:
        logger.info("Opening SSH connection to %s (%s)", target.name, target.address)
        options = await self._connect_options(target)
        try:
            return await asyncio.wait_for(
                asyncssh.connect(target.host, **options),
                timeout=self.connect_timeout,
            )
        except asyncio.TimeoutError as e:
            raise ConnectionError(
                target.name, f"timed out after {self.connect_timeout:g}s"
            ) from e
        except asyncssh.HostKeyNotVerifiable as e:
            raise ConnectionError(target.name, f"host key rejected: {e}") from e
        except asyncssh.PermissionDenied as e:
            raise ConnectionError(target.name, f"authentication failed: {e}") from e
        except (asyncssh.Error, OSError) as e:
            raise ConnectionError(target.name, str(e) or type(e).__name__) from e

    async def get_connection(
        self, target: RemoteTarget
    ) -> asyncssh.SSHClientConnection:
        """Get the shared transport for a target, opening it if needed.

        Raises:
            ConnectionError: If the transport cannot be established
        """
        key = target.connection_key
        key_lock = await self._get_key_lock(key)

        async with key_lock:
            pooled = self._connections.get(key)

            if pooled and not pooled.is_stale:
                pooled.touch()
                logger.debug("Reusing connection to %s", target.address)
                return pooled.connection

            if pooled and pooled.is_stale:
                logger.info(
                    "Connection to %s was closed, reconnecting", target.address
                )

            conn = await self._open(target)

            async with self._meta_lock:
                self._connections[key] = PooledConnection(connection=conn)

            logger.info(
                "SSH connection established to %s (connections=%d)",
                target.address,
                len(self._connections),
            )

            if self._cleanup_task is None or self._cleanup_task.done():
                self._cleanup_task = asyncio.create_task(self._cleanup_loop())
                logger.debug("Started connection cleanup task")

            return conn

    @asynccontextmanager
    async def connection(
        self, target: RemoteTarget
    ) -> AsyncIterator[asyncssh.SSHClientConnection]:
        """Lease the shared transport for the duration of a block.

        Leased transports are never reaped by the idle cleanup.

        Example:
            async with multiplexer.connection(target) as conn:
                await conn.run("uptime")
        """
        conn = await self.get_connection(target)
        pooled = self._connections.get(target.connection_key)
        if pooled is not None:
            pooled.leases += 1
        try:
            yield conn
        finally:
            if pooled is not None:
                pooled.leases -= 1
                pooled.touch()

    async def test_connection(self, target: RemoteTarget) -> tuple[bool, str]:
        """Open (or reuse) the transport and run an echo round trip.

        Returns:
            Tuple of (success, message)
        """
        try:
            async with self.connection(target) as conn:
                result = await conn.run("echo pretty-please", check=False)
        except ConnectionError as e:
            return False, e.message
        except asyncssh.Error as e:
            return False, f"Connection test failed: {e}"

        if result.exit_status == 0:
            return True, f"Connected to {target.address}"
        return False, f"Connection test exited with {result.exit_status}"

    async def _cleanup_loop(self) -> None:
        """Periodically close idle transports."""
        interval = max(self.idle_timeout // 2, 1)
        logger.debug("Cleanup loop started (interval=%ds)", interval)
        while True:
            await asyncio.sleep(interval)
            await self._cleanup_idle()

            if not self._connections:
                logger.debug("Cleanup loop stopped - no connections remaining")
                break

    async def _cleanup_idle(self) -> None:
        """Close transports idle longer than idle_timeout and not leased."""
        async with self._meta_lock:
            keys = list(self._connections.keys())

        cutoff = datetime.now() - timedelta(seconds=self.idle_timeout)

        for key in keys:
            key_lock = await self._get_key_lock(key)
            async with key_lock:
                pooled = self._connections.get(key)
                if pooled is None or pooled.leases > 0:
                    continue
                if pooled.last_used < cutoff or pooled.is_stale:
                    reason = "stale" if pooled.is_stale else "idle"
                    logger.info("Closing %s connection to %s@%s:%d", reason, *key)
                    pooled.connection.close()
                    del self._connections[key]

    async def _remove(self, key: ConnectionKey) -> None:
        key_lock = await self._get_key_lock(key)
        async with key_lock:
            pooled = self._connections.pop(key, None)
            if pooled is None:
                logger.debug("No connection to close for %s@%s:%d", *key)
                return
            logger.info("Closing connection to %s@%s:%d", *key)
            pooled.connection.close()
            await pooled.connection.wait_closed()

    async def close_connection(self, target: RemoteTarget) -> None:
        """Tear down the shared transport for a target. No-op if none exists."""
        await self._remove(target.connection_key)

    async def close_all(self) -> None:
        """Close every transport and stop the cleanup task."""
        async with self._meta_lock:
            keys = list(self._connections.keys())

        if keys:
            logger.info("Closing all %d connection(s)", len(keys))
            for key in keys:
                await self._remove(key)

        if self._cleanup_task and not self._cleanup_task.done():
            self._cleanup_task.cancel()
            logger.debug("Cleanup task cancelled")

    def has_connection(self, target: RemoteTarget) -> bool:
        pooled = self._connections.get(target.connection_key)
        return pooled is not None and not pooled.is_stale

    @property
    def connection_count(self) -> int:
        """Return the current number of open transports."""
        return len(self._connections)
