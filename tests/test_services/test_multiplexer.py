"""Tests for the shared SSH transport multiplexer."""

import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import asyncssh
import pytest

from pretty_please.errors import ConnectionError
from pretty_please.models import AuthMethod, RemoteTarget
from pretty_please.services.multiplexer import ConnectionMultiplexer

CONNECT = "pretty_please.services.multiplexer.asyncssh.connect"


@pytest.fixture
def target() -> RemoteTarget:
    """Agent-authenticated target."""
    return RemoteTarget(name="web1", host="10.0.0.5", user="ops", port=22)


def make_conn(closed: bool = False) -> MagicMock:
    """Mock SSH connection."""
    conn = MagicMock()
    conn.is_closed = closed
    conn.wait_closed = AsyncMock()
    return conn


@pytest.mark.asyncio
async def test_first_call_opens_transport(target: RemoteTarget) -> None:
    """The first request opens a transport with agent auth."""
    mux = ConnectionMultiplexer(idle_timeout=60)
    conn = make_conn()

    with patch(CONNECT, new_callable=AsyncMock) as mock_connect:
        mock_connect.return_value = conn

        assert await mux.get_connection(target) is conn

        mock_connect.assert_called_once_with(
            "10.0.0.5", port=22, username="ops", known_hosts=None
        )
    await mux.close_all()


@pytest.mark.asyncio
async def test_reuses_transport(target: RemoteTarget) -> None:
    """Subsequent requests reuse the open transport."""
    mux = ConnectionMultiplexer(idle_timeout=60)

    with patch(CONNECT, new_callable=AsyncMock) as mock_connect:
        mock_connect.return_value = make_conn()

        first = await mux.get_connection(target)
        second = await mux.get_connection(target)

        assert first is second
        assert mock_connect.call_count == 1
        assert mux.connection_count == 1
    await mux.close_all()


@pytest.mark.asyncio
async def test_replaces_closed_transport(target: RemoteTarget) -> None:
    """A closed transport is replaced on the next request."""
    mux = ConnectionMultiplexer(idle_timeout=60)
    fresh = make_conn()

    with patch(CONNECT, new_callable=AsyncMock) as mock_connect:
        mock_connect.side_effect = [make_conn(closed=True), fresh]

        await mux.get_connection(target)
        assert await mux.get_connection(target) is fresh
        assert mock_connect.call_count == 2
    await mux.close_all()


@pytest.mark.asyncio
async def test_concurrent_first_calls_open_one_transport(target: RemoteTarget) -> None:
    """Concurrent first calls to one target share a single transport."""
    mux = ConnectionMultiplexer(idle_timeout=60)
    conn = make_conn()

    async def slow_connect(*args, **kwargs):
        await asyncio.sleep(0.01)
        return conn

    with patch(CONNECT, new_callable=AsyncMock) as mock_connect:
        mock_connect.side_effect = slow_connect

        results = await asyncio.gather(*(mux.get_connection(target) for _ in range(5)))

        assert all(r is conn for r in results)
        assert mock_connect.call_count == 1
    await mux.close_all()


@pytest.mark.asyncio
async def test_different_targets_connect_in_parallel() -> None:
    """Opening one target's transport does not block another's."""
    mux = ConnectionMultiplexer(idle_timeout=60)
    web1 = RemoteTarget(name="web1", host="web1", user="ops")
    web2 = RemoteTarget(name="web2", host="web2", user="ops")
    both_started = asyncio.Event()
    started: list[str] = []

    async def connect(host, **kwargs):
        started.append(host)
        if len(started) == 2:
            both_started.set()
        await asyncio.wait_for(both_started.wait(), timeout=1)
        return make_conn()

    with patch(CONNECT, new_callable=AsyncMock) as mock_connect:
        mock_connect.side_effect = connect

        await asyncio.gather(mux.get_connection(web1), mux.get_connection(web2))

        assert sorted(started) == ["web1", "web2"]
        assert mux.connection_count == 2
    await mux.close_all()


@pytest.mark.asyncio
async def test_key_path_auth(target: RemoteTarget) -> None:
    """A key path is passed as the only client key."""
    target.key_path = "/home/ops/.ssh/id_ed25519"
    target.auth_method = AuthMethod.KEY
    mux = ConnectionMultiplexer(idle_timeout=60)

    with patch(CONNECT, new_callable=AsyncMock) as mock_connect:
        mock_connect.return_value = make_conn()
        await mux.get_connection(target)

        assert mock_connect.call_args[1]["client_keys"] == ["/home/ops/.ssh/id_ed25519"]
    await mux.close_all()


@pytest.mark.asyncio
async def test_password_auth_prompts_once(target: RemoteTarget) -> None:
    """Password targets prompt once per new transport."""
    target.auth_method = AuthMethod.PASSWORD
    prompt = MagicMock(return_value="hunter2")
    mux = ConnectionMultiplexer(idle_timeout=60, password_prompt=prompt)

    with patch(CONNECT, new_callable=AsyncMock) as mock_connect:
        mock_connect.return_value = make_conn()
        await mux.get_connection(target)
        await mux.get_connection(target)

        assert mock_connect.call_args[1]["password"] == "hunter2"
        assert mock_connect.call_args[1]["client_keys"] is None
        prompt.assert_called_once_with(target)
    await mux.close_all()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error", "fragment"),
    [
        (OSError("Connection refused"), "Connection refused"),
        (asyncssh.PermissionDenied("bad key"), "authentication failed"),
        (asyncssh.HostKeyNotVerifiable("unknown"), "host key rejected"),
    ],
)
async def test_connect_errors_map_to_connection_error(
    target: RemoteTarget, error: Exception, fragment: str
) -> None:
    """Transport failures surface as ConnectionError naming the target."""
    mux = ConnectionMultiplexer(idle_timeout=60)

    with patch(CONNECT, new_callable=AsyncMock) as mock_connect:
        mock_connect.side_effect = error

        with pytest.raises(ConnectionError) as exc_info:
            await mux.get_connection(target)

    assert exc_info.value.target_name == "web1"
    assert fragment in str(exc_info.value)
    assert mux.connection_count == 0


@pytest.mark.asyncio
async def test_connect_timeout(target: RemoteTarget) -> None:
    """A hanging connect is abandoned after connect_timeout."""
    mux = ConnectionMultiplexer(idle_timeout=60, connect_timeout=0.01)

    async def hang(*args, **kwargs):
        await asyncio.sleep(10)

    with patch(CONNECT, new_callable=AsyncMock) as mock_connect:
        mock_connect.side_effect = hang

        with pytest.raises(ConnectionError, match="timed out"):
            await mux.get_connection(target)


@pytest.mark.asyncio
async def test_close_connection(target: RemoteTarget) -> None:
    """Closing tears down the transport; closing again is a no-op."""
    mux = ConnectionMultiplexer(idle_timeout=60)
    conn = make_conn()

    with patch(CONNECT, new_callable=AsyncMock) as mock_connect:
        mock_connect.return_value = conn
        await mux.get_connection(target)

    await mux.close_connection(target)
    await mux.close_connection(target)

    conn.close.assert_called_once()
    conn.wait_closed.assert_awaited_once()
    assert mux.has_connection(target) is False
    await mux.close_all()


@pytest.mark.asyncio
async def test_idle_cleanup_skips_leased(target: RemoteTarget) -> None:
    """Idle cleanup closes unleased transports only."""
    mux = ConnectionMultiplexer(idle_timeout=60)
    conn = make_conn()

    with patch(CONNECT, new_callable=AsyncMock) as mock_connect:
        mock_connect.return_value = conn

        async with mux.connection(target):
            mux._connections[target.connection_key].last_used = (
                datetime.now() - timedelta(seconds=120)
            )
            await mux._cleanup_idle()
            assert mux.connection_count == 1

        mux._connections[target.connection_key].last_used = (
            datetime.now() - timedelta(seconds=120)
        )
        await mux._cleanup_idle()

    assert mux.connection_count == 0
    conn.close.assert_called_once()
    await mux.close_all()


@pytest.mark.asyncio
async def test_test_connection(target: RemoteTarget) -> None:
    """test_connection runs an echo round trip."""
    mux = ConnectionMultiplexer(idle_timeout=60)
    conn = make_conn()
    conn.run = AsyncMock(return_value=MagicMock(exit_status=0))

    with patch(CONNECT, new_callable=AsyncMock) as mock_connect:
        mock_connect.return_value = conn
        ok, message = await mux.test_connection(target)

    assert ok is True
    assert "ops@10.0.0.5" in message
    await mux.close_all()


@pytest.mark.asyncio
async def test_test_connection_failure(target: RemoteTarget) -> None:
    """Connection failures are reported, not raised."""
    mux = ConnectionMultiplexer(idle_timeout=60)

    with patch(CONNECT, new_callable=AsyncMock) as mock_connect:
        mock_connect.side_effect = OSError("No route to host")
        ok, message = await mux.test_connection(target)

    assert ok is False
    assert "No route to host" in message
