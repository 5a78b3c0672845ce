"""Drive session lifecycle: readiness join, timeout, and authorization."""

import asyncio
import threading
import time
from types import SimpleNamespace

import pytest

from plate_sync.config.settings import DriveConfig
from plate_sync.core.errors import (
    AuthorizationDenied,
    SessionInitError,
    SessionNotReadyError,
    SessionTimeoutError,
)
from plate_sync.core.session_manager import (
    AuthorizedToken,
    DriveSessionManager,
    SessionPhase,
    load_identity_client,
)


class FakeTokenClient:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def request_access_token(self, scopes, prompt="select_account"):
        self.calls.append((list(scopes), prompt))
        if self.error:
            raise self.error
        return SimpleNamespace(token=f"token-{len(self.calls)}", scopes=scopes, expiry=None)


def make_manager(token_client=None, timeout=1.0, drive_delay=0.0, identity_delay=0.0):
    counts = {"drive": 0, "identity": 0}
    token_client = token_client or FakeTokenClient()

    async def drive_loader(config):
        counts["drive"] += 1
        await asyncio.sleep(drive_delay)
        return "drive-service"

    async def identity_loader(config):
        counts["identity"] += 1
        await asyncio.sleep(identity_delay)
        return token_client

    config = DriveConfig(client_id="client-123", ready_timeout_seconds=timeout)
    manager = DriveSessionManager(config, drive_loader=drive_loader, identity_loader=identity_loader)
    return manager, counts, token_client


def test_ensure_ready_joins_both_clients():
    manager, counts, _ = make_manager(drive_delay=0.02, identity_delay=0.01)
    assert manager.phase == SessionPhase.UNINITIALIZED

    asyncio.run(manager.ensure_ready())

    assert manager.is_ready()
    assert manager.drive_service == "drive-service"
    assert counts == {"drive": 1, "identity": 1}


def test_ensure_ready_is_idempotent_when_ready():
    manager, counts, _ = make_manager()

    async def scenario():
        await manager.ensure_ready()
        await manager.ensure_ready()

    asyncio.run(scenario())
    assert counts == {"drive": 1, "identity": 1}


def test_concurrent_callers_share_one_initialization():
    manager, counts, _ = make_manager(drive_delay=0.05)

    async def scenario():
        first = asyncio.ensure_future(manager.ensure_ready())
        await asyncio.sleep(0)
        assert manager.phase == SessionPhase.INITIALIZING
        await asyncio.gather(first, manager.ensure_ready(), manager.ensure_ready())

    asyncio.run(scenario())
    assert manager.is_ready()
    assert counts == {"drive": 1, "identity": 1}


def test_readiness_times_out_when_clients_never_load():
    async def never(config):
        await asyncio.Event().wait()

    manager = DriveSessionManager(
        DriveConfig(client_id="client-123", ready_timeout_seconds=0.05),
        drive_loader=never,
        identity_loader=never
    )

    with pytest.raises(SessionTimeoutError):
        asyncio.run(manager.ensure_ready())

    assert manager.phase == SessionPhase.FAILED
    assert "Timeout" in manager.failure_reason


def test_loader_failure_marks_session_failed():
    async def broken(config):
        raise RuntimeError("discovery unavailable")

    async def identity(config):
        return FakeTokenClient()

    manager = DriveSessionManager(DriveConfig(client_id="c"), drive_loader=broken, identity_loader=identity)

    with pytest.raises(SessionInitError, match="discovery unavailable"):
        asyncio.run(manager.ensure_ready())

    assert manager.phase == SessionPhase.FAILED
    with pytest.raises(SessionNotReadyError):
        manager.drive_service


def test_missing_client_id_fails_initialization():
    async def drive(config):
        return "drive-service"

    manager = DriveSessionManager(
        DriveConfig(client_id="undefined"),
        drive_loader=drive,
        identity_loader=load_identity_client
    )

    with pytest.raises(SessionInitError, match="client id"):
        asyncio.run(manager.ensure_ready())
    assert manager.status()["phase"] == "failed"


def test_failed_session_can_be_initialized_again():
    attempts = {"n": 0}

    async def flaky(config):
        attempts["n"] += 1
        if attempts["n"] == 1:
            raise RuntimeError("offline")
        return "drive-service"

    async def identity(config):
        return FakeTokenClient()

    manager = DriveSessionManager(DriveConfig(client_id="c"), drive_loader=flaky, identity_loader=identity)

    async def scenario():
        with pytest.raises(SessionInitError):
            await manager.ensure_ready()
        await manager.ensure_ready()

    asyncio.run(scenario())
    assert manager.is_ready()


def test_reset_returns_to_uninitialized():
    manager, _, _ = make_manager()
    asyncio.run(manager.ensure_ready())

    manager.reset()

    assert manager.phase == SessionPhase.UNINITIALIZED
    assert not manager.is_ready()


def test_authorization_before_ready_fails_fast():
    manager, _, token_client = make_manager()

    with pytest.raises(SessionNotReadyError):
        asyncio.run(manager.request_authorization())
    assert token_client.calls == []


def test_authorization_opens_account_picker_every_time():
    manager, _, token_client = make_manager()

    async def scenario():
        await manager.ensure_ready()
        first = await manager.request_authorization()
        second = await manager.request_authorization(["scope-a"])
        return first, second

    first, second = asyncio.run(scenario())

    assert isinstance(first, AuthorizedToken)
    assert first.access_token == "token-1"
    assert first.scopes == ["https://www.googleapis.com/auth/drive.file"]
    assert second.access_token == "token-2"
    assert token_client.calls == [
        (["https://www.googleapis.com/auth/drive.file"], "select_account"),
        (["scope-a"], "select_account"),
    ]


def test_denied_authorization_carries_provider_payload():
    denial = AuthorizationDenied({"error": "access_denied"})
    manager, _, _ = make_manager(token_client=FakeTokenClient(error=denial))

    async def scenario():
        await manager.ensure_ready()
        await manager.request_authorization()

    with pytest.raises(AuthorizationDenied) as info:
        asyncio.run(scenario())
    assert info.value.payload == {"error": "access_denied"}


def test_unexpected_authorization_error_is_reported_as_denied():
    manager, _, _ = make_manager(token_client=FakeTokenClient(error=OSError("browser unavailable")))

    async def scenario():
        await manager.ensure_ready()
        await manager.request_authorization()

    with pytest.raises(AuthorizationDenied) as info:
        asyncio.run(scenario())
    assert info.value.payload["error"] == "authorization_failed"
    assert "browser unavailable" in info.value.payload["error_description"]


class BlockingTokenClient:
    """Holds each grant open briefly and records overlapping flows."""

    def __init__(self):
        self.active = 0
        self.max_active = 0
        self.calls = 0
        self._guard = threading.Lock()

    def request_access_token(self, scopes, prompt="select_account"):
        with self._guard:
            self.active += 1
            self.calls += 1
            self.max_active = max(self.max_active, self.active)
        time.sleep(0.05)
        with self._guard:
            self.active -= 1
        return SimpleNamespace(token="tok", scopes=scopes, expiry=None)


def test_concurrent_authorizations_run_one_at_a_time():
    token_client = BlockingTokenClient()
    manager, _, _ = make_manager(token_client=token_client)

    async def scenario():
        await manager.ensure_ready()
        return await asyncio.gather(
            manager.request_authorization(),
            manager.request_authorization()
        )

    tokens = asyncio.run(scenario())

    assert len(tokens) == 2
    assert token_client.calls == 2
    assert token_client.max_active == 1
