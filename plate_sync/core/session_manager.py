"""
Drive session manager for Plate Sync.

Owns the lifecycle of the two Google clients a sync needs: the Drive
resource client (discovery-based API service) and the identity client that
hands out access tokens. Both bootstrap independently; the session is ready
only once both have.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

import httplib2
from googleapiclient.discovery import build

from ..config.settings import DriveConfig
from .errors import (
    AuthorizationDenied,
    SessionInitError,
    SessionNotReadyError,
    SessionTimeoutError,
)
from .oauth_manager import OAuthTokenClient

logger = logging.getLogger(__name__)


class SessionPhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


@dataclass
class AuthorizedToken:
    """Short-lived Drive access token from one account-picker grant."""
    access_token: str
    scopes: List[str] = field(default_factory=list)
    expiry: Optional[datetime] = None

    @classmethod
    def from_credentials(cls, credentials: Any, requested: Optional[List[str]] = None) -> "AuthorizedToken":
        return cls(
            access_token=credentials.token,
            scopes=list(credentials.scopes or requested or []),
            expiry=credentials.expiry
        )


async def load_drive_service(config: DriveConfig) -> Any:
    """Build the Drive v3 resource client from the bundled discovery document."""
    loop = asyncio.get_event_loop()
    service = await loop.run_in_executor(
        None,
        lambda: build(
            'drive',
            'v3',
            http=httplib2.Http(timeout=config.upload_timeout_seconds),
            developerKey=config.api_key or None,
            static_discovery=True,
            cache_discovery=False
        )
    )
    logger.info("Google Drive resource client loaded")
    return service


async def load_identity_client(config: DriveConfig) -> OAuthTokenClient:
    """Create the token client; fails when no OAuth client id is configured."""
    if not config.has_client_id:
        raise SessionInitError("Google OAuth client id not configured")
    client = OAuthTokenClient(
        client_id=config.client_id,
        client_secret=config.client_secret,
        scopes=config.scopes
    )
    logger.info("Google identity client loaded")
    return client


class DriveSessionManager:
    """
    Explicit session context shared by the sync engine and the API layer.

    Phases: UNINITIALIZED -> INITIALIZING -> READY, or FAILED. Concurrent
    ensure_ready() calls share one in-flight initialization; a FAILED session
    may be initialized again.
    """

    def __init__(
        self,
        config: DriveConfig,
        drive_loader: Callable[[DriveConfig], Awaitable[Any]] = load_drive_service,
        identity_loader: Callable[[DriveConfig], Awaitable[Any]] = load_identity_client
    ):
        """
        Initialize session manager.

        Args:
            config: Drive/OAuth configuration
            drive_loader: Coroutine function that builds the Drive resource client
            identity_loader: Coroutine function that builds the token client
        """
        self.config = config
        self._drive_loader = drive_loader
        self._identity_loader = identity_loader

        self._phase = SessionPhase.UNINITIALIZED
        self._failure_reason: Optional[str] = None
        self._init_task: Optional[asyncio.Future] = None
        self._auth_lock = asyncio.Lock()

        self._drive_service = None
        self._token_client = None

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def failure_reason(self) -> Optional[str]:
        return self._failure_reason

    def is_ready(self) -> bool:
        return self._phase == SessionPhase.READY

    @property
    def drive_service(self) -> Any:
        if not self.is_ready():
            raise SessionNotReadyError("Google Drive client not initialized")
        return self._drive_service

    def status(self) -> dict:
        return {
            "phase": self._phase.value,
            "ready": self.is_ready(),
            "error": self._failure_reason
        }

    async def ensure_ready(self) -> None:
        """
        Bootstrap both Google clients, bounded by config.ready_timeout_seconds.

        Raises:
            SessionTimeoutError: clients did not load in time
            SessionInitError: either client failed to load
        """
        if self._phase == SessionPhase.READY:
            return

        if self._phase != SessionPhase.INITIALIZING or self._init_task is None:
            self._phase = SessionPhase.INITIALIZING
            self._failure_reason = None
            self._init_task = asyncio.ensure_future(self._initialize())

        await asyncio.shield(self._init_task)

    async def _initialize(self) -> None:
        timeout = self.config.ready_timeout_seconds
        try:
            drive_service, token_client = await asyncio.wait_for(
                asyncio.gather(
                    self._drive_loader(self.config),
                    self._identity_loader(self.config)
                ),
                timeout=timeout
            )
        except asyncio.TimeoutError:
            self._fail(f"Timeout waiting for Google clients to load ({timeout}s)")
            raise SessionTimeoutError(self._failure_reason)
        except SessionInitError as e:
            self._fail(str(e))
            raise
        except Exception as e:
            self._fail(f"Google client initialization failed: {e}")
            raise SessionInitError(self._failure_reason) from e

        self._drive_service = drive_service
        self._token_client = token_client
        self._phase = SessionPhase.READY
        logger.info("Google Drive session ready")

    def _fail(self, reason: str) -> None:
        self._phase = SessionPhase.FAILED
        self._failure_reason = reason
        self._drive_service = None
        self._token_client = None
        logger.error(f"Google Drive session failed: {reason}")

    def reset(self) -> None:
        """Drop both clients and return to UNINITIALIZED."""
        if self._init_task is not None and not self._init_task.done():
            self._init_task.cancel()
        self._init_task = None
        self._drive_service = None
        self._token_client = None
        self._failure_reason = None
        self._phase = SessionPhase.UNINITIALIZED

    async def request_authorization(self, scopes: Optional[List[str]] = None) -> AuthorizedToken:
        """
        Ask the user to pick an account and grant Drive access.

        The picker opens on every call; grants are never reused. Only one
        authorization flow runs at a time.

        Raises:
            SessionNotReadyError: ensure_ready() has not succeeded
            AuthorizationDenied: user declined or provider error
        """
        if not self.is_ready() or self._token_client is None:
            raise SessionNotReadyError("Google Drive client not initialized")

        requested = scopes or self.config.scopes
        token_client = self._token_client

        async with self._auth_lock:
            loop = asyncio.get_event_loop()
            try:
                credentials = await loop.run_in_executor(
                    None,
                    lambda: token_client.request_access_token(requested, prompt="select_account")
                )
            except AuthorizationDenied:
                raise
            except Exception as e:
                logger.error(f"Authorization failed: {e}")
                raise AuthorizationDenied({
                    "error": "authorization_failed",
                    "error_description": str(e)
                }) from e

        return AuthorizedToken.from_credentials(credentials, requested)
