"""
OAuth token client for Plate Sync.

Runs the installed-app OAuth flow with Google's account picker so the
technician chooses which Drive account receives the repair photos.
"""

import logging
from typing import Any, Dict, List, Optional

from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from oauthlib.oauth2.rfc6749.errors import OAuth2Error

from .errors import AuthorizationDenied

logger = logging.getLogger(__name__)

# Scope for files created by this app only
DRIVE_SCOPES = [
    'https://www.googleapis.com/auth/drive.file'
]


class OAuthTokenClient:
    """
    Requests Drive access tokens through the interactive account picker.

    Tokens are never stored: every call opens the picker again.
    """

    AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
    TOKEN_URI = "https://oauth2.googleapis.com/token"

    def __init__(
        self,
        client_id: str,
        client_secret: Optional[str] = None,
        scopes: Optional[List[str]] = None
    ):
        """
        Initialize token client.

        Args:
            client_id: Google OAuth client ID (Desktop app)
            client_secret: OAuth client secret, if the client has one
            scopes: Default scopes requested when none are passed
        """
        self.client_id = client_id
        self.client_secret = client_secret or ""
        self.scopes = scopes or DRIVE_SCOPES

    def client_config(self) -> Dict[str, Any]:
        return {
            "installed": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": self.AUTH_URI,
                "token_uri": self.TOKEN_URI,
                "redirect_uris": ["http://localhost"]
            }
        }

    def request_access_token(
        self,
        scopes: Optional[List[str]] = None,
        prompt: str = "select_account"
    ) -> Credentials:
        """
        Open the account picker and wait for the user's decision.

        Blocks until the browser redirect arrives; call it from an executor.

        Raises:
            AuthorizationDenied: user declined or Google rejected the grant
        """
        flow = InstalledAppFlow.from_client_config(
            self.client_config(),
            scopes=scopes or self.scopes
        )

        try:
            credentials = flow.run_local_server(
                port=0,
                open_browser=True,
                prompt=prompt
            )
        except OAuth2Error as e:
            logger.error(f"Auth Error: {e.error} {e.description}")
            raise AuthorizationDenied({
                "error": e.error,
                "error_description": e.description
            }) from e

        logger.info(f"Obtained Drive access token with scopes: {credentials.scopes}")
        return credentials
