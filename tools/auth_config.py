"""
Google Calendar authentication.

The authenticated Calendar service is created on first use and cached in a
CalendarServiceCell for the rest of the process. Token refresh is left to
google-auth.
"""

import asyncio
import logging
import os
from typing import Any, Callable, Optional

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

from errors import AuthenticationError

SCOPES = ["https://www.googleapis.com/auth/calendar"]

APPLICATION_NAME = "MCP Calendar Agent"


class GoogleAuthenticator:
    """One-time OAuth handshake that returns an authorized Calendar v3 service.

    Reuses an authorized-user token file when it holds valid (or refreshable)
    credentials, otherwise runs the installed-app consent flow against the
    client-secret file and stores the resulting token.
    """

    def __init__(self, client_secrets_file: str = "credentials.json", token_file: str = "token.json"):
        self.client_secrets_file = client_secrets_file
        self.token_file = token_file

    def _load_token(self) -> Optional[Credentials]:
        if not os.path.exists(self.token_file):
            return None
        creds = Credentials.from_authorized_user_file(self.token_file, SCOPES)
        if creds.valid:
            return creds
        if creds.expired and creds.refresh_token:
            logging.info("Refreshing stored Google credentials")
            try:
                creds.refresh(Request())
            except GoogleAuthError as e:
                # Revoked or expired refresh token: fall back to consent
                logging.warning(f"Stored Google credentials could not be refreshed: {e}")
                return None
            self._save_token(creds)
            return creds
        return None

    def _save_token(self, creds: Credentials) -> None:
        with open(self.token_file, "w") as f:
            f.write(creds.to_json())

    def _consent(self) -> Credentials:
        if not os.path.exists(self.client_secrets_file):
            raise AuthenticationError(
                f"Google client secret file '{self.client_secrets_file}' not found"
            )
        logging.info("Starting Google OAuth consent flow")
        flow = InstalledAppFlow.from_client_secrets_file(self.client_secrets_file, SCOPES)
        creds = flow.run_local_server(port=0)
        self._save_token(creds)
        return creds

    def __call__(self) -> Any:
        try:
            creds = self._load_token() or self._consent()
        except AuthenticationError:
            raise
        except (GoogleAuthError, OSError, ValueError) as e:
            raise AuthenticationError(f"Google authentication failed: {e}") from e

        logging.info("Google Calendar client authenticated")
        return build("calendar", "v3", credentials=creds, cache_discovery=False)


class CalendarServiceCell:
    """Lazily initialised, process-wide Calendar service.

    get() checks, takes the lock, then checks again, so concurrent first calls
    still run the handshake once. A failed handshake leaves the cell empty.
    """

    def __init__(self, handshake: Callable[[], Any]):
        self._handshake = handshake
        self._service: Any = None
        self._lock = asyncio.Lock()

    async def get(self) -> Any:
        if self._service is not None:
            return self._service

        async with self._lock:
            if self._service is None:
                # The consent flow blocks on a browser round trip
                self._service = await asyncio.to_thread(self._handshake)
        return self._service
