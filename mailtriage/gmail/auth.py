"""OAuth credential storage and refresh for the Gmail API."""
import logging
import os
import threading
from typing import List, Optional

import google.oauth2.credentials
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google_auth_oauthlib.flow import InstalledAppFlow

from mailtriage.config import GMAIL_TOKEN_FILE, GMAIL_CREDS_FILE, GMAIL_SCOPES
from mailtriage.errors import AuthError

logger = logging.getLogger(__name__)


class Authenticator:
    """
    Owns the process-wide Gmail credential.

    Credentials are read from the token file, refreshed when expired and
    written back. If no usable token exists the installed-app consent flow
    is run once in the local browser.
    """

    def __init__(
        self,
        token_file: str = GMAIL_TOKEN_FILE,
        creds_file: str = GMAIL_CREDS_FILE,
        scopes: Optional[List[str]] = None,
    ):
        self.token_file = token_file
        self.creds_file = creds_file
        self.scopes = scopes or GMAIL_SCOPES
        self._creds = None
        self._rejected_refresh_token = None
        self._lock = threading.Lock()

    @property
    def credentials(self):
        """Current credential, loading it on first use."""
        if self._creds is None:
            return self.load_credentials()
        return self._creds

    def load_credentials(self):
        """Return a valid credential, refreshing or re-consenting if needed."""
        with self._lock:
            creds = self._creds
            if creds is None and os.path.exists(self.token_file):
                creds = google.oauth2.credentials.Credentials.from_authorized_user_file(
                    self.token_file, self.scopes
                )

            if creds and creds.valid:
                self._creds = creds
                return creds

            if creds and creds.expired and creds.refresh_token:
                logger.info("Access token expired, refreshing")
                self._refresh(creds)
            else:
                creds = self._run_consent_flow()

            self._creds = creds
            return creds

    def refresh(self):
        """Force a token refresh after the provider rejected the current one."""
        with self._lock:
            creds = self._creds
            if creds is None and os.path.exists(self.token_file):
                creds = google.oauth2.credentials.Credentials.from_authorized_user_file(
                    self.token_file, self.scopes
                )
            if not creds or not creds.refresh_token:
                raise AuthError("No refresh token available; re-run the consent flow")
            if creds.refresh_token == self._rejected_refresh_token:
                raise AuthError("Refresh token was just rejected; re-run the consent flow")
            self._refresh(creds)
            self._creds = creds
            logger.info("Access token refreshed")
            return creds

    def _refresh(self, creds) -> None:
        try:
            creds.refresh(Request())
        except GoogleAuthError as e:
            self._rejected_refresh_token = creds.refresh_token
            raise AuthError(f"Token refresh failed: {e}") from e
        self._rejected_refresh_token = None
        self._save(creds)

    def _run_consent_flow(self):
        if not os.path.exists(self.creds_file):
            raise AuthError(f"OAuth client secrets not found at {self.creds_file}")
        logger.info("No valid token found, starting OAuth consent flow")
        flow = InstalledAppFlow.from_client_secrets_file(self.creds_file, self.scopes)
        creds = flow.run_local_server(port=0)
        self._save(creds)
        return creds

    def _save(self, creds) -> None:
        with open(self.token_file, "w") as f:
            f.write(creds.to_json())
