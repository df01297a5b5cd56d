"""Google OAuth for Gmail.

ContractFlow only sends mail, so the token is requested with the
``gmail.send`` scope alone and cached in ``CF_GOOGLE_TOKEN_FILE``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from contractflow.config import Settings, get_settings
from contractflow.errors import IntegrationError

logger = logging.getLogger(__name__)

GMAIL_SCOPES = ["https://www.googleapis.com/auth/gmail.send"]


def get_credentials(settings: Settings | None = None) -> Credentials:
    """Return Gmail send credentials, refreshing or re-authorizing as needed.

    A first run opens the browser consent screen, which needs the OAuth
    client file from ``CF_GOOGLE_CREDENTIALS_FILE``.
    """
    settings = settings or get_settings()
    token_path = Path(settings.google_token_file)
    creds = None
    if token_path.exists():
        creds = Credentials.from_authorized_user_file(str(token_path), GMAIL_SCOPES)
    if creds and creds.valid:
        return creds

    if creds and creds.expired and creds.refresh_token:
        logger.info("Refreshing Gmail token %s", token_path)
        creds.refresh(Request())
    else:
        if not settings.has_google():
            raise IntegrationError(
                f"Gmail is not authorized and {settings.google_credentials_file} is missing"
            )
        logger.info("Requesting Gmail send access")
        flow = InstalledAppFlow.from_client_secrets_file(settings.google_credentials_file, GMAIL_SCOPES)
        creds = flow.run_local_server(port=0)

    token_path.write_text(creds.to_json())
    return creds
