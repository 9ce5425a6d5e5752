"""Google OAuth installed-app credentials with an on-disk token cache."""

from __future__ import annotations

import logging
from pathlib import Path

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

logger = logging.getLogger(__name__)

DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive.metadata.readonly"]


class DriveAuthError(Exception):
    """Raised when Drive credentials cannot be loaded, refreshed or obtained."""


def load_credentials(client_secret_file: str | Path, token_file: str | Path) -> Credentials:
    """Return valid Drive credentials, prompting for consent only when needed.

    A cached token is reused while valid and refreshed when expired. Without
    a usable cached token the local-server consent flow is run. The resulting
    token is written back to ``token_file``.

    Args:
        client_secret_file: OAuth client secret JSON downloaded from the
            Google Cloud console.
        token_file: Path of the cached authorized-user token.

    Returns:
        Valid Credentials for the Drive API.

    Raises:
        DriveAuthError: If the secret file is missing or token acquisition fails.
    """
    token_path = Path(token_file)
    secret_path = Path(client_secret_file)
    creds: Credentials | None = None

    if token_path.exists():
        try:
            creds = Credentials.from_authorized_user_file(str(token_path), DRIVE_SCOPES)
        except ValueError:
            logger.warning("[load_credentials] cached token unreadable; path:%s", token_path)
            creds = None

    if creds is not None and creds.valid:
        return creds

    try:
        if creds is not None and creds.expired and creds.refresh_token:
            logger.info("[load_credentials] refreshing expired token")
            creds.refresh(Request())
        else:
            if not secret_path.exists():
                raise DriveAuthError(
                    f"OAuth client secret file not found at {secret_path}. "
                    "Download it from Google Cloud Console."
                )
            logger.info("[load_credentials] starting consent flow; secret:%s", secret_path)
            flow = InstalledAppFlow.from_client_secrets_file(str(secret_path), DRIVE_SCOPES)
            creds = flow.run_local_server(port=0)
    except GoogleAuthError as exc:
        raise DriveAuthError(f"Failed to obtain Drive credentials: {exc}") from exc

    token_path.write_text(creds.to_json())
    logger.info("[load_credentials] saved token; path:%s", token_path)
    return creds
