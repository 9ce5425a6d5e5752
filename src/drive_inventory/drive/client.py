"""Google Drive v3 files.list client returning one Page per call."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from drive_inventory.drive.auth import DriveAuthError, load_credentials
from drive_inventory.drive.models import LIST_FIELDS, Page

if TYPE_CHECKING:
    from drive_inventory.config import AppConfig

logger = logging.getLogger(__name__)


class DriveApiError(Exception):
    """Raised when a files.list call fails."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"Drive API error {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class DriveTransportError(Exception):
    """Raised when a files.list call fails below HTTP (timeout, reset, DNS)."""


class DriveLister:
    """Fetches single pages of file metadata from the Drive API.

    Retries are left to the underlying client; a failed call surfaces as
    DriveApiError, DriveTransportError or DriveAuthError and is never
    retried here.
    """

    def __init__(self, service: Any, corpora: str = "user", page_size: int = 1000) -> None:
        """Initialise the lister.

        Args:
            service: Drive v3 resource from ``googleapiclient.discovery.build``.
            corpora: files.list ``corpora`` scoping parameter.
            page_size: Maximum records per page.
        """
        self._service = service
        self._corpora = corpora
        self._page_size = page_size

    def list_page(self, continuation_token: str | None, filter_query: str | None) -> Page:
        """Fetch one page of file metadata.

        Args:
            continuation_token: ``nextPageToken`` from the previous page, or
                None (or empty) for the first page.
            filter_query: files.list ``q`` expression passed through
                unchanged; None or empty means no filter.

        Returns:
            The decoded Page.

        Raises:
            DriveApiError: If the API returns an error status.
            DriveTransportError: If the request fails below HTTP.
            DriveAuthError: If the token cannot be refreshed.
            RecordConversionError: If the response cannot be decoded.
        """
        params: dict[str, Any] = {
            "corpora": self._corpora,
            "pageSize": self._page_size,
            "fields": LIST_FIELDS,
        }
        if continuation_token:
            params["pageToken"] = continuation_token
        if filter_query:
            params["q"] = filter_query

        try:
            response = self._service.files().list(**params).execute()
        except HttpError as exc:
            status = exc.resp.status
            logger.error("[list_page] files.list failed; status:%s", status)
            raise DriveApiError(int(status), str(exc)) from exc
        except RefreshError as exc:
            logger.error("[list_page] token refresh failed; error:%s", exc)
            raise DriveAuthError(f"Drive token refresh failed: {exc}") from exc
        except (OSError, httplib2.HttpLib2Error, TransportError) as exc:
            logger.error("[list_page] files.list transport failure; error:%r", exc)
            raise DriveTransportError(f"Drive request failed: {exc!r}") from exc

        return Page.from_dict(response)


def drive_lister_from_config(config: AppConfig) -> DriveLister:
    """Construct an authenticated DriveLister from application configuration.

    Args:
        config: Application configuration instance.

    Returns:
        Configured DriveLister instance.

    Raises:
        DriveAuthError: If credentials cannot be obtained.
    """
    creds = load_credentials(config.client_secret_file, config.token_file)
    service = build("drive", "v3", credentials=creds, cache_discovery=False)
    return DriveLister(service, corpora=config.corpora, page_size=config.page_size)
