"""Crawl checkpoint persistence: a local JSON file or an Azure Storage blob.

The whole page list is written as one JSON document on every save. Neither
backend ever exposes a partially written checkpoint: the file backend writes
to a sibling temp file and renames it over the old one, and a blob upload
with ``overwrite=True`` replaces the blob atomically.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient

from drive_inventory.drive.models import Page, RecordConversionError

if TYPE_CHECKING:
    from drive_inventory.config import AppConfig

logger = logging.getLogger(__name__)

BACKEND_FILE = "file"
BACKEND_BLOB = "blob"

_LOSS_WARNING = "accumulated progress may be permanently lost"


class CheckpointReadError(Exception):
    """Raised when an existing checkpoint cannot be read or decoded."""


class CheckpointWriteError(Exception):
    """Raised when a checkpoint cannot be written."""


def encode_pages(pages: list[Page]) -> bytes:
    """Serialize the page list to the checkpoint's JSON form."""
    return json.dumps([page.to_dict() for page in pages], indent=1).encode("utf-8")


def decode_pages(data: bytes, source: str) -> list[Page]:
    """Parse checkpoint JSON back into pages.

    Raises:
        CheckpointReadError: If the document is not a list of valid pages.
    """
    try:
        raw = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CheckpointReadError(f"Checkpoint {source} is not valid JSON: {exc}") from exc
    if not isinstance(raw, list):
        raise CheckpointReadError(f"Checkpoint {source} is not a list of pages")
    try:
        return [Page.from_dict(p) for p in raw]
    except RecordConversionError as exc:
        raise CheckpointReadError(f"Checkpoint {source} holds malformed data: {exc}") from exc


class CheckpointStore(ABC):
    """Durable read/write of the accumulated page list."""

    @abstractmethod
    def load(self) -> list[Page]:
        """Return the saved pages, or an empty list if nothing was saved yet.

        Raises:
            CheckpointReadError: On any failure other than "not found".
        """

    @abstractmethod
    def save(self, pages: list[Page]) -> None:
        """Replace the saved checkpoint with ``pages``.

        Raises:
            CheckpointWriteError: If the write fails.
        """


class FileCheckpointStore(CheckpointStore):
    """Checkpoint kept in a single local JSON file."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[Page]:
        try:
            data = self._path.read_bytes()
        except FileNotFoundError:
            logger.info("[checkpoint_load] no checkpoint found; path:%s", self._path)
            return []
        except OSError as exc:
            raise CheckpointReadError(f"Cannot read checkpoint {self._path}: {exc}") from exc

        pages = decode_pages(data, str(self._path))
        logger.info(
            "[checkpoint_load] restored checkpoint; path:%s;page_count:%d",
            self._path,
            len(pages),
        )
        return pages

    def save(self, pages: list[Page]) -> None:
        data = encode_pages(pages)
        directory = self._path.parent
        tmp_name: str | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "wb",
                dir=directory,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, self._path)
        except OSError as exc:
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
            logger.error(
                "[checkpoint_save] write failed, %s; path:%s", _LOSS_WARNING, self._path
            )
            raise CheckpointWriteError(
                f"Cannot write checkpoint {self._path}: {exc}; {_LOSS_WARNING}"
            ) from exc
        logger.info(
            "[checkpoint_save] wrote checkpoint; path:%s;page_count:%d",
            self._path,
            len(pages),
        )


class BlobCheckpointStore(CheckpointStore):
    """Checkpoint kept in a single Azure Storage blob."""

    def __init__(self, storage_connection_string: str, container: str, blob: str) -> None:
        """Initialise the blob-backed store.

        Args:
            storage_connection_string: Azure Storage connection string.
            container: Blob container name, created on first save if missing.
            blob: Blob path of the checkpoint document.
        """
        self._blob_service = BlobServiceClient.from_connection_string(storage_connection_string)
        self._container = container
        self._blob = blob

    def load(self) -> list[Page]:
        source = f"{self._container}/{self._blob}"
        try:
            container_client = self._blob_service.get_container_client(self._container)
            blob_client = container_client.get_blob_client(self._blob)
            data = blob_client.download_blob().readall()
        except ResourceNotFoundError:
            logger.info("[checkpoint_load] no checkpoint blob found; blob:%s", source)
            return []
        except AzureError as exc:
            raise CheckpointReadError(f"Cannot read checkpoint {source}: {exc}") from exc

        pages = decode_pages(data, source)
        logger.info(
            "[checkpoint_load] restored checkpoint; blob:%s;page_count:%d", source, len(pages)
        )
        return pages

    def save(self, pages: list[Page]) -> None:
        source = f"{self._container}/{self._blob}"
        data = encode_pages(pages)
        try:
            container_client = self._blob_service.get_container_client(self._container)
            with contextlib.suppress(ResourceExistsError):
                container_client.create_container()
            blob_client = container_client.get_blob_client(self._blob)
            blob_client.upload_blob(data, overwrite=True)
        except AzureError as exc:
            logger.error("[checkpoint_save] upload failed, %s; blob:%s", _LOSS_WARNING, source)
            raise CheckpointWriteError(
                f"Cannot write checkpoint {source}: {exc}; {_LOSS_WARNING}"
            ) from exc
        logger.info(
            "[checkpoint_save] uploaded checkpoint; blob:%s;page_count:%d", source, len(pages)
        )


def checkpoint_store_from_config(config: AppConfig) -> CheckpointStore:
    """Construct the configured CheckpointStore.

    Args:
        config: Application configuration instance.

    Returns:
        A FileCheckpointStore or BlobCheckpointStore.

    Raises:
        ValueError: If the backend is unknown, or is ``blob`` without a
            storage connection string.
    """
    if config.checkpoint_backend == BACKEND_FILE:
        return FileCheckpointStore(config.checkpoint_path)
    if config.checkpoint_backend == BACKEND_BLOB:
        if not config.storage_connection_string:
            raise ValueError(
                "Blob checkpoint backend requires AZURE_STORAGE_CONNECTION_STRING"
            )
        return BlobCheckpointStore(
            storage_connection_string=config.storage_connection_string,
            container=config.checkpoint_container,
            blob=config.checkpoint_blob,
        )
    raise ValueError(f"Unknown checkpoint backend: {config.checkpoint_backend!r}")
