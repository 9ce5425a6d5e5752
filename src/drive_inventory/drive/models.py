"""Data models for Google Drive file records and listing pages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Drive API JSON field names
FIELD_ID = "id"
FIELD_NAME = "name"
FIELD_MIME_TYPE = "mimeType"
FIELD_PARENTS = "parents"
FIELD_QUOTA_BYTES_USED = "quotaBytesUsed"
FIELD_SIZE = "size"
FIELD_MD5_CHECKSUM = "md5Checksum"

# files.list response keys
FIELD_FILES = "files"
FIELD_NEXT_PAGE_TOKEN = "nextPageToken"

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

# Partial-response selector passed as the ``fields`` parameter of files.list.
LIST_FIELDS = (
    f"{FIELD_NEXT_PAGE_TOKEN},{FIELD_FILES}("
    f"{FIELD_ID},{FIELD_MIME_TYPE},{FIELD_PARENTS},{FIELD_NAME},"
    f"{FIELD_QUOTA_BYTES_USED},{FIELD_SIZE},{FIELD_MD5_CHECKSUM})"
)


class RecordConversionError(ValueError):
    """Raised when raw page data cannot be mapped into a FileRecord or Page."""


def _optional_int(raw: dict[str, Any], key: str) -> int | None:
    """Decode a byte count the API transmits as a decimal string."""
    value = raw.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise RecordConversionError(f"Field {key!r} is not a byte count: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise RecordConversionError(f"Field {key!r} is not a byte count: {value!r}") from exc


def _optional_str(raw: dict[str, Any], key: str) -> str | None:
    value = raw.get(key)
    if value is None or isinstance(value, str):
        return value
    raise RecordConversionError(f"Field {key!r} is not a string: {value!r}")


@dataclass(frozen=True)
class FileRecord:
    """A single Drive entry (file or folder) as returned by files.list.

    Attributes:
        id: Opaque id, unique within one completed crawl.
        mime_type: MIME type; folders use ``application/vnd.google-apps.folder``.
        parents: Parent folder ids in API order. Empty for roots and for
            entries whose parents are not visible to the crawling account.
        name: Display name, not guaranteed unique.
        size_used: Quota-weighted byte count (``quotaBytesUsed``), or None
            when the API omits it.
        content_size: Raw content size in bytes (``size``), or None.
        content_hash: MD5 checksum of the content, or None.
    """

    id: str
    mime_type: str
    parents: tuple[str, ...]
    name: str
    size_used: int | None = None
    content_size: int | None = None
    content_hash: str | None = None

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME_TYPE

    @classmethod
    def from_dict(cls, raw: Any) -> FileRecord:
        """Map a raw API (or checkpoint) file dict to a FileRecord.

        A ``null`` or absent ``parents`` field decodes to an empty tuple.

        Raises:
            RecordConversionError: If the dict is missing its id or carries
                values of the wrong shape.
        """
        if not isinstance(raw, dict):
            raise RecordConversionError(f"File entry is not an object: {raw!r}")
        file_id = raw.get(FIELD_ID)
        if not isinstance(file_id, str) or not file_id:
            raise RecordConversionError(f"File entry has no id: {raw!r}")

        parents = raw.get(FIELD_PARENTS)
        if parents is None:
            parents = []
        if not isinstance(parents, list) or not all(isinstance(p, str) for p in parents):
            raise RecordConversionError(
                f"File {file_id} has malformed parents: {parents!r}"
            )

        return cls(
            id=file_id,
            mime_type=_optional_str(raw, FIELD_MIME_TYPE) or "",
            parents=tuple(parents),
            name=_optional_str(raw, FIELD_NAME) or "",
            size_used=_optional_int(raw, FIELD_QUOTA_BYTES_USED),
            content_size=_optional_int(raw, FIELD_SIZE),
            content_hash=_optional_str(raw, FIELD_MD5_CHECKSUM),
        )

    def listing_line(self) -> str:
        """One-line fixed-width listing: id, MIME type, parents, name."""
        return f"{self.id:44}  {self.mime_type:50} {list(self.parents)!r:30} {self.name}"

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to the API's field names, omitting absent fields."""
        raw: dict[str, Any] = {
            FIELD_ID: self.id,
            FIELD_MIME_TYPE: self.mime_type,
            FIELD_PARENTS: list(self.parents),
            FIELD_NAME: self.name,
        }
        if self.size_used is not None:
            raw[FIELD_QUOTA_BYTES_USED] = str(self.size_used)
        if self.content_size is not None:
            raw[FIELD_SIZE] = str(self.content_size)
        if self.content_hash is not None:
            raw[FIELD_MD5_CHECKSUM] = self.content_hash
        return raw


@dataclass
class Page:
    """One files.list response: a batch of records and the continuation token.

    A present ``next_page_token`` means more pages remain. Its absence is the
    only signal that the listing is complete.
    """

    files: list[FileRecord] = field(default_factory=list)
    next_page_token: str | None = None

    @property
    def is_last(self) -> bool:
        return self.next_page_token is None

    @classmethod
    def from_dict(cls, raw: Any) -> Page:
        """Map a raw files.list response (or persisted page) to a Page.

        Raises:
            RecordConversionError: If the response or any file in it is malformed.
        """
        if not isinstance(raw, dict):
            raise RecordConversionError(f"Page is not an object: {raw!r}")
        files = raw.get(FIELD_FILES)
        if files is None:
            files = []
        if not isinstance(files, list):
            raise RecordConversionError(f"Page files is not a list: {files!r}")
        token = _optional_str(raw, FIELD_NEXT_PAGE_TOKEN)
        return cls(
            files=[FileRecord.from_dict(f) for f in files],
            # An empty token is treated the same as an absent one.
            next_page_token=token or None,
        )

    def to_dict(self) -> dict[str, Any]:
        raw: dict[str, Any] = {FIELD_FILES: [f.to_dict() for f in self.files]}
        if self.next_page_token is not None:
            raw[FIELD_NEXT_PAGE_TOKEN] = self.next_page_token
        return raw
