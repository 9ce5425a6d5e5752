"""Application configuration loaded from environment variables."""

import os
from dataclasses import dataclass

DEFAULT_TREE_MIN_BYTES = 50 * 2**20
DEFAULT_UNOWNED_MIN_BYTES = 1024


@dataclass(frozen=True)
class AppConfig:
    """Centralized application configuration.

    Every field has a default so the CLI runs with no environment set up.
    The blob checkpoint backend additionally needs a storage connection
    string, which is checked when the store is constructed.
    """

    # Google OAuth installed-app credentials
    client_secret_file: str = "client_secret.json"
    token_file: str = "token.json"

    # Checkpoint persistence
    checkpoint_backend: str = "file"
    checkpoint_path: str = "files.json"
    storage_connection_string: str = ""
    checkpoint_container: str = "drive-inventory-state"
    checkpoint_blob: str = "checkpoint/files.json"

    # files.list parameters, passed through to the API untouched
    corpora: str = "user"
    query: str = "'me' in owners"
    page_size: int = 1000

    # Crawl and report tuning
    checkpoint_every: int = 10
    tree_min_bytes: int = DEFAULT_TREE_MIN_BYTES
    unowned_min_bytes: int = DEFAULT_UNOWNED_MIN_BYTES

    log_level: str = "INFO"


def load_config() -> AppConfig:
    """Construct an AppConfig from environment variables.

    Optional environment variables (with defaults):
        DI_CLIENT_SECRET_FILE: OAuth client secret JSON (default: client_secret.json).
        DI_TOKEN_FILE: Cached OAuth token JSON (default: token.json).
        DI_CHECKPOINT_BACKEND: "file" or "blob" (default: file).
        DI_CHECKPOINT_PATH: Local checkpoint file (default: files.json).
        AZURE_STORAGE_CONNECTION_STRING: Required for the blob backend.
        DI_CHECKPOINT_CONTAINER: Blob container (default: drive-inventory-state).
        DI_CHECKPOINT_BLOB: Blob path (default: checkpoint/files.json).
        DI_CORPORA: files.list corpora (default: user).
        DI_QUERY: files.list q filter; empty disables filtering
            (default: 'me' in owners).
        DI_PAGE_SIZE: files.list pageSize (default: 1000).
        DI_CHECKPOINT_EVERY: Pages between periodic checkpoints (default: 10).
        DI_TREE_MIN_BYTES: Smallest aggregate printed by the tree report
            (default: 52428800, i.e. 50 MiB).
        DI_UNOWNED_MIN_BYTES: Size above which a file under an unknown parent
            is reported (default: 1024).
        DI_LOG_LEVEL: Logging level name (default: INFO).

    Returns:
        Configured AppConfig instance.

    Raises:
        ValueError: If a numeric variable is not an integer.
    """
    return AppConfig(
        client_secret_file=os.environ.get("DI_CLIENT_SECRET_FILE", "client_secret.json"),
        token_file=os.environ.get("DI_TOKEN_FILE", "token.json"),
        checkpoint_backend=os.environ.get("DI_CHECKPOINT_BACKEND", "file"),
        checkpoint_path=os.environ.get("DI_CHECKPOINT_PATH", "files.json"),
        storage_connection_string=os.environ.get("AZURE_STORAGE_CONNECTION_STRING", ""),
        checkpoint_container=os.environ.get("DI_CHECKPOINT_CONTAINER", "drive-inventory-state"),
        checkpoint_blob=os.environ.get("DI_CHECKPOINT_BLOB", "checkpoint/files.json"),
        corpora=os.environ.get("DI_CORPORA", "user"),
        query=os.environ.get("DI_QUERY", "'me' in owners"),
        page_size=int(os.environ.get("DI_PAGE_SIZE", "1000")),
        checkpoint_every=int(os.environ.get("DI_CHECKPOINT_EVERY", "10")),
        tree_min_bytes=int(os.environ.get("DI_TREE_MIN_BYTES", str(DEFAULT_TREE_MIN_BYTES))),
        unowned_min_bytes=int(
            os.environ.get("DI_UNOWNED_MIN_BYTES", str(DEFAULT_UNOWNED_MIN_BYTES))
        ),
        log_level=os.environ.get("DI_LOG_LEVEL", "INFO"),
    )
