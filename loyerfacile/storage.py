from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from azure.core.exceptions import AzureError
from azure.storage.blob import BlobServiceClient, ContentSettings

from .config import settings
from .domain.errors import StorageError

log = logging.getLogger("loyerfacile.storage")


@dataclass(frozen=True)
class UploadFile:
    """Bytes handed to a bucket, detached from whatever transport carried them."""

    filename: str
    data: bytes
    content_type: Optional[str] = None

    @property
    def extension(self) -> str:
        ext = os.path.splitext(self.filename)[1].lstrip(".").lower()
        return ext or "bin"


class FileStore(Protocol):
    def upload(self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> str: ...

    def public_url(self, bucket: str, path: str) -> str: ...


class LocalFileStore:
    """Buckets as directories under storage_root; served by the /files static mount."""

    def __init__(self, root: str, public_base_url: str) -> None:
        self.root = Path(root)
        self.base = public_base_url.rstrip("/")

    def upload(self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        target = (self.root / bucket / path).resolve()
        if self.root.resolve() not in target.parents:
            raise StorageError(f"invalid object path: {path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise StorageError(f"upload to {bucket}/{path} failed: {e}") from e
        log.info("stored object", extra={"bucket": bucket, "path": path})
        return path

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base}/{bucket}/{path}"


class AzureBlobStore:
    """One container per bucket."""

    def __init__(self, account: str, key: str) -> None:
        self.account = account
        self.service = BlobServiceClient.from_connection_string(
            f"DefaultEndpointsProtocol=https;"
            f"AccountName={account};"
            f"AccountKey={key};"
            f"EndpointSuffix=core.windows.net"
        )

    def upload(self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        blob = self.service.get_blob_client(container=bucket, blob=path)
        try:
            blob.upload_blob(
                data,
                overwrite=True,
                content_settings=ContentSettings(content_type=content_type) if content_type else None,
            )
        except AzureError as e:
            raise StorageError(f"upload to {bucket}/{path} failed: {e}") from e
        return path

    def public_url(self, bucket: str, path: str) -> str:
        return f"https://{self.account}.blob.core.windows.net/{bucket}/{path}"


_store: Optional[FileStore] = None


def get_file_store() -> FileStore:
    global _store
    if _store is None:
        if settings.storage_backend == "azure":
            if not (settings.azure_storage_account and settings.azure_storage_key):
                raise StorageError("azure storage selected but account/key not configured")
            _store = AzureBlobStore(settings.azure_storage_account, settings.azure_storage_key)
        else:
            _store = LocalFileStore(settings.storage_root, settings.storage_public_base_url)
    return _store


def set_file_store(store: Optional[FileStore]) -> None:
    global _store
    _store = store
